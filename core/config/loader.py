"""
설정 로더

ledger.yaml 로드 및 저장소 설정 생성
"""

from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from adapters.db.sqlite_adapter import get_db_path
from core.constants import Defaults, Paths
from core.types import ConflictPolicy, LedgerMode


@dataclass(frozen=True)
class LedgerSettings:
    """저장소 설정 (ledger.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    mode: LedgerMode
    db_path: Path
    busy_timeout_ms: int = Defaults.BUSY_TIMEOUT_MS
    conflict_policy: ConflictPolicy = ConflictPolicy.ABORT
    mutation_hash_size: int = Defaults.MUTATION_HASH_SIZE


class SettingsLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def load_settings(path: Path | None = None) -> LedgerSettings:
    """ledger.yaml 파일 로드

    Args:
        path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerSettings 인스턴스

    Raises:
        SettingsLoadError: 파일이 없거나 형식이 잘못된 경우
        ValueError: 유효하지 않은 mode 또는 conflict_policy인 경우
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        raise SettingsLoadError(f"ledger.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"ledger.yaml 파싱 실패: {e}") from e

    if data is None:
        raise SettingsLoadError("ledger.yaml이 비어 있습니다")

    if not isinstance(data, dict):
        raise SettingsLoadError("ledger.yaml 최상위는 매핑이어야 합니다")

    # mode 검증
    mode_str = data.get("mode")
    if mode_str is None:
        raise SettingsLoadError("ledger.yaml에 'mode' 필드가 없습니다")

    try:
        mode = LedgerMode(str(mode_str).lower())
    except ValueError as e:
        valid_modes = [m.value for m in LedgerMode]
        raise ValueError(
            f"유효하지 않은 mode입니다: '{mode_str}'. "
            f"유효한 값: {valid_modes}"
        ) from e

    database = data.get("database") or {}
    ledger = data.get("ledger") or {}

    db_path_str = database.get("path")
    db_path = Path(db_path_str) if db_path_str else get_db_path(mode)

    busy_timeout_ms = database.get("busy_timeout_ms", Defaults.BUSY_TIMEOUT_MS)
    if not isinstance(busy_timeout_ms, int) or busy_timeout_ms < 0:
        raise SettingsLoadError(
            f"database.busy_timeout_ms는 0 이상의 정수여야 합니다: {busy_timeout_ms!r}"
        )

    policy_str = ledger.get("conflict_policy", ConflictPolicy.ABORT.value)
    try:
        conflict_policy = ConflictPolicy(str(policy_str).upper())
    except ValueError as e:
        valid_policies = [p.value for p in ConflictPolicy]
        raise ValueError(
            f"유효하지 않은 conflict_policy입니다: '{policy_str}'. "
            f"유효한 값: {valid_policies}"
        ) from e

    mutation_hash_size = ledger.get("mutation_hash_size", Defaults.MUTATION_HASH_SIZE)
    if not isinstance(mutation_hash_size, int) or mutation_hash_size < 0:
        raise SettingsLoadError(
            f"ledger.mutation_hash_size는 0 이상의 정수여야 합니다: {mutation_hash_size!r}"
        )

    return LedgerSettings(
        mode=mode,
        db_path=db_path,
        busy_timeout_ms=busy_timeout_ms,
        conflict_policy=conflict_policy,
        mutation_hash_size=mutation_hash_size,
    )


def with_overrides(
    settings: LedgerSettings,
    mode: LedgerMode | str | None = None,
    db_path: Path | str | None = None,
    busy_timeout_ms: int | None = None,
) -> LedgerSettings:
    """명령행 인자 등으로 일부 설정을 덮어쓴 사본 반환

    우선순위: db_path > mode에 따른 기본 경로 > ledger.yaml의 경로

    Args:
        settings: 기준 설정
        mode: 운영 모드 (지정 시 DB 경로도 해당 모드 기본값으로 변경)
        db_path: DB 파일 경로
        busy_timeout_ms: 잠금 대기 시간 (ms)

    Returns:
        새 LedgerSettings 인스턴스
    """
    changes: dict[str, object] = {}

    if mode is not None:
        mode = LedgerMode(str(mode).lower())
        changes["mode"] = mode
        changes["db_path"] = get_db_path(mode)

    if db_path is not None:
        changes["db_path"] = Path(db_path)

    if busy_timeout_ms is not None:
        if busy_timeout_ms < 0:
            raise ValueError(f"busy_timeout_ms는 0 이상이어야 합니다: {busy_timeout_ms}")
        changes["busy_timeout_ms"] = busy_timeout_ms

    return replace(settings, **changes)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    ledger.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: LedgerSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(settings_path)

    @property
    def ledger(self) -> LedgerSettings:
        """로드된 LedgerSettings 원본"""
        assert self._settings is not None
        return self._settings

    @property
    def mode(self) -> LedgerMode:
        """현재 운영 모드"""
        assert self._settings is not None
        return self._settings.mode

    @property
    def db_path(self) -> Path:
        """현재 모드의 DB 경로"""
        assert self._settings is not None
        return self._settings.db_path

    @property
    def busy_timeout_ms(self) -> int:
        assert self._settings is not None
        return self._settings.busy_timeout_ms

    @property
    def conflict_policy(self) -> ConflictPolicy:
        """mutation 충돌 처리 정책"""
        assert self._settings is not None
        return self._settings.conflict_policy

    @property
    def mutation_hash_size(self) -> int:
        assert self._settings is not None
        return self._settings.mutation_hash_size

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        settings_path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
