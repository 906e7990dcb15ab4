"""
계정 상태 타입 정의

AccountKey, AccountStatus 및 낙관적 동시성 제어용 버전 토큰.
모두 불변 값 객체로 I/O가 없음.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from core.ledger.errors import AccountConflict
    from core.ledger.records import Record


class NoPriorVersion:
    """"아직 행이 없음"을 나타내는 버전 상태 (싱글턴)

    빈 바이트열 규약 대신 명시적인 상태로 표현하여
    길이 0 해시와의 혼동을 원천 차단.
    """

    _instance: "NoPriorVersion | None" = None

    def __new__(cls) -> "NoPriorVersion":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_PRIOR_VERSION"

    def __reduce__(self) -> tuple:
        return (NoPriorVersion, ())

    @property
    def value(self) -> bytes:
        """저장소 표현 (빈 바이트열)"""
        return b""

    def hex(self) -> str:
        return ""


NO_PRIOR_VERSION = NoPriorVersion()


@dataclass(frozen=True)
class Version:
    """행을 마지막으로 기록한 mutation의 해시

    빈 값은 허용하지 않음 (NO_PRIOR_VERSION과 분리).
    """

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray)):
            raise TypeError(f"Version은 bytes여야 합니다: {type(self.value).__name__}")
        if len(self.value) == 0:
            raise ValueError("Version은 비어 있을 수 없습니다 (NO_PRIOR_VERSION 사용)")
        # bytearray → bytes (해시 가능하도록)
        object.__setattr__(self, "value", bytes(self.value))

    def __bool__(self) -> bool:
        return True

    def hex(self) -> str:
        return self.value.hex()


VersionToken = NoPriorVersion | Version


def version_from_bytes(raw: bytes | None) -> VersionToken:
    """저장소/레코드의 원시 바이트를 버전 토큰으로 변환

    빈 바이트열(또는 None)은 NO_PRIOR_VERSION.
    """
    if not raw:
        return NO_PRIOR_VERSION
    return Version(bytes(raw))


@dataclass(frozen=True, order=True)
class AccountKey:
    """계정-자산 쌍 식별자

    account, asset 모두 구분자("/")로 나뉜 계층 경로 문자열.
    동등성/정렬/해시는 두 경로 문자열 기준.
    """

    account: str
    asset: str

    def __str__(self) -> str:
        return f"{self.account}:{self.asset}"


@dataclass(frozen=True)
class AccountStatus:
    """특정 시점의 계정-자산 잔액 스냅샷

    Attributes:
        key: 계정-자산 식별자
        balance: 잔액 (signed 64-bit, 음수 허용)
        version: 버전 토큰. 쓰기 요청에서는 작성자가 마지막으로 본 버전,
            조회 결과에서는 현재 저장된 버전.
    """

    key: AccountKey
    balance: int
    version: VersionToken = NO_PRIOR_VERSION

    def __post_init__(self) -> None:
        if not -(2**63) <= self.balance < 2**63:
            raise ValueError(f"balance가 64-bit 범위를 벗어났습니다: {self.balance}")

    @property
    def is_new_account(self) -> bool:
        """이전 버전이 없는 (신규 계정) 델타인지"""
        return isinstance(self.version, NoPriorVersion)

    @classmethod
    def from_record(
        cls,
        record: Record,
        decoder: Callable[[Record], AccountStatus | None] | None = None,
    ) -> AccountStatus | None:
        """레코드에서 AccountStatus 생성

        계정 잔액과 무관한 레코드면 None 반환.
        디코딩 오류는 그대로 전파.
        """
        if decoder is None:
            from core.ledger.records import decode_account_delta

            decoder = decode_account_delta
        return decoder(record)


@dataclass
class MutationResult:
    """apply_mutation 결과

    Attributes:
        mutation_hash: 적용한 mutation 해시 (새 버전 토큰)
        applied: 실제 기록된 행 (version = mutation_hash)
        conflicts: 계정별 충돌 목록 (PARTIAL 정책에서만 채워짐)
    """

    mutation_hash: bytes
    applied: list[AccountStatus] = field(default_factory=list)
    conflicts: list[AccountConflict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.conflicts

    def raise_for_conflicts(self) -> None:
        """충돌이 있으면 해당 예외 발생

        중복 삽입 충돌이 하나라도 있으면 DuplicateKeyError,
        그 외에는 ConcurrencyConflictError.
        """
        if not self.conflicts:
            return

        from core.ledger.errors import (
            ConcurrencyConflictError,
            ConflictReason,
            DuplicateKeyError,
        )

        if any(c.reason == ConflictReason.ALREADY_EXISTS for c in self.conflicts):
            raise DuplicateKeyError(self.conflicts)
        raise ConcurrencyConflictError(self.conflicts)
