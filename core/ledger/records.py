"""
Mutation 레코드 모델 및 기본 디코더

레코드 키 형식: "{path}:{TYPE}:{name}"
- ACC 레코드: path = 계정 경로, name = 자산 경로, value = 잔액 (8바이트 big-endian signed)
- DATA 등 그 외 레코드: 계정 델타가 아님 (디코더가 None 반환)

사용 예시:
```python
record = Record.account("/org/branch", "/asset/USD", 150, previous_version=h1)
status = decode_account_delta(record)  # AccountStatus(...)
```
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.ledger.errors import DecodeError
from core.ledger.types import AccountKey, AccountStatus, VersionToken, version_from_bytes

BALANCE_SIZE = 8  # signed 64-bit


class RecordType(str, Enum):
    """레코드 유형"""

    ACC = "ACC"  # 계정 잔액
    DATA = "DATA"  # 임의 데이터


@dataclass(frozen=True)
class RecordKey:
    """레코드 키 (path, type, name)"""

    path: str
    record_type: str
    name: str

    @classmethod
    def parse(cls, raw: bytes | str) -> RecordKey:
        """키 문자열/바이트 파싱

        Raises:
            DecodeError: UTF-8이 아니거나 구성 요소가 3개 미만인 경우
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                text = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"레코드 키가 UTF-8이 아닙니다: {raw!r}") from e
        else:
            text = raw

        parts = text.split(":", 2)
        if len(parts) != 3:
            raise DecodeError(f"레코드 키 형식 오류 (path:TYPE:name): {text!r}")

        path, record_type, name = parts
        return cls(path=path, record_type=record_type, name=name)

    @classmethod
    def for_account(cls, account: str, asset: str) -> RecordKey:
        return cls(path=account, record_type=RecordType.ACC.value, name=asset)

    @property
    def is_account(self) -> bool:
        return self.record_type == RecordType.ACC.value

    def __str__(self) -> str:
        return f"{self.path}:{self.record_type}:{self.name}"

    def to_bytes(self) -> bytes:
        return str(self).encode("utf-8")


@dataclass(frozen=True)
class Record:
    """Mutation 레코드 (불변)

    Attributes:
        key: 레코드 키 (bytes 또는 str)
        value: 레코드 값
        version: 작성자가 본 이전 버전 (빈 값 = 신규)
    """

    key: bytes | str
    value: bytes = b""
    version: bytes = b""

    @classmethod
    def account(
        cls,
        account: str,
        asset: str,
        balance: int,
        previous_version: VersionToken | bytes = b"",
    ) -> Record:
        """계정 잔액 레코드 생성 헬퍼"""
        if not isinstance(previous_version, (bytes, bytearray)):
            previous_version = previous_version.value
        return cls(
            key=RecordKey.for_account(account, asset).to_bytes(),
            value=encode_balance(balance),
            version=bytes(previous_version),
        )


@dataclass(frozen=True)
class Mutation:
    """레코드의 순서 있는 묶음

    해시 계산 및 이전 mutation 연결은 외부 책임.
    """

    namespace: bytes
    records: tuple[Record, ...]
    metadata: bytes = b""

    def __post_init__(self) -> None:
        # list로 넘겨도 불변 튜플로 고정
        object.__setattr__(self, "records", tuple(self.records))


def encode_balance(balance: int) -> bytes:
    """잔액을 8바이트 big-endian signed 정수로 인코딩"""
    return balance.to_bytes(BALANCE_SIZE, "big", signed=True)


def decode_balance(value: bytes) -> int:
    """잔액 디코딩 (빈 값 = 0)

    Raises:
        DecodeError: 길이가 0 또는 8이 아닌 경우
    """
    if len(value) == 0:
        return 0
    if len(value) != BALANCE_SIZE:
        raise DecodeError(f"잔액 값 길이 오류: {len(value)} (기대값 {BALANCE_SIZE})")
    return int.from_bytes(value, "big", signed=True)


def decode_account_delta(record: Record) -> AccountStatus | None:
    """레코드를 계정 델타로 디코딩

    Returns:
        ACC 레코드면 AccountStatus, 그 외에는 None

    Raises:
        DecodeError: 키 또는 값 형식 오류
    """
    key = RecordKey.parse(record.key)
    if not key.is_account:
        return None

    return AccountStatus(
        key=AccountKey(account=key.path, asset=key.name),
        balance=decode_balance(record.value),
        version=version_from_bytes(record.version),
    )


def validate_mutation_hash(value: bytes, expected_size: int = 32) -> bytes:
    """mutation 해시 검증

    빈 해시는 NO_PRIOR_VERSION과 겹치므로 거부.

    Args:
        value: mutation 해시
        expected_size: 기대 길이 (0이면 길이 검사 생략)

    Returns:
        bytes로 정규화된 해시

    Raises:
        ValueError: bytes가 아니거나 비어 있거나 길이가 다른 경우
    """
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"mutation 해시는 bytes여야 합니다: {type(value).__name__}")
    if len(value) == 0:
        raise ValueError("mutation 해시는 비어 있을 수 없습니다")
    if expected_size and len(value) != expected_size:
        raise ValueError(
            f"mutation 해시 길이 오류: {len(value)} (기대값 {expected_size})"
        )
    return bytes(value)
