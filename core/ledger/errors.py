"""
계정 상태 저장소 예외 정의

- 충돌 (ConcurrencyConflictError, DuplicateKeyError): 경합 상황에서 예상되는
  복구 가능한 오류. 재시도 여부는 호출자가 결정.
- StorageError: 연결/스키마/제약 위반 등 저장소 오류. 변환 없이 그대로 전파.
- DecodeError: 레코드 디코딩 실패. 저장소는 생성하지 않고 전파만 함.
"""

from dataclasses import dataclass
from enum import Enum

import aiosqlite

from core.ledger.types import AccountKey, VersionToken


# sqlite3 예외 계층의 루트 (OperationalError, IntegrityError 등)
StorageError = aiosqlite.Error


class ConflictReason(str, Enum):
    """충돌 원인"""

    VERSION_MISMATCH = "VERSION_MISMATCH"  # 조건부 UPDATE가 0행에 적용됨
    ALREADY_EXISTS = "ALREADY_EXISTS"  # 신규 계정 INSERT 대상 키가 이미 존재


@dataclass(frozen=True)
class AccountConflict:
    """계정 단위 충돌 정보

    Attributes:
        key: 충돌한 계정-자산 키
        expected: 작성자가 제시한 이전 버전
        reason: 충돌 원인
    """

    key: AccountKey
    expected: VersionToken
    reason: ConflictReason

    def __str__(self) -> str:
        expected = self.expected.hex() or "<none>"
        return f"{self.key} (expected={expected}, reason={self.reason.value})"


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""

    pass


class DecodeError(LedgerError):
    """레코드를 계정 델타로 디코딩할 수 없음"""

    pass


class AccountConflictError(LedgerError):
    """계정 상태 충돌 기본 클래스

    Attributes:
        conflicts: 계정별 충돌 목록
    """

    def __init__(self, conflicts: list[AccountConflict], message: str | None = None):
        self.conflicts = list(conflicts)
        if message is None:
            joined = ", ".join(str(c) for c in self.conflicts)
            message = f"{self.default_message}: {joined}"
        super().__init__(message)

    default_message = "account state conflict"

    @property
    def keys(self) -> list[AccountKey]:
        return [c.key for c in self.conflicts]


class ConcurrencyConflictError(AccountConflictError):
    """조건부 업데이트가 0행에 적용됨 (오래된 버전 제시)"""

    default_message = "stale account version"


class DuplicateKeyError(ConcurrencyConflictError):
    """신규 계정 삽입 대상 키가 이미 존재함

    "이전 버전 없음"을 제시했지만 행이 있는 경우이므로 버전 충돌의 일종.
    """

    default_message = "account already exists"
