"""
계정 상태 저장소

(account, asset) 별 잔액과 버전을 관리하고
mutation을 낙관적 동시성 제어(버전 CAS)로 적용.

사용 예시:
```python
from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.ledger import AccountStateStore, Mutation, Record

async with SQLiteAdapter(db_path) as db:
    await init_schema(db)
    store = AccountStateStore(db)

    # 신규 계정 (이전 버전 없음)
    mutation = Mutation(namespace=b"ns", records=[Record.account("/a", "/USD", 100)])
    await store.apply_mutation(mutation, h1)

    # 잔액 조회
    balances = await store.get_account("/a")
```
"""

from core.ledger.errors import (
    AccountConflict,
    AccountConflictError,
    ConcurrencyConflictError,
    ConflictReason,
    DecodeError,
    DuplicateKeyError,
    LedgerError,
    StorageError,
)
from core.ledger.prefix import glob_prefix_pattern
from core.ledger.records import (
    Mutation,
    Record,
    RecordKey,
    RecordType,
    decode_account_delta,
    validate_mutation_hash,
)
from core.ledger.store import AccountStateStore
from core.ledger.types import (
    NO_PRIOR_VERSION,
    AccountKey,
    AccountStatus,
    MutationResult,
    NoPriorVersion,
    Version,
    VersionToken,
    version_from_bytes,
)

__all__ = [
    # 핵심 클래스
    "AccountStateStore",
    "AccountKey",
    "AccountStatus",
    "MutationResult",
    # 버전 토큰
    "NO_PRIOR_VERSION",
    "NoPriorVersion",
    "Version",
    "VersionToken",
    "version_from_bytes",
    # 레코드
    "Mutation",
    "Record",
    "RecordKey",
    "RecordType",
    "decode_account_delta",
    "validate_mutation_hash",
    "glob_prefix_pattern",
    # 예외
    "LedgerError",
    "DecodeError",
    "AccountConflict",
    "AccountConflictError",
    "ConcurrencyConflictError",
    "DuplicateKeyError",
    "ConflictReason",
    "StorageError",
]
