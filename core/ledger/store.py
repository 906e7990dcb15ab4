"""
계정 상태 저장소

(account, asset) 별 현재 잔액을 Accounts 테이블에 유지.
mutation 적용 시 계정마다 조건부 쓰기(CAS) 한 번:
- 이전 버전 없음 → INSERT (이미 있으면 DuplicateKeyError)
- 이전 버전 있음 → UPDATE ... WHERE Version = 이전 버전 (0행이면 ConcurrencyConflictError)

재시도는 하지 않음. 충돌 처리 방법은 호출자가 결정.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

import aiosqlite

from core.constants import AccountsTable, Defaults
from core.ledger.errors import (
    AccountConflict,
    AccountConflictError,
    ConcurrencyConflictError,
    ConflictReason,
    DuplicateKeyError,
)
from core.ledger.prefix import glob_prefix_pattern
from core.ledger.records import Mutation, Record, decode_account_delta, validate_mutation_hash
from core.ledger.types import (
    AccountKey,
    AccountStatus,
    MutationResult,
    Version,
    version_from_bytes,
)
from core.types import ConflictPolicy

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter
    from core.config.loader import LedgerSettings, Settings

logger = logging.getLogger(__name__)

AccountDecoder = Callable[[Record], "AccountStatus | None"]

_SELECT_COLUMNS = ", ".join(AccountsTable.COLUMNS)


def _is_primary_key_violation(error: aiosqlite.IntegrityError) -> bool:
    """IntegrityError가 (Account, Asset) 키 중복인지 확인"""
    errorname = getattr(error, "sqlite_errorname", None)
    if errorname:
        return errorname in ("SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE")
    return "UNIQUE constraint failed" in str(error)


def _row_to_status(row: tuple[Any, ...]) -> AccountStatus:
    return AccountStatus(
        key=AccountKey(account=row[0], asset=row[1]),
        balance=row[2],
        version=version_from_bytes(row[3]),
    )


class AccountStateStore:
    """계정 상태 저장소

    연결 핸들(SQLiteAdapter) 외에는 프로세스 내 가변 상태가 없음.
    동시 작성자 간 일관성은 Version 조건부 UPDATE로만 보장.
    같은 저장소를 여러 태스크가 공유하면 mutation은 어댑터에서 하나씩 직렬화됨.

    Args:
        db: 연결된 SQLite 어댑터
        decoder: 레코드 → AccountStatus | None 디코더
        conflict_policy: mutation 내 충돌 처리 정책 (기본 ABORT)
        mutation_hash_size: mutation 해시 길이 (0이면 길이 검사 생략)

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        store = AccountStateStore(db)
        await store.apply_mutation(mutation, mutation_hash)
        balances = await store.get_subaccounts("/org/")
    ```
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        decoder: AccountDecoder = decode_account_delta,
        conflict_policy: ConflictPolicy | str = ConflictPolicy.ABORT,
        mutation_hash_size: int = Defaults.MUTATION_HASH_SIZE,
    ):
        self.db = db
        self.decoder = decoder
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.mutation_hash_size = mutation_hash_size

    @classmethod
    def from_settings(
        cls,
        db: SQLiteAdapter,
        settings: LedgerSettings | Settings,
        decoder: AccountDecoder = decode_account_delta,
    ) -> AccountStateStore:
        """ledger.yaml 설정(conflict_policy, mutation_hash_size)으로 저장소 생성"""
        return cls(
            db,
            decoder=decoder,
            conflict_policy=settings.conflict_policy,
            mutation_hash_size=settings.mutation_hash_size,
        )

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def apply_mutation(
        self,
        mutation: Mutation,
        mutation_hash: bytes,
        conflict_policy: ConflictPolicy | str | None = None,
    ) -> MutationResult:
        """mutation의 계정 델타를 순서대로 적용

        모든 쓰기는 같은 mutation_hash를 새 버전으로 사용.

        ABORT: 하나의 트랜잭션. 첫 충돌에서 롤백 후 예외 발생.
        PARTIAL: 충돌 계정은 건너뛰고 나머지를 커밋. 충돌은 결과로 보고.

        Args:
            mutation: 적용할 mutation
            mutation_hash: mutation 내용 해시 (새 버전 토큰)
            conflict_policy: 이번 호출에만 쓸 정책 (None이면 저장소 기본값)

        Returns:
            MutationResult (applied, conflicts)

        Raises:
            ConcurrencyConflictError: ABORT 정책에서 버전 불일치
            DuplicateKeyError: ABORT 정책에서 신규 계정 키 중복
            DecodeError: 레코드 디코딩 실패 (아무것도 쓰지 않음)
            StorageError: 저장소 오류 (변환 없이 전파)
        """
        mutation_hash = validate_mutation_hash(mutation_hash, self.mutation_hash_size)
        policy = ConflictPolicy(conflict_policy) if conflict_policy else self.conflict_policy

        # 쓰기 전에 전부 디코딩 (디코딩 오류 시 부분 적용 방지)
        deltas = [
            delta
            for delta in (self.decoder(record) for record in mutation.records)
            if delta is not None
        ]

        result = MutationResult(mutation_hash=mutation_hash)

        async with self.db.transaction(immediate=True):
            for delta in deltas:
                try:
                    applied = await self._write(delta, mutation_hash)
                except AccountConflictError as e:
                    self._log_conflicts(e, mutation_hash)
                    if policy == ConflictPolicy.ABORT:
                        raise
                    result.conflicts.extend(e.conflicts)
                    continue
                result.applied.append(applied)

        logger.debug(
            f"Applied mutation {mutation_hash.hex()}: "
            f"{len(result.applied)} applied, {len(result.conflicts)} conflicts"
        )
        return result

    async def _write(self, delta: AccountStatus, mutation_hash: bytes) -> AccountStatus:
        """계정 델타 하나에 대한 조건부 쓰기"""
        key = delta.key

        if delta.is_new_account:
            try:
                await self.db.execute(
                    f"""
                    INSERT INTO {AccountsTable.NAME} (Account, Asset, Balance, Version)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key.account, key.asset, delta.balance, mutation_hash),
                )
            except aiosqlite.IntegrityError as e:
                if not _is_primary_key_violation(e):
                    raise
                raise DuplicateKeyError(
                    [AccountConflict(key, delta.version, ConflictReason.ALREADY_EXISTS)]
                ) from e
        else:
            cursor = await self.db.execute(
                f"""
                UPDATE  {AccountsTable.NAME}
                SET     Balance = ?, Version = ?
                WHERE   Account = ? AND Asset = ? AND Version = ?
                """,
                (delta.balance, mutation_hash, key.account, key.asset, delta.version.value),
            )
            if cursor.rowcount == 0:
                raise ConcurrencyConflictError(
                    [AccountConflict(key, delta.version, ConflictReason.VERSION_MISMATCH)]
                )

        return AccountStatus(key=key, balance=delta.balance, version=Version(mutation_hash))

    def _log_conflicts(self, error: AccountConflictError, mutation_hash: bytes) -> None:
        for conflict in error.conflicts:
            logger.warning(
                f"Account conflict: {conflict}",
                extra={
                    "account": conflict.key.account,
                    "asset": conflict.key.asset,
                    "reason": conflict.reason.value,
                    "mutation_hash": mutation_hash.hex(),
                },
            )

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_account(
        self,
        account: str,
        asset: str | None = None,
    ) -> dict[AccountKey, AccountStatus]:
        """계정 경로 정확히 일치 조회

        Args:
            account: 계정 경로 (prefix 아님)
            asset: 자산 경로 (None이면 해당 계정의 모든 자산)

        Returns:
            {AccountKey: AccountStatus} (없으면 빈 dict)
        """
        if asset is None:
            rows = await self.db.fetchall(
                f"""
                SELECT  {_SELECT_COLUMNS}
                FROM    {AccountsTable.NAME}
                WHERE   Account = ?
                ORDER BY Account, Asset
                """,
                (account,),
            )
        else:
            rows = await self.db.fetchall(
                f"""
                SELECT  {_SELECT_COLUMNS}
                FROM    {AccountsTable.NAME}
                WHERE   Account = ? AND Asset = ?
                """,
                (account, asset),
            )

        return self._to_mapping(rows)

    async def get_subaccounts(self, root_account: str) -> dict[AccountKey, AccountStatus]:
        """계정 경로 prefix 조회 (모든 자산)

        문자열 startswith 의미: "/org" 는 "/organization" 도 포함.
        GLOB 메타문자는 리터럴로 취급.

        Args:
            root_account: 계정 경로 prefix

        Returns:
            {AccountKey: AccountStatus} (없으면 빈 dict)
        """
        rows = await self.db.fetchall(
            f"""
            SELECT  {_SELECT_COLUMNS}
            FROM    {AccountsTable.NAME}
            WHERE   Account GLOB ?
            ORDER BY Account, Asset
            """,
            (glob_prefix_pattern(root_account),),
        )

        return self._to_mapping(rows)

    @staticmethod
    def _to_mapping(rows: list[tuple[Any, ...]]) -> dict[AccountKey, AccountStatus]:
        # 키 중복 시 마지막 행 우선 (PK 제약상 발생하지 않음)
        result: dict[AccountKey, AccountStatus] = {}
        for row in rows:
            status = _row_to_status(row)
            result[status.key] = status
        return result
