"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
여러 프로세스(작성자)가 같은 DB 파일에 동시에 접근 가능하도록 설정.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator

import aiosqlite

from core.constants import AccountsTable, Defaults, Paths
from core.types import LedgerMode

if TYPE_CHECKING:
    from core.config.loader import LedgerSettings, Settings

logger = logging.getLogger(__name__)


def get_db_path(mode: LedgerMode | str) -> Path:
    """모드에 따른 DB 경로 반환

    Args:
        mode: 운영 모드 (PRODUCTION/TESTNET)

    Returns:
        DB 파일 경로 (Path 타입)
    """
    if isinstance(mode, str):
        mode = LedgerMode(mode.lower())

    if mode == LedgerMode.PRODUCTION:
        return Paths.PROD_DB
    return Paths.TEST_DB


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
    busy_timeout_ms: int = Defaults.BUSY_TIMEOUT_MS,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부
        busy_timeout_ms: 잠금 대기 시간 (ms)

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    # 디렉토리가 없으면 생성
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    if readonly:
        conn = await aiosqlite.connect(f"file:{db_path_str}?mode=ro", uri=True)
    else:
        conn = await aiosqlite.connect(db_path_str)

    await conn.execute("PRAGMA journal_mode=WAL")

    # 동시 접근 설정: 다른 작성자의 쓰기 잠금 해제까지 대기
    await conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    트랜잭션 컨텍스트 매니저 제공.
    연결 하나를 여러 태스크가 공유해도 트랜잭션은 한 번에 하나씩 실행.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부 (조회용)
        busy_timeout_ms: 잠금 대기 시간 (ms)

    사용 예시:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(
        self,
        db_path: Path | str,
        readonly: bool = False,
        busy_timeout_ms: int = Defaults.BUSY_TIMEOUT_MS,
    ):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        settings: "LedgerSettings | Settings",
        readonly: bool = False,
    ) -> "SQLiteAdapter":
        """ledger.yaml 설정(db_path, busy_timeout_ms)으로 어댑터 생성"""
        return cls(
            settings.db_path,
            readonly=readonly,
            busy_timeout_ms=settings.busy_timeout_ms,
        )

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(
            self.db_path, self.readonly, self.busy_timeout_ms
        )

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[None]:
        """다른 태스크의 트랜잭션이 끝날 때까지 대기

        트랜잭션을 소유한 태스크는 잠금 없이 바로 실행.
        """
        if self._tx_owner is not None and self._tx_owner is asyncio.current_task():
            yield
            return

        async with self._lock:
            yield

    async def _execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행

        반환된 커서의 rowcount로 영향받은 행 수 확인 가능.
        """
        async with self._serialized():
            return await self._execute(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        async with self._serialized():
            cursor = await self._execute(sql, parameters)
            return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        async with self._serialized():
            cursor = await self._execute(sql, parameters)
            return await cursor.fetchall()

    async def commit(self) -> None:
        """커밋"""
        if self._conn is not None:
            async with self._serialized():
                await self._conn.commit()

    async def rollback(self) -> None:
        """롤백"""
        if self._conn is not None:
            async with self._serialized():
                await self._conn.rollback()

    @asynccontextmanager
    async def transaction(
        self,
        immediate: bool = False,
    ) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백 후 예외 재발생.
        immediate=True 이면 BEGIN IMMEDIATE 로 시작하여 쓰기 잠금을 먼저 획득
        (다른 작성자는 busy_timeout 동안 대기).

        같은 어댑터를 공유하는 태스크들의 트랜잭션은 순서대로 실행.
        트랜잭션 중 다른 태스크의 execute/fetch/commit 도 종료까지 대기.

        Raises:
            RuntimeError: 연결 전, 중첩 호출, 또는 커밋되지 않은 쓰기가 남아 있는 경우

        사용 예시:
        ```python
        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO ...")
            # 성공 시 자동 커밋
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        task = asyncio.current_task()
        if self._tx_owner is not None and self._tx_owner is task:
            raise RuntimeError("Nested transaction is not supported")

        async with self._lock:
            # 트랜잭션 밖에서 커밋되지 않은 쓰기를 대신 커밋/롤백하지 않음
            if self._conn.in_transaction:
                raise RuntimeError("Uncommitted changes outside of transaction()")

            self._tx_owner = task
            try:
                if immediate:
                    await self._conn.execute("BEGIN IMMEDIATE")

                try:
                    yield self._conn
                    await self._conn.commit()
                except BaseException:
                    await self._conn.rollback()
                    raise
            finally:
                self._tx_owner = None

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    async def get_table_info(self, table_name: str) -> list[dict[str, Any]]:
        """테이블 정보 조회"""
        rows = await self.fetchall(f"PRAGMA table_info({table_name})")

        columns = []
        for row in rows:
            columns.append({
                "cid": row[0],
                "name": row[1],
                "type": row[2],
                "notnull": bool(row[3]),
                "default_value": row[4],
                "pk": bool(row[5]),
            })

        return columns

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성, 멱등)

    Args:
        adapter: 연결된 SQLiteAdapter

    주의: 저장소 사용 전에 별도 부트스트랩 단계(scripts/init_db.py)에서 호출.
    """
    await adapter.execute(f"""
        CREATE TABLE IF NOT EXISTS {AccountsTable.NAME} (
            Account  TEXT    NOT NULL,
            Asset    TEXT    NOT NULL,
            Balance  INTEGER NOT NULL,
            Version  BLOB    NOT NULL,
            PRIMARY KEY (Account ASC, Asset ASC)
        )
    """)

    await adapter.commit()

    logger.info("스키마 초기화 완료")
