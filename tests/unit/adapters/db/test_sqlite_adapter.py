"""
SQLite 어댑터 테스트

SQLiteAdapter 및 관련 함수 테스트.
"""

import asyncio
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
)
from core.config.loader import LedgerSettings
from core.constants import AccountsTable, Paths
from core.types import LedgerMode


class TestGetDbPath:
    """get_db_path 테스트"""

    def test_production_mode(self) -> None:
        """Production 모드"""
        path = get_db_path(LedgerMode.PRODUCTION)

        assert path == Paths.PROD_DB
        assert isinstance(path, Path)

    def test_testnet_mode(self) -> None:
        """Testnet 모드"""
        assert get_db_path(LedgerMode.TESTNET) == Paths.TEST_DB

    def test_string_mode(self) -> None:
        """문자열 모드 (대소문자 무시)"""
        assert get_db_path("PRODUCTION") == Paths.PROD_DB
        assert get_db_path("testnet") == Paths.TEST_DB


class TestCreateConnection:
    """create_connection 테스트"""

    @pytest.mark.asyncio
    async def test_create_connection(self, tmp_path: Path) -> None:
        """연결 생성 (WAL 모드)"""
        conn = await create_connection(tmp_path / "test.db")

        cursor = await conn.execute("PRAGMA journal_mode")
        row = await cursor.fetchone()
        assert row[0].upper() == "WAL"

        await conn.close()

    @pytest.mark.asyncio
    async def test_busy_timeout(self, tmp_path: Path) -> None:
        """busy_timeout 설정"""
        conn = await create_connection(tmp_path / "test.db", busy_timeout_ms=1234)

        cursor = await conn.execute("PRAGMA busy_timeout")
        row = await cursor.fetchone()
        assert row[0] == 1234

        await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """부모 디렉토리 생성"""
        db_path = tmp_path / "subdir" / "test.db"

        conn = await create_connection(db_path)

        assert db_path.parent.exists()

        await conn.close()


class TestSQLiteAdapter:
    """SQLiteAdapter 테스트"""

    @pytest_asyncio.fixture
    async def adapter(self, tmp_path: Path) -> SQLiteAdapter:
        """어댑터 픽스처"""
        adapter = SQLiteAdapter(tmp_path / "test.db")
        await adapter.connect()
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connect_and_close(self, tmp_path: Path) -> None:
        """연결 및 종료"""
        adapter = SQLiteAdapter(tmp_path / "test.db")

        assert adapter.is_connected is False

        await adapter.connect()
        assert adapter.is_connected is True

        await adapter.close()
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_execute_not_connected(self, tmp_path: Path) -> None:
        """연결 전 실행 → RuntimeError"""
        adapter = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(RuntimeError, match="Not connected"):
            await adapter.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute_rowcount(self, adapter: SQLiteAdapter) -> None:
        """execute 반환 커서로 영향 행 수 확인"""
        await adapter.execute("CREATE TABLE t (id INTEGER, v TEXT)")
        await adapter.execute("INSERT INTO t (id, v) VALUES (?, ?)", (1, "a"))
        await adapter.execute("INSERT INTO t (id, v) VALUES (?, ?)", (2, "b"))
        await adapter.commit()

        cursor = await adapter.execute("UPDATE t SET v = ? WHERE id = ?", ("z", 1))
        assert cursor.rowcount == 1

        cursor = await adapter.execute("UPDATE t SET v = ? WHERE id = ?", ("z", 99))
        assert cursor.rowcount == 0

    @pytest.mark.asyncio
    async def test_fetchall(self, adapter: SQLiteAdapter) -> None:
        """전체 조회"""
        await adapter.execute("CREATE TABLE items (value TEXT)")
        for value in ("C", "A", "B"):
            await adapter.execute("INSERT INTO items (value) VALUES (?)", (value,))
        await adapter.commit()

        rows = await adapter.fetchall("SELECT value FROM items ORDER BY value")

        assert [r[0] for r in rows] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_transaction_commit(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 커밋"""
        await adapter.execute("CREATE TABLE tx_test (id INTEGER)")
        await adapter.commit()

        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO tx_test (id) VALUES (1)")
            await conn.execute("INSERT INTO tx_test (id) VALUES (2)")

        rows = await adapter.fetchall("SELECT id FROM tx_test")
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 롤백"""
        await adapter.execute("CREATE TABLE tx_test2 (id INTEGER)")
        await adapter.commit()

        with pytest.raises(ValueError):
            async with adapter.transaction() as conn:
                await conn.execute("INSERT INTO tx_test2 (id) VALUES (1)")
                raise ValueError("의도적 에러")

        rows = await adapter.fetchall("SELECT id FROM tx_test2")
        assert len(rows) == 0

    @pytest.mark.asyncio
    async def test_immediate_transaction(self, adapter: SQLiteAdapter) -> None:
        """BEGIN IMMEDIATE 트랜잭션"""
        await adapter.execute("CREATE TABLE tx_test3 (id INTEGER)")
        await adapter.commit()

        async with adapter.transaction(immediate=True) as conn:
            assert conn.in_transaction is True
            await adapter.execute("INSERT INTO tx_test3 (id) VALUES (1)")

        assert await adapter.fetchone("SELECT id FROM tx_test3") == (1,)

    @pytest.mark.asyncio
    async def test_nested_transaction_rejected(self, adapter: SQLiteAdapter) -> None:
        """같은 태스크의 중첩 트랜잭션 → RuntimeError, 바깥 트랜잭션 롤백"""
        await adapter.execute("CREATE TABLE tx_nested (id INTEGER)")
        await adapter.commit()

        with pytest.raises(RuntimeError, match="Nested"):
            async with adapter.transaction(immediate=True):
                await adapter.execute("INSERT INTO tx_nested (id) VALUES (1)")
                async with adapter.transaction(immediate=True):
                    pass

        assert await adapter.fetchall("SELECT id FROM tx_nested") == []

    @pytest.mark.asyncio
    async def test_uncommitted_changes_rejected(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 밖의 커밋되지 않은 쓰기는 대신 커밋하지 않음"""
        await adapter.execute("CREATE TABLE tx_pending (id INTEGER)")
        await adapter.commit()
        await adapter.execute("INSERT INTO tx_pending (id) VALUES (1)")

        with pytest.raises(RuntimeError, match="Uncommitted"):
            async with adapter.transaction(immediate=True):
                pass

        await adapter.rollback()
        assert await adapter.fetchall("SELECT id FROM tx_pending") == []

    @pytest.mark.asyncio
    async def test_transactions_serialized_across_tasks(self, adapter: SQLiteAdapter) -> None:
        """다른 태스크의 트랜잭션/조회는 진행 중인 트랜잭션 종료까지 대기"""
        await adapter.execute("CREATE TABLE tx_serial (id INTEGER)")
        await adapter.commit()

        order: list[str] = []
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first() -> None:
            async with adapter.transaction(immediate=True):
                await adapter.execute("INSERT INTO tx_serial (id) VALUES (1)")
                entered.set()
                await release.wait()
                order.append("first")

        async def second() -> None:
            await entered.wait()
            async with adapter.transaction(immediate=True):
                order.append("second")
                await adapter.execute("INSERT INTO tx_serial (id) VALUES (2)")

        first_task = asyncio.create_task(first())
        second_task = asyncio.create_task(second())
        await entered.wait()
        reader = asyncio.create_task(adapter.fetchall("SELECT id FROM tx_serial"))

        await asyncio.sleep(0.05)
        assert order == []
        assert reader.done() is False

        release.set()
        await asyncio.gather(first_task, second_task)

        assert order == ["first", "second"]
        assert (1,) in await reader
        rows = await adapter.fetchall("SELECT id FROM tx_serial ORDER BY id")
        assert rows == [(1,), (2,)]

    @pytest.mark.asyncio
    async def test_from_settings(self, tmp_path: Path) -> None:
        """설정의 db_path, busy_timeout_ms 사용"""
        settings = LedgerSettings(
            mode=LedgerMode.TESTNET,
            db_path=tmp_path / "from_settings.db",
            busy_timeout_ms=4321,
        )

        async with SQLiteAdapter.from_settings(settings) as adapter:
            assert adapter.db_path == tmp_path / "from_settings.db"
            assert await adapter.fetchone("PRAGMA busy_timeout") == (4321,)

    @pytest.mark.asyncio
    async def test_table_exists(self, adapter: SQLiteAdapter) -> None:
        """테이블 존재 확인"""
        assert await adapter.table_exists("nonexistent") is False

        await adapter.execute("CREATE TABLE existing (id INTEGER)")
        await adapter.commit()

        assert await adapter.table_exists("existing") is True

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        """컨텍스트 매니저"""
        async with SQLiteAdapter(tmp_path / "ctx_test.db") as adapter:
            assert adapter.is_connected is True

        assert adapter.is_connected is False


class TestInitSchema:
    """init_schema 테스트"""

    @pytest.mark.asyncio
    async def test_creates_accounts_table(self, tmp_path: Path) -> None:
        """Accounts 테이블 생성 및 컬럼 확인"""
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)

            assert await adapter.table_exists(AccountsTable.NAME) is True

            columns = await adapter.get_table_info(AccountsTable.NAME)
            assert [c["name"] for c in columns] == list(AccountsTable.COLUMNS)
            assert [c["name"] for c in columns if c["pk"]] == ["Account", "Asset"]

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path: Path) -> None:
        """여러 번 실행 가능"""
        async with SQLiteAdapter(tmp_path / "idempotent_test.db") as adapter:
            await init_schema(adapter)
            await init_schema(adapter)

            assert await adapter.table_exists(AccountsTable.NAME) is True

    @pytest.mark.asyncio
    async def test_primary_key_unique(self, tmp_path: Path) -> None:
        """(Account, Asset) 중복 삽입 → IntegrityError"""
        async with SQLiteAdapter(tmp_path / "unique_test.db") as adapter:
            await init_schema(adapter)

            await adapter.execute(
                "INSERT INTO Accounts (Account, Asset, Balance, Version) VALUES (?, ?, ?, ?)",
                ("/a", "/USD", 1, b"\x01"),
            )
            await adapter.commit()

            with pytest.raises(aiosqlite.IntegrityError):
                await adapter.execute(
                    "INSERT INTO Accounts (Account, Asset, Balance, Version) VALUES (?, ?, ?, ?)",
                    ("/a", "/USD", 2, b"\x02"),
                )
