"""
데이터베이스 어댑터

SQLite WAL 모드 연결 관리 및 스키마 부트스트랩.
"""

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
)

__all__ = [
    "SQLiteAdapter",
    "get_db_path",
    "create_connection",
    "init_schema",
]
