"""
계정 상태 스키마 초기화 (멱등)

DB 경로와 busy_timeout은 config/ledger.yaml에서 읽고, 명령행 인자로 덮어쓸 수 있음.

사용법:
    python -m scripts.init_db
    python -m scripts.init_db --mode testnet
    python -m scripts.init_db --db data/custom.db
    python -m scripts.init_db --config config/ledger.yaml
"""

import argparse
import asyncio
import logging
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import LedgerSettings, SettingsLoadError, get_settings, with_overrides
from core.constants import AccountsTable
from core.logging import setup_logging
from core.types import LedgerMode

logger = logging.getLogger(__name__)


async def run(settings: LedgerSettings) -> None:
    async with SQLiteAdapter.from_settings(settings) as db:
        await init_schema(db)

        columns = await db.get_table_info(AccountsTable.NAME)
        logger.info(
            f"{AccountsTable.NAME} 테이블 준비 완료: "
            f"{', '.join(c['name'] for c in columns)}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="계정 상태 스키마 초기화")
    parser.add_argument("--config", type=Path, default=None, help="ledger.yaml 경로")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in LedgerMode],
        default=None,
        help="운영 모드 (지정 시 ledger.yaml의 mode/경로 대신 사용)",
    )
    parser.add_argument("--db", type=Path, default=None, help="DB 파일 경로 (mode보다 우선)")
    parser.add_argument("--busy-timeout-ms", type=int, default=None, help="잠금 대기 시간 (ms)")
    args = parser.parse_args()

    setup_logging("init_db")

    try:
        settings = with_overrides(
            get_settings(args.config).ledger,
            mode=args.mode,
            db_path=args.db,
            busy_timeout_ms=args.busy_timeout_ms,
        )
    except (SettingsLoadError, ValueError) as e:
        logger.error(f"설정 로드 실패: {e}")
        sys.exit(1)

    logger.info(f"Mode: {settings.mode.value}")
    logger.info(f"DB Path: {settings.db_path}")

    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
