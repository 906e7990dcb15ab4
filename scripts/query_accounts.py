#!/usr/bin/env python3
"""
계정 잔액 조회 스크립트

DB 경로와 busy_timeout은 config/ledger.yaml에서 읽고, 명령행 인자로 덮어쓸 수 있음.

사용법:
    python -m scripts.query_accounts --account /org/branch
    python -m scripts.query_accounts --account /org/branch --asset /USD
    python -m scripts.query_accounts --account /org --subaccounts
"""

import argparse
import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import LedgerSettings, SettingsLoadError, get_settings, with_overrides
from core.ledger.store import AccountStateStore
from core.ledger.types import AccountKey, AccountStatus
from core.types import LedgerMode


def format_rows(accounts: dict[AccountKey, AccountStatus]) -> list[str]:
    """조회 결과를 출력용 문자열로 변환"""
    lines = []
    for key in sorted(accounts):
        status = accounts[key]
        lines.append(
            f"  {key.account:<40} {key.asset:<20} {status.balance:>20}  {status.version.hex()}"
        )
    return lines


async def run(args: argparse.Namespace, settings: LedgerSettings) -> int:
    async with SQLiteAdapter.from_settings(settings, readonly=True) as db:
        store = AccountStateStore.from_settings(db, settings)

        if args.subaccounts:
            accounts = await store.get_subaccounts(args.account)
        else:
            accounts = await store.get_account(args.account, args.asset)

    print(f"DB Path: {settings.db_path}")
    print(f"Accounts: {len(accounts)}")
    for line in format_rows(accounts):
        print(line)

    return 0 if accounts else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="계정 잔액 조회")
    parser.add_argument("--account", required=True, help="계정 경로 (--subaccounts 시 prefix)")
    parser.add_argument("--asset", default=None, help="자산 경로 (생략 시 전체)")
    parser.add_argument("--subaccounts", action="store_true", help="prefix 조회")
    parser.add_argument("--config", type=Path, default=None, help="ledger.yaml 경로")
    parser.add_argument("--mode", choices=[m.value for m in LedgerMode], default=None)
    parser.add_argument("--db", type=Path, default=None, help="DB 파일 경로 (mode보다 우선)")
    parser.add_argument("--busy-timeout-ms", type=int, default=None, help="잠금 대기 시간 (ms)")
    args = parser.parse_args()

    if args.subaccounts and args.asset:
        parser.error("--subaccounts와 --asset은 함께 사용할 수 없습니다")

    try:
        settings = with_overrides(
            get_settings(args.config).ledger,
            mode=args.mode,
            db_path=args.db,
            busy_timeout_ms=args.busy_timeout_ms,
        )
    except (SettingsLoadError, ValueError) as e:
        print(f"설정 로드 실패: {e}", file=sys.stderr)
        sys.exit(2)

    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
