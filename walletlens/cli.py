"""Command-line interface for wallet dashboard queries."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date, datetime, timezone
from typing import Any

from .aggregation import Interval, ValueMode
from .config import load_config
from .logging_setup import configure_logging
from .models import QueryView
from .services import DashboardService


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}") from None


def _parse_datetime(value: str) -> datetime:
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="walletlens",
        description="Aggregate wallet portfolios and transactions into dashboard datasets",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    portfolio = sub.add_parser("portfolio", help="Current holdings breakdown")
    portfolio.add_argument("addresses", nargs="+")
    portfolio.add_argument(
        "--by", choices=["asset", "asset_name", "protocol", "chain"], default="asset"
    )
    portfolio.add_argument(
        "--refresh", action="store_true", help="Bypass cached results"
    )

    compare = sub.add_parser("compare", help="Holdings compared across dates")
    compare.add_argument("addresses", nargs="+")
    compare.add_argument("--dates", nargs="+", type=_parse_date, required=True)
    compare.add_argument(
        "--by", choices=["asset", "asset_name", "protocol", "chain"], default="asset"
    )

    transactions = sub.add_parser(
        "transactions", help="Transaction totals by interval and category"
    )
    transactions.add_argument("addresses", nargs="+")
    transactions.add_argument("--start", type=_parse_datetime, required=True)
    transactions.add_argument("--end", type=_parse_datetime, required=True)
    transactions.add_argument(
        "--interval", choices=[i.value for i in Interval], default=Interval.DAY.value
    )
    transactions.add_argument(
        "--category",
        action="append",
        default=None,
        help="Category to keep (repeatable; default: all)",
    )
    transactions.add_argument(
        "--fees", action="store_true", help="Aggregate fees instead of gross value"
    )

    sub.add_parser("sweep-cache", help="Delete expired cache entries")

    return parser


def _emit(view: QueryView[Any]) -> int:
    dataset = view.dataset
    payload = {
        "disposition": view.disposition.value,
        "data": dataset.as_dict() if hasattr(dataset, "as_dict") else dataset,
        "errors": [{"key": e.key, "reason": e.reason} for e in view.errors],
    }
    print(json.dumps(payload, indent=2, default=str))
    return 0 if view.ok else 1


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    service = DashboardService(config)

    if args.command == "portfolio":
        return _emit(
            await service.portfolio_breakdown(
                args.addresses, by=args.by, force_refresh=args.refresh
            )
        )
    if args.command == "compare":
        return _emit(
            await service.portfolio_comparison(args.addresses, args.dates, by=args.by)
        )
    if args.command == "transactions":
        end = args.end
        if end.time() == datetime.min.time():
            # A bare end date includes that whole day.
            end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
        return _emit(
            await service.transactions_by_category(
                args.addresses,
                args.start,
                end,
                interval=Interval(args.interval),
                categories=frozenset(args.category) if args.category else None,
                mode=ValueMode.FEES if args.fees else ValueMode.GROSS,
            )
        )
    if args.command == "sweep-cache":
        print(json.dumps({"removed": service.sweep_cache()}))
        return 0

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
