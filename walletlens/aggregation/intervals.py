"""Interval/category aggregation of transactions."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping

from ..models import AssetMovement, Transaction
from ..parsing import to_decimal
from .categories import category_names

logger = logging.getLogger(__name__)


class Interval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class ValueMode(str, Enum):
    GROSS = "gross"
    FEES = "fees"


def interval_start(moment: datetime | date, interval: Interval) -> date:
    """Truncate to the start of its interval; weeks start on Monday."""
    day = moment.date() if isinstance(moment, datetime) else moment
    if interval is Interval.DAY:
        return day
    if interval is Interval.WEEK:
        return day - timedelta(days=day.weekday())
    if interval is Interval.MONTH:
        return day.replace(day=1)
    if interval is Interval.QUARTER:
        return date(day.year, (day.month - 1) // 3 * 3 + 1, 1)
    return date(day.year, 1, 1)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _movement_value(movement: AssetMovement, mode: ValueMode) -> Decimal:
    # Inbound/outbound movements carry no fee component.
    if mode is ValueMode.FEES:
        return Decimal(0)
    return to_decimal(movement.value)


def _transaction_value(tx: Transaction, mode: ValueMode) -> Decimal:
    if mode is ValueMode.FEES:
        return to_decimal(tx.fees_fiat)
    inbound = sum((_movement_value(a, mode) for a in tx.assets_in), Decimal(0))
    outbound = sum((_movement_value(a, mode) for a in tx.assets_out), Decimal(0))
    return inbound - outbound


def aggregate_by_interval_and_category(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
    interval: Interval,
    categories: frozenset[str] | set[str] | None = None,
    mode: ValueMode = ValueMode.GROSS,
) -> dict[str, dict[str, float]]:
    """Build interval start (``YYYY-MM-DD``) → category → signed total.

    Contributions are additive across structural levels:

    * transaction-level categories get the net movement value (inbound minus
      outbound), or the transaction fee in ``FEES`` mode;
    * every inbound/outbound movement with its own categories adds its own
      value under those categories;
    * the native fee movement adds its value under its own categories.

    ``categories=None`` keeps every category; an empty set keeps none.
    Transactions without a valid timestamp or outside ``[start, end]`` are
    skipped.
    """
    start = _as_utc(start)
    end = _as_utc(end)
    totals: dict[str, dict[str, Decimal]] = {}

    def add(bucket: dict[str, Decimal], raw_categories: Iterable[object], value: Decimal) -> None:
        for name in category_names(raw_categories):
            if categories is not None and name not in categories:
                continue
            bucket[name] = bucket.get(name, Decimal(0)) + value

    for tx in transactions:
        if tx.timestamp is None:
            logger.debug("Skipping transaction %s without a valid timestamp", tx.hash)
            continue
        moment = _as_utc(tx.timestamp)
        if moment < start or moment > end:
            continue

        key = interval_start(moment, interval).isoformat()
        bucket = totals.setdefault(key, {})

        if tx.categories:
            add(bucket, tx.categories, _transaction_value(tx, mode))
        for movement in tx.assets_in + tx.assets_out:
            if movement.categories:
                add(bucket, movement.categories, _movement_value(movement, mode))
        fee = tx.native_asset_fees
        if fee is not None and fee.categories:
            add(bucket, fee.categories, to_decimal(fee.value))

    return {
        key: {name: float(v) for name, v in bucket.items()}
        for key, bucket in totals.items()
    }


def interval_table_to_series(
    table: Mapping[str, Mapping[str, float]],
) -> tuple[list[str], dict[str, list[float]]]:
    """Chronological interval keys plus category → per-interval values.

    Categories that are zero in every interval are dropped.
    """
    labels = sorted(table)
    names: dict[str, None] = {}
    for key in labels:
        for name, value in table[key].items():
            if value != 0:
                names.setdefault(name, None)
    series = {
        name: [float(table[key].get(name, 0.0)) for key in labels] for name in names
    }
    return labels, series
