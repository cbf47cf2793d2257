"""Category label resolution and revenue/cost grouping."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..config import CategoryConfig
from ..models import Transaction
from ..parsing import to_decimal

logger = logging.getLogger(__name__)

CATEGORY_TYPES = ("revenue", "cost", "none")


def extract_category_name(category: Any) -> str | None:
    """Resolve a plain label or a ``{"label": ...}`` record to a category key.

    Examples:
        " swap "             → "swap"
        {"label": "income"}  → "income"
        {"id": 3}            → None
    """
    if isinstance(category, str):
        name = category.strip()
        return name or None
    if isinstance(category, Mapping):
        label = category.get("label")
        if isinstance(label, str) and label.strip():
            return label.strip()
    logger.debug("Dropping category without a label: %r", category)
    return None


def category_names(categories: Iterable[Any]) -> list[str]:
    """Resolved names in order, skipping unlabelled entries."""
    names: list[str] = []
    for category in categories:
        name = extract_category_name(category)
        if name is not None:
            names.append(name)
    return names


def extract_all_categories(transaction: Transaction) -> list[str]:
    """Unique labels from the transaction, its movements and its fee movement."""
    sources: list[Iterable[Any]] = [transaction.categories]
    sources.extend(a.categories for a in transaction.assets_in)
    sources.extend(a.categories for a in transaction.assets_out)
    if transaction.native_asset_fees is not None:
        sources.append(transaction.native_asset_fees.categories)

    seen: dict[str, None] = {}
    for source in sources:
        for name in category_names(source):
            seen.setdefault(name, None)
    return list(seen)


def aggregate_by_category(
    transactions: Iterable[Transaction],
    value_field: str = "value_fiat",
    selected: frozenset[str] | set[str] | None = None,
) -> dict[str, float]:
    """Category → summed transaction-level value.

    ``selected=None`` keeps every category; an empty set keeps none.
    """
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        value = to_decimal(getattr(tx, value_field, "0"))
        for name in category_names(tx.categories):
            if selected is not None and name not in selected:
                continue
            totals[name] = totals.get(name, Decimal(0)) + value
    return {k: float(v) for k, v in totals.items()}


def get_category_type(category: str, config: Mapping[str, CategoryConfig]) -> str:
    cfg = config.get(category)
    if cfg is None:
        return "none"
    kind = cfg.category_type.lower()
    return kind if kind in CATEGORY_TYPES else "none"


def get_display_name(category: str, config: Mapping[str, CategoryConfig]) -> str:
    cfg = config.get(category)
    return cfg.display_name if cfg and cfg.display_name else category


def group_categories_by_type(
    totals: Mapping[str, float], config: Mapping[str, CategoryConfig]
) -> dict[str, dict[str, float]]:
    """Split category totals into ``revenue``, ``cost`` and ``none`` groups."""
    groups: dict[str, dict[str, float]] = {kind: {} for kind in CATEGORY_TYPES}
    for category, value in totals.items():
        groups[get_category_type(category, config)][category] = value
    return groups


def category_statistics(
    totals: Mapping[str, float], config: Mapping[str, CategoryConfig]
) -> dict[str, float | int]:
    groups = group_categories_by_type(totals, config)
    stats: dict[str, float | int] = {}
    for kind in CATEGORY_TYPES:
        stats[f"total_{kind}"] = sum(groups[kind].values())
        stats[f"{kind}_count"] = len(groups[kind])
    stats["total_value"] = sum(stats[f"total_{kind}"] for kind in CATEGORY_TYPES)
    return stats
