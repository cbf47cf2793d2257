"""Value aggregation — reduce assets/protocols to key → value dictionaries."""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping

from ..models import Asset, Portfolio
from ..parsing import to_decimal
from .positions import flatten_portfolio


class KeyMode(str, Enum):
    SYMBOL = "symbol"
    NAME = "name"


def _finish(totals: dict[str, Decimal]) -> dict[str, float]:
    # Decimal sums are exact, so the result does not depend on input order.
    return {key: float(total) for key, total in sorted(totals.items())}


def aggregate_assets(
    assets: Iterable[Asset], key_mode: KeyMode = KeyMode.SYMBOL
) -> dict[str, float]:
    """Sum asset values by symbol (or name); malformed values count as zero."""
    totals: dict[str, Decimal] = {}
    for asset in assets:
        key = asset.name if key_mode is KeyMode.NAME else asset.symbol
        totals[key] = totals.get(key, Decimal(0)) + to_decimal(asset.value)
    return _finish(totals)


def asset_value_dictionary(
    portfolio: Portfolio | None, key_mode: KeyMode = KeyMode.SYMBOL
) -> dict[str, float]:
    if portfolio is None:
        return {}
    return aggregate_assets(flatten_portfolio(portfolio), key_mode)


def protocol_value_dictionary(portfolio: Portfolio | None) -> dict[str, float]:
    """Protocol key → value, summing protocols that share a key."""
    if portfolio is None:
        return {}
    totals: dict[str, Decimal] = {}
    for holding in portfolio.protocols.values():
        totals[holding.key] = totals.get(holding.key, Decimal(0)) + to_decimal(
            holding.value
        )
    return _finish(totals)


def chain_value_dictionary(portfolio: Portfolio | None) -> dict[str, float]:
    """Chain key → net worth on that chain."""
    if portfolio is None:
        return {}
    totals: dict[str, Decimal] = {}
    for chain in portfolio.chains.values():
        totals[chain.key] = totals.get(chain.key, Decimal(0)) + to_decimal(chain.value)
    return _finish(totals)


def combine_value_dictionaries(*dictionaries: Mapping[str, float]) -> dict[str, float]:
    """Sum several dictionaries key-wise (e.g. one per address)."""
    totals: dict[str, Decimal] = {}
    for dictionary in dictionaries:
        for key, value in dictionary.items():
            totals[key] = totals.get(key, Decimal(0)) + to_decimal(value)
    return _finish(totals)
