"""Nested position walker — flattens portfolio trees into leaf assets."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterator

from ..models import ASSET_SLOTS, Asset, Portfolio, Position
from ..parsing import to_decimal

logger = logging.getLogger(__name__)


def walk_position(position: Position) -> list[Asset]:
    """Return every leaf asset under ``position``.

    Order is depth-first: a node's slots in declaration order, then each
    child subtree in child order. Uses an explicit stack, so depth is not
    bounded by the recursion limit.
    """
    assets: list[Asset] = []
    stack: list[Position] = [position]
    while stack:
        node = stack.pop()
        for slot in ASSET_SLOTS:
            assets.extend(getattr(node, slot))
        stack.extend(reversed(node.children))
    return assets


def iter_positions(portfolio: Portfolio) -> Iterator[tuple[str, str, Position]]:
    """Yield ``(protocol_key, chain_key, position)`` for every top-level position."""
    for protocol_key, protocol in portfolio.protocols.items():
        for chain_key, chain in protocol.chains.items():
            for position in chain.positions.values():
                yield protocol_key, chain_key, position


def flatten_portfolio(portfolio: Portfolio) -> list[Asset]:
    """All leaf assets across protocols → chains → positions."""
    assets: list[Asset] = []
    for _, _, position in iter_positions(portfolio):
        assets.extend(walk_position(position))
    return assets


def derived_total(position: Position) -> Decimal:
    """Sum of leaf asset values under ``position``."""
    return sum((to_decimal(a.value) for a in walk_position(position)), Decimal(0))


def find_total_divergences(
    portfolio: Portfolio, tolerance: float = 0.01
) -> list[tuple[str, str, str, Decimal, Decimal]]:
    """Report positions whose reported ``totalValue`` disagrees with their leaves.

    Reported totals are never used for aggregation; this is a diagnostic.
    ``tolerance`` is relative to the larger of the two magnitudes.

    Returns:
        ``(protocol_key, chain_key, position_name, reported, derived)`` tuples.
    """
    divergent: list[tuple[str, str, str, Decimal, Decimal]] = []
    tol = Decimal(str(tolerance))
    for protocol_key, chain_key, position in iter_positions(portfolio):
        reported = to_decimal(position.total_value)
        derived = derived_total(position)
        scale = max(abs(reported), abs(derived))
        if scale == 0:
            continue
        if abs(reported - derived) / scale > tol:
            logger.warning(
                "Position %s/%s/%s reports %s but leaf assets sum to %s",
                protocol_key, chain_key, position.name, reported, derived,
            )
            divergent.append((protocol_key, chain_key, position.name, reported, derived))
    return divergent
