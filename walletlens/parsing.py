"""Pure parsing of upstream portfolio and transaction payloads (no I/O)."""
from __future__ import annotations

import sys
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from .models import (
    Asset,
    AssetMovement,
    ChainHolding,
    ChainSummary,
    Portfolio,
    Position,
    ProtocolHolding,
    Transaction,
)

# Upstream camelCase slot name → Position field.
_SLOT_FIELDS: dict[str, str] = {
    "assets": "assets",
    "supplyAssets": "supply_assets",
    "borrowAssets": "borrow_assets",
    "rewardAssets": "reward_assets",
    "dexAssets": "dex_assets",
    "quoteAssets": "quote_assets",
    "marginAssets": "margin_assets",
    "baseAssets": "base_assets",
}


# Values beyond this cannot be summed or converted to float safely.
_FLOAT_LIMIT = Decimal(sys.float_info.max)

def to_decimal(value: Any) -> Decimal:
    """Parse a numeric string/number; anything unparsable, non-finite or
    outside the float range is 0.

    Examples:
        "12.50" → Decimal("12.50")
        "N/A"   → Decimal("0")
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not result.is_finite() or abs(result) > _FLOAT_LIMIT:
        return Decimal(0)
    return result


def to_float(value: Any) -> float:
    """Float view of :func:`to_decimal`."""
    return float(to_decimal(value))


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an epoch-seconds timestamp (string or number) to an aware UTC datetime."""
    if raw is None or isinstance(raw, bool) or raw == "":
        return None
    try:
        seconds = float(raw)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _categories(raw: Any) -> tuple[Any, ...]:
    if isinstance(raw, list):
        return tuple(raw)
    return ()


def _mapping(raw: Any) -> dict[str, Any]:
    return raw if isinstance(raw, dict) else {}


def _records(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


def parse_asset(raw: dict[str, Any]) -> Asset:
    return Asset(
        symbol=str(raw.get("symbol", "") or ""),
        name=str(raw.get("name", "") or ""),
        value=str(raw.get("value", "0")),
        balance=str(raw.get("balance", "0")),
        price=str(raw.get("price", "0")),
        chain_key=str(raw.get("chainKey", "") or ""),
        categories=_categories(raw.get("categories")),
    )


def parse_position(raw: dict[str, Any]) -> Position:
    """Parse a protocol position, including nested ``protocolPositions``.

    Nesting is walked with an explicit stack so hostile depth cannot exhaust
    the interpreter's recursion limit.
    """
    # Frames are (raw node, children already pushed); parents build after children.
    built: dict[int, Position] = {}
    stack: list[tuple[dict[str, Any], bool]] = [(raw, False)]
    while stack:
        node, expanded = stack.pop()
        children_raw = _records(node.get("protocolPositions"))
        if not expanded:
            stack.append((node, True))
            for child in reversed(children_raw):
                stack.append((child, False))
            continue

        slots = {
            field_name: tuple(
                parse_asset(a) for a in _records(node.get(key))
            )
            for key, field_name in _SLOT_FIELDS.items()
        }
        built[id(node)] = Position(
            name=str(node.get("name", "") or ""),
            total_value=str(node.get("totalValue", "0")),
            children=tuple(built.pop(id(c)) for c in children_raw),
            **slots,
        )
    return built[id(raw)]


def parse_chain_holding(raw: dict[str, Any]) -> ChainHolding:
    positions = _mapping(raw.get("protocolPositions"))
    return ChainHolding(
        key=str(raw.get("key", "") or ""),
        name=str(raw.get("name", "") or ""),
        value=str(raw.get("value", "0")),
        positions={
            k: parse_position(v) for k, v in positions.items() if isinstance(v, dict)
        },
    )


def parse_protocol_holding(raw: dict[str, Any]) -> ProtocolHolding:
    chains = _mapping(raw.get("chains"))
    return ProtocolHolding(
        key=str(raw.get("key", "") or ""),
        name=str(raw.get("name", "") or ""),
        value=str(raw.get("value", "0")),
        chains={
            k: parse_chain_holding(v) for k, v in chains.items() if isinstance(v, dict)
        },
    )


def parse_portfolio(raw: dict[str, Any]) -> Portfolio:
    protocols = _mapping(raw.get("assetByProtocols"))
    chains = _mapping(raw.get("chains"))
    return Portfolio(
        address=str(raw.get("address", "") or ""),
        networth=str(raw.get("networth", "0")),
        last_updated=str(raw.get("lastUpdated", "") or ""),
        protocols={
            k: parse_protocol_holding(v)
            for k, v in protocols.items()
            if isinstance(v, dict)
        },
        chains={
            k: ChainSummary(
                key=str(v.get("key", k) or k),
                name=str(v.get("name", "") or ""),
                value=str(v.get("value", "0")),
            )
            for k, v in chains.items()
            if isinstance(v, dict)
        },
    )


def parse_movement(raw: dict[str, Any]) -> AssetMovement:
    return AssetMovement(
        symbol=str(raw.get("symbol", "") or ""),
        value=str(raw.get("value", "0")),
        categories=_categories(raw.get("categories")),
    )


def parse_transaction(raw: dict[str, Any]) -> Transaction:
    fees_raw = raw.get("nativeAssetFees")
    return Transaction(
        hash=str(raw.get("hash", "") or ""),
        timestamp=parse_timestamp(raw.get("timestamp")),
        type=str(raw.get("type", "") or ""),
        value=str(raw.get("value", "0")),
        value_fiat=str(raw.get("valueFiat", "0")),
        fees=str(raw.get("fees", "0")),
        fees_fiat=str(raw.get("feesFiat", "0")),
        categories=_categories(raw.get("categories")),
        assets_in=tuple(
            parse_movement(a) for a in _records(raw.get("assetsIn"))
        ),
        assets_out=tuple(
            parse_movement(a) for a in _records(raw.get("assetsOut"))
        ),
        native_asset_fees=parse_movement(fees_raw) if isinstance(fees_raw, dict) else None,
    )
