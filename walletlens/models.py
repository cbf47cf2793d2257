"""Data models (all frozen)."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Hashable, TypeVar

T = TypeVar("T")

# Typed asset slots on a position, in declaration order.
ASSET_SLOTS: tuple[str, ...] = (
    "assets",
    "supply_assets",
    "borrow_assets",
    "reward_assets",
    "dex_assets",
    "quote_assets",
    "margin_assets",
    "base_assets",
)


# ---------------------------------------------------------------------------
# Portfolio tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Asset:
    """Leaf value holder inside a position."""

    symbol: str
    name: str = ""
    value: str = "0"
    balance: str = "0"
    price: str = "0"
    chain_key: str = ""
    categories: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Position:
    """Protocol position node; may hold assets and nested positions."""

    name: str
    total_value: str = "0"
    assets: tuple[Asset, ...] = ()
    supply_assets: tuple[Asset, ...] = ()
    borrow_assets: tuple[Asset, ...] = ()
    reward_assets: tuple[Asset, ...] = ()
    dex_assets: tuple[Asset, ...] = ()
    quote_assets: tuple[Asset, ...] = ()
    margin_assets: tuple[Asset, ...] = ()
    base_assets: tuple[Asset, ...] = ()
    children: tuple[Position, ...] = ()


@dataclass(frozen=True)
class ChainHolding:
    key: str
    name: str = ""
    value: str = "0"
    positions: dict[str, Position] = field(default_factory=dict)


@dataclass(frozen=True)
class ProtocolHolding:
    key: str
    name: str = ""
    value: str = "0"
    chains: dict[str, ChainHolding] = field(default_factory=dict)


@dataclass(frozen=True)
class ChainSummary:
    key: str
    name: str = ""
    value: str = "0"


@dataclass(frozen=True)
class Portfolio:
    """One wallet's holdings at one point in time."""

    address: str
    networth: str = "0"
    last_updated: str = ""
    protocols: dict[str, ProtocolHolding] = field(default_factory=dict)
    chains: dict[str, ChainSummary] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetMovement:
    """Asset moving in or out of a wallet as part of a transaction."""

    symbol: str
    value: str = "0"
    categories: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Transaction:
    hash: str
    timestamp: datetime | None
    type: str = ""
    value: str = "0"
    value_fiat: str = "0"
    fees: str = "0"
    fees_fiat: str = "0"
    categories: tuple[Any, ...] = ()
    assets_in: tuple[AssetMovement, ...] = ()
    assets_out: tuple[AssetMovement, ...] = ()
    native_asset_fees: AssetMovement | None = None


# ---------------------------------------------------------------------------
# Presentation datasets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BucketEntry:
    label: str
    value: float
    share: float


@dataclass(frozen=True)
class BucketedDataset:
    """Capped, sorted entries; the ``other`` entry, when present, is last."""

    entries: tuple[BucketEntry, ...] = ()
    total: float = 0.0
    other_label: str = "other"

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def other(self) -> BucketEntry | None:
        if self.entries and self.entries[-1].label == self.other_label:
            return self.entries[-1]
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "entries": [
                {"label": e.label, "value": e.value, "share": e.share}
                for e in self.entries
            ],
            "total": self.total,
        }


@dataclass(frozen=True)
class StackedDataset:
    """Series bucketed for a stacked chart: one value row per stack label.

    ``rows[i][key]`` is the value of ``key`` in stack ``stack_labels[i]``.
    """

    keys: tuple[str, ...] = ()
    stack_labels: tuple[str, ...] = ()
    rows: tuple[dict[str, float], ...] = ()
    total: float = 0.0
    other_label: str = "other"

    @property
    def is_empty(self) -> bool:
        return not self.keys

    def share(self, stack_index: int, key: str) -> float:
        """|value| relative to the magnitude sum of its own stack."""
        row = self.rows[stack_index]
        magnitude = sum(abs(v) for v in row.values())
        if magnitude == 0:
            return 0.0
        return abs(row.get(key, 0.0)) / magnitude

    def as_dict(self) -> dict[str, Any]:
        return {
            "keys": list(self.keys),
            "stacks": [
                {"label": label, "values": dict(row)}
                for label, row in zip(self.stack_labels, self.rows)
            ],
            "total": self.total,
        }


# ---------------------------------------------------------------------------
# Fan-out outcome
# ---------------------------------------------------------------------------


class Disposition(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class FetchError:
    """Why one request key failed."""

    key: Hashable
    reason: str


@dataclass(frozen=True)
class FanOutResult(Generic[T]):
    """Combined per-key results plus the failed keys."""

    data: dict[Any, T] = field(default_factory=dict)
    errors: tuple[FetchError, ...] = ()
    total: int = 0

    @property
    def loaded(self) -> int:
        return len(self.data)

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return round(self.loaded / self.total * 100)

    @property
    def disposition(self) -> Disposition:
        if not self.errors:
            return Disposition.SUCCESS
        if self.data:
            return Disposition.PARTIAL
        return Disposition.FAILURE

    @property
    def failed_keys(self) -> tuple[Any, ...]:
        return tuple(e.key for e in self.errors)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    stored_at: float
    ttl: float
    source_key: str

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl


# ---------------------------------------------------------------------------
# Query views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueryView(Generic[T]):
    """An aggregated dataset plus which request keys failed to load."""

    dataset: T
    disposition: Disposition = Disposition.SUCCESS
    errors: tuple[FetchError, ...] = ()

    @property
    def ok(self) -> bool:
        return self.disposition is not Disposition.FAILURE
