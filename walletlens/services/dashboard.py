"""Dashboard queries — cache → fan-out → parse → aggregate."""
from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Hashable, Iterable, Sequence

from ..aggregation import (
    Interval,
    KeyMode,
    ValueMode,
    aggregate_by_interval_and_category,
    asset_value_dictionary,
    bucket_series,
    bucket_series_by_sign,
    bucket_values,
    build_comparison_series,
    chain_value_dictionary,
    combine_value_dictionaries,
    find_total_divergences,
    interval_table_to_series,
    protocol_value_dictionary,
)
from ..cache import FileCacheBackend, TTLCache, make_cache_key
from ..config import AppConfig
from ..interfaces.source import PortfolioSource
from ..models import (
    BucketedDataset,
    Disposition,
    FanOutResult,
    FetchError,
    Portfolio,
    QueryView,
    StackedDataset,
    Transaction,
)
from ..parsing import parse_portfolio, parse_transaction
from ..upstream import PortfolioApiClient
from .fanout import fan_out

logger = logging.getLogger(__name__)

BREAKDOWNS: dict[str, Callable[[Portfolio], dict[str, float]]] = {
    "asset": lambda p: asset_value_dictionary(p, KeyMode.SYMBOL),
    "asset_name": lambda p: asset_value_dictionary(p, KeyMode.NAME),
    "protocol": protocol_value_dictionary,
    "chain": chain_value_dictionary,
}


def _addresses(addresses: Iterable[str]) -> list[str]:
    cleaned = [a.strip() for a in addresses if a and a.strip()]
    if not cleaned:
        raise ValueError("At least one address is required")
    return cleaned


def _breakdown(by: str) -> Callable[[Portfolio], dict[str, float]]:
    try:
        return BREAKDOWNS[by]
    except KeyError:
        raise ValueError(
            f"Unknown breakdown '{by}' (expected one of {', '.join(BREAKDOWNS)})"
        ) from None


# ---------------------------------------------------------------------------
# Cache payload encoding
# ---------------------------------------------------------------------------


def _encode_key(key: Hashable) -> Any:
    return list(key) if isinstance(key, tuple) else key


def _decode_key(raw: Any) -> Hashable:
    return tuple(raw) if isinstance(raw, list) else raw


def _encode_result(result: FanOutResult[Any]) -> dict[str, Any]:
    return {
        "data": [[_encode_key(k), v] for k, v in result.data.items()],
        "errors": [{"key": _encode_key(e.key), "reason": e.reason} for e in result.errors],
        "total": result.total,
    }


def _decode_result(payload: dict[str, Any]) -> FanOutResult[Any]:
    return FanOutResult(
        data={_decode_key(k): v for k, v in payload["data"]},
        errors=tuple(
            FetchError(key=_decode_key(e["key"]), reason=str(e["reason"]))
            for e in payload["errors"]
        ),
        total=int(payload["total"]),
    )


class DashboardService:
    """Runs portfolio and transaction queries for one or more addresses."""

    def __init__(
        self,
        config: AppConfig,
        source: PortfolioSource | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self._config = config
        self._bucketing = config.bucketing
        self._source: PortfolioSource = source or PortfolioApiClient(config.api)
        self._cache = cache or TTLCache(FileCacheBackend(Path(config.cache.directory)))
        self._fetch_timeout = config.api.request_timeout

    # ------------------------------------------------------------------
    # Cached fan-out
    # ------------------------------------------------------------------

    async def _cached_fan_out(
        self,
        cache_key: str,
        keys: Sequence[Hashable],
        fetch: Callable[[Any], Awaitable[Any]],
        ttl: float,
        force_refresh: bool = False,
        timeout: float | None = None,
    ) -> FanOutResult[Any]:
        if not force_refresh:
            cached = self._cache.get(cache_key)
            if cached is not None:
                try:
                    result = _decode_result(cached)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Ignoring malformed cached result: %s", e)
                else:
                    logger.info("Serving %s from cache", cache_key)
                    return result
        else:
            logger.info("Skipping cache lookup (forced refresh)")

        result = await fan_out(keys, fetch, timeout=timeout)
        if result.disposition is Disposition.FAILURE:
            logger.error(
                "All %d upstream requests failed for %s", result.total, cache_key
            )
        else:
            self._cache.set(cache_key, _encode_result(result), ttl)
        return result

    @staticmethod
    def _parsed(
        raw: FanOutResult[Any], parse: Callable[[Any], Any]
    ) -> FanOutResult[Any]:
        return FanOutResult(
            data={k: parse(v) for k, v in raw.data.items()},
            errors=raw.errors,
            total=raw.total,
        )

    # ------------------------------------------------------------------
    # Raw queries
    # ------------------------------------------------------------------

    async def fetch_portfolios(
        self, addresses: Iterable[str], force_refresh: bool = False
    ) -> FanOutResult[Portfolio]:
        """Current portfolio per address."""
        addrs = _addresses(addresses)
        raw = await self._cached_fan_out(
            make_cache_key("portfolio", addresses=addrs),
            addrs,
            self._source.fetch_portfolio,
            self._config.cache.portfolio_ttl,
            force_refresh=force_refresh,
            timeout=self._fetch_timeout,
        )
        return self._parsed(raw, parse_portfolio)

    async def fetch_historical(
        self, addresses: Iterable[str], day: date
    ) -> FanOutResult[Portfolio]:
        """Portfolio per address on one date."""
        addrs = _addresses(addresses)

        async def fetch(address: str) -> dict[str, Any]:
            return await self._source.fetch_historical(address, day)

        raw = await self._cached_fan_out(
            make_cache_key("historical", addresses=addrs, date=day.isoformat()),
            addrs,
            fetch,
            self._config.cache.historical_ttl,
            timeout=self._fetch_timeout,
        )
        return self._parsed(raw, parse_portfolio)

    async def fetch_historical_range(
        self, addresses: Iterable[str], days: Iterable[date]
    ) -> FanOutResult[Portfolio]:
        """Portfolio per ``(address, date)`` pair, keyed by that pair."""
        addrs = _addresses(addresses)
        day_list = sorted(set(days))
        if not day_list:
            raise ValueError("At least one date is required")

        keys = [(address, day.isoformat()) for day in day_list for address in addrs]

        async def fetch(key: tuple[str, str]) -> dict[str, Any]:
            address, day = key
            return await self._source.fetch_historical(address, date.fromisoformat(day))

        raw = await self._cached_fan_out(
            make_cache_key(
                "historical_range",
                addresses=addrs,
                dates=[d.isoformat() for d in day_list],
            ),
            keys,
            fetch,
            self._config.cache.historical_ttl,
            timeout=self._fetch_timeout,
        )
        return self._parsed(raw, parse_portfolio)

    async def fetch_transactions(
        self,
        addresses: Iterable[str],
        start: datetime,
        end: datetime,
        filters: dict[str, Any] | None = None,
    ) -> FanOutResult[list[Transaction]]:
        """All transactions in ``[start, end]`` per address.

        Each page request carries the client timeout, so the fan-out itself
        applies none.
        """
        addrs = _addresses(addresses)
        if start > end:
            raise ValueError("start must not be after end")

        async def fetch(address: str) -> list[dict[str, Any]]:
            return await self._source.fetch_transactions(address, start, end, filters)

        raw = await self._cached_fan_out(
            make_cache_key(
                "transactions",
                addresses=addrs,
                start=start.isoformat(),
                end=end.isoformat(),
                filters=filters or None,
            ),
            addrs,
            fetch,
            self._config.cache.transactions_ttl,
        )
        return self._parsed(
            raw,
            lambda txs: [
                parse_transaction(t) for t in (txs or []) if isinstance(t, dict)
            ],
        )

    # ------------------------------------------------------------------
    # Aggregated views
    # ------------------------------------------------------------------

    def _check_totals(self, portfolios: Iterable[Portfolio]) -> None:
        for portfolio in portfolios:
            find_total_divergences(portfolio)

    async def portfolio_breakdown(
        self,
        addresses: Iterable[str],
        by: str = "asset",
        force_refresh: bool = False,
    ) -> QueryView[BucketedDataset]:
        """Current holdings across addresses, bucketed by asset/protocol/chain."""
        to_dictionary = _breakdown(by)
        result = await self.fetch_portfolios(addresses, force_refresh=force_refresh)
        self._check_totals(result.data.values())

        combined = combine_value_dictionaries(
            *(to_dictionary(p) for p in result.data.values())
        )
        b = self._bucketing
        dataset = bucket_values(
            combined,
            inclusion_threshold=b.inclusion_threshold,
            display_threshold=b.display_threshold,
            max_visible=b.max_visible,
            other_label=b.other_label,
        )
        return QueryView(dataset=dataset, disposition=result.disposition, errors=result.errors)

    async def portfolio_comparison(
        self,
        addresses: Iterable[str],
        days: Iterable[date],
        by: str = "asset",
    ) -> QueryView[StackedDataset]:
        """Holdings per date (earliest first), one stack per date."""
        to_dictionary = _breakdown(by)
        addrs = _addresses(addresses)
        day_list = sorted(set(days))
        result = await self.fetch_historical_range(addrs, day_list)
        self._check_totals(result.data.values())

        dictionaries = []
        for day in day_list:
            snapshots = [
                result.data[(address, day.isoformat())]
                for address in addrs
                if (address, day.isoformat()) in result.data
            ]
            dictionaries.append(
                combine_value_dictionaries(*(to_dictionary(p) for p in snapshots))
            )

        series = build_comparison_series(*dictionaries)
        b = self._bucketing
        dataset = bucket_series(
            series,
            [d.isoformat() for d in day_list],
            inclusion_threshold=b.inclusion_threshold,
            display_threshold=b.display_threshold,
            max_visible=b.max_visible,
            other_label=b.other_label,
        )
        return QueryView(dataset=dataset, disposition=result.disposition, errors=result.errors)

    async def interval_category_table(
        self,
        addresses: Iterable[str],
        start: datetime,
        end: datetime,
        interval: Interval = Interval.DAY,
        categories: frozenset[str] | set[str] | None = None,
        mode: ValueMode = ValueMode.GROSS,
        filters: dict[str, Any] | None = None,
    ) -> QueryView[dict[str, dict[str, float]]]:
        """Interval start → category → total over every loaded address."""
        result = await self.fetch_transactions(addresses, start, end, filters)
        transactions = [tx for txs in result.data.values() for tx in txs]
        table = aggregate_by_interval_and_category(
            transactions, start, end, interval, categories, mode
        )
        return QueryView(dataset=table, disposition=result.disposition, errors=result.errors)

    async def transactions_by_category(
        self,
        addresses: Iterable[str],
        start: datetime,
        end: datetime,
        interval: Interval = Interval.DAY,
        categories: frozenset[str] | set[str] | None = None,
        mode: ValueMode = ValueMode.GROSS,
        filters: dict[str, Any] | None = None,
    ) -> QueryView[StackedDataset]:
        """Signed category totals per interval, bucketed for a diverging stack."""
        view = await self.interval_category_table(
            addresses, start, end, interval, categories, mode, filters
        )
        labels, series = interval_table_to_series(view.dataset)
        b = self._bucketing
        dataset = bucket_series_by_sign(
            series,
            labels,
            inclusion_threshold=b.inclusion_threshold,
            display_threshold=b.display_threshold,
            max_visible=b.max_visible,
            other_label=b.other_label,
        )
        return QueryView(dataset=dataset, disposition=view.disposition, errors=view.errors)

    def sweep_cache(self) -> int:
        """Drop expired cache entries without waiting for a read."""
        return self._cache.sweep()
