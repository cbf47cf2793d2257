"""Portfolio/transaction API client."""
from __future__ import annotations

import logging
import ssl
from datetime import date, datetime, timezone
from typing import Any

import aiohttp
import certifi

from ..config import ApiConfig

logger = logging.getLogger(__name__)

# Transaction filter name → upstream query parameter.
_TRANSACTION_FILTERS: dict[str, str] = {
    "search_text": "searchText",
    "interacting_addresses": "interactingAddresses",
    "networks": "networks",
    "tx_types": "txTypes",
    "protocols": "protocols",
    "hide_spam": "hideSpam",
    "sort": "sort",
}


class UpstreamError(RuntimeError):
    """Upstream API answered with a non-success status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(v) for v in value)
    return str(value)


class PortfolioApiClient:
    """One call per address (and date / date range) against the upstream API."""

    def __init__(self, config: ApiConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.request_timeout
        self.page_size = config.page_size
        self._headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    async def _get(self, path: str, params: dict[str, str]) -> Any:
        """GET ``path`` and decode JSON; raise :class:`UpstreamError` on failure."""
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                f"{self.base_url}/{path}",
                params=params,
                headers=self._headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    try:
                        body = await response.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        body = {}
                    if not isinstance(body, dict):
                        body = {}
                    raise UpstreamError(
                        body.get("message")
                        or body.get("error")
                        or f"Upstream API returned status {response.status}",
                        status=response.status,
                    )
                return await response.json()

    @staticmethod
    def _first(payload: Any, address: str) -> dict[str, Any]:
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            return payload[0]
        raise UpstreamError(f"Empty portfolio response for {address}")

    async def fetch_portfolio(self, address: str) -> dict[str, Any]:
        """Current portfolio snapshot for one address."""
        payload = await self._get("portfolio", {"addresses": address})
        return self._first(payload, address)

    async def fetch_historical(self, address: str, day: date) -> dict[str, Any]:
        """Portfolio snapshot for one address on ``day``."""
        payload = await self._get(
            "historical", {"addresses": address, "date": day.isoformat()}
        )
        return self._first(payload, address)

    async def fetch_transactions(
        self,
        address: str,
        start: datetime,
        end: datetime,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """All transactions in ``[start, end]``, paging until a short page."""
        base: dict[str, str] = {
            "addresses": address,
            "limit": str(self.page_size),
            "startDate": _iso(start),
            "endDate": _iso(end),
        }
        for name, value in (filters or {}).items():
            param = _TRANSACTION_FILTERS.get(name)
            if param is None:
                logger.warning("Ignoring unknown transaction filter '%s'", name)
                continue
            if value is None or value == [] or value == ():
                continue
            base[param] = _query_value(value)

        transactions: list[dict[str, Any]] = []
        page = 0
        while True:
            params = dict(base, offset=str(page * self.page_size))
            payload = await self._get("transactions", params)
            batch = payload.get("transactions", []) if isinstance(payload, dict) else []
            transactions.extend(batch)
            logger.debug(
                "Fetched %d transactions for %s (page %d)", len(batch), address, page
            )
            if len(batch) < self.page_size:
                break
            page += 1
        return transactions
