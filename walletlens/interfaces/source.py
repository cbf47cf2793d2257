"""Upstream source protocol."""
from datetime import date, datetime
from typing import Any, Protocol


class PortfolioSource(Protocol):
    """Abstract interface for the upstream portfolio/transaction API."""

    async def fetch_portfolio(self, address: str) -> dict[str, Any]: ...

    async def fetch_historical(self, address: str, day: date) -> dict[str, Any]: ...

    async def fetch_transactions(
        self,
        address: str,
        start: datetime,
        end: datetime,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...
