"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from walletlens.cache import MemoryCacheBackend, TTLCache
from walletlens.config import (
    ApiConfig,
    AppConfig,
    BucketingConfig,
    CacheConfig,
    CategoryConfig,
)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_api_config() -> ApiConfig:
    return ApiConfig(
        base_url="https://api.example.com/v1",
        api_key="test-key",
        request_timeout=5.0,
        page_size=2,
    )


@pytest.fixture()
def sample_app_config(sample_api_config: ApiConfig, tmp_path: Path) -> AppConfig:
    return AppConfig(
        api=sample_api_config,
        cache=CacheConfig(directory=str(tmp_path / "cache")),
        bucketing=BucketingConfig(
            inclusion_threshold=0.05,
            display_threshold=0.00005,
            max_visible=5,
            other_label="other",
        ),
        categories={
            "income": CategoryConfig(display_name="Income", category_type="revenue"),
            "swap": CategoryConfig(display_name="Swap", category_type="cost"),
        },
    )


class FakeClock:
    """Settable clock for TTL tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_cache(clock: FakeClock) -> TTLCache:
    return TTLCache(MemoryCacheBackend(), default_ttl=60.0, clock=clock)


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    api:
      base_url: "https://api.example.com/v1/"
      api_key: "secret"
      request_timeout: 10
      page_size: 100
    cache:
      directory: /tmp/walletlens-cache
      portfolio_ttl_seconds: 600
      historical_ttl_seconds: 7200
      transactions_ttl_seconds: 3600
    bucketing:
      inclusion_threshold: 0.01
      display_threshold: 0.001
      max_visible: 4
      other_label: rest
    categories:
      swap:
        display_name: Swap
        category_type: COST
      airdrop: {}
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample upstream payloads
# ---------------------------------------------------------------------------


def make_asset(symbol: str, value: str, name: str = "") -> dict[str, Any]:
    return {"symbol": symbol, "name": name or symbol.lower(), "value": value}


@pytest.fixture()
def raw_portfolio() -> dict[str, Any]:
    """Two protocols, nested positions, ETH held in three places."""
    return {
        "address": "0xAAA",
        "networth": "1650",
        "lastUpdated": "1735689600000",
        "assetByProtocols": {
            "wallet": {
                "key": "wallet",
                "name": "Wallet",
                "value": "600",
                "chains": {
                    "ethereum": {
                        "key": "ethereum",
                        "name": "Ethereum",
                        "value": "600",
                        "protocolPositions": {
                            "WALLET": {
                                "name": "wallet",
                                "totalValue": "600",
                                "assets": [
                                    make_asset("ETH", "500", "Ether"),
                                    make_asset("USDC", "100", "USD Coin"),
                                ],
                            }
                        },
                    }
                },
            },
            "aave": {
                "key": "aave",
                "name": "Aave",
                "value": "1050",
                "chains": {
                    "arbitrum": {
                        "key": "arbitrum",
                        "name": "Arbitrum",
                        "value": "1050",
                        "protocolPositions": {
                            "LENDING": {
                                "name": "lending",
                                "totalValue": "999",
                                "supplyAssets": [make_asset("ETH", "1000", "Ether")],
                                "borrowAssets": [],
                                "protocolPositions": [
                                    {
                                        "name": "rewards",
                                        "totalValue": "50",
                                        "rewardAssets": [make_asset("AAVE", "40")],
                                        "protocolPositions": [
                                            {
                                                "name": "boost",
                                                "totalValue": "10",
                                                "baseAssets": [
                                                    make_asset("ETH", "not-a-number"),
                                                    make_asset("GHO", "10"),
                                                ],
                                            }
                                        ],
                                    }
                                ],
                            }
                        },
                    }
                },
            },
        },
        "chains": {
            "ethereum": {"key": "ethereum", "name": "Ethereum", "value": "600"},
            "arbitrum": {"key": "arbitrum", "name": "Arbitrum", "value": "1050"},
        },
    }


@pytest.fixture()
def raw_transactions() -> list[dict[str, Any]]:
    """2025-01-06 is a Monday; 2025-01-08 a Wednesday."""
    monday = int(datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc).timestamp())
    wednesday = int(datetime(2025, 1, 8, 9, 30, tzinfo=timezone.utc).timestamp())
    return [
        {
            "hash": "0x1",
            "timestamp": str(monday),
            "type": "SWAP",
            "valueFiat": "100",
            "feesFiat": "2",
            "categories": ["swap"],
            "assetsIn": [{"symbol": "ETH", "value": "150"}],
            "assetsOut": [{"symbol": "USDC", "value": "100"}],
            "nativeAssetFees": {"symbol": "ETH", "value": "2", "categories": ["gas"]},
        },
        {
            "hash": "0x2",
            "timestamp": str(wednesday),
            "type": "RECEIVE",
            "valueFiat": "30",
            "feesFiat": "0",
            "categories": [],
            "assetsIn": [
                {"symbol": "OP", "value": "30", "categories": [{"label": "income"}]}
            ],
            "assetsOut": [],
        },
        {
            "hash": "0x3",
            "timestamp": "garbage",
            "categories": ["swap"],
            "assetsIn": [{"symbol": "ETH", "value": "999"}],
        },
    ]
