"""Unit tests for value aggregation and the comparison series builder."""
from __future__ import annotations

import random
from typing import Any

import pytest

from walletlens.aggregation.comparison import build_comparison_series
from walletlens.aggregation.values import (
    KeyMode,
    aggregate_assets,
    asset_value_dictionary,
    chain_value_dictionary,
    combine_value_dictionaries,
    protocol_value_dictionary,
)
from walletlens.models import Asset, Portfolio, ProtocolHolding
from walletlens.parsing import parse_portfolio


class TestAggregateAssets:
    def test_sums_by_symbol(self) -> None:
        assets = [
            Asset(symbol="ETH", value="1.1"),
            Asset(symbol="BTC", value="2"),
            Asset(symbol="ETH", value="2.2"),
        ]
        assert aggregate_assets(assets) == {"BTC": 2.0, "ETH": 3.3}

    def test_by_name(self) -> None:
        assets = [
            Asset(symbol="USDC", name="USD Coin", value="1"),
            Asset(symbol="USDC.e", name="USD Coin", value="2"),
        ]
        assert aggregate_assets(assets, KeyMode.NAME) == {"USD Coin": 3.0}

    def test_malformed_values_count_as_zero(self) -> None:
        assets = [Asset(symbol="X", value="??"), Asset(symbol="X", value="4")]
        assert aggregate_assets(assets) == {"X": 4.0}

    def test_out_of_range_values_count_as_zero(self) -> None:
        assets = [Asset(symbol="A", value="1e1000000"), Asset(symbol="B", value="5")]
        assert aggregate_assets(assets) == {"A": 0.0, "B": 5.0}

    def test_order_independent(self) -> None:
        assets = [Asset(symbol="T", value=v) for v in ("0.1", "0.2", "0.3", "1e16", "-1e16")]
        expected = aggregate_assets(assets)
        shuffled = list(assets)
        random.Random(7).shuffle(shuffled)
        assert aggregate_assets(shuffled) == expected
        assert aggregate_assets(reversed(assets)) == expected


class TestPortfolioDictionaries:
    def test_asset_dictionary(self, raw_portfolio: dict[str, Any]) -> None:
        result = asset_value_dictionary(parse_portfolio(raw_portfolio))
        assert result == {"AAVE": 40.0, "ETH": 1500.0, "GHO": 10.0, "USDC": 100.0}

    def test_asset_dictionary_by_name(self, raw_portfolio: dict[str, Any]) -> None:
        result = asset_value_dictionary(parse_portfolio(raw_portfolio), KeyMode.NAME)
        assert result["Ether"] == 1500.0
        assert result["USD Coin"] == 100.0

    def test_absent_portfolio(self) -> None:
        assert asset_value_dictionary(None) == {}
        assert protocol_value_dictionary(None) == {}
        assert chain_value_dictionary(None) == {}

    def test_protocol_dictionary(self, raw_portfolio: dict[str, Any]) -> None:
        result = protocol_value_dictionary(parse_portfolio(raw_portfolio))
        assert result == {"aave": 1050.0, "wallet": 600.0}

    def test_protocols_sharing_key_are_summed(self) -> None:
        portfolio = Portfolio(
            address="0x",
            protocols={
                "a": ProtocolHolding(key="uni", value="5"),
                "b": ProtocolHolding(key="uni", value="7"),
            },
        )
        assert protocol_value_dictionary(portfolio) == {"uni": 12.0}

    def test_chain_dictionary(self, raw_portfolio: dict[str, Any]) -> None:
        result = chain_value_dictionary(parse_portfolio(raw_portfolio))
        assert result == {"arbitrum": 1050.0, "ethereum": 600.0}

    def test_combine(self) -> None:
        combined = combine_value_dictionaries(
            {"ETH": 1.0, "BTC": 2.0}, {"ETH": 3.0}, {}
        )
        assert combined == {"BTC": 2.0, "ETH": 4.0}


class TestComparisonSeries:
    def test_zero_fills_missing(self) -> None:
        series = build_comparison_series({"ETH": 10}, {"ETH": 12, "BTC": 5})
        assert series == {"ETH": [10.0, 12.0], "BTC": [0.0, 5.0]}

    def test_every_list_has_n_entries(self) -> None:
        dicts = [{"A": 1}, {}, {"B": 2}, {"C": 3, "A": 4}]
        series = build_comparison_series(*dicts)
        assert all(len(values) == 4 for values in series.values())
        assert series["A"] == [1.0, 0.0, 0.0, 4.0]

    def test_first_seen_order(self) -> None:
        series = build_comparison_series({"Z": 1, "A": 1}, {"M": 1})
        assert list(series) == ["Z", "A", "M"]

    def test_single_snapshot(self) -> None:
        assert build_comparison_series({"A": "2.5"}) == {"A": [2.5]}

    def test_no_snapshots_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_comparison_series()
