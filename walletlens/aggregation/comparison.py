"""Align several value dictionaries by snapshot index."""
from __future__ import annotations

from typing import Mapping

from ..parsing import to_float


def build_comparison_series(*dictionaries: Mapping[str, object]) -> dict[str, list[float]]:
    """Merge N dictionaries into key → [value at snapshot 0, ..., snapshot N-1].

    Keys keep first-seen order. A key absent from a snapshot gets an explicit
    zero in that slot, so every list has exactly N entries.

    Example:
        ({"ETH": 10}, {"ETH": 12, "BTC": 5}) → {"ETH": [10, 12], "BTC": [0, 5]}
    """
    if not dictionaries:
        raise ValueError("At least one value dictionary is required")

    size = len(dictionaries)
    series: dict[str, list[float]] = {}
    for index, dictionary in enumerate(dictionaries):
        for key, value in dictionary.items():
            if key not in series:
                series[key] = [0.0] * size
            series[key][index] += to_float(value)
    return series
