"""Pure aggregation stages: walker → values → comparison → bucketing, and intervals."""
from .bucketing import bucket_series, bucket_series_by_sign, bucket_values
from .comparison import build_comparison_series
from .intervals import (
    Interval,
    ValueMode,
    aggregate_by_interval_and_category,
    interval_table_to_series,
)
from .positions import find_total_divergences, flatten_portfolio, walk_position
from .values import (
    KeyMode,
    aggregate_assets,
    asset_value_dictionary,
    chain_value_dictionary,
    combine_value_dictionaries,
    protocol_value_dictionary,
)

__all__ = [
    "Interval",
    "KeyMode",
    "ValueMode",
    "aggregate_assets",
    "aggregate_by_interval_and_category",
    "asset_value_dictionary",
    "bucket_series",
    "bucket_series_by_sign",
    "bucket_values",
    "build_comparison_series",
    "chain_value_dictionary",
    "combine_value_dictionaries",
    "find_total_divergences",
    "flatten_portfolio",
    "interval_table_to_series",
    "protocol_value_dictionary",
    "walk_position",
]
