"""Portfolio and transaction aggregation for wallet dashboards."""

__version__ = "0.1.0"
