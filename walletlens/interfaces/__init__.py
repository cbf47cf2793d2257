"""Protocol interfaces for the aggregation pipeline."""
from .cache_backend import CacheBackend
from .source import PortfolioSource

__all__ = ["CacheBackend", "PortfolioSource"]
