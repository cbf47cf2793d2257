from .client import PortfolioApiClient, UpstreamError

__all__ = ["PortfolioApiClient", "UpstreamError"]
