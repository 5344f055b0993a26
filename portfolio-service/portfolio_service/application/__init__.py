from .discovery import DiscoveryResolver, build_query
from .engagement import EngagementCoordinator
from .portfolios import PortfolioService
from .providers import FallbackProvider, IndexProvider, ResultProvider, StoreProvider


__all__ = [
    # discovery.py
    "DiscoveryResolver",
    "build_query",
    # engagement.py
    "EngagementCoordinator",
    # portfolios.py
    "PortfolioService",
    # providers.py
    "FallbackProvider",
    "IndexProvider",
    "ResultProvider",
    "StoreProvider",
]
