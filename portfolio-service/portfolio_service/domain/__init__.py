from .models import (
    LikeState,
    LikeTransition,
    OwnerSummary,
    Pagination,
    Portfolio,
    PortfolioStatus,
    SearchFilters,
    SearchPage,
    SearchQuery,
    SortOrder,
)
from .repositories import IPortfolioRepository


__all__ = [
    # models.py
    "LikeState",
    "LikeTransition",
    "OwnerSummary",
    "Pagination",
    "Portfolio",
    "PortfolioStatus",
    "SearchFilters",
    "SearchPage",
    "SearchQuery",
    "SortOrder",
    # repositories.py
    "IPortfolioRepository",
]
