"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .models import LikeState, LikeTransition, Portfolio, SearchQuery


class IPortfolioRepository(ABC):
    """Portfolio store interface

    Counter operations must be atomic at the store: implementations may not
    read a counter, modify it in Python and write it back.
    """

    @abstractmethod
    async def create(self, user_id: str, data: Dict[str, Any]) -> Portfolio:
        """Create a new portfolio with zeroed counters"""
        pass

    @abstractmethod
    async def find_by_id(self, portfolio_id: str) -> Optional[Portfolio]:
        """Find portfolio by ID"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: str, searchable_only: bool) -> List[Portfolio]:
        """Find a user's portfolios, newest first"""
        pass

    @abstractmethod
    async def update(self, portfolio_id: str, changes: Dict[str, Any]) -> Optional[Portfolio]:
        """Update content fields (never views/likes)"""
        pass

    @abstractmethod
    async def delete(self, portfolio_id: str) -> bool:
        """Delete portfolio together with its like records"""
        pass

    @abstractmethod
    async def search(self, query: SearchQuery) -> Tuple[List[Portfolio], int]:
        """Substring match over title/description/tags with filters; returns (page, total)"""
        pass

    @abstractmethod
    async def increment_views(self, portfolio_id: str) -> Optional[int]:
        """Atomically add one view; None when the portfolio does not exist"""
        pass

    @abstractmethod
    async def get_like_state(self, portfolio_id: str, user_id: str) -> LikeState:
        """Current like state of the (portfolio, user) pair"""
        pass

    @abstractmethod
    async def toggle_like(self, portfolio_id: str, user_id: str) -> Optional[LikeTransition]:
        """
        Flip the like state and adjust the counter in one transaction

        Returns None when the portfolio does not exist.
        Raises LikeConflictError when a concurrent toggle won the race.
        """
        pass

    @abstractmethod
    async def count_likes(self, portfolio_id: str) -> int:
        """Number of like records for a portfolio"""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check store reachability"""
        pass
