"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
import math


class PortfolioStatus(str, Enum):
    """Publication status of a portfolio"""
    DRAFT = "draft"
    PUBLISHED = "published"


class SortOrder(str, Enum):
    """Explicit orderings accepted by the store search path"""
    NEWEST = "newest"
    OLDEST = "oldest"
    MOST_VIEWED = "most_viewed"
    MOST_LIKED = "most_liked"


class LikeState(str, Enum):
    """Like state of a single (portfolio, user) pair"""
    UNLIKED = "unliked"
    LIKED = "liked"

    @classmethod
    def from_exists(cls, exists: bool) -> "LikeState":
        return cls.LIKED if exists else cls.UNLIKED

    def toggled(self) -> "LikeState":
        """The only transition: flip between liked and unliked"""
        return LikeState.UNLIKED if self is LikeState.LIKED else LikeState.LIKED

    @property
    def is_liked(self) -> bool:
        return self is LikeState.LIKED


@dataclass
class LikeTransition:
    """Outcome of one toggle, with the store's post-operation like counter"""
    previous: LikeState
    current: LikeState
    likes: int


@dataclass
class OwnerSummary:
    """Display fields of a portfolio owner, from the user directory"""
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    university: Optional[str] = None


@dataclass
class Portfolio:
    """Portfolio domain model"""
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    thumbnail: Optional[str] = None
    images: List[str] = field(default_factory=list)
    demo_url: Optional[str] = None
    repository_url: Optional[str] = None
    is_public: bool = True
    status: PortfolioStatus = PortfolioStatus.DRAFT
    views: int = 0
    likes: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner: Optional[OwnerSummary] = None

    @property
    def is_searchable(self) -> bool:
        """Only published, public portfolios belong in the search index"""
        return self.status == PortfolioStatus.PUBLISHED and self.is_public

    def is_owner(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.user_id == user_id

    def is_visible_to(self, viewer_id: Optional[str]) -> bool:
        return self.is_searchable or self.is_owner(viewer_id)


@dataclass
class SearchFilters:
    """Constraints applied identically by the index and the store"""
    status: Optional[PortfolioStatus] = None
    is_public: Optional[bool] = None
    category: Optional[str] = None

    def only_searchable(self) -> bool:
        """True when no filter asks for drafts or private portfolios"""
        return self.status != PortfolioStatus.DRAFT and self.is_public is not False


@dataclass
class Pagination:
    """1-indexed page window"""
    page: int = 1
    limit: int = 12

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class SearchQuery:
    """A resolved search request"""
    text: str = ""
    pagination: Pagination = field(default_factory=Pagination)
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort: SortOrder = SortOrder.NEWEST
    viewer_id: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


@dataclass
class SearchPage:
    """One page of portfolios, independent of the path that produced it"""
    items: List[Portfolio]
    total: int
    page: int
    limit: int
    source: str = "store"

    @property
    def page_count(self) -> int:
        if self.total <= 0:
            return 0
        return math.ceil(self.total / self.limit)
