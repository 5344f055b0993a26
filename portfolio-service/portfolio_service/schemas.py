"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from .domain.models import OwnerSummary, Portfolio, PortfolioStatus, SearchPage


class User(BaseModel):
    """Authenticated caller, as read from the access token"""

    id: str
    email: Optional[str] = None
    username: Optional[str] = None


# Request Schemas
class PortfolioBase(BaseModel):
    """Shared content fields"""

    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = Field(default_factory=list, max_length=20)
    thumbnail: Optional[str] = None
    images: List[str] = Field(default_factory=list, max_length=20)
    demo_url: Optional[str] = None
    repository_url: Optional[str] = None
    is_public: bool = True
    status: PortfolioStatus = PortfolioStatus.DRAFT

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return [tag.strip() for tag in v if tag and tag.strip()]


class PortfolioCreate(PortfolioBase):
    """Request to create a portfolio"""

    title: str = Field(..., min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip()


class PortfolioUpdate(BaseModel):
    """Partial update; only fields present in the body are changed"""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = Field(None, max_length=20)
    thumbnail: Optional[str] = None
    images: Optional[List[str]] = Field(None, max_length=20)
    demo_url: Optional[str] = None
    repository_url: Optional[str] = None
    is_public: Optional[bool] = None
    status: Optional[PortfolioStatus] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip() if v else v


# Response Schemas
class MessageResponse(BaseModel):
    """Generic message response"""

    message: str


class OwnerResponse(BaseModel):
    """Owner display fields"""

    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    university: Optional[str] = None

    @classmethod
    def from_domain(cls, owner: Optional[OwnerSummary]) -> Optional["OwnerResponse"]:
        if owner is None:
            return None
        return cls(
            id=owner.id,
            username=owner.username,
            first_name=owner.first_name,
            last_name=owner.last_name,
            avatar=owner.avatar,
            university=owner.university,
        )


class PortfolioResponse(BaseModel):
    """Portfolio as returned by every read path"""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    thumbnail: Optional[str] = None
    images: List[str] = []
    demo_url: Optional[str] = None
    repository_url: Optional[str] = None
    is_public: bool
    status: PortfolioStatus
    views: int
    likes: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[OwnerResponse] = None

    @classmethod
    def from_domain(cls, portfolio: Portfolio) -> "PortfolioResponse":
        return cls(
            id=portfolio.id,
            user_id=portfolio.user_id,
            title=portfolio.title,
            description=portfolio.description,
            category=portfolio.category,
            tags=list(portfolio.tags),
            thumbnail=portfolio.thumbnail,
            images=list(portfolio.images),
            demo_url=portfolio.demo_url,
            repository_url=portfolio.repository_url,
            is_public=portfolio.is_public,
            status=portfolio.status,
            views=portfolio.views,
            likes=portfolio.likes,
            created_at=portfolio.created_at,
            updated_at=portfolio.updated_at,
            user=OwnerResponse.from_domain(portfolio.owner),
        )


class SearchResponse(BaseModel):
    """One page of search results"""

    items: List[PortfolioResponse]
    total: int
    page: int
    limit: int
    page_count: int

    @classmethod
    def from_domain(cls, page: SearchPage) -> "SearchResponse":
        return cls(
            items=[PortfolioResponse.from_domain(p) for p in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            page_count=page.page_count,
        )


class PortfolioListResponse(BaseModel):
    """A user's portfolios"""

    items: List[PortfolioResponse]
    total: int


class ViewResponse(BaseModel):
    """Post-increment view counter"""

    views: int


class LikeToggleResponse(BaseModel):
    """Like state and counter after a toggle"""

    liked: bool
    likes: int


class LikeStatusResponse(BaseModel):
    """Whether the caller likes the portfolio"""

    liked: bool


class HealthResponse(BaseModel):
    """Service health"""

    status: str
    service: str
    database: bool
    search_index: bool
