"""
Shared fixtures: in-memory portfolio store, fake search index and user directory
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from portfolio_service.domain.models import (
    LikeState,
    LikeTransition,
    OwnerSummary,
    Portfolio,
    PortfolioStatus,
    SearchQuery,
    SortOrder,
)
from portfolio_service.domain.repositories import IPortfolioRepository
from portfolio_service.exceptions import LikeConflictError


class InMemoryPortfolioRepository(IPortfolioRepository):
    """
    Store double with the same atomicity as the PostgreSQL repository

    Like toggles read the state, yield to the event loop, then apply under a
    lock, so concurrent toggles interleave the way separate transactions do
    and a lost race raises LikeConflictError.
    """

    def __init__(self):
        self.portfolios: Dict[str, Portfolio] = {}
        self.likes: Set[Tuple[str, str]] = set()
        self.fail_with: Optional[Exception] = None
        self.forced_conflicts = 0
        self.search_calls = 0
        self._lock = asyncio.Lock()
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    async def create(self, user_id: str, data: Dict[str, Any]) -> Portfolio:
        self._check()
        now = self._tick()
        portfolio = Portfolio(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=data["title"],
            description=data.get("description"),
            category=data.get("category"),
            tags=list(data.get("tags") or []),
            thumbnail=data.get("thumbnail"),
            images=list(data.get("images") or []),
            demo_url=data.get("demo_url"),
            repository_url=data.get("repository_url"),
            is_public=data.get("is_public", True),
            status=PortfolioStatus(data.get("status", PortfolioStatus.DRAFT)),
            created_at=now,
            updated_at=now,
        )
        self.portfolios[portfolio.id] = portfolio
        return portfolio

    async def find_by_id(self, portfolio_id: str) -> Optional[Portfolio]:
        self._check()
        return self.portfolios.get(portfolio_id)

    async def find_by_user_id(self, user_id: str, searchable_only: bool) -> List[Portfolio]:
        self._check()
        items = [
            p for p in self.portfolios.values()
            if p.user_id == user_id and (p.is_searchable or not searchable_only)
        ]
        return sorted(items, key=lambda p: p.created_at, reverse=True)

    async def update(self, portfolio_id: str, changes: Dict[str, Any]) -> Optional[Portfolio]:
        self._check()
        portfolio = self.portfolios.get(portfolio_id)
        if not portfolio:
            return None
        for key, value in changes.items():
            if key == "status":
                value = PortfolioStatus(value)
            setattr(portfolio, key, value)
        portfolio.updated_at = self._tick()
        return portfolio

    async def delete(self, portfolio_id: str) -> bool:
        self._check()
        async with self._lock:
            if portfolio_id not in self.portfolios:
                return False
            self.likes = {key for key in self.likes if key[0] != portfolio_id}
            del self.portfolios[portfolio_id]
            return True

    def _matches(self, portfolio: Portfolio, query: SearchQuery) -> bool:
        if not portfolio.is_visible_to(query.viewer_id):
            return False
        filters = query.filters
        if filters.status is not None and portfolio.status != filters.status:
            return False
        if filters.is_public is not None and portfolio.is_public != filters.is_public:
            return False
        if filters.category and portfolio.category != filters.category:
            return False
        if query.has_text:
            needle = query.text.strip().lower()
            haystack = [portfolio.title, portfolio.description or ""] + list(portfolio.tags)
            return any(needle in field.lower() for field in haystack)
        return True

    async def search(self, query: SearchQuery) -> Tuple[List[Portfolio], int]:
        self._check()
        self.search_calls += 1
        matched = [p for p in self.portfolios.values() if self._matches(p, query)]
        if query.sort == SortOrder.OLDEST:
            matched.sort(key=lambda p: (p.created_at, p.id))
        elif query.sort == SortOrder.MOST_VIEWED:
            matched.sort(key=lambda p: (p.views, p.created_at), reverse=True)
        elif query.sort == SortOrder.MOST_LIKED:
            matched.sort(key=lambda p: (p.likes, p.created_at), reverse=True)
        else:
            matched.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        offset = query.pagination.offset
        return matched[offset:offset + query.pagination.limit], len(matched)

    async def increment_views(self, portfolio_id: str) -> Optional[int]:
        self._check()
        async with self._lock:
            portfolio = self.portfolios.get(portfolio_id)
            if not portfolio:
                return None
            portfolio.views += 1
            return portfolio.views

    async def get_like_state(self, portfolio_id: str, user_id: str) -> LikeState:
        self._check()
        return LikeState.from_exists((portfolio_id, user_id) in self.likes)

    async def toggle_like(self, portfolio_id: str, user_id: str) -> Optional[LikeTransition]:
        self._check()
        if self.forced_conflicts > 0:
            self.forced_conflicts -= 1
            raise LikeConflictError(f"{portfolio_id}:{user_id}")
        if portfolio_id not in self.portfolios:
            return None

        key = (portfolio_id, user_id)
        previous = LikeState.from_exists(key in self.likes)
        current = previous.toggled()
        await asyncio.sleep(0)

        async with self._lock:
            portfolio = self.portfolios.get(portfolio_id)
            if portfolio is None:
                return None
            if current.is_liked:
                if key in self.likes:
                    raise LikeConflictError(f"{portfolio_id}:{user_id}")
                self.likes.add(key)
                portfolio.likes += 1
            else:
                if key not in self.likes:
                    raise LikeConflictError(f"{portfolio_id}:{user_id}")
                self.likes.discard(key)
                portfolio.likes = max(portfolio.likes - 1, 0)
            return LikeTransition(previous=previous, current=current, likes=portfolio.likes)

    async def count_likes(self, portfolio_id: str) -> int:
        self._check()
        return sum(1 for key in self.likes if key[0] == portfolio_id)

    async def ping(self) -> bool:
        return self.fail_with is None

    async def seed(self, user_id: str, title: str, **fields) -> Portfolio:
        """Create a portfolio with test-friendly defaults (published, public)"""
        data = {"title": title, "status": PortfolioStatus.PUBLISHED, "is_public": True}
        data.update(fields)
        return await self.create(user_id, data)


class FakeSearchClient:
    """Search index double; answers from a repository's searchable portfolios"""

    def __init__(self, repository: Optional[InMemoryPortfolioRepository] = None):
        self.repository = repository
        self.error: Optional[Exception] = None
        self.available = True
        self.calls = 0
        self.attach_owner = True

    def is_available(self) -> bool:
        return self.available

    async def search(self, query: SearchQuery) -> Tuple[List[Portfolio], int]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.repository is None:
            return [], 0
        needle = query.text.strip().lower()
        hits = [
            p for p in self.repository.portfolios.values()
            if p.is_searchable and (
                needle in p.title.lower()
                or needle in (p.description or "").lower()
                or any(needle in tag.lower() for tag in p.tags)
            )
        ]
        hits.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        offset = query.pagination.offset
        page = hits[offset:offset + query.pagination.limit]
        results = []
        for p in page:
            copy = Portfolio(**{k: getattr(p, k) for k in p.__dataclass_fields__})
            if self.attach_owner:
                copy.owner = OwnerSummary(id=p.user_id, username=f"user-{p.user_id}")
            results.append(copy)
        return results, len(hits)

    async def ping(self) -> bool:
        return self.error is None


class FakeDirectory:
    """User directory double"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.lookups: List[str] = []

    async def get_owner_summaries(self, user_ids) -> Dict[str, OwnerSummary]:
        ids = list(dict.fromkeys(user_ids))
        self.lookups.extend(ids)
        if self.fail:
            raise RuntimeError("user service down")
        return {uid: OwnerSummary(id=uid, username=f"user-{uid}") for uid in ids}


class RecordingKafka:
    """Collects published events instead of sending them"""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def publish_like_event(self, portfolio_id, user_id, liked, likes):
        self.events.append(("liked" if liked else "unliked", {
            "portfolio_id": portfolio_id, "user_id": user_id, "likes": likes,
        }))

    async def publish_portfolio_created(self, portfolio):
        self.events.append(("created", {"portfolio_id": portfolio.id}))

    async def publish_portfolio_updated(self, portfolio):
        self.events.append(("updated", {
            "portfolio_id": portfolio.id, "indexable": portfolio.is_searchable,
        }))

    async def publish_portfolio_deleted(self, portfolio_id, user_id):
        self.events.append(("deleted", {"portfolio_id": portfolio_id}))


@pytest.fixture
def repository() -> InMemoryPortfolioRepository:
    return InMemoryPortfolioRepository()


@pytest.fixture
def search_index(repository) -> FakeSearchClient:
    return FakeSearchClient(repository)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def kafka() -> RecordingKafka:
    return RecordingKafka()
