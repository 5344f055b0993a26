"""
Repository implementations - Data access layer
"""
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

import asyncpg

from ..database import Database
from ..domain.models import (
    LikeState,
    LikeTransition,
    Portfolio,
    PortfolioStatus,
    SearchQuery,
    SortOrder,
)
from ..domain.repositories import IPortfolioRepository
from ..exceptions import LikeConflictError

logger = logging.getLogger(__name__)


PORTFOLIO_COLUMNS = """
    id, user_id, title, description, category, tags, thumbnail, images,
    demo_url, repository_url, is_public, status, views, likes,
    created_at, updated_at
"""

# Content fields a caller may set; counters are never writable through create/update
WRITABLE_FIELDS = (
    "title",
    "description",
    "category",
    "tags",
    "thumbnail",
    "images",
    "demo_url",
    "repository_url",
    "is_public",
    "status",
)

SORT_CLAUSES = {
    SortOrder.NEWEST: "created_at DESC, id DESC",
    SortOrder.OLDEST: "created_at ASC, id ASC",
    SortOrder.MOST_VIEWED: "views DESC, created_at DESC, id DESC",
    SortOrder.MOST_LIKED: "likes DESC, created_at DESC, id DESC",
}


def _parse_id(portfolio_id: str) -> Optional[uuid.UUID]:
    """Portfolio ids are UUIDs; anything else cannot match a row"""
    try:
        return uuid.UUID(str(portfolio_id))
    except ValueError:
        return None


def _like_pattern(text: str) -> str:
    """Escape ILIKE wildcards so the text matches as a literal substring"""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _db_value(value: Any) -> Any:
    if isinstance(value, PortfolioStatus):
        return value.value
    return value


class PortfolioRepository(IPortfolioRepository):
    """Portfolio repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_portfolio(self, row: Optional[Dict[str, Any]]) -> Optional[Portfolio]:
        """Convert database row to Portfolio model"""
        if not row:
            return None
        data = dict(row)
        data["id"] = str(data["id"])
        data["status"] = PortfolioStatus(data["status"])
        data["tags"] = list(data.get("tags") or [])
        data["images"] = list(data.get("images") or [])
        return Portfolio(**data)

    async def create(self, user_id: str, data: Dict[str, Any]) -> Portfolio:
        """Create a new portfolio"""
        row = await self.db.fetch_one(
            f"""
            INSERT INTO portfolios (user_id, title, description, category, tags, thumbnail,
                                    images, demo_url, repository_url, is_public, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING {PORTFOLIO_COLUMNS}
            """,
            user_id,
            data["title"],
            data.get("description"),
            data.get("category"),
            list(data.get("tags") or []),
            data.get("thumbnail"),
            list(data.get("images") or []),
            data.get("demo_url"),
            data.get("repository_url"),
            data.get("is_public", True),
            _db_value(data.get("status", PortfolioStatus.DRAFT)),
        )
        return self._row_to_portfolio(row)

    async def find_by_id(self, portfolio_id: str) -> Optional[Portfolio]:
        """Find portfolio by ID"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return None
        row = await self.db.fetch_one(
            f"SELECT {PORTFOLIO_COLUMNS} FROM portfolios WHERE id = $1",
            pid,
        )
        return self._row_to_portfolio(row)

    async def find_by_user_id(self, user_id: str, searchable_only: bool) -> List[Portfolio]:
        """Find a user's portfolios, newest first"""
        visibility = "AND status = 'published' AND is_public = true" if searchable_only else ""
        rows = await self.db.fetch_all(
            f"""
            SELECT {PORTFOLIO_COLUMNS}
            FROM portfolios
            WHERE user_id = $1 {visibility}
            ORDER BY created_at DESC, id DESC
            """,
            user_id,
        )
        return [self._row_to_portfolio(row) for row in rows]

    async def update(self, portfolio_id: str, changes: Dict[str, Any]) -> Optional[Portfolio]:
        """Update content fields of a portfolio"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return None

        updates = []
        params: List[Any] = [pid]
        for field_name in WRITABLE_FIELDS:
            if field_name not in changes:
                continue
            value = changes[field_name]
            if field_name in ("tags", "images"):
                value = list(value or [])
            params.append(_db_value(value))
            updates.append(f"{field_name} = ${len(params)}")

        if not updates:
            return await self.find_by_id(portfolio_id)

        updates.append("updated_at = NOW()")
        row = await self.db.fetch_one(
            f"""
            UPDATE portfolios
            SET {', '.join(updates)}
            WHERE id = $1
            RETURNING {PORTFOLIO_COLUMNS}
            """,
            *params,
        )
        return self._row_to_portfolio(row)

    async def delete(self, portfolio_id: str) -> bool:
        """Delete a portfolio and its like records in one transaction"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return False

        async with self.db.transaction() as conn:
            await conn.execute(
                "DELETE FROM portfolio_likes WHERE portfolio_id = $1",
                pid,
                timeout=self.db.timeout,
            )
            deleted = await conn.fetchval(
                "DELETE FROM portfolios WHERE id = $1 RETURNING id",
                pid,
                timeout=self.db.timeout,
            )
        return deleted is not None

    def _search_conditions(self, query: SearchQuery) -> Tuple[str, List[Any]]:
        """Build the WHERE clause shared by the page and the count query"""
        params: List[Any] = []

        if query.viewer_id:
            params.append(query.viewer_id)
            conditions = [
                f"((status = 'published' AND is_public = true) OR user_id = ${len(params)})"
            ]
        else:
            conditions = ["status = 'published' AND is_public = true"]

        filters = query.filters
        if filters.status is not None:
            params.append(filters.status.value)
            conditions.append(f"status = ${len(params)}")
        if filters.is_public is not None:
            params.append(filters.is_public)
            conditions.append(f"is_public = ${len(params)}")
        if filters.category:
            params.append(filters.category)
            conditions.append(f"category = ${len(params)}")

        if query.has_text:
            params.append(_like_pattern(query.text.strip()))
            n = len(params)
            conditions.append(
                f"(title ILIKE ${n} OR description ILIKE ${n} "
                f"OR EXISTS (SELECT 1 FROM unnest(tags) AS tag WHERE tag ILIKE ${n}))"
            )

        return " AND ".join(conditions), params

    async def search(self, query: SearchQuery) -> Tuple[List[Portfolio], int]:
        """Substring search over title, description and tags"""
        where, params = self._search_conditions(query)
        order_by = SORT_CLAUSES[query.sort]

        total = await self.db.fetch_val(
            f"SELECT COUNT(*) FROM portfolios WHERE {where}",
            *params,
        )

        page_params = params + [query.pagination.limit, query.pagination.offset]
        rows = await self.db.fetch_all(
            f"""
            SELECT {PORTFOLIO_COLUMNS}
            FROM portfolios
            WHERE {where}
            ORDER BY {order_by}
            LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            """,
            *page_params,
        )
        return [self._row_to_portfolio(row) for row in rows], int(total or 0)

    async def increment_views(self, portfolio_id: str) -> Optional[int]:
        """Atomically add one view and return the new counter"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return None
        return await self.db.fetch_val(
            "UPDATE portfolios SET views = views + 1 WHERE id = $1 RETURNING views",
            pid,
        )

    async def get_like_state(self, portfolio_id: str, user_id: str) -> LikeState:
        """Current like state of the (portfolio, user) pair"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return LikeState.UNLIKED
        exists = await self.db.fetch_val(
            """
            SELECT EXISTS(
                SELECT 1 FROM portfolio_likes WHERE portfolio_id = $1 AND user_id = $2
            )
            """,
            pid,
            user_id,
        )
        return LikeState.from_exists(bool(exists))

    async def toggle_like(self, portfolio_id: str, user_id: str) -> Optional[LikeTransition]:
        """
        Flip the like state and move the counter by one, atomically

        The like record and the counter change in the same transaction, so the
        counter always equals the number of like records. A unique violation on
        insert, or a delete that removes nothing, means another toggle for the
        same pair committed between our read and our write.

        Args:
            portfolio_id: Portfolio ID
            user_id: Acting user ID

        Returns:
            The transition with the post-operation counter, or None if the
            portfolio does not exist
        """
        pid = _parse_id(portfolio_id)
        if pid is None:
            return None

        timeout = self.db.timeout
        try:
            async with self.db.transaction() as conn:
                found = await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM portfolios WHERE id = $1)",
                    pid,
                    timeout=timeout,
                )
                if not found:
                    return None

                liked = await conn.fetchval(
                    """
                    SELECT EXISTS(
                        SELECT 1 FROM portfolio_likes WHERE portfolio_id = $1 AND user_id = $2
                    )
                    """,
                    pid,
                    user_id,
                    timeout=timeout,
                )
                previous = LikeState.from_exists(bool(liked))
                current = previous.toggled()

                if current.is_liked:
                    try:
                        await conn.execute(
                            "INSERT INTO portfolio_likes (portfolio_id, user_id) VALUES ($1, $2)",
                            pid,
                            user_id,
                            timeout=timeout,
                        )
                    except asyncpg.UniqueViolationError as e:
                        raise LikeConflictError(f"{portfolio_id}:{user_id}") from e
                    likes = await conn.fetchval(
                        "UPDATE portfolios SET likes = likes + 1 WHERE id = $1 RETURNING likes",
                        pid,
                        timeout=timeout,
                    )
                else:
                    removed = await conn.fetchval(
                        """
                        DELETE FROM portfolio_likes
                        WHERE portfolio_id = $1 AND user_id = $2
                        RETURNING user_id
                        """,
                        pid,
                        user_id,
                        timeout=timeout,
                    )
                    if removed is None:
                        raise LikeConflictError(f"{portfolio_id}:{user_id}")
                    likes = await conn.fetchval(
                        """
                        UPDATE portfolios SET likes = GREATEST(likes - 1, 0)
                        WHERE id = $1
                        RETURNING likes
                        """,
                        pid,
                        timeout=timeout,
                    )

                if likes is None:
                    # Portfolio row vanished after the existence check
                    return None
        except asyncpg.ForeignKeyViolationError:
            logger.info(f"Portfolio {portfolio_id} deleted during like toggle")
            return None

        return LikeTransition(previous=previous, current=current, likes=likes)

    async def count_likes(self, portfolio_id: str) -> int:
        """Number of like records for a portfolio"""
        pid = _parse_id(portfolio_id)
        if pid is None:
            return 0
        count = await self.db.fetch_val(
            "SELECT COUNT(*) FROM portfolio_likes WHERE portfolio_id = $1",
            pid,
        )
        return int(count or 0)

    async def ping(self) -> bool:
        """Check store reachability"""
        return await self.db.ping()
