"""
Search service client

Talks to the full-text search index. Every failure mode (connection error,
timeout, non-2xx, unusable payload) is raised as SearchIndexError so the
discovery layer can fall back to the portfolio store.
"""
import httpx
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
import logging
import time

from .config import settings
from .domain.models import Portfolio, PortfolioStatus, SearchQuery
from .exceptions import SearchIndexError
from .service_client import owner_from_payload

logger = logging.getLogger(__name__)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def hit_to_portfolio(hit: Dict[str, Any]) -> Portfolio:
    """Map a camelCase index document to a Portfolio"""
    if not isinstance(hit, dict) or not hit.get("id") or not hit.get("userId"):
        raise SearchIndexError(f"Malformed search hit: {hit!r}")

    try:
        status = PortfolioStatus(hit.get("status", PortfolioStatus.PUBLISHED.value))
    except ValueError as e:
        raise SearchIndexError(f"Unknown status in search hit: {hit.get('status')!r}") from e

    return Portfolio(
        id=str(hit["id"]),
        user_id=str(hit["userId"]),
        title=hit.get("title") or "",
        description=hit.get("description"),
        category=hit.get("category"),
        tags=list(hit.get("tags") or []),
        thumbnail=hit.get("thumbnail"),
        images=list(hit.get("images") or []),
        demo_url=hit.get("demoUrl"),
        repository_url=hit.get("repositoryUrl"),
        is_public=bool(hit.get("isPublic", True)),
        status=status,
        views=int(hit.get("views") or 0),
        likes=int(hit.get("likes") or 0),
        created_at=_parse_datetime(hit.get("createdAt")),
        updated_at=_parse_datetime(hit.get("updatedAt")),
        owner=owner_from_payload(hit.get("user")),
    )


class SearchClient:
    """HTTP client for the search service"""

    def __init__(self):
        self.timeout = httpx.Timeout(settings.SEARCH_INDEX_TIMEOUT_SECONDS)
        self.client: Optional[httpx.AsyncClient] = None
        self.cooldown = settings.SEARCH_INDEX_COOLDOWN_SECONDS
        self._failed_at: Optional[float] = None

    async def start(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=settings.SEARCH_SERVICE_URL,
            timeout=self.timeout,
            transport=transport,
        )
        logger.info("Search client initialized")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            logger.info("Search client closed")

    def is_available(self) -> bool:
        """False while the index is cooling down after a failure"""
        if not self.client:
            return False
        if self._failed_at is None:
            return True
        return time.monotonic() - self._failed_at >= self.cooldown

    def mark_failed(self):
        self._failed_at = time.monotonic()

    def mark_healthy(self):
        self._failed_at = None

    def _params(self, query: SearchQuery) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "q": query.text.strip(),
            "page": query.pagination.page,
            "limit": query.pagination.limit,
        }
        filters = query.filters
        if filters.status is not None:
            params["status"] = filters.status.value
        if filters.is_public is not None:
            params["isPublic"] = "true" if filters.is_public else "false"
        if filters.category:
            params["category"] = filters.category
        return params

    async def search(self, query: SearchQuery) -> Tuple[List[Portfolio], int]:
        """
        Run a full-text search against the index

        Args:
            query: Resolved search query

        Returns:
            Tuple of (portfolios in relevance order, total hit count)

        Raises:
            SearchIndexError: on any transport, status or payload failure
        """
        if not self.client:
            raise SearchIndexError("Search client not initialized")

        try:
            response = await self.client.get("/api/search/portfolios", params=self._params(query))
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            self.mark_failed()
            raise SearchIndexError(f"Search index timed out: {e!r}") from e
        except httpx.HTTPStatusError as e:
            self.mark_failed()
            raise SearchIndexError(f"Search index returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            self.mark_failed()
            raise SearchIndexError(f"Search index request failed: {e!r}") from e

        try:
            items, total = self._parse_body(body)
        except SearchIndexError:
            self.mark_failed()
            raise

        self.mark_healthy()
        return items, total

    def _parse_body(self, body: Any) -> Tuple[List[Portfolio], int]:
        if not isinstance(body, dict) or not body.get("success"):
            raise SearchIndexError("Search index reported failure")

        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("hits"), list):
            raise SearchIndexError("Search index payload has no hits")

        total = data.get("estimatedTotalHits", data.get("totalHits"))
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise SearchIndexError(f"Search index payload has invalid total: {total!r}")

        try:
            items = [hit_to_portfolio(hit) for hit in data["hits"]]
        except (TypeError, ValueError) as e:
            raise SearchIndexError(f"Malformed search hit: {e}") from e
        return items, total

    async def ping(self) -> bool:
        """Check index reachability"""
        if not self.client:
            return False
        try:
            response = await self.client.get("/health")
            return response.status_code < 500
        except httpx.HTTPError:
            return False


# Global search client instance
search_client = SearchClient()


async def get_search_client() -> SearchClient:
    """Dependency for getting search client instance"""
    return search_client
