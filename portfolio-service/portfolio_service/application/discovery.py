"""
Discovery resolver - Search over portfolios with index/store fallback
"""
from typing import List, Optional
import logging

from ..config import settings
from ..domain.models import (
    Pagination,
    Portfolio,
    PortfolioStatus,
    SearchFilters,
    SearchPage,
    SearchQuery,
    SortOrder,
)
from ..exceptions import StoreUnavailableError, UpstreamUnavailableError, ValidationError
from ..service_client import ServiceClient
from .providers import FallbackProvider, ResultProvider

logger = logging.getLogger(__name__)


def build_query(
    text: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    status: Optional[str] = None,
    is_public: Optional[bool] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    viewer_id: Optional[str] = None,
    featured: bool = False,
) -> SearchQuery:
    """
    Validate raw request parameters into a SearchQuery

    A featured query shows published, public portfolios only, most liked
    first unless another sort is given, and ignores the viewer's own work.

    Raises:
        ValidationError: on out-of-range pagination, unknown status or sort,
            or an over-long query
    """
    text = text or ""
    if len(text) > settings.MAX_QUERY_LENGTH:
        raise ValidationError(f"Query must be at most {settings.MAX_QUERY_LENGTH} characters")

    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")

    parsed_status = None
    if status:
        try:
            parsed_status = PortfolioStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")

    parsed_sort = SortOrder.NEWEST
    if sort:
        try:
            parsed_sort = SortOrder(sort)
        except ValueError:
            raise ValidationError(f"Unknown sort: {sort}")
    elif featured:
        parsed_sort = SortOrder.MOST_LIKED

    if featured:
        if parsed_status == PortfolioStatus.DRAFT or is_public is False:
            raise ValidationError("featured portfolios are published and public")
        parsed_status = PortfolioStatus.PUBLISHED
        is_public = True
        viewer_id = None

    return SearchQuery(
        text=text,
        pagination=Pagination(page=page, limit=limit),
        filters=SearchFilters(
            status=parsed_status,
            is_public=is_public,
            category=category or None,
        ),
        sort=parsed_sort,
        viewer_id=viewer_id,
    )


class DiscoveryResolver:
    """Resolve search queries, preferring the index and falling back to the store"""

    def __init__(
        self,
        index: ResultProvider,
        store: ResultProvider,
        directory: Optional[ServiceClient] = None,
    ):
        self.store = store
        self.provider = FallbackProvider(index, store)
        self.directory = directory

    async def search(self, query: SearchQuery) -> SearchPage:
        """
        Search portfolios

        Non-empty queries go to the index when it can serve them; index failures
        are absorbed and the store answers the same query. Only a store failure
        reaches the caller, as UpstreamUnavailableError.
        """
        try:
            page = await self.provider.fetch(query)
        except StoreUnavailableError as e:
            logger.error(f"Search failed on every path for query {query.text!r}: {e}")
            raise UpstreamUnavailableError() from e

        await self.enrich_owners(page.items)
        logger.debug(f"Search {query.text!r} served by {page.source}: {page.total} results")
        return page

    async def browse(self, query: SearchQuery) -> SearchPage:
        """Filter directly against the store, bypassing the index"""
        page = await self.store.fetch(query)
        await self.enrich_owners(page.items)
        return page

    async def enrich_owners(self, items: List[Portfolio]):
        """Attach owner summaries to results that carry none"""
        if not self.directory:
            return

        missing = [item.user_id for item in items if item.owner is None]
        if not missing:
            return

        try:
            owners = await self.directory.get_owner_summaries(missing)
        except Exception as e:
            logger.warning(f"Owner enrichment failed: {e}")
            return

        for item in items:
            if item.owner is None:
                item.owner = owners.get(item.user_id)
