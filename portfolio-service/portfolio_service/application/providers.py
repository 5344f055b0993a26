"""
Result providers for portfolio discovery

A ResultProvider turns a SearchQuery into a SearchPage. The index and the
store are interchangeable providers; FallbackProvider composes them so the
store answers whenever the index cannot.
"""
from abc import ABC, abstractmethod
from dataclasses import replace
import logging

from ..domain.models import SearchPage, SearchQuery, SortOrder
from ..domain.repositories import IPortfolioRepository
from ..exceptions import SearchIndexError
from ..search_client import SearchClient

logger = logging.getLogger(__name__)


class ResultProvider(ABC):
    """Source of search result pages"""

    name: str = "provider"

    def supports(self, query: SearchQuery) -> bool:
        """Whether this provider can answer the query with full fidelity"""
        return True

    def is_available(self) -> bool:
        """Cheap health check consulted before every fetch"""
        return True

    def scope(self, query: SearchQuery) -> SearchQuery:
        """The query narrowed to what this provider can see"""
        return query

    @abstractmethod
    async def fetch(self, query: SearchQuery) -> SearchPage:
        pass


class IndexProvider(ResultProvider):
    """Full-text search index, relevance ordered"""

    name = "index"

    def __init__(self, client: SearchClient):
        self.client = client

    def supports(self, query: SearchQuery) -> bool:
        # The index holds searchable portfolios only and orders by relevance
        return (
            query.has_text
            and query.filters.only_searchable()
            and query.sort == SortOrder.NEWEST
        )

    def is_available(self) -> bool:
        return self.client.is_available()

    def scope(self, query: SearchQuery) -> SearchQuery:
        # No owner view: drafts and private work never reach the index
        return replace(query, viewer_id=None)

    async def fetch(self, query: SearchQuery) -> SearchPage:
        items, total = await self.client.search(query)
        return SearchPage(
            items=items,
            total=total,
            page=query.pagination.page,
            limit=query.pagination.limit,
            source=self.name,
        )


class StoreProvider(ResultProvider):
    """Substring filtering directly against the portfolio store"""

    name = "store"

    def __init__(self, repository: IPortfolioRepository):
        self.repository = repository

    async def fetch(self, query: SearchQuery) -> SearchPage:
        items, total = await self.repository.search(query)
        return SearchPage(
            items=items,
            total=total,
            page=query.pagination.page,
            limit=query.pagination.limit,
            source=self.name,
        )


class FallbackProvider(ResultProvider):
    """Try the primary provider, answer from the secondary on SearchIndexError"""

    name = "fallback"

    def __init__(self, primary: ResultProvider, secondary: ResultProvider):
        self.primary = primary
        self.secondary = secondary

    def supports(self, query: SearchQuery) -> bool:
        return self.primary.supports(query) or self.secondary.supports(query)

    async def fetch(self, query: SearchQuery) -> SearchPage:
        if self.primary.supports(query):
            # The secondary answers with the primary's view of the query
            query = self.primary.scope(query)
            if self.primary.is_available():
                try:
                    return await self.primary.fetch(query)
                except SearchIndexError as e:
                    logger.warning(
                        f"Search {self.primary.name} failed, falling back to "
                        f"{self.secondary.name}: {e}"
                    )
            else:
                logger.warning(
                    f"Search {self.primary.name} cooling down, using {self.secondary.name}"
                )
        return await self.secondary.fetch(query)
