"""
Portfolio service - Business logic for portfolio management
"""
from typing import Any, Dict, List, Optional
import logging

from ..domain.models import Portfolio
from ..domain.repositories import IPortfolioRepository
from ..exceptions import ForbiddenError, NotFoundError, ValidationError
from ..kafka_producer import KafkaProducerManager
from ..service_client import ServiceClient

logger = logging.getLogger(__name__)


# Counters belong to the engagement coordinator
PROTECTED_FIELDS = ("id", "user_id", "views", "likes", "created_at", "updated_at")
NON_NULLABLE_FIELDS = ("tags", "images", "is_public", "status")


class PortfolioService:
    """Service for creating, reading, updating and deleting portfolios"""

    def __init__(
        self,
        repository: IPortfolioRepository,
        directory: Optional[ServiceClient] = None,
        kafka: Optional[KafkaProducerManager] = None,
    ):
        self.repository = repository
        self.directory = directory
        self.kafka = kafka

    async def _attach_owner(self, portfolios: List[Portfolio]):
        if not self.directory or not portfolios:
            return
        try:
            owners = await self.directory.get_owner_summaries(p.user_id for p in portfolios)
        except Exception as e:
            logger.warning(f"Owner lookup failed: {e}")
            return
        for portfolio in portfolios:
            portfolio.owner = owners.get(portfolio.user_id)

    def _content_changes(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}

    async def create_portfolio(self, user_id: str, data: Dict[str, Any]) -> Portfolio:
        """Create a portfolio owned by user_id, counters start at zero"""
        changes = self._content_changes(data)
        if not (changes.get("title") or "").strip():
            raise ValidationError("title is required")

        portfolio = await self.repository.create(user_id, changes)
        logger.info(f"User {user_id} created portfolio {portfolio.id}")

        if self.kafka:
            await self.kafka.publish_portfolio_created(portfolio)
        await self._attach_owner([portfolio])
        return portfolio

    async def get_portfolio(self, portfolio_id: str, viewer_id: Optional[str] = None) -> Portfolio:
        """
        Get a portfolio by ID

        Drafts and private portfolios are reported as missing to anyone but the owner.
        """
        portfolio = await self.repository.find_by_id(portfolio_id)
        if not portfolio or not portfolio.is_visible_to(viewer_id):
            raise NotFoundError()

        await self._attach_owner([portfolio])
        return portfolio

    async def list_user_portfolios(
        self, user_id: str, viewer_id: Optional[str] = None
    ) -> List[Portfolio]:
        """List a user's portfolios, newest first"""
        portfolios = await self.repository.find_by_user_id(
            user_id, searchable_only=viewer_id != user_id
        )
        await self._attach_owner(portfolios)
        return portfolios

    async def _owned(self, portfolio_id: str, user_id: str) -> Portfolio:
        portfolio = await self.repository.find_by_id(portfolio_id)
        if not portfolio or not portfolio.is_visible_to(user_id):
            raise NotFoundError()
        if not portfolio.is_owner(user_id):
            raise ForbiddenError()
        return portfolio

    async def update_portfolio(
        self, portfolio_id: str, user_id: str, data: Dict[str, Any]
    ) -> Portfolio:
        """Update content fields of a portfolio the caller owns"""
        await self._owned(portfolio_id, user_id)

        changes = self._content_changes(data)
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("title cannot be empty")
        for field_name in NON_NULLABLE_FIELDS:
            if field_name in changes and changes[field_name] is None:
                del changes[field_name]

        portfolio = await self.repository.update(portfolio_id, changes)
        if not portfolio:
            raise NotFoundError()
        logger.info(f"User {user_id} updated portfolio {portfolio_id}")

        if self.kafka:
            await self.kafka.publish_portfolio_updated(portfolio)
        await self._attach_owner([portfolio])
        return portfolio

    async def delete_portfolio(self, portfolio_id: str, user_id: str):
        """Delete a portfolio the caller owns, together with its likes"""
        await self._owned(portfolio_id, user_id)

        deleted = await self.repository.delete(portfolio_id)
        if not deleted:
            raise NotFoundError()
        logger.info(f"User {user_id} deleted portfolio {portfolio_id}")

        if self.kafka:
            await self.kafka.publish_portfolio_deleted(portfolio_id, user_id)
