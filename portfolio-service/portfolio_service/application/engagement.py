"""
Engagement coordinator - Views and likes on shared portfolio records
"""
from typing import Optional
import logging

from ..config import settings
from ..domain.models import LikeTransition
from ..domain.repositories import IPortfolioRepository
from ..exceptions import ConflictError, LikeConflictError, NotFoundError, UnauthorizedError
from ..kafka_producer import KafkaProducerManager

logger = logging.getLogger(__name__)


class EngagementCoordinator:
    """
    Coordinates view counting and like toggling

    All counter arithmetic happens inside the store; this class only decides
    what to do with the outcome (not found, lost race, success).
    """

    def __init__(
        self,
        repository: IPortfolioRepository,
        kafka: Optional[KafkaProducerManager] = None,
        conflict_retries: int = settings.LIKE_CONFLICT_RETRIES,
    ):
        self.repository = repository
        self.kafka = kafka
        self.conflict_retries = conflict_retries

    async def increment_view(self, portfolio_id: str) -> int:
        """
        Record one view

        Args:
            portfolio_id: Portfolio ID

        Returns:
            Post-increment view count
        """
        views = await self.repository.increment_views(portfolio_id)
        if views is None:
            raise NotFoundError()
        return views

    async def toggle_like(self, portfolio_id: str, user_id: Optional[str]) -> LikeTransition:
        """
        Flip the caller's like on a portfolio

        A lost race is retried after re-reading the state; if the retry also
        loses, the caller gets ConflictError and may try again.
        """
        if not user_id:
            raise UnauthorizedError()

        attempt = 0
        while True:
            try:
                transition = await self.repository.toggle_like(portfolio_id, user_id)
                break
            except LikeConflictError:
                if attempt >= self.conflict_retries:
                    logger.warning(
                        f"Like toggle conflict persisted for portfolio {portfolio_id}, user {user_id}"
                    )
                    raise ConflictError()
                attempt += 1
                logger.info(f"Like toggle conflict on portfolio {portfolio_id}, retrying")

        if transition is None:
            raise NotFoundError()

        logger.info(
            f"User {user_id} {transition.current.value} portfolio {portfolio_id} "
            f"(likes={transition.likes})"
        )
        if self.kafka:
            await self.kafka.publish_like_event(
                portfolio_id, user_id, transition.current.is_liked, transition.likes
            )
        return transition

    async def is_liked(self, portfolio_id: str, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        state = await self.repository.get_like_state(portfolio_id, user_id)
        return state.is_liked
