"""
Kafka producer for publishing portfolio events

The search pipeline consumes these topics to keep its index in step with
the portfolio store; the `indexable` flag tells it whether a document
belongs in the index at all.
"""
from aiokafka import AIOKafkaProducer
from typing import Optional, Dict, Any
import json
import logging
from datetime import datetime, timezone

from .config import settings
from .domain.models import Portfolio

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def portfolio_document(portfolio: Portfolio) -> Dict[str, Any]:
    """Flatten a portfolio into the document shape the search pipeline indexes"""
    return {
        "id": portfolio.id,
        "user_id": portfolio.user_id,
        "title": portfolio.title,
        "description": portfolio.description,
        "category": portfolio.category,
        "tags": list(portfolio.tags),
        "thumbnail": portfolio.thumbnail,
        "status": portfolio.status.value,
        "is_public": portfolio.is_public,
        "views": portfolio.views,
        "likes": portfolio.likes,
        "created_at": portfolio.created_at.isoformat() if portfolio.created_at else None,
        "updated_at": portfolio.updated_at.isoformat() if portfolio.updated_at else None,
    }


class KafkaProducerManager:
    """Kafka producer manager for publishing events"""

    def __init__(self):
        self.producer: Optional[AIOKafkaProducer] = None

    async def start(self):
        """Start Kafka producer"""
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka is disabled")
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                key_serializer=lambda v: str(v).encode("utf-8") if v else None,
            )
            await self.producer.start()
            logger.info("Kafka producer started successfully")
        except Exception as e:
            logger.warning(f"Failed to start Kafka producer: {e}. Continuing without Kafka.")
            self.producer = None

    async def stop(self):
        """Stop Kafka producer"""
        if self.producer:
            await self.producer.stop()
            logger.info("Kafka producer stopped")

    async def publish_event(self, topic: str, key: str, event_data: Dict[str, Any]):
        """
        Publish event to Kafka topic

        Delivery is best effort: a failed publish is logged and never fails
        the request that triggered it.

        Args:
            topic: Kafka topic name
            key: Message key (portfolio id, so events for one portfolio stay ordered)
            event_data: Event data to publish
        """
        if not self.producer:
            logger.debug(f"Kafka disabled, skipping event: {topic}")
            return

        try:
            await self.producer.send(topic, value=event_data, key=key)
            logger.info(f"Published event to {topic}: {key}")
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")

    async def publish_portfolio_created(self, portfolio: Portfolio):
        """Publish portfolio created event"""
        event_data = {
            "event_type": "portfolio_created",
            "portfolio": portfolio_document(portfolio),
            "indexable": portfolio.is_searchable,
            "timestamp": _now(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_PORTFOLIO_CREATED, portfolio.id, event_data)

    async def publish_portfolio_updated(self, portfolio: Portfolio):
        """Publish portfolio updated event"""
        event_data = {
            "event_type": "portfolio_updated",
            "portfolio": portfolio_document(portfolio),
            "indexable": portfolio.is_searchable,
            "timestamp": _now(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_PORTFOLIO_UPDATED, portfolio.id, event_data)

    async def publish_portfolio_deleted(self, portfolio_id: str, user_id: str):
        """Publish portfolio deleted event"""
        event_data = {
            "event_type": "portfolio_deleted",
            "portfolio_id": portfolio_id,
            "user_id": user_id,
            "timestamp": _now(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_PORTFOLIO_DELETED, portfolio_id, event_data)

    async def publish_like_event(self, portfolio_id: str, user_id: str, liked: bool, likes: int):
        """Publish liked or unliked event with the post-toggle counter"""
        topic = (
            settings.KAFKA_TOPIC_PORTFOLIO_LIKED if liked
            else settings.KAFKA_TOPIC_PORTFOLIO_UNLIKED
        )
        event_data = {
            "event_type": "portfolio_liked" if liked else "portfolio_unliked",
            "portfolio_id": portfolio_id,
            "user_id": user_id,
            "likes": likes,
            "timestamp": _now(),
        }
        await self.publish_event(topic, portfolio_id, event_data)


# Global producer instance
kafka_producer = KafkaProducerManager()


async def get_kafka_producer() -> KafkaProducerManager:
    """Dependency for getting Kafka producer instance"""
    return kafka_producer
