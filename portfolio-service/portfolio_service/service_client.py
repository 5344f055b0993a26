"""
Service client for the user directory
"""
import asyncio
import httpx
from typing import Optional, List, Dict, Any, Iterable
import logging

from .cache import RedisCache, cache
from .config import settings
from .domain.models import OwnerSummary

logger = logging.getLogger(__name__)


def owner_from_payload(data: Optional[Dict[str, Any]]) -> Optional[OwnerSummary]:
    """Build an OwnerSummary from a camelCase user payload"""
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return OwnerSummary(
        id=str(data["id"]),
        username=data.get("username") or "",
        first_name=data.get("firstName"),
        last_name=data.get("lastName"),
        avatar=data.get("avatar"),
        university=data.get("university"),
    )


def owner_to_payload(owner: OwnerSummary) -> Dict[str, Any]:
    return {
        "id": owner.id,
        "username": owner.username,
        "firstName": owner.first_name,
        "lastName": owner.last_name,
        "avatar": owner.avatar,
        "university": owner.university,
    }


class ServiceClient:
    """HTTP client for the user service, read-only"""

    def __init__(self, cache: Optional[RedisCache] = None):
        self.timeout = httpx.Timeout(settings.USER_SERVICE_TIMEOUT_SECONDS)
        self.client: Optional[httpx.AsyncClient] = None
        self.cache = cache

    async def start(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=settings.USER_SERVICE_URL,
            timeout=self.timeout,
            transport=transport,
        )
        logger.info("User service client initialized")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            logger.info("User service client closed")

    async def _make_request(self, method: str, url: str, **kwargs) -> Optional[Dict[str, Any]]:
        """Make HTTP request to the user service"""
        if not self.client:
            logger.error("User service client not initialized")
            return None

        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error {e.response.status_code} for {url}: {e}")
            return None
        except Exception as e:
            logger.error(f"Request failed for {url}: {e}")
            return None

    async def get_user(self, user_id: str) -> Optional[OwnerSummary]:
        """
        Get owner display fields for a user

        Args:
            user_id: User ID

        Returns:
            OwnerSummary, or None if the user is unknown or the service failed
        """
        if self.cache:
            cached = await self.cache.get_user(user_id)
            if cached:
                return owner_from_payload(cached)

        response = await self._make_request("GET", f"/api/users/{user_id}")
        if not response or not response.get("success"):
            return None

        owner = owner_from_payload(response.get("data"))
        if owner and self.cache:
            await self.cache.set_user(user_id, owner_to_payload(owner))
        return owner

    async def get_owner_summaries(self, user_ids: Iterable[str]) -> Dict[str, OwnerSummary]:
        """Resolve several owners concurrently; unknown users are left out"""
        unique_ids: List[str] = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}

        owners = await asyncio.gather(*(self.get_user(uid) for uid in unique_ids))
        return {uid: owner for uid, owner in zip(unique_ids, owners) if owner}


# Global service client instance
service_client = ServiceClient(cache)


async def get_service_client() -> ServiceClient:
    """Dependency for getting service client instance"""
    return service_client
