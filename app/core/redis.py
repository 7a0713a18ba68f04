"""Redis connection used for cross-process zone locks"""
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio.lock import Lock
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Holds the shared connection; without one, callers fall back to local locks"""

    def __init__(self, url: str = None):
        self.url = url or settings.REDIS_URL
        self.redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self.redis is not None

    async def connect(self):
        """Open the connection, staying disconnected when Redis is unreachable"""
        client = aioredis.from_url(self.url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except RedisError as e:
            logger.warning(f"Redis unavailable at {self.url}, zone locks are process-local: {e}")
            await client.close()
            return
        self.redis = client

    async def disconnect(self):
        if self.redis:
            await self.redis.close()
            self.redis = None

    def lock(self, name: str, timeout: Optional[float] = None) -> Optional[Lock]:
        """Lock shared by the API, the scheduler and Celery workers.

        ``timeout`` bounds both how long the lock is held and how long a
        writer waits for it. Returns None when disconnected.
        """
        if not self.redis:
            return None
        return self.redis.lock(name, timeout=timeout, blocking_timeout=timeout)


redis_client = RedisClient()
