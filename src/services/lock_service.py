import structlog
from redis.asyncio import Redis
from redis.exceptions import LockError

from src.core.config import settings

logger = structlog.get_logger()


class AggregationLock:
    """Leased, single-owner mutex guarding the aggregation job.

    The lease expires on its own so a crashed worker cannot block later
    runs; the owner token lives inside the redis-py lock object.
    """

    def __init__(
        self,
        client: Redis,
        name: str | None = None,
        lease_seconds: int | None = None,
    ) -> None:
        self.name = name or settings.leaderboard_lock_name
        self.lease_seconds = lease_seconds or settings.leaderboard_lock_lease_seconds
        self._lock = client.lock(self.name, timeout=self.lease_seconds, blocking=False)

    async def acquire(self) -> bool:
        acquired = await self._lock.acquire()
        if acquired:
            logger.info("Acquired aggregation lock", lock=self.name, lease=self.lease_seconds)
        return bool(acquired)

    async def release(self) -> None:
        try:
            await self._lock.release()
        except LockError:
            # Lease ran out (or was taken over) before we finished
            logger.warning("Aggregation lock already released", lock=self.name)
        else:
            logger.info("Released aggregation lock", lock=self.name)


def create_redis_client() -> Redis:
    return Redis.from_url(str(settings.redis_url))
