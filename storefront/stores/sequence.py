import logging
from typing import Callable, Optional

import redis

from ..core.cache import CacheKeys
from ..core.errors import StoreUnavailableError
from ..services.redis import RedisClient

logger = logging.getLogger(__name__)


class RedisOrderSequence:
    """Order-number counter backed by an atomic Redis ``INCR``.

    The key is seeded once from the highest stored sequence, so a fresh Redis
    continues where the table left off instead of restarting at 1.
    """

    def __init__(self, client: RedisClient, key: str = CacheKeys.ORDER_SEQUENCE):
        self.client = client
        self.key = key

    def next_value(self, seed: Callable[[], int]) -> int:
        try:
            if not self.client.exists(self.key):
                if self.client.setnx(self.key, seed()):
                    logger.info("Seeded %s", self.key)
            return int(self.client.incr(self.key))
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Order sequence unavailable: {e}") from e

    def resync(self, floor: int) -> None:
        """Move the counter to at least ``floor``"""
        try:
            current: Optional[int] = self.client.get(self.key)
            if current is None or int(current) < floor:
                self.client.set(self.key, floor)
                logger.warning("Order sequence moved from %s to %s", current, floor)
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Order sequence unavailable: {e}") from e
