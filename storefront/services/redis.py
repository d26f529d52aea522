import redis
import json
import logging
from typing import Optional, Any
from ..config import settings

logger = logging.getLogger(__name__)


def _decode(value: Optional[str]) -> Optional[Any]:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


class RedisClient:
    def __init__(self, url: Optional[str] = None):
        # from_url does not connect until the first command
        self.client = redis.from_url(url or settings.REDIS_URL, decode_responses=True)

    # Basic operations
    def get(self, key: str) -> Optional[Any]:
        try:
            return _decode(self.client.get(key))
        except redis.RedisError:
            logger.warning("Redis unavailable while reading %s", key)
            return None

    def set(self, key: str, value: Any, expire: Optional[int] = None):
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        if expire:
            self.client.setex(key, expire, value)
        else:
            self.client.set(key, value)

    def setnx(self, key: str, value: Any) -> bool:
        """Set ``key`` only when it does not exist yet"""
        return bool(self.client.set(key, value, nx=True))

    def delete(self, *keys: str):
        if keys:
            self.client.delete(*keys)

    def exists(self, key: str) -> bool:
        return self.client.exists(key) > 0

    def delete_pattern(self, pattern: str):
        keys = self.client.keys(pattern)
        if keys:
            self.client.delete(*keys)

    # Hash operations for session
    def hset(self, name: str, mapping: dict):
        self.client.hset(name, mapping=mapping)

    # Counters for rate limiting and order numbers
    def incr(self, key: str) -> int:
        return self.client.incr(key)

    def expire(self, key: str, seconds: int):
        self.client.expire(key, seconds)

    def ttl(self, key: str) -> int:
        return self.client.ttl(key)

redis_client = RedisClient()
