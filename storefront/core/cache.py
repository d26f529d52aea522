from ..services.redis import redis_client

class CacheKeys:
    """Centralized cache key management"""

    # User/Auth
    USER_SESSION = "session:{user_id}:{token_prefix}"
    ACTIVE_SESSION = "active_session:{token}"
    USER_PROFILE = "profile:{user_id}"

    # Orders
    ORDER_SEQUENCE = "orders:sequence"

    # Rate limiting
    RATE_LIMIT = "rate_limit:{identifier}:{endpoint}"

def invalidate_user_cache(user_id: str):
    """Invalidate user-related caches"""
    redis_client.delete(CacheKeys.USER_PROFILE.format(user_id=user_id))
    redis_client.delete_pattern(CacheKeys.USER_SESSION.format(user_id=user_id, token_prefix="*"))
