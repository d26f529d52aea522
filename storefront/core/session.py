from typing import Optional
from datetime import datetime, timezone
from ..services.redis import redis_client
from ..config import settings
from .cache import CacheKeys, invalidate_user_cache

class SessionManager:
    """Manage user sessions in Redis"""

    @staticmethod
    def _ttl() -> int:
        return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @staticmethod
    def create_session(user_id: str, user_data: dict, token: str) -> str:
        session_key = CacheKeys.USER_SESSION.format(user_id=user_id, token_prefix=token[:8])

        session_data = {
            "user_id": user_id,
            "email": user_data.get("email") or "",
            "role": user_data.get("role") or "",
            "created_at": datetime.now(timezone.utc).isoformat()
        }

        redis_client.hset(session_key, session_data)
        redis_client.expire(session_key, SessionManager._ttl())
        redis_client.set(CacheKeys.ACTIVE_SESSION.format(token=token), user_id, SessionManager._ttl())

        return session_key

    @staticmethod
    def validate_token(token: str) -> Optional[str]:
        """Quick token validation without DB call"""
        key = CacheKeys.ACTIVE_SESSION.format(token=token)
        user_id = redis_client.get(key)
        if user_id:
            redis_client.expire(key, SessionManager._ttl())
            return str(user_id)
        return None

    @staticmethod
    def destroy_session(user_id: str, token: Optional[str] = None):
        """Destroy user session"""
        invalidate_user_cache(user_id)
        if token:
            redis_client.delete(CacheKeys.ACTIVE_SESSION.format(token=token))

session_manager = SessionManager()
