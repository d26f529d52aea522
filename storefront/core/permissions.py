import logging
import redis
from typing import Optional
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer
from ..models.user import UserRole
from ..database import get_supabase, get_supabase_admin
from ..services.redis import redis_client
from ..core.session import session_manager
from ..core.cache import CacheKeys
from .errors import ForbiddenError

logger = logging.getLogger(__name__)

security = HTTPBearer()

PROFILE_CACHE_SECONDS = 300


def _load_profile(user_id: str) -> Optional[dict]:
    result = get_supabase_admin().table("profiles").select("id, email, role").eq("id", user_id).execute()
    if not result.data:
        return None
    profile = result.data[0]
    if profile.get("role") not in {role.value for role in UserRole}:
        logger.warning("Profile %s has unknown role %r", user_id, profile.get("role"))
        return None
    return profile


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user(token = Depends(security)) -> dict:
    """Resolve the bearer token to ``{id, email, role}``"""
    try:
        user_id = session_manager.validate_token(token.credentials)
    except redis.RedisError as e:
        # fall through to the identity provider while Redis is down
        logger.warning("Session lookup skipped: %s", e)
        user_id = None

    if user_id:
        cache_key = CacheKeys.USER_PROFILE.format(user_id=user_id)
        cached = redis_client.get(cache_key)
        if isinstance(cached, dict) and "id" in cached:
            return cached

        profile = _load_profile(user_id)
        if profile:
            try:
                redis_client.set(cache_key, profile, PROFILE_CACHE_SECONDS)
            except redis.RedisError as e:
                logger.warning("Profile cache write skipped for %s: %s", user_id, e)
            return profile
        try:
            session_manager.destroy_session(user_id, token.credentials)
        except redis.RedisError as e:
            logger.warning("Stale session for %s not cleared: %s", user_id, e)

    try:
        user = get_supabase().auth.get_user(token.credentials)
    except Exception as e:
        logger.info("Token rejected by identity provider: %s", e)
        raise _unauthorized()
    if not user or not user.user:
        raise _unauthorized()

    profile = _load_profile(user.user.id)
    if not profile:
        raise _unauthorized("User profile not found")

    try:
        session_manager.create_session(profile["id"], profile, token.credentials)
    except redis.RedisError as e:
        logger.warning("Session not cached for %s: %s", profile["id"], e)
    return profile


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user.get("role") != UserRole.ADMIN.value:
        raise ForbiddenError("Admins only")
    return current_user
