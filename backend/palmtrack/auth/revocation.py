"""JWT token revocation using a Redis blacklist.

Revokes single tokens on logout and every earlier token of a user on
password change or reset.  Entries live until the token would have
expired anyway.
"""

import logging
import time
from typing import Optional

import redis.asyncio as redis

from palmtrack.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close the Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


class TokenRevocation:
    """Manage JWT token revocation with Redis."""

    @staticmethod
    async def revoke_token(token: str, expires_at: float) -> bool:
        """Add a token to the revocation list until `expires_at`."""
        ttl = int(expires_at - time.time())
        if ttl <= 0:
            # Already expired, nothing to blacklist
            return True

        redis_client = await get_redis()
        try:
            await redis_client.setex(f"revoked:{token}", ttl, str(int(time.time())))
            return True
        except Exception:
            logger.error("Failed to revoke token", exc_info=True)
            return False

    @staticmethod
    async def is_revoked(token: str) -> bool:
        redis_client = await get_redis()
        try:
            exists = await redis_client.exists(f"revoked:{token}")
            return exists > 0
        except Exception:
            logger.error("Failed to check token revocation", exc_info=True)
            # Fail closed
            return True

    @staticmethod
    async def revoke_all_user_tokens(user_id: str) -> bool:
        """Invalidate every token issued to `user_id` before now.

        Tokens minted afterwards (e.g. the next login) stay valid.
        """
        duration = settings.refresh_token_expire_days * 86400
        redis_client = await get_redis()
        try:
            await redis_client.setex(f"revoked:user:{user_id}", duration, repr(time.time()))
            return True
        except Exception:
            logger.error("Failed to revoke tokens for user %s", user_id, exc_info=True)
            return False

    @staticmethod
    async def is_user_revoked(user_id: str, issued_at: float) -> bool:
        """True if the user's tokens were revoked after `issued_at`."""
        redis_client = await get_redis()
        try:
            revoked_at = await redis_client.get(f"revoked:user:{user_id}")
        except Exception:
            logger.error("Failed to check user revocation", exc_info=True)
            return True
        if revoked_at is None:
            return False
        return issued_at < float(revoked_at)
