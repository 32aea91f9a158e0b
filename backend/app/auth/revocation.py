"""JWT token revocation using a Redis blacklist.

Tokens are revoked on logout; all of a user's tokens are revoked when an
admin deactivates the account. Entries live until the token's natural
expiry. Lookups fail closed: if Redis is unreachable the token is treated
as revoked.
"""

import logging
import time

from app.utils.redis_client import get_redis

logger = logging.getLogger(__name__)


class TokenRevocation:
    """Manage JWT token revocation with Redis."""

    @staticmethod
    async def revoke_token(token: str, expires_at: float) -> bool:
        """Add a token to the revocation list until `expires_at` (unix time)."""
        ttl = int(expires_at - time.time())
        if ttl <= 0:
            # Already expired, nothing to blacklist
            return True

        redis_client = await get_redis()
        try:
            await redis_client.setex(f"revoked:{token}", ttl, str(int(time.time())))
            return True
        except Exception:
            logger.exception("Failed to revoke token")
            return False

    @staticmethod
    async def is_revoked(token: str) -> bool:
        redis_client = await get_redis()
        try:
            return await redis_client.exists(f"revoked:{token}") > 0
        except Exception:
            logger.exception("Failed to check token revocation")
            return True

    @staticmethod
    async def revoke_all_user_tokens(user_id: str, duration: int = 86400) -> bool:
        """Revoke every token issued to `user_id` for `duration` seconds."""
        redis_client = await get_redis()
        try:
            await redis_client.setex(
                f"revoked:user:{user_id}", duration, str(int(time.time()))
            )
            return True
        except Exception:
            logger.exception("Failed to revoke tokens for user %s", user_id)
            return False

    @staticmethod
    async def clear_user_revocation(user_id: str) -> bool:
        """Lift a user-wide revocation (account reactivated)."""
        redis_client = await get_redis()
        try:
            await redis_client.delete(f"revoked:user:{user_id}")
            return True
        except Exception:
            logger.exception("Failed to clear revocation for user %s", user_id)
            return False

    @staticmethod
    async def is_user_revoked(user_id: str) -> bool:
        redis_client = await get_redis()
        try:
            return await redis_client.exists(f"revoked:user:{user_id}") > 0
        except Exception:
            logger.exception("Failed to check user revocation")
            return True
