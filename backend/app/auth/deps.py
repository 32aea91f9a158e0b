"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user          → decode JWT, load user from DB, return User
  get_access_context        → AccessContext resolved from that user
  require_permission(...)   → user must hold ALL listed permissions
  require_any_permission(…) → user must hold at least one
  require_guard(...)        → user must pass a composite domain guard

Permissions are re-resolved from the user row and the live role registry
on every request. The `permissions` claim inside the JWT is never read
here: it is a rendering hint for clients and can be stale the moment an
admin edits a role or a user's overrides.
"""

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.guards import GUARDS, AccessContext
from app.auth.jwt import ACCESS, decode_token
from app.auth.revocation import TokenRevocation
from app.auth.session import access_context_for
from app.database import get_db
from app.middleware.exceptions import PermissionDeniedError
from app.models.user import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, check revocation, and load the active user."""
    payload = decode_token(token, expected_type=ACCESS)
    user_id: str | None = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await TokenRevocation.is_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await TokenRevocation.is_user_revoked(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


async def get_access_context(
    user: User = Depends(get_current_user),
) -> AccessContext:
    """Effective permissions for this request, resolved from the DB row."""
    return access_context_for(user)


def _deny(ctx: AccessContext, reason: str, missing: list[str] | None = None):
    logger.warning(
        "Access denied: %s",
        reason,
        extra={"user_id": ctx.user_id, "role": ctx.role, "missing": missing},
    )
    raise PermissionDeniedError(reason, missing=missing)


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: restrict to users who hold ALL listed permissions.

    Usage:
        @router.post("/visits")
        async def create_visit(user: User = Depends(require_permission("visit.create"))):
            ...
    """
    async def _check(
        user: User = Depends(get_current_user),
        ctx: AccessContext = Depends(get_access_context),
    ) -> User:
        missing = [p for p in perms if not ctx.can(p)]
        if missing:
            _deny(ctx, f"Missing permissions: {', '.join(missing)}", missing)
        return user

    return _check


def require_any_permission(*perms: str):
    """Dependency factory: restrict to users who hold at least one permission."""
    async def _check(
        user: User = Depends(get_current_user),
        ctx: AccessContext = Depends(get_access_context),
    ) -> User:
        if not ctx.can_any(perms):
            _deny(ctx, f"Requires one of: {', '.join(perms)}", list(perms))
        return user

    return _check


def require_guard(guard: str | Callable[[AccessContext], bool]):
    """Dependency factory: restrict to users passing a composite guard.

    Accepts a guard name from `app.auth.guards.GUARDS` or the predicate
    itself. Unknown names deny everyone.

    Usage:
        @router.get("/clients/{client_id}/hiv")
        async def hiv_tab(user: User = Depends(require_guard("hiv"))):
            ...
    """
    if callable(guard):
        predicate, label = guard, getattr(guard, "__name__", "guard")
    else:
        predicate, label = GUARDS.get(guard), guard

    async def _check(
        user: User = Depends(get_current_user),
        ctx: AccessContext = Depends(get_access_context),
    ) -> User:
        if predicate is None or not predicate(ctx):
            _deny(ctx, f"Access to {label} denied")
        return user

    return _check
