"""Auth routes: login, refresh, session restore, logout.

Route overview:
  POST /login        email + password login
  POST /refresh      exchange a refresh token for new access + refresh tokens
  GET  /me           current user profile + freshly resolved permissions
  POST /session      restore a client-stored user object
  GET  /me/access    permissions plus composite guard results
  POST /logout       revoke the presented access token and, if given, its refresh token

Login, refresh and both restore paths go through
`app.auth.session.recompute_session`, so a role registry edit is picked up
without issuing a new token or migrating user rows.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_access_context, get_current_user, oauth2_scheme
from app.auth.guards import AccessContext, evaluate_all_guards, visit_module_access
from app.auth.jwt import REFRESH, create_access_token, create_refresh_token, decode_token
from app.auth.password import verify_password
from app.auth.permissions import normalize_overrides
from app.auth.revocation import TokenRevocation
from app.auth.session import recompute_session
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    AccessSummary,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    SessionRestoreRequest,
    TokenResponse,
    UserOut,
)
from app.utils.audit import log_audit

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def user_record(user: User) -> dict[str, Any]:
    """The stored fields of a user, before permission resolution."""
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "location": user.location,
        "is_active": user.is_active,
        "permission_overrides": normalize_overrides(user.permission_overrides),
    }


def build_user_out(user: User) -> UserOut:
    return UserOut(**recompute_session(user_record(user)))


def _build_token_response(user: User) -> TokenResponse:
    user_out = build_user_out(user)
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id,
            role=user.role,
            permissions=user_out.permissions,
        ),
        refresh_token=create_refresh_token(user_id=user.id, role=user.role),
        user=user_out,
    )


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Email + password login. Returns JWT pair and the resolved user."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    user.last_login_at = datetime.utcnow()
    await log_audit(
        db, user, action="login", entity_type="user", entity_id=user.id,
        summary=f"{user.email} logged in",
    )
    await db.flush()

    logger.info("User %s logged in as %s", user.id, user.role)
    return _build_token_response(user)


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new access + refresh token pair."""
    payload = decode_token(body.refresh_token, expected_type=REFRESH)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if await TokenRevocation.is_revoked(body.refresh_token):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user_id = payload.get("sub")
    if await TokenRevocation.is_user_revoked(user_id):
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    # Role or overrides may have changed since the last token
    return _build_token_response(user)


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    """Return the current user's profile and permissions (session restore)."""
    return build_user_out(user)


# ── POST /session ────────────────────────────────────────────

@router.post("/session")
async def restore_session(
    body: SessionRestoreRequest,
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Re-derive permissions for a user object the client kept locally.

    The stored object is returned with role, overrides and permissions
    replaced from the live record. Whatever `permissions` it carried is
    discarded.
    """
    stored_id = body.user.get("id")
    if stored_id is not None and str(stored_id) != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Stored session belongs to another user",
        )

    record = {k: v for k, v in body.user.items() if k != "permissionOverrides"}
    record.update(user_record(user))
    return recompute_session(record)


# ── GET /me/access ───────────────────────────────────────────

@router.get("/me/access", response_model=AccessSummary)
async def my_access(ctx: AccessContext = Depends(get_access_context)):
    """Effective permissions and the result of every composite guard."""
    return AccessSummary(
        role=ctx.role,
        permissions=sorted(ctx.permissions),
        guards=evaluate_all_guards(ctx),
        visit_modules=visit_module_access(ctx),
    )


# ── POST /logout ─────────────────────────────────────────────

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    body: LogoutRequest | None = None,
    token: str = Depends(oauth2_scheme),
    user: User = Depends(get_current_user),
):
    """Revoke the presented access token until it expires.

    A refresh token in the body is revoked too, so it cannot mint a new
    pair after logout. Refresh tokens of other users are ignored.
    """
    payload = decode_token(token)
    await TokenRevocation.revoke_token(token, float(payload.get("exp", 0)))

    if body and body.refresh_token:
        refresh_payload = decode_token(body.refresh_token, expected_type=REFRESH)
        if refresh_payload.get("sub") == user.id:
            await TokenRevocation.revoke_token(
                body.refresh_token, float(refresh_payload.get("exp", 0))
            )

    logger.info("User %s logged out", user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
