from typing import Any

from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    location: str | None = None
    is_active: bool
    permission_overrides: list[str]
    permissions: list[str]


# ── Login ────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


# ── Token refresh ────────────────────────────────────────────

class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


# ── Session restore ──────────────────────────────────────────

class SessionRestoreRequest(BaseModel):
    """A user object the client persisted locally (e.g. localStorage).

    Only its `id` is used to find the live record; any role, overrides or
    permissions it carries are ignored.
    """
    user: dict[str, Any]


class AccessSummary(BaseModel):
    """What the current user may see: flat permissions plus composite guards."""
    role: str | None
    permissions: list[str]
    guards: dict[str, bool]
    visit_modules: dict[str, bool]
