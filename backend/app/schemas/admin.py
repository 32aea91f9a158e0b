"""Pydantic schemas for the admin area: registry views, users, overrides, audit log."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


# ── Registry views ───────────────────────────────────────────

class PermissionGroup(BaseModel):
    domain: str
    permissions: list[str]


class RoleOut(BaseModel):
    name: str
    description: str
    permissions: list[str]
    restrictions: dict[str, bool]


class TemplateOut(BaseModel):
    key: str
    name: str
    description: str
    permissions: list[str]


# ── User management ──────────────────────────────────────────

class UserSummary(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    location: str | None = None
    is_active: bool
    permission_overrides: list[str]
    created_at: datetime


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str
    role: str = "Viewer"
    location: str | None = None


class UserUpdate(BaseModel):
    role: str | None = None
    full_name: str | None = None
    location: str | None = None


# ── Permission overrides ─────────────────────────────────────

class OverridesUpdate(BaseModel):
    """Full replacement of a user's override list."""
    overrides: list[str]


class TemplateApplyRequest(BaseModel):
    template: str
    # apply: overrides := template.  add: overrides ∪= template.
    mode: Literal["apply", "add"] = "apply"


class UserPermissionsOut(BaseModel):
    user_id: str
    role: str
    role_permissions: list[str]
    overrides: list[str]
    effective: list[str]


# ── Audit log ────────────────────────────────────────────────

class AuditEntry(BaseModel):
    id: str
    user_id: str
    user_name: str
    action: str
    entity_type: str
    entity_id: str | None = None
    summary: str | None = None
    changes: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
