"""Admin router: registry views, user management, permission overrides, audit log.

Endpoints:
    GET    /api/admin/permissions                      Catalog grouped by domain
    GET    /api/admin/roles                            Role registry matrix
    GET    /api/admin/templates                        Permission templates
    GET    /api/admin/users                            List users
    POST   /api/admin/users                            Create user (empty overrides)
    PATCH  /api/admin/users/{user_id}                  Update name/location/role
    POST   /api/admin/users/{user_id}/deactivate       Deactivate user
    POST   /api/admin/users/{user_id}/activate         Reactivate user
    GET    /api/admin/users/{user_id}/permissions      Role, overrides, effective set
    PUT    /api/admin/users/{user_id}/permissions      Replace override list
    POST   /api/admin/users/{user_id}/permissions/template   Apply or add a template
    GET    /api/admin/audit                            Audit log

Override writes produce a new list and persist it; they never touch the
role. A role change keeps the user's overrides.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import catalog as p
from app.auth.catalog import PERMISSION_GROUPS, unknown_permissions
from app.auth.deps import (
    get_access_context,
    require_guard,
    require_permission,
)
from app.auth.guards import AccessContext
from app.auth.password import hash_password
from app.auth.permissions import (
    add_template,
    apply_template,
    normalize_overrides,
    resolve_permissions,
)
from app.auth.revocation import TokenRevocation
from app.auth.roles import (
    PERMISSION_TEMPLATES,
    ROLE_DEFINITIONS,
    get_template,
    is_known_role,
    role_permissions,
)
from app.database import get_db
from app.middleware.exceptions import (
    BusinessLogicError,
    PermissionDeniedError,
    ResourceNotFoundError,
    UnknownPermissionError,
    UnknownRoleError,
    UnknownTemplateError,
)
from app.models.audit_log import AuditLog
from app.models.user import User
from app.schemas.admin import (
    AuditEntry,
    CreateUserRequest,
    OverridesUpdate,
    PermissionGroup,
    RoleOut,
    TemplateApplyRequest,
    TemplateOut,
    UserPermissionsOut,
    UserSummary,
    UserUpdate,
)
from app.schemas.common import PaginatedResponse
from app.utils.audit import log_audit

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


def _summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        location=user.location,
        is_active=user.is_active,
        permission_overrides=normalize_overrides(user.permission_overrides),
        created_at=user.created_at,
    )


def _permissions_out(user: User) -> UserPermissionsOut:
    return UserPermissionsOut(
        user_id=user.id,
        role=user.role,
        role_permissions=sorted(role_permissions(user.role)),
        overrides=normalize_overrides(user.permission_overrides),
        effective=resolve_permissions(user.role, user.permission_overrides),
    )


async def _store_overrides(
    db: AsyncSession,
    admin: User,
    target: User,
    new_overrides: list[str],
    *,
    action: str,
    summary: str,
) -> UserPermissionsOut:
    before = normalize_overrides(target.permission_overrides)
    target.permission_overrides = new_overrides
    await db.flush()
    await log_audit(
        db, admin, action=action, entity_type="user",
        entity_id=target.id, summary=summary,
        changes={"before": before, "after": new_overrides},
    )
    logger.info(
        "Overrides for user %s changed by %s: %d → %d tokens",
        target.id, admin.id, len(before), len(new_overrides),
    )
    return _permissions_out(target)


# ── Registry views ───────────────────────────────────────────

@router.get("/permissions", response_model=list[PermissionGroup])
async def list_permissions(_user: User = Depends(require_permission(p.USER_VIEW))):
    """The permission catalog grouped by domain."""
    return [
        PermissionGroup(domain=domain, permissions=list(tokens))
        for domain, tokens in PERMISSION_GROUPS.items()
    ]


@router.get("/roles", response_model=list[RoleOut])
async def list_roles(_user: User = Depends(require_permission(p.USER_VIEW))):
    """Roles & permissions matrix."""
    return [
        RoleOut(
            name=role.name,
            description=role.description,
            permissions=sorted(role.permissions),
            restrictions=dict(role.restrictions),
        )
        for role in ROLE_DEFINITIONS.values()
    ]


@router.get("/templates", response_model=list[TemplateOut])
async def list_templates(_user: User = Depends(require_permission(p.USER_VIEW))):
    return [
        TemplateOut(
            key=t.key,
            name=t.name,
            description=t.description,
            permissions=sorted(t.permissions),
        )
        for t in PERMISSION_TEMPLATES.values()
    ]


# ── Users ────────────────────────────────────────────────────

@router.get("/users", response_model=list[UserSummary])
async def list_users(
    include_inactive: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_guard("user_management")),
):
    stmt = select(User).order_by(User.full_name)
    if not include_inactive:
        stmt = stmt.where(User.is_active == True)  # noqa: E712
    result = await db.execute(stmt)
    return [_summary(u) for u in result.scalars().all()]


@router.post("/users", response_model=UserSummary, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_CREATE)),
):
    """Create a user. Overrides always start empty."""
    if not is_known_role(body.role):
        raise UnknownRoleError(body.role)

    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        role=body.role,
        location=body.location,
        permission_overrides=[],
        created_by=admin.id,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    await log_audit(
        db, admin, action="create", entity_type="user", entity_id=user.id,
        summary=f"Created user {user.email}",
        changes={"email": user.email, "role": user.role, "location": user.location},
    )
    return _summary(user)


@router.patch("/users/{user_id}", response_model=UserSummary)
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_EDIT)),
    ctx: AccessContext = Depends(get_access_context),
):
    """Update profile fields or role. Overrides are left as they are."""
    user = await _get_user(db, user_id)
    changes: dict = {}

    if body.role is not None and body.role != user.role:
        if not ctx.can(p.USER_MANAGE_ROLES):
            raise PermissionDeniedError(
                "Changing roles requires user.manage_roles",
                missing=[p.USER_MANAGE_ROLES],
            )
        if not is_known_role(body.role):
            raise UnknownRoleError(body.role)
        changes["role"] = {"before": user.role, "after": body.role}
        user.role = body.role

    if body.full_name is not None and body.full_name != user.full_name:
        changes["full_name"] = {"before": user.full_name, "after": body.full_name}
        user.full_name = body.full_name

    if body.location is not None and body.location != user.location:
        changes["location"] = {"before": user.location, "after": body.location}
        user.location = body.location

    if changes:
        await db.flush()
        await log_audit(
            db, admin,
            action="role_change" if "role" in changes else "update",
            entity_type="user", entity_id=user.id,
            summary=f"Updated user {user.email}: {', '.join(changes)}",
            changes=changes,
        )
    return _summary(user)


@router.post("/users/{user_id}/deactivate", response_model=UserSummary)
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_DELETE)),
):
    user = await _get_user(db, user_id)
    if user.id == admin.id:
        raise BusinessLogicError("You cannot deactivate your own account")
    if not user.is_active:
        raise BusinessLogicError("User is already deactivated")

    user.is_active = False
    await db.flush()
    await TokenRevocation.revoke_all_user_tokens(user.id)
    await log_audit(
        db, admin, action="deactivate", entity_type="user", entity_id=user.id,
        summary=f"Deactivated user {user.email}",
    )
    return _summary(user)


@router.post("/users/{user_id}/activate", response_model=UserSummary)
async def activate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_EDIT)),
):
    user = await _get_user(db, user_id)
    if user.is_active:
        raise BusinessLogicError("User is already active")

    user.is_active = True
    await db.flush()
    await TokenRevocation.clear_user_revocation(user.id)
    await log_audit(
        db, admin, action="activate", entity_type="user", entity_id=user.id,
        summary=f"Reactivated user {user.email}",
    )
    return _summary(user)


# ── Permission overrides ─────────────────────────────────────

@router.get("/users/{user_id}/permissions", response_model=UserPermissionsOut)
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission(p.USER_VIEW)),
):
    return _permissions_out(await _get_user(db, user_id))


@router.put("/users/{user_id}/permissions", response_model=UserPermissionsOut)
async def replace_user_overrides(
    user_id: str,
    body: OverridesUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_MANAGE_PERMISSIONS)),
):
    """Replace the user's override list.

    Tokens must come from the catalog. Listing a token the role already
    grants is allowed and harmless.
    """
    unknown = unknown_permissions(body.overrides)
    if unknown:
        raise UnknownPermissionError(unknown)

    target = await _get_user(db, user_id)
    return await _store_overrides(
        db, admin, target, normalize_overrides(body.overrides),
        action="permissions_update",
        summary=f"Edited permission overrides for {target.email}",
    )


@router.post("/users/{user_id}/permissions/template", response_model=UserPermissionsOut)
async def apply_permission_template(
    user_id: str,
    body: TemplateApplyRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission(p.USER_MANAGE_PERMISSIONS)),
):
    """Apply (replace) or add (merge) a permission template."""
    template = get_template(body.template)
    if template is None:
        raise UnknownTemplateError(body.template)

    target = await _get_user(db, user_id)
    if body.mode == "apply":
        new_overrides = apply_template(template.key)
    else:
        new_overrides = add_template(target.permission_overrides, template.key)

    return await _store_overrides(
        db, admin, target, new_overrides,
        action="template_applied",
        summary=f"{body.mode.capitalize()} template {template.name} for {target.email}",
    )


# ── Audit log ────────────────────────────────────────────────

@router.get("/audit", response_model=PaginatedResponse[AuditEntry])
async def list_audit(
    entity_type: str | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_guard("audit_log")),
):
    filters = []
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if action:
        filters.append(AuditLog.action == action)

    total = (
        await db.execute(select(func.count()).select_from(AuditLog).where(*filters))
    ).scalar_one()
    result = await db.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse[AuditEntry](
        items=[AuditEntry.model_validate(e) for e in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )
