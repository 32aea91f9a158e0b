"""Composite domain guards over an explicit AccessContext.

Screens used to compare `user.role` against string literals next to
catalog-token checks. Those checks are collected here as named guards so
there is one place that decides, e.g., who may open the HIV module.

Each composite guard is two-path on purpose:

    role in <whitelist>  OR  <permission check>

Some roles are granted a module by identity even when no granular token
in their registry set covers it (an Outreach Worker opens the NSP module,
an HTS Counsellor the HIV module). A guard can only become a single
token check once those roles' access has moved into the registry.

Every guard returns False for an empty or missing permission set unless
the role path grants access.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from app.auth import catalog as p
from app.auth.permissions import (
    has_all_permissions,
    has_any_permission,
    has_permission,
)


def _as_requirement(permissions: object) -> object:
    # Generators become tuples; anything malformed is passed on and denied.
    if isinstance(permissions, Iterable) and not isinstance(permissions, (str, Mapping)):
        return tuple(permissions)
    return permissions


ADMIN_ROLES = frozenset({"System Admin", "Admin"})


@dataclass(frozen=True)
class AccessContext:
    """The authorization value threaded through a request.

    Built by `app.auth.session.access_context_for` from a freshly resolved
    user; never mutated afterwards.
    """

    user_id: str | None
    role: str | None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def can(self, permission: str) -> bool:
        return has_permission(self.permissions, permission)

    def can_any(self, permissions: Iterable[str]) -> bool:
        return has_any_permission(self.permissions, _as_requirement(permissions))

    def can_all(self, permissions: Iterable[str]) -> bool:
        return has_all_permissions(self.permissions, _as_requirement(permissions))

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


ANONYMOUS = AccessContext(user_id=None, role=None)


# ── Sensitive data ──────────────────────────────────────────

HIV_ROLES = ADMIN_ROLES | {"Clinician", "Nurse", "HTS Counsellor"}


def can_access_hiv(ctx: AccessContext) -> bool:
    """HIV management module and the client HIV tab."""
    return ctx.role in HIV_ROLES or ctx.can(p.CLIENT_VIEW_SENSITIVE)


def can_view_sensitive_client_data(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.can(p.CLIENT_VIEW_SENSITIVE)


def can_edit_client(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.can(p.CLIENT_EDIT)


# ── Visit sub-modules ───────────────────────────────────────

def can_view_clinical(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Clinician", "Nurse") or ctx.can(p.CLINICAL_VIEW)


def can_edit_clinical(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Clinician") or ctx.can(p.CLINICAL_EDIT)


def can_view_mental_health(ctx: AccessContext) -> bool:
    return (
        ctx.is_admin
        or ctx.has_role("Psychologist", "Counsellor")
        or ctx.can(p.VISIT_VIEW)
    )


def can_edit_mental_health(ctx: AccessContext) -> bool:
    # No catalog token covers mental-health edits; identity only.
    return ctx.is_admin or ctx.has_role("Psychologist", "Counsellor")


def can_view_psychosocial(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role(
        "Social Worker", "Paralegal", "Counsellor", "Program Manager",
    )


def can_view_nsp(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Outreach Worker", "Clinician")


def can_view_condom(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Outreach Worker", "HTS Counsellor", "Counsellor")


def can_view_mat(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Clinician", "Nurse")


def can_edit_mat(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("Clinician")


def visit_module_access(ctx: AccessContext) -> dict[str, bool]:
    """Disclosure map for the visit detail screen."""
    return {
        "clinical": can_view_clinical(ctx),
        "clinical_edit": can_edit_clinical(ctx),
        "mental_health": can_view_mental_health(ctx),
        "mental_health_edit": can_edit_mental_health(ctx),
        "psychosocial": can_view_psychosocial(ctx),
        "nsp": can_view_nsp(ctx),
        "condom": can_view_condom(ctx),
        "mat": can_view_mat(ctx),
        "mat_edit": can_edit_mat(ctx),
    }


# ── Navigation / administration ─────────────────────────────

def can_access_admin_panel(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.can(p.USER_MANAGE_PERMISSIONS)


def can_manage_users(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("M&E Officer") or ctx.can(p.USER_VIEW)


def can_view_audit_log(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.can(p.SYSTEM_AUDIT)


def can_view_reports(ctx: AccessContext) -> bool:
    return ctx.is_admin or ctx.has_role("M&E Officer") or ctx.can(p.REPORT_VIEW)


# ── Registry ────────────────────────────────────────────────

GUARDS: dict[str, Callable[[AccessContext], bool]] = {
    "hiv": can_access_hiv,
    "sensitive_client_data": can_view_sensitive_client_data,
    "client_edit": can_edit_client,
    "clinical_view": can_view_clinical,
    "clinical_edit": can_edit_clinical,
    "mental_health_view": can_view_mental_health,
    "mental_health_edit": can_edit_mental_health,
    "psychosocial_view": can_view_psychosocial,
    "nsp_view": can_view_nsp,
    "condom_view": can_view_condom,
    "mat_view": can_view_mat,
    "mat_edit": can_edit_mat,
    "admin_panel": can_access_admin_panel,
    "user_management": can_manage_users,
    "audit_log": can_view_audit_log,
    "reports": can_view_reports,
}


def evaluate_guard(name: str, ctx: AccessContext) -> bool:
    """Run a named guard; unknown names deny."""
    guard = GUARDS.get(name)
    return bool(guard and guard(ctx))


def evaluate_all_guards(ctx: AccessContext) -> dict[str, bool]:
    return {name: guard(ctx) for name, guard in GUARDS.items()}
