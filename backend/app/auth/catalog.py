"""The closed permission catalog.

Tokens are defined here, not in the DB. Their spellings are the contract
with every screen and backend validator: adding one is backward
compatible, renaming one is a breaking change that needs a migration of
every role, template and stored override that references the old name.

Permission naming: `<domain>.<action>`
  Domains: client, visit, clinical, program, report, analytics, form,
           followup, intervention, outreach, user, system
"""

from __future__ import annotations

from collections.abc import Iterable


# ── Catalog ─────────────────────────────────────────────────

# Client management
CLIENT_VIEW = "client.view"
CLIENT_CREATE = "client.create"
CLIENT_EDIT = "client.edit"
CLIENT_DELETE = "client.delete"
CLIENT_VIEW_SENSITIVE = "client.view_sensitive"
CLIENT_VIEW_LIMITED = "client.view_limited"      # initials only

# Visits
VISIT_VIEW = "visit.view"
VISIT_CREATE = "visit.create"
VISIT_EDIT = "visit.edit"
VISIT_DELETE = "visit.delete"

# Clinical
CLINICAL_VIEW = "clinical.view"
CLINICAL_CREATE = "clinical.create"
CLINICAL_EDIT = "clinical.edit"
CLINICAL_APPROVE = "clinical.approve"

# Programs
PROGRAM_VIEW = "program.view"
PROGRAM_MANAGE = "program.manage"
PROGRAM_APPROVE = "program.approve"

# Reports & analytics
REPORT_VIEW = "report.view"
REPORT_CREATE = "report.create"
REPORT_EXPORT = "report.export"
REPORT_DOWNLOAD = "report.download"
ANALYTICS_VIEW = "analytics.view"
ANALYTICS_AGGREGATED_ONLY = "analytics.aggregated_only"

# Forms
FORM_VIEW = "form.view"
FORM_MANAGE = "form.manage"

# Follow-ups
FOLLOWUP_VIEW = "followup.view"
FOLLOWUP_MANAGE = "followup.manage"

# Interventions
INTERVENTION_VIEW = "intervention.view"
INTERVENTION_MANAGE = "intervention.manage"

# Outreach
OUTREACH_VIEW = "outreach.view"
OUTREACH_CREATE = "outreach.create"
OUTREACH_EDIT = "outreach.edit"

# User management
USER_VIEW = "user.view"
USER_CREATE = "user.create"
USER_EDIT = "user.edit"
USER_DELETE = "user.delete"
USER_MANAGE_ROLES = "user.manage_roles"
USER_MANAGE_PERMISSIONS = "user.manage_permissions"

# System
SYSTEM_SETTINGS = "system.settings"
SYSTEM_AUDIT = "system.audit"
SYSTEM_SYNC = "system.sync"
SYSTEM_BACKUP = "system.backup"


PERMISSION_GROUPS: dict[str, tuple[str, ...]] = {
    "client": (
        CLIENT_VIEW, CLIENT_CREATE, CLIENT_EDIT, CLIENT_DELETE,
        CLIENT_VIEW_SENSITIVE, CLIENT_VIEW_LIMITED,
    ),
    "visit": (VISIT_VIEW, VISIT_CREATE, VISIT_EDIT, VISIT_DELETE),
    "clinical": (CLINICAL_VIEW, CLINICAL_CREATE, CLINICAL_EDIT, CLINICAL_APPROVE),
    "program": (PROGRAM_VIEW, PROGRAM_MANAGE, PROGRAM_APPROVE),
    "report": (REPORT_VIEW, REPORT_CREATE, REPORT_EXPORT, REPORT_DOWNLOAD),
    "analytics": (ANALYTICS_VIEW, ANALYTICS_AGGREGATED_ONLY),
    "form": (FORM_VIEW, FORM_MANAGE),
    "followup": (FOLLOWUP_VIEW, FOLLOWUP_MANAGE),
    "intervention": (INTERVENTION_VIEW, INTERVENTION_MANAGE),
    "outreach": (OUTREACH_VIEW, OUTREACH_CREATE, OUTREACH_EDIT),
    "user": (
        USER_VIEW, USER_CREATE, USER_EDIT, USER_DELETE,
        USER_MANAGE_ROLES, USER_MANAGE_PERMISSIONS,
    ),
    "system": (SYSTEM_SETTINGS, SYSTEM_AUDIT, SYSTEM_SYNC, SYSTEM_BACKUP),
}

ALL_PERMISSIONS: frozenset[str] = frozenset(
    token for tokens in PERMISSION_GROUPS.values() for token in tokens
)


def all_permissions() -> frozenset[str]:
    """Every catalog token (used by the "full access" grants)."""
    return ALL_PERMISSIONS


def is_known_permission(token: object) -> bool:
    return isinstance(token, str) and token in ALL_PERMISSIONS


def permission_domain(token: str) -> str:
    """`"clinical.approve"` → `"clinical"`."""
    return token.split(".", 1)[0]


def unknown_permissions(tokens: Iterable[str]) -> list[str]:
    """Return the tokens that are not in the catalog, sorted."""
    return sorted({t for t in tokens if not is_known_permission(t)})


