"""Role registry and permission templates.

Roles live here, not in the DB: a role is a name mapped to a fixed set of
catalog tokens plus free-text restriction notes. Editing a role means
editing this module, and the change reaches every holder of the role on
their next permission resolution (nothing is copied onto user rows).

"System Admin" and "Admin" map to the same full set.

Restrictions are documentation for the admin screens only; the resolver
never reads them.

Templates are named bundles used to bulk-set a user's overrides.
"Apply" replaces the override list, "add" merges into it. A template has
no identity once applied: the user row only stores the resulting tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.auth import catalog as p


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    permissions: frozenset[str]
    restrictions: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class PermissionTemplate:
    key: str
    name: str
    description: str
    permissions: frozenset[str]


# ── Role → permissions ──────────────────────────────────────

_ROLES: tuple[RoleDefinition, ...] = (
    RoleDefinition(
        name="System Admin",
        description="Full unrestricted access to everything",
        permissions=p.ALL_PERMISSIONS,
    ),
    RoleDefinition(
        name="Admin",
        description="Full unrestricted access to everything",
        permissions=p.ALL_PERMISSIONS,
    ),
    RoleDefinition(
        name="Viewer",
        description="View-only access to all modules",
        permissions=frozenset({
            p.CLIENT_VIEW, p.VISIT_VIEW, p.PROGRAM_VIEW, p.REPORT_VIEW,
            p.ANALYTICS_VIEW, p.FORM_VIEW, p.FOLLOWUP_VIEW,
            p.INTERVENTION_VIEW, p.OUTREACH_VIEW,
        }),
    ),
    RoleDefinition(
        name="Data Entry",
        description="Enter, verify, clean, and validate data",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_CREATE, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.PROGRAM_VIEW,
            p.REPORT_VIEW, p.REPORT_CREATE,
            p.FORM_VIEW,
            p.OUTREACH_VIEW, p.OUTREACH_CREATE, p.OUTREACH_EDIT,
        }),
        restrictions={"cannotModifyUserRoles": True, "cannotEditClinicalNotes": True},
    ),
    RoleDefinition(
        name="Clinician",
        description="View clinical history, enter clinical notes, upload lab results, schedule care",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_VIEW_SENSITIVE,
            p.VISIT_VIEW, p.VISIT_CREATE,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE, p.CLINICAL_EDIT,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.REPORT_VIEW,
        }),
        restrictions={"cannotDelete": True, "cannotExportSystemReports": True},
    ),
    RoleDefinition(
        name="M&E Officer",
        description="View analytics, export reports, generate dashboards",
        permissions=frozenset({
            p.CLIENT_VIEW, p.VISIT_VIEW, p.PROGRAM_VIEW,
            p.REPORT_VIEW, p.REPORT_CREATE, p.REPORT_EXPORT, p.REPORT_DOWNLOAD,
            p.ANALYTICS_VIEW, p.FORM_VIEW, p.SYSTEM_AUDIT,
        }),
        restrictions={"cannotEditClinical": True, "cannotOverrideClientData": True},
    ),
    RoleDefinition(
        name="Program Manager",
        description="Approve data, manage follow-ups, edit program entries, view all indicators",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_EDIT,
            p.PROGRAM_VIEW, p.PROGRAM_MANAGE, p.PROGRAM_APPROVE,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.INTERVENTION_VIEW, p.INTERVENTION_MANAGE,
            p.REPORT_VIEW, p.REPORT_CREATE,
            p.ANALYTICS_VIEW,
            p.CLINICAL_APPROVE,
        }),
        restrictions={"cannotChangeSystemSettings": True},
    ),
    RoleDefinition(
        name="Program Coordinator",
        description="Manage daily operations, assign outreach tasks, view client progress",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_VIEW_LIMITED,
            p.VISIT_VIEW, p.VISIT_CREATE,
            p.PROGRAM_VIEW,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.OUTREACH_VIEW, p.OUTREACH_CREATE,
            p.REPORT_VIEW,
            p.ANALYTICS_AGGREGATED_ONLY,
        }),
        restrictions={"cannotViewConfidentialClinical": True},
    ),
    RoleDefinition(
        name="Outreach Worker",
        description="Register clients, record outreach contacts, upload field notes",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_CREATE, p.CLIENT_EDIT, p.CLIENT_VIEW_LIMITED,
            p.VISIT_CREATE,
            p.OUTREACH_VIEW, p.OUTREACH_CREATE, p.OUTREACH_EDIT,
            p.FOLLOWUP_VIEW,
        }),
        restrictions={"cannotAccessSensitiveMedical": True},
    ),
    RoleDefinition(
        name="HTS Counsellor",
        description="Record HIV Testing Services data, sessions, linkage to care",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_CREATE,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
        }),
        restrictions={"cannotEditProgramIndicators": True},
    ),
    RoleDefinition(
        name="Psychologist",
        description="Record psychological assessments, CBT attendance, mental health notes",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_VIEW_SENSITIVE,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE, p.CLINICAL_EDIT,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
        }),
        restrictions={"cannotAccessNSPMATData": True},
    ),
    RoleDefinition(
        name="Counsellor",
        description="Conduct counseling sessions, record session notes, track client progress",
        permissions=frozenset({
            p.CLIENT_VIEW,
            p.VISIT_VIEW, p.VISIT_CREATE,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
        }),
        restrictions={"cannotAccessNSPMATData": True},
    ),
    RoleDefinition(
        name="Nurse",
        description="Clinical vitals, follow-ups, schedule reviews",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_VIEW_SENSITIVE,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE, p.CLINICAL_EDIT,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
        }),
        restrictions={"cannotExportSystemReports": True},
    ),
    RoleDefinition(
        name="Paralegal",
        description="Record legal support sessions, GBV screenings, referrals",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_VIEW_LIMITED,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.FOLLOWUP_VIEW,
            p.REPORT_VIEW,
        }),
        restrictions={"cannotAccessMedicalDrugHistory": True},
    ),
    RoleDefinition(
        name="Social Worker",
        description="Manage case plans, follow-up notes, home visits tracking",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.INTERVENTION_VIEW, p.INTERVENTION_MANAGE,
        }),
        restrictions={"cannotAccessClinicalModules": True},
    ),
    RoleDefinition(
        name="Data Officer",
        description="Enter, verify, clean, and validate data, run queries",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_CREATE, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.PROGRAM_VIEW,
            p.REPORT_VIEW, p.REPORT_CREATE,
            p.FORM_VIEW,
            p.ANALYTICS_VIEW,
        }),
        restrictions={"cannotModifyUserRoles": True, "cannotEditClinicalNotes": True},
    ),
)

ROLE_DEFINITIONS: dict[str, RoleDefinition] = {role.name: role for role in _ROLES}


def get_role(name: object) -> RoleDefinition | None:
    if not isinstance(name, str):
        return None
    return ROLE_DEFINITIONS.get(name)


def role_permissions(name: object) -> frozenset[str]:
    """Return the role's permission set; unknown roles get the empty set.

    Reads the registry at call time; nothing is cached between a
    registry edit and resolution.
    """
    role = get_role(name)
    return role.permissions if role else frozenset()


def role_restrictions(name: object) -> dict[str, bool]:
    role = get_role(name)
    return dict(role.restrictions) if role else {}


def role_names() -> list[str]:
    return list(ROLE_DEFINITIONS)


def is_known_role(name: object) -> bool:
    return get_role(name) is not None


# ── Permission templates ────────────────────────────────────

_TEMPLATES: tuple[PermissionTemplate, ...] = (
    PermissionTemplate(
        key="read-only",
        name="Read Only",
        description="View-only access to all modules",
        permissions=frozenset({
            p.CLIENT_VIEW, p.VISIT_VIEW, p.PROGRAM_VIEW, p.REPORT_VIEW,
            p.ANALYTICS_VIEW, p.FORM_VIEW, p.FOLLOWUP_VIEW,
            p.INTERVENTION_VIEW, p.OUTREACH_VIEW,
        }),
    ),
    PermissionTemplate(
        key="data-entry",
        name="Data Entry Only",
        description="Can create and edit data but not delete",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_CREATE, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_CREATE, p.VISIT_EDIT,
            p.OUTREACH_VIEW, p.OUTREACH_CREATE, p.OUTREACH_EDIT,
        }),
    ),
    PermissionTemplate(
        key="supervisor",
        name="Supervisor",
        description="Can review, approve, and manage most operations",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_EDIT,
            p.CLINICAL_VIEW, p.CLINICAL_APPROVE,
            p.PROGRAM_VIEW, p.PROGRAM_APPROVE,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.REPORT_VIEW, p.REPORT_CREATE, p.REPORT_EXPORT,
            p.ANALYTICS_VIEW,
        }),
    ),
    PermissionTemplate(
        key="manager",
        name="Manager",
        description="Full operational access except system administration",
        permissions=frozenset({
            p.CLIENT_VIEW, p.CLIENT_EDIT,
            p.VISIT_VIEW, p.VISIT_EDIT,
            p.CLINICAL_VIEW, p.CLINICAL_APPROVE,
            p.PROGRAM_VIEW, p.PROGRAM_APPROVE, p.PROGRAM_MANAGE,
            p.FOLLOWUP_VIEW, p.FOLLOWUP_MANAGE,
            p.INTERVENTION_MANAGE,
            p.REPORT_VIEW, p.REPORT_CREATE, p.REPORT_EXPORT, p.REPORT_DOWNLOAD,
            p.ANALYTICS_VIEW,
            p.USER_VIEW,
        }),
    ),
    PermissionTemplate(
        key="clinical-restricted",
        name="Clinical Restricted",
        description="Clinical access without sensitive data",
        permissions=frozenset({
            p.CLIENT_VIEW,
            p.VISIT_VIEW, p.VISIT_CREATE,
            p.CLINICAL_VIEW, p.CLINICAL_CREATE,
            p.FOLLOWUP_VIEW,
        }),
    ),
    PermissionTemplate(
        key="full-access",
        name="Full Access",
        description="Unrestricted access to all features",
        permissions=p.ALL_PERMISSIONS,
    ),
)

PERMISSION_TEMPLATES: dict[str, PermissionTemplate] = {t.key: t for t in _TEMPLATES}


def get_template(key: object) -> PermissionTemplate | None:
    if not isinstance(key, str):
        return None
    return PERMISSION_TEMPLATES.get(key)


def template_permissions(key: object) -> frozenset[str]:
    """Return the template's permission set; unknown templates get the empty set."""
    template = get_template(key)
    return template.permissions if template else frozenset()


def template_names() -> list[str]:
    return list(PERMISSION_TEMPLATES)
