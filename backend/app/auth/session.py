"""Session recompute hook.

Runs at login, token refresh and session restore. Given the raw user
record (an ORM row or the dict a client kept in local storage), it
re-derives `permissions` from the live role registry plus the stored
overrides. Any `permissions` already on the record is discarded: that is
how a registry change (say, a new token for "Clinician") reaches users
who were provisioned before it, with no per-user migration.

Pure and local: no DB or network access here. Fetching the record is the
caller's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.auth.guards import ANONYMOUS, AccessContext
from app.auth.permissions import effective_permission_set, resolve_permissions

# Client-side records use camelCase, DB rows snake_case.
_OVERRIDE_KEYS = ("permissionOverrides", "permission_overrides")


def _stored_overrides(record: Mapping[str, Any]) -> object:
    for key in _OVERRIDE_KEYS:
        if key in record:
            return record[key]
    return None


def recompute_session(user_record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `user_record` with `permissions` freshly resolved.

    A record without a role gets only its overrides. The input is not
    modified.
    """
    record = dict(user_record)
    record["permissions"] = resolve_permissions(record.get("role"), _stored_overrides(record))
    return record


def access_context_for(user: Any) -> AccessContext:
    """Build the request's AccessContext from an ORM user or a mapping."""
    if user is None:
        return ANONYMOUS
    if isinstance(user, Mapping):
        user_id = user.get("id")
        role = user.get("role")
        overrides = _stored_overrides(user)
    else:
        user_id = getattr(user, "id", None)
        role = getattr(user, "role", None)
        overrides = getattr(user, "permission_overrides", None)
    return AccessContext(
        user_id=str(user_id) if user_id is not None else None,
        role=role if isinstance(role, str) else None,
        permissions=effective_permission_set(role, overrides),
    )
