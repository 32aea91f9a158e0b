"""Effective-permission resolution, flat guards and override writes.

Design:
  - Each user has a role (see `app.auth.roles`) and a list of
    `permission_overrides` stored on their row. Overrides only GRANT:
        effective = role_permissions(role) ∪ sanitize(overrides)
    There is no revoke path; changing a user's role keeps their overrides.
  - `resolve_permissions(role, overrides)` is total. Malformed overrides
    and unknown roles degrade to the empty set, nothing raises.
  - Role permissions are read from the live registry on every call, so
    the result is never staler than the registry itself.
  - Effective permissions are derived data. They are recomputed at login,
    refresh, session restore and on each authorized request; a copy sent
    back by a client or embedded in an old token is never trusted.
"""

from __future__ import annotations

from collections.abc import Set

from app.auth.roles import role_permissions, template_permissions

_COLLECTION_TYPES = (list, tuple, set, frozenset)


# ── Resolution ──────────────────────────────────────────────

def sanitize_overrides(overrides: object) -> frozenset[str]:
    """Coerce a stored override value into a set of tokens.

    Only list/tuple/set/frozenset values count as a collection. Anything
    else (None, the `{}` older records were created with, a bare string)
    means "no overrides". Non-string and blank entries are dropped.
    """
    if not isinstance(overrides, _COLLECTION_TYPES):
        return frozenset()
    return frozenset(
        item for item in overrides if isinstance(item, str) and item.strip()
    )


def effective_permission_set(role: object, overrides: object = None) -> frozenset[str]:
    """Union of the role's current permissions and the user's overrides."""
    return role_permissions(role) | sanitize_overrides(overrides)


def resolve_permissions(role: object, overrides: object = None) -> list[str]:
    """Compute effective permissions for a user.

    1. Read the role's permissions from the registry.
    2. Union with the sanitized overrides.
    3. Return a sorted list (stable for JWT claims and API responses).
    """
    return sorted(effective_permission_set(role, overrides))


# ── Override writes ─────────────────────────────────────────

def normalize_overrides(overrides: object) -> list[str]:
    """Override list as it should be persisted: deduplicated and sorted."""
    return sorted(sanitize_overrides(overrides))


def apply_template(template_key: object) -> list[str]:
    """"Apply": the new override list is exactly the template's tokens.

    Whatever the user held before is dropped.
    """
    return sorted(template_permissions(template_key))


def add_template(current_overrides: object, template_key: object) -> list[str]:
    """"Add": the template's tokens merged into the current overrides."""
    return sorted(sanitize_overrides(current_overrides) | template_permissions(template_key))


# ── Flat guards ─────────────────────────────────────────────

def _held(permissions: object) -> Set[str]:
    if isinstance(permissions, (set, frozenset)):
        return permissions
    if isinstance(permissions, (list, tuple)):
        return frozenset(p for p in permissions if isinstance(p, str))
    return frozenset()


def _required(tokens: object) -> list[object] | None:
    """Requirement as a list, or None when it is not a token or collection."""
    if isinstance(tokens, str):
        return [tokens]
    if isinstance(tokens, _COLLECTION_TYPES):
        return list(tokens)
    return None


def has_permission(user_permissions: object, required: str) -> bool:
    """Check whether a permission collection satisfies a requirement."""
    return isinstance(required, str) and required in _held(user_permissions)


def has_any_permission(user_permissions: object, required: object) -> bool:
    """True iff at least one of `required` is held."""
    held = _held(user_permissions)
    tokens = _required(required)
    if tokens is None:
        return False
    return any(isinstance(t, str) and t in held for t in tokens)


def has_all_permissions(user_permissions: object, required: object) -> bool:
    """True iff every token in `required` is held.

    An empty permission collection satisfies nothing, not even an empty
    requirement. A malformed requirement (None, a mapping, a number) is
    never satisfied.
    """
    held = _held(user_permissions)
    tokens = _required(required)
    if not held or tokens is None:
        return False
    return all(isinstance(t, str) and t in held for t in tokens)
