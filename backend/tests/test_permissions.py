"""Tests for effective-permission resolution and the flat guard predicates."""

import pytest

from app.auth import catalog as p
from app.auth.guards import AccessContext
from app.auth.permissions import (
    add_template,
    apply_template,
    effective_permission_set,
    has_all_permissions,
    has_any_permission,
    has_permission,
    normalize_overrides,
    resolve_permissions,
    sanitize_overrides,
)
from app.auth.roles import (
    ROLE_DEFINITIONS,
    RoleDefinition,
    role_names,
    role_permissions,
    template_permissions,
)

VIEWER_PERMISSIONS = {
    "client.view", "visit.view", "program.view", "report.view",
    "analytics.view", "form.view", "followup.view", "intervention.view",
    "outreach.view",
}


@pytest.mark.unit
class TestResolvePermissions:

    @pytest.mark.parametrize("role", role_names())
    @pytest.mark.parametrize(
        "overrides",
        [[], [p.SYSTEM_AUDIT], [p.CLIENT_VIEW, p.USER_VIEW, "custom.token"]],
    )
    def test_union_contains_role_and_overrides(self, role, overrides):
        resolved = set(resolve_permissions(role, overrides))
        assert resolved >= role_permissions(role)
        assert resolved >= set(overrides)

    def test_idempotent(self):
        first = resolve_permissions("Clinician", [p.REPORT_EXPORT])
        second = resolve_permissions("Clinician", [p.REPORT_EXPORT])
        assert first == second

    def test_result_is_sorted_and_deduplicated(self):
        result = resolve_permissions("Viewer", [p.CLIENT_VIEW, p.CLIENT_VIEW, p.USER_VIEW])
        assert result == sorted(set(result))
        assert result.count(p.CLIENT_VIEW) == 1

    def test_unknown_role_fails_closed(self):
        assert resolve_permissions("NoSuchRole", []) == []
        assert not has_permission([], p.CLIENT_VIEW)

    @pytest.mark.parametrize("role", [None, "", 42, ["Admin"]])
    def test_malformed_role_resolves_to_overrides_only(self, role):
        assert resolve_permissions(role, [p.FORM_VIEW]) == [p.FORM_VIEW]

    def test_viewer_scenario(self):
        result = resolve_permissions("Viewer", [])
        assert set(result) == VIEWER_PERMISSIONS
        assert len(result) == 9
        assert not has_permission(result, p.CLIENT_EDIT)

    def test_data_entry_with_audit_override(self):
        result = resolve_permissions("Data Entry", [p.SYSTEM_AUDIT])
        assert len(role_permissions("Data Entry")) == 13
        assert len(result) == 14
        assert p.SYSTEM_AUDIT in result

    def test_override_already_in_role_is_not_duplicated(self):
        result = resolve_permissions("Data Entry", [p.CLIENT_VIEW])
        assert len(result) == 13

    def test_override_survives_role_change(self):
        before = resolve_permissions("Outreach Worker", ["x.y"])
        after = resolve_permissions("Paralegal", ["x.y"])
        assert "x.y" in before
        assert "x.y" in after

    def test_registry_edit_propagates(self, monkeypatch):
        original = ROLE_DEFINITIONS["Nurse"]
        assert p.REPORT_EXPORT not in resolve_permissions("Nurse", [])

        monkeypatch.setitem(
            ROLE_DEFINITIONS,
            "Nurse",
            RoleDefinition(
                name=original.name,
                description=original.description,
                permissions=original.permissions | {p.REPORT_EXPORT},
            ),
        )

        assert p.REPORT_EXPORT in resolve_permissions("Nurse", [])

    def test_admin_roles_hold_full_catalog(self):
        assert set(resolve_permissions("Admin")) == p.ALL_PERMISSIONS
        assert set(resolve_permissions("System Admin")) == p.ALL_PERMISSIONS


@pytest.mark.unit
class TestSanitizeOverrides:

    @pytest.mark.parametrize("value", [None, {}, {"client.view": True}, "client.view", 7])
    def test_non_collections_mean_no_overrides(self, value):
        assert sanitize_overrides(value) == frozenset()

    def test_non_string_entries_dropped(self):
        assert sanitize_overrides([1, None, "x"]) == frozenset({"x"})

    def test_blank_entries_dropped(self):
        assert sanitize_overrides(["", "  ", p.FORM_VIEW]) == frozenset({p.FORM_VIEW})

    def test_resolve_with_legacy_dict(self):
        assert set(resolve_permissions("Viewer", {})) == VIEWER_PERMISSIONS

    def test_effective_set_is_frozen(self):
        assert isinstance(effective_permission_set("Viewer", None), frozenset)

    def test_normalize_sorts_and_dedupes(self):
        assert normalize_overrides([p.USER_VIEW, p.CLIENT_VIEW, p.USER_VIEW]) == [
            p.CLIENT_VIEW, p.USER_VIEW,
        ]


@pytest.mark.unit
class TestGuardPredicates:

    @pytest.mark.parametrize(
        "held",
        [set(), {"a"}, {"b"}, {"a", "b"}, {"c"}],
    )
    def test_any_and_all(self, held):
        assert has_any_permission(held, ["a", "b"]) == ("a" in held or "b" in held)
        assert has_all_permissions(held, ["a", "b"]) == ("a" in held and "b" in held)

    def test_single_permission(self):
        assert has_permission([p.CLIENT_VIEW], p.CLIENT_VIEW)
        assert not has_permission([p.CLIENT_VIEW], p.CLIENT_EDIT)

    @pytest.mark.parametrize("held", [None, {}, "client.view", 3])
    def test_malformed_permission_collection(self, held):
        assert not has_permission(held, p.CLIENT_VIEW)
        assert not has_any_permission(held, [p.CLIENT_VIEW])
        assert not has_all_permissions(held, [p.CLIENT_VIEW])

    def test_empty_set_satisfies_nothing(self):
        assert not has_all_permissions([], [])
        assert not has_any_permission([], [])

    def test_empty_requirement_with_permissions(self):
        assert has_all_permissions([p.CLIENT_VIEW], [])
        assert not has_any_permission([p.CLIENT_VIEW], [])

    def test_non_string_requirement(self):
        assert not has_permission([p.CLIENT_VIEW], None)
        assert not has_any_permission([p.CLIENT_VIEW], [None, 5])

    def test_string_requirement_for_any(self):
        assert has_any_permission([p.CLIENT_VIEW], p.CLIENT_VIEW)

    @pytest.mark.parametrize("required", [None, {"x.y": True}, 5])
    def test_malformed_requirement_denies(self, required):
        assert not has_all_permissions([p.CLIENT_VIEW], required)
        assert not has_any_permission([p.CLIENT_VIEW], required)

    @pytest.mark.parametrize("required", [None, {p.CLIENT_VIEW: True}, 5])
    def test_access_context_malformed_requirement_denies(self, required):
        ctx = AccessContext(user_id="u1", role="Viewer", permissions=frozenset({p.CLIENT_VIEW}))
        assert not ctx.can_all(required)
        assert not ctx.can_any(required)

    def test_access_context_accepts_generators(self):
        ctx = AccessContext(user_id="u1", role="Viewer", permissions=frozenset({p.CLIENT_VIEW}))
        assert ctx.can_all(t for t in [p.CLIENT_VIEW])
        assert ctx.can_any(t for t in [p.USER_VIEW, p.CLIENT_VIEW])


@pytest.mark.unit
class TestTemplateOperations:

    def test_apply_is_exactly_the_template(self):
        assert set(apply_template("read-only")) == template_permissions("read-only")

    def test_add_merges(self):
        result = add_template(["z"], "read-only")
        assert "z" in result
        assert set(result) >= template_permissions("read-only")

    def test_add_tolerates_legacy_overrides(self):
        assert set(add_template({}, "data-entry")) == template_permissions("data-entry")

    def test_unknown_template_is_empty(self):
        assert apply_template("nope") == []
        assert add_template(["z"], "nope") == ["z"]

    def test_full_access_is_whole_catalog(self):
        assert set(apply_template("full-access")) == p.ALL_PERMISSIONS
