"""Tests for composite domain guards and the session recompute hook."""

import pytest

from app.auth import catalog as p
from app.auth.guards import (
    ANONYMOUS,
    GUARDS,
    AccessContext,
    can_access_admin_panel,
    can_access_hiv,
    can_edit_mental_health,
    can_manage_users,
    can_view_audit_log,
    can_view_clinical,
    can_view_nsp,
    can_view_reports,
    evaluate_all_guards,
    evaluate_guard,
    visit_module_access,
)
from app.auth.session import access_context_for, recompute_session


def ctx_for(role, overrides=None) -> AccessContext:
    return access_context_for({"id": "u1", "role": role, "permission_overrides": overrides})


@pytest.mark.unit
class TestCompositeGuards:

    @pytest.mark.parametrize("role", ["System Admin", "Admin", "Clinician", "Nurse", "HTS Counsellor"])
    def test_hiv_by_role(self, role):
        assert can_access_hiv(ctx_for(role))

    def test_hiv_by_permission(self):
        # Psychologist is not whitelisted but holds client.view_sensitive
        assert can_access_hiv(ctx_for("Psychologist"))
        assert can_access_hiv(ctx_for("Viewer", [p.CLIENT_VIEW_SENSITIVE]))

    def test_hiv_denied(self):
        assert not can_access_hiv(ctx_for("Viewer"))
        assert not can_access_hiv(ctx_for("Outreach Worker"))

    def test_whitelisted_role_without_token(self):
        ctx = AccessContext(user_id="u1", role="Nurse", permissions=frozenset())
        assert can_view_clinical(ctx)

    def test_clinical_by_override(self):
        assert not can_view_clinical(ctx_for("Viewer"))
        assert can_view_clinical(ctx_for("Viewer", [p.CLINICAL_VIEW]))

    def test_mental_health_edit_is_identity_only(self):
        assert can_edit_mental_health(ctx_for("Counsellor"))
        assert not can_edit_mental_health(ctx_for("Viewer", list(p.ALL_PERMISSIONS)))

    def test_nsp(self):
        assert can_view_nsp(ctx_for("Outreach Worker"))
        assert not can_view_nsp(ctx_for("Nurse"))

    def test_admin_panel(self):
        assert can_access_admin_panel(ctx_for("Admin"))
        assert can_access_admin_panel(ctx_for("Viewer", [p.USER_MANAGE_PERMISSIONS]))
        assert not can_access_admin_panel(ctx_for("Program Manager"))

    def test_user_management(self):
        assert can_manage_users(ctx_for("M&E Officer"))
        assert can_manage_users(ctx_for("Nurse", [p.USER_VIEW]))
        assert not can_manage_users(ctx_for("Nurse"))

    def test_audit_log(self):
        assert can_view_audit_log(ctx_for("M&E Officer"))
        assert can_view_audit_log(ctx_for("Data Entry", [p.SYSTEM_AUDIT]))
        assert not can_view_audit_log(ctx_for("Data Entry"))

    def test_reports(self):
        assert can_view_reports(ctx_for("Viewer"))
        assert not can_view_reports(ctx_for("Outreach Worker"))

    @pytest.mark.parametrize("name", list(GUARDS))
    def test_anonymous_denied_everywhere(self, name):
        assert not evaluate_guard(name, ANONYMOUS)

    def test_unknown_guard_denies(self):
        assert not evaluate_guard("no_such_guard", ctx_for("Admin"))

    def test_admin_passes_every_guard(self):
        assert all(evaluate_all_guards(ctx_for("Admin")).values())

    def test_visit_module_access_for_psychologist(self):
        modules = visit_module_access(ctx_for("Psychologist"))
        assert modules["mental_health"] and modules["mental_health_edit"]
        assert modules["clinical"]
        assert not modules["mat"]
        assert not modules["nsp"]


@pytest.mark.unit
class TestAccessContext:

    def test_frozen(self):
        ctx = ctx_for("Viewer")
        with pytest.raises(AttributeError):
            ctx.role = "Admin"

    def test_built_from_orm_like_object(self):
        class Row:
            id = "u9"
            role = "Clinician"
            permission_overrides = {}

        ctx = access_context_for(Row())
        assert ctx.user_id == "u9"
        assert ctx.can(p.CLINICAL_EDIT)

    def test_none_is_anonymous(self):
        assert access_context_for(None) is ANONYMOUS
        assert not ANONYMOUS.can_all([])

    def test_can_helpers(self):
        ctx = ctx_for("Counsellor")
        assert ctx.can_any([p.USER_VIEW, p.CLIENT_VIEW])
        assert not ctx.can_all([p.USER_VIEW, p.CLIENT_VIEW])


@pytest.mark.unit
class TestRecomputeSession:

    def test_stale_permissions_replaced(self):
        stored = {
            "id": "u1",
            "role": "Viewer",
            "permissionOverrides": [],
            "permissions": [p.SYSTEM_SETTINGS],
        }
        result = recompute_session(stored)

        assert p.SYSTEM_SETTINGS not in result["permissions"]
        assert len(result["permissions"]) == 9

    def test_input_not_modified(self):
        stored = {"role": "Viewer", "permissions": ["x"]}
        recompute_session(stored)
        assert stored["permissions"] == ["x"]

    def test_other_fields_preserved(self):
        result = recompute_session({"role": "Nurse", "full_name": "N", "theme": "dark"})
        assert result["theme"] == "dark"
        assert result["full_name"] == "N"

    def test_no_role_keeps_overrides(self):
        record = {"permissionOverrides": [p.CLIENT_VIEW]}
        assert recompute_session(record)["permissions"] == [p.CLIENT_VIEW]
        assert recompute_session(record)["permissions"] == sorted(access_context_for(record).permissions)

    def test_no_role_no_overrides_means_no_permissions(self):
        assert recompute_session({"role": "", "permissions": ["x"]})["permissions"] == []

    def test_camel_case_overrides(self):
        result = recompute_session({"role": "Viewer", "permissionOverrides": [p.USER_VIEW]})
        assert p.USER_VIEW in result["permissions"]

    def test_snake_case_overrides(self):
        result = recompute_session({"role": "Viewer", "permission_overrides": [p.USER_VIEW]})
        assert p.USER_VIEW in result["permissions"]
