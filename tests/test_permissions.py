import pytest

from assessment_engine.core.permissions import (
    Authorizer, PermissionSet, Principal, RoleGrant, authorize
)
from assessment_engine.utils.exceptions import PermissionDenied


def role(name, *perms, is_active=True):
    return RoleGrant(
        name=name,
        permissions=tuple(PermissionSet.of(res, *acts) for res, acts in perms),
        is_active=is_active,
    )


ANYTHING = [("courses", "delete"), ("grades", "update"), ("whatever", "manage")]


def test_admin_name_bypasses_even_with_no_permissions():
    decision = Authorizer.check([role("admin")], ANYTHING)
    assert decision.allowed
    assert decision.reason == "admin"


def test_manage_all_holder_is_allowed_anything():
    decision = Authorizer.check([role("instructor", ("all", ["manage"]))], ANYTHING)
    assert decision.allowed
    assert decision.reason == "all:manage"


def test_all_without_manage_is_not_a_wildcard():
    assert not Authorizer.check([role("instructor", ("all", ["read"]))], [("courses", "read")])


def test_manage_on_specific_resource_is_not_a_wildcard():
    assert not Authorizer.check([role("instructor", ("courses", ["manage"]))], [("courses", "read")])


def test_read_only_role():
    reader = [role("student", ("courses", ["read"]))]
    assert Authorizer.check(reader, [("courses", "read")]).allowed
    decision = Authorizer.check(reader, [("courses", "update")])
    assert not decision.allowed
    assert decision.failed == ("courses", "update")


def test_all_required_pairs_must_match():
    r = [role("instructor", ("courses", ["read"]), ("grades", ["create"]))]
    assert Authorizer.check(r, [("courses", "read"), ("grades", "create")]).allowed
    assert not Authorizer.check(r, [("courses", "read"), ("grades", "delete")]).allowed


def test_pairs_spanning_two_roles_are_denied():
    roles = [
        role("student", ("courses", ["read"])),
        role("instructor", ("grades", ["create"])),
    ]
    decision = Authorizer.check(roles, [("courses", "read"), ("grades", "create")])
    assert not decision.allowed
    # each pair alone is fine
    assert Authorizer.check(roles, [("courses", "read")]).allowed
    assert Authorizer.check(roles, [("grades", "create")]).matched_role == "instructor"


def test_inactive_roles_are_ignored():
    assert not Authorizer.check([role("admin", is_active=False)], ANYTHING)
    assert not Authorizer.check(
        [role("instructor", ("all", ["manage"]), is_active=False)], ANYTHING
    )
    decision = Authorizer.check(
        [role("student", ("courses", ["read"]), is_active=False)], [("courses", "read")]
    )
    assert decision.reason == "no active role"


def test_empty_requirement_needs_an_active_role():
    assert Authorizer.check([role("student")], []).allowed
    assert not Authorizer.check([], []).allowed


def test_authorize_raises_without_leaking_roles():
    principal = Principal("u1", (role("student", ("courses", ["read"])),))
    with pytest.raises(PermissionDenied) as excinfo:
        authorize(principal, [("courses", "update")])
    assert excinfo.value.failed == ("courses", "update")
    assert "student" not in excinfo.value.detail


def test_principal_superuser_flag():
    assert Principal("a", (role("admin"),)).is_superuser
    assert Principal("b", (role("instructor", ("all", ["manage"])),)).is_superuser
    assert not Principal("c", (role("admin", is_active=False),)).is_superuser
    assert not Principal("d", (role("student", ("courses", ["read"])),)).is_superuser


def test_permission_set_rejects_unknown_action():
    with pytest.raises(ValueError):
        PermissionSet.of("courses", "fly")


def test_permission_set_dict_round_trip():
    p = PermissionSet.from_dict({"resource": "grades", "actions": ["update", "create"]})
    assert p.to_dict() == {"resource": "grades", "actions": ["create", "update"]}


def test_has_role_ignores_inactive_roles():
    principal = Principal("u2", (role("student"), role("instructor", is_active=False)))
    assert principal.has_role("student")
    assert not principal.has_role("instructor")
