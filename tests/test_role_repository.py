import pytest

from assessment_engine.core.permissions import Authorizer
from assessment_engine.models.role import ROLES_SEED, Role
from assessment_engine.repositories.role_repository import RoleRepository
from assessment_engine.schemas.evaluation import EvaluationCreate
from assessment_engine.services.evaluation_service import EvaluationService
from assessment_engine.utils.exceptions import NotFound, PermissionDenied

from conftest import COURSE


def test_seed_is_idempotent(db):
    repo = RoleRepository(db)
    assert repo.seed_default_roles() == 0
    assert {r.name for r in repo.list_roles()} == {d["name"] for d in ROLES_SEED}


def test_seeded_role_permissions(db):
    repo = RoleRepository(db)
    student = repo.get_or_404("student").to_grant()
    instructor = repo.get_or_404("Instructor").to_grant()

    assert Authorizer.check([student], [("courses", "read")]).allowed
    assert not Authorizer.check([student], [("courses", "update")]).allowed
    assert Authorizer.check([instructor], [("grades", "create"), ("submissions", "read")]).allowed
    assert not Authorizer.check([instructor], [("grades", "delete")]).allowed


def test_unknown_role(db):
    with pytest.raises(NotFound):
        RoleRepository(db).assign("u1", "janitor")


def test_role_name_is_validated():
    with pytest.raises(ValueError):
        Role(name="janitor", display_name="Janitor")


def test_assign_is_idempotent(db, make_principal):
    make_principal("u1", "student")
    principal = make_principal("u1", "student")
    assert principal.role_names == {"student"}


def test_disabled_role_denies_everything(db, make_principal):
    repo = RoleRepository(db)
    make_principal("boss", "admin")
    repo.set_active("admin", False)
    db.commit()

    principal = repo.load_principal("boss")
    assert not principal.is_superuser
    with pytest.raises(PermissionDenied):
        EvaluationService(db).create_evaluation(
            principal, EvaluationCreate(course_id=COURSE, type="quiz", title="Quiz 3")
        )


def test_revoke(db, make_principal):
    make_principal("u2", "instructor", "student")
    repo = RoleRepository(db)
    repo.revoke("u2", "instructor")
    db.commit()
    assert repo.load_principal("u2").role_names == {"student"}
    with pytest.raises(NotFound):
        repo.revoke("u2", "instructor")
