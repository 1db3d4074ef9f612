import pytest

from assessment_engine.database.session import build_engine, build_session_factory, init_db
from assessment_engine.repositories.role_repository import RoleRepository
from assessment_engine.schemas.evaluation import EvaluationCreate
from assessment_engine.services.evaluation_service import EvaluationService

INSTRUCTOR = "inst-1"
OTHER_INSTRUCTOR = "inst-2"
STUDENT = "stu-1"
OTHER_STUDENT = "stu-2"
ADMIN = "admin-1"
COURSE = "course-101"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'engine.db'}", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    RoleRepository(session).seed_default_roles()
    yield session
    session.close()


@pytest.fixture
def make_principal(db):
    repo = RoleRepository(db)

    def _make(user_id, *role_names):
        for name in role_names:
            repo.assign(user_id, name)
        db.commit()
        return repo.load_principal(user_id)
    return _make


@pytest.fixture
def instructor(make_principal):
    return make_principal(INSTRUCTOR, "instructor")


@pytest.fixture
def other_instructor(make_principal):
    return make_principal(OTHER_INSTRUCTOR, "instructor")


@pytest.fixture
def student(make_principal):
    return make_principal(STUDENT, "student")


@pytest.fixture
def other_student(make_principal):
    return make_principal(OTHER_STUDENT, "student")


@pytest.fixture
def admin(make_principal):
    return make_principal(ADMIN, "admin")


@pytest.fixture
def draft(db, instructor):
    data = EvaluationCreate(course_id=COURSE, type="assignment", title="Essay 1", total_marks=100, weight=20)
    return EvaluationService(db).create_evaluation(instructor, data)


@pytest.fixture
def published(db, instructor, draft):
    return EvaluationService(db).publish_evaluation(instructor, draft.evaluation_id)
