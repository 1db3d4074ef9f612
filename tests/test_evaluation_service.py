import pytest

from assessment_engine.core.config import settings
from assessment_engine.schemas.evaluation import EvaluationCreate, EvaluationOut, EvaluationUpdate
from assessment_engine.services.evaluation_service import EvaluationService
from assessment_engine.utils.exceptions import (
    IllegalTransition, ImmutabilityViolation, NotFound, PermissionDenied, ValidationError, WriteConflict
)

from conftest import COURSE, INSTRUCTOR


def test_full_lifecycle(db, instructor):
    service = EvaluationService(db)
    evaluation = service.create_evaluation(
        instructor,
        EvaluationCreate(course_id=COURSE, type="quiz", title="Quiz 1", total_marks=100, weight=10),
    )
    assert evaluation.status == "draft"
    assert evaluation.instructor_id == INSTRUCTOR

    evaluation = service.update_evaluation(
        instructor, evaluation.evaluation_id, EvaluationUpdate(total_marks=80)
    )
    assert evaluation.total_marks == 80

    evaluation = service.publish_evaluation(instructor, evaluation.evaluation_id)
    assert evaluation.status == "published"
    assert evaluation.published_at is not None

    with pytest.raises(ImmutabilityViolation) as excinfo:
        service.update_evaluation(instructor, evaluation.evaluation_id, EvaluationUpdate(total_marks=90))
    assert excinfo.value.fields == ["total_marks"]
    assert service.get_evaluation(instructor, evaluation.evaluation_id).total_marks == 80

    evaluation = service.close_evaluation(instructor, evaluation.evaluation_id)
    assert evaluation.status == "closed"
    assert evaluation.closed_at is not None


def test_student_cannot_create(db, student):
    with pytest.raises(PermissionDenied):
        EvaluationService(db).create_evaluation(
            student, EvaluationCreate(course_id=COURSE, type="quiz", title="Sneaky quiz")
        )


def test_instructor_cannot_create_for_someone_else(db, instructor):
    with pytest.raises(PermissionDenied):
        EvaluationService(db).create_evaluation(
            instructor,
            EvaluationCreate(course_id=COURSE, type="quiz", title="Quiz 2", instructor_id="inst-9"),
        )


def test_admin_can_create_on_behalf(db, admin):
    evaluation = EvaluationService(db).create_evaluation(
        admin, EvaluationCreate(course_id=COURSE, type="assignment", title="Lab 1", instructor_id="inst-9")
    )
    assert evaluation.instructor_id == "inst-9"


def test_only_owner_edits(db, draft, other_instructor, admin):
    service = EvaluationService(db)
    with pytest.raises(PermissionDenied):
        service.update_evaluation(other_instructor, draft.evaluation_id, EvaluationUpdate(title="Mine now"))

    updated = service.update_evaluation(admin, draft.evaluation_id, EvaluationUpdate(title="Admin edit"))
    assert updated.title == "Admin edit"


def test_publish_twice_is_illegal(db, instructor, published):
    with pytest.raises(IllegalTransition):
        EvaluationService(db).publish_evaluation(instructor, published.evaluation_id)


def test_close_requires_published(db, instructor, draft):
    with pytest.raises(IllegalTransition) as excinfo:
        EvaluationService(db).close_evaluation(instructor, draft.evaluation_id)
    assert excinfo.value.current == "draft"


def test_generic_write_cannot_reopen(db, instructor, published):
    with pytest.raises(IllegalTransition):
        EvaluationService(db).propose_evaluation_write(
            instructor, published.evaluation_id, {"status": "draft"}
        )


def test_generic_write_validates_structure(db, instructor, draft):
    service = EvaluationService(db)
    with pytest.raises(ValidationError):
        service.propose_evaluation_write(instructor, draft.evaluation_id, {"weight": 150})
    with pytest.raises(ValidationError):
        service.propose_evaluation_write(instructor, draft.evaluation_id, {"title": None})
    with pytest.raises(ValidationError):
        service.propose_evaluation_write(instructor, draft.evaluation_id, {"colour": "blue"})


def test_unchanged_write_is_a_no_op(db, instructor, published):
    evaluation = EvaluationService(db).propose_evaluation_write(
        instructor, published.evaluation_id, {"title": published.title}
    )
    assert evaluation.status == "published"


def test_drafts_hidden_from_students(db, instructor, student, draft):
    service = EvaluationService(db)
    with pytest.raises(PermissionDenied):
        service.get_evaluation(student, draft.evaluation_id)
    assert service.list_course_evaluations(student, COURSE) == []
    assert [e.evaluation_id for e in service.list_course_evaluations(instructor, COURSE)] == [
        draft.evaluation_id
    ]

    service.publish_evaluation(instructor, draft.evaluation_id)
    assert service.get_evaluation(student, draft.evaluation_id).status == "published"
    assert len(service.list_course_evaluations(student, COURSE)) == 1


def test_soft_delete_hides_evaluation(db, instructor, student, published):
    service = EvaluationService(db)
    with pytest.raises(PermissionDenied):
        service.soft_delete_evaluation(student, published.evaluation_id)

    service.soft_delete_evaluation(instructor, published.evaluation_id)
    with pytest.raises(NotFound):
        service.get_evaluation(instructor, published.evaluation_id)
    with pytest.raises(NotFound):
        service.publish_evaluation(instructor, published.evaluation_id)


def test_missing_evaluation(db, instructor):
    with pytest.raises(NotFound):
        EvaluationService(db).update_evaluation(instructor, "nope", EvaluationUpdate(title="Whatever"))


# =============================================================================
# Concurrent writers
# =============================================================================

def test_edit_is_revalidated_after_concurrent_publish(db, session_factory, instructor, draft):
    """A draft edit loaded before a publish commits must be re-checked against the published row"""
    other_session = session_factory()
    service = EvaluationService(db)
    load = service.evaluation_repo.get_for_update
    calls = []

    def load_then_race(evaluation_id):
        evaluation = load(evaluation_id)
        if not calls:
            EvaluationService(other_session).publish_evaluation(instructor, evaluation_id)
        calls.append(evaluation.status)
        return evaluation

    service.evaluation_repo.get_for_update = load_then_race
    try:
        with pytest.raises(ImmutabilityViolation) as excinfo:
            service.update_evaluation(instructor, draft.evaluation_id, EvaluationUpdate(title="Late edit"))
    finally:
        other_session.close()

    assert calls == ["draft", "published"]
    assert excinfo.value.fields == ["title"]
    assert service.get_evaluation(instructor, draft.evaluation_id).title == "Essay 1"


def test_write_conflict_after_exhausting_retries(db, session_factory, instructor, draft, monkeypatch):
    monkeypatch.setattr(settings, "WRITE_RETRY_ATTEMPTS", 2)
    other_session = session_factory()
    service = EvaluationService(db)
    load = service.evaluation_repo.get_for_update
    counter = iter(range(100))

    def load_then_bump(evaluation_id):
        evaluation = load(evaluation_id)
        # another draft edit always lands between our load and our commit
        EvaluationService(other_session).update_evaluation(
            instructor, evaluation_id, EvaluationUpdate(description=f"rev {next(counter)}")
        )
        return evaluation

    service.evaluation_repo.get_for_update = load_then_bump
    try:
        with pytest.raises(WriteConflict):
            service.update_evaluation(instructor, draft.evaluation_id, EvaluationUpdate(title="Never lands"))
    finally:
        other_session.close()


# =============================================================================
# Soft delete, enrollment, serialization
# =============================================================================

def test_generic_write_cannot_soft_delete(db, instructor, draft):
    service = EvaluationService(db)
    with pytest.raises(ValidationError):
        service.propose_evaluation_write(instructor, draft.evaluation_id, {"is_deleted": True})
    assert service.get_evaluation(instructor, draft.evaluation_id).is_deleted is False


def test_unenrolled_reader_is_denied(db, instructor, student, published):
    service = EvaluationService(db, is_enrolled=lambda user_id, course_id: False)
    with pytest.raises(PermissionDenied):
        service.get_evaluation(student, published.evaluation_id)
    assert service.list_course_evaluations(student, COURSE) == []

    # the owning instructor needs no enrollment
    assert service.get_evaluation(instructor, published.evaluation_id).status == "published"
    assert len(service.list_course_evaluations(instructor, COURSE)) == 1


def test_enrolled_reader_sees_published(db, student, published):
    service = EvaluationService(db, is_enrolled=lambda user_id, course_id: course_id == COURSE)
    assert service.get_evaluation(student, published.evaluation_id).evaluation_id == published.evaluation_id
    assert len(service.list_course_evaluations(student, COURSE)) == 1


def test_evaluation_serializes(published):
    out = EvaluationOut.model_validate(published)
    assert out.status == "published"
    assert out.instructor_id == INSTRUCTOR
    assert out.published_at is not None
