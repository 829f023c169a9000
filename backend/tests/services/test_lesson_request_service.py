# backend/tests/services/test_lesson_request_service.py
"""
Lesson change request workflow against a real SQLite database.

Covers creation gates, teacher and admin decisions, the atomic calendar
effect and the optimistic status guard across two sessions.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from lesson_engine.core.enums import (
    ApproverRole,
    LessonRequestStatus,
    LessonRequestType,
    LessonStatus,
    LessonType,
)
from lesson_engine.core.exceptions import (
    InsufficientNoticeException,
    InvalidStateException,
    NotFoundException,
    PersistenceFailureException,
    PolicyViolationException,
    RepositoryException,
    SlotConflictException,
    UnsupportedForGroupException,
    ValidationException,
)
from lesson_engine.models.lesson import Lesson
from lesson_engine.models.lesson_request import LessonChangeRequest
from lesson_engine.monitoring.prometheus_metrics import REGISTRY
from lesson_engine.services.lesson_request_service import LessonRequestService
from tests.factories.lesson_builders import (
    create_enrollment,
    create_lesson,
    create_request,
    create_teacher,
    local_dt,
)

UNKNOWN_ID = "01ZZZZZZZZZZZZZZZZZZZZZZZZ"


@pytest.fixture
def teacher(db):
    return create_teacher(db, "Ana", email="ana@example.com")


@pytest.fixture
def other_teacher(db):
    return create_teacher(db, "Caio", email="caio@example.com")


@pytest.fixture
def enrollment(db):
    return create_enrollment(db)


@pytest.fixture
def lesson(db, enrollment, teacher):
    # Monday 2025-06-09 14:00, a week after "now"
    return create_lesson(db, enrollment, teacher, local_dt(2025, 6, 9, 14, 0))


@pytest.fixture
def service(db, clock):
    return LessonRequestService(db, clock)


def _reload_lesson(db, lesson_id):
    db.expire_all()
    return db.query(Lesson).filter(Lesson.id == lesson_id).one()


def _reload_request(db, request_id):
    db.expire_all()
    return db.query(LessonChangeRequest).filter(LessonChangeRequest.id == request_id).one()


class TestCreateRequest:
    def test_reschedule_request_starts_pending(self, service, lesson, clock):
        new_start = local_dt(2025, 6, 10, 10, 0)

        request = service.create_request(
            lesson.id,
            LessonRequestType.TROCA_AULA,
            requested_start_at=new_start,
            notes="Dentist appointment",
            created_by_id="01HSTUDENT0000000000000000",
        )

        assert request.status == LessonRequestStatus.PENDING.value
        assert request.version == 1
        assert request.teacher_id == lesson.teacher_id
        assert request.enrollment_id == lesson.enrollment_id
        assert request.requested_start_at == new_start
        assert request.created_at == clock.now()
        assert request.notes == "Dentist appointment"

    def test_request_type_given_as_string(self, service, lesson):
        request = service.create_request(lesson.id, "CANCELAMENTO")
        assert request.request_type == LessonRequestType.CANCELAMENTO.value

    def test_unknown_request_type(self, service, lesson):
        with pytest.raises(ValidationException):
            service.create_request(lesson.id, "SWAP_EVERYTHING")

    def test_unknown_lesson(self, service):
        with pytest.raises(NotFoundException) as exc_info:
            service.create_request(UNKNOWN_ID, LessonRequestType.CANCELAMENTO)
        assert exc_info.value.code == "LESSON_NOT_FOUND"

    def test_lesson_must_be_confirmed(self, db, service, enrollment, teacher):
        cancelled = create_lesson(
            db, enrollment, teacher, local_dt(2025, 6, 9, 16, 0), status=LessonStatus.CANCELLED
        )

        with pytest.raises(InvalidStateException) as exc_info:
            service.create_request(cancelled.id, LessonRequestType.CANCELAMENTO)
        assert exc_info.value.details["current_status"] == "CANCELLED"

    def test_group_lessons_are_not_self_service(self, db, service, teacher):
        member = create_enrollment(db, lesson_type=LessonType.GROUP, group_name="Turma A")
        group_lesson = create_lesson(db, member, teacher, local_dt(2025, 6, 9, 18, 0))

        with pytest.raises(UnsupportedForGroupException):
            service.create_request(group_lesson.id, LessonRequestType.CANCELAMENTO)

    def test_only_one_open_request_per_lesson(self, db, service, lesson):
        create_request(db, lesson, status=LessonRequestStatus.TEACHER_REJECTED)

        with pytest.raises(InvalidStateException) as exc_info:
            service.create_request(lesson.id, LessonRequestType.CANCELAMENTO)
        assert exc_info.value.details["current_status"] == "TEACHER_REJECTED"

    def test_closed_requests_do_not_block_a_new_one(self, db, service, lesson):
        create_request(db, lesson, status=LessonRequestStatus.ADMIN_REJECTED)

        request = service.create_request(lesson.id, LessonRequestType.CANCELAMENTO)
        assert request.status == LessonRequestStatus.PENDING.value

    def test_open_request_race_is_reported_as_invalid_state(self, db, service, lesson):
        create_request(db, lesson)

        with patch.object(service.request_repository, "get_open_for_lesson", return_value=None):
            with pytest.raises(InvalidStateException):
                service.create_request(lesson.id, LessonRequestType.CANCELAMENTO)

        assert db.query(LessonChangeRequest).count() == 1

    def test_insufficient_notice(self, db, service, clock, enrollment, teacher):
        soon = create_lesson(db, enrollment, teacher, clock.now() + timedelta(hours=5))

        with pytest.raises(InsufficientNoticeException):
            service.create_request(soon.id, LessonRequestType.CANCELAMENTO)

    def test_cancellation_cannot_carry_new_time(self, service, lesson):
        with pytest.raises(ValidationException) as exc_info:
            service.create_request(
                lesson.id,
                LessonRequestType.CANCELAMENTO,
                requested_start_at=local_dt(2025, 6, 10, 10, 0),
            )
        assert exc_info.value.code == "UNEXPECTED_REQUEST_FIELDS"

    def test_reschedule_needs_a_start(self, service, lesson):
        with pytest.raises(ValidationException) as exc_info:
            service.create_request(lesson.id, LessonRequestType.TROCA_AULA)
        assert exc_info.value.code == "REQUESTED_START_REQUIRED"

    def test_naive_start_is_rejected(self, service, lesson):
        with pytest.raises(ValidationException) as exc_info:
            service.create_request(
                lesson.id,
                LessonRequestType.TROCA_AULA,
                requested_start_at=datetime(2025, 6, 10, 10, 0),
            )
        assert exc_info.value.code == "NAIVE_DATETIME"

    def test_teacher_change_needs_a_different_teacher(self, service, lesson, teacher):
        with pytest.raises(ValidationException) as exc_info:
            service.create_request(lesson.id, LessonRequestType.TROCA_PROFESSOR)
        assert exc_info.value.code == "REQUESTED_TEACHER_REQUIRED"

        with pytest.raises(ValidationException) as exc_info:
            service.create_request(
                lesson.id, LessonRequestType.TROCA_PROFESSOR, requested_teacher_id=teacher.id
            )
        assert exc_info.value.code == "SAME_TEACHER"

    def test_teacher_change_to_unknown_teacher(self, service, lesson):
        with pytest.raises(NotFoundException) as exc_info:
            service.create_request(
                lesson.id, LessonRequestType.TROCA_PROFESSOR, requested_teacher_id=UNKNOWN_ID
            )
        assert exc_info.value.code == "TEACHER_NOT_FOUND"

    def test_requested_date_before_original(self, service, lesson):
        with pytest.raises(PolicyViolationException) as exc_info:
            service.create_request(
                lesson.id,
                LessonRequestType.TROCA_AULA,
                requested_start_at=local_dt(2025, 6, 5, 10, 0),
            )
        assert exc_info.value.code == "REQUESTED_DATE_BEFORE_ORIGINAL"


class TestTeacherDecision:
    def test_approve_cancellation(self, db, service, lesson, clock):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

        outcome = service.approve_request(request.id, ApproverRole.TEACHER)

        assert outcome.replacement_lesson is None
        stored = _reload_request(db, request.id)
        assert stored.status == LessonRequestStatus.COMPLETED.value
        assert stored.version == 2
        assert stored.teacher_resolved_at == clock.now()
        assert stored.resolved_at == clock.now()

        original = _reload_lesson(db, lesson.id)
        assert original.status == LessonStatus.CANCELLED.value
        assert original.cancelled_at == clock.now()
        assert "cancelled at the student's request on 02/06/2025 09:00" in original.notes
        assert db.query(Lesson).count() == 1

    def test_approve_reschedule_creates_replacement(self, db, service, lesson, clock):
        new_start = local_dt(2025, 6, 10, 10, 0)
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=new_start
        )

        outcome = service.approve_request(request.id, "teacher")

        replacement = outcome.replacement_lesson
        assert replacement.status == LessonStatus.CONFIRMED.value
        assert replacement.start_at == new_start
        assert replacement.teacher_id == lesson.teacher_id
        assert replacement.enrollment_id == lesson.enrollment_id
        assert replacement.duration_minutes == lesson.duration_minutes
        assert replacement.rescheduled_from_lesson_id == lesson.id
        assert "approved by the teacher on 02/06/2025 09:00" in replacement.notes

        stored = _reload_request(db, request.id)
        assert stored.replacement_lesson_id == replacement.id
        assert _reload_lesson(db, lesson.id).status == LessonStatus.CANCELLED.value

    def test_approve_teacher_change_keeps_the_start(self, db, service, lesson, other_teacher):
        request = create_request(
            db,
            lesson,
            LessonRequestType.TROCA_PROFESSOR,
            requested_teacher_id=other_teacher.id,
        )

        outcome = service.approve_request(request.id, ApproverRole.TEACHER)

        assert outcome.replacement_lesson.teacher_id == other_teacher.id
        assert outcome.replacement_lesson.start_at == lesson.start_at

    def test_move_overlapping_the_original_slot_is_allowed(self, db, service, lesson):
        request = create_request(
            db,
            lesson,
            LessonRequestType.TROCA_AULA,
            requested_start_at=lesson.start_at + timedelta(minutes=30),
        )

        outcome = service.approve_request(request.id, ApproverRole.TEACHER)

        assert outcome.replacement_lesson is not None

    def test_teacher_cannot_override_the_slot(self, db, service, lesson):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )

        with pytest.raises(ValidationException):
            service.approve_request(
                request.id, ApproverRole.TEACHER, new_start_at=local_dt(2025, 6, 11, 10)
            )

    def test_reject_escalates_without_touching_the_lesson(self, db, service, lesson, clock):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )

        rejected = service.reject_request(request.id, teacher_notes="I am travelling")

        assert rejected.status == LessonRequestStatus.TEACHER_REJECTED.value
        assert rejected.teacher_notes == "I am travelling"
        assert rejected.teacher_resolved_at == clock.now()
        assert rejected.resolved_at is None
        assert [r.id for r in service.list_awaiting_admin()] == [request.id]
        assert _reload_lesson(db, lesson.id).status == LessonStatus.CONFIRMED.value

    def test_teacher_cannot_decide_twice(self, db, service, lesson):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        service.reject_request(request.id)

        with pytest.raises(InvalidStateException):
            service.approve_request(request.id, ApproverRole.TEACHER)
        with pytest.raises(InvalidStateException):
            service.reject_request(request.id)

    def test_unknown_request(self, service):
        with pytest.raises(NotFoundException) as exc_info:
            service.approve_request(UNKNOWN_ID, ApproverRole.TEACHER)
        assert exc_info.value.code == "LESSON_REQUEST_NOT_FOUND"


class TestAdminDecision:
    def test_admin_override_after_teacher_rejection(
        self, db, service, lesson, other_teacher, clock
    ):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )
        service.reject_request(request.id)
        override_start = local_dt(2025, 6, 12, 15, 0)

        outcome = service.approve_request(
            request.id,
            ApproverRole.ADMIN,
            new_start_at=override_start,
            new_teacher_id=other_teacher.id,
            admin_notes="Moved to Thursday with Caio",
            processed_by_id="01HADMIN000000000000000000",
        )

        replacement = outcome.replacement_lesson
        assert replacement.start_at == override_start
        assert replacement.teacher_id == other_teacher.id
        assert "approved by the administration" in replacement.notes
        assert "Moved to Thursday with Caio" in replacement.notes

        stored = _reload_request(db, request.id)
        assert stored.status == LessonRequestStatus.COMPLETED.value
        assert stored.admin_notes == "Moved to Thursday with Caio"
        assert stored.processed_by_id == "01HADMIN000000000000000000"
        assert stored.resolved_at == clock.now()

    def test_admin_may_approve_a_pending_request(self, db, service, lesson):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

        service.approve_request(request.id, ApproverRole.ADMIN)

        assert _reload_request(db, request.id).status == LessonRequestStatus.COMPLETED.value

    def test_admin_rejection_is_final(self, db, service, lesson):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        service.reject_request(request.id)

        rejected = service.admin_reject_request(
            request.id, admin_notes="Policy", processed_by_id="01HADMIN000000000000000000"
        )

        assert rejected.status == LessonRequestStatus.ADMIN_REJECTED.value
        assert rejected.admin_notes == "Policy"
        assert rejected.resolved_at is not None
        for attempt in (
            lambda: service.approve_request(request.id, ApproverRole.ADMIN),
            lambda: service.admin_reject_request(request.id),
            lambda: service.approve_request(request.id, ApproverRole.TEACHER),
        ):
            with pytest.raises(InvalidStateException):
                attempt()
        assert _reload_lesson(db, lesson.id).status == LessonStatus.CONFIRMED.value

    def test_admin_cannot_reject_a_pending_request(self, db, service, lesson):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

        with pytest.raises(InvalidStateException):
            service.admin_reject_request(request.id)

    def test_override_teacher_must_exist(self, db, service, lesson):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )

        with pytest.raises(NotFoundException):
            service.approve_request(request.id, ApproverRole.ADMIN, new_teacher_id=UNKNOWN_ID)
        assert _reload_request(db, request.id).status == LessonRequestStatus.PENDING.value

    @pytest.mark.parametrize(
        "override",
        [
            {"new_start_at": local_dt(2025, 6, 12, 15, 0)},
            {"new_teacher_id": "01HOTHERTEACHER00000000000"},
        ],
    )
    def test_cancellation_approval_rejects_slot_overrides(self, db, service, lesson, override):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

        with pytest.raises(ValidationException) as exc_info:
            service.approve_request(request.id, ApproverRole.ADMIN, **override)

        assert exc_info.value.code == "UNEXPECTED_REQUEST_FIELDS"
        assert _reload_request(db, request.id).status == LessonRequestStatus.PENDING.value
        assert _reload_lesson(db, lesson.id).status == LessonStatus.CONFIRMED.value


class TestClosedRequests:
    @pytest.mark.parametrize(
        "closed_status", [LessonRequestStatus.COMPLETED, LessonRequestStatus.ADMIN_REJECTED]
    )
    @pytest.mark.parametrize(
        "decide",
        [
            lambda service, request_id: service.approve_request(request_id, ApproverRole.TEACHER),
            lambda service, request_id: service.approve_request(request_id, ApproverRole.ADMIN),
            lambda service, request_id: service.reject_request(request_id),
            lambda service, request_id: service.admin_reject_request(request_id),
        ],
        ids=["teacher_approve", "admin_approve", "teacher_reject", "admin_reject"],
    )
    def test_closed_request_accepts_no_decision(self, db, service, lesson, closed_status, decide):
        request = create_request(
            db,
            lesson,
            LessonRequestType.TROCA_AULA,
            status=closed_status,
            requested_start_at=local_dt(2025, 6, 10, 10),
        )

        with pytest.raises(InvalidStateException) as exc_info:
            decide(service, request.id)

        assert exc_info.value.details["current_status"] == closed_status.value
        stored = _reload_request(db, request.id)
        assert stored.status == closed_status.value
        assert stored.version == 1
        lessons = db.query(Lesson).all()
        assert len(lessons) == 1
        assert lessons[0].status == LessonStatus.CONFIRMED.value


class TestAtomicity:
    def test_slot_conflict_leaves_everything_unchanged(
        self, db, service, lesson, teacher
    ):
        target = local_dt(2025, 6, 10, 10, 0)
        blocker = create_lesson(db, create_enrollment(db, "Other"), teacher, target)
        request = create_request(db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=target)

        with pytest.raises(SlotConflictException) as exc_info:
            service.approve_request(request.id, ApproverRole.TEACHER)

        assert exc_info.value.details["conflicting_lesson_ids"] == [blocker.id]
        stored = _reload_request(db, request.id)
        assert stored.status == LessonRequestStatus.PENDING.value
        assert stored.version == 1
        assert _reload_lesson(db, lesson.id).status == LessonStatus.CONFIRMED.value
        assert db.query(Lesson).count() == 2

    def test_storage_failure_rolls_back_the_cancellation(self, db, service, lesson):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )

        with patch.object(
            service.lesson_repository, "create", side_effect=RepositoryException("disk full")
        ):
            with pytest.raises(PersistenceFailureException):
                service.approve_request(request.id, ApproverRole.TEACHER)

        assert _reload_lesson(db, lesson.id).status == LessonStatus.CONFIRMED.value
        assert _reload_lesson(db, lesson.id).cancelled_at is None
        assert _reload_request(db, request.id).status == LessonRequestStatus.PENDING.value
        assert db.query(Lesson).count() == 1

    def test_lesson_cancelled_elsewhere_blocks_approval(self, db, service, lesson, clock):
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        )
        lesson.cancel(clock.now())
        db.commit()

        with pytest.raises(InvalidStateException):
            service.approve_request(request.id, ApproverRole.TEACHER)

        assert _reload_request(db, request.id).status == LessonRequestStatus.PENDING.value


class TestConcurrentApprovals:
    def test_stale_approver_loses_the_race(self, session_factory, clock):
        setup = session_factory()
        teacher = create_teacher(setup)
        lesson = create_lesson(setup, create_enrollment(setup), teacher, local_dt(2025, 6, 9, 14))
        request_id = create_request(
            setup, lesson, LessonRequestType.TROCA_AULA, requested_start_at=local_dt(2025, 6, 10, 10)
        ).id
        setup.close()

        session_a, session_b = session_factory(), session_factory()
        try:
            service_a = LessonRequestService(session_a, clock)
            service_b = LessonRequestService(session_b, clock)

            # A reads the request while it is still pending
            assert service_a.get_request(request_id).status == LessonRequestStatus.PENDING.value

            service_b.approve_request(request_id, ApproverRole.ADMIN)

            with pytest.raises(InvalidStateException) as exc_info:
                service_a.approve_request(request_id, ApproverRole.TEACHER)
            assert exc_info.value.details["current_status"] == LessonRequestStatus.COMPLETED.value

            check = session_factory()
            try:
                lessons = check.query(Lesson).order_by(Lesson.created_at).all()
                assert len(lessons) == 2
                assert sum(1 for item in lessons if item.status == "CONFIRMED") == 1
            finally:
                check.close()
        finally:
            session_a.close()
            session_b.close()


class TestQueries:
    def test_pending_inbox_per_teacher(self, db, service, lesson, other_teacher, enrollment):
        other_lesson = create_lesson(db, enrollment, other_teacher, local_dt(2025, 6, 9, 18))
        mine = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        create_request(db, other_lesson, LessonRequestType.CANCELAMENTO)

        assert [r.id for r in service.list_pending_for_teacher(lesson.teacher_id)] == [mine.id]

    def test_history_per_enrollment(self, db, service, lesson, enrollment):
        old = create_request(
            db,
            lesson,
            LessonRequestType.CANCELAMENTO,
            status=LessonRequestStatus.ADMIN_REJECTED,
            created_at=local_dt(2025, 5, 1, 10),
        )
        new = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

        assert [r.id for r in service.list_for_enrollment(enrollment.id)] == [new.id, old.id]


def test_transitions_are_counted(db, service, lesson):
    labels = {
        "request_type": "CANCELAMENTO",
        "from_status": "PENDING",
        "to_status": "COMPLETED",
    }
    before = REGISTRY.get_sample_value("lesson_engine_lesson_request_transitions_total", labels) or 0
    request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)

    service.approve_request(request.id, ApproverRole.TEACHER)

    after = REGISTRY.get_sample_value("lesson_engine_lesson_request_transitions_total", labels)
    assert after == before + 1
