# backend/tests/notifications/test_lesson_request_notifier.py
"""
Tests for LessonRequestNotifier message building and dispatch.
"""

from unittest.mock import Mock

import pytest

from lesson_engine.core.enums import (
    ApproverRole,
    LessonRequestType,
    NotificationKind,
    RecipientRole,
)
from lesson_engine.notifications.dispatcher import NotificationMessage
from lesson_engine.notifications.lesson_request_notifier import LessonRequestNotifier
from lesson_engine.services.lesson_request_service import LessonRequestService
from tests.factories.lesson_builders import (
    create_enrollment,
    create_lesson,
    create_request,
    create_teacher,
    local_dt,
)


@pytest.fixture
def teacher(db):
    return create_teacher(db, "Ana", email="ana@example.com")


@pytest.fixture
def lesson(db, teacher):
    enrollment = create_enrollment(db, email="bruno@example.com")
    return create_lesson(db, enrollment, teacher, local_dt(2025, 6, 9, 14, 0))


@pytest.fixture
def service(db, clock):
    return LessonRequestService(db, clock)


class TestMessageBuilding:
    def test_created_request_goes_to_the_teacher(self, db, lesson):
        new_start = local_dt(2025, 6, 10, 10, 0)
        request = create_request(
            db, lesson, LessonRequestType.TROCA_AULA, requested_start_at=new_start
        )

        (message,) = LessonRequestNotifier().request_created_messages(request, lesson)

        assert message.kind is NotificationKind.REQUEST_CREATED
        assert message.recipient_role is RecipientRole.TEACHER
        assert message.recipient_id == lesson.teacher_id
        assert message.old_start_at == lesson.start_at
        assert message.new_start_at == new_start
        assert message.context == {"request_type": "TROCA_AULA"}

    def test_approval_notifies_student_and_teacher(self, db, lesson, service):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        outcome = service.approve_request(request.id, ApproverRole.TEACHER)

        messages = LessonRequestNotifier().approval_messages(outcome)

        assert [(m.kind, m.recipient_role) for m in messages] == [
            (NotificationKind.REQUEST_APPROVED, RecipientRole.STUDENT),
            (NotificationKind.REQUEST_APPROVED, RecipientRole.TEACHER),
        ]
        student = messages[0]
        assert student.recipient_email == "bruno@example.com"
        assert student.new_start_at is None

    def test_new_teacher_is_told_about_the_assignment(self, db, lesson, service):
        caio = create_teacher(db, "Caio", email="caio@example.com")
        request = create_request(
            db, lesson, LessonRequestType.TROCA_PROFESSOR, requested_teacher_id=caio.id
        )
        outcome = service.approve_request(request.id, ApproverRole.TEACHER)

        messages = LessonRequestNotifier().approval_messages(outcome)

        assigned = messages[-1]
        assert assigned.kind is NotificationKind.LESSON_ASSIGNED
        assert assigned.recipient_id == caio.id
        assert assigned.lesson_id == outcome.replacement_lesson.id
        assert assigned.old_teacher_id == lesson.teacher_id
        assert assigned.new_teacher_id == caio.id

    def test_teacher_rejection_escalates_to_admins(self, db, lesson, service):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        rejected = service.reject_request(request.id, teacher_notes="Not possible")

        messages = LessonRequestNotifier().teacher_rejection_messages(rejected, lesson)

        assert [m.kind for m in messages] == [
            NotificationKind.REQUEST_REJECTED_BY_TEACHER,
            NotificationKind.REQUEST_ESCALATED,
        ]
        assert messages[1].recipient_role is RecipientRole.ADMIN
        assert all(m.notes == "Not possible" for m in messages)

    def test_admin_rejection_notifies_both_parties(self, db, lesson, service):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        service.reject_request(request.id)
        rejected = service.admin_reject_request(request.id, admin_notes="Outside policy")

        messages = LessonRequestNotifier().admin_rejection_messages(rejected, lesson)

        assert {m.recipient_role for m in messages} == {RecipientRole.STUDENT, RecipientRole.TEACHER}
        assert all(m.kind is NotificationKind.REQUEST_REJECTED_BY_ADMIN for m in messages)

    def test_message_payload_is_plain_data(self, db, lesson):
        request = create_request(db, lesson, LessonRequestType.CANCELAMENTO)
        (message,) = LessonRequestNotifier().request_created_messages(request, lesson)

        payload = message.to_dict()

        assert payload["kind"] == "lesson_request_created"
        assert payload["recipient_role"] == "teacher"
        assert payload["lesson_start_at"] == lesson.start_at.isoformat()


class TestSend:
    def _message(self) -> NotificationMessage:
        return NotificationMessage(
            kind=NotificationKind.REQUEST_CREATED,
            recipient_role=RecipientRole.TEACHER,
            request_id="01HREQUEST0000000000000000",
            lesson_id="01HLESSON00000000000000000",
            lesson_start_at=local_dt(2025, 6, 9, 14, 0),
        )

    def test_send_counts_delivered_messages(self, dispatcher):
        notifier = LessonRequestNotifier(dispatcher)

        assert notifier.send([self._message(), self._message()]) == 2
        assert dispatcher.kinds() == ["lesson_request_created", "lesson_request_created"]

    def test_failing_dispatcher_does_not_raise(self):
        failing = Mock()
        failing.dispatch.side_effect = [RuntimeError("smtp down"), None]
        notifier = LessonRequestNotifier(failing)

        assert notifier.send([self._message(), self._message()]) == 1
        assert failing.dispatch.call_count == 2
