# backend/lesson_engine/notifications/lesson_request_notifier.py
"""
Turns lesson change request transitions into notification messages.

Message building happens while the ORM objects are still attached; sending
happens later (after commit, usually in a background task). A failing
dispatcher never affects the workflow: errors are logged and counted.
"""

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

from ..core.enums import LessonRequestType, NotificationKind, RecipientRole
from ..models.lesson import Lesson
from ..models.lesson_request import LessonChangeRequest
from ..monitoring.prometheus_metrics import prometheus_metrics
from .dispatcher import LoggingNotificationDispatcher, NotificationDispatcher, NotificationMessage

if TYPE_CHECKING:
    from ..services.lesson_request_service import ApprovalOutcome

logger = logging.getLogger(__name__)


class LessonRequestNotifier:
    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()

    def send(self, messages: Iterable[NotificationMessage]) -> int:
        """
        Dispatch messages one by one.

        Returns:
            Number of messages handed over successfully
        """
        sent = 0
        for message in messages:
            try:
                self.dispatcher.dispatch(message)
                sent += 1
                prometheus_metrics.record_notification(message.kind.value, "sent")
            except Exception as e:
                logger.error(
                    f"Failed to dispatch {message.kind.value} notification: {str(e)}",
                    extra={"request_id": message.request_id, "lesson_id": message.lesson_id},
                )
                prometheus_metrics.record_notification(message.kind.value, "failed")
        return sent

    def _base(
        self,
        kind: NotificationKind,
        role: RecipientRole,
        request: LessonChangeRequest,
        lesson: Lesson,
        **fields,
    ) -> NotificationMessage:
        return NotificationMessage(
            kind=kind,
            recipient_role=role,
            request_id=request.id,
            lesson_id=lesson.id,
            lesson_start_at=lesson.start_at,
            context={"request_type": LessonRequestType(request.request_type).value},
            **fields,
        )

    def _student(
        self, kind: NotificationKind, request: LessonChangeRequest, lesson: Lesson, **fields
    ) -> NotificationMessage:
        enrollment = request.enrollment
        return self._base(
            kind,
            RecipientRole.STUDENT,
            request,
            lesson,
            recipient_id=request.enrollment_id,
            recipient_email=enrollment.email if enrollment is not None else None,
            **fields,
        )

    def request_created_messages(
        self, request: LessonChangeRequest, lesson: Lesson
    ) -> List[NotificationMessage]:
        return [
            self._base(
                NotificationKind.REQUEST_CREATED,
                RecipientRole.TEACHER,
                request,
                lesson,
                recipient_id=request.teacher_id,
                old_start_at=lesson.start_at,
                new_start_at=request.requested_start_at,
                old_teacher_id=lesson.teacher_id,
                new_teacher_id=request.requested_teacher_id,
                notes=request.notes,
            )
        ]

    def approval_messages(self, outcome: "ApprovalOutcome") -> List[NotificationMessage]:
        request = outcome.request
        original = outcome.cancelled_lesson
        replacement = outcome.replacement_lesson
        change = {
            "old_start_at": original.start_at,
            "old_teacher_id": original.teacher_id,
            "new_start_at": replacement.start_at if replacement else None,
            "new_teacher_id": replacement.teacher_id if replacement else None,
        }

        messages = [
            self._student(
                NotificationKind.REQUEST_APPROVED,
                request,
                original,
                notes=request.admin_notes,
                **change,
            ),
            self._base(
                NotificationKind.REQUEST_APPROVED,
                RecipientRole.TEACHER,
                request,
                original,
                recipient_id=original.teacher_id,
                **change,
            ),
        ]
        if replacement is not None and replacement.teacher_id != original.teacher_id:
            messages.append(
                self._base(
                    NotificationKind.LESSON_ASSIGNED,
                    RecipientRole.TEACHER,
                    request,
                    replacement,
                    recipient_id=replacement.teacher_id,
                    **change,
                )
            )
        return messages

    def teacher_rejection_messages(
        self, request: LessonChangeRequest, lesson: Lesson
    ) -> List[NotificationMessage]:
        return [
            self._student(
                NotificationKind.REQUEST_REJECTED_BY_TEACHER,
                request,
                lesson,
                notes=request.teacher_notes,
            ),
            self._base(
                NotificationKind.REQUEST_ESCALATED,
                RecipientRole.ADMIN,
                request,
                lesson,
                old_start_at=lesson.start_at,
                new_start_at=request.requested_start_at,
                old_teacher_id=lesson.teacher_id,
                new_teacher_id=request.requested_teacher_id,
                notes=request.teacher_notes,
            ),
        ]

    def admin_rejection_messages(
        self, request: LessonChangeRequest, lesson: Lesson
    ) -> List[NotificationMessage]:
        return [
            self._student(
                NotificationKind.REQUEST_REJECTED_BY_ADMIN,
                request,
                lesson,
                notes=request.admin_notes,
            ),
            self._base(
                NotificationKind.REQUEST_REJECTED_BY_ADMIN,
                RecipientRole.TEACHER,
                request,
                lesson,
                recipient_id=lesson.teacher_id,
                notes=request.admin_notes,
            ),
        ]
