# backend/lesson_engine/services/lesson_request_service.py
"""
Lesson Request Service

State machine for student change requests (cancel, move in time, move to
another teacher):

    PENDING --teacher approves--> TEACHER_APPROVED --same unit--> COMPLETED
    PENDING --teacher rejects--> TEACHER_REJECTED (escalated to admins)
    PENDING | TEACHER_REJECTED --admin approves--> COMPLETED
    TEACHER_REJECTED --admin rejects--> ADMIN_REJECTED

COMPLETED and ADMIN_REJECTED are terminal.

Approval changes the calendar atomically: the request status guard, the
cancellation of the original lesson and the creation of the replacement
commit or roll back together. Notifications are not sent from here; the
caller hands the result to LessonRequestNotifier after commit.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import BusinessClock
from ..core.enums import (
    ApproverRole,
    LessonRequestStatus,
    LessonRequestType,
    LessonStatus,
    enum_value,
)
from ..core.exceptions import (
    InvalidStateException,
    NotFoundException,
    RepositoryException,
    SlotConflictException,
    ValidationException,
)
from ..models.lesson import Lesson
from ..models.lesson_request import LessonChangeRequest
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .change_policy import ChangePolicy
from .conflict_checker import ConflictChecker
from .group_lessons import GroupLessons

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"

# (action, actor) -> statuses the request may be in
TRANSITIONS: Dict[Tuple[str, ApproverRole], FrozenSet[LessonRequestStatus]] = {
    (APPROVE, ApproverRole.TEACHER): frozenset({LessonRequestStatus.PENDING}),
    (APPROVE, ApproverRole.ADMIN): frozenset(
        {LessonRequestStatus.PENDING, LessonRequestStatus.TEACHER_REJECTED}
    ),
    (REJECT, ApproverRole.TEACHER): frozenset({LessonRequestStatus.PENDING}),
    (REJECT, ApproverRole.ADMIN): frozenset({LessonRequestStatus.TEACHER_REJECTED}),
}


@dataclass
class ApprovalOutcome:
    """Result of an approval: the completed request and the calendar change it made."""

    request: LessonChangeRequest
    cancelled_lesson: Lesson
    replacement_lesson: Optional[Lesson] = None


@dataclass(frozen=True)
class ApprovalTarget:
    teacher_id: str
    start_at: datetime
    duration_minutes: int


class LessonRequestService(BaseService):
    """
    Service layer for lesson change requests.

    Handles:
    - Request creation behind the notice, holiday and group gates
    - Teacher approval / rejection
    - Administrative escalation
    - The atomic cancel + replace calendar effect
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[BusinessClock] = None,
        request_repository=None,
        lesson_repository=None,
        teacher_repository=None,
        policy: Optional[ChangePolicy] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        group_lessons: Optional[GroupLessons] = None,
    ):
        super().__init__(db, clock)
        self.request_repository = (
            request_repository or RepositoryFactory.create_lesson_request_repository(db)
        )
        self.lesson_repository = lesson_repository or RepositoryFactory.create_lesson_repository(db)
        self.teacher_repository = (
            teacher_repository or RepositoryFactory.create_teacher_repository(db)
        )
        self.policy = policy or ChangePolicy(db, self.clock)
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.clock)
        self.group_lessons = group_lessons or GroupLessons(
            db, self.clock, lesson_repository=self.lesson_repository
        )

    # Queries

    def get_request(self, request_id: str) -> LessonChangeRequest:
        request = self.request_repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException(
                f"Lesson request {request_id} not found",
                code="LESSON_REQUEST_NOT_FOUND",
                details={"request_id": request_id},
            )
        return request

    def list_pending_for_teacher(self, teacher_id: str) -> List[LessonChangeRequest]:
        return self.request_repository.list_by_status(
            [LessonRequestStatus.PENDING], teacher_id=teacher_id
        )

    def list_awaiting_admin(self) -> List[LessonChangeRequest]:
        return self.request_repository.list_by_status([LessonRequestStatus.TEACHER_REJECTED])

    def list_for_enrollment(self, enrollment_id: str) -> List[LessonChangeRequest]:
        return self.request_repository.list_for_enrollment(enrollment_id)

    # Creation

    @BaseService.measure_operation("create_request")
    def create_request(
        self,
        lesson_id: str,
        request_type: Union[LessonRequestType, str],
        requested_start_at: Optional[datetime] = None,
        requested_teacher_id: Optional[str] = None,
        notes: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> LessonChangeRequest:
        """
        Open a PENDING change request for a lesson.

        Raises:
            NotFoundException: Unknown lesson or requested teacher
            InvalidStateException: Lesson not CONFIRMED, or an open request exists
            UnsupportedForGroupException: The lesson belongs to a group
            PolicyViolationException: Notice or holiday rules block the change
            ValidationException: Missing or inconsistent request fields
        """
        request_type = self._coerce_request_type(request_type)

        lesson = self.lesson_repository.get_by_id(lesson_id)
        if lesson is None:
            raise NotFoundException(
                f"Lesson {lesson_id} not found",
                code="LESSON_NOT_FOUND",
                details={"lesson_id": lesson_id},
            )
        if lesson.status != LessonStatus.CONFIRMED:
            raise InvalidStateException(
                "Only confirmed lessons can be changed",
                current_status=enum_value(lesson.status),
                details={"lesson_id": lesson.id},
            )

        enrollment = lesson.enrollment
        self.group_lessons.ensure_not_group_lesson(enrollment)

        existing = self.request_repository.get_open_for_lesson(lesson.id)
        if existing is not None:
            raise InvalidStateException(
                "There is already an open request for this lesson",
                current_status=enum_value(existing.status),
                details={"lesson_id": lesson.id, "request_id": existing.id},
            )

        self.policy.check_change_allowed(lesson, enrollment)
        self._validate_request_fields(lesson, request_type, requested_start_at, requested_teacher_id)

        if requested_teacher_id and not self.teacher_repository.exists(id=requested_teacher_id):
            raise NotFoundException(
                f"Teacher {requested_teacher_id} not found",
                code="TEACHER_NOT_FOUND",
                details={"teacher_id": requested_teacher_id},
            )
        if requested_start_at is not None:
            self.policy.check_requested_start(lesson, requested_start_at)

        with self.transaction():
            try:
                request = self.request_repository.create(
                    lesson_id=lesson.id,
                    enrollment_id=lesson.enrollment_id,
                    teacher_id=lesson.teacher_id,
                    request_type=request_type.value,
                    status=LessonRequestStatus.PENDING.value,
                    requested_start_at=requested_start_at,
                    requested_teacher_id=requested_teacher_id,
                    notes=notes,
                    created_by_id=created_by_id,
                    created_at=self.clock.now(),
                )
            except RepositoryException as exc:
                if isinstance(exc.__cause__, IntegrityError):
                    # Lost the race against another request for the same lesson
                    raise InvalidStateException(
                        "There is already an open request for this lesson",
                        details={"lesson_id": lesson.id},
                    ) from exc
                raise

        self.log_operation(
            "create_request",
            request_id=request.id,
            lesson_id=lesson.id,
            request_type=request_type.value,
        )
        return request

    # Resolution

    @BaseService.measure_operation("approve_request")
    def approve_request(
        self,
        request_id: str,
        approver_role: Union[ApproverRole, str],
        new_start_at: Optional[datetime] = None,
        new_teacher_id: Optional[str] = None,
        admin_notes: Optional[str] = None,
        processed_by_id: Optional[str] = None,
    ) -> ApprovalOutcome:
        """
        Approve a request and apply its calendar effect in one transaction.

        Administrators may override the target start and teacher. The target
        slot is re-validated against current bookings before anything is
        written; a conflict aborts the approval with no change.

        Raises:
            NotFoundException: Unknown request, lesson or override teacher
            InvalidStateException: Wrong status, lesson no longer CONFIRMED,
                or another approver got there first
            SlotConflictException: Target slot overlaps an existing booking
            PersistenceFailureException: Storage failure; nothing was changed
        """
        role = ApproverRole(approver_role)
        request = self.get_request(request_id)
        observed_status = LessonRequestStatus(request.status)
        observed_version = request.version
        self._ensure_transition(APPROVE, role, request)

        if role is ApproverRole.TEACHER and (
            new_start_at is not None or new_teacher_id is not None or admin_notes
        ):
            raise ValidationException("Only administrators can override the approved slot")
        request_type = LessonRequestType(request.request_type)
        if not request_type.is_reschedule and (
            new_start_at is not None or new_teacher_id is not None
        ):
            raise ValidationException(
                "A cancellation cannot carry a new time or teacher",
                code="UNEXPECTED_REQUEST_FIELDS",
            )
        if new_start_at is not None and new_start_at.tzinfo is None:
            raise ValidationException("new_start_at must include a timezone offset")
        if new_teacher_id and not self.teacher_repository.exists(id=new_teacher_id):
            raise NotFoundException(
                f"Teacher {new_teacher_id} not found",
                code="TEACHER_NOT_FOUND",
                details={"teacher_id": new_teacher_id},
            )

        intermediate = (
            LessonRequestStatus.TEACHER_APPROVED
            if role is ApproverRole.TEACHER
            else LessonRequestStatus.COMPLETED
        )
        now = self.clock.now()

        with self.transaction():
            self._guard_transition(request, observed_status, observed_version, intermediate, now)

            lesson = self.lesson_repository.get_for_update(request.lesson_id)
            if lesson is None:
                raise NotFoundException(
                    f"Lesson {request.lesson_id} not found",
                    code="LESSON_NOT_FOUND",
                    details={"lesson_id": request.lesson_id},
                )
            if lesson.status != LessonStatus.CONFIRMED:
                raise InvalidStateException(
                    "The lesson is no longer confirmed",
                    current_status=enum_value(lesson.status),
                    details={"lesson_id": lesson.id},
                )

            if request_type.is_reschedule:
                replacement = self._apply_reschedule(
                    request, lesson, role, new_start_at, new_teacher_id, now
                )
            else:
                replacement = self._apply_cancellation(lesson, now)

            request.status = LessonRequestStatus.COMPLETED.value
            request.resolved_at = now
            if role is ApproverRole.TEACHER:
                request.teacher_resolved_at = now
            if admin_notes:
                request.admin_notes = admin_notes
                if replacement is not None:
                    replacement.append_note(admin_notes)
            if processed_by_id:
                request.processed_by_id = processed_by_id
            if replacement is not None:
                request.replacement_lesson_id = replacement.id
            self.request_repository.flush()

        self._record_transition(request_type, observed_status, LessonRequestStatus.COMPLETED)
        self.log_operation(
            "approve_request",
            request_id=request.id,
            approver_role=role.value,
            lesson_id=lesson.id,
            replacement_lesson_id=replacement.id if replacement else None,
        )
        return ApprovalOutcome(
            request=request, cancelled_lesson=lesson, replacement_lesson=replacement
        )

    @BaseService.measure_operation("reject_request")
    def reject_request(
        self, request_id: str, teacher_notes: Optional[str] = None
    ) -> LessonChangeRequest:
        """Teacher rejection: escalates the request to administrative review."""
        request = self.get_request(request_id)
        observed_status = LessonRequestStatus(request.status)
        self._ensure_transition(REJECT, ApproverRole.TEACHER, request)
        now = self.clock.now()

        with self.transaction():
            self._guard_transition(
                request,
                observed_status,
                request.version,
                LessonRequestStatus.TEACHER_REJECTED,
                now,
                teacher_notes=teacher_notes,
                teacher_resolved_at=now,
            )

        self._record_transition(
            LessonRequestType(request.request_type),
            observed_status,
            LessonRequestStatus.TEACHER_REJECTED,
        )
        self.log_operation("reject_request", request_id=request.id, lesson_id=request.lesson_id)
        return request

    @BaseService.measure_operation("admin_reject_request")
    def admin_reject_request(
        self,
        request_id: str,
        admin_notes: Optional[str] = None,
        processed_by_id: Optional[str] = None,
    ) -> LessonChangeRequest:
        """Final administrative rejection of an escalated request."""
        request = self.get_request(request_id)
        observed_status = LessonRequestStatus(request.status)
        self._ensure_transition(REJECT, ApproverRole.ADMIN, request)
        now = self.clock.now()

        with self.transaction():
            self._guard_transition(
                request,
                observed_status,
                request.version,
                LessonRequestStatus.ADMIN_REJECTED,
                now,
                admin_notes=admin_notes,
                processed_by_id=processed_by_id,
                resolved_at=now,
            )

        self._record_transition(
            LessonRequestType(request.request_type),
            observed_status,
            LessonRequestStatus.ADMIN_REJECTED,
        )
        self.log_operation(
            "admin_reject_request", request_id=request.id, lesson_id=request.lesson_id
        )
        return request

    # Approval effects

    def _apply_cancellation(self, lesson: Lesson, now: datetime) -> None:
        lesson.cancel(now, note=self._cancellation_note(now))
        self.lesson_repository.flush()

    def _apply_reschedule(
        self,
        request: LessonChangeRequest,
        lesson: Lesson,
        role: ApproverRole,
        new_start_at: Optional[datetime],
        new_teacher_id: Optional[str],
        now: datetime,
    ) -> Optional[Lesson]:
        target = self._resolve_target(request, lesson, new_start_at, new_teacher_id)

        conflicts = self.conflict_checker.find_conflicts(
            target.teacher_id,
            target.start_at,
            target.duration_minutes,
            exclude_lesson_id=lesson.id,
        )
        if conflicts:
            raise SlotConflictException(
                details={
                    "teacher_id": target.teacher_id,
                    "start_at": target.start_at.isoformat(),
                    "conflicting_lesson_ids": [c.id for c in conflicts],
                }
            )

        lesson.cancel(now, note=self._cancellation_note(now))
        self.lesson_repository.flush()

        return self.lesson_repository.create(
            enrollment_id=lesson.enrollment_id,
            teacher_id=target.teacher_id,
            start_at=target.start_at,
            duration_minutes=target.duration_minutes,
            status=LessonStatus.CONFIRMED.value,
            notes=self._replacement_note(request, role, now),
            rescheduled_from_lesson_id=lesson.id,
        )

    def _resolve_target(
        self,
        request: LessonChangeRequest,
        lesson: Lesson,
        new_start_at: Optional[datetime],
        new_teacher_id: Optional[str],
    ) -> ApprovalTarget:
        """Override first, then what the student asked for, then the original lesson."""
        return ApprovalTarget(
            teacher_id=new_teacher_id or request.requested_teacher_id or lesson.teacher_id,
            start_at=new_start_at or request.requested_start_at or lesson.start_at,
            duration_minutes=lesson.duration_minutes,
        )

    def _cancellation_note(self, now: datetime) -> str:
        return f"Lesson cancelled at the student's request on {self.clock.format_local(now)}"

    def _replacement_note(
        self, request: LessonChangeRequest, role: ApproverRole, now: datetime
    ) -> str:
        approver = "the teacher" if role is ApproverRole.TEACHER else "the administration"
        return (
            f"Lesson rescheduled by the student on {self.clock.format_local(request.created_at)} "
            f"and approved by {approver} on {self.clock.format_local(now)}"
        )

    # Helpers

    def _ensure_transition(
        self, action: str, role: ApproverRole, request: LessonChangeRequest
    ) -> None:
        status = LessonRequestStatus(request.status)
        if request.is_terminal:
            raise InvalidStateException(
                f"Request is already closed with status {status.value}",
                current_status=status.value,
                details={"request_id": request.id},
            )
        if status not in TRANSITIONS[(action, role)]:
            raise InvalidStateException(
                f"A {role.value} cannot {action} a request in status {status.value}",
                current_status=status.value,
                details={"request_id": request.id},
            )

    def _guard_transition(
        self,
        request: LessonChangeRequest,
        observed_status: LessonRequestStatus,
        observed_version: int,
        new_status: LessonRequestStatus,
        now: datetime,
        **values,
    ) -> None:
        """
        Compare-and-set the request status; must be the first write of the unit.

        On success the in-session request is refreshed from the row.
        """
        won = self.request_repository.compare_and_set_status(
            request.id,
            observed_status,
            observed_version,
            new_status,
            updated_at=now,
            **values,
        )
        if not won:
            current = self.request_repository.get_current_status(request.id)
            self.logger.info(
                f"Lost status race on request {request.id}",
                extra={"request_id": request.id, "observed_status": observed_status.value},
            )
            raise InvalidStateException(
                "The request was already processed by someone else",
                current_status=current,
                details={"request_id": request.id},
            )
        self.request_repository.refresh(request)

    def _validate_request_fields(
        self,
        lesson: Lesson,
        request_type: LessonRequestType,
        requested_start_at: Optional[datetime],
        requested_teacher_id: Optional[str],
    ) -> None:
        if request_type is LessonRequestType.CANCELAMENTO:
            if requested_start_at is not None or requested_teacher_id is not None:
                raise ValidationException(
                    "A cancellation cannot carry a new time or teacher",
                    code="UNEXPECTED_REQUEST_FIELDS",
                )
            return
        if request_type is LessonRequestType.TROCA_AULA and requested_start_at is None:
            raise ValidationException(
                "requested_start_at is required to move a lesson",
                code="REQUESTED_START_REQUIRED",
            )
        if request_type is LessonRequestType.TROCA_PROFESSOR:
            if not requested_teacher_id:
                raise ValidationException(
                    "requested_teacher_id is required to change teacher",
                    code="REQUESTED_TEACHER_REQUIRED",
                )
            if requested_teacher_id == lesson.teacher_id:
                raise ValidationException(
                    "The requested teacher already teaches this lesson",
                    code="SAME_TEACHER",
                )
        if requested_start_at is not None and requested_start_at.tzinfo is None:
            raise ValidationException(
                "requested_start_at must include a timezone offset",
                code="NAIVE_DATETIME",
            )

    @staticmethod
    def _coerce_request_type(value: Union[LessonRequestType, str]) -> LessonRequestType:
        try:
            return LessonRequestType(value)
        except ValueError:
            raise ValidationException(
                f"Unknown request type: {value}",
                details={"allowed": [t.value for t in LessonRequestType]},
            )

    def _record_transition(
        self,
        request_type: LessonRequestType,
        from_status: LessonRequestStatus,
        to_status: LessonRequestStatus,
    ) -> None:
        try:
            prometheus_metrics.record_request_transition(
                request_type.value, from_status.value, to_status.value
            )
        except Exception:
            self.logger.debug("Failed to record request transition metric")
