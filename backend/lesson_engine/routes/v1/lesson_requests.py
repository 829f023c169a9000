# backend/lesson_engine/routes/v1/lesson_requests.py
"""
Lesson change request routes - API v1

Versioned endpoints for the reschedule / cancel / change-teacher workflow.
All business logic delegated to LessonRequestService; notifications are
built while the session is open and dispatched as background tasks.

Endpoints:
    POST /lesson-requests - Open a change request for a lesson
    GET /lesson-requests/{request_id} - Request details
    PATCH /lesson-requests/{request_id}/teacher-approval - Teacher decision
    GET /teachers/{teacher_id}/lesson-requests/pending - Teacher inbox
    GET /enrollments/{enrollment_id}/lesson-requests - Student history
    GET /admin/lesson-requests - Requests escalated to administration
    PATCH /admin/lesson-requests/{request_id} - Administrative decision
"""

import asyncio
import logging
from typing import List, NoReturn, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, status
from fastapi.params import Path

from ...api.dependencies import get_lesson_request_notifier, get_lesson_request_service
from ...core.enums import ApproverRole
from ...core.exceptions import DomainException
from ...models.lesson_request import LessonChangeRequest
from ...notifications.dispatcher import NotificationMessage
from ...notifications.lesson_request_notifier import LessonRequestNotifier
from ...schemas.lesson_request import (
    AdminAction,
    AdminDecision,
    LessonRequestCreate,
    LessonRequestDecisionResponse,
    LessonRequestListResponse,
    LessonRequestResponse,
    LessonResponse,
    TeacherDecision,
)
from ...services.lesson_request_service import ApprovalOutcome, LessonRequestService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["lesson-requests-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _ulid_path(description: str):
    return Path(
        ...,
        description=description,
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


def _list_response(requests: List[LessonChangeRequest]) -> LessonRequestListResponse:
    return LessonRequestListResponse(
        items=[LessonRequestResponse.model_validate(item) for item in requests],
        total=len(requests),
    )


def _decision_response(outcome: ApprovalOutcome) -> LessonRequestDecisionResponse:
    return LessonRequestDecisionResponse(
        request=LessonRequestResponse.model_validate(outcome.request),
        cancelled_lesson=LessonResponse.model_validate(outcome.cancelled_lesson),
        replacement_lesson=(
            LessonResponse.model_validate(outcome.replacement_lesson)
            if outcome.replacement_lesson is not None
            else None
        ),
    )


def _create(
    service: LessonRequestService,
    notifier: LessonRequestNotifier,
    payload: LessonRequestCreate,
) -> Tuple[LessonChangeRequest, List[NotificationMessage]]:
    request = service.create_request(
        lesson_id=payload.lesson_id,
        request_type=payload.request_type,
        requested_start_at=payload.requested_start_at,
        requested_teacher_id=payload.requested_teacher_id,
        notes=payload.notes,
        created_by_id=payload.created_by_id,
    )
    return request, notifier.request_created_messages(request, request.lesson)


def _approve(
    service: LessonRequestService,
    notifier: LessonRequestNotifier,
    request_id: str,
    role: ApproverRole,
    decision: Optional[AdminDecision] = None,
) -> Tuple[LessonRequestDecisionResponse, List[NotificationMessage]]:
    if decision is None:
        outcome = service.approve_request(request_id, role)
    else:
        outcome = service.approve_request(
            request_id,
            role,
            new_start_at=decision.new_start_at,
            new_teacher_id=decision.new_teacher_id,
            admin_notes=decision.admin_notes,
            processed_by_id=decision.processed_by_id,
        )
    return _decision_response(outcome), notifier.approval_messages(outcome)


def _teacher_reject(
    service: LessonRequestService,
    notifier: LessonRequestNotifier,
    request_id: str,
    notes: Optional[str] = None,
) -> Tuple[LessonRequestDecisionResponse, List[NotificationMessage]]:
    request = service.reject_request(request_id, teacher_notes=notes)
    messages = notifier.teacher_rejection_messages(request, request.lesson)
    response = LessonRequestDecisionResponse(request=LessonRequestResponse.model_validate(request))
    return response, messages


def _admin_reject(
    service: LessonRequestService,
    notifier: LessonRequestNotifier,
    request_id: str,
    decision: AdminDecision,
) -> Tuple[LessonRequestDecisionResponse, List[NotificationMessage]]:
    request = service.admin_reject_request(
        request_id,
        admin_notes=decision.admin_notes,
        processed_by_id=decision.processed_by_id,
    )
    messages = notifier.admin_rejection_messages(request, request.lesson)
    response = LessonRequestDecisionResponse(request=LessonRequestResponse.model_validate(request))
    return response, messages


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post(
    "/lesson-requests",
    response_model=LessonRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid request fields"},
        404: {"description": "Lesson or requested teacher not found"},
        409: {"description": "Lesson not confirmed or a request is already open"},
        422: {"description": "Insufficient notice, holiday or group lesson"},
    },
)
async def create_lesson_request(
    background_tasks: BackgroundTasks,
    payload: LessonRequestCreate = Body(...),
    service: LessonRequestService = Depends(get_lesson_request_service),
    notifier: LessonRequestNotifier = Depends(get_lesson_request_notifier),
) -> LessonRequestResponse:
    """
    Open a change request for a confirmed lesson.

    The request starts PENDING and is routed to the lesson's teacher.
    """
    try:
        request, messages = await asyncio.to_thread(_create, service, notifier, payload)
        background_tasks.add_task(notifier.send, messages)
        return LessonRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/admin/lesson-requests", response_model=LessonRequestListResponse)
async def list_escalated_lesson_requests(
    service: LessonRequestService = Depends(get_lesson_request_service),
) -> LessonRequestListResponse:
    """Requests rejected by a teacher and waiting for an administrative decision."""
    try:
        requests = await asyncio.to_thread(service.list_awaiting_admin)
        return _list_response(requests)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Dynamic routes (with path parameters - placed last)
# ============================================================================


@router.get(
    "/lesson-requests/{request_id}",
    response_model=LessonRequestResponse,
    responses={404: {"description": "Request not found"}},
)
async def get_lesson_request(
    request_id: str = _ulid_path("Lesson change request ULID"),
    service: LessonRequestService = Depends(get_lesson_request_service),
) -> LessonRequestResponse:
    try:
        request = await asyncio.to_thread(service.get_request, request_id)
        return LessonRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/lesson-requests/{request_id}/teacher-approval",
    response_model=LessonRequestDecisionResponse,
    responses={
        404: {"description": "Request not found"},
        409: {"description": "Request already decided or target slot taken"},
    },
)
async def decide_as_teacher(
    background_tasks: BackgroundTasks,
    request_id: str = _ulid_path("Lesson change request ULID"),
    decision: TeacherDecision = Body(...),
    service: LessonRequestService = Depends(get_lesson_request_service),
    notifier: LessonRequestNotifier = Depends(get_lesson_request_notifier),
) -> LessonRequestDecisionResponse:
    """
    Teacher approval or rejection of a pending request.

    Approval applies the calendar change immediately. Rejection escalates the
    request to administration; notes are recorded on rejection only.
    """
    try:
        if decision.approved:
            response, messages = await asyncio.to_thread(
                _approve, service, notifier, request_id, ApproverRole.TEACHER
            )
        else:
            response, messages = await asyncio.to_thread(
                _teacher_reject, service, notifier, request_id, decision.notes
            )
        background_tasks.add_task(notifier.send, messages)
        return response
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/teachers/{teacher_id}/lesson-requests/pending",
    response_model=LessonRequestListResponse,
)
async def list_pending_for_teacher(
    teacher_id: str = _ulid_path("Teacher ULID"),
    service: LessonRequestService = Depends(get_lesson_request_service),
) -> LessonRequestListResponse:
    try:
        requests = await asyncio.to_thread(service.list_pending_for_teacher, teacher_id)
        return _list_response(requests)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/enrollments/{enrollment_id}/lesson-requests",
    response_model=LessonRequestListResponse,
)
async def list_for_enrollment(
    enrollment_id: str = _ulid_path("Enrollment ULID"),
    service: LessonRequestService = Depends(get_lesson_request_service),
) -> LessonRequestListResponse:
    try:
        requests = await asyncio.to_thread(service.list_for_enrollment, enrollment_id)
        return _list_response(requests)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/admin/lesson-requests/{request_id}",
    response_model=LessonRequestDecisionResponse,
    responses={
        404: {"description": "Request, lesson or override teacher not found"},
        409: {"description": "Request already decided or target slot taken"},
    },
)
async def decide_as_admin(
    background_tasks: BackgroundTasks,
    request_id: str = _ulid_path("Lesson change request ULID"),
    decision: AdminDecision = Body(...),
    service: LessonRequestService = Depends(get_lesson_request_service),
    notifier: LessonRequestNotifier = Depends(get_lesson_request_notifier),
) -> LessonRequestDecisionResponse:
    """
    Administrative decision on a pending or teacher-rejected request.

    APPROVE may override the new start and teacher of a reschedule.
    REJECT is final and only valid after a teacher rejection.
    """
    try:
        if decision.action == AdminAction.APPROVE:
            response, messages = await asyncio.to_thread(
                _approve, service, notifier, request_id, ApproverRole.ADMIN, decision
            )
        else:
            response, messages = await asyncio.to_thread(
                _admin_reject, service, notifier, request_id, decision
            )
        background_tasks.add_task(notifier.send, messages)
        return response
    except DomainException as e:
        handle_domain_exception(e)
