# backend/lesson_engine/repositories/lesson_request_repository.py
"""
Lesson change request persistence.

compare_and_set_status is the optimistic guard of the approval workflow:
a single UPDATE conditioned on the observed status and version. Exactly
one of several concurrent callers observing the same row can win it.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import OPEN_REQUEST_STATUSES, LessonRequestStatus
from ..core.exceptions import RepositoryException
from ..models.lesson_request import LessonChangeRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LessonRequestRepository(BaseRepository[LessonChangeRequest]):
    def __init__(self, db: Session):
        super().__init__(db, LessonChangeRequest)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(LessonChangeRequest.lesson),
            joinedload(LessonChangeRequest.enrollment),
        )

    def get_open_for_lesson(self, lesson_id: str) -> Optional[LessonChangeRequest]:
        try:
            return (
                self.db.query(LessonChangeRequest)
                .filter(
                    LessonChangeRequest.lesson_id == lesson_id,
                    LessonChangeRequest.status.in_([s.value for s in OPEN_REQUEST_STATUSES]),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting open request for lesson {lesson_id}: {str(e)}")
            raise RepositoryException(f"Failed to get open request: {str(e)}") from e

    def compare_and_set_status(
        self,
        request_id: str,
        expected_status: LessonRequestStatus,
        expected_version: int,
        new_status: LessonRequestStatus,
        **values: Any,
    ) -> bool:
        """
        Move a request to new_status only if it still has the observed status and version.

        Returns:
            True when exactly one row was updated
        """
        try:
            stmt = (
                update(LessonChangeRequest)
                .where(
                    LessonChangeRequest.id == request_id,
                    LessonChangeRequest.status == expected_status.value,
                    LessonChangeRequest.version == expected_version,
                )
                .values(
                    status=new_status.value,
                    version=LessonChangeRequest.version + 1,
                    **values,
                )
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating status of request {request_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to update request status: {str(e)}") from e

    def get_current_status(self, request_id: str) -> Optional[str]:
        """Status as stored right now, bypassing the session's identity map."""
        try:
            return (
                self.db.query(LessonChangeRequest.status)
                .filter(LessonChangeRequest.id == request_id)
                .scalar()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading status of request {request_id}: {str(e)}")
            raise RepositoryException(f"Failed to read request status: {str(e)}") from e

    def refresh(self, request: LessonChangeRequest) -> None:
        try:
            self.db.refresh(request)
        except SQLAlchemyError as e:
            self.logger.error(f"Error refreshing request {request.id}: {str(e)}")
            raise RepositoryException(f"Failed to refresh request: {str(e)}") from e

    def list_by_status(
        self, statuses: List[LessonRequestStatus], teacher_id: Optional[str] = None
    ) -> List[LessonChangeRequest]:
        try:
            query = self._apply_eager_loading(self.db.query(LessonChangeRequest)).filter(
                LessonChangeRequest.status.in_([s.value for s in statuses])
            )
            if teacher_id:
                query = query.filter(LessonChangeRequest.teacher_id == teacher_id)
            return query.order_by(LessonChangeRequest.created_at).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing requests by status: {str(e)}")
            raise RepositoryException(f"Failed to list requests: {str(e)}") from e

    def list_for_enrollment(self, enrollment_id: str) -> List[LessonChangeRequest]:
        try:
            return (
                self._apply_eager_loading(self.db.query(LessonChangeRequest))
                .filter(LessonChangeRequest.enrollment_id == enrollment_id)
                .order_by(LessonChangeRequest.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing requests for enrollment {enrollment_id}: {str(e)}")
            raise RepositoryException(f"Failed to list requests: {str(e)}") from e
