# backend/lesson_engine/notifications/dispatcher.py
"""
Notification dispatch contract.

Delivery (email, chat, push) is an external collaborator. The engine only
hands over NotificationMessage snapshots; they carry plain values so they
can be dispatched after the database session is gone.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
import logging
from typing import Any, Dict, Optional, Protocol

from ..core.enums import NotificationKind, RecipientRole

logger = logging.getLogger(__name__)


@dataclass
class NotificationMessage:
    """One notification for one recipient."""

    kind: NotificationKind
    recipient_role: RecipientRole
    request_id: str
    lesson_id: str
    lesson_start_at: datetime
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = None
    old_start_at: Optional[datetime] = None
    new_start_at: Optional[datetime] = None
    old_teacher_id: Optional[str] = None
    new_teacher_id: Optional[str] = None
    notes: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
        payload["kind"] = self.kind.value
        payload["recipient_role"] = self.recipient_role.value
        return payload


class NotificationDispatcher(Protocol):
    """Protocol for delivery backends."""

    def dispatch(self, message: NotificationMessage) -> None:
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records the message in the application log only."""

    def dispatch(self, message: NotificationMessage) -> None:
        logger.info(
            f"Notification {message.kind.value} for {message.recipient_role.value}",
            extra={"notification": message.to_dict()},
        )
