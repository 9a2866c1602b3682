"""
Collaborator ports consumed by the workflow core, plus the default adapters
the application runs with when no real integration is wired in.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from fypflow.kernel.events.event_types import EmailTemplate, NotificationType
from fypflow.logging_config import get_logger

logger = get_logger(__name__)


class FileRef(BaseModel):
    """Resolved location of an uploaded file."""

    url: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class NotificationPort(Protocol):
    async def notify(self, user_id: uuid.UUID, event_type: NotificationType, payload: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class EmailPort(Protocol):
    async def send_templated_email(
        self,
        recipients: List[uuid.UUID],
        template: EmailTemplate,
        data: Dict[str, Any],
    ) -> None:
        ...


@runtime_checkable
class FileStoragePort(Protocol):
    async def resolve_file(self, file_id: str) -> Optional[FileRef]:
        ...


@runtime_checkable
class ClockPort(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class LoggingNotificationPort:
    """Writes notifications to the log; stands in until a delivery channel is wired."""

    async def notify(self, user_id: uuid.UUID, event_type: NotificationType, payload: Dict[str, Any]) -> None:
        logger.info(
            "Notification %s for %s",
            event_type.value,
            user_id,
            extra={"payload": payload},
        )


class LoggingEmailPort:
    """Writes emails to the log."""

    async def send_templated_email(
        self,
        recipients: List[uuid.UUID],
        template: EmailTemplate,
        data: Dict[str, Any],
    ) -> None:
        logger.info(
            "Email %s to %d recipient(s)",
            template.value,
            len(recipients),
            extra={"data": data},
        )


class UrlFileStorage:
    """Resolves file ids against a static base URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    async def resolve_file(self, file_id: str) -> Optional[FileRef]:
        if not file_id:
            return None
        return FileRef(url=f"{self.base_url}/{file_id}", metadata={"file_id": file_id})
