"""
Post-commit delivery of notifications and emails.

Deliveries run as background tasks so a slow collaborator never stalls a
transition. Failures are logged and dropped: delivery is best-effort and
never rolls back committed state.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Set

from fypflow.kernel.events.event_types import PendingEmail, PendingNotification
from fypflow.logging_config import get_logger
from fypflow.ports import EmailPort, NotificationPort

logger = get_logger(__name__)


@dataclass
class Outbox:
    """Messages collected during one transaction."""

    notifications: List[PendingNotification] = field(default_factory=list)
    emails: List[PendingEmail] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.notifications or self.emails)


class NotificationDispatcher:
    """Delivers an Outbox through the notification and email ports."""

    def __init__(self, notifications: NotificationPort, email: EmailPort):
        self.notifications = notifications
        self.email = email
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, outbox: Outbox) -> None:
        """Schedule delivery of everything in the outbox. Call only after commit."""
        for item in outbox.notifications:
            for user_id in item.user_ids:
                self._spawn(self._deliver_notification(user_id, item))
        for mail in outbox.emails:
            if mail.recipients:
                self._spawn(self._deliver_email(mail))

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver_notification(self, user_id, item: PendingNotification) -> None:
        try:
            await self.notifications.notify(user_id, item.event_type, item.payload)
        except Exception:
            logger.warning(
                "Notification delivery failed",
                exc_info=True,
                extra={"event_type": item.event_type.value, "user_id": str(user_id)},
            )

    async def _deliver_email(self, mail: PendingEmail) -> None:
        try:
            await self.email.send_templated_email(mail.recipients, mail.template, mail.data)
        except Exception:
            logger.warning(
                "Email delivery failed",
                exc_info=True,
                extra={"template": mail.template.value, "recipients": len(mail.recipients)},
            )
