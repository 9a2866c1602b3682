"""
Transaction runner for workflow mutations.

Every mutation runs as:

    take keyed locks -> begin -> advisory locks -> work -> commit
    -> release locks -> dispatch outbox

Notifications queued during the work are delivered only after the commit
succeeded and the locks are gone. Lost races (unique violations, database
lock errors, explicit ConcurrencyConflict) are retried a bounded number of
times.
"""

import uuid
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.config import Settings
from fypflow.errors import ConcurrencyConflict
from fypflow.kernel import repositories
from fypflow.kernel.events.event_store import EventStore, serialize_payload
from fypflow.kernel.events.event_types import (
    NotificationIntent,
    PendingEmail,
    PendingNotification,
    RecipientRole,
)
from fypflow.kernel.locks import acquire_advisory_lock
from fypflow.kernel.models import CommitteeKind, Project
from fypflow.logging_config import get_logger
from fypflow.orchestration.dispatcher import Outbox
from fypflow.ports import ClockPort

if TYPE_CHECKING:
    from fypflow.runtime import Runtime

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class UnitOfWork:
    """Session, clock and outbox of one transaction."""

    session: AsyncSession
    clock: ClockPort
    settings: Settings
    outbox: Outbox = field(default_factory=Outbox)
    events: EventStore = field(init=False)

    def __post_init__(self) -> None:
        self.events = EventStore(self.session)
        self._committees: Dict[CommitteeKind, List[uuid.UUID]] = {}

    async def committee(self, kind: CommitteeKind) -> List[uuid.UUID]:
        if kind not in self._committees:
            self._committees[kind] = await repositories.committee_user_ids(self.session, kind)
        return self._committees[kind]

    async def resolve(self, roles: Iterable[RecipientRole], project: Project) -> List[uuid.UUID]:
        """Resolve recipient roles to distinct user ids, in role order."""
        user_ids: List[uuid.UUID] = []
        for role in sorted(roles, key=lambda r: r.value):
            if role is RecipientRole.SUPERVISOR:
                found = [project.supervisor_id] if project.supervisor_id else []
            elif role is RecipientRole.GROUP_LEADER:
                found = [project.group_leader_id] if project.group_leader_id else []
            elif role is RecipientRole.GROUP_MEMBERS:
                found = project.members
            elif role is RecipientRole.EVALUATION_COMMITTEE:
                found = await self.committee(CommitteeKind.EVALUATION)
            else:
                found = await self.committee(CommitteeKind.FYP)
            for user_id in found:
                if user_id not in user_ids:
                    user_ids.append(user_id)
        return user_ids

    async def emit(self, item: NotificationIntent, project: Project, payload: Dict[str, Any]) -> None:
        """Resolve an intent and queue it for delivery after commit."""
        data = serialize_payload(payload)
        user_ids = await self.resolve(item.recipients, project)
        if user_ids:
            self.outbox.notifications.append(
                PendingNotification(user_ids=user_ids, event_type=item.event_type, payload=data)
            )
        if item.email_template is not None:
            recipients = await self.resolve(item.email_recipients, project)
            if recipients:
                self.outbox.emails.append(
                    PendingEmail(recipients=recipients, template=item.email_template, data=data)
                )


async def run_in_transaction(
    runtime: "Runtime",
    work: Callable[[UnitOfWork], Awaitable[T]],
    *,
    lock_keys: Sequence[str] = (),
    attempts: Optional[int] = None,
) -> T:
    """
    Run work(uow) in its own transaction under the given keyed locks.

    lock_keys must already be in lock order (version key before submission
    key). Returns whatever work returns.
    """
    attempts = attempts or runtime.settings.conflict_retry_attempts
    attempt = 0
    while True:
        attempt += 1
        try:
            async with AsyncExitStack() as stack:
                for key in lock_keys:
                    await stack.enter_async_context(runtime.locks.hold(key))
                async with runtime.session_maker() as session:
                    async with session.begin():
                        for key in lock_keys:
                            await acquire_advisory_lock(session, key)
                        uow = UnitOfWork(session=session, clock=runtime.clock, settings=runtime.settings)
                        result = await work(uow)
        except (IntegrityError, OperationalError) as exc:
            if attempt >= attempts:
                raise ConcurrencyConflict(
                    "Lost a concurrent update; please retry",
                    details={"attempts": attempt, "locks": list(lock_keys)},
                ) from exc
            logger.warning(
                "Database conflict, retrying",
                extra={"attempt": attempt, "error": type(exc).__name__, "locks": list(lock_keys)},
            )
            continue
        except ConcurrencyConflict:
            if attempt >= attempts:
                raise
            logger.warning("Concurrency conflict, retrying", extra={"attempt": attempt})
            continue

        if uow.outbox:
            runtime.dispatcher.dispatch(uow.outbox)
        return result


async def run_read(runtime: "Runtime", work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run a read-only query function in a short-lived session."""
    async with runtime.session_maker() as session:
        return await work(session)
