"""
Process-wide runtime container.

Everything the workflow services need is injected through a Runtime: the
session factory, the clock, the collaborator ports, the keyed lock table and
the post-commit dispatcher. The application lifespan builds one; tests build
their own with a fake clock and recording ports.
"""

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fypflow.config import Settings
from fypflow.database import create_engine, create_session_maker
from fypflow.kernel.locks import KeyedLockManager
from fypflow.orchestration.dispatcher import NotificationDispatcher
from fypflow.ports import (
    ClockPort,
    EmailPort,
    FileStoragePort,
    LoggingEmailPort,
    LoggingNotificationPort,
    NotificationPort,
    SystemClock,
    UrlFileStorage,
)


@dataclass
class Runtime:
    session_maker: async_sessionmaker[AsyncSession]
    settings: Settings
    clock: ClockPort
    notifications: NotificationPort
    email: EmailPort
    file_storage: FileStoragePort
    locks: KeyedLockManager = field(default_factory=KeyedLockManager)
    engine: Optional[AsyncEngine] = None
    dispatcher: NotificationDispatcher = field(init=False)

    def __post_init__(self) -> None:
        self.dispatcher = NotificationDispatcher(self.notifications, self.email)


def build_runtime(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    clock: Optional[ClockPort] = None,
    notifications: Optional[NotificationPort] = None,
    email: Optional[EmailPort] = None,
    file_storage: Optional[FileStoragePort] = None,
) -> Runtime:
    """Wire a Runtime from settings, using the logging adapters for unset ports."""
    engine = engine or create_engine(settings.database_url, echo=settings.debug)
    return Runtime(
        session_maker=create_session_maker(engine),
        settings=settings,
        clock=clock or SystemClock(),
        notifications=notifications or LoggingNotificationPort(),
        email=email or LoggingEmailPort(),
        file_storage=file_storage or UrlFileStorage(settings.file_base_url),
        engine=engine,
    )
