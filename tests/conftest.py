"""
Pytest fixtures for the submission workflow tests.

Every test gets its own file-backed SQLite database (all connections share
the file), a fake clock and recording collaborator ports wired into a
Runtime.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from fypflow.config import Settings
from fypflow.database import close_db, create_engine, create_session_maker, init_db
from fypflow.engines.deadlines.processor import DeadlineProcessor
from fypflow.engines.evaluation.aggregator import EvaluationAggregator
from fypflow.engines.scoring.engine import ScoringEngine
from fypflow.engines.submission.service import SubmissionService
from fypflow.kernel.events.event_store import EventStore
from fypflow.kernel.events.event_types import EmailTemplate, NotificationType
from fypflow.kernel.models import (
    CommitteeKind,
    CommitteeMember,
    Deadline,
    DeadlineBatch,
    DocumentType,
    EventType,
    Project,
    ProjectStatus,
)
from fypflow.ports import UrlFileStorage
from fypflow.runtime import Runtime

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingNotificationPort:
    """Keeps every notification; raises for user ids listed in fail_for."""

    def __init__(self):
        self.sent: List[Tuple[uuid.UUID, NotificationType, Dict[str, Any]]] = []
        self.fail_for: set = set()

    async def notify(self, user_id, event_type, payload) -> None:
        if user_id in self.fail_for:
            raise RuntimeError("notification channel down")
        self.sent.append((user_id, event_type, payload))

    def of_type(self, event_type: NotificationType) -> List[Tuple[uuid.UUID, NotificationType, Dict[str, Any]]]:
        return [n for n in self.sent if n[1] is event_type]

    def to(self, user_id: uuid.UUID) -> List[NotificationType]:
        return [n[1] for n in self.sent if n[0] == user_id]


class RecordingEmailPort:
    def __init__(self):
        self.sent: List[Tuple[List[uuid.UUID], EmailTemplate, Dict[str, Any]]] = []
        self.fail = False

    async def send_templated_email(self, recipients, template, data) -> None:
        if self.fail:
            raise RuntimeError("smtp unavailable")
        self.sent.append((list(recipients), template, data))

    def of_template(self, template: EmailTemplate):
        return [e for e in self.sent if e[1] is template]


@dataclass
class ProjectFixture:
    """Ids of a seeded project and its people."""

    id: uuid.UUID
    supervisor_id: uuid.UUID
    leader_id: uuid.UUID
    member_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def group(self) -> List[uuid.UUID]:
        return [self.leader_id] + self.member_ids


class Seeder:
    """Inserts reference data directly through the session maker."""

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    async def _add(self, *rows):
        async with self.runtime.session_maker() as session:
            async with session.begin():
                session.add_all(rows)
        return rows[0] if len(rows) == 1 else rows

    async def document_type(
        self,
        code: str = "SRS",
        weight_supervisor: int = 20,
        weight_committee: int = 80,
        display_order: int = 0,
        is_active: bool = True,
    ) -> DocumentType:
        return await self._add(
            DocumentType(
                id=uuid.uuid4(),
                code=code,
                title=f"{code} Document",
                weight_supervisor=weight_supervisor,
                weight_committee=weight_committee,
                display_order=display_order,
                is_active=is_active,
            )
        )

    async def batch(self, name: str = "Fall 2026") -> DeadlineBatch:
        return await self._add(
            DeadlineBatch(
                id=uuid.uuid4(),
                name=name,
                applies_from=NOW - timedelta(days=120),
                applies_until=None,
                is_active=True,
            )
        )

    async def deadline(self, batch: DeadlineBatch, document_type: DocumentType, due_at: datetime) -> Deadline:
        return await self._add(
            Deadline(
                id=uuid.uuid4(),
                batch_id=batch.id,
                document_type_id=document_type.id,
                due_at=due_at,
            )
        )

    async def project(
        self,
        batch: Optional[DeadlineBatch] = None,
        status: ProjectStatus = ProjectStatus.APPROVED,
        members: int = 2,
    ) -> ProjectFixture:
        fixture = ProjectFixture(
            id=uuid.uuid4(),
            supervisor_id=uuid.uuid4(),
            leader_id=uuid.uuid4(),
            member_ids=[uuid.uuid4() for _ in range(members)],
        )
        await self._add(
            Project(
                id=fixture.id,
                title=f"Project {fixture.id.hex[:6]}",
                status=status,
                supervisor_id=fixture.supervisor_id,
                group_leader_id=fixture.leader_id,
                member_ids=[str(m) for m in fixture.group],
                deadline_batch_id=batch.id if batch else None,
                approved_at=NOW - timedelta(days=60),
            )
        )
        return fixture

    async def committee(self, kind: CommitteeKind, size: int) -> List[uuid.UUID]:
        user_ids = [uuid.uuid4() for _ in range(size)]
        await self._add(
            *[CommitteeMember(id=uuid.uuid4(), user_id=u, committee=kind, is_active=True) for u in user_ids]
        )
        return user_ids


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifications() -> RecordingNotificationPort:
    return RecordingNotificationPort()


@pytest.fixture
def email() -> RecordingEmailPort:
    return RecordingEmailPort()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'fypflow.db'}",
        environment="test",
        deadline_sweep_enabled=False,
        file_base_url="https://files.test",
    )


@pytest_asyncio.fixture
async def db_engine(settings):
    """Create a test database engine with all tables."""
    engine = create_engine(settings.database_url)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def runtime(db_engine, settings, clock, notifications, email) -> Runtime:
    runtime = Runtime(
        session_maker=create_session_maker(db_engine),
        settings=settings,
        clock=clock,
        notifications=notifications,
        email=email,
        file_storage=UrlFileStorage(settings.file_base_url),
        engine=db_engine,
    )
    yield runtime
    await runtime.dispatcher.drain()


@pytest.fixture
def seed(runtime) -> Seeder:
    return Seeder(runtime)


@pytest.fixture
def submissions(runtime) -> SubmissionService:
    return SubmissionService(runtime)


@pytest.fixture
def evaluations(runtime) -> EvaluationAggregator:
    return EvaluationAggregator(runtime)


@pytest.fixture
def scoring(runtime) -> ScoringEngine:
    return ScoringEngine(runtime)


@pytest.fixture
def processor(runtime) -> DeadlineProcessor:
    return DeadlineProcessor(runtime)


@pytest.fixture
def evaluate_document(submissions, evaluations):
    """
    Drive one document of a project to EVAL_FINALIZED: upload, approve with
    the supervisor score, lock, then one finalized mark per committee score.
    """

    async def run(project: ProjectFixture, document_type: DocumentType, supervisor_score="80", committee_scores=("80",)):
        submission = await submissions.create(
            project.id,
            document_type.id,
            file_id=f"{document_type.code}.pdf",
            uploaded_by=project.leader_id,
        )
        await submissions.review(
            submission.id,
            project.supervisor_id,
            approve=True,
            marks=Decimal(supervisor_score),
        )
        await submissions.lock_for_evaluation(submission.id)
        evaluators = [uuid.uuid4() for _ in committee_scores]
        # Drafts first: finalizing the only recorded mark completes the evaluation
        for evaluator_id, score in zip(evaluators, committee_scores):
            await evaluations.record_mark(submission.id, evaluator_id, Decimal(score))
        for evaluator_id in evaluators:
            await evaluations.finalize_mark(submission.id, evaluator_id)
        return submission

    return run


@pytest.fixture
def audit(runtime):
    """Count audit log entries: await audit(EventType.X, entity_id=...)."""

    async def count(event_type: EventType, entity_id: Optional[uuid.UUID] = None) -> int:
        async with runtime.session_maker() as session:
            return await EventStore(session).count_events(entity_id=entity_id, event_type=event_type)

    return count
