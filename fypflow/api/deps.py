"""
FastAPI dependencies for the runtime container, workflow services and the
acting user.

Authentication happens upstream; the gateway forwards the authenticated user
id in the X-User-Id header.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from fypflow.engines.deadlines.processor import DeadlineProcessor
from fypflow.engines.evaluation.aggregator import EvaluationAggregator
from fypflow.engines.scoring.engine import ScoringEngine
from fypflow.engines.submission.service import SubmissionService
from fypflow.errors import BusinessRuleViolation
from fypflow.kernel import repositories
from fypflow.kernel.models import CommitteeKind
from fypflow.orchestration.unit_of_work import run_read
from fypflow.runtime import Runtime

USER_ID_HEADER = "X-User-Id"


def get_runtime(request: Request) -> Runtime:
    """Runtime built by the application lifespan (or installed by tests)."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return runtime


RuntimeDep = Annotated[Runtime, Depends(get_runtime)]


async def get_actor_id(
    x_user_id: Annotated[Optional[str], Header(alias=USER_ID_HEADER)] = None,
) -> uuid.UUID:
    """Get the acting user id or raise 401."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {USER_ID_HEADER} header",
        )


ActorId = Annotated[uuid.UUID, Depends(get_actor_id)]


async def get_fyp_committee_actor(actor_id: ActorId, runtime: RuntimeDep) -> uuid.UUID:
    """Acting user, who must sit on the FYP committee."""

    async def load(session):
        return await repositories.committee_user_ids(session, CommitteeKind.FYP)

    if actor_id not in await run_read(runtime, load):
        raise BusinessRuleViolation(
            "Only the FYP committee can perform this action",
            code="PERMISSION_DENIED",
            details={"actor_id": str(actor_id)},
        )
    return actor_id


FypCommitteeActor = Annotated[uuid.UUID, Depends(get_fyp_committee_actor)]


def get_submission_service(runtime: RuntimeDep) -> SubmissionService:
    return SubmissionService(runtime)


def get_evaluation_aggregator(runtime: RuntimeDep) -> EvaluationAggregator:
    return EvaluationAggregator(runtime)


def get_scoring_engine(runtime: RuntimeDep) -> ScoringEngine:
    return ScoringEngine(runtime)


def get_deadline_processor(runtime: RuntimeDep) -> DeadlineProcessor:
    return DeadlineProcessor(runtime)


Submissions = Annotated[SubmissionService, Depends(get_submission_service)]
Evaluations = Annotated[EvaluationAggregator, Depends(get_evaluation_aggregator)]
Scoring = Annotated[ScoringEngine, Depends(get_scoring_engine)]
Deadlines = Annotated[DeadlineProcessor, Depends(get_deadline_processor)]
