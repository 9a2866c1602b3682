"""Final result endpoints."""

import uuid

from fastapi import APIRouter

from fypflow.api.deps import FypCommitteeActor, Scoring
from fypflow.schemas.result import FinalResultResponse

router = APIRouter()


@router.post("/projects/{project_id}/final-result/compute", response_model=FinalResultResponse)
async def compute_final_result(project_id: uuid.UUID, actor_id: FypCommitteeActor, engine: Scoring):
    """Compute or recompute the project's result (rejected once released)."""
    return await engine.compute_final_result(project_id, actor_id)


@router.post("/projects/{project_id}/final-result/release", response_model=FinalResultResponse)
async def release_final_result(project_id: uuid.UUID, actor_id: FypCommitteeActor, engine: Scoring):
    return await engine.release_final_result(project_id, actor_id)


@router.get("/projects/{project_id}/final-result", response_model=FinalResultResponse)
async def get_final_result(project_id: uuid.UUID, engine: Scoring):
    return await engine.get_final_result(project_id)


@router.get("/projects/{project_id}/final-result/released", response_model=FinalResultResponse)
async def get_released_result(project_id: uuid.UUID, engine: Scoring):
    return await engine.get_released_result(project_id)
