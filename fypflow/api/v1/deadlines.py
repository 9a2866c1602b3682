"""Deadline sweep trigger."""

from fastapi import APIRouter

from fypflow.api.deps import Deadlines, FypCommitteeActor
from fypflow.logging_config import get_logger
from fypflow.schemas.common import SweepReport

router = APIRouter()
logger = get_logger(__name__)


@router.post("/deadlines/sweep", response_model=SweepReport)
async def run_deadline_sweep(actor_id: FypCommitteeActor, processor: Deadlines):
    """Run the deadline sweep now. Safe to call while the scheduler runs."""
    logger.info("Deadline sweep requested", extra={"actor_id": str(actor_id)})
    return await processor.run_deadline_sweep()
