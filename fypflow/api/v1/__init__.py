"""
API v1 routes.
"""

from fastapi import APIRouter

from fypflow.api.v1 import deadlines, evaluations, results, submissions

router = APIRouter()

router.include_router(submissions.router, tags=["Submissions"])
router.include_router(evaluations.router, tags=["Evaluations"])
router.include_router(results.router, tags=["Final Results"])
router.include_router(deadlines.router, tags=["Deadlines"])
