"""
FYP Submission Workflow

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from fypflow.api.deps import RuntimeDep
from fypflow.api.middleware.request_id import RequestIdMiddleware
from fypflow.api.v1 import router as api_v1_router
from fypflow.config import get_settings
from fypflow.database import close_db, init_db
from fypflow.engines.deadlines.scheduler import DeadlineSweepScheduler
from fypflow.errors import (
    BusinessRuleViolation,
    ConcurrencyConflict,
    FypflowError,
    NotFound,
    ValidationError,
)
from fypflow.logging_config import configure_logging, get_logger
from fypflow.runtime import build_runtime
from fypflow.schemas.common import ErrorResponse, HealthResponse

settings = get_settings()
logger = get_logger(__name__)

_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ConcurrencyConflict, status.HTTP_409_CONFLICT),
    (BusinessRuleViolation, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def status_for(exc: FypflowError) -> int:
    for error_class, code in _ERROR_STATUS:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Builds the runtime, prepares the database and owns the deadline sweep
    scheduler.
    """
    # Configure logging first
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    # Startup
    logger.info("Starting %s v%s", settings.project_name, settings.version)
    runtime = build_runtime(settings)
    app.state.runtime = runtime
    await init_db(runtime.engine)
    logger.info("Database initialized")

    scheduler = None
    if settings.deadline_sweep_enabled:
        scheduler = DeadlineSweepScheduler(runtime)
        scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    if scheduler is not None:
        await scheduler.stop()
    await runtime.dispatcher.drain()
    await close_db(runtime.engine)
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    FYP Submission Workflow

    Versioned document submissions for final-year projects.

    ## Features

    - **Submissions**: gap-free versions per project and document type
    - **Supervisor Review**: approval, revision requests and deadline-aware locking
    - **Deadline Sweep**: periodic auto-lock of stale submissions
    - **Evaluation**: committee marks with draft and final states
    - **Final Results**: weighted supervisor and committee scores, released once
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(RequestIdMiddleware)


def _request_headers(request: Request) -> dict:
    req_id = getattr(request.state, "request_id", None)
    return {"X-Request-ID": req_id} if req_id else {}


@app.exception_handler(FypflowError)
async def workflow_exception_handler(request: Request, exc: FypflowError):
    """Map workflow errors to 400/404/409/422 with their code."""
    status_code = status_for(exc)
    if status_code == status.HTTP_409_CONFLICT:
        logger.warning("Concurrency conflict surfaced: %s", exc.message, extra={"code": exc.code})
    body = ErrorResponse(detail=exc.message, code=exc.code, details=exc.details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=_request_headers(request),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=_request_headers(request),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "code": "REQUEST_VALIDATION", "errors": errors},
        headers=_request_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_request_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(runtime: RuntimeDep):
    """Check application and database health."""
    database = "connected"
    try:
        async with runtime.session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database probe failed", exc_info=True)
        database = "unavailable"
    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        version=settings.version,
        database=database,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fypflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
