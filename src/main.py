"""norush - writing pledges validated day by day, refunded as they are kept."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.agents.base import Deps
from src.agents.quality_oracle import PydanticAIQualityOracle
from src.core.config import settings
from src.core.db_client import SQLiteDBClient
from src.core.logging import configure_logfire, instrument_fastapi, instrument_pydantic_ai
from src.core.scheduler import CLOSE_OUT_JOB_ID, job_status, start_scheduler, stop_scheduler
from src.interface.dependencies import register_error_handlers
from src.interface.refund_router import router as refund_router
from src.interface.task_router import router as task_router
from src.interface.validation_router import router as validation_router
from src.services.dictionary_client import build_dictionary_client


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Validate required credentials, exiting with a clear message if any are missing.

    The dictionary key is optional: without it words are checked by the
    built-in heuristic only.
    """
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("openrouter_api_key", "OpenRouter API key")
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})

        if not settings.dictionary_app_key:
            logger.warning("startup_validation", extra={"service": "dictionary", "status": "disabled"})

        logger.info("startup_validation_complete", extra={"status": "ok"})

    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    When the app was created with ready-made ``Deps`` (tests, embedding) the
    caller owns them and nothing is started or closed here.
    """
    # Configure logging first so validation logs are captured
    configure_logfire()

    if app.state.deps is not None:
        yield
        return

    validate_startup_configuration()

    db = SQLiteDBClient()
    await db.init_db()
    logger.info("Database initialized")

    dictionary = build_dictionary_client(settings)
    deps = Deps(db=db, oracle=PydanticAIQualityOracle(), dictionary=dictionary)
    app.state.deps = deps

    instrument_pydantic_ai()
    start_scheduler(deps)
    try:
        yield
    finally:
        stop_scheduler()
        if dictionary is not None:
            await dictionary.aclose()
        await db.close()


def create_app(deps: Deps | None = None) -> FastAPI:
    """Build the FastAPI application, optionally around existing collaborators."""
    application = FastAPI(
        title="norush",
        description="Writing pledges validated day by day, refunded as they are kept",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.deps = deps

    # Instrument FastAPI with Logfire
    instrument_fastapi(application)
    register_error_handlers(application)

    application.include_router(validation_router)
    application.include_router(task_router)
    application.include_router(refund_router)

    @application.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=200)

    @application.get("/health/scheduler")
    async def scheduler_health_check() -> JSONResponse:
        """Last outcome of the daily close-out job."""
        status = job_status.get(CLOSE_OUT_JOB_ID)
        healthy = status is None or status["consecutive_failures"] == 0
        return JSONResponse(
            content={"status": "healthy" if healthy else "degraded", "jobs": job_status},
            status_code=200 if healthy else 503,
        )

    return application


app = create_app()
