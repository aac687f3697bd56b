"""Request-scoped dependencies and error mapping for the HTTP routers."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.agents.base import Deps
from src.core.errors import (
    DatabaseError,
    DuplicateRecordError,
    InvalidStateTransitionError,
    NoRushError,
    RecordNotFoundError,
    RefundNotEligibleError,
    SubmissionInProgressError,
    classify_error_with_response,
)


logger = logging.getLogger(__name__)


def get_deps(request: Request) -> Deps:
    """The collaborators built at startup."""
    return request.app.state.deps


def status_for(exception: Exception) -> int:  # noqa: PLR0911
    """HTTP status code for an error raised by a service."""
    if isinstance(exception, RecordNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exception, DuplicateRecordError | InvalidStateTransitionError | SubmissionInProgressError):
        return status.HTTP_409_CONFLICT
    if isinstance(exception, RefundNotEligibleError):
        return 422
    if isinstance(exception, DatabaseError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exception, ValueError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _handle_service_error(request: Request, exc: Exception) -> JSONResponse:
    response = classify_error_with_response(exc)
    status_code = status_for(exc)
    log = logger.error if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
    log(
        "request_failed",
        extra={"path": request.url.path, "code": response.code, "status_code": status_code, "error": str(exc)},
    )
    return JSONResponse(status_code=status_code, content={"error": response.model_dump(mode="json")})


def register_error_handlers(app: FastAPI) -> None:
    """Turn service errors into structured JSON error responses."""
    app.add_exception_handler(NoRushError, _handle_service_error)
    app.add_exception_handler(ValueError, _handle_service_error)
