"""Logfire setup for norush.

Modules log through ``logging.getLogger(__name__)`` with structured ``extra``
fields; once ``configure_logfire`` has run those records reach Logfire
alongside the request, oracle and service spans created here.
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire; records are only shipped when a token is set."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="norush",
        service_version="0.1.0",
        environment="production",
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured successfully")


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every HTTP request handled by ``app``."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def instrument_pydantic_ai() -> None:
    """Trace the quality oracle's agent runs, prompts included."""
    logfire.instrument_pydantic_ai()
    logger.info("Pydantic AI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span around one service operation, e.g. ``span("task_service.activate_task")``."""
    return logfire.span(name)
