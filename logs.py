"""Structlog-based logging helpers and the request logging middleware."""

import logging
import sys
import time
from typing import Optional, TextIO

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

import config

__all__ = ["configure_logging", "get_logger", "RequestLoggingMiddleware"]

_CONFIGURED = False
_TIME_STAMPER = structlog.processors.TimeStamper(fmt="iso", key="timestamp")


def _renderer():
    if config.LOG_JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(stream: Optional[TextIO] = None) -> None:
    """Configure structlog and stdlib logging once."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _TIME_STAMPER,
    ]

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(),
            foreign_pre_chain=shared,
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    structlog.configure(
        processors=shared + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the service name."""

    logger = structlog.get_logger(name) if name else structlog.get_logger()
    return logger.bind(service="portfolio-api")


log = get_logger("portfolio.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    # Bodies and query strings are never logged.
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
