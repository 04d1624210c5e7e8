"""JSON logs through structlog, with request and actor context.

Every line logged while a request is served carries ``request_id``,
``trace_id``, ``path`` and ``method``. The closing ``request_completed`` line
also names the authenticated ``user_id`` and ``company_id``.
"""

from __future__ import annotations

import logging
import sys
import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"
COMPANY_HEADER = "X-Company-ID"

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def configure_logging(service_name: str, level: int = logging.INFO) -> structlog.stdlib.BoundLogger:
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.processors.JSONRenderer()],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(service_name).bind(service=service_name)


def remember_actor(request: Request, user_id, company_id) -> None:
    """Record the authenticated user so the request log line can name it."""
    request.state.log_user_id = str(user_id)
    request.state.log_company_id = str(company_id) if company_id else None


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, logger=None) -> None:
        super().__init__(app)
        self._logger = logger or structlog.get_logger("marketplace.requests")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            trace_id=request.headers.get(TRACE_ID_HEADER) or request_id,
            company_id=request.headers.get(COMPANY_HEADER),
            path=request.url.path,
            method=request.method,
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception("request_failed")
            raise
        else:
            actor = {}
            user_id = getattr(request.state, "log_user_id", None)
            if user_id:
                # the verified token wins over the client-supplied header
                actor = {"user_id": user_id, "company_id": request.state.log_company_id}
            self._logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                **actor,
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()
