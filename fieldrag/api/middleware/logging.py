"""Request/response logging middleware."""

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from fieldrag.utils.monitoring import observe_request

logger = logging.getLogger("fieldrag.api")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log and meter every inbound HTTP request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        path_template = getattr(route, "path", request.url.path)
        observe_request(request.method, path_template, response.status_code, duration)
        logger.info(
            "%s %s -> %s in %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            duration * 1000,
            extra={"client": request.client.host if request.client else None},
        )
        return response
