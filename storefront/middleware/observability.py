from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.config import TRUST_PROXY_HEADERS
from storefront.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


def resolve_client_address(request: Request) -> str | None:
    """Dirección de red del cliente; X-Forwarded-For solo detrás de un proxy confiable."""
    if TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is None:
        return None
    return request.client.host


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        client_ip = resolve_client_address(request)
        request.state.request_id = request_id
        set_request_context(request_id=request_id, client_ip=client_ip)

        status_code = 500
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "client_ip": client_ip,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if "response" in locals():
                response.headers["X-Request-ID"] = request_id

            clear_request_context()
