import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.metrics import increment_http_requests

logger = logging.getLogger("umapesa.http")

SENSITIVE_HEADERS = {"authorization", "cookie", "x-nhonga-signature", "x-signature"}

# Metrics label for requests no route matched.
UNMATCHED_ROUTE = "<unmatched>"


def _safe_headers(headers: dict) -> dict:
    safe = {}
    for k, v in headers.items():
        lk = k.lower()
        if lk in SENSITIVE_HEADERS:
            safe[k] = "***"
        else:
            safe[k] = v
    return safe


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        start = time.time()

        request.state.request_id = req_id

        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-Id"] = req_id
            return response
        finally:
            duration_ms = int((time.time() - start) * 1000)
            status = getattr(response, "status_code", 500)
            route = request.scope.get("route")
            increment_http_requests(getattr(route, "path", UNMATCHED_ROUTE), status)

            # no PII: bodies are never logged here
            logger.info(
                "http_request request_id=%s method=%s path=%s status=%s duration_ms=%s client=%s headers=%s",
                req_id,
                request.method,
                request.url.path,
                status,
                duration_ms,
                request.client.host if request.client else None,
                _safe_headers(dict(request.headers)),
            )
