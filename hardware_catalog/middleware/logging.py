import time
import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from hardware_catalog.core.config import settings
from hardware_catalog.core.metrics import HTTP_REQUEST_DURATION_SECONDS, HTTP_REQUESTS_TOTAL

SERVICE_NAME = settings.SERVICE_NAME
SKIP_METRICS_PATHS = {"/metrics", "/health"}


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to every log line of the request and records HTTP metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        started = time.perf_counter()

        with logger.contextualize(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("Unhandled error on {method} {path}", method=request.method, path=request.url.path)
                self._observe(request, 500, time.perf_counter() - started)
                raise

            elapsed = time.perf_counter() - started
            logger.info(
                "{method} {path} -> {status} in {ms}ms",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                ms=round(elapsed * 1000, 2),
            )
            self._observe(request, response.status_code, elapsed)

        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    def _observe(request: Request, status_code: int, elapsed: float):
        path = _route_template(request)
        if path in SKIP_METRICS_PATHS:
            return
        HTTP_REQUESTS_TOTAL.labels(
            service=SERVICE_NAME,
            method=request.method,
            path=path,
            status_code=str(status_code),
        ).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(
            service=SERVICE_NAME,
            method=request.method,
            path=path,
        ).observe(elapsed)
