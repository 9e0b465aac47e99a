"""Request timing and request-id middleware."""

import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.get_logger()

MAX_SAMPLES = 1000
REQUEST_ID_HEADER = "X-Request-ID"

# Liveness and readiness checks would dominate the stats
UNTRACKED_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})


@dataclass
class EndpointStats:
    """Latency samples and server error count for one route."""

    latencies: list[float] = field(default_factory=list)
    errors: int = 0

    @property
    def count(self) -> int:
        return len(self.latencies)

    @property
    def p50(self) -> float:
        if not self.latencies:
            return 0.0
        s = sorted(self.latencies)
        return s[len(s) // 2]

    @property
    def p95(self) -> float:
        if not self.latencies:
            return 0.0
        s = sorted(self.latencies)
        return s[min(int(len(s) * 0.95), len(s) - 1)]

    @property
    def avg(self) -> float:
        return sum(self.latencies) / len(self.latencies) if self.latencies else 0.0

    def record(self, duration: float, status_code: int) -> None:
        self.latencies.append(duration)
        if len(self.latencies) > MAX_SAMPLES:
            self.latencies = self.latencies[-MAX_SAMPLES:]
        if status_code >= 500:
            self.errors += 1

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "errors": self.errors,
            "avg_ms": round(self.avg * 1000, 2),
            "p50_ms": round(self.p50 * 1000, 2),
            "p95_ms": round(self.p95 * 1000, 2),
        }


_endpoint_stats: dict[str, EndpointStats] = defaultdict(EndpointStats)


def get_endpoint_stats() -> dict[str, dict]:
    """Collected stats keyed by "METHOD /route/template"."""
    return {key: stats.to_dict() for key, stats in _endpoint_stats.items()}


def reset_endpoint_stats() -> None:
    _endpoint_stats.clear()


class TimingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the log context and times every request.

    Adds ``X-Request-ID`` and ``X-Response-Time-Ms`` to responses, records
    per-route stats and logs requests slower than ``slow_request_ms``
    (typically endpoints that wait on CJ).
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        duration_ms = round(duration * 1000, 2)

        # Group by route template so /products/1 and /products/2 share stats
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        if path not in UNTRACKED_PATHS:
            _endpoint_stats[f"{request.method} {path}"].record(duration, response.status_code)

        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        response.headers[REQUEST_ID_HEADER] = request_id

        if duration_ms >= self.slow_request_ms:
            logger.warning(
                "Slow request",
                path=path,
                method=request.method,
                status=response.status_code,
                duration_ms=duration_ms,
            )
        else:
            logger.debug(
                "Request completed",
                path=path,
                method=request.method,
                status=response.status_code,
                duration_ms=duration_ms,
            )

        return response
