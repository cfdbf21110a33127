"""Text metrics endpoint, request tracking middleware and dashboard counters.

Tracks: request count, latency, status classes, per-channel report fetch
outcomes and OAuth token refresh outcomes.
"""
import logging
import time
from collections import defaultdict

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 2.0  # dashboard requests fan out to several upstream reports
MAX_SAMPLES = 10_000

_counters: dict[str, float] = defaultdict(float)
_durations: list[float] = []


def record_channel_fetch(outcome: str) -> None:
    """Count one channel's report fetch (``success`` / ``failure``)."""
    _counters[f"channel_fetch_{outcome}"] += 1


def record_token_refresh(outcome: str) -> None:
    _counters[f"token_refresh_{outcome}"] += 1


def reset_metrics() -> None:
    _counters.clear()
    _durations.clear()


def snapshot() -> dict[str, float]:
    return dict(_counters)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Track request metrics."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start
            _counters["http_requests_total"] += 1
            _counters[f"http_requests_{status // 100}xx"] += 1
            _durations.append(duration)
            if len(_durations) > MAX_SAMPLES:
                del _durations[: len(_durations) - MAX_SAMPLES]

            if duration > SLOW_REQUEST_SECONDS:
                logger.warning(
                    "Slow request %s %s: %.0fms (status %d)",
                    request.method, request.url.path, duration * 1000, status,
                )


def _percentile(data: list[float], p: float) -> float:
    if not data:
        return 0.0
    ordered = sorted(data)
    return ordered[min(int(len(ordered) * p / 100), len(ordered) - 1)]


def setup_metrics(app: FastAPI) -> None:
    """Register the /metrics endpoint."""

    @app.get("/metrics", tags=["monitoring"], include_in_schema=False)
    async def metrics_endpoint():
        lines = [
            "# TYPE http_requests_total counter",
            f'http_requests_total {_counters["http_requests_total"]:.0f}',
            "# TYPE http_requests_by_status counter",
        ]
        for status_class in ("2xx", "3xx", "4xx", "5xx"):
            lines.append(
                f'http_requests_by_status{{status="{status_class}"}} '
                f'{_counters[f"http_requests_{status_class}"]:.0f}'
            )
        lines.append("# TYPE http_request_duration_seconds summary")
        for q in (50, 90, 99):
            lines.append(
                f'http_request_duration_seconds{{quantile="{q / 100}"}} {_percentile(_durations, q):.6f}'
            )
        lines.append(f"http_request_duration_seconds_count {len(_durations)}")
        lines.append("# TYPE channel_fetch_total counter")
        for outcome in ("success", "failure"):
            lines.append(
                f'channel_fetch_total{{outcome="{outcome}"}} {_counters[f"channel_fetch_{outcome}"]:.0f}'
            )
        lines.append("# TYPE token_refresh_total counter")
        for outcome in ("success", "failure"):
            lines.append(
                f'token_refresh_total{{outcome="{outcome}"}} {_counters[f"token_refresh_{outcome}"]:.0f}'
            )
        return PlainTextResponse("\n".join(lines) + "\n", media_type="text/plain")
