from __future__ import annotations
import json
import logging
import time
from typing import Any, Callable
from starlette.requests import Request
from starlette.responses import Response

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# request.state attributes copied into the per-request log line
STATE_KEYS = ("image_type", "image_bytes", "degraded", "history_len", "audio_bytes")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; repeated calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger("floorplan").setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("api").setLevel(getattr(logging, level.upper(), logging.INFO))


def json_logger_middleware() -> Callable:
    """Return a Starlette middleware callable that logs a JSON line per request.

    It captures: method, path, status, latency_ms, and any of STATE_KEYS set on
    request.state by the route (e.g. whether an analysis degraded).
    """

    async def _middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response: Response = await call_next(request)
            status = response.status_code
        finally:
            latency_ms = round((time.perf_counter() - start) * 1000.0, 2)
            s = getattr(request, "state", None)
            payload = {
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "latency_ms": latency_ms,
            }
            for k in STATE_KEYS:
                if s is not None and hasattr(s, k):
                    payload[k] = getattr(s, k)
            print(json.dumps(payload, default=str), flush=True)
        return response

    return _middleware
