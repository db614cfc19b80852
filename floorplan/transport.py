"""Transport client: one outbound call with timeout, abort and retry.

Every attempt gets a fresh timeout window. A failure is retried only when it
carries one of RETRYABLE_STATUSES; the wait before retry n is
`TRANSPORT_BACKOFF_MS * n`. Timeouts, aborts, network failures and malformed
bodies are terminal.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

import floorplan.config as cfg
from floorplan.errors import (
    FloorPlanError,
    InvalidResponse,
    RequestAborted,
    RequestTimeout,
    TransportError,
)
from floorplan.retry import RetryPolicy, Sleep, run_with_retry

logger = logging.getLogger(__name__)


@dataclass
class TransportRequest:
    method: str
    path: str
    json: Optional[Any] = None
    files: Optional[Dict[str, Any]] = None
    expect: str = "json"  # json | bytes
    headers: Dict[str, str] = field(default_factory=dict)
    failure_message: str = "Request failed"


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, (RequestTimeout, RequestAborted)):
        return False
    return isinstance(error, TransportError) and error.status in cfg.RETRYABLE_STATUSES


def _error_message(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return default


class TransportClient:
    """Wraps httpx.AsyncClient with the gateway's resilience policy."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_ms: int = 30_000,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self.policy = RetryPolicy(
            max_retries=max_retries,
            base_delay_ms=cfg.TRANSPORT_BACKOFF_MS,
            retryable=is_retryable,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Per-attempt timeouts are enforced here, not by httpx
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(self, request: TransportRequest) -> Any:
        headers = {
            "Accept": "application/json" if request.expect == "json" else "audio/wav",
            **request.headers,
        }
        kwargs: Dict[str, Any] = {}
        if request.json is not None:
            kwargs["json"] = request.json
        if request.files:
            kwargs["files"] = request.files
        try:
            resp = await self.client.request(
                request.method, self._url(request.path), headers=headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise TransportError("An unexpected error occurred") from e

        if not resp.is_success:
            raise TransportError(
                _error_message(resp, request.failure_message), status=resp.status_code
            )
        if request.expect == "bytes":
            return resp.content
        try:
            return resp.json()
        except ValueError as e:
            raise InvalidResponse("Invalid response format") from e

    async def _attempt(self, request: TransportRequest, abort: Optional[asyncio.Event]) -> Any:
        if abort is not None and abort.is_set():
            raise RequestAborted()
        send = asyncio.ensure_future(self._send(request))
        waiters = {send}
        aborter = None
        if abort is not None:
            aborter = asyncio.ensure_future(abort.wait())
            waiters.add(aborter)
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self.timeout_ms / 1000.0,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            leftover = [task for task in waiters if not task.done()]
            for task in leftover:
                task.cancel()
            if leftover:
                await asyncio.gather(*leftover, return_exceptions=True)
        if send in done:
            return send.result()
        if aborter is not None and aborter in done:
            raise RequestAborted()
        raise RequestTimeout()

    async def execute(
        self, request: TransportRequest, *, abort: Optional[asyncio.Event] = None
    ) -> Any:
        """Run `request` under the retry policy; return parsed JSON or bytes.

        Setting `abort` cancels the in-flight attempt with RequestAborted.
        """
        try:
            return await run_with_retry(
                lambda: self._attempt(request, abort),
                self.policy,
                sleep=self._sleep,
                label=f"{request.method} {request.path}",
            )
        except FloorPlanError as e:
            self._log_failure(request, e)
            raise
        except Exception as e:
            self._log_failure(request, e)
            raise TransportError("An unexpected error occurred") from e

    def _log_failure(self, request: TransportRequest, error: BaseException) -> None:
        payload: Dict[str, Any] = {
            "error": str(error) or type(error).__name__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        status = getattr(error, "status", None)
        if status is not None:
            payload["status"] = status
        logger.error("%s %s failed: %s", request.method, request.path, payload)
