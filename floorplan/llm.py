"""ChatOpenAI construction and completion checks shared by the AI services."""

from __future__ import annotations

from typing import Any, Collection, Optional

import openai
from langchain_openai import ChatOpenAI

from floorplan.config import Settings
from floorplan.errors import ContentFiltered, EmptyResponse, TruncatedResponse


def build_chat_model(
    settings: Settings,
    *,
    model: str,
    temperature: float,
    max_tokens: int,
) -> ChatOpenAI:
    """ChatOpenAI with SDK retries off; the services own the retry policy."""
    kw: dict = {}
    if settings.OPENAI_BASE_URL:
        base = settings.OPENAI_BASE_URL.strip()
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        kw["base_url"] = base
    if settings.OPENAI_API_KEY:
        kw["api_key"] = settings.OPENAI_API_KEY
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=0,
        timeout=settings.REQUEST_TIMEOUT_MS / 1000.0,
        **kw,
    )


def provider_status(error: BaseException) -> Optional[int]:
    if isinstance(error, openai.APIStatusError):
        return error.status_code
    return None


def retry_on_status(statuses: Collection[int], *, any_5xx: bool = False):
    """Predicate for RetryPolicy: provider errors with a matching status."""

    def _retryable(error: BaseException) -> bool:
        status = provider_status(error)
        if status is None:
            return False
        return status in statuses or (any_5xx and 500 <= status < 600)

    return _retryable


def completion_text(resp: Any) -> str:
    """Return the message text or raise the matching provider error.

    Order matters: a missing message, then a length cut-off, then a content
    filter, then empty text.
    """
    if resp is None:
        raise EmptyResponse("No response received from the completion provider")
    meta = getattr(resp, "response_metadata", None) or {}
    finish = meta.get("finish_reason")
    if finish == "length":
        raise TruncatedResponse("The response is too long")
    if finish == "content_filter":
        raise ContentFiltered("The response was filtered due to content restrictions")
    content = getattr(resp, "content", None)
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    if not content or not str(content).strip():
        raise EmptyResponse("Empty response received")
    return str(content)
