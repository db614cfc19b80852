"""Floor-plan analysis against a vision-capable completion model.

One request both classifies the image and scores it. Any failure after input
validation degrades to the sentinel analysis, which callers read as
"not a floor plan"; `analyze_with_status` also reports whether that happened.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError as PydanticValidationError

import floorplan.config as cfg
from floorplan import prompts
from floorplan.config import Settings
from floorplan.errors import (
    ImageTooLarge,
    InvalidResponse,
    MissingInput,
    UnsupportedImageType,
)
from floorplan.llm import build_chat_model, completion_text, provider_status, retry_on_status
from floorplan.retry import RetryPolicy, Sleep, run_with_retry
from floorplan.schemas import FloorPlanAnalysis

logger = logging.getLogger(__name__)


def validate_image(content_type: Optional[str], size: Optional[int]) -> None:
    """Reject unsupported or oversized images before any network call."""
    if not content_type or size is None:
        raise MissingInput("No file provided")
    if content_type not in cfg.ALLOWED_IMAGE_TYPES:
        raise UnsupportedImageType(
            f"File type {content_type} not supported. Please upload JPEG, PNG or WebP"
        )
    if size > cfg.MAX_IMAGE_BYTES:
        raise ImageTooLarge("File size too large. Maximum size is 5MB")


def to_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_analysis(content: str) -> FloorPlanAnalysis:
    """Parse model output into an analysis; any defect is an InvalidResponse."""
    try:
        raw = json.loads(content)
    except (TypeError, ValueError) as e:
        raise InvalidResponse("Invalid JSON response received") from e
    if not isinstance(raw, dict) or "scores" not in raw or "recommendations" not in raw:
        raise InvalidResponse("Invalid JSON structure")
    try:
        return FloorPlanAnalysis.model_validate(raw)
    except PydanticValidationError as e:
        raise InvalidResponse("Scores are outside valid range (0-100) or fields are missing") from e


@dataclass
class AnalysisOutcome:
    analysis: FloorPlanAnalysis
    degraded: bool = False


class AnalyzerService:
    """Classifies and scores floor-plan images."""

    def __init__(
        self,
        llm: Any = None,
        *,
        settings: Optional[Settings] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.settings = settings or cfg.get_settings()
        self.llm = llm or build_chat_model(
            self.settings,
            model=self.settings.ANALYSIS_MODEL,
            temperature=cfg.ANALYSIS_TEMPERATURE,
            max_tokens=cfg.ANALYSIS_MAX_TOKENS,
        )
        self.policy = policy or RetryPolicy(
            max_retries=cfg.ANALYSIS_MAX_RETRIES,
            base_delay_ms=cfg.ANALYSIS_BACKOFF_MS,
            retryable=retry_on_status({429, 500}),
        )
        self._sleep = sleep

    def _messages(self, image_url: str) -> list:
        return [
            SystemMessage(content=prompts.ANALYSIS_SYSTEM_PROMPT),
            HumanMessage(
                content=[
                    {"type": "image_url", "image_url": {"url": image_url, "detail": "low"}},
                    {"type": "text", "text": prompts.ANALYSIS_USER_PROMPT},
                ]
            ),
        ]

    async def _request(self, image_url: str) -> FloorPlanAnalysis:
        resp = await self.llm.ainvoke(
            self._messages(image_url), response_format={"type": "json_object"}
        )
        return parse_analysis(completion_text(resp))

    async def analyze_with_status(self, data: bytes, content_type: str) -> AnalysisOutcome:
        validate_image(content_type, len(data) if data is not None else None)
        if not data:
            raise MissingInput("No file provided")
        image_url = to_data_url(data, content_type)
        try:
            analysis = await run_with_retry(
                lambda: self._request(image_url),
                self.policy,
                sleep=self._sleep,
                label="analyzer",
            )
        except Exception as e:
            logger.error(
                "AI analyzer error: %s",
                {"message": str(e), "type": type(e).__name__, "status": provider_status(e)},
            )
            return AnalysisOutcome(FloorPlanAnalysis.sentinel(), degraded=True)
        return AnalysisOutcome(analysis)

    async def analyze(self, data: bytes, content_type: str) -> FloorPlanAnalysis:
        """Analyze one image. Validation errors raise; everything else degrades."""
        outcome = await self.analyze_with_status(data, content_type)
        return outcome.analysis
