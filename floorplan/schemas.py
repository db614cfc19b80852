"""Data model: floor-plan analysis, chat messages and conversation context."""

from __future__ import annotations

import time
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["high", "medium", "low"]
Sender = Literal["user", "assistant"]

SCORE_FIELDS = ("lighting", "space", "flow", "accessibility")


class ScoreSet(BaseModel):
    lighting: int = Field(..., ge=0, le=100)
    space: int = Field(..., ge=0, le=100)
    flow: int = Field(..., ge=0, le=100)
    accessibility: int = Field(..., ge=0, le=100)

    def as_list(self) -> List[int]:
        return [getattr(self, name) for name in SCORE_FIELDS]


class Recommendation(BaseModel):
    area: str
    issue: str
    suggestion: str
    priority: Priority


class FloorPlanAnalysis(BaseModel):
    """Structured critique of one floor-plan image.

    All-zero scores with no recommendations is the sentinel meaning the
    image was not a floor plan.
    """

    scores: ScoreSet
    recommendations: List[Recommendation]

    @classmethod
    def sentinel(cls) -> "FloorPlanAnalysis":
        return cls(
            scores=ScoreSet(lighting=0, space=0, flow=0, accessibility=0),
            recommendations=[],
        )

    def is_sentinel(self) -> bool:
        return not any(self.scores.as_list()) and not self.recommendations


def is_floor_plan(analysis: FloorPlanAnalysis) -> bool:
    """Callers reject the image when no score is above zero."""
    return any(score > 0 for score in analysis.scores.as_list())


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    sender: Sender
    timestamp: int = Field(default_factory=_now_ms)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return str(v)


class ConversationContext(BaseModel):
    """An analysis plus the trailing messages resent on every chat turn."""

    model_config = ConfigDict(populate_by_name=True)

    analysis: FloorPlanAnalysis
    previous_messages: List[ChatMessage] = Field(default_factory=list, alias="previousMessages")

    def windowed(self, size: int) -> "ConversationContext":
        """Copy keeping only the last `size` messages, ordered by timestamp."""
        ordered = sorted(self.previous_messages, key=lambda m: m.timestamp)
        return ConversationContext(
            analysis=self.analysis,
            previous_messages=ordered[-size:] if size > 0 else [],
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def message(text: str, sender: Sender, *, suffix: Optional[str] = None) -> ChatMessage:
    """Build a message stamped with the current time."""
    ts = _now_ms()
    mid = f"{ts}-{suffix}" if suffix else f"{ts}-{uuid.uuid4().hex[:8]}"
    return ChatMessage(id=mid, text=text, sender=sender, timestamp=ts)
