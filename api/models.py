from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field

from floorplan.schemas import ConversationContext, FloorPlanAnalysis


class ChatRequest(BaseModel):
    # Both optional so the route can answer 400 with a specific message
    message: Optional[str] = Field(None, description="User message about the analysed plan")
    context: Optional[ConversationContext] = Field(
        None, description="Analysis plus the trailing message window"
    )


class ChatResponse(BaseModel):
    text: str


class SpeakRequest(BaseModel):
    text: Optional[str] = None


class AnalyzeResponse(BaseModel):
    parsedAnalysis: FloorPlanAnalysis


class ErrorResponse(BaseModel):
    error: str
