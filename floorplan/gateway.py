"""Client-side facade over the FloorPlanGPT API.

analyze/chat/speak all go through one TransportClient, so they share the
timeout, abort and retry policy. Image validation happens here too, before
anything touches the network.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

import floorplan.config as cfg
from floorplan.analyzer import validate_image
from floorplan.config import Settings
from floorplan.errors import InvalidResponse, MissingInput
from floorplan.retry import Sleep
from floorplan.schemas import ConversationContext, FloorPlanAnalysis
from floorplan.transport import TransportClient, TransportRequest


@dataclass
class ImageUpload:
    data: bytes
    content_type: str
    filename: str = "floorplan"

    @property
    def size(self) -> int:
        return len(self.data)


class FloorPlanGateway:
    def __init__(self, transport: TransportClient) -> None:
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
    ) -> "FloorPlanGateway":
        settings = settings or cfg.get_settings()
        return cls(
            TransportClient(
                settings.api_base_url,
                timeout_ms=settings.REQUEST_TIMEOUT_MS,
                max_retries=settings.MAX_RETRIES,
                client=client,
                sleep=sleep,
            )
        )

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def analyze(
        self, image: Optional[ImageUpload], *, abort: Optional[asyncio.Event] = None
    ) -> FloorPlanAnalysis:
        if image is None:
            raise MissingInput("No file provided")
        validate_image(image.content_type, image.size)
        data = await self.transport.execute(
            TransportRequest(
                "POST",
                "/analyze",
                files={"file": (image.filename, image.data, image.content_type)},
                failure_message="Failed to analyze image",
            ),
            abort=abort,
        )
        raw = data.get("parsedAnalysis") if isinstance(data, dict) else None
        if raw is None:
            raise InvalidResponse("Invalid response format")
        try:
            return FloorPlanAnalysis.model_validate(raw)
        except PydanticValidationError as e:
            raise InvalidResponse("Invalid response format") from e

    async def chat(
        self,
        message: str,
        context: ConversationContext,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> str:
        if not (message or "").strip():
            raise MissingInput("Message is required")
        body = {"message": message, "context": context.windowed(cfg.HISTORY_WINDOW).to_wire()}
        data = await self.transport.execute(
            TransportRequest(
                "POST", "/chat", json=body, failure_message="Failed to send chat message"
            ),
            abort=abort,
        )
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise InvalidResponse("Invalid response format")
        return text

    async def speak(self, text: str, *, abort: Optional[asyncio.Event] = None) -> bytes:
        if not (text or "").strip():
            raise MissingInput("Text is required")
        return await self.transport.execute(
            TransportRequest(
                "POST",
                "/tts",
                json={"text": text},
                expect="bytes",
                failure_message="Failed to generate speech",
            ),
            abort=abort,
        )
