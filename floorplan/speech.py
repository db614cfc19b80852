"""Text-to-speech through the Deepgram Aura REST endpoint.

The audio body is drained chunk by chunk and returned as one WAV buffer;
there is no partial-playback contract at this layer and no retry.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import httpx

import floorplan.config as cfg
from floorplan.config import Settings
from floorplan.errors import MissingInput, SpeechSynthesisError

logger = logging.getLogger(__name__)


async def collect_audio(chunks: Optional[AsyncIterator[bytes]]) -> bytes:
    """Concatenate a byte stream into one contiguous buffer, preserving order."""
    if chunks is None:
        raise SpeechSynthesisError("Failed to generate audio stream")
    buf = bytearray()
    async for chunk in chunks:
        buf.extend(chunk)
    return bytes(buf)


class SpeechService:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or cfg.get_settings()
        self.client = client

    def _request_kwargs(self, text: str) -> dict:
        return {
            "params": {
                "model": self.settings.TTS_MODEL,
                "encoding": cfg.TTS_ENCODING,
                "container": cfg.TTS_CONTAINER,
            },
            "headers": {
                "Authorization": f"Token {self.settings.DEEPGRAM_API_KEY}",
                "Content-Type": "application/json",
            },
            "json": {"text": text},
            "timeout": self.settings.REQUEST_TIMEOUT_MS / 1000.0,
        }

    async def _stream(self, client: httpx.AsyncClient, text: str) -> bytes:
        url = f"{self.settings.deepgram_base_url}/speak"
        async with client.stream("POST", url, **self._request_kwargs(text)) as resp:
            if not resp.is_success:
                raise SpeechSynthesisError(
                    f"Speech provider returned status {resp.status_code}"
                )
            return await collect_audio(resp.aiter_bytes())

    async def synthesize(self, text: str) -> bytes:
        """Return WAV (linear PCM-16) audio for `text`."""
        if not (text or "").strip():
            raise MissingInput("Text is required")
        try:
            if self.client is not None:
                return await self._stream(self.client, text)
            async with httpx.AsyncClient() as client:
                return await self._stream(client, text)
        except SpeechSynthesisError as e:
            logger.error("TTS error: %s", e)
            raise
        except httpx.TimeoutException as e:
            logger.error("TTS timeout: %s", e)
            raise SpeechSynthesisError("Speech synthesis timed out") from e
        except httpx.HTTPError as e:
            logger.error("TTS transport error: %s", e)
            raise SpeechSynthesisError("Failed to generate speech") from e
