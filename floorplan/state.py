"""In-memory conversation state for one analysed floor plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol

import floorplan.config as cfg
from floorplan.errors import FloorPlanError
from floorplan.schemas import ChatMessage, ConversationContext, FloorPlanAnalysis, message

if TYPE_CHECKING:  # pragma: no cover
    from floorplan.gateway import FloorPlanGateway

logger = logging.getLogger(__name__)


class Playback(Protocol):
    def stop(self) -> None: ...


class PlaybackSlot:
    """Holds at most one active playback; acquiring releases the previous one."""

    def __init__(self) -> None:
        self._current: Optional[Playback] = None

    @property
    def current(self) -> Optional[Playback]:
        return self._current

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    def acquire(self, playback: Playback) -> Playback:
        self.release()
        self._current = playback
        return playback

    def release(self) -> None:
        current, self._current = self._current, None
        if current is not None:
            current.stop()

    async def play(
        self,
        text: str,
        gateway: "FloorPlanGateway",
        player: Callable[[bytes], Playback],
    ) -> Optional[Playback]:
        """Toggle: stop if playing, otherwise synthesize `text` and start it."""
        if self.is_playing:
            self.release()
            return None
        try:
            audio = await gateway.speak(text)
        except FloorPlanError as e:
            logger.error("Audio operation error: %s", e)
            return None
        return self.acquire(player(audio))

    def __enter__(self) -> "PlaybackSlot":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


@dataclass
class ChatSession:
    """Ordered message history for one analysis; never persisted."""

    analysis: Optional[FloorPlanAnalysis] = None
    messages: List[ChatMessage] = field(default_factory=list)
    is_typing: bool = False

    def start(self, analysis: FloorPlanAnalysis) -> None:
        """Attach a fresh analysis and reset history to the welcome message."""
        self.analysis = analysis
        self.messages = [message(cfg.WELCOME_MESSAGE, "assistant", suffix="welcome")]

    def context(self) -> ConversationContext:
        if self.analysis is None:
            raise ValueError("No analysis attached to this session")
        return ConversationContext(analysis=self.analysis, previous_messages=self.messages).windowed(
            cfg.HISTORY_WINDOW
        )

    async def send(self, text: str, gateway: "FloorPlanGateway") -> Optional[ChatMessage]:
        """Append the user message and the assistant's answer (or an apology)."""
        if self.analysis is None or not text.strip():
            return None
        prior = self.context()
        self.messages.append(message(text, "user"))
        self.is_typing = True
        try:
            reply = await gateway.chat(text, prior)
            answer = message(reply, "assistant", suffix="assistant")
        except FloorPlanError as e:
            logger.warning("Chat turn failed: %s", e)
            answer = message(cfg.APOLOGY_MESSAGE, "assistant", suffix="error")
        finally:
            self.is_typing = False
        self.messages.append(answer)
        return answer
