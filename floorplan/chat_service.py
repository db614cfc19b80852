"""Assistant replies grounded in one floor-plan analysis."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

import floorplan.config as cfg
from floorplan import prompts
from floorplan.config import Settings
from floorplan.errors import MissingInput
from floorplan.llm import build_chat_model, completion_text, provider_status, retry_on_status
from floorplan.retry import RetryPolicy, Sleep, run_with_retry
from floorplan.schemas import ChatMessage, ConversationContext

logger = logging.getLogger(__name__)


def history_messages(messages: List[ChatMessage]) -> List[Any]:
    return [
        HumanMessage(content=m.text) if m.sender == "user" else AIMessage(content=m.text)
        for m in messages
    ]


class ChatService:
    """Stateless: the full relevant context arrives with every call."""

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
            model=self.settings.CHAT_MODEL,
            temperature=cfg.CHAT_TEMPERATURE,
            max_tokens=cfg.CHAT_MAX_TOKENS,
        )
        self.policy = policy or RetryPolicy(
            max_retries=cfg.CHAT_MAX_RETRIES,
            base_delay_ms=cfg.CHAT_BACKOFF_MS,
            retryable=retry_on_status({429}, any_5xx=True),
        )
        self._sleep = sleep

    def build_messages(self, message: str, context: ConversationContext) -> List[Any]:
        return [
            SystemMessage(content=prompts.chat_system_prompt(context.analysis)),
            *history_messages(context.previous_messages),
            HumanMessage(content=message),
        ]

    async def reply(self, message: str, context: ConversationContext) -> str:
        """Generate one reply. Provider failures propagate after retries."""
        text = (message or "").strip()
        if not text:
            raise MissingInput("Message is required")
        if context is None:
            raise MissingInput("Context is required")
        msgs = self.build_messages(text, context)

        async def _call() -> str:
            return completion_text(await self.llm.ainvoke(msgs))

        try:
            return await run_with_retry(_call, self.policy, sleep=self._sleep, label="chat")
        except Exception as e:
            logger.error(
                "AI chat error: %s",
                {"message": str(e), "type": type(e).__name__, "status": provider_status(e)},
            )
            raise
