"""Retrieval-augmented chat turn."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from docbot.chat.config_store import ChatbotConfig
from docbot.chat.prompt import build_system_prompt, completion_params
from docbot.core.exceptions import (
    ConfigUnavailableError,
    EmptyMessageError,
    MessageTooLongError,
    ProviderError,
)
from docbot.core.logging import get_logger
from docbot.core.protocols import EmbeddingProvider, LLMProvider, VectorIndex
from docbot.documents.models import VectorMatch
from docbot.llm.base import CONTEXT_LENGTH, MODEL_UNAVAILABLE, RATE_LIMIT

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 1000
MAX_HISTORY_TURNS = 20
RETRIEVAL_TOP_K = 5

USER_MESSAGES = {
    RATE_LIMIT: "I'm getting a lot of questions right now. Please wait a moment and try again.",
    CONTEXT_LENGTH: (
        "Our conversation has gotten too long for me to follow. "
        "Please start a new conversation or shorten your message."
    ),
    MODEL_UNAVAILABLE: "I'm temporarily unavailable. Please try again in a few minutes.",
}
GENERIC_ERROR_MESSAGE = "Sorry, something went wrong while generating a response. Please try again."


@dataclass
class ChatTurn:
    role: Literal["user", "assistant"]
    content: str


class ChatOrchestrator:
    """Answers one message using retrieved document context.

    Holds no conversation state; the caller supplies history and the
    configuration record for every call.
    """

    def __init__(
        self,
        llm: LLMProvider,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        max_history_turns: int = MAX_HISTORY_TURNS,
        top_k: int = RETRIEVAL_TOP_K,
    ):
        self.llm = llm
        self.embedder = embedder
        self.vector_index = vector_index
        self.max_message_length = max_message_length
        self.max_history_turns = max_history_turns
        self.top_k = top_k

    def validate_message(self, message: str) -> str:
        if message is None or not message.strip():
            raise EmptyMessageError()
        if len(message) > self.max_message_length:
            raise MessageTooLongError(len(message), self.max_message_length)
        return message.strip()

    async def retrieve(self, query: str) -> list[VectorMatch]:
        """Best-effort retrieval: any failure yields an empty context."""
        try:
            vector = await self.embedder.embed(query)
            return await self.vector_index.query(vector, top_k=self.top_k)
        except Exception as e:
            logger.warning("chat_retrieval_failed", error=str(e))
            return []

    async def converse(
        self,
        message: str,
        history: list[ChatTurn],
        config: ChatbotConfig | None,
    ) -> str:
        """Generate the assistant's reply.

        Raises:
            EmptyMessageError: Message is blank
            MessageTooLongError: Message exceeds the length limit
            ConfigUnavailableError: No configuration record was supplied
            ProviderError: Completion failed; ``user_message`` holds the
                text safe to show end users
        """
        text = self.validate_message(message)
        if config is None:
            logger.error("chat_config_unavailable")
            raise ConfigUnavailableError()

        matches = await self.retrieve(text)
        system_prompt = build_system_prompt(config, matches)
        params = completion_params(config)

        recent = history[-self.max_history_turns :] if self.max_history_turns > 0 else []
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in recent)
        messages.append({"role": "user", "content": text})

        try:
            response = await self.llm.generate(
                messages,
                temperature=params.temperature,
                max_tokens=params.max_tokens,
            )
        except ProviderError as e:
            e.user_message = USER_MESSAGES.get(e.code, GENERIC_ERROR_MESSAGE)
            logger.error("chat_completion_failed", code=e.code, provider=e.provider, error=e.message)
            raise

        logger.info(
            "chat_turn_completed",
            context_chunks=len(matches),
            history_turns=len(recent),
            temperature=params.temperature,
            max_tokens=params.max_tokens,
            response_length=len(response),
        )
        return response
