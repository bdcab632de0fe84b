"""Singleton chatbot configuration: model and storage backends."""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from docbot.core.exceptions import ConfigurationError, ProviderError
from docbot.core.logging import get_logger
from docbot.core.supabase import execute, get_supabase_client
from docbot.documents.models import utc_now

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)

DEFAULT_CREATIVITY = 30
DEFAULT_NAME = "AI Assistant"
DEFAULT_DESCRIPTION = "Your helpful AI assistant"


class ResponseStyle(StrEnum):
    CONCISE = "concise"
    DETAILED = "detailed"
    CONVERSATIONAL = "conversational"


class ResponseLength(StrEnum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class BotStatus(StrEnum):
    ACTIVE = "active"
    DRAFT = "draft"
    TRAINING = "training"
    ERROR = "error"


class ChatbotConfig(BaseModel):
    """Full configuration record read by the chat orchestrator."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    chatbot_name: str = DEFAULT_NAME
    description: str | None = None
    personality: str | None = None
    role: str | None = None
    custom_instructions: str | None = None
    response_style: ResponseStyle = ResponseStyle.CONVERSATIONAL
    max_response_length: ResponseLength = ResponseLength.MEDIUM
    creativity_level: int = Field(default=DEFAULT_CREATIVITY, ge=0, le=100)
    fallback_response: str | None = None
    include_citations: bool = False
    current_status: BotStatus = BotStatus.DRAFT
    created_by: str | None = None
    created_at: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @field_validator("creativity_level", mode="before")
    @classmethod
    def _default_creativity(cls, value: Any) -> Any:
        return DEFAULT_CREATIVITY if value is None else value

    @field_validator("include_citations", mode="before")
    @classmethod
    def _default_citations(cls, value: Any) -> Any:
        return False if value is None else value


class ChatbotConfigUpdate(BaseModel):
    """Partial update; only fields that were set are written."""

    model_config = ConfigDict(extra="forbid")

    chatbot_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    personality: str | None = None
    role: str | None = None
    custom_instructions: str | None = None
    response_style: ResponseStyle | None = None
    max_response_length: ResponseLength | None = None
    creativity_level: int | None = Field(default=None, ge=0, le=100)
    fallback_response: str | None = None
    include_citations: bool | None = None
    current_status: BotStatus | None = None

    # Omitting these leaves them unchanged; an explicit null would clear a required column
    @field_validator("chatbot_name", "response_style", "max_response_length", "current_status", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("cannot be null")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, mode="json")


class ChatbotStatus(BaseModel):
    """Public subset of the configuration."""

    current_status: BotStatus = BotStatus.DRAFT
    chatbot_name: str = DEFAULT_NAME
    description: str | None = DEFAULT_DESCRIPTION

    @classmethod
    def from_config(cls, config: ChatbotConfig) -> ChatbotStatus:
        return cls(
            current_status=config.current_status,
            chatbot_name=config.chatbot_name,
            description=config.description,
        )


class InMemoryChatbotConfigRepository:
    """Holds the configuration in process memory."""

    def __init__(self, initial: ChatbotConfig | None = None) -> None:
        self._config = initial
        self._lock = asyncio.Lock()

    async def get(self) -> ChatbotConfig | None:
        return self._config.model_copy() if self._config else None

    async def get_public_status(self) -> ChatbotStatus:
        if self._config is None:
            return ChatbotStatus()
        return ChatbotStatus.from_config(self._config)

    async def update(self, changes: ChatbotConfigUpdate, updated_by: str | None) -> ChatbotConfig:
        async with self._lock:
            now = utc_now()
            if self._config is None:
                self._config = ChatbotConfig(created_by=updated_by, created_at=now)
            merged = {
                **self._config.model_dump(),
                **changes.model_dump(exclude_unset=True),
                "updated_by": updated_by,
                "updated_at": now,
            }
            self._config = ChatbotConfig.model_validate(merged)
            return self._config.model_copy()


class SupabaseChatbotConfigRepository:
    """Configuration stored in the ``chatbot_config`` table.

    The table may hold several rows; the earliest created one is used.
    """

    def __init__(self, client: Any, table_name: str = "chatbot_config") -> None:
        self._client = client
        self._table_name = table_name

    def _table(self):
        return self._client.table(self._table_name)

    async def _current_row(self) -> dict[str, Any] | None:
        rows = await execute(
            self._table().select("*").order("created_at").limit(1),
            "get_chatbot_config",
        )
        return rows[0] if rows else None

    async def get(self) -> ChatbotConfig | None:
        """Load the configuration row.

        Raises:
            StorageError: The table could not be read
            ConfigurationError: The stored row does not form a valid configuration
        """
        row = await self._current_row()
        return self._parse(row) if row else None

    @staticmethod
    def _parse(row: dict[str, Any]) -> ChatbotConfig:
        try:
            return ChatbotConfig.model_validate(row)
        except PydanticValidationError as e:
            logger.error("chatbot_config_invalid", config_id=row.get("id"), error=str(e))
            raise ConfigurationError("Stored chatbot configuration is invalid") from e

    async def get_public_status(self) -> ChatbotStatus:
        try:
            config = await self.get()
        except (ProviderError, ConfigurationError) as e:
            logger.error("chatbot_status_unavailable", error=str(e))
            return ChatbotStatus()
        return ChatbotStatus.from_config(config) if config else ChatbotStatus()

    async def update(self, changes: ChatbotConfigUpdate, updated_by: str | None) -> ChatbotConfig:
        now = utc_now().isoformat()
        payload = {**changes.changes(), "updated_by": updated_by, "updated_at": now}

        # Read the raw row so an owner can repair a configuration that no longer validates
        current = await self._current_row()
        if current is None:
            payload.setdefault("chatbot_name", DEFAULT_NAME)
            rows = await execute(
                self._table().insert({**payload, "created_by": updated_by, "created_at": now}),
                "create_chatbot_config",
            )
        else:
            rows = await execute(
                self._table().update(payload).eq("id", current["id"]),
                "update_chatbot_config",
            )

        if not rows:
            raise ConfigurationError("Chatbot configuration update returned no row")
        logger.info("chatbot_config_updated", fields=sorted(changes.changes()), updated_by=updated_by)
        return self._parse(rows[0])


def create_config_repository(config: AppConfig):
    """Create the configuration repository selected by ``CHAT_CONFIG_BACKEND``."""
    backend = config.chat.config_backend
    if backend == "in_memory":
        return InMemoryChatbotConfigRepository()
    if backend == "supabase":
        client = get_supabase_client(config.supabase.url, config.supabase.service_key)
        return SupabaseChatbotConfigRepository(client, table_name=config.supabase.config_table)
    raise ConfigurationError(f"Unknown chatbot config backend: '{backend}'. Available: in_memory, supabase")
