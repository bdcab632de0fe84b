"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docbot.core.exceptions import ConfigurationError

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class LLMConfig(BaseSettings):
    """Chat completion provider configuration."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    timeout_seconds: float = 60.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    # API keys (used based on provider)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None

    model_config = SettingsConfigDict(env_prefix="LLM_")


class EmbeddingConfig(BaseSettings):
    """Embedding model configuration."""

    provider: str = "openai"  # 'openai' or 'pinecone'
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    batch_size: int = 10
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    @field_validator("batch_size", "dimension")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


class VectorStoreConfig(BaseSettings):
    """Vector index configuration."""

    backend: str = "pinecone"  # 'pinecone' or 'in_memory'
    pinecone_api_key: str | None = None
    index_name: str = "documents"
    namespace: str = "default"
    top_k: int = 5

    model_config = SettingsConfigDict(env_prefix="VECTOR_")


class SupabaseConfig(BaseSettings):
    """Supabase storage and authentication configuration."""

    url: str | None = None
    service_key: str | None = None
    chunks_table: str = "document_chunks"
    config_table: str = "chatbot_config"
    rate_limits_table: str = "rate_limits"
    owner_emails: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")


class IngestionConfig(BaseSettings):
    """Document ingestion configuration."""

    backend: str = "supabase"  # chunk repository: 'supabase' or 'in_memory'
    max_file_size_bytes: int = 10 * 1024 * 1024
    extraction_timeout_seconds: float = 30.0
    max_chunk_size: int = 1000

    model_config = SettingsConfigDict(env_prefix="INGESTION_")

    @field_validator("max_chunk_size")
    @classmethod
    def _chunk_size_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_chunk_size must be at least 1")
        return value


class RateLimitConfig(BaseSettings):
    """Rate limiting configuration."""

    enabled: bool = True
    backend: str = "supabase"  # 'supabase', 'redis' or 'in_memory'
    redis_url: str = "redis://localhost:6379/0"
    fail_open: bool = True

    chat_max_requests: int = 20
    chat_window_minutes: int = 1
    documents_max_requests: int = 10
    documents_window_minutes: int = 60

    cleanup_interval_seconds: int = 3600
    retention_minutes: int = 60

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    @property
    def effective_retention_minutes(self) -> int:
        """Retention clamped to the longest window so cleanup never drops an active window."""
        return max(self.retention_minutes, self.chat_window_minutes, self.documents_window_minutes)


class ChatConfig(BaseSettings):
    """Chat orchestration configuration."""

    config_backend: str = "supabase"  # 'supabase' or 'in_memory'
    max_message_length: int = 1000
    max_history_turns: int = 20
    retrieval_top_k: int = 5

    model_config = SettingsConfigDict(env_prefix="CHAT_")


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    app_name: str = "Docbot"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False
    log_to_file: bool = True
    log_dir: str = "logs"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list = Field(default_factory=lambda: ["*"])

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    model_config = SettingsConfigDict(env_file=str(_env_file), env_file_encoding="utf-8", extra="ignore")

    def validate_provider_keys(self) -> list[str]:
        """Return the environment variables missing for the configured backends."""
        missing = []
        if self.llm.provider == "openai" and not self.llm.openai_api_key:
            missing.append("LLM_OPENAI_API_KEY")
        if self.llm.provider == "anthropic" and not self.llm.anthropic_api_key:
            missing.append("LLM_ANTHROPIC_API_KEY")
        if self.embedding.provider == "openai" and not self.llm.openai_api_key:
            missing.append("LLM_OPENAI_API_KEY")
        if "pinecone" in (self.embedding.provider, self.vector.backend) and not self.vector.pinecone_api_key:
            missing.append("VECTOR_PINECONE_API_KEY")
        uses_supabase = "supabase" in (
            self.ingestion.backend,
            self.rate_limit.backend,
            self.chat.config_backend,
        )
        if uses_supabase and not (self.supabase.url and self.supabase.service_key):
            missing.append("SUPABASE_URL/SUPABASE_SERVICE_KEY")
        return sorted(set(missing))

    def require_provider_keys(self) -> None:
        """Raise ConfigurationError when any backend credential is missing."""
        missing = self.validate_provider_keys()
        if missing:
            raise ConfigurationError(f"Missing credentials: {', '.join(missing)}")


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()
