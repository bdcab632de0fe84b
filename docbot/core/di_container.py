"""Dependency Injector based DI Container."""

from dependency_injector import containers, providers

from docbot.core.config import get_config

# --- Factory Functions (defined before class to avoid NameError) ---


def _create_llm(config):
    """Create chat completion provider."""
    from docbot.llm import LLMFactory

    return LLMFactory.create(config)


def _create_embedder(config):
    """Create embedding client."""
    from docbot.documents.embeddings import create_embedding_client

    return create_embedding_client(config)


def _create_vector_index(config):
    """Create vector index gateway."""
    from docbot.documents.vector_store import VectorIndexFactory

    return VectorIndexFactory.create(config)


def _create_chunk_repository(config):
    """Create chunk repository."""
    from docbot.documents.repository import create_chunk_repository

    return create_chunk_repository(config)


def _create_extractor(config):
    """Create text extractor."""
    from docbot.documents.extractors import DocumentExtractor

    return DocumentExtractor(
        max_file_size_bytes=config.max_file_size_bytes,
        timeout_seconds=config.extraction_timeout_seconds,
    )


def _create_chunker(config):
    """Create sentence chunker."""
    from docbot.documents.chunker import SentenceChunker

    return SentenceChunker(max_chunk_size=config.max_chunk_size)


def _create_ingestion_service(config, extractor, chunker, embedder, vector_index, repository):
    """Create ingestion service."""
    from docbot.documents.ingestion import IngestionService

    return IngestionService(
        extractor=extractor,
        chunker=chunker,
        embedder=embedder,
        vector_index=vector_index,
        repository=repository,
        batch_size=config.embedding.batch_size,
        max_chunk_size=config.ingestion.max_chunk_size,
    )


def _create_rate_limiter(config):
    """Create rate limiter over the configured window store."""
    from docbot.ratelimit import RateLimiter, RateLimitStoreFactory

    return RateLimiter(
        store=RateLimitStoreFactory.create(config),
        fail_open=config.rate_limit.fail_open,
    )


def _create_config_repository(config):
    """Create chatbot configuration repository."""
    from docbot.chat.config_store import create_config_repository

    return create_config_repository(config)


def _create_orchestrator(config, llm, embedder, vector_index):
    """Create chat orchestrator."""
    from docbot.chat.orchestrator import ChatOrchestrator

    return ChatOrchestrator(
        llm=llm,
        embedder=embedder,
        vector_index=vector_index,
        max_message_length=config.chat.max_message_length,
        max_history_turns=config.chat.max_history_turns,
        top_k=config.chat.retrieval_top_k,
    )


def _create_auth_client(config):
    """Create Supabase auth client."""
    from docbot.auth.supabase_client import SupabaseAuthClient

    return SupabaseAuthClient.from_config(config.supabase)


class DIContainer(containers.DeclarativeContainer):
    """Main dependency injection container."""

    # Configuration provider
    config = providers.Singleton(get_config)

    # Chat completion provider
    llm = providers.Singleton(
        _create_llm,
        config=config.provided.llm,
    )

    # Embedding client
    embedder = providers.Singleton(
        _create_embedder,
        config=config,
    )

    # Vector index gateway
    vector_index = providers.Singleton(
        _create_vector_index,
        config=config,
    )

    # Relational chunk storage
    chunk_repository = providers.Singleton(
        _create_chunk_repository,
        config=config,
    )

    extractor = providers.Singleton(
        _create_extractor,
        config=config.provided.ingestion,
    )

    chunker = providers.Singleton(
        _create_chunker,
        config=config.provided.ingestion,
    )

    # Ingestion saga (holds per-document locks, so one instance)
    ingestion_service = providers.Singleton(
        _create_ingestion_service,
        config=config,
        extractor=extractor,
        chunker=chunker,
        embedder=embedder,
        vector_index=vector_index,
        repository=chunk_repository,
    )

    rate_limiter = providers.Singleton(
        _create_rate_limiter,
        config=config,
    )

    config_repository = providers.Singleton(
        _create_config_repository,
        config=config,
    )

    orchestrator = providers.Singleton(
        _create_orchestrator,
        config=config,
        llm=llm,
        embedder=embedder,
        vector_index=vector_index,
    )

    auth_client = providers.Singleton(
        _create_auth_client,
        config=config,
    )


# Global container instance
container = DIContainer()
