"""API routes for document ingestion, search and chat."""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from fastapi.responses import JSONResponse

from docbot.api.dependencies import enforce_chat_rate_limit, enforce_document_rate_limit
from docbot.api.schemas import (
    ChatErrorResponse,
    ChatRequest,
    ChatResponse,
    ChunkInfo,
    ChunkListResponse,
    DocumentDeleteResponse,
    DocumentInfo,
    DocumentListResponse,
    HealthResponse,
    IndexStatsResponse,
    IngestionResponse,
    SearchMatch,
    SearchRequest,
    SearchResponse,
)
from docbot.auth.dependencies import OwnerUser
from docbot.chat.config_store import ChatbotConfig, ChatbotConfigUpdate, ChatbotStatus
from docbot.chat.orchestrator import GENERIC_ERROR_MESSAGE, ChatOrchestrator
from docbot.core.config import AppConfig
from docbot.core.di_container import DIContainer
from docbot.core.exceptions import ConfigurationError, ProviderError, ValidationError
from docbot.core.logging import get_logger
from docbot.core.protocols import ChatbotConfigRepository
from docbot.documents.ingestion import IngestionService

logger = get_logger(__name__)

router = APIRouter()

CONFIG_UNAVAILABLE_MESSAGE = "The assistant is not configured yet. Please try again later."


# --- Documents ---


@router.post(
    "/documents",
    response_model=IngestionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_document_rate_limit)],
)
@inject
async def upload_document(
    user: OwnerUser,
    file: UploadFile = File(...),  # noqa: B008
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> IngestionResponse:
    """Upload a PDF, DOCX, TXT or Markdown file.

    The document is chunked and stored, then embedded and indexed. When
    indexing fails part way the chunks stay stored and ``status`` is
    ``stored_not_searchable``; ``POST /documents/{name}/reindex`` finishes
    the job later.
    """
    content = await file.read()
    result = await service.ingest(content, file.filename or "", created_by=user.id)
    return IngestionResponse.from_result(result)


@router.get("/documents", response_model=DocumentListResponse)
@inject
async def list_documents(
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> DocumentListResponse:
    """List ingested documents."""
    summaries = await service.list_documents()
    return DocumentListResponse(
        documents=[DocumentInfo.from_summary(s) for s in summaries],
        total=len(summaries),
    )


@router.get("/documents/{document_name}/chunks", response_model=ChunkListResponse)
@inject
async def list_document_chunks(
    document_name: str,
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> ChunkListResponse:
    chunks = await service.list_chunks(document_name)
    return ChunkListResponse(
        document_name=document_name,
        chunks=[ChunkInfo.from_record(c) for c in chunks],
    )


@router.delete("/documents/{document_name}", response_model=DocumentDeleteResponse)
@inject
async def delete_document(
    document_name: str,
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> DocumentDeleteResponse:
    """Delete a document's vectors and then its chunks."""
    deleted = await service.delete_document(document_name)
    return DocumentDeleteResponse(
        document_name=document_name,
        deleted_chunks=deleted,
        message=f"Document '{document_name}' deleted ({deleted} chunks)",
    )


@router.post("/documents/{document_name}/reindex", response_model=IngestionResponse)
@inject
async def reindex_document(
    document_name: str,
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> IngestionResponse:
    """Embed and index the chunks that are not searchable yet."""
    result = await service.reindex_document(document_name)
    return IngestionResponse.from_result(result)


@router.post("/search", response_model=SearchResponse)
@inject
async def search(
    request: SearchRequest,
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> SearchResponse:
    """Rank indexed chunks against a query."""
    matches = await service.search(request.query, top_k=request.top_k, filter=request.filter)
    return SearchResponse(query=request.query, matches=[SearchMatch.from_match(m) for m in matches])


@router.get("/vectors/stats", response_model=IndexStatsResponse)
@inject
async def vector_stats(
    user: OwnerUser,
    service: IngestionService = Depends(Provide[DIContainer.ingestion_service]),  # noqa: B008
) -> IndexStatsResponse:
    stats = await service.stats()
    return IndexStatsResponse(total_vectors=stats.total_vectors, dimension=stats.dimension)


# --- Chat ---


def _chat_error(status_code: int, message: str, response: Response) -> JSONResponse:
    """Flat error body that keeps the quota headers set by the rate limit dependency."""
    headers = {k: v for k, v in response.headers.items() if k.lower().startswith("x-ratelimit-")}
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        400: {"model": ChatErrorResponse},
        429: {"model": ChatErrorResponse},
        500: {"model": ChatErrorResponse},
    },
    dependencies=[Depends(enforce_chat_rate_limit)],
)
@inject
async def chat(
    request: ChatRequest,
    response: Response,
    orchestrator: ChatOrchestrator = Depends(Provide[DIContainer.orchestrator]),  # noqa: B008
    config_repository: ChatbotConfigRepository = Depends(Provide[DIContainer.config_repository]),  # noqa: B008
) -> ChatResponse | JSONResponse:
    """Answer a visitor's message from the ingested documents.

    Errors come back as ``{"error": "..."}`` with text that is safe to
    show to end users.
    """
    try:
        bot_config = await config_repository.get()
        reply = await orchestrator.converse(request.message, request.history(), bot_config)
        return ChatResponse(response=reply)

    except ValidationError as e:
        return _chat_error(status.HTTP_400_BAD_REQUEST, e.message, response)

    except ProviderError as e:
        # Raised before the completion call (e.g. loading the configuration) when no user_message is set
        if e.user_message is None:
            logger.error("chat_dependency_failed", code=e.code, provider=e.provider, error=e.message)
        message = e.user_message or CONFIG_UNAVAILABLE_MESSAGE
        return _chat_error(status.HTTP_500_INTERNAL_SERVER_ERROR, message, response)

    except ConfigurationError as e:
        logger.error("chat_configuration_error", code=e.code, error=e.message)
        return _chat_error(status.HTTP_500_INTERNAL_SERVER_ERROR, CONFIG_UNAVAILABLE_MESSAGE, response)

    except Exception as e:
        logger.exception("chat_failed", error=str(e))
        return _chat_error(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE, response)


# --- Chatbot configuration ---


@router.get("/chatbot/status", response_model=ChatbotStatus)
@inject
async def chatbot_status(
    config_repository: ChatbotConfigRepository = Depends(Provide[DIContainer.config_repository]),  # noqa: B008
) -> ChatbotStatus:
    """Public status, name and description of the chatbot."""
    return await config_repository.get_public_status()


@router.get("/chatbot/config", response_model=ChatbotConfig)
@inject
async def get_chatbot_config(
    user: OwnerUser,
    config_repository: ChatbotConfigRepository = Depends(Provide[DIContainer.config_repository]),  # noqa: B008
) -> ChatbotConfig:
    config = await config_repository.get()
    return config or ChatbotConfig()


@router.put("/chatbot/config", response_model=ChatbotConfig)
@inject
async def update_chatbot_config(
    changes: ChatbotConfigUpdate,
    user: OwnerUser,
    config_repository: ChatbotConfigRepository = Depends(Provide[DIContainer.config_repository]),  # noqa: B008
) -> ChatbotConfig:
    """Apply a partial update to the chatbot configuration."""
    return await config_repository.update(changes, updated_by=user.id)


# --- Health ---


@router.get("/health", response_model=HealthResponse)
@inject
async def health_check(
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
) -> HealthResponse:
    """Liveness check with the configured components."""
    missing = config.validate_provider_keys()
    return HealthResponse(
        status="healthy" if not missing else "degraded",
        llm_provider=config.llm.provider,
        llm_model=config.llm.model,
        embedding_model=config.embedding.model,
        vector_backend=config.vector.backend,
        rate_limit_backend=config.rate_limit.backend if config.rate_limit.enabled else None,
        missing_credentials=missing,
    )
