"""Custom exception hierarchy."""

from typing import Any


class AppError(Exception):
    """Base application exception."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


# --- Validation (bad input, never retried) ---


class ValidationError(AppError):
    """Invalid input supplied by the caller."""

    status_code = 400

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code)


class UnsupportedTypeError(ValidationError):
    status_code = 415

    def __init__(self, extension: str, allowed: list[str]):
        self.extension = extension
        self.allowed = allowed
        super().__init__(
            f"Unsupported file type '{extension}'. Allowed: {', '.join(allowed)}",
            code="UNSUPPORTED_TYPE",
        )


class SizeLimitError(ValidationError):
    status_code = 413

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"File is too large ({size_bytes / (1024 * 1024):.1f}MB). "
            f"Maximum size is {limit_bytes // (1024 * 1024)}MB",
            code="SIZE_LIMIT",
        )


class EmptyContentError(ValidationError):
    def __init__(self, message: str = "No text content could be extracted from the file"):
        super().__init__(message, code="EMPTY_CONTENT")


class EmptyInputError(ValidationError):
    def __init__(self, message: str = "Text to chunk is empty"):
        super().__init__(message, code="EMPTY_INPUT")


class EmptyMessageError(ValidationError):
    def __init__(self, message: str = "Message cannot be empty"):
        super().__init__(message, code="EMPTY_MESSAGE")


class MessageTooLongError(ValidationError):
    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"Message is too long ({length} characters). Maximum is {limit} characters",
            code="MESSAGE_TOO_LONG",
        )


class DuplicateDocumentError(ValidationError):
    status_code = 409

    def __init__(self, document_name: str):
        self.document_name = document_name
        super().__init__(
            f"Document '{document_name}' already exists. Delete it before uploading again",
            code="DUPLICATE_DOCUMENT",
        )


class DocumentNotFoundError(AppError):
    status_code = 404

    def __init__(self, document_name: str):
        self.document_name = document_name
        super().__init__(f"Document '{document_name}' not found", code="DOCUMENT_NOT_FOUND")


class ExtractionTimeoutError(AppError):
    """Text extraction exceeded its wall-clock budget."""

    status_code = 408

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Text extraction timed out after {timeout_seconds:g} seconds",
            code="EXTRACTION_TIMEOUT",
        )


# --- Upstream providers ---


class ProviderError(AppError):
    """Upstream model, vector store or storage failure.

    ``code`` is a machine-readable classification (``rate_limit``,
    ``context_length``, ``model_unavailable``, ...) used to pick the
    message shown to end users; ``message`` keeps the provider's text
    for logs only.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str,
        code: str = "provider_error",
        status: int | None = None,
    ):
        self.provider = provider
        self.status = status
        self.user_message: str | None = None
        super().__init__(message, code=code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message or "An upstream service failed. Please try again later.",
                "details": {"provider": self.provider},
            }
        }


class ProviderAuthError(ProviderError):
    """Missing or rejected provider credential."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider=provider, code="provider_auth", status=401)


class EmbeddingError(ProviderError):
    def __init__(self, message: str, provider: str, code: str = "embedding_error", status: int | None = None):
        super().__init__(message, provider=provider, code=code, status=status)


class VectorStoreError(ProviderError):
    def __init__(self, message: str, provider: str = "vector_store", status: int | None = None):
        super().__init__(message, provider=provider, code="vector_store_error", status=status)


class StorageError(ProviderError):
    def __init__(self, message: str, provider: str = "storage", status: int | None = None):
        super().__init__(message, provider=provider, code="storage_error", status=status)


# --- Configuration ---


class ConfigurationError(AppError):
    """Configuration error."""

    def __init__(self, message: str, code: str = "CONFIG_ERROR"):
        super().__init__(message, code=code)


class ConfigUnavailableError(ConfigurationError):
    """The chatbot configuration record could not be loaded."""

    def __init__(self, message: str = "Chatbot configuration is not available"):
        super().__init__(message, code="CONFIG_UNAVAILABLE")


# --- Ingestion outcome ---


class PartialSuccessError(AppError):
    """Chunks were stored but could not all be made searchable."""

    status_code = 207

    def __init__(self, message: str, stored: int, indexed: int, cause: Exception | None = None):
        self.stored = stored
        self.indexed = indexed
        self.cause = cause
        super().__init__(message, code="PARTIAL_SUCCESS")


# --- Rate limiting ---


class RateLimitExceededError(AppError):
    """The caller used up its request quota for the current window."""

    status_code = 429

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        self.headers = headers or {}
        super().__init__(message, code="RATE_LIMITED")

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}
