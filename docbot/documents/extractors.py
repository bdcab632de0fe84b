"""Plain-text extraction for uploaded files (PDF, DOCX, TXT, MD)."""

from __future__ import annotations

import asyncio
import io
import warnings
from collections.abc import Callable

from docbot.core.exceptions import (
    EmptyContentError,
    ExtractionTimeoutError,
    SizeLimitError,
    UnsupportedTypeError,
    ValidationError,
)
from docbot.core.logging import get_logger
from docbot.core.protocols import TextExtractor

logger = get_logger(__name__)

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
EXTRACTION_TIMEOUT_SECONDS = 30.0
TEXT_ENCODINGS = ["utf-8", "utf-8-sig", "cp949", "euc-kr", "latin-1"]


class ExtractorRegistry:
    """Registry of per-extension extractor classes."""

    _extractors: dict[str, type[TextExtractor]] = {}

    @classmethod
    def register(cls, *extensions: str) -> Callable[[type], type]:
        """Decorator to register an extractor for one or more extensions."""

        def decorator(extractor_class: type) -> type:
            for ext in extensions:
                cls._extractors[ext.lower()] = extractor_class
            return extractor_class

        return decorator

    @classmethod
    def get(cls, extension: str) -> TextExtractor:
        if extension not in cls._extractors:
            raise UnsupportedTypeError(extension, cls.supported())
        return cls._extractors[extension]()

    @classmethod
    def supported(cls) -> list[str]:
        return sorted(cls._extractors.keys())


@ExtractorRegistry.register("pdf")
class PdfExtractor:
    """Page-by-page text-layer extraction with pdfplumber.

    A page that fails to extract is logged and skipped so one damaged page
    does not discard the rest of the document.
    """

    def extract(self, content: bytes) -> str:
        import pdfplumber

        pages: list[str] = []
        try:
            pdf = pdfplumber.open(io.BytesIO(content))
        except Exception as e:
            raise ValidationError(f"Could not read PDF file: {e}", code="UNREADABLE_DOCUMENT") from e

        with pdf:
            for page_num, page in enumerate(pdf.pages, start=1):
                try:
                    text = page.extract_text()
                except Exception as e:
                    logger.warning("pdf_page_extraction_failed", page=page_num, error=str(e))
                    continue
                if text and text.strip():
                    pages.append(text.strip())

        logger.debug("pdf_extracted", pages_with_text=len(pages))
        return "\n\n".join(pages)


@ExtractorRegistry.register("docx")
class DocxExtractor:
    """Raw paragraph text from a DOCX file via python-docx."""

    def extract(self, content: bytes) -> str:
        from docx import Document as DocxDocument

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                doc = DocxDocument(io.BytesIO(content))
            except Exception as e:
                raise ValidationError(
                    f"Could not read DOCX file: {e}", code="UNREADABLE_DOCUMENT"
                ) from e
            paragraphs = [para.text for para in doc.paragraphs]

        for warning in caught:
            logger.warning("docx_extraction_warning", message=str(warning.message))

        return "\n".join(paragraphs)


@ExtractorRegistry.register("txt", "md")
class PlainTextExtractor:
    """Direct decode, trying common encodings in order."""

    def extract(self, content: bytes) -> str:
        for encoding in TEXT_ENCODINGS:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue

        return content.decode("utf-8", errors="replace")


def normalize_extension(extension_or_filename: str) -> str:
    """Return the lowercase extension without a leading dot.

    Accepts ``".PDF"``, ``"pdf"`` or a filename such as ``"report.pdf"``.
    """
    value = extension_or_filename.strip().lower()
    if "." in value:
        value = value.rsplit(".", 1)[1]
    return value


class DocumentExtractor:
    """Validates an upload and turns its bytes into plain text.

    Enforces the supported-type list, the byte ceiling, the wall-clock
    budget and a non-empty result. Parsing runs in a worker thread so the
    event loop stays responsive.
    """

    def __init__(
        self,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        timeout_seconds: float = EXTRACTION_TIMEOUT_SECONDS,
    ):
        self.max_file_size_bytes = max_file_size_bytes
        self.timeout_seconds = timeout_seconds

    async def extract(self, content: bytes, declared_extension: str) -> str:
        extension = normalize_extension(declared_extension)
        extractor = ExtractorRegistry.get(extension)

        if len(content) > self.max_file_size_bytes:
            raise SizeLimitError(len(content), self.max_file_size_bytes)

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(extractor.extract, content),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            logger.error(
                "extraction_timeout",
                extension=extension,
                size_bytes=len(content),
                timeout_seconds=self.timeout_seconds,
            )
            raise ExtractionTimeoutError(self.timeout_seconds) from e

        if not text or not text.strip():
            raise EmptyContentError()

        logger.info("text_extracted", extension=extension, size_bytes=len(content), chars=len(text))
        return text
