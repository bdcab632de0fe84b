"""Sentence-respecting, character-bounded text chunker."""

from __future__ import annotations

import re

from docbot.core.exceptions import EmptyInputError, ValidationError

DEFAULT_MAX_CHUNK_SIZE = 1000

# Sentence boundary: whitespace that follows a terminator.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split())


def split_sentences(text: str) -> list[str]:
    """Split text after '.', '!' or '?' runs, keeping the terminators."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text.strip()) if s.strip()]


class SentenceChunker:
    """Greedy sentence packer.

    Sentences are appended to a buffer until the next one would push it past
    ``max_chunk_size`` characters, at which point the buffer is emitted. A
    sentence that alone exceeds the limit is split on word boundaries; a
    single word longer than the limit becomes its own oversized chunk.

    Joining the chunks with spaces yields the input text with whitespace
    collapsed.
    """

    def __init__(self, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> None:
        self.max_chunk_size = max_chunk_size

    def chunk(self, text: str, max_chunk_size: int | None = None) -> list[str]:
        size = self.max_chunk_size if max_chunk_size is None else max_chunk_size
        if size < 1:
            raise ValidationError(f"max_chunk_size must be at least 1, got {size}")
        if not text or not text.strip():
            raise EmptyInputError()

        chunks: list[str] = []
        current = ""

        for sentence in split_sentences(text):
            if len(sentence) > size:
                if current:
                    chunks.append(current)
                pieces = self._split_words(sentence, size)
                chunks.extend(pieces[:-1])
                current = pieces[-1]
                continue

            candidate = f"{current} {sentence}" if current else sentence
            if len(candidate) > size:
                chunks.append(current)
                current = sentence
            else:
                current = candidate

        if current:
            chunks.append(current)

        return [c for c in chunks if c.strip()]

    @staticmethod
    def _split_words(sentence: str, size: int) -> list[str]:
        pieces: list[str] = []
        piece = ""
        for word in sentence.split():
            candidate = f"{piece} {word}" if piece else word
            if len(candidate) > size and piece:
                pieces.append(piece)
                piece = word
            else:
                piece = candidate
        if piece:
            pieces.append(piece)
        return pieces
