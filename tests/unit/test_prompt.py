"""Tests for prompt assembly."""

import pytest

from docbot.chat.config_store import ChatbotConfig
from docbot.chat.prompt import build_system_prompt, completion_params, format_context
from docbot.documents.models import VectorMatch, VectorMetadata


def match(name: str, index: int, content: str, score: float) -> VectorMatch:
    return VectorMatch(
        id=f"{name}-{index}",
        score=score,
        metadata=VectorMetadata(
            document_name=name,
            chunk_index=index,
            content=content,
            word_count=len(content.split()),
            timestamp="2026-01-01T00:00:00+00:00",
        ),
    )


class TestCompletionParams:
    @pytest.mark.parametrize(
        "length,max_tokens",
        [("short", 60), ("medium", 300), ("long", 800)],
    )
    def test_max_tokens_by_length(self, length, max_tokens):
        params = completion_params(ChatbotConfig(max_response_length=length))
        assert params.max_tokens == max_tokens

    def test_temperature_from_creativity(self):
        assert completion_params(ChatbotConfig(creativity_level=75)).temperature == 0.75
        assert completion_params(ChatbotConfig()).temperature == 0.3


class TestFormatContext:
    def test_blocks_are_tagged_and_separated(self):
        context = format_context(
            [match("manual.pdf", 0, "Reset the router.", 0.912), match("faq.md", 4, "Use WPA3.", 0.5)]
        )

        first, second = context.split("\n\n---\n\n")
        assert first == "[Source: manual.pdf | Chunk 1 | Relevance: 0.91]\nReset the router."
        assert second.startswith("[Source: faq.md | Chunk 5 | Relevance: 0.50]")

    def test_matches_without_metadata_are_skipped(self):
        assert format_context([VectorMatch(id="x", score=0.9)]) == ""


class TestBuildSystemPrompt:
    def test_sections_and_identity(self, chatbot_config):
        prompt = build_system_prompt(chatbot_config, [match("manual.pdf", 0, "Reset the router.", 0.9)])

        for tag in ("<role>", "<personality>", "<instructions>", "<topic_boundaries>", "<context>"):
            assert tag in prompt
        assert "You are Acme Helper, a customer support assistant for Acme routers." in prompt
        assert "Reset the router." in prompt

    def test_off_topic_instructions_present_without_context(self, chatbot_config):
        prompt = build_system_prompt(chatbot_config, [])

        assert "off-topic" in prompt
        assert "No relevant knowledge base content was found" in prompt

    def test_word_limit_follows_length(self):
        prompt = build_system_prompt(ChatbotConfig(max_response_length="short"), [])
        assert "Keep every response under 40 words." in prompt

    def test_citations_only_when_enabled(self):
        assert "[Source: document name]" not in build_system_prompt(ChatbotConfig(), [])
        assert "[Source: document name]" in build_system_prompt(ChatbotConfig(include_citations=True), [])

    def test_custom_fallback(self):
        config = ChatbotConfig(fallback_response="Please ask about routers.")
        assert '"Please ask about routers."' in build_system_prompt(config, [])
