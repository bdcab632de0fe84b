"""System prompt assembly and completion parameters for the chat assistant."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass

from docbot.chat.config_store import ChatbotConfig, ResponseLength, ResponseStyle
from docbot.documents.models import VectorMatch

# Completion token budget per configured response length
MAX_TOKENS_BY_LENGTH = {
    ResponseLength.SHORT: 60,
    ResponseLength.MEDIUM: 300,
    ResponseLength.LONG: 800,
}

# Word ceiling stated in the prompt so the model stops before the token cap
WORD_LIMIT_BY_LENGTH = {
    ResponseLength.SHORT: 40,
    ResponseLength.MEDIUM: 200,
    ResponseLength.LONG: 550,
}

STYLE_GUIDANCE = {
    ResponseStyle.CONCISE: "Answer directly in as few sentences as possible. No preamble.",
    ResponseStyle.DETAILED: "Give thorough, well-structured answers with relevant specifics from the context.",
    ResponseStyle.CONVERSATIONAL: "Use a warm, natural conversational tone.",
}

DEFAULT_INSTRUCTIONS = "Provide helpful and accurate responses."
DEFAULT_FALLBACK = "I'm sorry, I can only help with questions about the topics I've been set up for."


@dataclass(frozen=True)
class CompletionParams:
    temperature: float
    max_tokens: int


def completion_params(config: ChatbotConfig) -> CompletionParams:
    """temperature = creativity / 100; max_tokens from the length table."""
    return CompletionParams(
        temperature=config.creativity_level / 100,
        max_tokens=MAX_TOKENS_BY_LENGTH[config.max_response_length],
    )


def _source_label(match: VectorMatch) -> str:
    name = match.metadata.document_name if match.metadata else match.id
    return unicodedata.normalize("NFC", name)


def format_context(matches: list[VectorMatch]) -> str:
    """Render retrieved chunks as tagged blocks, best match first."""
    blocks = []
    for match in matches:
        if match.metadata is None:
            continue
        blocks.append(
            f"[Source: {_source_label(match)} | Chunk {match.metadata.chunk_index + 1} | "
            f"Relevance: {match.score:.2f}]\n{match.metadata.content}"
        )
    return "\n\n---\n\n".join(blocks)


def build_system_prompt(config: ChatbotConfig, matches: list[VectorMatch]) -> str:
    role = config.role or "helpful assistant"
    fallback = config.fallback_response or DEFAULT_FALLBACK
    word_limit = WORD_LIMIT_BY_LENGTH[config.max_response_length]

    sections = [
        f"<role>\nYou are {config.chatbot_name}, a {role}.\n"
        + (f"{config.description}\n" if config.description else "")
        + "</role>",
        "<personality>\n"
        + (f"Your personality is: {config.personality}\n" if config.personality else "")
        + f"Response style: {config.response_style.value}\n</personality>",
        f"<instructions>\n{config.custom_instructions or DEFAULT_INSTRUCTIONS}\n</instructions>",
        "<topic_boundaries>\n"
        f"- Only answer questions related to your role as {config.chatbot_name} and the "
        "knowledge base provided in <context>.\n"
        "- If a question is off-topic, do not answer it. Politely say it is outside what you "
        "can help with and steer the user back to topics you cover.\n"
        "- Never invent facts that are not supported by the context.\n"
        f'- When you cannot help, respond with: "{fallback}"\n'
        "</topic_boundaries>",
    ]

    context = format_context(matches)
    if context:
        sections.append(
            "<context>\nRelevant information from the knowledge base:\n\n"
            f"{context}\n</context>"
        )
    else:
        sections.append(
            "<context>\nNo relevant knowledge base content was found for this message.\n</context>"
        )

    guidelines = [
        f"- {STYLE_GUIDANCE[config.response_style]}",
        f"- Keep every response under {word_limit} words.",
        "- Stay in character based on your role and personality.",
        "- If you don't know something, say so honestly.",
    ]
    if config.include_citations:
        guidelines.append(
            "- When you use information from the context, cite it as [Source: document name] "
            "at the end of the sentence."
        )
    sections.append("<response_guidelines>\n" + "\n".join(guidelines) + "\n</response_guidelines>")

    return "\n\n".join(sections)
