"""LLM abstraction layer - providers and factory."""

# Import providers first to trigger registration via decorators
from docbot.llm import anthropic_provider, openai_provider
from docbot.llm.factory import LLMFactory

__all__ = ["LLMFactory"]
