"""Chat provider registry."""

from docbot.core.config import LLMConfig
from docbot.core.exceptions import ConfigurationError

_REQUIRED_KEYS = {
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


class LLMFactory:
    """Providers register themselves with ``@LLMFactory.register(name)``.

    ``LLM_PROVIDER`` selects which one the container builds.
    """

    _registry: dict[str, type] = {}

    @classmethod
    def register(cls, name: str):
        """Decorator to register a provider class."""

        def decorator(provider_cls: type) -> type:
            cls._registry[name] = provider_cls
            return provider_cls

        return decorator

    @classmethod
    def create(cls, config: LLMConfig):
        """Create the configured provider.

        Raises:
            ConfigurationError: Unknown provider or missing API key
        """
        provider_cls = cls._registry.get(config.provider)
        if provider_cls is None:
            available = ", ".join(sorted(cls._registry)) or "none registered"
            raise ConfigurationError(
                f"Unknown LLM provider: '{config.provider}'. Available: {available}"
            )
        key_field = _REQUIRED_KEYS.get(config.provider)
        if key_field and not getattr(config, key_field) and not config.base_url:
            raise ConfigurationError(
                f"LLM_{key_field.upper()} is required for provider '{config.provider}'"
            )
        return provider_cls(config)

    @classmethod
    def available_providers(cls) -> list[str]:
        return sorted(cls._registry)
