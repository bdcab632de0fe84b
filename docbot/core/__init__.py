"""Core infrastructure module - config, DI container, protocols, exceptions."""

from docbot.core.config import AppConfig, get_config
from docbot.core.exceptions import (
    AppError,
    ConfigurationError,
    PartialSuccessError,
    ProviderError,
    ValidationError,
)

__all__ = [
    "AppConfig",
    "AppError",
    "ConfigurationError",
    "PartialSuccessError",
    "ProviderError",
    "ValidationError",
    "get_config",
]
