"""Provider adapters, selected by Service."""

from __future__ import annotations

from promptline.core.models import Service
from promptline.providers.anthropic import AnthropicAdapter
from promptline.providers.base import (
    Adapter,
    AdapterInfo,
    AuthError,
    ChunkGuard,
    ErrorKind,
    MalformedResponse,
    NetworkError,
    ProviderError,
    RateLimited,
    RequestCancelled,
    UnsupportedError,
)
from promptline.providers.ollama import OllamaAdapter
from promptline.providers.openai import OpenAIAdapter

_ADAPTERS: dict[Service, type] = {
    Service.OPENAI: OpenAIAdapter,
    Service.OLLAMA: OllamaAdapter,
    Service.ANTHROPIC: AnthropicAdapter,
}


def get_adapter(service: Service | str) -> Adapter:
    """Get the adapter for a service.

    Raises:
        ValueError: Unknown service name.
    """
    return _ADAPTERS[Service.parse(service)]()


def list_services() -> list[str]:
    """Return all service names."""
    return sorted(s.value for s in _ADAPTERS)


__all__ = [
    "Adapter",
    "AdapterInfo",
    "AnthropicAdapter",
    "AuthError",
    "ChunkGuard",
    "ErrorKind",
    "MalformedResponse",
    "NetworkError",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderError",
    "RateLimited",
    "RequestCancelled",
    "UnsupportedError",
    "get_adapter",
    "list_services",
]
