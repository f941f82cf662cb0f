"""Ollama-compatible adapter (local /api/chat, no API key)."""

from __future__ import annotations

import json
from typing import Any

from promptline.core.models import Message, ProviderConfig, Service
from promptline.providers.base import (
    AdapterInfo,
    BaseAdapter,
    NetworkError,
    ProviderError,
    StreamEvent,
)


class OllamaAdapter(BaseAdapter):
    """Local Ollama server. Streams newline-delimited JSON objects."""

    INFO = AdapterInfo(
        service=Service.OLLAMA,
        display_name="Ollama",
        requires_api_key=False,
        default_base_url="http://localhost:11434",
        default_model="llama3.1:8b",
    )
    CHAT_PATH = "/api/chat"
    MODELS_PATH = "/api/tags"

    def headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            # Reverse proxies in front of Ollama commonly expect a bearer token
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def build_payload(
        self, conversation: list[Message], config: ProviderConfig, stream: bool
    ) -> dict[str, Any]:
        return {
            "model": self.model(config),
            "messages": [m.to_dict() for m in conversation],
            "stream": stream,
        }

    def parse_response(self, data: Any) -> str:
        # {"message": {"role": "assistant", "content": "..."}, "done": true}
        return data["message"].get("content") or ""

    def parse_stream_line(self, line: str) -> StreamEvent | None:
        data = json.loads(line)
        if "error" in data:
            raise self.stream_error(data)
        delta = (data.get("message") or {}).get("content") or ""
        return StreamEvent(delta=delta, done=bool(data.get("done")))

    def status_error(self, status: int, body: str, headers: Any = None) -> ProviderError:
        error = super().status_error(status, body, headers)
        if status == 404:
            error.message += " (run 'ollama pull <model>' to install the model)"
        return error

    def _network_error(self, e: Exception, config: ProviderConfig) -> NetworkError:
        error = super()._network_error(e, config)
        if not error.timeout:
            error.message += ". Is Ollama running? Start it with: ollama serve"
        return error

    def parse_models(self, data: Any) -> list[str]:
        return [m["name"] for m in data.get("models", [])]
