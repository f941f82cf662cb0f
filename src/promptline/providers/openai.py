"""OpenAI-compatible adapter (Chat Completions API).

Works with api.openai.com and with any server exposing the same
``/v1/chat/completions`` and ``/v1/models`` endpoints.
"""

from __future__ import annotations

import json
from typing import Any

from promptline.core.models import Message, ProviderConfig, Service
from promptline.providers.base import AdapterInfo, BaseAdapter, StreamEvent, sse_data


class OpenAIAdapter(BaseAdapter):
    """Chat Completions with bearer-token auth and SSE streaming."""

    INFO = AdapterInfo(
        service=Service.OPENAI,
        display_name="OpenAI",
        requires_api_key=True,
        default_base_url="https://api.openai.com",
        default_model="gpt-4o-mini",
        key_url="https://platform.openai.com/api-keys",
    )
    CHAT_PATH = "/v1/chat/completions"
    MODELS_PATH = "/v1/models"

    def headers(self, config: ProviderConfig) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(
        self, conversation: list[Message], config: ProviderConfig, stream: bool
    ) -> dict[str, Any]:
        return {
            "model": self.model(config),
            "messages": [m.to_dict() for m in conversation],
            "stream": stream,
        }

    def parse_response(self, data: Any) -> str:
        # {"choices": [{"message": {"role": "assistant", "content": "..."}}]}
        choices = data["choices"]
        if not choices:
            raise ValueError("response has no choices")
        return choices[0]["message"].get("content") or ""

    def parse_stream_line(self, line: str) -> StreamEvent | None:
        payload = sse_data(line)
        if payload is None:
            return None
        if payload == "[DONE]":
            return StreamEvent(done=True)
        data = json.loads(payload)
        if "error" in data:
            raise self.stream_error(data)
        choices = data.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        return StreamEvent(delta=delta.get("content") or "")

    def parse_models(self, data: Any) -> list[str]:
        return [m["id"] for m in data["data"]]
