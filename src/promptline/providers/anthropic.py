"""Anthropic-compatible adapter (Messages API)."""

from __future__ import annotations

import json
from typing import Any

from promptline.core.models import Message, ProviderConfig, Role, Service
from promptline.providers.base import (
    AdapterInfo,
    AuthError,
    BaseAdapter,
    ProviderError,
    RateLimited,
    StreamEvent,
    sse_data,
)

API_VERSION = "2023-06-01"


class AnthropicAdapter(BaseAdapter):
    """Messages API: system prompt is a top-level field, not a message."""

    INFO = AdapterInfo(
        service=Service.ANTHROPIC,
        display_name="Anthropic",
        requires_api_key=True,
        default_base_url="https://api.anthropic.com",
        default_model="claude-sonnet-4-20250514",
        key_url="https://console.anthropic.com/settings/keys",
    )
    CHAT_PATH = "/v1/messages"
    MODELS_PATH = "/v1/models"

    def headers(self, config: ProviderConfig) -> dict[str, str]:
        return {
            "x-api-key": config.api_key or "",
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }

    def build_payload(
        self, conversation: list[Message], config: ProviderConfig, stream: bool
    ) -> dict[str, Any]:
        system = "\n\n".join(m.content for m in conversation if m.role == Role.SYSTEM)
        payload: dict[str, Any] = {
            "model": self.model(config),
            "max_tokens": config.max_tokens,
            "messages": [m.to_dict() for m in conversation if m.role != Role.SYSTEM],
            "stream": stream,
        }
        if system:
            payload["system"] = system
        return payload

    def parse_response(self, data: Any) -> str:
        # {"content": [{"type": "text", "text": "..."}], "stop_reason": ...}
        blocks = data["content"]
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")

    def parse_stream_line(self, line: str) -> StreamEvent | None:
        # Event names are repeated in each data payload's "type" field,
        # so the "event:" lines can be skipped.
        payload = sse_data(line)
        if payload is None:
            return None
        data = json.loads(payload)
        kind = data.get("type")
        if kind == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "text_delta":
                return StreamEvent(delta=delta.get("text", ""))
            return None
        if kind == "message_stop":
            return StreamEvent(done=True)
        if kind == "error":
            raise self.stream_error(data)
        return None

    def stream_error(self, data: Any) -> ProviderError:
        # {"type": "error", "error": {"type": "overloaded_error", "message": "..."}}
        error = data.get("error") if isinstance(data, dict) else None
        error_type = error.get("type", "") if isinstance(error, dict) else ""
        detail = self.error_message(data) or "stream reported an error"
        if error_type == "authentication_error":
            return AuthError(f"Authentication failed: {detail}", self.service)
        if error_type in ("rate_limit_error", "overloaded_error"):
            return RateLimited(f"Rate limited: {detail}", self.service)
        return ProviderError(f"Stream error: {detail}", self.service)

    def parse_models(self, data: Any) -> list[str]:
        return [m["id"] for m in data["data"]]
