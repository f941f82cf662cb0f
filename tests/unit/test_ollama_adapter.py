"""Tests for promptline.providers.ollama — local Ollama adapter."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from promptline.core.models import Message, ProviderConfig, ResponseChunk, Role, Service
from promptline.providers import (
    MalformedResponse,
    NetworkError,
    OllamaAdapter,
    ProviderError,
)

CONVERSATION = [Message(Role.USER, "Why is the sky blue?")]


def _config(stream: bool = False, api_key: str | None = None) -> ProviderConfig:
    return ProviderConfig(
        service=Service.OLLAMA,
        model="llama3.1:8b",
        base_url="http://localhost:11434",
        api_key=api_key,
        stream=stream,
    )


def _line(content: str, done: bool = False) -> dict:
    return {
        "model": "llama3.1:8b",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }


class TestSendNonStreaming:
    def test_success_without_key(self, http_stream):
        resp = http_stream(json_body=_line("Rayleigh scattering.", done=True))
        chunks: list[ResponseChunk] = []

        with patch("httpx.stream", return_value=resp) as mock_send:
            text = OllamaAdapter().send(CONVERSATION, _config(), chunks.append)

        assert text == "Rayleigh scattering."
        assert chunks == [ResponseChunk("Rayleigh scattering.", is_final=True)]
        args, kwargs = mock_send.call_args
        assert args == ("POST", "http://localhost:11434/api/chat")
        assert "Authorization" not in kwargs["headers"]
        assert kwargs["json"] == {
            "model": "llama3.1:8b",
            "messages": [{"role": "user", "content": "Why is the sky blue?"}],
            "stream": False,
        }

    def test_optional_key_sent_as_bearer(self, http_stream):
        resp = http_stream(json_body=_line("ok", done=True))
        with patch("httpx.stream", return_value=resp) as mock_send:
            OllamaAdapter().send(CONVERSATION, _config(api_key="proxy-token"), lambda c: None)
        assert mock_send.call_args.kwargs["headers"]["Authorization"] == "Bearer proxy-token"

    def test_trailing_slash_in_base_url(self, http_stream):
        config = ProviderConfig(Service.OLLAMA, "m", "http://gpu-box:11434/")
        resp = http_stream(json_body=_line("ok", done=True))
        with patch("httpx.stream", return_value=resp) as mock_send:
            OllamaAdapter().send(CONVERSATION, config, lambda c: None)
        assert mock_send.call_args[0][1] == "http://gpu-box:11434/api/chat"

    def test_model_not_found_hint(self, http_stream):
        resp = http_stream(404, json_body={"error": "model 'nope' not found"})
        with patch("httpx.stream", return_value=resp), pytest.raises(ProviderError) as exc:
            OllamaAdapter().send(CONVERSATION, _config(), lambda c: None)
        assert "model 'nope' not found" in exc.value.message
        assert "ollama pull" in exc.value.message

    def test_server_down_hint(self):
        with patch("httpx.stream", side_effect=httpx.ConnectError("Connection refused")):
            with pytest.raises(NetworkError, match="ollama serve"):
                OllamaAdapter().send(CONVERSATION, _config(), lambda c: None)

    def test_timeout_has_no_server_hint(self):
        with patch("httpx.stream", side_effect=httpx.ReadTimeout("timed out")):
            with pytest.raises(NetworkError) as exc:
                OllamaAdapter().send(CONVERSATION, _config(), lambda c: None)
        assert exc.value.timeout is True
        assert "ollama serve" not in exc.value.message


class TestSendStreaming:
    def test_ndjson_chunks(self, stream_response):
        lines = [_line("Rayleigh"), _line(" scattering"), _line("."), _line("", done=True)]
        chunks: list[ResponseChunk] = []

        with patch("httpx.stream", return_value=stream_response(lines)) as mock_stream:
            text = OllamaAdapter().send(CONVERSATION, _config(stream=True), chunks.append)

        assert text == "Rayleigh scattering."
        assert [c.text for c in chunks] == ["Rayleigh", " scattering", ".", "Rayleigh scattering."]
        assert [c.is_final for c in chunks] == [False, False, False, True]
        assert mock_stream.call_args[0][:2] == ("POST", "http://localhost:11434/api/chat")

    def test_content_on_done_line(self, stream_response):
        lines = [_line("Hi"), _line("!", done=True)]
        chunks: list[ResponseChunk] = []
        with patch("httpx.stream", return_value=stream_response(lines)):
            text = OllamaAdapter().send(CONVERSATION, _config(stream=True), chunks.append)
        assert text == "Hi!"
        assert chunks[-1] == ResponseChunk("Hi!", is_final=True)

    def test_error_line(self, stream_response):
        lines = [_line("Hi"), {"error": "out of memory"}]
        with patch("httpx.stream", return_value=stream_response(lines)):
            with pytest.raises(ProviderError, match="out of memory"):
                OllamaAdapter().send(CONVERSATION, _config(stream=True), lambda c: None)

    def test_no_done_line(self, stream_response):
        with patch("httpx.stream", return_value=stream_response([_line("Hi")])):
            with pytest.raises(MalformedResponse):
                OllamaAdapter().send(CONVERSATION, _config(stream=True), lambda c: None)

    def test_connection_refused_on_stream(self):
        with patch("httpx.stream", side_effect=httpx.ConnectError("Connection refused")):
            with pytest.raises(NetworkError, match="ollama serve"):
                OllamaAdapter().send(CONVERSATION, _config(stream=True), lambda c: None)


class TestListModels:
    def test_tags(self, http_response):
        resp = http_response(json_body={
            "models": [{"name": "qwen2.5:7b", "size": 1}, {"name": "llama3.1:8b", "size": 2}],
        })
        with patch("httpx.get", return_value=resp) as mock_get:
            models = OllamaAdapter().list_models(_config())
        assert models == ["llama3.1:8b", "qwen2.5:7b"]
        assert mock_get.call_args[0][0] == "http://localhost:11434/api/tags"

    def test_empty(self, http_response):
        with patch("httpx.get", return_value=http_response(json_body={})):
            assert OllamaAdapter().list_models(_config()) == []

    def test_unreachable(self):
        with patch("httpx.get", side_effect=httpx.ConnectError("refused")):
            with pytest.raises(NetworkError):
                OllamaAdapter().list_models(_config())
