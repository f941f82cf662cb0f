"""Shared fixtures: isolate tests from the real keyring, env keys and home."""

from __future__ import annotations

import contextlib
import json
from pathlib import Path

import httpx
import pytest


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("PROMPTLINE_HOME", str(tmp_path / "plhome"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setattr("promptline.core.config.get_keyring_key", lambda service: None)


@pytest.fixture
def http_response():
    """Build a real httpx.Response bound to a request."""

    def _make(
        status: int = 200,
        json_body=None,
        text: str | None = None,
        headers: dict | None = None,
        url: str = "http://test.local/",
    ) -> httpx.Response:
        request = httpx.Request("POST", url)
        if json_body is not None:
            return httpx.Response(status, json=json_body, headers=headers, request=request)
        return httpx.Response(status, text=text or "", headers=headers, request=request)

    return _make


@pytest.fixture
def stream_response():
    """Build a context manager standing in for httpx.stream(...)."""

    def _make(lines: list, status: int = 200, headers: dict | None = None):
        body = "\n".join(
            line if isinstance(line, str) else json.dumps(line) for line in lines
        ) + "\n"
        request = httpx.Request("POST", "http://test.local/")
        response = httpx.Response(status, content=body.encode("utf-8"), headers=headers, request=request)
        return contextlib.nullcontext(response)

    return _make


@pytest.fixture
def http_stream(http_response):
    """Wrap a buffered httpx.Response as the context manager httpx.stream returns."""

    def _make(*args, **kwargs):
        return contextlib.nullcontext(http_response(*args, **kwargs))

    return _make
