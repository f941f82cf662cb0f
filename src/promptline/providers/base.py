"""Provider adapter contract, error taxonomy and shared HTTP machinery.

Each adapter translates a generic conversation into one vendor's request
shape, performs the call with httpx, and normalizes the reply (or the
streamed chunks) back into plain text. Vendor error envelopes are mapped
onto a small set of ProviderError subclasses.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from promptline.core.models import (
    Message,
    ProviderConfig,
    ResponseChunk,
    Service,
    validate_conversation,
)

log = logging.getLogger(__name__)

ChunkCallback = Callable[[ResponseChunk], None]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    NETWORK = "network"
    UNSUPPORTED = "unsupported"
    API = "api"


class ProviderError(Exception):
    """Normalized provider failure, tagged with the originating service."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        service: Service | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        if self.service is not None:
            return f"[{self.service.value}] {self.message}"
        return self.message


class AuthError(ProviderError):
    """Missing or invalid API key."""

    kind = ErrorKind.AUTH


class RateLimited(ProviderError):
    """The vendor throttled the request."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        service: Service | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, service, status_code)
        self.retry_after = retry_after


class MalformedResponse(ProviderError):
    """The response body could not be parsed."""

    kind = ErrorKind.MALFORMED


class NetworkError(ProviderError):
    """Connection failure or timeout."""

    kind = ErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        service: Service | None = None,
        timeout: bool = False,
    ) -> None:
        super().__init__(message, service)
        self.timeout = timeout


class UnsupportedError(ProviderError):
    """The feature is not available for this service or model."""

    kind = ErrorKind.UNSUPPORTED


class RequestCancelled(Exception):
    """The caller abandoned the request; not reported to the user."""


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdapterInfo:
    """Metadata about an adapter."""

    service: Service
    display_name: str
    requires_api_key: bool
    default_base_url: str
    default_model: str
    key_url: str = ""


@runtime_checkable
class Adapter(Protocol):
    """Contract shared by all provider adapters."""

    @property
    def info(self) -> AdapterInfo:
        ...

    def send(
        self,
        conversation: list[Message],
        config: ProviderConfig,
        on_chunk: ChunkCallback,
        cancel: threading.Event | None = None,
    ) -> str:
        """Send a conversation and return the final assistant text.

        on_chunk receives zero or more partial chunks followed by exactly
        one chunk with is_final=True carrying the full text.

        Raises:
            ProviderError: Any normalized vendor, network or parse failure.
            RequestCancelled: cancel was set while the request was running.
        """
        ...

    def list_models(self, config: ProviderConfig) -> list[str]:
        """List model identifiers available on the endpoint."""
        ...


class ChunkGuard:
    """Wraps a chunk callback and enforces delivery order.

    Rejects anything after the final chunk or after a terminal error so a
    misbehaving adapter cannot leak late chunks to the consumer.
    """

    def __init__(self, callback: ChunkCallback) -> None:
        self._callback = callback
        self.finished = False
        self.failed = False
        self.count = 0

    def __call__(self, chunk: ResponseChunk) -> None:
        if self.finished or self.failed:
            raise RuntimeError("Chunk delivered after the request terminated")
        if chunk.is_final:
            self.finished = True
        self.count += 1
        self._callback(chunk)

    def fail(self) -> None:
        self.failed = True


@dataclass
class StreamEvent:
    """One decoded frame of a streamed body."""

    delta: str = ""
    done: bool = False


def sse_data(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith("data:"):
        return None
    return line[5:].lstrip(" ")


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Shared implementation
# ---------------------------------------------------------------------------


class BaseAdapter:
    """Common send/list_models flow; subclasses supply the vendor shape."""

    INFO: AdapterInfo
    CHAT_PATH = ""
    MODELS_PATH = ""

    @property
    def info(self) -> AdapterInfo:
        return self.INFO

    @property
    def service(self) -> Service:
        return self.INFO.service

    # --- vendor hooks ---

    def headers(self, config: ProviderConfig) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_payload(
        self, conversation: list[Message], config: ProviderConfig, stream: bool
    ) -> dict[str, Any]:
        raise NotImplementedError

    def parse_response(self, data: Any) -> str:
        raise NotImplementedError

    def parse_stream_line(self, line: str) -> StreamEvent | None:
        raise NotImplementedError

    def parse_models(self, data: Any) -> list[str]:
        raise NotImplementedError

    def error_message(self, data: Any) -> str | None:
        """Extract the human-readable message from an error envelope."""
        if not isinstance(data, dict):
            return None
        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            return str(message) if message else None
        if isinstance(error, str) and error:
            return error
        return None

    # --- helpers ---

    def base_url(self, config: ProviderConfig) -> str:
        return (config.base_url or self.INFO.default_base_url).rstrip("/")

    def model(self, config: ProviderConfig) -> str:
        return config.model or self.INFO.default_model

    def check_api_key(self, config: ProviderConfig) -> None:
        """Fail fast, before any network call, when a required key is missing."""
        if self.INFO.requires_api_key and not config.api_key:
            hint = f" Get one at: {self.INFO.key_url}" if self.INFO.key_url else ""
            raise AuthError(
                f"No API key configured for {self.INFO.display_name}. "
                f"Run 'pl config set-key {self.service.value}'.{hint}",
                self.service,
            )

    def status_error(self, status: int, body: str, headers: Any = None) -> ProviderError:
        """Map an HTTP error status and body onto the error taxonomy."""
        detail = self.error_message(_load_json(body)) or f"HTTP {status} from {self.INFO.display_name}"
        if status in (401, 403):
            return AuthError(f"Authentication failed: {detail}", self.service, status)
        if status in (429, 529):
            retry_after = None
            if headers is not None:
                value = headers.get("retry-after")
                try:
                    retry_after = float(value) if value else None
                except (TypeError, ValueError):
                    retry_after = None
            return RateLimited(f"Rate limited: {detail}", self.service, status, retry_after)
        return ProviderError(f"API error ({status}): {detail}", self.service, status)

    def stream_error(self, data: Any) -> ProviderError:
        """Normalize an error frame received in the middle of a stream."""
        detail = self.error_message(data) or "stream reported an error"
        return ProviderError(f"Stream error: {detail}", self.service)

    def _network_error(self, e: Exception, config: ProviderConfig) -> NetworkError:
        import httpx

        if isinstance(e, httpx.TimeoutException):
            return NetworkError(
                f"Request timed out after {config.timeout:g}s", self.service, timeout=True
            )
        return NetworkError(
            f"{self.INFO.display_name} unreachable at {self.base_url(config)}: {e}",
            self.service,
        )

    # --- operations ---

    def send(
        self,
        conversation: list[Message],
        config: ProviderConfig,
        on_chunk: ChunkCallback,
        cancel: threading.Event | None = None,
    ) -> str:
        validate_conversation(conversation)
        self.check_api_key(config)
        if cancel is not None and cancel.is_set():
            raise RequestCancelled()

        log.debug(
            "Sending %d messages to %s (model=%s, stream=%s)",
            len(conversation), self.service.value, self.model(config), config.stream,
        )
        if config.stream:
            return self._send_streaming(conversation, config, on_chunk, cancel)
        return self._send_once(conversation, config, on_chunk, cancel)

    def _check_deadline(self, deadline: float, config: ProviderConfig) -> None:
        if time.monotonic() > deadline:
            raise NetworkError(
                f"Response exceeded {config.total_timeout:g}s total",
                self.service,
                timeout=True,
            )

    def _send_once(
        self,
        conversation: list[Message],
        config: ProviderConfig,
        on_chunk: ChunkCallback,
        cancel: threading.Event | None,
    ) -> str:
        import httpx

        url = f"{self.base_url(config)}{self.CHAT_PATH}"
        deadline = time.monotonic() + config.total_timeout
        parts: list[str] = []

        # body read in pieces so total_timeout also bounds a slow reply
        try:
            with httpx.stream(
                "POST",
                url,
                headers=self.headers(config),
                json=self.build_payload(conversation, config, stream=False),
                timeout=httpx.Timeout(config.timeout),
            ) as resp:
                for piece in resp.iter_text():
                    if cancel is not None and cancel.is_set():
                        raise RequestCancelled()
                    self._check_deadline(deadline, config)
                    parts.append(piece)
                status, headers = resp.status_code, resp.headers
        except (httpx.TransportError, OSError) as e:
            raise self._network_error(e, config) from e

        body = "".join(parts)
        if status >= 400:
            raise self.status_error(status, body, headers)

        try:
            text = self.parse_response(json.loads(body))
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponse(
                f"Unexpected response from {self.INFO.display_name}: {e}", self.service
            ) from e

        if cancel is not None and cancel.is_set():
            raise RequestCancelled()
        on_chunk(ResponseChunk(text, is_final=True))
        return text

    def _send_streaming(
        self,
        conversation: list[Message],
        config: ProviderConfig,
        on_chunk: ChunkCallback,
        cancel: threading.Event | None,
    ) -> str:
        import httpx

        url = f"{self.base_url(config)}{self.CHAT_PATH}"
        deadline = time.monotonic() + config.total_timeout
        parts: list[str] = []

        try:
            with httpx.stream(
                "POST",
                url,
                headers=self.headers(config),
                json=self.build_payload(conversation, config, stream=True),
                timeout=httpx.Timeout(config.timeout),
            ) as resp:
                if resp.status_code >= 400:
                    resp.read()
                    raise self.status_error(resp.status_code, resp.text, resp.headers)

                for line in resp.iter_lines():
                    if cancel is not None and cancel.is_set():
                        raise RequestCancelled()
                    self._check_deadline(deadline, config)
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        event = self.parse_stream_line(line)
                    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                        raise MalformedResponse(
                            f"Unparseable stream frame from {self.INFO.display_name}: {e}",
                            self.service,
                        ) from e
                    if event is None:
                        continue
                    if event.delta:
                        parts.append(event.delta)
                        on_chunk(ResponseChunk(event.delta, is_final=False))
                    if event.done:
                        text = "".join(parts)
                        on_chunk(ResponseChunk(text, is_final=True))
                        return text
        except (httpx.TransportError, OSError) as e:
            raise self._network_error(e, config) from e

        raise MalformedResponse(
            f"{self.INFO.display_name} stream ended before completion", self.service
        )

    def list_models(self, config: ProviderConfig) -> list[str]:
        import httpx

        if not self.MODELS_PATH:
            raise UnsupportedError(
                f"{self.INFO.display_name} does not support model listing", self.service
            )
        self.check_api_key(config)

        url = f"{self.base_url(config)}{self.MODELS_PATH}"
        try:
            resp = httpx.get(url, headers=self.headers(config), timeout=httpx.Timeout(config.timeout))
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (404, 405, 501):
                raise UnsupportedError(
                    f"{self.INFO.display_name} endpoint does not support model listing",
                    self.service,
                    e.response.status_code,
                ) from e
            raise self.status_error(
                e.response.status_code, e.response.text, e.response.headers
            ) from e
        except (httpx.TransportError, OSError) as e:
            raise self._network_error(e, config) from e

        try:
            return sorted(self.parse_models(resp.json()))
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponse(
                f"Unexpected model list from {self.INFO.display_name}: {e}", self.service
            ) from e
