"""Core data models for promptline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# --- Enums ---


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Service(str, Enum):
    """Provider families a request can be routed to."""

    OPENAI = "openai"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"

    @classmethod
    def parse(cls, value: str | Service) -> Service:
        """Look up a service by name, raising ValueError for unknown names."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            available = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Unknown service '{value}'. Available: {available}"
            ) from None


class Outcome(str, Enum):
    COMPLETED = "completed"
    DECLINED = "declined"
    FAILED = "failed"
    CANCELLED = "cancelled"


# --- Helpers ---


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Templates & conversations ---


@dataclass(frozen=True)
class Template:
    """A named prompt skeleton with {{placeholder}} markers."""

    name: str
    prompt: str
    system: str = ""
    requires_selection: bool = False
    description: str = ""


@dataclass(frozen=True)
class Message:
    """A single role-tagged message in a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def validate_conversation(messages: list[Message]) -> None:
    """Check conversation ordering.

    Raises:
        ValueError: Empty conversation, or an assistant message before
            the first user message.
    """
    if not messages:
        raise ValueError("Conversation must contain at least one message")
    for msg in messages:
        if msg.role == Role.USER:
            return
        if msg.role == Role.ASSISTANT:
            raise ValueError("Assistant message precedes the first user message")
    raise ValueError("Conversation has no user message")


@dataclass(frozen=True)
class Context:
    """Editing context a template is rendered against."""

    text: str = ""  # selection, or the whole buffer when nothing is selected
    user_prompt: str = ""
    filename: str = ""
    has_selection: bool = False


# --- Provider configuration & responses ---


@dataclass(frozen=True)
class ProviderConfig:
    """Snapshot of the active provider settings for one request."""

    service: Service
    model: str
    base_url: str
    api_key: str | None = field(default=None, repr=False)
    timeout: float = 120.0  # per connect/read operation
    total_timeout: float = 600.0  # whole response, connect to last byte
    max_tokens: int = 4096
    stream: bool = True

    def __repr__(self) -> str:
        key = "***" if self.api_key else None
        return (
            f"ProviderConfig(service={self.service.value!r}, model={self.model!r}, "
            f"base_url={self.base_url!r}, api_key={key!r}, stream={self.stream})"
        )


@dataclass(frozen=True)
class ResponseChunk:
    """An incremental fragment of a response.

    The final chunk carries the complete response text, not a delta.
    """

    text: str
    is_final: bool = False


@dataclass
class LogEntry:
    """One persisted request/response exchange."""

    service: str
    model: str
    messages: list[Message]
    response: str
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "service": self.service,
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "response": self.response,
        }


@dataclass
class DispatchResult:
    """Terminal outcome of a dispatched request."""

    outcome: Outcome
    text: str = ""
    error: Exception | None = None
    diff: str = ""
    log_path: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.COMPLETED
