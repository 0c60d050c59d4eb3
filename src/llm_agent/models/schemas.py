"""Chat and transport models shared by the agent core and LLM providers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatFile(BaseModel):
    """An image attached to a message, either by URL or inline base64 data."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image_url", "base64_image"] = "image_url"
    value: str

    def to_openai_part(self) -> dict[str, Any]:
        url = self.value
        if self.kind == "base64_image" and not url.startswith("data:"):
            url = f"data:image/png;base64,{url}"
        return {"type": "image_url", "image_url": {"url": url}}


class Usage(BaseModel):
    """Settlement record for one LLM call."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float | None = None


class ChatMessageContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: Role = Role.ASSISTANT
    content: str | None = None
    files: tuple[ChatFile, ...] = ()
    usage: Usage | None = None

    def to_openai(self) -> dict[str, Any]:
        """Convert to an OpenAI chat-completions message dict."""
        text = self.content or ""
        if self.role == Role.USER and self.files:
            parts: list[dict[str, Any]] = []
            if text:
                parts.append({"type": "text", "text": text})
            parts.extend(f.to_openai_part() for f in self.files)
            return {"role": self.role.value, "content": parts}
        return {"role": self.role.value, "content": text}


class MessageFragment(BaseModel):
    """One incremental chunk of a streamed response."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: Role = Role.ASSISTANT
    content: str | None = None
    files: tuple[ChatFile, ...] = ()
    # Mid-stream usage is not authoritative; the accumulator ignores it.
    usage: Usage | None = None


class Settlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    usage: Usage


StreamChatResponse = Union[MessageFragment, Settlement]


class APIError(BaseModel):
    code: int
    message: str


class APIResponse(BaseModel):
    data: ChatMessageContent | None = None
    usage: Usage | None = None
    error: APIError | None = None


class LLMCallSource(BaseModel):
    """Identifies where an LLM call originated, for tracking."""

    model_config = ConfigDict(frozen=True)

    type: Literal["app", "web", "domain_agent", "system"] = "system"
    identifier: str | None = None

    @property
    def description(self) -> str:
        if self.type == "app":
            return f"App: {self.identifier}"
        if self.type == "web":
            return f"Web: {self.identifier}"
        if self.type == "domain_agent":
            return f"Domain Agent: {self.identifier}"
        return "System"


class RequestContext(BaseModel):
    """Internal metadata the agent attaches to every thought request."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    agent_step: int
    source: LLMCallSource | None = None


class RequestMetadata(BaseModel):
    """Request-scoped metadata: an opaque caller payload plus internal context."""

    id: str = Field(default_factory=_new_id)
    date: datetime = Field(default_factory=_utcnow)
    user_info: dict[str, Any] = Field(default_factory=dict)
    context: RequestContext | None = None


class ToolContextError(Exception):
    """Raised when an invocation context cannot be resolved to a tool context."""


class InvocationContext(BaseModel):
    """Opaque per-run data handed to tools (user ids, session handles...)."""

    model_config = ConfigDict(extra="allow")

    def resolve(self, model: type[BaseModel]) -> BaseModel:
        try:
            return model.model_validate(self.model_dump())
        except ValidationError as e:
            raise ToolContextError(f"Failed to decode tool context: {e}") from e
