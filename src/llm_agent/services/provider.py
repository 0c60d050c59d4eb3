"""Transport contract the agent core consumes."""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Sequence

from llm_agent.models.schemas import (
    APIResponse,
    ChatMessageContent,
    RequestMetadata,
    StreamChatResponse,
)


class LLMProvider(Protocol):
    @property
    def supports_streaming(self) -> bool: ...

    async def chat(
        self,
        model: str,
        messages: Sequence[ChatMessageContent],
        metadata: RequestMetadata | None = None,
    ) -> APIResponse: ...

    def stream_chat(
        self,
        model: str,
        messages: Sequence[ChatMessageContent],
        metadata: RequestMetadata | None = None,
    ) -> AsyncIterator[StreamChatResponse]: ...
