"""Fold streamed LLM fragments into one growing message per thought."""

from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from typing import AsyncIterator, Sequence

from llm_agent.agents.directive_decoder import (
    extract_reasoning,
    extract_title,
    thought_display_text,
)
from llm_agent.agents.step_emitter import StepEmitter
from llm_agent.models.agent_schemas import ToolExecutionFailedError
from llm_agent.models.schemas import (
    APIResponse,
    ChatMessageContent,
    MessageFragment,
    RequestMetadata,
    Settlement,
    StreamChatResponse,
    Usage,
)
from llm_agent.services.provider import LLMProvider

logger = logging.getLogger(__name__)


def accumulate(
    message: ChatMessageContent | None,
    fragment: MessageFragment,
    usage: Usage | None = None,
) -> ChatMessageContent:
    """Return a new message with ``fragment`` appended.

    ``usage`` is the latest settlement seen so far; the fragment's own usage
    is ignored.
    """
    if message is None:
        return ChatMessageContent(
            id=fragment.id,
            role=fragment.role,
            content=fragment.content,
            files=fragment.files,
            usage=usage,
        )
    return ChatMessageContent(
        id=message.id,
        role=message.role,
        content=(message.content or "") + (fragment.content or ""),
        files=message.files + fragment.files,
        usage=usage,
    )


class ThoughtAccumulator:
    """Holds the in-flight message of one thought."""

    def __init__(self) -> None:
        self.message: ChatMessageContent | None = None
        self.usage: Usage | None = None

    def feed(self, item: StreamChatResponse) -> ChatMessageContent | None:
        """Apply one stream item. Returns the new message, or None if there is none yet."""
        if isinstance(item, Settlement):
            self.usage = item.usage
            if self.message is None:
                return None
            self.message = self.message.model_copy(update={"usage": item.usage})
            return self.message
        self.message = accumulate(self.message, item, self.usage)
        return self.message


def _unwrap(result: APIResponse) -> ChatMessageContent:
    if result.data is None:
        if result.error is not None:
            raise ToolExecutionFailedError(result.error.message)
        raise ToolExecutionFailedError("No response from LLM")
    message = result.data
    if message.usage is None and result.usage is not None:
        message = message.model_copy(update={"usage": result.usage})
    return message


async def request_thought(
    provider: LLMProvider,
    model: str,
    context: Sequence[ChatMessageContent],
    *,
    stream: bool,
    thought_number: int,
    metadata: RequestMetadata | None,
    emitter: StepEmitter,
) -> AsyncIterator[ChatMessageContent]:
    """Yield the accumulated thought message as it grows.

    Emits a ``thought`` step for the live reasoning text under one step id.
    In one-shot mode the message is yielded exactly once.
    """
    if not stream:
        message = _unwrap(await provider.chat(model, context, metadata))
        content = message.content
        if not content:
            raise ToolExecutionFailedError("Empty response from LLM")
        await emitter.emit_thought(
            thought_number,
            extract_reasoning(content) or content,
            extract_title(content),
        )
        yield message
        return

    accumulator = ThoughtAccumulator()
    step_id: uuid.UUID | None = None
    showing_reasoning = False
    async with aclosing(provider.stream_chat(model, context, metadata)) as responses:
        async for item in responses:
            message = accumulator.feed(item)
            if message is None:
                continue
            if isinstance(item, MessageFragment) and message.content:
                display = thought_display_text(message.content)
                if display is not None:
                    has_reasoning = extract_reasoning(message.content) is not None
                    # A raw preamble and the reasoning after it are different
                    # texts; the reasoning starts a step of its own.
                    if step_id is None or has_reasoning != showing_reasoning:
                        step_id = uuid.uuid4()
                        showing_reasoning = has_reasoning
                    await emitter.emit_thought(
                        thought_number,
                        display,
                        extract_title(message.content),
                        step_id=step_id,
                    )
            yield message


async def direct_chat(
    provider: LLMProvider,
    model: str,
    context: Sequence[ChatMessageContent],
    *,
    stream: bool,
    metadata: RequestMetadata | None,
) -> AsyncIterator[ChatMessageContent]:
    """Plain chat without the decision protocol."""
    if not stream:
        yield _unwrap(await provider.chat(model, context, metadata))
        return

    accumulator = ThoughtAccumulator()
    async with aclosing(provider.stream_chat(model, context, metadata)) as responses:
        async for item in responses:
            message = accumulator.feed(item)
            if message is not None:
                yield message
