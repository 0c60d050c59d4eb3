"""Scripted LLM transport and helpers shared by the tests."""

from __future__ import annotations

import json
import uuid
from typing import Any

from llm_agent.models.schemas import (
    APIResponse,
    ChatMessageContent,
    MessageFragment,
)
from llm_agent.tools import Tool


def decision(decision_type: str, *, title: str | None = None, reasoning: str | None = None, **fields: Any) -> str:
    """Serialize a decision envelope the way the model is prompted to."""
    envelope: dict[str, Any] = {}
    if title is not None:
        envelope["title"] = title
    if reasoning is not None:
        envelope["reasoning"] = reasoning
    envelope["decision"] = {"type": decision_type, **fields}
    return json.dumps(envelope)


def chunked(text: str, size: int = 7) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class FakeProvider:
    """Scripted LLM transport.

    Each turn is either a string (one response), a list of stream items
    (strings become fragments), or a ready-made APIResponse.
    """

    def __init__(self, turns: list[Any], *, streaming: bool = True) -> None:
        self.turns = list(turns)
        self.streaming = streaming
        self.calls: list[tuple[list[ChatMessageContent], Any]] = []

    @property
    def supports_streaming(self) -> bool:
        return self.streaming

    def _next_turn(self, messages, metadata) -> Any:
        self.calls.append((list(messages), metadata))
        if not self.turns:
            raise AssertionError("unexpected LLM call")
        return self.turns.pop(0)

    async def chat(self, model, messages, metadata=None) -> APIResponse:
        turn = self._next_turn(messages, metadata)
        if isinstance(turn, APIResponse):
            return turn
        if isinstance(turn, list):
            turn = "".join(item for item in turn if isinstance(item, str))
        return APIResponse(data=ChatMessageContent(content=turn))

    async def stream_chat(self, model, messages, metadata=None):
        turn = self._next_turn(messages, metadata)
        if isinstance(turn, str):
            turn = [turn]
        message_id = str(uuid.uuid4())
        for item in turn:
            if isinstance(item, str):
                yield MessageFragment(id=message_id, content=item)
            else:
                yield item


class StepRecorder:
    def __init__(self) -> None:
        self.steps = []

    def __call__(self, step) -> None:
        self.steps.append(step)

    def of_type(self, *types):
        return [s for s in self.steps if s.type.value in types]

    @property
    def non_thought(self):
        return [s for s in self.steps if s.type.value != "thought"]


def make_tool(name: str, result: Any = "ok", calls: list | None = None) -> Tool:
    def execute(input: str, context=None) -> str:
        if calls is not None:
            calls.append((input, context))
        if isinstance(result, BaseException):
            raise result
        return result

    return Tool(
        name=name,
        description=f"The {name} tool",
        parameters={"type": "object", "properties": {"expression": {"type": "string"}}},
        execute=execute,
    )


