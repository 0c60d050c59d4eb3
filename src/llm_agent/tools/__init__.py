"""Tool plugin system for the agentic loop."""

from __future__ import annotations

import inspect
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from llm_agent.models.schemas import InvocationContext

logger = logging.getLogger(__name__)

ToolFunction = Callable[[str, Union[InvocationContext, None]], Union[str, Awaitable[str]]]


class ToolError(Exception):
    """Raised by tools; the agent reports it back to the model as an observation."""


class ToolInputError(ToolError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    execute: ToolFunction

    async def run(self, input: str, context: InvocationContext | None = None) -> str:
        result = self.execute(input, context)
        if inspect.isawaitable(result):
            result = await result
        return result if isinstance(result, str) else str(result)


def parse_tool_input(input: str, required: list[str] | tuple[str, ...] = ()) -> dict[str, Any]:
    """Decode a tool's JSON input object and check required keys."""
    if not input.strip():
        args: Any = {}
    else:
        try:
            args = json.loads(input)
        except json.JSONDecodeError as e:
            raise ToolInputError(f"expected a JSON object ({e.msg})") from e
    if not isinstance(args, dict):
        raise ToolInputError("expected a JSON object")
    missing = [key for key in required if key not in args]
    if missing:
        raise ToolInputError(f"missing required field(s): {', '.join(missing)}")
    return args


class ToolRegistry:
    """Named tools shared by concurrent agent runs.

    Every read returns a snapshot taken under the lock.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._lock = threading.RLock()

    def register(self, tool: Tool) -> None:
        with self._lock:
            self._tools[tool.name] = tool

    def register_many(self, tools: list[Tool]) -> None:
        with self._lock:
            for tool in tools:
                self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        with self._lock:
            return self._tools.get(name)

    def resolve(self, names: list[str]) -> list[Tool]:
        """Registered tools among ``names``, in the requested order."""
        with self._lock:
            return [self._tools[name] for name in names if name in self._tools]

    def list_all(self) -> list[Tool]:
        with self._lock:
            return list(self._tools.values())

    def remove(self, name: str) -> None:
        with self._lock:
            self._tools.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._tools.clear()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def to_openai_tools(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        tools = self.list_all() if names is None else self.resolve(names)
        result = []
        for tool in tools:
            result.append(
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
            )
        return result

    def describe(self, names: list[str]) -> str:
        """Prompt block listing the given tools, or "" when none are registered."""
        tools = self.resolve(names)
        if not tools:
            return ""
        lines = []
        for tool in tools:
            params = ", ".join(tool.parameters.get("properties", {}).keys())
            lines.append(f"- {tool.name}: {tool.description}\n  Parameters: {params}")
        return (
            "You have access to the following tools:\n\n"
            + "\n".join(lines)
            + "\n\nTo use a tool, choose the action decision with the tool name and"
            " a JSON object as input."
        )
