"""Runs the tool named by an action directive."""

from __future__ import annotations

import logging

from llm_agent.models.agent_schemas import ToolCall, ToolNotFoundError
from llm_agent.models.schemas import InvocationContext
from llm_agent.tools import Tool

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Bound to the tools enabled for one run."""

    def __init__(self, tools: list[Tool]) -> None:
        self._tools = {tool.name: tool for tool in tools}

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    async def execute(
        self, tool_call: ToolCall, context: InvocationContext | None = None
    ) -> str:
        """Return the tool's observation. Tool exceptions propagate."""
        tool = self._tools.get(tool_call.tool)
        if tool is None:
            raise ToolNotFoundError(tool_call.tool)
        logger.debug("Executing tool '%s' with input %s", tool.name, tool_call.input[:200])
        return await tool.run(tool_call.input, context)
