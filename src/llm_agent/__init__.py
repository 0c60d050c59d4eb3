"""Autonomous LLM agent loop: thought → decision → tool → observation."""

from llm_agent.agents.agent_executor import AgentExecutor
from llm_agent.models.agent_schemas import (
    AgentConfig,
    AgentError,
    AgentStep,
    AgentStepType,
    MaxThoughtsReachedError,
    StepType,
    ToolCall,
    ToolNotFoundError,
)
from llm_agent.models.schemas import ChatMessageContent, Role
from llm_agent.tools import Tool, ToolRegistry

__all__ = [
    "AgentConfig",
    "AgentError",
    "AgentExecutor",
    "AgentStep",
    "AgentStepType",
    "ChatMessageContent",
    "MaxThoughtsReachedError",
    "Role",
    "StepType",
    "Tool",
    "ToolCall",
    "ToolNotFoundError",
    "ToolRegistry",
]
