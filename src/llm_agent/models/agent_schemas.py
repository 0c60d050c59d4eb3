"""Models for the agentic loop."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Iterable, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from llm_agent.prompts.prompt_layer import load_prompt, render_prompt


class AgentStepType(str, Enum):
    """Kinds of steps the model may choose besides the final answer."""

    PLAN = "plan"
    ACTION = "action"
    REFLECTION = "reflection"

    @property
    def needs_observation(self) -> bool:
        return self is AgentStepType.ACTION

    @property
    def instruction(self) -> str:
        return load_prompt(f"step_{self.value}")


# Order in which step instructions appear in the prompt
STEP_PROMPT_ORDER = (AgentStepType.PLAN, AgentStepType.ACTION, AgentStepType.REFLECTION)


def generate_step_instructions(steps: Iterable[AgentStepType]) -> str:
    allowed = set(steps)
    return "".join(
        step.instruction + "\n\n" for step in STEP_PROMPT_ORDER if step in allowed
    )


class AgentConfig(BaseModel):
    """Per-run agent behaviour. No allowed steps means plain chat."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    allowed_steps: frozenset[AgentStepType] = Field(
        default=frozenset(),
        validation_alias=AliasChoices("allowed_steps", "allowedSteps"),
    )
    tools: list[str] = Field(default_factory=list)
    system_prompt: str | None = Field(
        default=None,
        validation_alias=AliasChoices("system_prompt", "systemPrompt", "systemMessage"),
    )
    max_thoughts: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("max_thoughts", "maxThoughts"),
    )
    temperature: float = 0.7

    @property
    def is_direct_chat(self) -> bool:
        return not self.allowed_steps

    @classmethod
    def chat(cls) -> AgentConfig:
        return cls()

    @classmethod
    def react(
        cls, tools: list[str], max_thoughts: int = 10, system_prompt: str | None = None
    ) -> AgentConfig:
        return cls(
            allowed_steps=frozenset({AgentStepType.ACTION}),
            tools=tools,
            system_prompt=system_prompt,
            max_thoughts=max_thoughts,
        )

    @classmethod
    def plan_and_execute(
        cls, tools: list[str], max_thoughts: int = 10, system_prompt: str | None = None
    ) -> AgentConfig:
        return cls(
            allowed_steps=frozenset({AgentStepType.PLAN, AgentStepType.ACTION}),
            tools=tools,
            system_prompt=system_prompt,
            max_thoughts=max_thoughts,
        )

    @classmethod
    def reflexion(
        cls, tools: list[str], max_thoughts: int = 10, system_prompt: str | None = None
    ) -> AgentConfig:
        return cls(
            allowed_steps=frozenset({AgentStepType.ACTION, AgentStepType.REFLECTION}),
            tools=tools,
            system_prompt=system_prompt,
            max_thoughts=max_thoughts,
        )

    def strategy_instructions(self) -> str:
        return render_prompt(
            "agent_strategy",
            decisions=generate_step_instructions(self.allowed_steps),
        )

    def build_prompt(self, tools_description: str = "") -> str:
        """System prompt, tool listing and decision protocol, blank-line separated."""
        parts: list[str] = []
        if self.system_prompt:
            parts.append(self.system_prompt)
        if tools_description:
            parts.append(tools_description)
        parts.append(self.strategy_instructions())
        return "\n\n".join(parts)

    @property
    def prompt(self) -> str:
        return self.build_prompt()


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    input: str
    output: str | None = None


class PlanDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["plan"] = "plan"
    content: str


class ReflectionDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["reflection"] = "reflection"
    content: str


class ActionDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["action"] = "action"
    tool_call: ToolCall


class FinalAnswerDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["final_answer"] = "final_answer"
    content: str


AgentDirective = Annotated[
    Union[PlanDirective, ReflectionDirective, ActionDirective, FinalAnswerDirective],
    Field(discriminator="kind"),
]


class ParsedDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    directive: AgentDirective
    title: str | None = None


class StepType(str, Enum):
    THOUGHT = "thought"
    ACTION = "action"
    OBSERVATION = "observation"
    PLAN = "plan"
    REFLECTION = "reflection"


class AgentStep(BaseModel):
    """Observable milestone of a run. Streamed thoughts reuse the same id."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    step_number: int = Field(ge=1)
    type: StepType
    content: str
    title: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AgentError(Exception):
    """Base class for errors that end an agent run."""


class MaxThoughtsReachedError(AgentError):
    def __init__(self) -> None:
        super().__init__("Agent reached maximum thought steps without finding an answer")


class ToolNotFoundError(AgentError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ToolExecutionFailedError(AgentError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Tool execution failed: {reason}")


class InvalidToolCallError(AgentError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid tool call: {reason}")


class ConversationNotFoundError(AgentError):
    def __init__(self) -> None:
        super().__init__("Conversation not found")
