"""Delivers AgentStep events to the caller's observer."""

from __future__ import annotations

import inspect
import logging
import uuid
from typing import Awaitable, Callable, Union

from llm_agent.models.agent_schemas import AgentStep, StepType

logger = logging.getLogger(__name__)

OnStep = Callable[[AgentStep], Union[None, Awaitable[None]]]


class StepEmitter:
    """Wraps a sync or async ``on_step`` callback.

    Step numbers never go backwards within a run, and a streamed thought step
    is only re-sent when its content grew.
    """

    def __init__(self, on_step: OnStep | None = None) -> None:
        self._on_step = on_step
        self._last_step_number = 0
        self._thought_lengths: dict[uuid.UUID, int] = {}

    async def _deliver(self, step: AgentStep) -> None:
        if step.step_number < self._last_step_number:
            raise ValueError(
                f"Step {step.step_number} emitted after step {self._last_step_number}"
            )
        self._last_step_number = step.step_number
        if self._on_step is None:
            return
        result = self._on_step(step)
        if inspect.isawaitable(result):
            await result

    async def emit(
        self,
        step_type: StepType,
        step_number: int,
        content: str,
        title: str | None = None,
    ) -> AgentStep:
        step = AgentStep(step_number=step_number, type=step_type, content=content, title=title)
        await self._deliver(step)
        return step

    async def emit_thought(
        self,
        step_number: int,
        content: str,
        title: str | None = None,
        step_id: uuid.UUID | None = None,
    ) -> AgentStep | None:
        """Emit or update a thought. Returns None when the update was dropped."""
        step_id = step_id or uuid.uuid4()
        previous = self._thought_lengths.get(step_id)
        if previous is not None and len(content) <= previous:
            return None
        self._thought_lengths[step_id] = len(content)
        step = AgentStep(
            id=step_id,
            step_number=step_number,
            type=StepType.THOUGHT,
            content=content,
            title=title,
        )
        await self._deliver(step)
        return step

    async def emit_observation(self, step_number: int, content: str) -> AgentStep:
        return await self.emit(StepType.OBSERVATION, step_number, content)
