from __future__ import annotations

import uuid

import pytest

from fakes import StepRecorder
from llm_agent.agents.step_emitter import StepEmitter
from llm_agent.models.agent_schemas import AgentStep, StepType


@pytest.mark.asyncio
async def test_emit_without_callback():
    step = await StepEmitter().emit(StepType.PLAN, 1, "plan")
    assert step.type == StepType.PLAN
    assert step.content == "plan"


@pytest.mark.asyncio
async def test_sync_and_async_callbacks():
    recorder = StepRecorder()
    await StepEmitter(recorder).emit_observation(1, "Observation: x")

    seen = []

    async def on_step(step):
        seen.append(step)

    await StepEmitter(on_step).emit(StepType.ACTION, 1, "Action: a", "Title")

    assert recorder.steps[0].type == StepType.OBSERVATION
    assert seen[0].title == "Title"


@pytest.mark.asyncio
async def test_thought_update_must_grow():
    recorder = StepRecorder()
    emitter = StepEmitter(recorder)
    step_id = uuid.uuid4()

    assert await emitter.emit_thought(1, "abc", step_id=step_id) is not None
    assert await emitter.emit_thought(1, "abc", step_id=step_id) is None
    assert await emitter.emit_thought(1, "ab", step_id=step_id) is None
    assert await emitter.emit_thought(1, "abcd", step_id=step_id) is not None

    assert [s.content for s in recorder.steps] == ["abc", "abcd"]
    assert all(s.id == step_id for s in recorder.steps)


@pytest.mark.asyncio
async def test_thought_without_id_gets_fresh_one():
    recorder = StepRecorder()
    emitter = StepEmitter(recorder)
    await emitter.emit_thought(1, "a")
    await emitter.emit_thought(1, "a")
    assert len({s.id for s in recorder.steps}) == 2


@pytest.mark.asyncio
async def test_step_numbers_cannot_go_backwards():
    emitter = StepEmitter()
    await emitter.emit(StepType.PLAN, 2, "p")
    await emitter.emit(StepType.PLAN, 2, "p")
    with pytest.raises(ValueError):
        await emitter.emit(StepType.PLAN, 1, "p")


@pytest.mark.asyncio
async def test_callback_errors_propagate():
    def on_step(step):
        raise RuntimeError("observer broke")

    with pytest.raises(RuntimeError):
        await StepEmitter(on_step).emit(StepType.PLAN, 1, "p")


def test_step_number_must_be_positive():
    with pytest.raises(ValueError):
        AgentStep(step_number=0, type=StepType.PLAN, content="p")
