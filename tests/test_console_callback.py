from __future__ import annotations

import uuid

from rich.console import Console

from fakes import make_tool
from llm_agent.agents.console_callback import (
    CompositeCallback,
    ConsoleCallback,
    MarkdownCallback,
    _truncate,
)
from llm_agent.models.agent_schemas import AgentStep, StepType
from llm_agent.models.schemas import ChatMessageContent


def _console() -> Console:
    return Console(record=True, width=120, color_system=None)


def _thought(step_id, number, content):
    return AgentStep(id=step_id, step_number=number, type=StepType.THOUGHT, content=content)


def test_truncate_long_output():
    text = "\n".join(f"line {i}" for i in range(50))
    truncated = _truncate(text)
    assert truncated.endswith("... (20 more lines)")
    assert _truncate("short") == "short"


def test_console_prints_latest_thought_only():
    console = _console()
    cb = ConsoleCallback(console, max_thoughts=5)
    step_id = uuid.uuid4()
    cb(_thought(step_id, 1, "partial"))
    cb(_thought(step_id, 1, "partial reasoning done"))
    cb(AgentStep(step_number=1, type=StepType.ACTION, content="Action: calc\nInput: 1", title="Add"))
    cb.on_finish(ChatMessageContent(content="42"))

    out = console.export_text()
    assert "Thought 1/5" in out
    assert "partial reasoning done" in out
    assert out.count("partial") == 1
    assert "Add" in out
    assert "Answer (1 thoughts)" in out
    assert "42" in out


def test_console_prints_tools():
    console = _console()
    from llm_agent.tools import ToolRegistry

    registry = ToolRegistry()
    registry.register(make_tool("calc"))
    ConsoleCallback(console).print_tools(registry)
    assert "calc(expression)" in console.export_text()


def test_markdown_replaces_streamed_thought():
    cb = MarkdownCallback()
    step_id = uuid.uuid4()
    cb(_thought(step_id, 1, "draft"))
    cb(_thought(step_id, 1, "draft complete"))
    cb(AgentStep(step_number=1, type=StepType.OBSERVATION, content="Observation: ok"))
    cb.on_finish(ChatMessageContent(content="Done"))

    assert cb.step_count == 2
    transcript = cb.build_transcript("Why?")
    assert transcript.startswith("**Question:** Why?")
    assert "draft complete" in transcript
    assert "Agent log (2 steps)" in transcript
    assert "```\nObservation: ok\n```" in transcript
    assert "Done" in transcript


def test_markdown_without_steps():
    cb = MarkdownCallback()
    transcript = cb.build_transcript("Q")
    assert "_No final message._" in transcript
    assert "Agent log" not in transcript


def test_composite_forwards():
    first, second = MarkdownCallback(), MarkdownCallback()
    composite = CompositeCallback([first, second])
    composite(AgentStep(step_number=1, type=StepType.PLAN, content="p"))
    composite.on_finish(ChatMessageContent(content="a"))
    assert first.step_count == second.step_count == 1
    assert "a" in second.build_transcript("q")
