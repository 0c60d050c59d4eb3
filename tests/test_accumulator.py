from __future__ import annotations

import pytest

from fakes import FakeProvider, StepRecorder
from llm_agent.agents.accumulator import ThoughtAccumulator, accumulate, request_thought
from llm_agent.agents.step_emitter import StepEmitter
from llm_agent.models.schemas import ChatFile, MessageFragment, Role, Settlement, Usage


def test_accumulate_starts_from_first_fragment():
    fragment = MessageFragment(id="m-1", content="Hel", role=Role.ASSISTANT)
    message = accumulate(None, fragment)
    assert message.id == "m-1"
    assert message.content == "Hel"
    assert message.usage is None


def test_accumulate_appends_content_and_files():
    a = ChatFile(value="https://example.com/a.png")
    b = ChatFile(value="https://example.com/b.png")
    message = accumulate(None, MessageFragment(id="m-1", content="Hel", files=(a,)))
    message = accumulate(message, MessageFragment(id="ignored", content="lo", files=(b,)))
    assert message.id == "m-1"
    assert message.content == "Hello"
    assert message.files == (a, b)


def test_accumulate_ignores_fragment_usage():
    fragment = MessageFragment(id="m-1", content="x", usage=Usage(total_tokens=99))
    assert accumulate(None, fragment).usage is None


def test_accumulate_handles_empty_fragments():
    message = accumulate(None, MessageFragment(id="m-1", content=None))
    message = accumulate(message, MessageFragment(id="m-1", content="a"))
    assert message.content == "a"


def test_accumulate_grouping_does_not_matter():
    def fold(fragments, message=None):
        for content in fragments:
            message = accumulate(message, MessageFragment(id="m-1", content=content))
        return message

    split = fold([" world"], fold(["Hel", "lo"]))
    whole = fold(["Hello", " world"])

    assert split.content == whole.content == "Hello world"
    assert split.id == whole.id
    assert split.files == whole.files


def test_settlement_before_fragments_is_held():
    acc = ThoughtAccumulator()
    usage = Usage(total_tokens=3)
    assert acc.feed(Settlement(usage=usage)) is None
    message = acc.feed(MessageFragment(id="m-1", content="hi"))
    assert message.usage == usage


def test_settlement_updates_existing_message():
    acc = ThoughtAccumulator()
    acc.feed(MessageFragment(id="m-1", content="hi"))
    usage = Usage(prompt_tokens=1, completion_tokens=1, total_tokens=2)
    message = acc.feed(Settlement(usage=usage))
    assert message.content == "hi"
    assert message.usage == usage


def test_later_settlement_wins():
    acc = ThoughtAccumulator()
    acc.feed(MessageFragment(id="m-1", content="a"))
    acc.feed(Settlement(usage=Usage(total_tokens=1)))
    acc.feed(MessageFragment(id="m-1", content="b"))
    message = acc.feed(Settlement(usage=Usage(total_tokens=2)))
    assert message.content == "ab"
    assert message.usage.total_tokens == 2


@pytest.mark.asyncio
async def test_request_thought_streams_growing_messages():
    provider = FakeProvider([['{"reasoning": "ab', 'cd", ', '"decision": {}}']])
    recorder = StepRecorder()
    emitter = StepEmitter(recorder)

    messages = [
        m
        async for m in request_thought(
            provider, "m", [], stream=True, thought_number=1, metadata=None, emitter=emitter
        )
    ]

    assert [m.content for m in messages] == [
        '{"reasoning": "ab',
        '{"reasoning": "abcd", ',
        '{"reasoning": "abcd", "decision": {}}',
    ]
    assert [s.content for s in recorder.steps] == ["ab", "abcd"]
    assert len({s.id for s in recorder.steps}) == 1


@pytest.mark.asyncio
async def test_request_thought_one_shot_yields_once():
    provider = FakeProvider(['{"title": "T", "reasoning": "r", "decision": {}}'], streaming=False)
    recorder = StepRecorder()

    messages = [
        m
        async for m in request_thought(
            provider, "m", [], stream=False, thought_number=2, metadata=None,
            emitter=StepEmitter(recorder),
        )
    ]

    assert len(messages) == 1
    assert len(recorder.steps) == 1
    assert recorder.steps[0].content == "r"
    assert recorder.steps[0].title == "T"
    assert recorder.steps[0].step_number == 2
