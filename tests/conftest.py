from __future__ import annotations

import pytest

from fakes import StepRecorder
from llm_agent.tools import ToolRegistry


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture
def recorder() -> StepRecorder:
    return StepRecorder()
