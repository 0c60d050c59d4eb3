"""Rich console and markdown observers for agent steps."""

from __future__ import annotations

import uuid
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from llm_agent.models.agent_schemas import AgentStep, StepType
from llm_agent.models.schemas import ChatMessageContent
from llm_agent.tools import ToolRegistry

MAX_RESULT_LINES = 30
MAX_RESULT_CHARS = 2000


def _truncate(text: str) -> str:
    lines = text.splitlines()
    if len(lines) > MAX_RESULT_LINES or len(text) > MAX_RESULT_CHARS:
        kept = lines[:MAX_RESULT_LINES]
        truncated = "\n".join(kept)
        if len(truncated) > MAX_RESULT_CHARS:
            truncated = truncated[:MAX_RESULT_CHARS]
        omitted = len(lines) - MAX_RESULT_LINES
        if omitted > 0:
            truncated += f"\n... ({omitted} more lines)"
        return truncated
    return text


STEP_STYLES = {
    StepType.THOUGHT: ("💭", "Thinking", "yellow"),
    StepType.PLAN: ("🗺 ", "Plan", "magenta"),
    StepType.REFLECTION: ("🔁", "Reflection", "cyan"),
    StepType.ACTION: ("🔧", "Action", "bold cyan"),
    StepType.OBSERVATION: ("👁 ", "Observation", "dim"),
}


class ConsoleCallback:
    """Prints steps as they arrive.

    Streamed thought updates share one step id; only the latest content of a
    thought is printed, once the next step arrives or the run finishes.
    """

    def __init__(self, console: Console | None = None, max_thoughts: int | None = None) -> None:
        self.console = console or Console()
        self.max_thoughts = max_thoughts
        self._current_step = 0
        self._pending_thought: AgentStep | None = None

    def print_tools(self, registry: ToolRegistry) -> None:
        table = Table(title="Available tools", border_style="dim", show_lines=False)
        table.add_column("Tool", style="bold cyan", no_wrap=True)
        table.add_column("Description", style="dim")
        for tool in registry.list_all():
            params = tool.parameters.get("properties", {})
            param_names = ", ".join(params.keys()) if params else ""
            table.add_row(f"🔧 {tool.name}({param_names})", tool.description)
        self.console.print(table)
        self.console.print()

    def __call__(self, step: AgentStep) -> None:
        if step.type == StepType.THOUGHT:
            if self._pending_thought is not None and self._pending_thought.id != step.id:
                self._flush_thought()
            self._start_step(step.step_number)
            self._pending_thought = step
            return
        self._flush_thought()
        self._start_step(step.step_number)
        self._print_step(step)

    def _start_step(self, step_number: int) -> None:
        if step_number == self._current_step:
            return
        self._current_step = step_number
        total = f"/{self.max_thoughts}" if self.max_thoughts else ""
        self.console.rule(f"[bold blue]Thought {step_number}{total}", style="blue")

    def _flush_thought(self) -> None:
        if self._pending_thought is None:
            return
        self._print_step(self._pending_thought)
        self._pending_thought = None

    def _print_step(self, step: AgentStep) -> None:
        icon, label, style = STEP_STYLES[step.type]
        title = f"[{style}]{icon} {label}"
        if step.title:
            title += f": {step.title}"
        truncated = _truncate(step.content)
        if step.type == StepType.OBSERVATION:
            body = (
                Syntax(truncated, "text", theme="ansi_dark", word_wrap=True)
                if len(truncated) > 200
                else Text(truncated, style="dim")
            )
        else:
            body = Text(truncated)
        self.console.print(Panel(body, title=title, border_style=style, padding=(0, 1)))

    def on_finish(self, message: ChatMessageContent) -> None:
        self._flush_thought()
        self.console.print()
        self.console.rule("[bold green]Agent finished", style="green")
        self.console.print(
            Panel(
                message.content or "",
                title=f"[bold green]Answer ({self._current_step} thoughts)",
                border_style="green",
                padding=(0, 1),
            )
        )


class MarkdownCallback:
    """Collects agent steps into a markdown transcript."""

    def __init__(self) -> None:
        self._entries: list[tuple[uuid.UUID, str]] = []
        self._answer: str = ""

    def __call__(self, step: AgentStep) -> None:
        icon, label, _ = STEP_STYLES[step.type]
        header = f"Thought {step.step_number} · {icon} {label}"
        if step.title:
            header += f": {step.title}"
        if step.type in (StepType.ACTION, StepType.OBSERVATION):
            body = f"```\n{_truncate(step.content)}\n```"
        else:
            body = step.content
        block = f"<details><summary>{header}</summary>\n\n{body}\n\n</details>"
        # Streamed thoughts replace their earlier versions
        for index, (entry_id, _) in enumerate(self._entries):
            if entry_id == step.id:
                self._entries[index] = (step.id, block)
                return
        self._entries.append((step.id, block))

    def on_finish(self, message: ChatMessageContent) -> None:
        self._answer = message.content or ""

    @property
    def step_count(self) -> int:
        return len(self._entries)

    def build_transcript(self, question: str) -> str:
        parts: list[str] = [
            f"**Question:** {question}",
            "",
            "**Answer:**",
            self._answer or "_No final message._",
            "",
        ]
        if self._entries:
            inner = "\n\n".join(block for _, block in self._entries)
            parts.append(
                f"<details><summary>Agent log ({len(self._entries)} steps)</summary>\n\n"
                f"{inner}\n\n"
                f"</details>"
            )
        return "\n".join(parts)


class CompositeCallback:
    """Forwards all step events to multiple observers."""

    def __init__(self, callbacks: Sequence[ConsoleCallback | MarkdownCallback]) -> None:
        self._callbacks = callbacks

    def __call__(self, step: AgentStep) -> None:
        for cb in self._callbacks:
            cb(step)

    def on_finish(self, message: ChatMessageContent) -> None:
        for cb in self._callbacks:
            cb.on_finish(message)
