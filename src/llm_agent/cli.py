import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from llm_agent.models.agent_schemas import AgentConfig, AgentError, AgentStepType

app = typer.Typer(name="llm-agent", help="Run an LLM agent loop with tool calling.")
console = Console()


def _parse_steps(steps: str) -> frozenset[AgentStepType]:
    names = [s.strip().lower() for s in steps.split(",") if s.strip()]
    try:
        return frozenset(AgentStepType(name) for name in names)
    except ValueError as e:
        raise typer.BadParameter(
            f"{e}. Choose from: {', '.join(t.value for t in AgentStepType)}"
        ) from e


def _resolve_work_dir(work_dir: Optional[Path]) -> Path:
    if work_dir is None:
        from llm_agent.config import settings

        work_dir = Path(settings.workdir)
    return work_dir.expanduser().resolve()


def _build_registry(work_dir: Path):
    from llm_agent.services.local_service import LocalService
    from llm_agent.tools import ToolRegistry
    from llm_agent.tools.base_tools import create_base_tools

    registry = ToolRegistry()
    registry.register_many(create_base_tools(LocalService(work_dir=work_dir)))
    return registry


def _build_executor(work_dir: Path, temperature: float, stream: bool):
    """Create an AgentExecutor with the file tools rooted at work_dir."""
    from llm_agent.agents.agent_executor import AgentExecutor
    from llm_agent.config import get_model_config
    from llm_agent.services.llm_service import LLMService

    model_config = get_model_config("agent")
    if model_config.temperature is None:
        model_config.temperature = temperature
    if not stream:
        model_config.streaming = False

    registry = _build_registry(work_dir)
    llm = LLMService(model_config)
    return AgentExecutor(llm_provider=llm, tool_registry=registry), llm


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    question: str = typer.Argument(..., help="What to ask the agent"),
    steps: str = typer.Option("action", "--steps", help="Comma-separated: action,plan,reflection. Empty for plain chat."),
    max_thoughts: int = typer.Option(0, "--max-thoughts", help="Thought budget (default from settings)"),
    system: str = typer.Option("", "--system", help="Extra system prompt"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Directory the file tools can read (default: WORKDIR setting)"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Use one-shot requests instead of streaming"),
    transcript: str = typer.Option("", "--transcript", help="Write a markdown transcript to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Ask a question and let the agent decide which tools to use."""
    _setup_logging(verbose)

    from llm_agent.agents.console_callback import (
        CompositeCallback,
        ConsoleCallback,
        MarkdownCallback,
    )
    from llm_agent.config import settings
    from llm_agent.models.schemas import ChatMessageContent, Role

    allowed = _parse_steps(steps)
    executor, llm = _build_executor(_resolve_work_dir(work_dir), settings.agent_temperature, not no_stream)
    config = AgentConfig(
        allowed_steps=allowed,
        tools=[tool.name for tool in executor.registry.list_all()] if allowed else [],
        system_prompt=system or None,
        max_thoughts=max_thoughts or settings.agent_max_thoughts,
        temperature=settings.agent_temperature,
    )

    console_cb = ConsoleCallback(console, max_thoughts=config.max_thoughts)
    if allowed:
        console_cb.print_tools(executor.registry)
    md_cb = MarkdownCallback()
    callback = CompositeCallback([console_cb, md_cb])

    try:
        answer = asyncio.run(
            executor.run(
                str(uuid.uuid4()),
                config,
                [ChatMessageContent(role=Role.USER, content=question)],
                llm.model,
                on_step=callback,
            )
        )
    except AgentError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    callback.on_finish(answer)
    if transcript:
        Path(transcript).write_text(md_cb.build_transcript(question), encoding="utf-8")
        console.print(f"[dim]Transcript written to {transcript}[/dim]")


@app.command()
def tools(
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Directory the file tools can read (default: WORKDIR setting)"),
) -> None:
    """List the built-in tools."""
    from llm_agent.agents.console_callback import ConsoleCallback

    ConsoleCallback(console).print_tools(_build_registry(_resolve_work_dir(work_dir)))


@app.command()
def prompt(
    steps: str = typer.Option("action", "--steps", help="Comma-separated: action,plan,reflection"),
    system: str = typer.Option("", "--system", help="Extra system prompt"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Directory the file tools can read (default: WORKDIR setting)"),
) -> None:
    """Print the system prompt the agent would send."""
    registry = _build_registry(_resolve_work_dir(work_dir))
    config = AgentConfig(
        allowed_steps=_parse_steps(steps),
        tools=[tool.name for tool in registry.list_all()],
        system_prompt=system or None,
    )
    if config.is_direct_chat:
        console.print("[dim]No agent steps: plain chat, no decision protocol.[/dim]")
        return
    console.print(config.build_prompt(registry.describe(config.tools)), markup=False, highlight=False)


if __name__ == "__main__":
    app()
