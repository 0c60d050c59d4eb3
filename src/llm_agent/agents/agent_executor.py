"""Thought → decision → execute loop over a JSON decision protocol."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Sequence

from llm_agent.agents.accumulator import direct_chat, request_thought
from llm_agent.agents.directive_decoder import (
    decode_decision,
    extract_reasoning,
    extract_streaming_final_answer,
)
from llm_agent.agents.step_emitter import OnStep, StepEmitter
from llm_agent.agents.tool_dispatcher import ToolDispatcher
from llm_agent.models.agent_schemas import (
    ActionDirective,
    AgentConfig,
    FinalAnswerDirective,
    InvalidToolCallError,
    MaxThoughtsReachedError,
    PlanDirective,
    ReflectionDirective,
    StepType,
    ToolExecutionFailedError,
    ToolNotFoundError,
)
from llm_agent.models.schemas import (
    ChatFile,
    ChatMessageContent,
    InvocationContext,
    LLMCallSource,
    RequestContext,
    RequestMetadata,
    Role,
    Usage,
)
from llm_agent.services.provider import LLMProvider
from llm_agent.tools import ToolRegistry

logger = logging.getLogger(__name__)


class AgentExecutor:
    def __init__(self, llm_provider: LLMProvider, tool_registry: ToolRegistry) -> None:
        self.llm = llm_provider
        self.registry = tool_registry

    async def execute(
        self,
        conversation_id: str,
        config: AgentConfig,
        context_messages: Sequence[ChatMessageContent],
        model: str,
        metadata: dict[str, Any] | None = None,
        invocation_context: InvocationContext | None = None,
        on_step: OnStep | None = None,
        *,
        stream: bool | None = None,
        source: LLMCallSource | None = None,
    ) -> AsyncIterator[ChatMessageContent]:
        """Run the agent and yield output messages.

        The last message yielded is the answer. While streaming, earlier
        messages with the same id carry the partial final answer and should
        replace each other on display.

        Raises an ``AgentError`` subclass, or the transport's own exception.
        """
        tools = self.registry.resolve(config.tools)
        can_stream = self.llm.supports_streaming if stream is None else stream
        user_info = dict(metadata or {})

        logger.info(
            "Executing agent: conversation=%s steps=%s tools=%s (%d loaded) "
            "max_thoughts=%d stream=%s",
            conversation_id,
            sorted(step.value for step in config.allowed_steps),
            config.tools,
            len(tools),
            config.max_thoughts,
            can_stream,
        )

        if config.is_direct_chat:
            logger.info("Direct chat mode (no agent steps)")
            context = list(context_messages)
            if config.system_prompt:
                context = _with_system_prompt(context, config.system_prompt)
            async with aclosing(
                direct_chat(
                    self.llm,
                    model,
                    context,
                    stream=can_stream,
                    metadata=RequestMetadata(user_info=user_info),
                )
            ) as messages:
                async for message in messages:
                    yield message
            return

        emitter = StepEmitter(on_step)
        dispatcher = ToolDispatcher(tools)
        prompt = config.build_prompt(self.registry.describe(dispatcher.tool_names))
        context = _with_system_prompt(list(context_messages), prompt)
        logger.debug("Context messages count: %d", len(context))

        thought_count = 0
        accumulated_files: tuple[ChatFile, ...] = ()
        last_usage: Usage | None = None

        while thought_count < config.max_thoughts:
            thought_count += 1
            logger.debug("Thought %d/%d", thought_count, config.max_thoughts)

            request_metadata = RequestMetadata(
                user_info=user_info,
                context=RequestContext(
                    conversation_id=conversation_id,
                    agent_step=thought_count,
                    source=source,
                ),
            )

            thought: ChatMessageContent | None = None
            last_preview: str | None = None
            async with aclosing(
                request_thought(
                    self.llm,
                    model,
                    context,
                    stream=can_stream,
                    thought_number=thought_count,
                    metadata=request_metadata,
                    emitter=emitter,
                )
            ) as chunks:
                async for chunk in chunks:
                    thought = chunk
                    if not can_stream or not chunk.content:
                        continue
                    answer = extract_streaming_final_answer(chunk.content)
                    if answer is not None and answer != last_preview:
                        last_preview = answer
                        yield ChatMessageContent(
                            id=chunk.id,
                            role=Role.ASSISTANT,
                            content=answer,
                            files=accumulated_files + chunk.files,
                            usage=chunk.usage,
                        )

            if thought is None:
                raise ToolExecutionFailedError("No response from LLM")

            accumulated_files += thought.files
            if thought.usage is not None:
                last_usage = thought.usage

            raw_content = thought.content or ""
            thought_text = extract_reasoning(raw_content) or raw_content
            logger.debug("Thought content (first 200 chars): %s", raw_content[:200])

            parsed = decode_decision(raw_content)
            if parsed is None:
                logger.info(
                    "No decision recognized after %d thought(s), treating as final answer",
                    thought_count,
                )
                yield ChatMessageContent(
                    id=thought.id,
                    role=Role.ASSISTANT,
                    content=thought_text,
                    files=accumulated_files,
                    usage=last_usage,
                )
                return

            directive = parsed.directive
            if isinstance(directive, FinalAnswerDirective):
                logger.info("Final answer after %d thought(s)", thought_count)
                yield ChatMessageContent(
                    id=thought.id,
                    role=Role.ASSISTANT,
                    content=directive.content,
                    files=accumulated_files,
                    usage=last_usage,
                )
                return

            if isinstance(directive, ActionDirective):
                tool_call = directive.tool_call
                logger.debug("Next step: action (%s)", tool_call.tool)
                if not tool_call.tool.strip():
                    raise InvalidToolCallError("empty tool name")
                await emitter.emit(
                    StepType.ACTION,
                    thought_count,
                    f"Action: {tool_call.tool}\nInput: {tool_call.input}",
                    parsed.title,
                )
                try:
                    observation = await dispatcher.execute(tool_call, invocation_context)
                except ToolNotFoundError:
                    raise
                except Exception as e:
                    error_msg = f"Tool execution failed: {e}"
                    logger.error("Tool '%s' failed: %s", tool_call.tool, e)
                    await emitter.emit_observation(thought_count, f"Error: {error_msg}")
                    context.append(ChatMessageContent(role=Role.ASSISTANT, content=thought_text))
                    context.append(ChatMessageContent(role=Role.SYSTEM, content=error_msg))
                    continue

                logger.debug("Tool result: %s", observation[:100])
                await emitter.emit_observation(thought_count, f"Observation: {observation}")
                context.append(ChatMessageContent(role=Role.ASSISTANT, content=thought_text))
                context.append(
                    ChatMessageContent(role=Role.SYSTEM, content=f"Observation: {observation}")
                )
                continue

            if isinstance(directive, PlanDirective):
                step_type, prefix = StepType.PLAN, "Plan"
            elif isinstance(directive, ReflectionDirective):
                step_type, prefix = StepType.REFLECTION, "Reflection"
            else:  # pragma: no cover
                raise TypeError(f"Unhandled directive: {directive!r}")

            logger.debug("Next step: %s", step_type.value)
            await emitter.emit(step_type, thought_count, directive.content, parsed.title)
            context.append(ChatMessageContent(role=Role.ASSISTANT, content=thought_text))
            context.append(
                ChatMessageContent(role=Role.ASSISTANT, content=f"{prefix}: {directive.content}")
            )

        logger.warning("Agent hit max thoughts (%d)", config.max_thoughts)
        raise MaxThoughtsReachedError()

    async def run(
        self,
        conversation_id: str,
        config: AgentConfig,
        context_messages: Sequence[ChatMessageContent],
        model: str,
        **kwargs: Any,
    ) -> ChatMessageContent:
        """Drain ``execute`` and return the final message."""
        final: ChatMessageContent | None = None
        async for message in self.execute(
            conversation_id, config, context_messages, model, **kwargs
        ):
            final = message
        if final is None:
            raise ToolExecutionFailedError("No response from LLM")
        return final


def _with_system_prompt(
    context: list[ChatMessageContent], prompt: str
) -> list[ChatMessageContent]:
    """Put ``prompt`` first as a system message.

    Caller system messages stay in place after it; a history that already
    opens with this exact prompt (a resumed run) is returned unchanged.
    """
    if context and context[0].role == Role.SYSTEM and context[0].content == prompt:
        return context
    return [ChatMessageContent(role=Role.SYSTEM, content=prompt), *context]
