from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Sequence

from openai import APIStatusError, AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from llm_agent.config import ModelConfig, get_model_config, settings
from llm_agent.models.schemas import (
    APIError,
    APIResponse,
    ChatMessageContent,
    MessageFragment,
    RequestMetadata,
    Role,
    Settlement,
    StreamChatResponse,
    Usage,
)

logger = logging.getLogger(__name__)


def _create_openai_client(base_url: str = "") -> AsyncOpenAI:
    """Create an async OpenAI client, optionally wrapped with PromptLayer."""
    url = base_url or settings.llm_base_url
    if settings.promptlayer_api_key:
        from promptlayer import PromptLayer

        promptlayer_client = PromptLayer(api_key=settings.promptlayer_api_key)
        return promptlayer_client.openai.AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=url,
        )
    return AsyncOpenAI(
        api_key=settings.llm_api_key,
        base_url=url,
    )


def _to_usage(raw: Any) -> Usage | None:
    if raw is None:
        return None
    return Usage(
        prompt_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(raw, "completion_tokens", 0) or 0,
        total_tokens=getattr(raw, "total_tokens", 0) or 0,
        cost=getattr(raw, "cost", None),
    )


class LLMService:
    """OpenAI-compatible chat transport used by the agent executor."""

    def __init__(self, config: ModelConfig | None = None) -> None:
        if config is None:
            config = get_model_config()
        self._config = config
        self.client = _create_openai_client(config.base_url)
        self.model = config.model or settings.llm_model
        self._temperature = config.temperature
        self._max_tokens = config.max_tokens
        self._streaming = config.streaming

    @property
    def supports_streaming(self) -> bool:
        return self._streaming

    def _get_temperature(self) -> float:
        return self._temperature if self._temperature is not None else 0.2

    def _build_kwargs(
        self,
        model: str,
        messages: Sequence[ChatMessageContent],
        metadata: RequestMetadata | None,
    ) -> dict:
        kwargs: dict = {
            "model": model or self.model,
            "messages": [m.to_openai() for m in messages],
            "temperature": self._get_temperature(),
        }
        if self._max_tokens is not None:
            kwargs["max_tokens"] = self._max_tokens
        if metadata is not None and metadata.context is not None:
            kwargs["user"] = metadata.context.conversation_id
            if settings.promptlayer_api_key:
                kwargs["pl_tags"] = [
                    "llm-agent",
                    f"step-{metadata.context.agent_step}",
                ]
        return kwargs

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=2, max=30), reraise=True)
    async def _create(self, **kwargs: Any) -> Any:
        return await self.client.chat.completions.create(**kwargs)

    async def chat(
        self,
        model: str,
        messages: Sequence[ChatMessageContent],
        metadata: RequestMetadata | None = None,
    ) -> APIResponse:
        kwargs = self._build_kwargs(model, messages, metadata)
        logger.debug("chat request: model=%s messages=%d", kwargs["model"], len(messages))
        try:
            response = await self._create(**kwargs)
        except APIStatusError as e:
            logger.error("LLM request failed with HTTP %s: %s", e.status_code, e.message)
            return APIResponse(error=APIError(code=e.status_code, message=e.message))

        if not response.choices:
            return APIResponse(error=APIError(code=502, message="No choices in LLM response"))
        usage = _to_usage(response.usage)
        message = ChatMessageContent(
            id=response.id,
            role=Role.ASSISTANT,
            content=response.choices[0].message.content or "",
            usage=usage,
        )
        return APIResponse(data=message, usage=usage)

    async def stream_chat(
        self,
        model: str,
        messages: Sequence[ChatMessageContent],
        metadata: RequestMetadata | None = None,
    ) -> AsyncIterator[StreamChatResponse]:
        kwargs = self._build_kwargs(model, messages, metadata)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        logger.debug("stream request: model=%s messages=%d", kwargs["model"], len(messages))

        response = await self._create(**kwargs)
        usage: Usage | None = None
        try:
            async for chunk in response:
                if chunk.usage is not None:
                    usage = _to_usage(chunk.usage)
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield MessageFragment(id=chunk.id, role=Role.ASSISTANT, content=content)
        finally:
            await response.close()

        if usage is not None:
            yield Settlement(usage=usage)
