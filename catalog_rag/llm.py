"""Completion providers for answer generation.

LiteLLM gives one call signature over OpenAI, Anthropic, local
OpenAI-compatible servers and the rest:

    client = LiteLLMCompletionClient()                        # gpt-3.5-turbo
    client = LiteLLMCompletionClient(model="claude-3-haiku-20240307")
    client = LiteLLMCompletionClient(model="openai/local", api_base="http://localhost:1234/v1")
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

import litellm

from .config import LLMConfig, get_llm_config

logger = logging.getLogger(__name__)

Message = Dict[str, str]


@runtime_checkable
class CompletionProvider(Protocol):
    async def complete(self, messages: List[Message]) -> str:
        ...

    def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        ...


class LiteLLMCompletionClient:
    """Async chat completion via ``litellm.acompletion``."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        config: Optional[LLMConfig] = None,
    ):
        config = config or get_llm_config()
        self.model = model or config.model
        self.temperature = config.temperature if temperature is None else temperature
        self.max_tokens = max_tokens or config.max_tokens
        self.api_key = api_key or config.api_key
        self.api_base = api_base or config.api_base
        self.timeout = timeout or config.timeout

        logger.info(f"Completion client initialized: {self.model}")

    def _request_kwargs(self, messages: List[Message]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs

    async def complete(self, messages: List[Message]) -> str:
        """Single-shot completion; returns the message text ("" if none)."""
        response = await litellm.acompletion(**self._request_kwargs(messages))
        return response.choices[0].message.content or ""

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        """Yield content deltas as they arrive."""
        response = await litellm.acompletion(stream=True, **self._request_kwargs(messages))
        async for chunk in response:
            if not chunk.choices:
                continue
            token = chunk.choices[0].delta.content
            if token:
                yield token
