# nexus/services/llm_chain/llm_chains.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
from openai import APIError, AsyncOpenAI, OpenAIError

from nexus.models.models import ModelConfig
from nexus.utils.errors import BackendError
from nexus.utils.logger import get_logger
from .llm_utils import (
    backend_error_details,
    extract_assistant_text_chat,
    extract_delta_text_chat,
    extract_usage,
)

logger = get_logger(__name__)

# Placeholder key for local backends (Ollama, LM Studio) that ignore auth.
NO_KEY = "no-key"


@dataclass
class ChatResult:
    text: str
    usage: Optional[Dict[str, Any]] = None


class LLMChains:
    """Thin async wrapper around one OpenAI-compatible chat-completions backend.

    Every call is bounded by ``request_timeout`` and never retried; SDK and
    timeout failures are re-raised as :class:`BackendError` with the backend
    message passed through.
    """

    def __init__(
        self,
        model: str,
        *,
        client: Optional[AsyncOpenAI] = None,
        llm_base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        request_timeout: float = 600.0,
    ):
        self.model = model
        self.request_timeout = float(request_timeout)
        self.client = client or AsyncOpenAI(
            base_url=llm_base_url,
            api_key=api_key or NO_KEY,
            timeout=self.request_timeout,
            max_retries=0,
        )

    @classmethod
    def for_model(cls, config: ModelConfig, *, request_timeout: float) -> "LLMChains":
        """Client for a stored backend config. A malformed baseUrl is a BackendError."""
        try:
            return cls(
                config.model,
                llm_base_url=config.base_url,
                api_key=config.api_key,
                request_timeout=request_timeout,
            )
        except (httpx.InvalidURL, OpenAIError) as e:
            raise BackendError(f"Invalid backend configuration for '{config.id}': {e}") from e

    # ====================================================
    # Low-level call into the OpenAI SDK
    # ====================================================
    async def chat_completions(self, **kwargs) -> Any:
        try:
            return await asyncio.wait_for(
                self.client.chat.completions.create(**kwargs),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"LLM request timed out after {self.request_timeout:.0f}s"
            ) from e
        except APIError as e:
            raise BackendError(e.message, details=backend_error_details(e)) from e

    def _args(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int],
        temperature: Optional[float],
    ) -> Dict[str, Any]:
        args: Dict[str, Any] = {"model": self.model, "messages": messages}
        if max_tokens:
            args["max_tokens"] = max_tokens
        # Reasoning models prefer the backend default, so only send it when asked.
        if temperature is not None:
            args["temperature"] = float(temperature)
        return args

    # =====================================================
    # Blocking completion
    # =====================================================
    async def chat_completions_result(
        self,
        messages: List[Dict[str, Any]],
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ChatResult:
        resp = await self.chat_completions(**self._args(messages, max_tokens, temperature))
        text = extract_assistant_text_chat(resp)
        if not text:
            raise BackendError("LLM response contained no message content")
        return ChatResult(text=text, usage=extract_usage(resp))

    async def chat_completions_text(
        self,
        messages: List[Dict[str, Any]],
        *,
        max_tokens: Optional[int] = None,
    ) -> str:
        return (await self.chat_completions_result(messages, max_tokens=max_tokens)).text

    # =====================================================
    # Incremental completion
    # =====================================================
    async def chat_completions_stream(
        self,
        messages: List[Dict[str, Any]],
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield non-empty content deltas until the backend ends the stream.

        Closing the generator early (consumer gone) closes the HTTP stream to
        the backend.
        """
        args = self._args(messages, max_tokens, temperature)
        stream = await self.chat_completions(stream=True, **args)
        try:
            async for chunk in stream:
                delta = extract_delta_text_chat(chunk)
                if delta:
                    yield delta
        except APIError as e:
            raise BackendError(e.message, details=backend_error_details(e)) from e
        except httpx.HTTPError as e:
            raise BackendError(f"LLM stream interrupted: {e}") from e
        finally:
            await stream.close()


LLMFactory = Callable[[ModelConfig, float], LLMChains]


def default_llm_factory(config: ModelConfig, request_timeout: float) -> LLMChains:
    return LLMChains.for_model(config, request_timeout=request_timeout)
