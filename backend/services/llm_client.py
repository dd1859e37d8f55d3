"""
LLM Client: the two chat provider wire protocols.

- OpenAI-compatible (``openai`` and ``custom``): POST {base}/chat/completions
- Claude: POST https://api.anthropic.com/v1/messages

Non-streaming completions (the decision model) go through the official SDKs.
Streaming chat goes over raw httpx because the relay works on SSE bytes and
re-frames them itself (see routers/chat_streaming.py).

Usage:
    provider = get_provider("custom", api_key=key, base_url=url)
    text = await provider.complete(system, user, model="gpt-4o-mini", temperature=0, max_tokens=500)
    response = await provider.open_stream(client, system_prompt, history, message, model=..., ...)
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import anthropic
import httpx
import openai

from errors import LLMError
from logging_config import log_llm

logger = logging.getLogger(__name__)

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
CLAUDE_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

# OpenAI-compatible chats get the system prompt as a user turn, followed by this
SYSTEM_ACK = "明白了，我会按照要求回答用户的问题。"


class ChatProvider(ABC):
    """One upstream chat protocol."""

    kind: str = ""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_s: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._base_url = (base_url or "").rstrip("/") or None
        self._timeout_s = timeout_s
        # Only used by the SDK path; tests pass a MockTransport-backed client
        self._http_client = http_client

    @abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 500,
        json_mode: bool = False,
    ) -> str:
        """Single non-streaming completion. Returns the reply text.

        Raises:
            LLMError: timeout, non-2xx status or connection failure
        """
        ...

    @abstractmethod
    def build_messages(self, system_prompt: str, history: List[Dict[str, str]], message: str) -> Dict:
        """Provider-specific message payload fields for a chat turn."""
        ...

    @abstractmethod
    def build_stream_request(
        self,
        client: httpx.AsyncClient,
        system_prompt: str,
        history: List[Dict[str, str]],
        message: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> httpx.Request:
        ...

    async def open_stream(
        self,
        client: httpx.AsyncClient,
        system_prompt: str,
        history: List[Dict[str, str]],
        message: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> httpx.Response:
        """Open the upstream streaming response.

        The caller owns the returned response and must ``aclose()`` it.

        Raises:
            LLMError: upstream answered with a non-2xx status or was unreachable
        """
        request = self.build_stream_request(
            client, system_prompt, history, message, model, temperature, max_tokens
        )
        log_llm(logger, "start", model=model)
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise LLMError("Chat model timed out", details=str(e), model=model, error_type="timeout")
        except httpx.RequestError as e:
            raise LLMError("Chat model unreachable", details=str(e), model=model)

        if not response.is_success:
            body = (await response.aread()).decode("utf-8", errors="replace")[:200]
            await response.aclose()
            raise LLMError(
                f"{self.provider_name} API error: {response.status_code}",
                details=body or response.reason_phrase,
                model=model,
                error_type="status",
                upstream_status=response.status_code,
            )
        return response

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...


class OpenAICompatProvider(ChatProvider):
    """OpenAI and any OpenAI-compatible endpoint."""

    kind = "openai"

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    @property
    def base_url(self) -> str:
        return self._base_url or OPENAI_DEFAULT_BASE_URL

    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 500,
        json_mode: bool = False,
    ) -> str:
        sdk = openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=self.base_url,
            timeout=self._timeout_s,
            max_retries=0,
            http_client=self._http_client,
        )
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.time()
        log_llm(logger, "start", model=model)
        try:
            response = await sdk.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.APITimeoutError as e:
            raise LLMError("Model request timed out", details=str(e), model=model, error_type="timeout")
        except openai.APIStatusError as e:
            raise LLMError(
                f"OpenAI API error: {e.status_code}",
                details=str(e),
                model=model,
                error_type="status",
                upstream_status=e.status_code,
            )
        except openai.APIConnectionError as e:
            raise LLMError("Model unreachable", details=str(e), model=model)
        finally:
            if self._http_client is None:
                await sdk.close()

        log_llm(logger, "end", model=model, duration=time.time() - start)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def build_messages(self, system_prompt: str, history: List[Dict[str, str]], message: str) -> Dict:
        return {
            "messages": [
                {"role": "user", "content": system_prompt},
                {"role": "assistant", "content": SYSTEM_ACK},
                *history,
                {"role": "user", "content": message},
            ]
        }

    def build_stream_request(
        self,
        client: httpx.AsyncClient,
        system_prompt: str,
        history: List[Dict[str, str]],
        message: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> httpx.Request:
        payload = {
            "model": model,
            **self.build_messages(system_prompt, history, message),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }
        return client.build_request(
            "POST",
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json=payload,
            timeout=self._timeout_s,
        )


class ClaudeProvider(ChatProvider):
    """Anthropic Messages API."""

    kind = "claude"

    @property
    def provider_name(self) -> str:
        return "Claude"

    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 500,
        json_mode: bool = False,
    ) -> str:
        kwargs = {
            "api_key": self._api_key,
            "timeout": self._timeout_s,
            "max_retries": 0,
            "http_client": self._http_client,
        }
        if self._base_url:
            kwargs["base_url"] = self._base_url
        sdk = anthropic.AsyncAnthropic(**kwargs)

        start = time.time()
        log_llm(logger, "start", model=model)
        try:
            response = await sdk.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except anthropic.APITimeoutError as e:
            raise LLMError("Model request timed out", details=str(e), model=model, error_type="timeout")
        except anthropic.APIStatusError as e:
            raise LLMError(
                f"Claude API error: {e.status_code}",
                details=str(e),
                model=model,
                error_type="status",
                upstream_status=e.status_code,
            )
        except anthropic.APIConnectionError as e:
            raise LLMError("Model unreachable", details=str(e), model=model)
        finally:
            if self._http_client is None:
                await sdk.close()

        log_llm(logger, "end", model=model, duration=time.time() - start)
        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text += block.text
        return text

    def build_messages(self, system_prompt: str, history: List[Dict[str, str]], message: str) -> Dict:
        return {
            "system": system_prompt,
            "messages": [*history, {"role": "user", "content": message}],
        }

    def build_stream_request(
        self,
        client: httpx.AsyncClient,
        system_prompt: str,
        history: List[Dict[str, str]],
        message: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> httpx.Request:
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            **self.build_messages(system_prompt, history, message),
            "stream": True,
        }
        url = f"{self._base_url}/v1/messages" if self._base_url else CLAUDE_MESSAGES_URL
        return client.build_request(
            "POST",
            url,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            json=payload,
            timeout=self._timeout_s,
        )


def get_provider(
    kind: str,
    api_key: str,
    base_url: Optional[str] = None,
    timeout_s: float = 120.0,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChatProvider:
    """Create a chat provider.

    Args:
        kind: "openai" | "custom" | "claude"
    """
    if kind in ("openai", "custom"):
        return OpenAICompatProvider(api_key, base_url=base_url, timeout_s=timeout_s, http_client=http_client)
    elif kind == "claude":
        return ClaudeProvider(api_key, base_url=base_url, timeout_s=timeout_s, http_client=http_client)
    else:
        raise ValueError("Unknown provider type: " + kind)
