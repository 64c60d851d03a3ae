"""Text-completion backend protocol, concrete adapters and factory.

The backend is optional everywhere in this package: every call site has
a deterministic fallback, so adapters only affect prose quality.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from trustledger.config import LLMConfig
from trustledger.models.conversation import Completion
from trustledger.models.conversation import ConversationMessage
from trustledger.models.conversation import TokenUsage


@runtime_checkable
class LLMAdapter(Protocol):
    """Protocol for text-completion providers.

    Tests use hand-written doubles; production wiring goes through
    ``build_llm_adapter``.
    """

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        *,
        temperature: float = 0.3,
        max_tokens: int = 300,
        timeout_seconds: float = 30.0,
    ) -> Completion: ...


class LLMError(Exception):
    """Raised by adapters when a call fails."""


class NoopLLMAdapter:
    """Adapter that always returns an empty completion.

    Empty text is treated as malformed by every caller, so wiring this
    adapter exercises the deterministic fallbacks end to end.
    """

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        *,
        temperature: float = 0.3,
        max_tokens: int = 300,
        timeout_seconds: float = 30.0,
    ) -> Completion:
        del messages, temperature, max_tokens, timeout_seconds
        return Completion(text="")


class OpenAICompatibleLLMAdapter:
    """OpenAI-compatible chat-completions adapter."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        *,
        temperature: float = 0.3,
        max_tokens: int = 300,
        timeout_seconds: float = 30.0,
    ) -> Completion:
        payload = [{"role": m.role.value, "content": m.content} for m in messages]
        return await asyncio.to_thread(
            self._complete_sync,
            payload,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout_seconds=timeout_seconds,
        )

    def _complete_sync(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> Completion:
        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        request = Request(
            url=f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise LLMError(f"provider HTTP {exc.code}: {detail[:200]}") from exc
        except URLError as exc:
            raise LLMError(f"provider network error: {exc.reason}") from exc
        except OSError as exc:
            raise LLMError(f"provider IO error: {exc}") from exc

        return self.parse_response(raw)

    @staticmethod
    def parse_response(raw: str) -> Completion:
        """Turn a chat-completions JSON body into a ``Completion``."""
        try:
            data = json.loads(raw)
            choice = data["choices"][0]
            content = choice["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMError(
                "provider response missing choices[0].message.content"
            ) from exc
        if not isinstance(content, str):
            raise LLMError("provider response content must be a string")

        usage = data.get("usage") or {}
        return Completion(
            text=content,
            usage=TokenUsage(
                input_tokens=int(usage.get("prompt_tokens", 0) or 0),
                output_tokens=int(usage.get("completion_tokens", 0) or 0),
            ),
            stop_reason=choice.get("finish_reason"),
        )


def build_llm_adapter(config: LLMConfig) -> LLMAdapter:
    """Create a concrete adapter from ``LLMConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise ValueError("llm_config.api_key is required when provider='openai'")
        return OpenAICompatibleLLMAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    if provider == "noop":
        return NoopLLMAdapter()
    raise ValueError(
        f"Unsupported llm_config.provider '{config.provider}'. "
        "Supported providers: openai, noop."
    )
