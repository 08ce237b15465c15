"""Adapter for OpenAI-compatible ``/chat/completions`` backends (Groq, Cerebras)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx

from streamgate.core.errors import AIServiceError, TransportError
from streamgate.providers.base import (
    MessageLike,
    SSEStreamingProvider,
    normalize_messages,
    optional_str,
)
from streamgate.streaming.sse import StreamEvent

COMPLETE_TIMEOUT_S = 60.0


class ChatCompletionsProvider(SSEStreamingProvider):
    path = "/chat/completions"

    def __init__(
        self,
        provider_name: str,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.6,
        max_tokens: int = 4096,
        top_p: float = 1.0,
        stop: str | list[str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            provider_name=provider_name,
            api_key=api_key,
            base_url=base_url,
            model=model,
            timeout_s=timeout_s,
            transport=transport,
        )
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._top_p = top_p
        self._stop = stop

    def _build_body(self, messages: list[dict[str, str]], *, stream: bool) -> dict[str, object]:
        return {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_completion_tokens": self._max_tokens,
            "top_p": self._top_p,
            "stream": stream,
            "stop": self._stop,
        }

    def _build_stream_body(self, messages: list[dict[str, str]]) -> dict[str, object]:
        return self._build_body(messages, stream=True)

    def _extract_event(self, payload: dict[str, Any]) -> StreamEvent | None:
        if isinstance(payload.get("error"), dict):
            return StreamEvent(kind=StreamEvent.FAILED, delta_text="", raw_payload=payload)
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        delta = first.get("delta") if isinstance(first, dict) else None
        content = delta.get("content") if isinstance(delta, dict) else None
        if not isinstance(content, str) or content == "":
            return None
        return StreamEvent(kind=StreamEvent.DELTA, delta_text=content, raw_payload=payload)

    def complete(self, messages: Iterable[MessageLike]) -> str:
        """Run one non-streaming request and return the final message text."""
        self._ensure_api_key()
        body = self._build_body(normalize_messages(messages), stream=False)
        url = f"{self._base_url}{self.path}"

        try:
            with self._client(COMPLETE_TIMEOUT_S) as client:
                resp = client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise TransportError(self._name, str(exc)) from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise AIServiceError(
                self._name,
                resp.status_code,
                None,
                None,
                f"Non-JSON response: {resp.text[:300]}",
            )
        if resp.status_code >= 400:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise AIServiceError(
                self._name,
                resp.status_code,
                optional_str(error.get("code")),
                optional_str(error.get("type")),
                str(error.get("message") or f"HTTP {resp.status_code}"),
            )

        choices = data.get("choices") or []
        first = choices[0] if isinstance(choices, list) and choices else {}
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or "")