"""Adapter for the OpenAI Responses API (``/responses``).

The Responses stream is tagged by ``type``.  Text arrives as
``response.output_text.delta`` and refusals as ``response.refusal.delta``;
both are forwarded as text.  A request can be accepted with 200 and still
fail mid-stream with ``response.failed``, whose ``response.error`` object
carries the real cause (for example ``insufficient_quota``).
"""

from __future__ import annotations

from typing import Any

import httpx

from streamgate.core.errors import AIServiceError
from streamgate.providers.base import SSEStreamingProvider, optional_str
from streamgate.streaming.sse import StreamEvent

OUTPUT_TEXT_DELTA = "response.output_text.delta"
REFUSAL_DELTA = "response.refusal.delta"
RESPONSE_FAILED = "response.failed"


class ResponsesProvider(SSEStreamingProvider):
    path = "/responses"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        provider_name: str = "openai",
        temperature: float = 1.0,
        max_output_tokens: int = 4096,
        top_p: float = 1.0,
        store: bool = False,
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
        self._max_output_tokens = max_output_tokens
        self._top_p = top_p
        self._store = store

    def _build_stream_body(self, messages: list[dict[str, str]]) -> dict[str, object]:
        return {
            "model": self._model,
            "input": messages,
            "temperature": self._temperature,
            "max_output_tokens": self._max_output_tokens,
            "top_p": self._top_p,
            "stream": True,
            "store": self._store,
        }

    def _extract_event(self, payload: dict[str, Any]) -> StreamEvent | None:
        event_type = str(payload.get("type") or "")
        if event_type == RESPONSE_FAILED:
            return StreamEvent(kind=StreamEvent.FAILED, delta_text="", raw_payload=payload)
        if event_type == OUTPUT_TEXT_DELTA:
            kind = StreamEvent.DELTA
        elif event_type == REFUSAL_DELTA:
            kind = StreamEvent.REFUSAL
        else:
            return None
        delta = payload.get("delta")
        return StreamEvent(
            kind=kind,
            delta_text=delta if isinstance(delta, str) else "",
            raw_payload=payload,
        )

    def _error_from_failed_event(self, event: StreamEvent, status_code: int) -> AIServiceError:
        response = event.raw_payload.get("response")
        response = response if isinstance(response, dict) else {}
        error = response.get("error")
        error = error if isinstance(error, dict) else {}
        return AIServiceError(
            self._name,
            status_code if status_code > 0 else 500,
            optional_str(error.get("code")),
            optional_str(event.raw_payload.get("type")),
            str(error.get("message") or "Unknown streaming error"),
        )
