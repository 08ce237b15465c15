"""Provider contract and the streaming HTTP plumbing shared by adapters."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

import httpx

from streamgate.core.errors import (
    AIServiceError,
    ConfigurationError,
    InvalidInputError,
    TransportError,
    UpstreamHTTPError,
)
from streamgate.models.chat import ChatMessage, Role
from streamgate.streaming.sse import SSEParser, StreamEvent

logger = logging.getLogger("streamgate.providers")

DeltaSink = Callable[[str], None]
MessageLike = ChatMessage | Mapping[str, Any]

MAX_ERROR_BODY_BYTES = 16000


@runtime_checkable
class ChatProvider(Protocol):
    def name(self) -> str:
        """Return the stable lowercase provider identifier."""

    def stream(self, messages: Iterable[MessageLike], on_delta: DeltaSink) -> None:
        """Forward each generated text fragment to ``on_delta`` in arrival order."""


def normalize_messages(messages: Iterable[MessageLike]) -> list[dict[str, str]]:
    normalized: list[dict[str, str]] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            normalized.append(message.as_dict())
            continue
        if not isinstance(message, Mapping):
            raise InvalidInputError("Invalid message in message list")
        role = message.get("role")
        content = message.get("content")
        if role is None or content is None:
            raise InvalidInputError("Each message requires 'role' and 'content'")
        role_value = role.value if isinstance(role, Role) else str(role)
        normalized.append({"role": role_value, "content": str(content)})
    return normalized


class SSEStreamingProvider(ABC):
    """Base for adapters that POST one streaming request and read SSE lines.

    Subclasses define the endpoint path, the request body and how a decoded
    ``data:`` payload maps to a ``StreamEvent``.  The request runs without a
    timeout unless one is passed in: a stream stays open until the backend
    finishes it or the caller drops the connection.
    """

    path: str = ""

    def __init__(
        self,
        provider_name: str,
        api_key: str,
        base_url: str,
        model: str,
        timeout_s: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._name = provider_name
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout_s
        self._transport = transport

    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    def stream(self, messages: Iterable[MessageLike], on_delta: DeltaSink) -> None:
        self._ensure_api_key()
        body = self._build_stream_body(normalize_messages(messages))
        self._stream_post(self.path, body, on_delta)

    @abstractmethod
    def _build_stream_body(self, messages: list[dict[str, str]]) -> dict[str, object]:
        """Return the JSON body of the streaming request."""

    @abstractmethod
    def _extract_event(self, payload: dict[str, Any]) -> StreamEvent | None:
        """Map one decoded ``data:`` payload to an event, or ``None`` to skip it."""

    def _ensure_api_key(self) -> None:
        if not self._api_key:
            raise ConfigurationError(f"API key for provider '{self._name}' is not configured")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float | None) -> httpx.Client:
        if self._transport is None:
            return httpx.Client(timeout=timeout)
        return httpx.Client(timeout=timeout, transport=self._transport)

    def _stream_post(self, path: str, body: dict[str, object], on_delta: DeltaSink) -> None:
        url = f"{self._base_url}{path}"
        parser = SSEParser(self._extract_event)
        failure: StreamEvent | None = None
        status_code = 0
        logger.info(
            "provider_stream_started",
            extra={"provider": self._name, "model": self._model},
        )

        try:
            with self._client(self._timeout) as client:
                with client.stream("POST", url, json=body, headers=self._headers()) as resp:
                    status_code = resp.status_code
                    if status_code >= 400:
                        raise self._error_from_response(resp)
                    for chunk in resp.iter_bytes():
                        for event in parser.feed(chunk):
                            if event.kind == StreamEvent.FAILED:
                                failure = event
                                break
                            if event.carries_text:
                                on_delta(event.delta_text)
                        if failure is not None:
                            break
        except httpx.HTTPError as exc:
            logger.warning(
                "provider_transport_failed",
                extra={"provider": self._name, "error": str(exc)},
            )
            raise TransportError(self._name, str(exc)) from exc
        except AIServiceError as exc:
            self._log_failure(exc)
            raise
        finally:
            parser.close()

        if failure is not None:
            exc = self._error_from_failed_event(failure, status_code)
            self._log_failure(exc)
            raise exc

        logger.info("provider_stream_completed", extra={"provider": self._name})

    def _error_from_failed_event(self, event: StreamEvent, status_code: int) -> AIServiceError:
        error = event.raw_payload.get("error")
        error = error if isinstance(error, dict) else {}
        return AIServiceError(
            self._name,
            status_code if status_code > 0 else 500,
            optional_str(error.get("code")),
            optional_str(error.get("type")),
            str(error.get("message") or "Unknown streaming error"),
        )

    def _error_from_response(self, resp: httpx.Response) -> AIServiceError:
        raw = b""
        for chunk in resp.iter_bytes():
            raw += chunk
            if len(raw) >= MAX_ERROR_BODY_BYTES:
                break
        error = _error_object(raw[:MAX_ERROR_BODY_BYTES])
        if error is None:
            return UpstreamHTTPError(self._name, resp.status_code)
        return AIServiceError(
            self._name,
            resp.status_code,
            optional_str(error.get("code")),
            optional_str(error.get("type")),
            str(error.get("message") or f"Provider returned {resp.status_code}"),
        )

    def _log_failure(self, exc: AIServiceError) -> None:
        logger.warning(
            "provider_stream_failed",
            extra={
                "provider": self._name,
                "http_status": exc.http_status,
                "error_code": exc.error_code,
                "category": exc.category.value,
            },
        )


def _error_object(raw: bytes) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    error = parsed.get("error")
    return error if isinstance(error, dict) else None


def optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
