import json

import httpx
import pytest

from streamgate.core.errors import (
    AIServiceError,
    ErrorCategory,
    TransportError,
    UpstreamHTTPError,
)
from streamgate.models.chat import ChatMessage, Role
from streamgate.providers.responses import ResponsesProvider


def _event(payload: dict[str, object]) -> bytes:
    return f"event: {payload['type']}\ndata: {json.dumps(payload)}\n\n".encode("utf-8")


def _text(delta: str) -> bytes:
    return _event({"type": "response.output_text.delta", "delta": delta})


def _failed(code: str, message: str) -> bytes:
    return _event(
        {
            "type": "response.failed",
            "response": {
                "id": "resp_1",
                "status": "failed",
                "error": {"code": code, "message": message},
            },
        }
    )


def _provider(handler) -> ResponsesProvider:
    return ResponsesProvider(
        api_key="sk-test",
        model="gpt-4.1-mini",
        base_url="https://api.example/v1",
        temperature=0.5,
        max_output_tokens=128,
        store=True,
        transport=httpx.MockTransport(handler),
    )


def test_stream_uses_responses_request_shape() -> None:
    seen: dict[str, object] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content.decode("utf-8"))
        body = (
            _event({"type": "response.created", "response": {"id": "resp_1"}})
            + _text("Hi")
            + _text(" there")
            + _event({"type": "response.completed", "response": {"id": "resp_1"}})
        )
        return httpx.Response(200, content=body)

    deltas: list[str] = []
    provider = _provider(_handler)
    provider.stream([ChatMessage(role=Role.USER, content="hello")], deltas.append)

    assert provider.name() == "openai"
    assert deltas == ["Hi", " there"]
    assert seen["url"] == "https://api.example/v1/responses"
    assert seen["body"] == {
        "model": "gpt-4.1-mini",
        "input": [{"role": "user", "content": "hello"}],
        "temperature": 0.5,
        "max_output_tokens": 128,
        "top_p": 1.0,
        "stream": True,
        "store": True,
    }


def test_refusal_is_forwarded_as_text() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        body = _event({"type": "response.refusal.delta", "delta": "I can't help"}) + _text("")
        return httpx.Response(200, content=body)

    deltas: list[str] = []
    _provider(_handler).stream([{"role": "user", "content": "?"}], deltas.append)
    assert deltas == ["I can't help"]


def test_in_band_quota_failure_raises_classified_error() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        body = (
            _text("Par")
            + _failed("insufficient_quota", "You exceeded your current quota")
            + _text("tial")
        )
        return httpx.Response(200, content=body)

    deltas: list[str] = []
    with pytest.raises(AIServiceError) as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "hi"}], deltas.append)

    exc = excinfo.value
    assert deltas == ["Par"]
    assert exc.provider == "openai"
    assert exc.http_status == 200
    assert exc.error_code == "insufficient_quota"
    assert exc.error_type == "response.failed"
    assert exc.message == "You exceeded your current quota"
    assert exc.is_quota
    assert not exc.is_rate_limit
    assert not exc.is_auth
    assert not exc.is_model_not_found


def test_in_band_model_not_found() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_failed("model_not_found", "no such model"))

    with pytest.raises(AIServiceError) as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "hi"}], lambda _: None)
    assert excinfo.value.category is ErrorCategory.MODEL_NOT_FOUND


def test_failed_event_without_error_object_uses_default_message() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_event({"type": "response.failed"}))

    with pytest.raises(AIServiceError, match="Unknown streaming error") as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "hi"}], lambda _: None)
    assert excinfo.value.error_code is None
    assert excinfo.value.category is ErrorCategory.UNKNOWN


def test_unauthorized_status_is_auth() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, content=b"")

    with pytest.raises(UpstreamHTTPError) as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "hi"}], lambda _: None)
    assert excinfo.value.category is ErrorCategory.AUTH


def test_quota_rejection_at_429_is_quota() -> None:
    def _handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={
                "error": {
                    "message": "You exceeded your current quota",
                    "type": "insufficient_quota",
                    "code": "insufficient_quota",
                }
            },
        )

    with pytest.raises(AIServiceError) as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "hi"}], lambda _: None)
    assert excinfo.value.is_quota
    assert not excinfo.value.is_rate_limit


def test_connection_dropped_after_first_delta() -> None:
    def _body():
        yield _text("Once upon")
        raise httpx.ReadError("server closed the connection")

    class _Dropped(httpx.SyncByteStream):
        def __iter__(self):
            return _body()

    def _handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=_Dropped())

    deltas: list[str] = []
    with pytest.raises(TransportError) as excinfo:
        _provider(_handler).stream([{"role": "user", "content": "story"}], deltas.append)
    assert deltas == ["Once upon"]
    assert excinfo.value.provider == "openai"
