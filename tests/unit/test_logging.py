import json
import logging

from streamgate.core.logging import JsonFormatter


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="streamgate.providers",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="provider_stream_failed",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_known_extra_fields() -> None:
    line = JsonFormatter().format(
        _record(provider="groq", http_status=429, category="rate_limit", error_code=None)
    )
    payload = json.loads(line)

    assert payload["event"] == "provider_stream_failed"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "streamgate.providers"
    assert payload["provider"] == "groq"
    assert payload["http_status"] == 429
    assert payload["category"] == "rate_limit"
    assert "error_code" not in payload


def test_formatter_ignores_unlisted_attributes() -> None:
    payload = json.loads(JsonFormatter().format(_record(secret="sk-123")))
    assert "secret" not in payload
