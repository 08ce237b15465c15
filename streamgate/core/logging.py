import json
import logging
from datetime import UTC, datetime

# ``extra`` keys emitted by the gateway's loggers
_EXTRA_FIELDS = (
    "request_id",
    "provider",
    "model",
    "http_status",
    "error_code",
    "category",
    "error",
    "index",
    "provider_count",
    "dropped_chars",
    "latency_ms",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in _EXTRA_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(log_level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())
