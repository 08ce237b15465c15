"""Incremental parser for ``text/event-stream`` response bodies.

Network chunks arrive with arbitrary boundaries, down to a single byte.  The
parser keeps the unterminated tail of the stream in its own buffer and only
hands complete ``data:`` lines to the payload extractor, so the caller sees
the same sequence of events however the body was fragmented.

A trailing line that is still unterminated when the transport closes is
discarded by ``close()``.  It is returned (and logged) rather than parsed.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("streamgate.stream")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    delta_text: str
    raw_payload: dict[str, Any]

    DELTA = "delta"
    REFUSAL = "refusal"
    FAILED = "failed"
    IGNORED = "ignored"

    @property
    def carries_text(self) -> bool:
        return self.kind in {self.DELTA, self.REFUSAL} and self.delta_text != ""


PayloadExtractor = Callable[[dict[str, Any]], StreamEvent | None]


class SSEParser:
    def __init__(self, extract: PayloadExtractor):
        self._extract = extract
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        if self._closed:
            raise RuntimeError("parser already closed")
        if isinstance(chunk, bytes):
            self._buffer += self._decoder.decode(chunk)
        else:
            self._buffer += chunk

        events: list[StreamEvent] = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline].strip()
            self._buffer = self._buffer[newline + 1 :]
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> str:
        """Stop accepting input and return the discarded unterminated tail."""
        if self._closed:
            return ""
        self._closed = True
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if remainder.strip():
            logger.debug(
                "stream_trailing_line_dropped",
                extra={"dropped_chars": len(remainder)},
            )
        return remainder

    def _parse_line(self, line: str) -> StreamEvent | None:
        if not line.startswith(DATA_PREFIX):
            return None
        data = line.removeprefix(DATA_PREFIX).strip()
        if data == DONE_SENTINEL:
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        return self._extract(payload)
