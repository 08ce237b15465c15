"""Round-robin index storage.

An index store hands out positions of a cyclic rotation.  ``advance`` is one
transaction: read the stored index, persist its successor and return the
position that was read, so concurrent callers never observe the same value
twice within a cycle.

* ``MemoryIndexStore`` guards the index with a ``threading.Lock`` and only
  coordinates threads of one process.
* ``FileIndexStore`` keeps the index as decimal text in a file and takes an
  exclusive ``flock`` for the whole read-modify-write, which serializes every
  process that opens the same path.
"""

from __future__ import annotations

import fcntl
import os
import threading
from pathlib import Path
from typing import Protocol

from streamgate.core.errors import StateUnavailableError


class IndexStore(Protocol):
    def advance(self, modulus: int) -> int:
        """Return the current position in ``[0, modulus)`` and store the next one."""


def parse_index(raw: str) -> int:
    text = raw.strip()
    if not text:
        return 0
    try:
        value = int(text)
    except ValueError:
        return 0
    return value if value >= 0 else 0


def _check_modulus(modulus: int) -> None:
    if modulus < 1:
        raise ValueError("modulus must be >= 1")


class MemoryIndexStore:
    def __init__(self, initial: int = 0) -> None:
        self._index = max(initial, 0)
        self._lock = threading.Lock()

    def advance(self, modulus: int) -> int:
        _check_modulus(modulus)
        with self._lock:
            current = self._index % modulus
            self._index = (current + 1) % modulus
            return current


class FileIndexStore:
    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def advance(self, modulus: int) -> int:
        _check_modulus(modulus)
        try:
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            raise StateUnavailableError(f"Cannot open rotation state {self._path}: {exc}") from exc

        with os.fdopen(fd, "r+", encoding="ascii", errors="replace") as handle:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            except OSError as exc:
                raise StateUnavailableError(
                    f"Cannot lock rotation state {self._path}: {exc}"
                ) from exc
            try:
                handle.seek(0)
                current = parse_index(handle.read()) % modulus
                handle.seek(0)
                handle.truncate()
                handle.write(str((current + 1) % modulus))
                handle.flush()
                os.fsync(handle.fileno())
            except OSError as exc:
                raise StateUnavailableError(
                    f"Cannot update rotation state {self._path}: {exc}"
                ) from exc
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        return current
