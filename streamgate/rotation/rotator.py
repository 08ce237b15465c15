import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Generic, TypeVar

from streamgate.core.errors import ConfigurationError
from streamgate.rotation.store import FileIndexStore, IndexStore

logger = logging.getLogger("streamgate.rotation")

T = TypeVar("T")

DEFAULT_STATE_FILENAME = "ai_rr_index.txt"


class Rotator(Generic[T]):
    """Cyclic provider selection backed by a shared index store.

    With a ``FileIndexStore`` every process pointing at the same state file
    takes part in one rotation, and the position survives restarts.
    """

    def __init__(
        self,
        providers: Sequence[T],
        store: IndexStore | None = None,
        state_file: Path | str | None = None,
    ) -> None:
        if not providers:
            raise ConfigurationError("No providers registered for rotation")
        self._providers: tuple[T, ...] = tuple(providers)
        if store is None:
            store = FileIndexStore(state_file or _default_state_path())
        self._store = store

    @property
    def providers(self) -> tuple[T, ...]:
        return self._providers

    @property
    def store(self) -> IndexStore:
        return self._store

    def next(self) -> T:
        index = self._store.advance(len(self._providers))
        provider = self._providers[index]
        logger.debug(
            "rotation_selected",
            extra={"index": index, "provider_count": len(self._providers)},
        )
        return provider


def _default_state_path() -> Path:
    return Path(tempfile.gettempdir()) / DEFAULT_STATE_FILENAME
