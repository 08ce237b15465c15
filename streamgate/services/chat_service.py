import logging
import queue
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from time import perf_counter

from streamgate.core.errors import AIServiceError, GatewayError
from streamgate.models.chat import ChatMessage, Role
from streamgate.providers.base import ChatProvider, DeltaSink, MessageLike
from streamgate.rotation.rotator import Rotator

logger = logging.getLogger("streamgate.chat")

DEFAULT_PROMPT = "Give me 5 ideas for an API with AI."


def describe_error(exc: AIServiceError) -> str:
    """Return a short human-readable label for a classified provider failure."""
    if exc.is_quota:
        return "Quota limit reached"
    if exc.is_rate_limit:
        return "Request rate limit reached"
    if exc.is_auth:
        return "Authentication error"
    if exc.is_model_not_found:
        return "Model not available"
    return "unknown"


@dataclass
class _StreamEnd:
    error: Exception | None = None


class _StreamCancelled(Exception):
    """Raised from the delta sink once the consumer has stopped reading."""


MAX_PENDING_DELTAS = 256


def iter_deltas(provider: ChatProvider, messages: Iterable[MessageLike]) -> Iterator[str]:
    """Run ``provider.stream`` on a worker thread and yield its deltas.

    A failure raised by the provider is re-raised in the consuming thread
    after the deltas received before it.  Closing the iterator cancels the
    worker: its next delta raises inside ``provider.stream``, which unwinds
    and closes the upstream connection.
    """
    items: queue.Queue[str | _StreamEnd] = queue.Queue(maxsize=MAX_PENDING_DELTAS)
    stop = threading.Event()
    message_list = list(messages)

    def _offer(item: str | _StreamEnd) -> bool:
        while not stop.is_set():
            try:
                items.put(item, timeout=0.1)
            except queue.Full:
                continue
            return True
        return False

    def _sink(delta: str) -> None:
        if not _offer(delta):
            raise _StreamCancelled()

    def _run() -> None:
        try:
            provider.stream(message_list, _sink)
        except _StreamCancelled:
            logger.info("chat_stream_cancelled", extra={"provider": provider.name()})
        except Exception as exc:
            _offer(_StreamEnd(error=exc))
        else:
            _offer(_StreamEnd())

    worker = threading.Thread(target=_run, name=f"stream-{provider.name()}", daemon=True)
    worker.start()
    try:
        while True:
            item = items.get()
            if isinstance(item, _StreamEnd):
                if item.error is not None:
                    raise item.error
                return
            yield item
    finally:
        stop.set()


class ChatService:
    def __init__(self, rotator: Rotator[ChatProvider]) -> None:
        self._rotator = rotator

    @property
    def provider_names(self) -> list[str]:
        return [provider.name() for provider in self._rotator.providers]

    def stream(self, messages: Iterable[MessageLike], on_delta: DeltaSink) -> ChatProvider:
        """Stream one reply from the next provider in rotation and return it.

        Failures propagate unchanged; no other provider is tried.
        """
        provider = self._rotator.next()
        started = perf_counter()
        provider.stream(messages, on_delta)
        logger.info(
            "chat_stream_completed",
            extra={
                "provider": provider.name(),
                "latency_ms": round((perf_counter() - started) * 1000, 2),
            },
        )
        return provider

    def open_reply(self, prompt: str | None, request_id: str | None = None) -> Iterator[str]:
        """Select a provider and return the plain-text frames of its reply.

        Rotation errors are raised here, before any frame is produced.
        """
        provider = self._rotator.next()
        messages = [ChatMessage(role=Role.USER, content=prompt or DEFAULT_PROMPT)]
        logger.info(
            "chat_reply_opened",
            extra={"provider": provider.name(), "request_id": request_id},
        )
        return self._reply_frames(provider, messages, request_id)

    def _reply_frames(
        self,
        provider: ChatProvider,
        messages: list[ChatMessage],
        request_id: str | None,
    ) -> Iterator[str]:
        yield "Generating...\n\n"
        yield f"Using provider: {provider.name()}\n\n"
        try:
            yield from iter_deltas(provider, messages)
        except AIServiceError as exc:
            logger.warning(
                "chat_reply_failed",
                extra={
                    "provider": exc.provider,
                    "category": exc.category.value,
                    "request_id": request_id,
                },
            )
            yield f"\n\n[ERROR in {exc.provider}] Type: {describe_error(exc)}"
            return
        except GatewayError as exc:
            logger.warning(
                "chat_reply_failed",
                extra={"provider": provider.name(), "error": exc.message, "request_id": request_id},
            )
            yield f"\n\n[ERROR] {exc.message}\n"
            return
        except Exception as exc:
            logger.exception(
                "chat_reply_crashed",
                extra={"provider": provider.name(), "request_id": request_id},
            )
            yield f"\n\n[ERROR] {exc}\n"
            return
        yield "\n\n[DONE]\n"
