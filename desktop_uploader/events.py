"""Notification bus between the uploader and its host."""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

EVENTS = frozenset(
    {
        "watch",
        "unwatch",
        "resume",
        "pause",
        "log",
        "ignore",
        "queue",
        "upload",
        "processed",
        "error",
        "drain",
    }
)


class EventBus:
    """Synchronous fan-out of named notifications to registered handlers.

    A handler that raises is logged and skipped; notifications never
    change the control flow of the pipeline.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        """Register *handler* for *event* and return it."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event!r}")
        self._handlers[event].append(handler)
        return handler

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return list(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every handler of *event*; return whether any was registered."""
        handlers = self.listeners(event)
        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                logger.exception("Error in %r handler %r", event, handler)
        return bool(handlers)

    def log(self, message: str, *args: Any) -> None:
        """Log *message* and forward the rendered text as a ``log`` notification."""
        text = message % args if args else message
        logger.info(text)
        self.emit("log", text)
