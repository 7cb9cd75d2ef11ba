"""
Connection lifecycle notifications for a single session store instance.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

CONNECT = "connect"
DISCONNECT = "disconnect"

EventHandler = Callable[..., Any]


class StoreEvents:
    """
    Publish/subscribe registry for ``connect`` and ``disconnect`` events.
    
    Handlers may be plain callables or coroutine functions. Coroutines are
    handed to ``spawn`` so the owning store can track them; a handler that
    raises is logged and does not prevent the remaining handlers from running.
    
    Attributes:
        spawn: Callable scheduling an awaitable as a background task
    """
    
    EVENTS = (CONNECT, DISCONNECT)
    
    def __init__(self, spawn: Callable[[Awaitable[Any]], Any]):
        self.spawn = spawn
        self._handlers: dict[str, list[EventHandler]] = {
            event: [] for event in self.EVENTS
        }
    
    def _handlers_for(self, event: str) -> list[EventHandler]:
        try:
            return self._handlers[event]
        except KeyError:
            raise ValueError(
                f"Unknown session store event {event!r}, expected one of: "
                f"{', '.join(self.EVENTS)}"
            ) from None
    
    def on(self, event: str, handler: EventHandler) -> EventHandler:
        """
        Subscribe ``handler`` to ``event`` and return it.
        
        Raises:
            ValueError: If the event name is not known.
        """
        self._handlers_for(event).append(handler)
        return handler
    
    def off(self, event: str, handler: EventHandler) -> None:
        """Unsubscribe ``handler`` from ``event``; unknown handlers are ignored."""
        handlers = self._handlers_for(event)
        if handler in handlers:
            handlers.remove(handler)
    
    def listener_count(self, event: str) -> int:
        return len(self._handlers_for(event))
    
    def emit(self, event: str, *args: Any) -> None:
        """Invoke every handler subscribed to ``event`` with ``args``."""
        for handler in list(self._handlers_for(event)):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    self.spawn(result)
            except Exception:
                logger.exception(
                    f"Session store {event} handler failed",
                    extra={"extra_data": {"event": event}}
                )
