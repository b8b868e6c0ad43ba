"""
Explicit publish/subscribe channel for wallet events.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"

Handler = Callable[..., Any]


class Subscription:
    """Handle returned by EventChannel.subscribe"""

    def __init__(self, channel: "EventChannel", event: str, handler: Handler):
        self._channel = channel
        self.event = event
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._channel._remove(self.event, self.handler)
            self._active = False


class EventChannel:
    """
    Named events with ordered handlers.

    Handlers may be plain callables or coroutine functions; ``publish``
    awaits each one in subscription order. A failing handler is logged and
    does not prevent later handlers from running.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        self._handlers.setdefault(event, []).append(handler)
        return Subscription(self, event, handler)

    def _remove(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def publish(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {event} handler {getattr(handler, '__name__', handler)}: {e}")
