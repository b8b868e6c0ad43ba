"""
Base wallet implementation with event plumbing.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from abc import ABC

from ..events import EventChannel, Subscription
from ..interfaces import IWalletProvider

logger = logging.getLogger(__name__)


class BaseWallet(IWalletProvider, ABC):
    """Base wallet with EIP-1193 style event registration"""

    def __init__(self):
        self.events = EventChannel()
        self._subscriptions: Dict[Tuple[str, Callable[..., Any]], List[Subscription]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        subscription = self.events.subscribe(event, handler)
        self._subscriptions.setdefault((event, handler), []).append(subscription)

    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        subscriptions = self._subscriptions.get((event, handler))
        if not subscriptions:
            return
        subscriptions.pop().unsubscribe()
        if not subscriptions:
            del self._subscriptions[(event, handler)]

    async def emit(self, event: str, *args: Any) -> None:
        logger.debug(f"Wallet event {event}: {args}")
        await self.events.publish(event, *args)

    def listener_count(self, event: Optional[str] = None) -> int:
        return sum(len(subs) for (name, _), subs in self._subscriptions.items()
                   if event is None or name == event)
