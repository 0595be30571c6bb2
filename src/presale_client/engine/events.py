"""
Typed events and a subscription-based event bus.

Wallet providers publish ``ChainChangedEvent`` / ``AccountsChangedEvent``;
the wallet session republishes its own state transitions for the host
application. Every subscription returns a ``Subscription`` handle that must be
disposed on teardown so handlers do not accumulate across reconnects.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Dict, Callable, Optional, List, Awaitable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Provider Events ====================

class ChainChangedEvent(BaseModel, BaseEvent):
    """Provider: the wallet switched to another chain."""
    chain_id: int

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"ChainChangedEvent(chain_id={self.chain_id})"


class AccountsChangedEvent(BaseModel, BaseEvent):
    """Provider: the authorized account list changed. Empty means disconnected."""
    accounts: List[str]

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"AccountsChangedEvent(accounts={len(self.accounts)})"


# ==================== Session Events ====================

class SessionConnectedEvent(BaseModel, BaseEvent):
    """Session: an account was accepted."""
    address: str
    chain_id: int

    def __repr__(self) -> str:
        return f"SessionConnectedEvent(address={self.address}, chain_id={self.chain_id})"


class SessionDisconnectedEvent(BaseModel, BaseEvent):
    """Session: wallet state was cleared."""
    reason: str = ""

    def __repr__(self) -> str:
        return f"SessionDisconnectedEvent(reason={self.reason})"


class SessionReloadEvent(BaseModel, BaseEvent):
    """
    Session: dependent state must be reloaded from scratch.

    Published after a chain change. Hosts reload quotes, allowances and
    history rather than patching them, since anything computed for the old
    chain is unsafe to reuse.
    """
    chain_id: int

    def __repr__(self) -> str:
        return f"SessionReloadEvent(chain_id={self.chain_id})"


class PurchaseConfirmedEvent(BaseModel, BaseEvent):
    """Executor: a purchase transaction was confirmed on-chain."""
    buyer: str
    chain_id: int
    tx_hash: str

    def __repr__(self) -> str:
        return f"PurchaseConfirmedEvent(tx_hash={self.tx_hash})"


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent], Awaitable[None]]


class Subscription:
    """
    Handle returned by ``EventBus.subscribe``.

    Disposing removes the handler; disposing twice is a no-op. Usable as a
    (sync) context manager for scoped subscriptions.
    """

    def __init__(self, bus: "EventBus", event_class: type, handler: EventHandlerFunc) -> None:
        self._bus = bus
        self.event_class = event_class
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self.event_class, self.handler)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> Subscription:
        """
        Register an async handler for the given event class.

        Multiple handlers can be subscribed to the same event type; they run
        concurrently when the event is published.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Returns:
            Subscription: Disposable handle that removes the handler.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)
        return Subscription(self, event_class, handler)

    def subscriber_count(self, event_class: Optional[type] = None) -> int:
        if event_class is not None:
            return len(self._subscribers.get(event_class, []))
        return sum(len(handlers) for handlers in self._subscribers.values())

    async def publish(self, event: BaseEvent) -> None:
        """
        Publish an event to every handler subscribed to its exact type.

        Handlers run concurrently; the first handler exception propagates
        after all handlers have finished.
        """
        handlers = list(self._subscribers.get(type(event), []))
        if not handlers:
            return

        logger.debug("Publishing %r to %d handler(s)", event, len(handlers))
        results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _remove(self, event_class: type, handler: EventHandlerFunc) -> None:
        handlers = self._subscribers.get(event_class)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            pass
        if not handlers:
            del self._subscribers[event_class]
