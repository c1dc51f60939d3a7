"""
Subscriber Registry for live update channels.

Fans decoded envelopes out to any number of handlers. Each dispatch pass
works over a snapshot of the handlers registered when the pass started.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], Any]


@dataclass
class RegistryStats:
    """Statistics for the subscriber registry."""

    dispatches: int = 0
    invocations: int = 0
    handler_errors: int = 0


class Subscription:
    """
    Revocation handle returned by ``SubscriberRegistry.subscribe``.

    Calling the handle (or ``unsubscribe()``) removes the handler. Revoking
    more than once is a no-op.
    """

    __slots__ = ("_registry", "_token", "handler")

    def __init__(self, registry: SubscriberRegistry[Any], token: int, handler: Handler[Any]) -> None:
        self._registry = registry
        self._token = token
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._registry._is_registered(self._token)

    def unsubscribe(self) -> None:
        self._registry._remove(self._token)

    def __call__(self) -> None:
        self.unsubscribe()


class SubscriberRegistry(Generic[T]):
    """
    Holds handlers for one channel and invokes them on dispatch.

    There is no ordering contract across handlers and no deduplication: the
    same callable subscribed twice is invoked twice.

    Usage:
        registry: SubscriberRegistry[PositionUpdate] = SubscriberRegistry()
        revoke = registry.subscribe(lambda env: print(env))
        registry.dispatch(envelope)
        revoke()
    """

    def __init__(self, name: str = "registry") -> None:
        self._name = name
        self._handlers: dict[int, Handler[T]] = {}
        self._tokens = itertools.count(1)
        self._stats = RegistryStats()

    @property
    def stats(self) -> RegistryStats:
        """Get dispatch statistics."""
        return self._stats

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler[T]) -> Subscription:
        """Register a handler and return a handle that revokes it."""
        token = next(self._tokens)
        self._handlers[token] = handler
        logger.debug(f"[{self._name}] Subscribed handler #{token}")
        return Subscription(self, token, handler)

    def dispatch(
        self, envelope: T, should_continue: Optional[Callable[[], bool]] = None
    ) -> int:
        """
        Invoke every currently registered handler with ``envelope``.

        A handler that raises is logged and skipped; the remaining handlers
        still run. When ``should_continue`` is given it is checked before each
        handler and a False result ends the pass. Returns the number of
        handlers invoked.
        """
        self._stats.dispatches += 1
        snapshot = list(self._handlers.values())
        invoked = 0

        for handler in snapshot:
            if should_continue is not None and not should_continue():
                logger.debug(f"[{self._name}] Dispatch stopped after {invoked} handler(s)")
                break

            invoked += 1
            self._stats.invocations += 1
            try:
                handler(envelope)
            except Exception as e:
                self._stats.handler_errors += 1
                logger.error(f"[{self._name}] Subscriber error: {e}", exc_info=True)

        return invoked

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    def reset_stats(self) -> None:
        """Reset dispatch statistics."""
        self._stats = RegistryStats()

    def _is_registered(self, token: int) -> bool:
        return token in self._handlers

    def _remove(self, token: int) -> None:
        if self._handlers.pop(token, None) is not None:
            logger.debug(f"[{self._name}] Unsubscribed handler #{token}")
