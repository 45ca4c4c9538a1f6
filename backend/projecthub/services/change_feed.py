"""In-process change notifications per task scope.

Subscribers only learn that *something* changed in a scope; they are
expected to re-fetch and recompute their query.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

ChangeCallback = Callable[[str], Awaitable[None] | None]


class ChangeFeed:
    """Fan-out of change notifications, keyed by scope."""

    def __init__(self) -> None:
        # Map of scope -> callbacks in subscription order
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    def subscribe(self, scope: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback`` for ``scope``; returns an unsubscribe function."""
        self._subscribers.setdefault(scope, []).append(callback)
        logger.debug("change_feed_subscribed", scope=scope)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(scope)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[scope]
                logger.debug("change_feed_unsubscribed", scope=scope)

        return unsubscribe

    def subscriber_count(self, scope: str) -> int:
        return len(self._subscribers.get(scope, []))

    async def publish(self, scope: str, **context: Any) -> None:
        """Notify every subscriber of ``scope``.

        A failing subscriber is logged and skipped; the rest still hear
        about the change.
        """
        callbacks = list(self._subscribers.get(scope, []))
        if not callbacks:
            return

        logger.debug("change_feed_publish", scope=scope, subscribers=len(callbacks), **context)
        for callback in callbacks:
            try:
                result = callback(scope)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "change_feed_subscriber_failed",
                    scope=scope,
                    error=str(exc),
                )


# Shared by the services and the websocket endpoint
change_feed = ChangeFeed()
