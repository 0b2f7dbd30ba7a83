"""Change notifications -> silent reloads.

A ``ChangeFeed`` says "table X changed" without a payload; the bridge turns
that into a call of the view's reload coroutine. Bursts collapse: while a
reload is running, any number of further notifications cause exactly one
more reload after it.
"""
import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from events import AppEvent, EventBus, Subscription, event_bus
from services.remote_client import ChangeCallback, ChangeFeed

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[], Awaitable[Any]]


class LocalChangeFeed:
    """Change feed for local mode, driven by COLLECTION_CHANGED events."""

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self._bus = bus or event_bus
        self._handlers: Dict[str, Tuple[str, ChangeCallback]] = {}
        self._subscription: Optional[Subscription] = None

    def subscribe(self, table: str, callback: ChangeCallback) -> str:
        handle = str(uuid.uuid4())
        self._handlers[handle] = (table, callback)
        if self._subscription is None:
            self._subscription = self._bus.subscribe(
                AppEvent.COLLECTION_CHANGED, self._on_collection_changed
            )
        return handle

    def unsubscribe(self, handle: str) -> None:
        self._handlers.pop(handle, None)
        if not self._handlers and self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_collection_changed(self, table: Any) -> None:
        for watched, callback in list(self._handlers.values()):
            if watched == table:
                callback(table)


class BridgeSubscription:
    """Handle for one watched table; pass it back to ChangeBridge.unsubscribe()."""

    def __init__(self, table: str, on_change: ReloadCallback) -> None:
        self.table = table
        self.on_change = on_change
        self.active = True
        self.feed_handle: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._dirty = False

    @property
    def reloading(self) -> bool:
        return self._task is not None and not self._task.done()


class ChangeBridge:
    """Subscribes views to table changes and runs their reloads."""

    def __init__(self, feed: ChangeFeed) -> None:
        self._feed = feed
        self._subscriptions: List[BridgeSubscription] = []

    def subscribe(self, table: str, on_change: ReloadCallback) -> BridgeSubscription:
        sub = BridgeSubscription(table, on_change)
        sub.feed_handle = self._feed.subscribe(table, lambda _table: self._notify(sub))
        self._subscriptions.append(sub)
        logger.debug(f"Bridge watching {table}")
        return sub

    def unsubscribe(self, sub: BridgeSubscription) -> None:
        if not sub.active:
            return
        sub.active = False
        if sub.feed_handle is not None:
            self._feed.unsubscribe(sub.feed_handle)
        if sub.reloading:
            sub._task.cancel()
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def _notify(self, sub: BridgeSubscription) -> None:
        if not sub.active:
            return
        if sub.reloading:
            sub._dirty = True
            return
        try:
            sub._task = asyncio.get_running_loop().create_task(self._run(sub))
        except RuntimeError:
            logger.warning(f"Change on {sub.table} outside the event loop ignored")

    async def _run(self, sub: BridgeSubscription) -> None:
        while sub.active:
            sub._dirty = False
            try:
                await sub.on_change()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Reload after change on {sub.table} failed: {e}")
            if not sub._dirty:
                break

    async def wait_idle(self) -> None:
        """Wait until no reload is running (used by shutdown and tests)."""
        while True:
            pending = [s._task for s in self._subscriptions if s.reloading]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        for sub in list(self._subscriptions):
            self.unsubscribe(sub)
