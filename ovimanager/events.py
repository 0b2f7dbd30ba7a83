from enum import Enum, auto
from typing import Callable, Dict, Any, Optional
import threading
import uuid
import weakref
import inspect
import logging

logger = logging.getLogger(__name__)


class AppEvent(Enum):
    """Application-wide events for the observer pattern."""
    TASK_CREATED = auto()
    TASK_UPDATED = auto()
    TASK_COMPLETED = auto()
    TASK_DELETED = auto()
    NOTICE_CREATED = auto()
    NOTICE_CONFIRMED = auto()
    NOTICE_DELETED = auto()
    # Payload: storage key or table name of the collection that changed
    COLLECTION_CHANGED = auto()
    SESSION_STARTED = auto()
    SESSION_ENDED = auto()


class Subscription:
    """Handle returned by EventBus.subscribe().

    With strong=True the handle owns the callback; keep it around and call
    unsubscribe() when the owner goes away.
    """

    def __init__(
        self,
        event_bus: "EventBus",
        event: AppEvent,
        subscription_id: str,
        strong_ref: Optional[Callable[[Any], None]] = None,
    ):
        self._event_bus = event_bus
        self._event = event
        self._subscription_id = subscription_id
        self._active = True
        self._strong_ref = strong_ref

    @property
    def id(self) -> str:
        return self._subscription_id

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._event_bus._unsubscribe_by_id(self._event, self._subscription_id)
            self._active = False
            self._strong_ref = None


class _CallbackRef:
    """Weak reference to a bound method or function.

    Lambdas and closures are held strongly by their Subscription instead,
    otherwise they would be collected right after subscribe() returns.
    """

    def __init__(
        self,
        callback: Callable[[Any], None],
        on_dead: Optional[Callable[[], None]] = None,
        event_name: str = "unknown",
    ):
        self._on_dead = on_dead
        self._event_name = event_name
        self._callback_repr = repr(callback)

        if inspect.ismethod(callback):
            self._ref = weakref.WeakMethod(callback, self._invoke_on_dead)
        else:
            try:
                self._ref = weakref.ref(callback, self._invoke_on_dead)
            except TypeError:
                # Builtins can't be weakly referenced
                self._ref = lambda: callback

    def _invoke_on_dead(self, _ref) -> None:
        logger.debug(
            f"EventBus: subscriber of {self._event_name} was garbage collected "
            f"({self._callback_repr})"
        )
        if self._on_dead:
            self._on_dead()

    def __call__(self) -> Optional[Callable[[Any], None]]:
        return self._ref()


class EventBus:
    """Singleton event bus for decoupled component communication.

    Services emit after they persist something; views and the local change
    feed listen. Bound-method subscribers are held weakly so torn-down views
    drop out on their own.
    """
    _instance: Optional["EventBus"] = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> "EventBus":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._listeners: Dict[AppEvent, Dict[str, _CallbackRef]] = {}
        return cls._instance

    def subscribe(
        self,
        event: AppEvent,
        callback: Callable[[Any], None],
        strong: bool = False,
    ) -> Subscription:
        """Subscribe a callback to an event. Returns a Subscription for cleanup.

        Lambdas and closures are always held strongly; store the returned
        Subscription and unsubscribe() it when done.
        """
        if event not in self._listeners:
            self._listeners[event] = {}

        subscription_id = str(uuid.uuid4())

        is_lambda = getattr(callback, "__name__", "") == "<lambda>"
        is_closure = not inspect.ismethod(callback) and getattr(callback, "__closure__", None) is not None
        if (is_lambda or is_closure) and not strong:
            strong = True

        def on_dead():
            if event in self._listeners and subscription_id in self._listeners[event]:
                del self._listeners[event][subscription_id]

        self._listeners[event][subscription_id] = _CallbackRef(callback, on_dead, event.name)

        return Subscription(
            self, event, subscription_id,
            strong_ref=callback if strong else None
        )

    def _unsubscribe_by_id(self, event: AppEvent, subscription_id: str) -> None:
        if event in self._listeners and subscription_id in self._listeners[event]:
            del self._listeners[event][subscription_id]

    def emit(self, event: AppEvent, data: Any = None) -> None:
        """Emit an event to all live subscribers.

        A failing handler is logged and does not stop delivery to the others.
        """
        if event not in self._listeners:
            return

        items = list(self._listeners[event].items())
        dead_refs = []

        for sub_id, cb_ref in items:
            callback = cb_ref()
            if callback is None:
                dead_refs.append(sub_id)
                continue
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in event handler for {event.name}: {e}")

        for sub_id in dead_refs:
            self._listeners[event].pop(sub_id, None)

    def subscriber_count(self, event: AppEvent) -> int:
        return len(self._listeners.get(event, {}))

    def clear(self) -> None:
        """Clear all subscriptions (used between tests)."""
        self._listeners.clear()

    @classmethod
    def reset_instance(cls) -> None:
        if cls._instance is not None:
            cls._instance._listeners.clear()
            cls._instance = None


event_bus = EventBus()
