import asyncio
import inspect
import logging
from typing import Any, Callable, List, Optional

from config import ALERT_REPEAT_SECONDS, DEFAULT_OPERATOR_NAME
from models.entities import Notice

logger = logging.getLogger(__name__)


class UrgentNoticeAlarm:
    """Repeating alert while an urgent notice lacks the user's confirmation.

    The loop runs on the event loop as a task. It stops by itself once
    ``update()`` reports no unconfirmed urgent notice, and ``dispose()``
    cancels it when the owning view goes away.
    """

    def __init__(
        self,
        on_alert: Callable[[Notice], Any],
        user: str = DEFAULT_OPERATOR_NAME,
        interval: float = ALERT_REPEAT_SECONDS,
    ) -> None:
        self._on_alert = on_alert
        self._user = user
        self._interval = interval
        self._pending: List[Notice] = []
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._disposed = False
        self.alert_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def update(self, notices: List[Notice]) -> None:
        """Re-evaluate the trigger condition against fresh notices."""
        if self._disposed:
            return
        self._pending = [n for n in notices if n.is_urgent and not n.is_confirmed_by(self._user)]
        if self._pending and not self.running:
            self._start()
        elif not self._pending and self.running:
            self.stop()

    def _start(self) -> None:
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(self._alert_loop())
        logger.info(f"Urgent notice alarm started ({len(self._pending)} pending)")

    async def _alert_loop(self) -> None:
        try:
            while self._pending and not self._stop_event.is_set():
                self.alert_count += 1
                try:
                    result = self._on_alert(self._pending[0])
                    if inspect.isawaitable(result):
                        await result
                except (RuntimeError, OSError) as e:
                    logger.warning(f"Urgent notice alert failed: {e}")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    continue
        except asyncio.CancelledError:
            logger.info("Urgent notice alarm cancelled")
            raise

    def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def dispose(self) -> None:
        """Cancel the loop for good (view teardown)."""
        self._disposed = True
        self._pending = []
        self.stop()
