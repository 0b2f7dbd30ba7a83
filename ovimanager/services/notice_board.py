import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, List, Optional

from config import ALERT_REPEAT_SECONDS, CLOCK_TICK_SECONDS, DEFAULT_OPERATOR_NAME
from database import DatabaseError
from i18n import t
from models.entities import Notice, ReadConfirmation, Task
from services.alert_service import UrgentNoticeAlarm
from services.notice_service import NoticeService
from services.realtime import BridgeSubscription, ChangeBridge
from services.reconciliation import OptimisticCollection
from services.remote_client import RemoteError
from services.settings_service import SettingsService
from services.task_service import TaskService

logger = logging.getLogger(__name__)


class NoticeBoardSession:
    """State and actions behind the notice board screen.

    Framework-agnostic: the view passes callbacks and renders whatever the
    session holds when ``on_update`` fires. The session owns its change
    subscriptions, the urgent-notice alarm and the clock loop; ``close()``
    releases all three.
    """

    def __init__(
        self,
        task_service: TaskService,
        notice_service: NoticeService,
        settings_service: SettingsService,
        bridge: ChangeBridge,
        user: str = DEFAULT_OPERATOR_NAME,
        on_update: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_alert: Optional[Callable[[Notice], Any]] = None,
        on_tick: Optional[Callable[[datetime], None]] = None,
        alert_interval: float = ALERT_REPEAT_SECONDS,
    ) -> None:
        self._task_svc = task_service
        self._notice_svc = notice_service
        self._settings_svc = settings_service
        self._bridge = bridge
        self.user = user
        self._on_update = on_update
        self._on_error = on_error
        self._on_tick = on_tick

        self.tasks: List[Task] = []
        self.notices: OptimisticCollection[Notice] = OptimisticCollection(
            loader=notice_service.get_all,
            on_error=self._report,
        )
        self.loading = True
        self.alarm = UrgentNoticeAlarm(on_alert or (lambda notice: None), user, alert_interval)

        self._subscriptions: List[BridgeSubscription] = []
        self._clock_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._closed = False

    def _report(self, message: str) -> None:
        if self._on_error:
            self._on_error(message)

    def _changed(self) -> None:
        if self._on_update:
            self._on_update()

    async def start(self) -> None:
        """First (visible) load, then watch both tables and start the clock."""
        await self.load(silent=False)
        for table in (self._task_svc.table, self._notice_svc.table):
            self._subscriptions.append(
                self._bridge.subscribe(table, self.reload)
            )
        if self._on_tick is not None:
            self._stop_event.clear()
            self._clock_task = asyncio.get_running_loop().create_task(self._clock_loop())

    async def reload(self) -> None:
        await self.load(silent=True)

    async def load(self, silent: bool = True) -> None:
        if not silent:
            self.loading = True
            self._changed()
        try:
            tasks, notices = await asyncio.gather(
                self._task_svc.get_all(), self._notice_svc.get_all()
            )
        except (RemoteError, DatabaseError) as e:
            logger.error(f"Error loading notice board: {e}")
            self._report(t("load_failed"))
        else:
            self.tasks = tasks
            self.notices.set_items(notices)
            self.alarm.update(self.notices.items)
        finally:
            self.loading = False
        self._changed()

    def active_tasks(self, today: Optional[date] = None) -> List[Task]:
        return TaskService.active_tasks(self.tasks, today)

    def is_confirmed(self, notice: Notice) -> bool:
        return notice.is_confirmed_by(self.user)

    async def complete_task(self, task: Task, executor: str, notes: str = "") -> Optional[Task]:
        """Complete a task from the board. Returns the spawned occurrence."""
        if not executor.strip():
            raise ValueError("Executor name is required")
        try:
            spawned = await self._task_svc.complete_task(task, executor, notes)
        except (RemoteError, DatabaseError) as e:
            logger.error(f"Error completing task {task.id}: {e}")
            self._report(t("complete_task_failed"))
            spawned = None
        await self.load(silent=True)
        return spawned

    async def confirm_notice(self, notice_id: str) -> bool:
        """Confirm reading a notice with immediate feedback.

        The confirmation shows at once; a failed write restores the prior
        list and reports the error. Both outcomes end with a reload.
        """
        user = self.user

        def add_confirmation(notices: List[Notice]) -> List[Notice]:
            for notice in notices:
                if notice.id == notice_id and not notice.is_confirmed_by(user):
                    notice.confirmations.append(ReadConfirmation(user, datetime.now()))
            return notices

        ok = await self.notices.apply(
            add_confirmation,
            lambda: self._notice_svc.confirm_read(notice_id, user),
            t("confirm_read_failed"),
        )
        self.alarm.update(self.notices.items)
        self._changed()
        return ok

    async def delete_task(self, task_id: str, manager_password: str) -> bool:
        """Delete a task if the manager password matches."""
        if not await self._settings_svc.verify_manager_password(manager_password):
            self._report(t("wrong_manager_password"))
            return False
        try:
            await self._task_svc.delete(task_id)
        except (RemoteError, DatabaseError) as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            self._report(t("generic_error"))
            return False
        await self.load(silent=True)
        return True

    async def _clock_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                self._on_tick(datetime.now())
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=CLOCK_TICK_SECONDS)
                except asyncio.TimeoutError:
                    continue
        except asyncio.CancelledError:
            logger.debug("Notice board clock cancelled")
            raise

    async def close(self) -> None:
        """Tear down: stop the alarm, the clock and the change subscriptions."""
        if self._closed:
            return
        self._closed = True
        self.alarm.dispose()
        self._stop_event.set()
        if self._clock_task is not None and not self._clock_task.done():
            self._clock_task.cancel()
        for sub in self._subscriptions:
            self._bridge.unsubscribe(sub)
        self._subscriptions.clear()
