import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import flet as ft

from config import (
    BORDER_RADIUS,
    COLORS,
    DIALOG_WIDTH_LG,
    FONT_SIZE_2XL,
    FONT_SIZE_5XL,
    FONT_SIZE_LG,
    FONT_SIZE_MD,
    FONT_SIZE_SM,
    NoticePriority,
    PADDING_3XL,
    PADDING_XL,
    PRIORITY_COLORS,
    SPACING_LG,
    SPACING_MD,
    SPACING_SM,
)
from formatters import DateFormatter
from i18n import t
from models.entities import Notice, Task
from services.notice_board import NoticeBoardSession
from ui.helpers import SnackService, accent_btn, open_dialog

logger = logging.getLogger(__name__)

_PRIORITY_LABELS = {
    NoticePriority.NORMAL: "priority_normal",
    NoticePriority.HIGH: "priority_high",
    NoticePriority.URGENT: "priority_urgent",
}


class NoticeBoardView:
    """Kiosk screen: clock, today's tasks and the notice list."""

    def __init__(
        self,
        page: ft.Page,
        snack: SnackService,
        session_factory: Callable[..., NoticeBoardSession],
        on_sign_out: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self.page = page
        self.snack = snack
        self._on_sign_out = on_sign_out
        self.session = session_factory(
            on_update=self.refresh,
            on_error=lambda message: self.snack.show(message, COLORS["danger"]),
            on_alert=self._on_urgent_alert,
            on_tick=self._on_tick,
        )
        self._clock = ft.Text("", size=FONT_SIZE_5XL, weight=ft.FontWeight.BOLD)
        self._date = ft.Text("", size=FONT_SIZE_MD, color=COLORS["done_text"])
        self._tasks_column = ft.Column(spacing=SPACING_MD, scroll=ft.ScrollMode.AUTO, expand=True)
        self._notices_column = ft.Column(spacing=SPACING_MD, scroll=ft.ScrollMode.AUTO, expand=True)
        self._loading = ft.Column(
            [ft.ProgressRing(), ft.Text(t("syncing"), color=COLORS["done_text"])],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            visible=True,
        )
        self._mounted = False

    # ── Session callbacks ──────────────────────────────────────────────

    def _on_tick(self, now: datetime) -> None:
        self._clock.value = now.strftime("%H:%M:%S")
        self._date.value = DateFormatter.format_br_date(now.date())
        if self._mounted:
            self._clock.update()
            self._date.update()

    def _on_urgent_alert(self, notice: Notice) -> None:
        self.snack.show(f"{t('urgent_notice_pending')} {notice.title}", COLORS["danger"])

    # ── Rendering ──────────────────────────────────────────────────────

    def _task_card(self, task: Task) -> ft.Control:
        overdue = task.planned_date < datetime.now().date()
        subtitle = f"{DateFormatter.format_br_date(task.planned_date)} {task.planned_time}"
        if overdue:
            subtitle = f"{t('overdue')} · {subtitle}"
        return ft.Container(
            content=ft.Row(
                [
                    ft.Column(
                        [
                            ft.Text(task.title, size=FONT_SIZE_LG, weight=ft.FontWeight.BOLD),
                            ft.Text(
                                subtitle,
                                size=FONT_SIZE_SM,
                                color=COLORS["danger"] if overdue else COLORS["done_text"],
                            ),
                            ft.Text(task.instructions, size=FONT_SIZE_SM, visible=bool(task.instructions)),
                        ],
                        spacing=SPACING_SM,
                        expand=True,
                    ),
                    accent_btn(t("complete"), lambda e, tk=task: self._open_complete_dialog(tk),
                               icon=ft.Icons.CHECK),
                ],
            ),
            padding=PADDING_XL,
            bgcolor=COLORS["card"],
            border_radius=BORDER_RADIUS,
        )

    def _notice_card(self, notice: Notice) -> ft.Control:
        confirmed = self.session.is_confirmed(notice)
        urgent = notice.priority == NoticePriority.URGENT
        action: ft.Control
        if confirmed:
            action = ft.Row(
                [ft.Icon(ft.Icons.DONE_ALL, color=COLORS["accent"]),
                 ft.Text(t("read_confirmed"), size=FONT_SIZE_SM)],
                spacing=SPACING_SM,
            )
        else:
            action = ft.Button(
                t("confirm_read"),
                bgcolor=COLORS["white"] if urgent else COLORS["accent"],
                color=COLORS["danger"] if urgent else COLORS["white"],
                on_click=lambda e, nid=notice.id: self.page.run_task(self._confirm, nid),
            )
        return ft.Container(
            content=ft.Column(
                [
                    ft.Text(
                        t(_PRIORITY_LABELS[notice.priority]).upper(),
                        size=FONT_SIZE_SM,
                        color=COLORS["warning"] if not urgent else COLORS["white"],
                    ),
                    ft.Text(notice.title, size=FONT_SIZE_2XL, weight=ft.FontWeight.BOLD),
                    ft.Text(notice.body, size=FONT_SIZE_MD),
                    ft.Text(notice.author or "", size=FONT_SIZE_SM, color=COLORS["done_text"],
                            visible=bool(notice.author)),
                    action,
                ],
                spacing=SPACING_SM,
            ),
            padding=PADDING_XL,
            bgcolor=PRIORITY_COLORS[notice.priority],
            border=ft.Border.all(1, COLORS["danger"] if urgent else COLORS["border"]),
            border_radius=BORDER_RADIUS,
        )

    def refresh(self) -> None:
        self._loading.visible = self.session.loading
        tasks = self.session.active_tasks()
        self._tasks_column.controls = (
            [self._task_card(task) for task in tasks]
            or [ft.Text(t("no_tasks"), color=COLORS["done_text"])]
        )
        notices: List[Notice] = self.session.notices.items
        self._notices_column.controls = (
            [self._notice_card(n) for n in notices]
            or [ft.Text(t("no_notices"), color=COLORS["done_text"])]
        )
        if self._mounted:
            self.page.update()

    # ── Actions ────────────────────────────────────────────────────────

    async def _confirm(self, notice_id: str) -> None:
        if await self.session.confirm_notice(notice_id):
            self.snack.show(t("read_confirmed"), COLORS["accent"])

    def _open_complete_dialog(self, task: Task) -> None:
        executor = ft.TextField(label=t("executor"), autofocus=True)
        notes = ft.TextField(label=t("notes"), multiline=True, min_lines=2)
        error_text = ft.Text(t("executor_required"), color=COLORS["danger"], size=FONT_SIZE_SM, visible=False)

        async def handle_complete(e: Optional[ft.ControlEvent] = None) -> None:
            if not (executor.value or "").strip():
                error_text.visible = True
                self.page.update()
                return
            self.page.pop_dialog()
            spawned = await self.session.complete_task(task, executor.value, notes.value or "")
            if spawned is not None:
                self.snack.show(
                    t("next_occurrence_created").format(
                        date=DateFormatter.format_br_date(spawned.planned_date)
                    ),
                    COLORS["accent"],
                )
            else:
                self.snack.show(t("task_completed"), COLORS["accent"])

        content = ft.Column(
            [ft.Text(task.title, weight=ft.FontWeight.BOLD), executor, error_text, notes],
            width=DIALOG_WIDTH_LG,
            tight=True,
            spacing=SPACING_MD,
        )

        def make_actions(close: Callable[[], None]) -> List[ft.Control]:
            return [
                ft.TextButton(t("cancel"), on_click=close),
                accent_btn(t("complete"), lambda e: self.page.run_task(handle_complete)),
            ]

        open_dialog(self.page, t("complete_task"), content, make_actions)

    async def _handle_sign_out(self, e: Optional[ft.ControlEvent] = None) -> None:
        await self.session.close()
        if self._on_sign_out:
            await self._on_sign_out()

    # ── Lifecycle ──────────────────────────────────────────────────────

    def build(self) -> ft.Control:
        header = ft.Row(
            [
                ft.Column([self._clock, self._date], spacing=0),
                ft.Row(
                    [
                        ft.IconButton(ft.Icons.REFRESH,
                                      on_click=lambda e: self.page.run_task(self.session.reload)),
                        ft.IconButton(ft.Icons.LOGOUT, tooltip=t("sign_out"),
                                      on_click=lambda e: self.page.run_task(self._handle_sign_out)),
                    ],
                ),
            ],
            alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
        )
        body = ft.Row(
            [
                ft.Column(
                    [ft.Text(t("tasks_today"), size=FONT_SIZE_2XL), self._tasks_column],
                    expand=True,
                ),
                ft.Column(
                    [ft.Text(t("notices"), size=FONT_SIZE_2XL), self._notices_column],
                    expand=True,
                ),
            ],
            spacing=SPACING_LG,
            vertical_alignment=ft.CrossAxisAlignment.START,
            expand=True,
        )
        return ft.Container(
            content=ft.Column([header, self._loading, body], expand=True),
            padding=PADDING_3XL,
            bgcolor=COLORS["bg"],
            expand=True,
        )

    async def mount(self) -> None:
        """Called once the control tree is on the page."""
        self._mounted = True
        await self.session.start()

    async def dispose(self) -> None:
        self._mounted = False
        await self.session.close()
