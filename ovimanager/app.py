import flet as ft
import logging

from functools import partial
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

from config import COLORS, FONT_SIZE_SM, PADDING_MD, SPACING_SM
from core import ServiceContainer, shutdown
from events import event_bus, AppEvent, Subscription
from i18n import t
from services.notice_board import NoticeBoardSession
from ui.helpers import SnackService
from ui.login_view import LoginView
from ui.notice_board_view import NoticeBoardView


class OviManagerApp:
    """Main application class switching between login and the notice board."""

    def __init__(self, page: ft.Page, container: ServiceContainer) -> None:
        self.page = page
        self.svc = container
        self.snack = SnackService(page)
        self._subscriptions: List[Subscription] = []
        self._board: Optional[NoticeBoardView] = None
        self._closed = False

        self.page.title = t("app_name")
        self.page.bgcolor = COLORS["bg"]
        self.page.theme_mode = ft.ThemeMode.DARK
        self.page.padding = 0

        self._subscriptions.append(
            event_bus.subscribe(AppEvent.SESSION_ENDED, self._on_session_ended)
        )

        # Register cleanup on page close
        self.page.on_close = self._on_page_close

        self.page.run_task(self.show_initial_view)

    async def show_initial_view(self) -> None:
        if self.svc.auth.requires_login:
            self._show_login()
        else:
            await self._show_board()

    def _mode_badge(self) -> ft.Control:
        online = self.svc.backend.remote_enabled
        return ft.Container(
            content=ft.Row(
                [
                    ft.Icon(ft.Icons.CLOUD_DONE if online else ft.Icons.CLOUD_OFF,
                            size=14, color=COLORS["accent"] if online else COLORS["warning"]),
                    ft.Text(t("online") if online else t("local_mode"), size=FONT_SIZE_SM),
                ],
                spacing=SPACING_SM,
                tight=True,
            ),
            padding=PADDING_MD,
        )

    def _show_login(self) -> None:
        login = LoginView(self.page, self.svc.auth, self._on_signed_in)
        self.page.controls.clear()
        self.page.add(login.build())

    async def _on_signed_in(self) -> None:
        self.svc.state.session = self.svc.auth.session
        await self._show_board()

    async def _show_board(self) -> None:
        await self._dispose_board()
        factory = partial(
            NoticeBoardSession,
            self.svc.tasks,
            self.svc.notices,
            self.svc.settings,
            self.svc.bridge,
            self.svc.state.user_label,
        )
        self._board = NoticeBoardView(self.page, self.snack, factory, on_sign_out=self._sign_out)
        self.page.title = f"{t('app_name')} - {t('notice_board')}"
        self.page.controls.clear()
        self.page.add(ft.Column([self._mode_badge(), self._board.build()], expand=True, spacing=0))
        await self._board.mount()

    async def _sign_out(self) -> None:
        await self.svc.auth.sign_out()

    def _on_session_ended(self, data: Any) -> None:
        self.svc.state.session = None

        async def _back_to_start() -> None:
            await self._dispose_board()
            await self.show_initial_view()

        self.page.run_task(_back_to_start)

    async def _dispose_board(self) -> None:
        if self._board is not None:
            await self._board.dispose()
            self._board = None

    def _on_page_close(self, e: ft.ControlEvent) -> None:
        """Handle page close - cleanup resources."""
        self._cleanup()

    def _cleanup(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

        async def cleanup_all() -> None:
            await self._dispose_board()
            await shutdown(self.svc)

        try:
            self.page.run_task(cleanup_all)
        except RuntimeError as e:
            # Page may already be gone during interpreter shutdown
            logger.debug(f"Could not schedule cleanup (page closing): {e}")


def create_app(page: ft.Page, container: ServiceContainer) -> OviManagerApp:
    """Factory function to create the application."""
    return OviManagerApp(page, container)
