import logging
from typing import Awaitable, Callable, Optional

import flet as ft

from config import (
    BORDER_RADIUS,
    BORDER_RADIUS_LG,
    COLORS,
    FONT_SIZE_4XL,
    FONT_SIZE_MD,
    FONT_SIZE_SM,
    LOGIN_FORM_WIDTH,
    PADDING_4XL,
    SPACING_LG,
)
from i18n import t
from services.auth import AuthError, AuthService

logger = logging.getLogger(__name__)


def _create_field(label: str, password: bool = False, on_submit=None) -> ft.TextField:
    return ft.TextField(
        label=label,
        password=password,
        can_reveal_password=password,
        border_radius=BORDER_RADIUS,
        bgcolor=COLORS["input_bg"],
        border_color=COLORS["border"],
        focused_border_color=COLORS["accent"],
        content_padding=ft.Padding.symmetric(horizontal=12, vertical=8),
        on_submit=on_submit,
    )


class LoginView:
    """E-mail/password form shown while the remote store requires a login."""

    def __init__(
        self,
        page: ft.Page,
        auth: AuthService,
        on_signed_in: Callable[[], Awaitable[None]],
    ) -> None:
        self.page = page
        self._auth = auth
        self._on_signed_in = on_signed_in
        self._email: Optional[ft.TextField] = None
        self._password: Optional[ft.TextField] = None
        self._error: Optional[ft.Text] = None
        self._button: Optional[ft.Button] = None

    async def _handle_submit(self, e: Optional[ft.ControlEvent] = None) -> None:
        email = (self._email.value or "").strip()
        password = self._password.value or ""
        if not email or not password:
            return

        self._error.visible = False
        self._button.disabled = True
        self._button.content = t("signing_in")
        self.page.update()

        try:
            await self._auth.sign_in(email, password)
        except AuthError as err:
            self._error.value = err.message
            self._error.visible = True
            self._password.value = ""
        else:
            await self._on_signed_in()
            return
        finally:
            self._button.disabled = False
            self._button.content = t("sign_in")
        self.page.update()

    def build(self) -> ft.Control:
        submit = lambda e: self.page.run_task(self._handle_submit)
        self._email = _create_field(t("email"), on_submit=submit)
        self._password = _create_field(t("password"), password=True, on_submit=submit)
        self._error = ft.Text("", color=COLORS["danger"], size=FONT_SIZE_SM, visible=False)
        self._button = ft.Button(
            t("sign_in"),
            icon=ft.Icons.LOGIN,
            bgcolor=COLORS["accent"],
            color=COLORS["white"],
            on_click=submit,
        )

        form = ft.Column(
            [
                ft.Icon(ft.Icons.AGRICULTURE, size=48, color=COLORS["accent"]),
                ft.Text(t("app_name"), size=FONT_SIZE_4XL, weight=ft.FontWeight.BOLD),
                ft.Text(t("sign_in"), size=FONT_SIZE_MD, color=COLORS["done_text"]),
                self._error,
                self._email,
                self._password,
                self._button,
            ],
            spacing=SPACING_LG,
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        )
        return ft.Container(
            content=ft.Container(
                content=form,
                width=LOGIN_FORM_WIDTH,
                padding=PADDING_4XL,
                bgcolor=COLORS["card"],
                border_radius=BORDER_RADIUS_LG,
            ),
            alignment=ft.alignment.center,
            expand=True,
        )
