import flet as ft
from typing import Callable, List, Optional

from config import COLORS, SNACK_DURATION_MS


def accent_btn(text: str, on_click, icon: Optional[str] = None) -> ft.Button:
    return ft.Button(
        text,
        on_click=on_click,
        bgcolor=COLORS["accent"],
        color=COLORS["white"],
        icon=icon,
    )


def danger_btn(
    text: str,
    on_click,
    icon: Optional[str] = None,
) -> ft.Button:
    return ft.Button(
        text,
        on_click=on_click,
        bgcolor=COLORS["danger"],
        color=COLORS["white"],
        icon=icon,
    )


def open_dialog(
    page: ft.Page,
    title: str,
    content: ft.Control,
    make_actions: Callable[[Callable[[], None]], List[ft.Control]],
) -> ft.AlertDialog:
    """Show a modal dialog. ``make_actions`` receives the close function."""

    def close(e: Optional[ft.ControlEvent] = None) -> None:
        page.pop_dialog()

    dialog = ft.AlertDialog(
        modal=True,
        title=ft.Text(title),
        content=content,
        actions=make_actions(close),
        actions_alignment=ft.MainAxisAlignment.END,
    )
    page.show_dialog(dialog)
    return dialog


class SnackService:
    def __init__(self, page: ft.Page) -> None:
        self.page = page
        self.snack = ft.SnackBar(
            content=ft.Text(""),
            bgcolor=COLORS["card"],
            duration=SNACK_DURATION_MS,
        )
        page.overlay.append(self.snack)

    def show(
        self,
        message: str,
        color: Optional[str] = None,
        update: bool = True,
    ) -> None:
        self.snack.content = ft.Text(message, color=COLORS["white"])
        self.snack.bgcolor = color or COLORS["card"]
        self.snack.open = True
        if update:
            self.page.update()
