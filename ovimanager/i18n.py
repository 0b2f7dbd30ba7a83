"""Internationalization module - provides t("key") for translated strings.

All user-facing text goes through t("key"). Portuguese is the default
language; English is the fallback. Add new strings to _TRANSLATIONS with
both "pt" and "en" values.
"""
from typing import Dict

_current_language: str = "pt"

LANGUAGES: Dict[str, Dict[str, str]] = {
    "pt": {"name": "Português", "flag": "🇧🇷", "code": "PT"},
    "en": {"name": "English", "flag": "🇺🇸", "code": "EN"},
}

_TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "app_name": {"pt": "OviManager", "en": "OviManager"},

    # Auth
    "email": {"pt": "E-mail", "en": "E-mail"},
    "password": {"pt": "Senha", "en": "Password"},
    "sign_in": {"pt": "Entrar no Sistema", "en": "Sign in"},
    "signing_in": {"pt": "Acessando...", "en": "Signing in..."},
    "sign_out": {"pt": "Sair", "en": "Sign out"},
    "invalid_credentials": {"pt": "E-mail ou senha incorretos.", "en": "Wrong e-mail or password."},
    "login_failed": {
        "pt": "Não foi possível entrar. Tente novamente.",
        "en": "Could not sign in. Please try again.",
    },
    "wrong_manager_password": {"pt": "Senha de gerente incorreta.", "en": "Wrong manager password."},

    # Generic errors
    "generic_error": {"pt": "Ocorreu um erro. Tente novamente.", "en": "Something went wrong. Please try again."},
    "confirm_read_failed": {"pt": "Erro ao confirmar leitura.", "en": "Could not confirm reading."},
    "complete_task_failed": {"pt": "Erro ao concluir tarefa.", "en": "Could not complete the task."},
    "load_failed": {"pt": "Erro ao carregar dados.", "en": "Could not load data."},

    # Notice board
    "notice_board": {"pt": "Mural", "en": "Notice board"},
    "syncing": {"pt": "Sincronizando Sistema...", "en": "Synchronizing..."},
    "notices": {"pt": "Avisos", "en": "Notices"},
    "no_notices": {"pt": "Nenhum aviso no momento", "en": "No notices right now"},
    "confirm_read": {"pt": "Confirmar Leitura", "en": "Confirm reading"},
    "read_confirmed": {"pt": "Leitura confirmada", "en": "Reading confirmed"},
    "urgent_notice_pending": {
        "pt": "Há um aviso urgente sem confirmação!",
        "en": "An urgent notice is waiting for confirmation!",
    },
    "priority_normal": {"pt": "Normal", "en": "Normal"},
    "priority_high": {"pt": "Alta", "en": "High"},
    "priority_urgent": {"pt": "Urgente", "en": "Urgent"},

    # Tasks
    "tasks_today": {"pt": "Tarefas de Hoje", "en": "Today's tasks"},
    "no_tasks": {"pt": "Nenhuma tarefa pendente", "en": "No pending tasks"},
    "overdue": {"pt": "Atrasada", "en": "Overdue"},
    "complete": {"pt": "Concluir", "en": "Complete"},
    "complete_task": {"pt": "Concluir Tarefa", "en": "Complete task"},
    "executor": {"pt": "Responsável", "en": "Done by"},
    "executor_required": {"pt": "Informe quem executou o manejo.", "en": "Tell who carried out the task."},
    "notes": {"pt": "Observações", "en": "Notes"},
    "task_completed": {"pt": "Tarefa concluída", "en": "Task completed"},
    "next_occurrence_created": {
        "pt": "Próxima ocorrência agendada para {date}",
        "en": "Next occurrence scheduled for {date}",
    },

    # Common buttons
    "cancel": {"pt": "Cancelar", "en": "Cancel"},
    "local_mode": {"pt": "Modo local", "en": "Local mode"},
    "online": {"pt": "Online", "en": "Online"},

    # Dates
    "date_not_informed": {"pt": "Data não informada", "en": "Date not informed"},
    "future_date": {"pt": "Data futura", "en": "Future date"},
    "less_than_a_month": {"pt": "Menos de 1 mês", "en": "Less than 1 month"},
    "year": {"pt": "ano", "en": "year"},
    "years": {"pt": "anos", "en": "years"},
    "month": {"pt": "mês", "en": "month"},
    "months": {"pt": "meses", "en": "months"},
    "and": {"pt": "e", "en": "and"},
}


def get_language() -> str:
    """Get the current language code."""
    return _current_language


def set_language(lang: str) -> None:
    """Set the current language. Unknown codes are ignored."""
    global _current_language
    if lang in LANGUAGES:
        _current_language = lang


def t(key: str) -> str:
    """Get translated string for the given key.

    Falls back to Portuguese, then to the key itself.
    """
    if key not in _TRANSLATIONS:
        return key

    translations = _TRANSLATIONS[key]

    if _current_language in translations:
        return translations[_current_language]

    if "pt" in translations:
        return translations["pt"]

    return key
