"""Date formatting utilities shared by services and views.

All dates are calendar-local: values are plain ``date`` objects or
``YYYY-MM-DD`` strings, never converted between timezones. Day arithmetic
goes through ``date`` + ``timedelta`` so DST transitions cannot skip days.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union

from i18n import t

DateLike = Union[date, datetime, str, None]


class DateFormatter:
    """Unified date helpers for the application."""

    @staticmethod
    def local_date_string(value: Optional[date] = None) -> str:
        """Return ``value`` (default: today) as ``YYYY-MM-DD``."""
        d = value or date.today()
        if isinstance(d, datetime):
            d = d.date()
        return d.isoformat()

    @staticmethod
    def parse_local_date(value: DateLike) -> Optional[date]:
        """Parse ``YYYY-MM-DD`` (an optional ``T...`` suffix is ignored).

        Returns None for empty or malformed input.
        """
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        clean = str(value).split("T")[0].strip()
        parts = clean.split("-")
        if len(parts) != 3:
            return None
        try:
            year, month, day = (int(p) for p in parts)
            return date(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def add_days_local(value: DateLike, days: int) -> Optional[str]:
        """Add ``days`` calendar days to a local date, returning ``YYYY-MM-DD``."""
        parsed = DateFormatter.parse_local_date(value)
        if parsed is None:
            return None
        return (parsed + timedelta(days=days)).isoformat()

    @staticmethod
    def format_br_date(value: DateLike) -> str:
        """Format a local date as ``DD/MM/YYYY``; ``-`` when empty."""
        if value is None or value == "":
            return "-"
        parsed = DateFormatter.parse_local_date(value)
        if parsed is None:
            return str(value)
        return parsed.strftime("%d/%m/%Y")

    @staticmethod
    def sunday_weekday(value: date) -> int:
        """Weekday numbered 0=Sunday .. 6=Saturday."""
        return (value.weekday() + 1) % 7

    @staticmethod
    def parse_timestamp(value: DateLike) -> Optional[datetime]:
        """Parse an ISO timestamp (``Z`` suffix accepted). None when empty."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None

    @staticmethod
    def calculate_age(birth: DateLike, today: Optional[date] = None) -> str:
        """Human readable age like ``2 anos e 3 meses``."""
        born = DateFormatter.parse_local_date(birth)
        if born is None:
            return t("date_not_informed")
        now = today or date.today()
        if born > now:
            return t("future_date")

        years = now.year - born.year
        months = now.month - born.month
        if now.day < born.day:
            months -= 1
        if months < 0:
            years -= 1
            months += 12

        parts = []
        if years > 0:
            parts.append(f"{years} {t('year') if years == 1 else t('years')}")
        if months > 0:
            parts.append(f"{months} {t('month') if months == 1 else t('months')}")
        if not parts:
            return t("less_than_a_month")
        return f" {t('and')} ".join(parts)
