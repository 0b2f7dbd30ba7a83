from datetime import date, timedelta
from typing import Optional, List

from config import Recurrence, WEEKLY_SCAN_DAYS
from formatters import DateFormatter
from models.entities import RecurrenceConfig, Task


def _rolled_date(year: int, month: int, day: int) -> date:
    """Build a date letting month and day overflow into the next ones.

    ``month`` is 1-based and may exceed 12; ``day`` may exceed the month
    length, so (2026, 2, 31) is 2026-03-03.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def _add_months(base: date, months: int) -> date:
    """Add months keeping the day number, overflowing on short months."""
    return _rolled_date(base.year, base.month + months, base.day)


def _with_day(base: date, day: Optional[int]) -> date:
    if not day:
        return base
    return _rolled_date(base.year, base.month, day)


def _find_next_weekday(base: date, weekdays: List[int]) -> Optional[date]:
    """First day after ``base`` whose weekday (0=Sunday) is in ``weekdays``."""
    if not weekdays:
        return None
    for offset in range(1, WEEKLY_SCAN_DAYS + 1):
        candidate = base + timedelta(days=offset)
        if DateFormatter.sunday_weekday(candidate) in weekdays:
            return candidate
    return None


def next_occurrence(
    current: date,
    recurrence: Recurrence,
    config: RecurrenceConfig,
) -> Optional[date]:
    """Date of the occurrence that follows ``current`` under the rule.

    Returns None for a non-recurring rule or when a weekly rule has no
    weekday selected.
    """
    if recurrence == Recurrence.DAILY:
        return current + timedelta(days=max(1, config.interval or 1))

    if recurrence == Recurrence.WEEKLY:
        return _find_next_weekday(current, config.weekdays)

    if recurrence == Recurrence.MONTHLY:
        return _with_day(_add_months(current, 1), config.day_of_month)

    if recurrence == Recurrence.YEARLY:
        nxt = _add_months(current, 12)
        if config.month_of_year is not None:
            nxt = _rolled_date(nxt.year, config.month_of_year, nxt.day)
        return _with_day(nxt, config.day_of_month)

    return None


def should_spawn(config: RecurrenceConfig, next_date: Optional[date]) -> bool:
    """Whether completing the current occurrence creates another one."""
    if next_date is None:
        return False
    if config.repeat_limit is not None and config.count + 1 >= config.repeat_limit:
        return False
    return True


def next_task_for(task: Task) -> Optional[Task]:
    """The pending task that follows ``task``, or None when the series ends."""
    if not task.is_recurring:
        return None
    nxt = next_occurrence(task.planned_date, task.recurrence, task.recurrence_config)
    if not should_spawn(task.recurrence_config, nxt):
        return None
    return task.create_next_occurrence(nxt, task.recurrence_config.count + 1)
