"""Tests for recurrence date arithmetic and series continuation."""
from datetime import date, timedelta

import pytest

from config import Recurrence, TaskStatus
from formatters import DateFormatter
from models.entities import RecurrenceConfig, Task
from services.recurrence import next_occurrence, next_task_for, should_spawn

MONDAY = date(2026, 3, 2)


class TestDaily:
    def test_adds_interval(self):
        cfg = RecurrenceConfig(interval=3)
        assert next_occurrence(date(2026, 1, 30), Recurrence.DAILY, cfg) == date(2026, 2, 2)

    def test_zero_interval_means_one_day(self):
        cfg = RecurrenceConfig(interval=0)
        assert next_occurrence(date(2026, 1, 1), Recurrence.DAILY, cfg) == date(2026, 1, 2)

    def test_crosses_year(self):
        cfg = RecurrenceConfig(interval=1)
        assert next_occurrence(date(2026, 12, 31), Recurrence.DAILY, cfg) == date(2027, 1, 1)


class TestWeekly:
    def test_next_selected_weekday(self):
        cfg = RecurrenceConfig(weekdays=[3])
        assert next_occurrence(MONDAY, Recurrence.WEEKLY, cfg) == date(2026, 3, 4)

    def test_same_weekday_goes_to_next_week(self):
        cfg = RecurrenceConfig(weekdays=[1])
        assert next_occurrence(MONDAY, Recurrence.WEEKLY, cfg) == date(2026, 3, 9)

    def test_sunday_is_zero(self):
        cfg = RecurrenceConfig(weekdays=[0])
        assert next_occurrence(MONDAY, Recurrence.WEEKLY, cfg) == date(2026, 3, 8)

    def test_picks_earliest_of_several(self):
        cfg = RecurrenceConfig(weekdays=[5, 2])
        assert next_occurrence(MONDAY, Recurrence.WEEKLY, cfg) == date(2026, 3, 3)

    @pytest.mark.parametrize("start_offset", range(7))
    @pytest.mark.parametrize("weekdays", [[0], [6], [1, 3, 5], [2, 4], list(range(7))])
    def test_result_is_in_set_and_within_two_weeks(self, start_offset, weekdays):
        start = MONDAY + timedelta(days=start_offset)
        nxt = next_occurrence(start, Recurrence.WEEKLY, RecurrenceConfig(weekdays=weekdays))
        assert 1 <= (nxt - start).days <= 14
        assert DateFormatter.sunday_weekday(nxt) in weekdays

    def test_no_weekdays_has_no_next(self):
        assert next_occurrence(MONDAY, Recurrence.WEEKLY, RecurrenceConfig()) is None


class TestMonthly:
    def test_keeps_day_of_month(self):
        cfg = RecurrenceConfig()
        assert next_occurrence(date(2026, 1, 10), Recurrence.MONTHLY, cfg) == date(2026, 2, 10)

    def test_day_override(self):
        cfg = RecurrenceConfig(day_of_month=15)
        assert next_occurrence(date(2026, 1, 10), Recurrence.MONTHLY, cfg) == date(2026, 2, 15)

    def test_zero_day_is_ignored(self):
        cfg = RecurrenceConfig(day_of_month=0)
        assert next_occurrence(date(2026, 1, 10), Recurrence.MONTHLY, cfg) == date(2026, 2, 10)

    def test_short_month_overflows(self):
        cfg = RecurrenceConfig()
        assert next_occurrence(date(2026, 1, 31), Recurrence.MONTHLY, cfg) == date(2026, 3, 3)

    def test_day_override_overflows(self):
        cfg = RecurrenceConfig(day_of_month=31)
        assert next_occurrence(date(2026, 1, 10), Recurrence.MONTHLY, cfg) == date(2026, 3, 3)

    def test_december_rolls_into_next_year(self):
        cfg = RecurrenceConfig()
        assert next_occurrence(date(2026, 12, 5), Recurrence.MONTHLY, cfg) == date(2027, 1, 5)


class TestYearly:
    def test_same_date_next_year(self):
        cfg = RecurrenceConfig()
        assert next_occurrence(date(2026, 5, 10), Recurrence.YEARLY, cfg) == date(2027, 5, 10)

    def test_month_and_day_override(self):
        cfg = RecurrenceConfig(month_of_year=3, day_of_month=1)
        assert next_occurrence(date(2026, 5, 10), Recurrence.YEARLY, cfg) == date(2027, 3, 1)


def test_none_has_no_next():
    assert next_occurrence(MONDAY, Recurrence.NONE, RecurrenceConfig()) is None


class TestShouldSpawn:
    def test_no_date_never_spawns(self):
        assert should_spawn(RecurrenceConfig(), None) is False

    def test_unlimited(self):
        assert should_spawn(RecurrenceConfig(count=99), MONDAY) is True

    @pytest.mark.parametrize("count, expected", [(0, True), (1, True), (2, False), (5, False)])
    def test_limit(self, count, expected):
        cfg = RecurrenceConfig(repeat_limit=3, count=count)
        assert should_spawn(cfg, MONDAY) is expected


class TestNextTaskFor:
    def test_dip_bath_monday_to_wednesday(self):
        task = Task(
            "Banho de imersão",
            MONDAY,
            recurrence=Recurrence.WEEKLY,
            recurrence_config=RecurrenceConfig(weekdays=[1, 3, 5]),
            planned_time="07:30",
            instructions="Diluir 1:1000",
            group_id="grupo-1",
            status=TaskStatus.DONE,
            executor="JOAO",
            id="t1",
        )
        nxt = next_task_for(task)
        assert nxt is not None
        assert nxt.planned_date == date(2026, 3, 4)
        assert nxt.recurrence_config.count == 1
        assert nxt.status == TaskStatus.PENDING
        assert nxt.id is None
        assert nxt.executor is None
        assert nxt.title == task.title
        assert nxt.planned_time == "07:30"
        assert nxt.instructions == task.instructions
        assert nxt.group_id == "grupo-1"

    def test_template_config_is_not_shared(self):
        task = Task("Pesagem", MONDAY, recurrence=Recurrence.DAILY)
        nxt = next_task_for(task)
        nxt.recurrence_config.count = 10
        assert task.recurrence_config.count == 0

    def test_non_recurring_ends(self):
        assert next_task_for(Task("Tosquia", MONDAY)) is None

    def test_limit_reached_ends(self):
        task = Task(
            "Vermifugação",
            MONDAY,
            recurrence=Recurrence.DAILY,
            recurrence_config=RecurrenceConfig(repeat_limit=2, count=1),
        )
        assert next_task_for(task) is None
