"""Tests for TaskService in both storage modes."""
from datetime import date, datetime, timedelta

import httpx
import pytest

from config import Recurrence, TaskStatus, TASKS_STORAGE_KEY
from events import AppEvent
from models.entities import RecurrenceConfig, Task
from services.remote_client import RemoteClient, RemoteUnavailableError
from services.task_service import LINK_TABLE, TaskService

from fakes import EventCollector

MONDAY = date(2026, 3, 2)


def dip_bath() -> Task:
    return Task(
        "Banho de imersão",
        MONDAY,
        recurrence=Recurrence.WEEKLY,
        recurrence_config=RecurrenceConfig(weekdays=[1, 3, 5]),
        instructions="Diluir 1:1000",
    )


# ===========================================================================
# Local mode
# ===========================================================================

class TestLocalCreate:
    async def test_assigns_id_and_created_at(self, local_tasks: TaskService):
        before = datetime.now()
        task = await local_tasks.create(Task("Pesagem", MONDAY))
        assert task.id
        assert task.created_at >= before
        [stored] = await local_tasks.get_all()
        assert stored.id == task.id
        assert stored.created_at >= before

    async def test_forces_pending(self, local_tasks: TaskService):
        task = await local_tasks.create(Task("Pesagem", MONDAY, status=TaskStatus.DONE))
        assert task.status == TaskStatus.PENDING

    async def test_persists_to_collection(self, local_tasks: TaskService, db):
        task = await local_tasks.create(Task("Pesagem", MONDAY))
        records = await db.load_collection(TASKS_STORAGE_KEY)
        assert [r["id"] for r in records] == [task.id]
        assert [t.title for t in await local_tasks.get_all()] == ["Pesagem"]

    async def test_emits_created_and_collection_changed(self, local_tasks: TaskService):
        collector = EventCollector(AppEvent.TASK_CREATED, AppEvent.COLLECTION_CHANGED)
        await local_tasks.create(Task("Pesagem", MONDAY))
        assert collector.count(AppEvent.TASK_CREATED) == 1
        assert collector.payloads(AppEvent.COLLECTION_CHANGED) == ["manejos"]
        collector.cleanup()

    async def test_unique_ids(self, local_tasks: TaskService):
        first = await local_tasks.create(Task("A", MONDAY))
        second = await local_tasks.create(Task("B", MONDAY))
        assert first.id != second.id


class TestLocalComplete:
    async def test_daily_spawns_next(self, local_tasks: TaskService):
        task = await local_tasks.create(
            Task("Trato", MONDAY, recurrence=Recurrence.DAILY,
                 recurrence_config=RecurrenceConfig(interval=2))
        )
        spawned = await local_tasks.complete_task(task, "joão", "ok")

        assert spawned is not None
        assert spawned.planned_date == MONDAY + timedelta(days=2)
        assert spawned.recurrence_config.count == 1
        assert spawned.id and spawned.id != task.id

        by_id = {t.id: t for t in await local_tasks.get_all()}
        done = by_id[task.id]
        assert done.status == TaskStatus.DONE
        assert done.executor == "JOÃO"
        assert done.notes == "ok"
        assert done.executed_at is not None
        assert by_id[spawned.id].status == TaskStatus.PENDING

    async def test_dip_bath_monday_to_wednesday(self, local_tasks: TaskService):
        task = await local_tasks.create(dip_bath())
        spawned = await local_tasks.complete_task(task, "Maria")
        assert spawned.planned_date == date(2026, 3, 4)
        assert spawned.recurrence_config.count == 1
        assert spawned.instructions == "Diluir 1:1000"

    async def test_non_recurring_does_not_spawn(self, local_tasks: TaskService):
        task = await local_tasks.create(Task("Tosquia", MONDAY))
        assert await local_tasks.complete_task(task, "Maria") is None
        assert len(await local_tasks.get_all()) == 1

    async def test_limit_reached_does_not_spawn(self, local_tasks: TaskService):
        task = await local_tasks.create(
            Task("Vacina", MONDAY, recurrence=Recurrence.DAILY,
                 recurrence_config=RecurrenceConfig(repeat_limit=2, count=1))
        )
        assert await local_tasks.complete_task(task, "Maria") is None
        assert len(await local_tasks.get_all()) == 1

    async def test_missing_task_is_ignored(self, local_tasks: TaskService):
        ghost = Task("Fantasma", MONDAY, recurrence=Recurrence.DAILY, id="missing")
        assert await local_tasks.complete_task(ghost, "Maria") is None
        assert await local_tasks.get_all() == []

    async def test_emits_completed(self, local_tasks: TaskService):
        task = await local_tasks.create(Task("Tosquia", MONDAY))
        collector = EventCollector(AppEvent.TASK_COMPLETED)
        await local_tasks.complete_task(task, "Maria")
        assert collector.payloads(AppEvent.TASK_COMPLETED) == [task.id]
        collector.cleanup()


class TestLocalUpdateDelete:
    async def test_update_stamps_manager_edit(self, local_tasks: TaskService):
        task = await local_tasks.create(Task("Pesagem", MONDAY))
        await local_tasks.update(task.id, {"title": "Pesagem geral", "planned_time": "09:00"})
        [stored] = await local_tasks.get_all()
        assert stored.title == "Pesagem geral"
        assert stored.planned_time == "09:00"
        assert stored.edited_by_manager is True
        assert stored.last_edited_at is not None

    async def test_unknown_field_rejected(self, local_tasks: TaskService):
        task = await local_tasks.create(Task("Pesagem", MONDAY))
        with pytest.raises(KeyError):
            await local_tasks.update(task.id, {"color": "red"})

    async def test_delete(self, local_tasks: TaskService):
        keep = await local_tasks.create(Task("A", MONDAY))
        drop = await local_tasks.create(Task("B", MONDAY))
        await local_tasks.delete(drop.id)
        assert [t.id for t in await local_tasks.get_all()] == [keep.id]


class TestBoard:
    def test_active_tasks_filters_and_sorts(self):
        today = date(2026, 3, 10)
        tasks = [
            Task("later today", today, planned_time="15:00"),
            Task("tomorrow", today + timedelta(days=1)),
            Task("overdue", today - timedelta(days=3)),
            Task("done", today, status=TaskStatus.DONE),
            Task("early today", today, planned_time="06:00"),
        ]
        titles = [t.title for t in TaskService.active_tasks(tasks, today)]
        assert titles == ["overdue", "early today", "later today"]

    async def test_get_board_buckets(self, local_tasks: TaskService):
        today = date.today()
        await local_tasks.create(Task("old", today - timedelta(days=1)))
        await local_tasks.create(Task("now", today))
        await local_tasks.create(Task("soon", today + timedelta(days=1)))
        finished = await local_tasks.create(Task("finished", today))
        await local_tasks.complete_task(finished, "Maria")

        board = await local_tasks.get_board(today)
        assert [t.title for t in board.overdue] == ["old"]
        assert [t.title for t in board.today] == ["now"]
        assert [t.title for t in board.upcoming] == ["soon"]
        assert [t.title for t in board.done] == ["finished"]


# ===========================================================================
# Remote mode
# ===========================================================================

class TestRemoteCreate:
    async def test_inserts_animal_links(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(Task("Casqueamento", MONDAY, animal_ids=["o1", "o2"]))
        assert task.id
        assert [link["ovelha_id"] for link in remote.tables[LINK_TABLE]] == ["o1", "o2"]
        [loaded] = await remote_tasks.get_all()
        assert loaded.animal_ids == ["o1", "o2"]

    async def test_group_task_has_no_links(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(
            Task("Vermifugação", MONDAY, group_id="g1", animal_ids=["o1"])
        )
        assert remote.tables[LINK_TABLE] == []
        assert remote.tables["manejos"][0]["grupo_id"] == "g1"
        assert task.group_id == "g1"

    async def test_link_failure_removes_parent(self, remote_tasks: TaskService, remote):
        remote.fail_on("insert", LINK_TABLE)
        with pytest.raises(RemoteUnavailableError):
            await remote_tasks.create(Task("Casqueamento", MONDAY, animal_ids=["o1"]))
        assert remote.tables["manejos"] == []
        assert ("delete", "manejos") in remote.calls

    async def test_row_uses_remote_columns(self, remote_tasks: TaskService, remote):
        await remote_tasks.create(dip_bath())
        row = remote.tables["manejos"][0]
        assert row["titulo"] == "Banho de imersão"
        assert row["data_planejada"] == "2026-03-02"
        assert row["recorrencia"] == "semanal"
        assert row["recorrencia_config"]["diasSemana"] == [1, 3, 5]
        assert row["status"] == "pendente"


class TestRemoteComplete:
    async def test_updates_and_inserts_next(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(dip_bath())
        spawned = await remote_tasks.complete_task(task, "maria", "sem intercorrências")

        first, second = remote.tables["manejos"]
        assert first["status"] == "concluido"
        assert first["colaborador"] == "MARIA"
        assert first["observacoes"] == "sem intercorrências"
        assert first["data_execucao"]
        assert second["data_planejada"] == "2026-03-04"
        assert second["recorrencia_config"]["contagem"] == 1
        assert spawned.id == second["id"]

    async def test_update_failure_propagates(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(dip_bath())
        remote.fail_on("update", "manejos")
        with pytest.raises(RemoteUnavailableError):
            await remote_tasks.complete_task(task, "maria")
        assert len(remote.tables["manejos"]) == 1


class TestRemoteUpdate:
    async def test_replaces_links(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(Task("Casqueamento", MONDAY, animal_ids=["o1"]))
        await remote_tasks.update(task.id, {"animal_ids": ["o2", "o3"]})
        assert sorted(link["ovelha_id"] for link in remote.tables[LINK_TABLE]) == ["o2", "o3"]

    async def test_group_task_keeps_no_links(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(Task("Vermifugação", MONDAY, group_id="g1"))
        await remote_tasks.update(task.id, {"animal_ids": ["o1", "o2"]})
        assert remote.tables[LINK_TABLE] == []

    async def test_clearing_group_allows_links(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(Task("Vermifugação", MONDAY, group_id="g1"))
        await remote_tasks.update(task.id, {"group_id": None, "animal_ids": ["o1"]})
        assert [link["ovelha_id"] for link in remote.tables[LINK_TABLE]] == ["o1"]

    async def test_sends_only_given_fields(self, remote_tasks: TaskService, remote):
        task = await remote_tasks.create(Task("Pesagem", MONDAY))
        await remote_tasks.update(task.id, {"notes": "balança nova"})
        row = remote.tables["manejos"][0]
        assert row["observacoes"] == "balança nova"
        assert row["editado_por_gerente"] is True
        assert row["titulo"] == "Pesagem"


class TestRemoteRead:
    async def test_falls_back_to_local_snapshot(self, db, remote_tasks: TaskService, remote):
        await db.save_collection(TASKS_STORAGE_KEY, [Task("Offline", MONDAY, id="l1").to_dict()])
        remote.fail_on("select", "manejos")
        assert [t.id for t in await remote_tasks.get_all()] == ["l1"]

    async def test_non_json_response_falls_back(self, db, remote_backend):
        await db.save_collection(TASKS_STORAGE_KEY, [Task("Offline", MONDAY, id="l1").to_dict()])
        portal = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>captive portal</html>")
        )
        client = RemoteClient(remote_backend, transport=portal)
        try:
            tasks = await TaskService(db, remote_backend, client).get_all()
        finally:
            await client.close()
        assert [t.id for t in tasks] == ["l1"]

    def test_requires_client_in_remote_mode(self, db, remote_backend):
        with pytest.raises(ValueError):
            TaskService(db, remote_backend)


class TestLocalOrdering:
    async def test_get_all_sorted_by_planned_date(self, local_tasks: TaskService):
        await local_tasks.create(Task("depois", MONDAY + timedelta(days=5)))
        await local_tasks.create(Task("antes", MONDAY))
        await local_tasks.create(Task("meio", MONDAY + timedelta(days=2)))
        assert [t.title for t in await local_tasks.get_all()] == ["antes", "meio", "depois"]

    async def test_fallback_snapshot_is_sorted(self, db, remote_tasks: TaskService, remote):
        await db.save_collection(TASKS_STORAGE_KEY, [
            Task("b", MONDAY + timedelta(days=1), id="l2").to_dict(),
            Task("a", MONDAY, id="l1").to_dict(),
        ])
        remote.fail_on("select", "manejos")
        assert [t.id for t in await remote_tasks.get_all()] == ["l1", "l2"]


# ===========================================================================
# Calendar projection
# ===========================================================================

class TestProjection:
    def test_daily_series_up_to_horizon(self):
        task = Task("Trato", MONDAY, recurrence=Recurrence.DAILY, id="t1")
        projected = TaskService.project_occurrences([task], today=MONDAY, horizon_days=3)
        assert [p.planned_date for p in projected] == [
            MONDAY + timedelta(days=1),
            MONDAY + timedelta(days=2),
            MONDAY + timedelta(days=3),
        ]
        assert all(p.id is None and p.status == TaskStatus.PENDING for p in projected)
        assert [p.recurrence_config.count for p in projected] == [1, 2, 3]

    def test_projects_from_latest_occurrence_of_series(self):
        first = Task("Banho", MONDAY, recurrence=Recurrence.WEEKLY,
                     recurrence_config=RecurrenceConfig(weekdays=[1]), status=TaskStatus.DONE)
        latest = Task("Banho", MONDAY + timedelta(days=7), recurrence=Recurrence.WEEKLY,
                      recurrence_config=RecurrenceConfig(weekdays=[1], count=1))
        projected = TaskService.project_occurrences([first, latest], today=MONDAY, horizon_days=21)
        assert [p.planned_date for p in projected] == [date(2026, 3, 16), date(2026, 3, 23)]

    def test_groups_are_separate_series(self):
        a = Task("Vermifugação", MONDAY, recurrence=Recurrence.DAILY, group_id="g1")
        b = Task("Vermifugação", MONDAY, recurrence=Recurrence.DAILY, group_id="g2")
        projected = TaskService.project_occurrences([a, b], today=MONDAY, horizon_days=1)
        assert sorted(p.group_id for p in projected) == ["g1", "g2"]

    def test_honours_repeat_limit(self):
        task = Task("Vacina", MONDAY, recurrence=Recurrence.DAILY,
                    recurrence_config=RecurrenceConfig(repeat_limit=3))
        projected = TaskService.project_occurrences([task], today=MONDAY)
        assert len(projected) == 2

    def test_skips_dates_with_real_task(self):
        series = Task("Trato", MONDAY, recurrence=Recurrence.DAILY)
        real = Task("Trato", MONDAY + timedelta(days=2))
        projected = TaskService.project_occurrences([series, real], today=MONDAY, horizon_days=3)
        assert [p.planned_date for p in projected] == [
            MONDAY + timedelta(days=1),
            MONDAY + timedelta(days=3),
        ]

    def test_non_recurring_not_projected(self):
        assert TaskService.project_occurrences([Task("Tosquia", MONDAY)], today=MONDAY) == []
