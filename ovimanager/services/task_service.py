import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from config import (
    DEFAULT_PLANNED_TIME,
    PROJECTION_HORIZON_DAYS,
    PROJECTION_MAX_OCCURRENCES,
    Recurrence,
    TaskCategory,
    TaskStatus,
    TASKS_STORAGE_KEY,
)
from events import AppEvent, event_bus
from formatters import DateFormatter
from models.entities import RecurrenceConfig, Task
from services.persistence import CollectionService
from services.recurrence import next_occurrence, next_task_for, should_spawn
from services.remote_client import RemoteError

logger = logging.getLogger(__name__)

LINK_TABLE = "manejo_ovelhas"


@dataclass
class TaskBoard:
    """Tasks split the way the daily views show them.

    ``done`` only holds tasks executed on the board's day.
    """
    overdue: List[Task] = field(default_factory=list)
    today: List[Task] = field(default_factory=list)
    upcoming: List[Task] = field(default_factory=list)
    done: List[Task] = field(default_factory=list)


def _parse_enum(enum_cls, raw, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


class TaskService(CollectionService[Task]):
    """Husbandry tasks (manejos) with their animal links.

    Remote rows live in ``manejos``; explicit animal lists live in the
    ``manejo_ovelhas`` link table and are only written for tasks that are
    not scoped to a whole group.
    """
    table = "manejos"
    storage_key = TASKS_STORAGE_KEY
    select_columns = f"*,{LINK_TABLE}(ovelha_id)"
    order_column = "data_planejada"
    order_ascending = True
    field_columns = {
        "title": "titulo",
        "category": "tipo",
        "recurrence": "recorrencia",
        "recurrence_config": "recorrencia_config",
        "planned_date": "data_planejada",
        "planned_time": "hora_planejada",
        "executed_at": "data_execucao",
        "executor": "colaborador",
        "status": "status",
        "instructions": "procedimento",
        "notes": "observacoes",
        "group_id": "grupo_id",
        "animal_ids": LINK_TABLE,
        "edited_by_manager": "editado_por_gerente",
        "last_edited_at": "data_ultima_edicao",
    }

    created_event = AppEvent.TASK_CREATED
    updated_event = AppEvent.TASK_UPDATED
    deleted_event = AppEvent.TASK_DELETED

    # ── Translation ────────────────────────────────────────────────────

    def entity_from_local(self, record: Dict[str, Any]) -> Task:
        return Task.from_dict(record)

    def entity_to_local(self, entity: Task) -> Dict[str, Any]:
        return entity.to_dict()

    def entity_from_row(self, row: Dict[str, Any]) -> Task:
        hour = row.get("hora_planejada")
        links = row.get(LINK_TABLE) or []
        return Task(
            id=row.get("id"),
            title=row.get("titulo") or "",
            category=_parse_enum(TaskCategory, row.get("tipo"), TaskCategory.RECURRING),
            recurrence=_parse_enum(Recurrence, row.get("recorrencia"), Recurrence.NONE),
            recurrence_config=RecurrenceConfig.from_remote(row.get("recorrencia_config")),
            planned_date=DateFormatter.parse_local_date(row.get("data_planejada")) or date.today(),
            planned_time=hour[:5] if hour else DEFAULT_PLANNED_TIME,
            executed_at=DateFormatter.parse_timestamp(row.get("data_execucao")),
            executor=row.get("colaborador"),
            status=_parse_enum(TaskStatus, row.get("status"), TaskStatus.PENDING),
            instructions=row.get("procedimento") or "",
            notes=row.get("observacoes") or "",
            animal_ids=[link["ovelha_id"] for link in links],
            group_id=row.get("grupo_id"),
            created_at=DateFormatter.parse_timestamp(row.get("created_at")),
            edited_by_manager=bool(row.get("editado_por_gerente")),
            last_edited_at=DateFormatter.parse_timestamp(row.get("data_ultima_edicao")),
        )

    def entity_to_row(self, entity: Task) -> Dict[str, Any]:
        return {
            "titulo": entity.title,
            "procedimento": entity.instructions,
            "tipo": entity.category.value,
            "recorrencia": entity.recurrence.value,
            "recorrencia_config": entity.recurrence_config.to_remote(),
            "grupo_id": entity.group_id or None,
            "data_planejada": DateFormatter.local_date_string(entity.planned_date),
            "hora_planejada": entity.planned_time or DEFAULT_PLANNED_TIME,
            "status": entity.status.value,
        }

    def prepare_new(self, entity: Task) -> Task:
        entity.status = TaskStatus.PENDING
        return entity

    def prepare_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        stamped = dict(fields)
        stamped["edited_by_manager"] = True
        stamped["last_edited_at"] = datetime.now()
        return stamped

    # ── Remote specifics ───────────────────────────────────────────────

    async def _create_remote(self, entity: Task) -> Task:
        created = await super()._create_remote(entity)
        created.animal_ids = list(entity.animal_ids)
        if entity.group_id or not entity.animal_ids:
            return created

        links = [{"manejo_id": created.id, "ovelha_id": oid} for oid in entity.animal_ids]
        try:
            await self._remote.insert(LINK_TABLE, links)
        except RemoteError as e:
            logger.error(f"Linking animals to task {created.id} failed, removing it: {e}")
            try:
                await self._remote.delete(self.table, {"id": created.id})
            except RemoteError as cleanup_error:
                logger.error(f"Could not remove orphaned task {created.id}: {cleanup_error}")
            raise
        return created

    async def _update_remote(self, entity_id: str, fields: Dict[str, Any]) -> None:
        fields = dict(fields)
        animal_ids = fields.pop("animal_ids", None)
        await super()._update_remote(entity_id, fields)
        if animal_ids is None:
            return
        try:
            if "group_id" in fields:
                group_id = fields["group_id"]
            else:
                row = await self._remote.select_one(
                    self.table, columns="grupo_id", filters={"id": entity_id}
                )
                group_id = row.get("grupo_id") if row else None
            await self._remote.delete(LINK_TABLE, {"manejo_id": entity_id})
            if animal_ids and not group_id:
                await self._remote.insert(
                    LINK_TABLE,
                    [{"manejo_id": entity_id, "ovelha_id": oid} for oid in animal_ids],
                )
        except RemoteError as e:
            logger.error(f"Error replacing animal links of task {entity_id}: {e}")
            raise

    # ── Completion ─────────────────────────────────────────────────────

    async def complete_task(self, task: Task, executor: str, notes: str = "") -> Optional[Task]:
        """Mark ``task`` done and spawn its next occurrence when due.

        Returns the spawned task, or None when the series ends. Both writes
        have finished when this returns.
        """
        executed_at = datetime.now()
        executor = executor.upper()
        following = next_task_for(task)

        if self.remote_enabled:
            try:
                await self._remote.update(
                    self.table,
                    {
                        "status": TaskStatus.DONE.value,
                        "data_execucao": executed_at.isoformat(),
                        "colaborador": executor,
                        "observacoes": notes,
                    },
                    {"id": task.id},
                )
            except RemoteError as e:
                logger.error(f"Error completing task {task.id}: {e}")
                raise
            spawned = await self.create(following) if following else None
        else:
            spawned = await self._complete_local(task, executor, notes, executed_at, following)

        event_bus.emit(AppEvent.TASK_COMPLETED, task.id)
        return spawned

    async def _complete_local(
        self,
        task: Task,
        executor: str,
        notes: str,
        executed_at: datetime,
        following: Optional[Task],
    ) -> Optional[Task]:
        if following is not None:
            following = self._stamp_local(self.prepare_new(following))

        def apply(records: List[Dict[str, Any]]) -> bool:
            idx = self._index_of(records, task.id)
            if idx == -1:
                return False
            records[idx] = self.apply_local_fields(records[idx], {
                "status": TaskStatus.DONE,
                "executed_at": executed_at,
                "executor": executor,
                "notes": notes,
            })
            if following is not None:
                records.append(self.entity_to_local(following))
            return True

        found = await self._mutate_local(apply)
        if not found:
            logger.warning(f"Completion of missing task {task.id} ignored")
            return None
        if following is not None:
            event_bus.emit(AppEvent.TASK_CREATED, following)
        return following

    # ── Read helpers ───────────────────────────────────────────────────

    @staticmethod
    def active_tasks(tasks: List[Task], today: Optional[date] = None) -> List[Task]:
        """Pending tasks planned on or before ``today``, oldest first."""
        today = today or date.today()
        active = [t for t in tasks if t.is_pending and t.planned_date <= today]
        return sorted(active, key=lambda t: (t.planned_date, t.planned_time))

    async def get_board(self, today: Optional[date] = None) -> TaskBoard:
        """Pending tasks by due bucket plus the tasks executed ``today``."""
        today = today or date.today()
        board = TaskBoard()
        for task in await self.get_all():
            if task.status == TaskStatus.DONE:
                if task.executed_at and task.executed_at.date() == today:
                    board.done.append(task)
            elif not task.is_pending:
                continue
            elif task.planned_date < today:
                board.overdue.append(task)
            elif task.planned_date == today:
                board.today.append(task)
            else:
                board.upcoming.append(task)
        for bucket in (board.overdue, board.today, board.upcoming):
            bucket.sort(key=lambda t: (t.planned_date, t.planned_time))
        board.done.sort(key=lambda t: t.executed_at.isoformat() if t.executed_at else "", reverse=True)
        return board



    @staticmethod
    def project_occurrences(
        tasks: List[Task],
        today: Optional[date] = None,
        horizon_days: int = PROJECTION_HORIZON_DAYS,
    ) -> List[Task]:
        """Future occurrences of recurring tasks, for calendar views.

        Each series (same title and group) is projected from its latest
        planned occurrence up to ``today + horizon_days``, stopping where
        completing would stop spawning. Dates that already hold a real task
        of the series are skipped. Projections have no id.
        """
        today = today or date.today()
        horizon = today + timedelta(days=horizon_days)

        latest: Dict[Tuple[str, Optional[str]], Task] = {}
        for task in tasks:
            if not task.is_recurring:
                continue
            key = (task.title, task.group_id)
            if key not in latest or task.planned_date > latest[key].planned_date:
                latest[key] = task
        existing = {(t.title, t.group_id, t.planned_date) for t in tasks}

        projected: List[Task] = []
        for (title, group_id), template in latest.items():
            current = template
            for _ in range(PROJECTION_MAX_OCCURRENCES):
                config = current.recurrence_config
                nxt = next_occurrence(current.planned_date, current.recurrence, config)
                if nxt is None or nxt > horizon or not should_spawn(config, nxt):
                    break
                current = current.create_next_occurrence(nxt, config.count + 1)
                if (title, group_id, nxt) not in existing:
                    projected.append(current)
        projected.sort(key=lambda t: (t.planned_date, t.planned_time))
        return projected
