"""Dual-mode collection persistence.

Every entity service derives from ``CollectionService``. The injected
``BackendConfig`` decides once, at construction, whether operations go to
the remote store or to the local SQLite blob for the collection.
"""
import logging
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from config import BackendConfig
from database import Database
from events import event_bus, AppEvent
from models.entities import RecurrenceConfig
from services.remote_client import RemoteClient, RemoteError

logger = logging.getLogger(__name__)

E = TypeVar("E")
R = TypeVar("R")


def encode_remote_value(value: Any) -> Any:
    """Convert an in-memory value into its JSON form for the remote store."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, RecurrenceConfig):
        return value.to_remote()
    return value


def new_local_id() -> str:
    return str(uuid.uuid4())


class CollectionService(Generic[E]):
    """get_all / create / update / delete over one entity collection.

    Subclasses set ``table``, ``storage_key`` and ``field_columns`` (in-memory
    field name -> remote column) and implement the four translation hooks.
    """
    table: str = ""
    storage_key: str = ""
    select_columns: str = "*"
    order_column: Optional[str] = "created_at"
    order_ascending: bool = False
    field_columns: Dict[str, str] = {}

    created_event: Optional[AppEvent] = None
    deleted_event: Optional[AppEvent] = None
    updated_event: Optional[AppEvent] = None

    def __init__(
        self,
        db: Database,
        backend: BackendConfig,
        remote: Optional[RemoteClient] = None,
    ) -> None:
        self._db = db
        self._backend = backend
        self._remote = remote
        if backend.remote_enabled and remote is None:
            raise ValueError(f"{type(self).__name__} needs a RemoteClient in remote mode")

    @property
    def remote_enabled(self) -> bool:
        return self._backend.remote_enabled

    # ── Translation hooks ──────────────────────────────────────────────

    def entity_from_local(self, record: Dict[str, Any]) -> E:
        raise NotImplementedError

    def entity_to_local(self, entity: E) -> Dict[str, Any]:
        raise NotImplementedError

    def entity_from_row(self, row: Dict[str, Any]) -> E:
        raise NotImplementedError

    def entity_to_row(self, entity: E) -> Dict[str, Any]:
        raise NotImplementedError

    def prepare_new(self, entity: E) -> E:
        """Hook applied to an entity before it is created in either mode."""
        return entity

    def _stamp_local(self, entity: E) -> E:
        entity.id = new_local_id()
        entity.created_at = datetime.now()
        return entity

    def _check_fields(self, fields: Dict[str, Any]) -> None:
        unknown = [name for name in fields if name not in self.field_columns]
        if unknown:
            raise KeyError(f"Unknown {self.table} field(s): {', '.join(unknown)}")

    def fields_to_row(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {
            self.field_columns[name]: encode_remote_value(value)
            for name, value in fields.items()
        }

    def apply_local_fields(self, record: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        entity = self.entity_from_local(record)
        for name, value in fields.items():
            setattr(entity, name, value)
        return self.entity_to_local(entity)

    # ── Local store helpers ────────────────────────────────────────────

    def local_sort_value(self, entity: E) -> Any:
        """Value of ``order_column`` on an entity, used to order local reads."""
        attr = next(
            (name for name, column in self.field_columns.items() if column == self.order_column),
            self.order_column,
        )
        return getattr(entity, attr, None)

    def _order_key(self, entity: E) -> Tuple[bool, Any]:
        # Nulls sort last ascending and first descending, like the remote store
        value = self.local_sort_value(entity)
        return (value is None, "" if value is None else value)

    async def load_local(self) -> List[E]:
        """The local snapshot, in the same order a remote read returns."""
        records = await self._db.load_collection(self.storage_key)
        entities = [self.entity_from_local(r) for r in records]
        if self.order_column:
            entities.sort(key=self._order_key, reverse=not self.order_ascending)
        return entities

    async def _mutate_local(self, mutator: Callable[[List[Dict[str, Any]]], R]) -> R:
        """Load the whole collection, let ``mutator`` edit it, write it back."""
        async with self._db.collection_lock(self.storage_key):
            records = await self._db.load_collection(self.storage_key)
            result = mutator(records)
            await self._db.save_collection(self.storage_key, records)
        event_bus.emit(AppEvent.COLLECTION_CHANGED, self.table)
        return result

    @staticmethod
    def _index_of(records: List[Dict[str, Any]], entity_id: str) -> int:
        for i, record in enumerate(records):
            if record.get("id") == entity_id:
                return i
        return -1

    def _emit(self, event: Optional[AppEvent], data: Any) -> None:
        if event is not None:
            event_bus.emit(event, data)

    # ── Operations ─────────────────────────────────────────────────────

    async def get_all(self) -> List[E]:
        """All entities. A remote failure falls back to the local snapshot."""
        if self.remote_enabled:
            try:
                rows = await self._remote.select(
                    self.table,
                    columns=self.select_columns,
                    order=self.order_column,
                    ascending=self.order_ascending,
                )
                return [self.entity_from_row(r) for r in rows]
            except RemoteError as e:
                logger.warning(f"Remote read of {self.table} failed, using local data: {e}")
        return await self.load_local()

    async def create(self, entity: E) -> E:
        """Persist a new entity and return it with its id and created_at."""
        entity = self.prepare_new(entity)
        if self.remote_enabled:
            created = await self._create_remote(entity)
        else:
            created = self._stamp_local(entity)
            record = self.entity_to_local(created)
            await self._mutate_local(lambda records: records.append(record))
        self._emit(self.created_event, created)
        return created

    async def _create_remote(self, entity: E) -> E:
        try:
            rows = await self._remote.insert(self.table, self.entity_to_row(entity))
        except RemoteError as e:
            logger.error(f"Error creating {self.table} row: {e}")
            raise
        return self.entity_from_row(rows[0])

    async def update(self, entity_id: str, fields: Dict[str, Any]) -> None:
        """Write only ``fields`` (in-memory names) of the entity.

        Raises:
            KeyError: If a field name is not part of the entity.
        """
        self._check_fields(fields)
        fields = self.prepare_update(fields)
        if self.remote_enabled:
            await self._update_remote(entity_id, fields)
        else:
            def apply(records: List[Dict[str, Any]]) -> None:
                idx = self._index_of(records, entity_id)
                if idx == -1:
                    logger.warning(f"Update of missing {self.table} id {entity_id} ignored")
                    return
                records[idx] = self.apply_local_fields(records[idx], fields)
            await self._mutate_local(apply)
        self._emit(self.updated_event, entity_id)

    def prepare_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return fields

    async def _update_remote(self, entity_id: str, fields: Dict[str, Any]) -> None:
        try:
            await self._remote.update(self.table, self.fields_to_row(fields), {"id": entity_id})
        except RemoteError as e:
            logger.error(f"Error updating {self.table} {entity_id}: {e}")
            raise

    async def delete(self, entity_id: str) -> None:
        if self.remote_enabled:
            try:
                await self._remote.delete(self.table, {"id": entity_id})
            except RemoteError as e:
                logger.error(f"Error deleting {self.table} {entity_id}: {e}")
                raise
        else:
            def remove(records: List[Dict[str, Any]]) -> None:
                records[:] = [r for r in records if r.get("id") != entity_id]
            await self._mutate_local(remove)
        self._emit(self.deleted_event, entity_id)
