from typing import Any, Dict, Optional

from config import BackendConfig, ENTITY_STORAGE_PREFIX, REGISTRY_TABLES
from database import Database
from services.persistence import CollectionService, new_local_id
from services.remote_client import RemoteClient


class EntityService(CollectionService[Dict[str, Any]]):
    """Registry records (breeds, suppliers, groups, paddocks).

    Records are plain dicts stored with the remote column names as-is, so
    no field translation happens in either direction.
    """
    field_columns: Dict[str, str] = {}

    def __init__(
        self,
        table: str,
        db: Database,
        backend: BackendConfig,
        remote: Optional[RemoteClient] = None,
    ) -> None:
        if table not in REGISTRY_TABLES:
            raise ValueError(f"Unknown registry table: {table}")
        super().__init__(db, backend, remote)
        self.table = table
        self.storage_key = f"{ENTITY_STORAGE_PREFIX}{table}"
        self.order_column = REGISTRY_TABLES[table]
        self.order_ascending = True

    def entity_from_local(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return dict(record)

    def entity_to_local(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        return dict(entity)

    def entity_from_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return dict(row)

    def entity_to_row(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in entity.items() if k != "id"}

    def local_sort_value(self, entity: Dict[str, Any]) -> Any:
        return entity.get(self.order_column)

    def _stamp_local(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        stamped = dict(entity)
        stamped["id"] = new_local_id()
        return stamped

    def _check_fields(self, fields: Dict[str, Any]) -> None:
        if "id" in fields:
            raise KeyError("The id of a registry record cannot be changed")

    def fields_to_row(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return dict(fields)

    def apply_local_fields(self, record: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(record)
        merged.update(fields)
        return merged


def build_entity_services(
    db: Database,
    backend: BackendConfig,
    remote: Optional[RemoteClient] = None,
) -> Dict[str, EntityService]:
    """One EntityService per registry table, keyed by table name."""
    return {table: EntityService(table, db, backend, remote) for table in REGISTRY_TABLES}
