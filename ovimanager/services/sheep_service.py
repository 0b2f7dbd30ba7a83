import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import (
    AnimalStatus,
    DEFAULT_BODY_CONDITION,
    DEFAULT_FAMACHA,
    DEFAULT_SHEEP_ORIGIN,
    HealthStatus,
    Sex,
    SHEEP_STORAGE_KEY,
    WEIGHT_STORAGE_KEY,
)
from formatters import DateFormatter
from models.entities import Sheep, WeightRecord
from services.persistence import CollectionService, encode_remote_value, new_local_id
from services.remote_client import RemoteError

logger = logging.getLogger(__name__)

WEIGHT_TABLE = "historico_peso"

# Columns whose empty value is stored as null
_NULLABLE_COLUMNS = {"nascimento", "raca_id", "origem", "piquete_id", "grupo_id", "pai", "mae"}
_TRIMMED_COLUMNS = {"brinco", "nome", "pai", "mae", "obs"}


def _parse_enum(enum_cls, raw, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _clean_value(column: str, value: Any) -> Any:
    value = encode_remote_value(value)
    if column in _TRIMMED_COLUMNS and isinstance(value, str):
        value = value.strip()
    if column in _NULLABLE_COLUMNS and not value:
        return None
    return value


class SheepService(CollectionService[Sheep]):
    """Herd registry (ovelhas) with the weighing history of each animal.

    A weighing is recorded when an animal is created with a weight and
    whenever an update sets one. Locally only an actual change is recorded.
    """
    table = "ovelhas"
    storage_key = SHEEP_STORAGE_KEY
    select_columns = f"*,{WEIGHT_TABLE}(id,peso,data)"
    field_columns = {
        "tag": "brinco",
        "name": "nome",
        "birth_date": "nascimento",
        "sex": "sexo",
        "breed_id": "raca_id",
        "origin": "origem",
        "paddock_id": "piquete_id",
        "group_id": "grupo_id",
        "weight": "peso",
        "health_notes": "saude",
        "health": "sanidade",
        "famacha": "famacha",
        "body_condition": "ecc",
        "status": "status",
        "pregnant": "prenha",
        "sire": "pai",
        "dam": "mae",
        "notes": "obs",
    }

    # ── Translation ────────────────────────────────────────────────────

    def entity_from_local(self, record: Dict[str, Any]) -> Sheep:
        return Sheep.from_dict(record)

    def entity_to_local(self, entity: Sheep) -> Dict[str, Any]:
        return entity.to_dict()

    def entity_from_row(self, row: Dict[str, Any]) -> Sheep:
        sheep = Sheep(
            id=row.get("id"),
            tag=row.get("brinco") or "",
            name=row.get("nome") or "",
            sex=_parse_enum(Sex, row.get("sexo"), Sex.FEMALE),
            birth_date=DateFormatter.parse_local_date(row.get("nascimento")),
            breed_id=row.get("raca_id"),
            origin=row.get("origem") or DEFAULT_SHEEP_ORIGIN,
            paddock_id=row.get("piquete_id"),
            group_id=row.get("grupo_id"),
            weight=float(row.get("peso") or 0),
            health_notes=row.get("saude") or "",
            health=_parse_enum(HealthStatus, row.get("sanidade"), HealthStatus.HEALTHY),
            famacha=row.get("famacha") or DEFAULT_FAMACHA,
            body_condition=float(row.get("ecc") or DEFAULT_BODY_CONDITION),
            status=_parse_enum(AnimalStatus, row.get("status"), AnimalStatus.ACTIVE),
            pregnant=bool(row.get("prenha")),
            sire=row.get("pai"),
            dam=row.get("mae"),
            notes=row.get("obs") or "",
            created_at=DateFormatter.parse_timestamp(row.get("created_at")),
        )
        sheep.weight_history = sorted(
            (self._weight_from_row(w, sheep.id) for w in row.get(WEIGHT_TABLE) or []),
            key=lambda w: w.at,
        )
        return sheep

    def entity_to_row(self, entity: Sheep) -> Dict[str, Any]:
        local = entity.to_dict()
        return {
            column: _clean_value(column, local[name])
            for name, column in self.field_columns.items()
        }

    def fields_to_row(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {
            self.field_columns[name]: _clean_value(self.field_columns[name], value)
            for name, value in fields.items()
        }

    @staticmethod
    def _weight_from_row(row: Dict[str, Any], sheep_id: Optional[str]) -> WeightRecord:
        return WeightRecord(
            id=row.get("id"),
            sheep_id=row.get("ovelha_id") or sheep_id or "",
            weight=float(row.get("peso") or 0),
            at=DateFormatter.parse_timestamp(row.get("data")) or datetime.now(),
        )

    # ── Weighing history ───────────────────────────────────────────────

    async def _load_local_weights(self) -> List[WeightRecord]:
        records = await self._db.load_collection(WEIGHT_STORAGE_KEY)
        return [WeightRecord.from_dict(r) for r in records]

    async def _record_weight(self, sheep_id: str, weight: float, at: Optional[datetime] = None) -> None:
        at = at or datetime.now()
        if self.remote_enabled:
            try:
                await self._remote.insert(
                    WEIGHT_TABLE,
                    {"ovelha_id": sheep_id, "peso": weight, "data": at.isoformat()},
                )
            except RemoteError as e:
                logger.warning(f"Weighing of animal {sheep_id} not recorded: {e}")
            return
        record = WeightRecord(sheep_id, weight, at, id=new_local_id())
        async with self._db.collection_lock(WEIGHT_STORAGE_KEY):
            history = await self._db.load_collection(WEIGHT_STORAGE_KEY)
            history.append(record.to_dict())
            await self._db.save_collection(WEIGHT_STORAGE_KEY, history)

    async def weight_history(self, sheep_id: str) -> List[WeightRecord]:
        """Weighings of one animal, oldest first."""
        if self.remote_enabled:
            rows = await self._remote.select(
                WEIGHT_TABLE, filters={"ovelha_id": sheep_id}, order="data", ascending=True
            )
            return [self._weight_from_row(r, sheep_id) for r in rows]
        history = [w for w in await self._load_local_weights() if w.sheep_id == sheep_id]
        return sorted(history, key=lambda w: w.at)

    # ── Operations ─────────────────────────────────────────────────────

    async def load_local(self) -> List[Sheep]:
        herd = await super().load_local()
        weights = await self._load_local_weights()
        for sheep in herd:
            sheep.weight_history = sorted(
                (w for w in weights if w.sheep_id == sheep.id), key=lambda w: w.at
            )
        return herd

    async def create(self, entity: Sheep) -> Sheep:
        created = await super().create(entity)
        if created.weight > 0:
            await self._record_weight(created.id, created.weight)
        return created

    async def update(
        self,
        entity_id: str,
        fields: Dict[str, Any],
        weighed_at: Optional[datetime] = None,
    ) -> None:
        """Update fields; a new ``weight`` is also added to the history.

        ``weighed_at`` backdates that weighing (defaults to now).
        """
        record_weight = "weight" in fields
        if record_weight and not self.remote_enabled:
            current = next((s for s in await super().load_local() if s.id == entity_id), None)
            record_weight = current is not None and float(current.weight) != float(fields["weight"])
        await super().update(entity_id, fields)
        if record_weight:
            await self._record_weight(entity_id, float(fields["weight"]), weighed_at)

    @staticmethod
    def in_group(herd: List[Sheep], group_id: str) -> List[Sheep]:
        """Active animals of a group, the ones a group-scoped task covers."""
        return [s for s in herd if s.group_id == group_id and s.status == AnimalStatus.ACTIVE]
