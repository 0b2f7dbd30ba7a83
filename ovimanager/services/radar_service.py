import logging
from typing import Any, Dict

from config import RADAR_STORAGE_KEY, RadarStatus
from formatters import DateFormatter
from models.entities import RadarAnalysis
from services.persistence import CollectionService

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """An executed radar analysis cannot go back to pending."""
    pass


class RadarService(CollectionService[RadarAnalysis]):
    """Herd health analyses. Status only moves pending -> executed."""
    table = "radar_analises"
    storage_key = RADAR_STORAGE_KEY
    field_columns = {
        "title": "titulo",
        "description": "descricao",
        "recommendation": "recomendacao",
        "animal_ids": "ovelhas_ids",
        "status": "status",
    }

    def entity_from_local(self, record: Dict[str, Any]) -> RadarAnalysis:
        return RadarAnalysis.from_dict(record)

    def entity_to_local(self, entity: RadarAnalysis) -> Dict[str, Any]:
        return entity.to_dict()

    def entity_from_row(self, row: Dict[str, Any]) -> RadarAnalysis:
        try:
            status = RadarStatus(row.get("status"))
        except ValueError:
            status = RadarStatus.PENDING
        return RadarAnalysis(
            id=row.get("id"),
            title=row.get("titulo") or "",
            description=row.get("descricao") or "",
            recommendation=row.get("recomendacao") or "",
            animal_ids=list(row.get("ovelhas_ids") or []),
            status=status,
            created_at=DateFormatter.parse_timestamp(row.get("created_at")),
        )

    def entity_to_row(self, entity: RadarAnalysis) -> Dict[str, Any]:
        return {
            "titulo": entity.title,
            "descricao": entity.description,
            "recomendacao": entity.recommendation,
            "ovelhas_ids": list(entity.animal_ids),
            "status": entity.status.value,
        }

    def prepare_new(self, entity: RadarAnalysis) -> RadarAnalysis:
        entity.status = RadarStatus.PENDING
        return entity

    async def _current_status(self, entity_id: str) -> RadarStatus:
        if self.remote_enabled:
            row = await self._remote.select_one(self.table, columns="status", filters={"id": entity_id})
            if row is None:
                raise KeyError(f"Radar analysis {entity_id} not found")
            return RadarStatus(row["status"])
        for analysis in await self.load_local():
            if analysis.id == entity_id:
                return analysis.status
        raise KeyError(f"Radar analysis {entity_id} not found")

    async def update(self, entity_id: str, fields: Dict[str, Any]) -> None:
        """Update fields, rejecting a move from executed back to pending.

        Raises:
            InvalidTransitionError: If the analysis is executed and ``fields``
                sets status to pending.
        """
        if fields.get("status") == RadarStatus.PENDING:
            if await self._current_status(entity_id) == RadarStatus.EXECUTED:
                raise InvalidTransitionError(f"Radar analysis {entity_id} is already executed")
        await super().update(entity_id, fields)

    async def mark_executed(self, entity_id: str) -> None:
        await super().update(entity_id, {"status": RadarStatus.EXECUTED})
        logger.info(f"Radar analysis {entity_id} marked as executed")
