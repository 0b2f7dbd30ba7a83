import logging
from datetime import datetime
from typing import Any, Dict, List

from config import NOTICES_STORAGE_KEY, NoticePriority
from events import AppEvent, event_bus
from formatters import DateFormatter
from models.entities import Notice, ReadConfirmation
from services.persistence import CollectionService
from services.remote_client import RemoteError

logger = logging.getLogger(__name__)


class NoticeService(CollectionService[Notice]):
    """Notice board messages (avisos) and their read confirmations."""
    table = "avisos"
    storage_key = NOTICES_STORAGE_KEY
    field_columns = {
        "title": "titulo",
        "body": "conteudo",
        "priority": "prioridade",
        "author": "autor",
        "confirmations": "confirmacoes",
    }

    created_event = AppEvent.NOTICE_CREATED
    deleted_event = AppEvent.NOTICE_DELETED

    def entity_from_local(self, record: Dict[str, Any]) -> Notice:
        return Notice.from_dict(record)

    def entity_to_local(self, entity: Notice) -> Dict[str, Any]:
        return entity.to_dict()

    def entity_from_row(self, row: Dict[str, Any]) -> Notice:
        try:
            priority = NoticePriority(row.get("prioridade"))
        except ValueError:
            priority = NoticePriority.NORMAL
        return Notice(
            id=row.get("id"),
            title=row.get("titulo") or "",
            body=row.get("conteudo") or "",
            priority=priority,
            author=row.get("autor"),
            confirmations=[ReadConfirmation.from_dict(c) for c in row.get("confirmacoes") or []],
            created_at=DateFormatter.parse_timestamp(row.get("created_at")),
        )

    def entity_to_row(self, entity: Notice) -> Dict[str, Any]:
        return {
            "titulo": entity.title,
            "conteudo": entity.body,
            "prioridade": entity.priority.value,
            "autor": entity.author,
            "confirmacoes": [c.to_dict() for c in entity.confirmations],
        }

    def fields_to_row(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        row = super().fields_to_row(fields)
        if "confirmations" in fields:
            row["confirmacoes"] = [c.to_dict() for c in fields["confirmations"]]
        return row

    async def confirm_read(self, notice_id: str, user: str) -> bool:
        """Record that ``user`` read the notice.

        Idempotent: returns False without writing when the user already
        confirmed, True when a confirmation was appended.
        """
        now = datetime.now()
        if self.remote_enabled:
            added = await self._confirm_remote(notice_id, user, now)
        else:
            added = await self._confirm_local(notice_id, user, now)
        if added:
            event_bus.emit(AppEvent.NOTICE_CONFIRMED, {"notice_id": notice_id, "user": user})
        return added

    async def _confirm_remote(self, notice_id: str, user: str, now: datetime) -> bool:
        try:
            row = await self._remote.select_one(
                self.table, columns="confirmacoes", filters={"id": notice_id}
            )
            current: List[Dict[str, Any]] = (row or {}).get("confirmacoes") or []
            if any(c.get("user") == user for c in current):
                return False
            await self._remote.update(
                self.table,
                {"confirmacoes": current + [ReadConfirmation(user, now).to_dict()]},
                {"id": notice_id},
            )
        except RemoteError as e:
            logger.error(f"Error confirming notice {notice_id} for {user}: {e}")
            raise
        return True

    async def _confirm_local(self, notice_id: str, user: str, now: datetime) -> bool:
        def apply(records: List[Dict[str, Any]]) -> bool:
            idx = self._index_of(records, notice_id)
            if idx == -1:
                logger.warning(f"Confirmation of missing notice {notice_id} ignored")
                return False
            current = records[idx].get("confirmations") or []
            if any(c.get("user") == user for c in current):
                return False
            records[idx]["confirmations"] = current + [ReadConfirmation(user, now).to_dict()]
            return True

        return await self._mutate_local(apply)

    @staticmethod
    def unconfirmed_urgent(notices: List[Notice], user: str) -> List[Notice]:
        return [n for n in notices if n.is_urgent and not n.is_confirmed_by(user)]
