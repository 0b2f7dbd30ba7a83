from typing import Any, Dict, List

from config import KNOWLEDGE_STORAGE_KEY
from formatters import DateFormatter
from models.entities import KnowledgeEntry
from services.persistence import CollectionService


class ReadOnlyEntryError(Exception):
    """Knowledge entries are append-only; they cannot be edited."""
    pass


class KnowledgeService(CollectionService[KnowledgeEntry]):
    """Knowledge base articles. Entries are only appended or deleted."""
    table = "conhecimento"
    storage_key = KNOWLEDGE_STORAGE_KEY
    field_columns = {
        "title": "titulo",
        "subject": "assunto",
        "content": "conteudo",
    }

    def entity_from_local(self, record: Dict[str, Any]) -> KnowledgeEntry:
        return KnowledgeEntry.from_dict(record)

    def entity_to_local(self, entity: KnowledgeEntry) -> Dict[str, Any]:
        return entity.to_dict()

    def entity_from_row(self, row: Dict[str, Any]) -> KnowledgeEntry:
        return KnowledgeEntry(
            id=row.get("id"),
            title=row.get("titulo") or "",
            subject=row.get("assunto") or "",
            content=row.get("conteudo") or "",
            created_at=DateFormatter.parse_timestamp(row.get("created_at")),
        )

    def entity_to_row(self, entity: KnowledgeEntry) -> Dict[str, Any]:
        return {
            "titulo": entity.title,
            "assunto": entity.subject,
            "conteudo": entity.content,
        }

    async def update(self, entity_id: str, fields: Dict[str, Any]) -> None:
        raise ReadOnlyEntryError(f"Knowledge entry {entity_id} cannot be edited")

    async def search(self, term: str) -> List[KnowledgeEntry]:
        """Entries whose title, subject or content contain ``term``."""
        needle = term.strip().lower()
        entries = await self.get_all()
        if not needle:
            return entries
        return [
            e for e in entries
            if needle in e.title.lower()
            or needle in e.subject.lower()
            or needle in e.content.lower()
        ]
