from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, List, Dict, Any

from config import (
    AnimalStatus,
    DEFAULT_BODY_CONDITION,
    DEFAULT_FAMACHA,
    DEFAULT_OPERATOR_NAME,
    DEFAULT_PLANNED_TIME,
    DEFAULT_SHEEP_ORIGIN,
    HealthStatus,
    NoticePriority,
    RadarStatus,
    Recurrence,
    Sex,
    TaskCategory,
    TaskStatus,
)
from formatters import DateFormatter


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_enum(enum_cls, raw: Any, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


@dataclass
class RecurrenceConfig:
    """Parameters of a recurrence rule plus the occurrence counter.

    weekdays use 0=Sunday .. 6=Saturday. repeat_limit None means unlimited.
    """
    interval: int = 1
    weekdays: List[int] = field(default_factory=list)
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    repeat_limit: Optional[int] = None
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval": self.interval,
            "weekdays": list(self.weekdays),
            "day_of_month": self.day_of_month,
            "month_of_year": self.month_of_year,
            "repeat_limit": self.repeat_limit,
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "RecurrenceConfig":
        d = d or {}
        return cls(
            interval=d.get("interval") or 1,
            weekdays=list(d.get("weekdays") or []),
            day_of_month=d.get("day_of_month"),
            month_of_year=d.get("month_of_year"),
            repeat_limit=d.get("repeat_limit"),
            count=d.get("count") or 0,
        )

    def to_remote(self) -> Dict[str, Any]:
        """JSON stored in manejos.recorrencia_config (mesAnual is 0-11)."""
        row: Dict[str, Any] = {
            "intervalo": self.interval,
            "diasSemana": list(self.weekdays),
            "limiteRepeticoes": self.repeat_limit,
            "contagem": self.count,
        }
        if self.day_of_month is not None:
            row["diaMes"] = self.day_of_month
        if self.month_of_year is not None:
            row["mesAnual"] = self.month_of_year - 1
        return row

    @classmethod
    def from_remote(cls, d: Optional[Dict[str, Any]]) -> "RecurrenceConfig":
        d = d or {}
        month = d.get("mesAnual")
        return cls(
            interval=d.get("intervalo") or 1,
            weekdays=list(d.get("diasSemana") or []),
            day_of_month=d.get("diaMes"),
            month_of_year=month + 1 if month is not None else None,
            repeat_limit=d.get("limiteRepeticoes"),
            count=d.get("contagem") or 0,
        )


@dataclass
class Task:
    """Scheduled husbandry action (manejo)."""
    title: str
    planned_date: date
    category: TaskCategory = TaskCategory.RECURRING
    recurrence: Recurrence = Recurrence.NONE
    recurrence_config: RecurrenceConfig = field(default_factory=RecurrenceConfig)
    planned_time: str = DEFAULT_PLANNED_TIME
    status: TaskStatus = TaskStatus.PENDING
    instructions: str = ""
    notes: str = ""
    executor: Optional[str] = None
    executed_at: Optional[datetime] = None
    animal_ids: List[str] = field(default_factory=list)
    group_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    edited_by_manager: bool = False
    last_edited_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": _enum_value(self.category),
            "recurrence": _enum_value(self.recurrence),
            "recurrence_config": self.recurrence_config.to_dict(),
            "planned_date": DateFormatter.local_date_string(self.planned_date),
            "planned_time": self.planned_time,
            "status": _enum_value(self.status),
            "instructions": self.instructions,
            "notes": self.notes,
            "executor": self.executor,
            "executed_at": _iso(self.executed_at),
            "animal_ids": list(self.animal_ids),
            "group_id": self.group_id,
            "created_at": _iso(self.created_at),
            "edited_by_manager": self.edited_by_manager,
            "last_edited_at": _iso(self.last_edited_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Task":
        return cls(
            id=d.get("id"),
            title=d["title"],
            planned_date=DateFormatter.parse_local_date(d.get("planned_date")) or date.today(),
            category=_parse_enum(TaskCategory, d.get("category"), TaskCategory.RECURRING),
            recurrence=_parse_enum(Recurrence, d.get("recurrence"), Recurrence.NONE),
            recurrence_config=RecurrenceConfig.from_dict(d.get("recurrence_config")),
            planned_time=d.get("planned_time") or DEFAULT_PLANNED_TIME,
            status=_parse_enum(TaskStatus, d.get("status"), TaskStatus.PENDING),
            instructions=d.get("instructions") or "",
            notes=d.get("notes") or "",
            executor=d.get("executor"),
            executed_at=DateFormatter.parse_timestamp(d.get("executed_at")),
            animal_ids=list(d.get("animal_ids") or []),
            group_id=d.get("group_id"),
            created_at=DateFormatter.parse_timestamp(d.get("created_at")),
            edited_by_manager=bool(d.get("edited_by_manager", False)),
            last_edited_at=DateFormatter.parse_timestamp(d.get("last_edited_at")),
        )

    def create_next_occurrence(self, next_date: date, count: int) -> "Task":
        """Pending copy of this task planned for ``next_date``.

        Keeps the template (title, category, rule, instructions, group,
        animals, time) and stores ``count`` as the occurrence counter.
        """
        config = RecurrenceConfig.from_dict(self.recurrence_config.to_dict())
        config.count = count
        return Task(
            title=self.title,
            planned_date=next_date,
            category=self.category,
            recurrence=self.recurrence,
            recurrence_config=config,
            planned_time=self.planned_time,
            instructions=self.instructions,
            animal_ids=list(self.animal_ids),
            group_id=self.group_id,
        )


@dataclass
class ReadConfirmation:
    """A user's read confirmation of a notice."""
    user: str
    at: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"user": self.user, "at": self.at.isoformat()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReadConfirmation":
        return cls(
            user=d["user"],
            at=DateFormatter.parse_timestamp(d.get("at")) or datetime.now(),
        )


@dataclass
class Notice:
    """Broadcast message (aviso) that each user confirms once."""
    title: str
    body: str
    priority: NoticePriority = NoticePriority.NORMAL
    author: Optional[str] = None
    confirmations: List[ReadConfirmation] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_urgent(self) -> bool:
        return self.priority == NoticePriority.URGENT

    def is_confirmed_by(self, user: str) -> bool:
        return any(c.user == user for c in self.confirmations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "priority": _enum_value(self.priority),
            "author": self.author,
            "confirmations": [c.to_dict() for c in self.confirmations],
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Notice":
        return cls(
            id=d.get("id"),
            title=d.get("title") or "",
            body=d.get("body") or "",
            priority=_parse_enum(NoticePriority, d.get("priority"), NoticePriority.NORMAL),
            author=d.get("author"),
            confirmations=[ReadConfirmation.from_dict(c) for c in d.get("confirmations") or []],
            created_at=DateFormatter.parse_timestamp(d.get("created_at")),
        )


@dataclass
class KnowledgeEntry:
    """Knowledge base article. Append/delete only."""
    title: str
    subject: str
    content: str
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subject": self.subject,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "KnowledgeEntry":
        return cls(
            id=d.get("id"),
            title=d.get("title") or "",
            subject=d.get("subject") or "",
            content=d.get("content") or "",
            created_at=DateFormatter.parse_timestamp(d.get("created_at")),
        )


@dataclass
class RadarAnalysis:
    """Herd health finding with a recommended action."""
    title: str
    description: str = ""
    recommendation: str = ""
    animal_ids: List[str] = field(default_factory=list)
    status: RadarStatus = RadarStatus.PENDING
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_executed(self) -> bool:
        return self.status == RadarStatus.EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "animal_ids": list(self.animal_ids),
            "status": _enum_value(self.status),
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RadarAnalysis":
        return cls(
            id=d.get("id"),
            title=d.get("title") or "",
            description=d.get("description") or "",
            recommendation=d.get("recommendation") or "",
            animal_ids=list(d.get("animal_ids") or []),
            status=_parse_enum(RadarStatus, d.get("status"), RadarStatus.PENDING),
            created_at=DateFormatter.parse_timestamp(d.get("created_at")),
        )


@dataclass
class WeightRecord:
    """One weighing of an animal."""
    sheep_id: str
    weight: float
    at: datetime
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sheep_id": self.sheep_id,
            "weight": self.weight,
            "at": self.at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WeightRecord":
        return cls(
            id=d.get("id"),
            sheep_id=d["sheep_id"],
            weight=float(d.get("weight") or 0),
            at=DateFormatter.parse_timestamp(d.get("at")) or datetime.now(),
        )


@dataclass
class Sheep:
    """An animal of the herd, identified by its ear tag."""
    tag: str
    name: str = ""
    sex: Sex = Sex.FEMALE
    birth_date: Optional[date] = None
    breed_id: Optional[str] = None
    origin: str = DEFAULT_SHEEP_ORIGIN
    paddock_id: Optional[str] = None
    group_id: Optional[str] = None
    weight: float = 0.0
    health_notes: str = ""
    health: HealthStatus = HealthStatus.HEALTHY
    famacha: int = DEFAULT_FAMACHA
    body_condition: float = DEFAULT_BODY_CONDITION
    status: AnimalStatus = AnimalStatus.ACTIVE
    pregnant: bool = False
    sire: Optional[str] = None
    dam: Optional[str] = None
    notes: str = ""
    weight_history: List[WeightRecord] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tag": self.tag,
            "name": self.name,
            "sex": _enum_value(self.sex),
            "birth_date": DateFormatter.local_date_string(self.birth_date) if self.birth_date else None,
            "breed_id": self.breed_id,
            "origin": self.origin,
            "paddock_id": self.paddock_id,
            "group_id": self.group_id,
            "weight": self.weight,
            "health_notes": self.health_notes,
            "health": _enum_value(self.health),
            "famacha": self.famacha,
            "body_condition": self.body_condition,
            "status": _enum_value(self.status),
            "pregnant": self.pregnant,
            "sire": self.sire,
            "dam": self.dam,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Sheep":
        return cls(
            id=d.get("id"),
            tag=d.get("tag") or "",
            name=d.get("name") or "",
            sex=_parse_enum(Sex, d.get("sex"), Sex.FEMALE),
            birth_date=DateFormatter.parse_local_date(d.get("birth_date")),
            breed_id=d.get("breed_id"),
            origin=d.get("origin") or DEFAULT_SHEEP_ORIGIN,
            paddock_id=d.get("paddock_id"),
            group_id=d.get("group_id"),
            weight=float(d.get("weight") or 0),
            health_notes=d.get("health_notes") or "",
            health=_parse_enum(HealthStatus, d.get("health"), HealthStatus.HEALTHY),
            famacha=d.get("famacha") or DEFAULT_FAMACHA,
            body_condition=d.get("body_condition") or DEFAULT_BODY_CONDITION,
            status=_parse_enum(AnimalStatus, d.get("status"), AnimalStatus.ACTIVE),
            pregnant=bool(d.get("pregnant", False)),
            sire=d.get("sire"),
            dam=d.get("dam"),
            notes=d.get("notes") or "",
            created_at=DateFormatter.parse_timestamp(d.get("created_at")),
        )


@dataclass
class Session:
    """Authenticated session returned by the auth endpoint."""
    access_token: str
    refresh_token: str = ""
    user_id: str = ""
    email: str = ""
    expires_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user_id": self.user_id,
            "email": self.email,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Session":
        return cls(
            access_token=d["access_token"],
            refresh_token=d.get("refresh_token") or "",
            user_id=d.get("user_id") or "",
            email=d.get("email") or "",
            expires_at=d.get("expires_at"),
        )


@dataclass
class AppState:
    """State shared by the Flet views."""
    session: Optional[Session] = None
    language: str = "pt"
    operator_name: str = DEFAULT_OPERATOR_NAME

    @property
    def user_label(self) -> str:
        if self.session and self.session.email:
            return self.session.email
        return self.operator_name
