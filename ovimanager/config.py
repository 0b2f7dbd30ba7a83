"""Application configuration - single source of truth for all constants.

Contains enums (TaskCategory, Recurrence, TaskStatus, NoticePriority, ...),
the remote backend credentials and magic values. Import from here instead of
hardcoding values elsewhere to ensure consistency across the app.
"""
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Load .env if available (not bundled in mobile builds)
try:
    from dotenv import load_dotenv
    load_dotenv(Path(__file__).parent / ".env")
except ImportError:
    pass  # dotenv not available on mobile, skip loading .env


class TaskCategory(Enum):
    """Kind of husbandry task (manejo)."""
    RECURRING = "recorrente"
    SEASONAL = "sazonal"
    UNPREDICTABLE = "imprevisivel"


class TaskStatus(Enum):
    """Lifecycle status of a task."""
    PENDING = "pendente"
    DONE = "concluido"
    CANCELLED = "cancelado"


class Recurrence(Enum):
    """Recurrence rule of a task."""
    NONE = "nenhuma"
    DAILY = "diaria"
    WEEKLY = "semanal"
    MONTHLY = "mensal"
    YEARLY = "anual"


class NoticePriority(Enum):
    """Priority of a notice board message."""
    NORMAL = "normal"
    HIGH = "alta"
    URGENT = "urgente"


class RadarStatus(Enum):
    """Status of a radar analysis. PENDING -> EXECUTED is one-way."""
    PENDING = "pendente"
    EXECUTED = "executado"


class Sex(Enum):
    MALE = "macho"
    FEMALE = "femea"


class AnimalStatus(Enum):
    """Herd status of an animal."""
    ACTIVE = "ativo"
    CULLED = "descarte"
    DEAD = "obito"


class HealthStatus(Enum):
    """Sanitary situation of an animal."""
    HEALTHY = "saudavel"
    SICK_BAY = "enfermaria"
    DEAD = "obito"


class SyncPhase(Enum):
    """Phase of an optimistic mutation on a view's local state."""
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


# ============================================================================
# Remote backend (hosted database/auth service)
# ============================================================================

REMOTE_URL_SCHEME = "http"
REMOTE_KEY_MIN_LENGTH = 20
REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "15"))
REALTIME_POLL_SECONDS = float(os.getenv("REALTIME_POLL_SECONDS", "5"))


@dataclass(frozen=True)
class BackendConfig:
    """Remote store credentials and the mode derived from them.

    Built once at startup and injected into every service. Frozen, so the
    mode cannot change for the lifetime of the process.
    """
    url: str = ""
    anon_key: str = ""

    @property
    def remote_enabled(self) -> bool:
        """True when the credentials look usable (URL scheme + key length)."""
        return bool(
            self.url
            and self.url.startswith(REMOTE_URL_SCHEME)
            and self.anon_key
            and len(self.anon_key) > REMOTE_KEY_MIN_LENGTH
        )

    @classmethod
    def from_env(cls) -> "BackendConfig":
        url = os.getenv("OVIMANAGER_SUPABASE_URL") or os.getenv("SUPABASE_URL", "")
        key = os.getenv("OVIMANAGER_SUPABASE_ANON_KEY") or os.getenv("SUPABASE_ANON_KEY", "")
        return cls(url=url.strip().rstrip("/"), anon_key=key.strip())

    @classmethod
    def local_only(cls) -> "BackendConfig":
        """Config that always routes to the local fallback store."""
        return cls()


# ============================================================================
# Local storage keys (one JSON blob per collection)
# ============================================================================

TASKS_STORAGE_KEY = "ovimanager_manejo_data"
NOTICES_STORAGE_KEY = "ovimanager_aviso_data"
KNOWLEDGE_STORAGE_KEY = "ovimanager_knowledge_data"
RADAR_STORAGE_KEY = "ovimanager_radar_data"
SHEEP_STORAGE_KEY = "ovimanager_sheep_data"
WEIGHT_STORAGE_KEY = "ovimanager_weight_history"
ENTITY_STORAGE_PREFIX = "ovimanager_entity_"

# Registry tables and the column each one is listed by
REGISTRY_TABLES = {
    "racas": "nome",
    "fornecedores": "nome",
    "grupos": "nome",
    "piquetes": "piquete",
}

DEFAULT_PLANNED_TIME = "08:00"
WEEKLY_SCAN_DAYS = 14
PROJECTION_HORIZON_DAYS = 90
PROJECTION_MAX_OCCURRENCES = 1000
DEFAULT_SHEEP_ORIGIN = "Nascido na Fazenda"
DEFAULT_FAMACHA = 1
DEFAULT_BODY_CONDITION = 3

# Manager password guarding task edit/delete
DEFAULT_MANAGER_PASSWORD = os.getenv("DEFAULT_MANAGER_PASSWORD", "1234")
SETTING_MANAGER_PASSWORD = "manager_password"
SETTING_LANGUAGE = "language"
SETTING_SESSION = "auth_session"

DEFAULT_LANGUAGE = os.getenv("OVIMANAGER_LANGUAGE", "pt")
LOG_LEVEL = os.getenv("OVIMANAGER_LOG_LEVEL", "INFO")

# Repeating alert while an urgent notice is unconfirmed
ALERT_REPEAT_SECONDS = float(os.getenv("ALERT_REPEAT_SECONDS", "10"))

# Name under which the kiosk confirms notices
DEFAULT_OPERATOR_NAME = "Operador"

# ============================================================================
# UI
# ============================================================================

SNACK_DURATION_MS = 3000
CLOCK_TICK_SECONDS = 1.0

FONT_SIZE_SM = 10
FONT_SIZE_MD = 12
FONT_SIZE_LG = 14
FONT_SIZE_2XL = 18
FONT_SIZE_4XL = 24
FONT_SIZE_5XL = 32

SPACING_SM = 4
SPACING_MD = 8
SPACING_LG = 10

PADDING_MD = 8
PADDING_XL = 12
PADDING_3XL = 20
PADDING_4XL = 40

BORDER_RADIUS = 10
BORDER_RADIUS_LG = 20
DIALOG_WIDTH_LG = 320
LOGIN_FORM_WIDTH = 360

COLORS = {
    "bg": "#0f172a",
    "card": "#1e293b",
    "card_hover": "#334155",
    "accent": "#10b981",
    "input_bg": "#1e293b",
    "border": "#334155",
    "danger": "#f43f5e",
    "warning": "#f59e0b",
    "done_text": "#64748b",
    "white": "white",
    "urgent_bg": "#4c0519",
    "high_bg": "#451a03",
}

PRIORITY_COLORS = {
    NoticePriority.NORMAL: COLORS["card"],
    NoticePriority.HIGH: COLORS["high_bg"],
    NoticePriority.URGENT: COLORS["urgent_bg"],
}
