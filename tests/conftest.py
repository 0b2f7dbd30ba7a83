"""Shared fixtures for OviManager tests."""
import pytest
import pytest_asyncio

from config import BackendConfig
from database import Database
from events import event_bus
from i18n import set_language
from registry import registry
from services.notice_service import NoticeService
from services.settings_service import SettingsService
from services.task_service import TaskService

from fakes import FakeRemoteStore

REMOTE_BACKEND = BackendConfig(
    url="https://example.supabase.co",
    anon_key="test-anon-key-0123456789abcdef",
)


@pytest.fixture(autouse=True)
def clean_singletons():
    """Clear event subscriptions and service registrations around each test."""
    event_bus.clear()
    registry.clear()
    set_language("pt")
    yield
    event_bus.clear()
    registry.clear()


@pytest_asyncio.fixture
async def db() -> Database:
    """Fresh in-memory database per test."""
    database = Database(":memory:")
    await database.init_db()
    yield database
    await database.close()


@pytest.fixture
def local_backend() -> BackendConfig:
    return BackendConfig.local_only()


@pytest.fixture
def remote_backend() -> BackendConfig:
    return REMOTE_BACKEND


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def local_tasks(db, local_backend) -> TaskService:
    return TaskService(db, local_backend)


@pytest.fixture
def remote_tasks(db, remote_backend, remote) -> TaskService:
    return TaskService(db, remote_backend, remote)


@pytest.fixture
def local_notices(db, local_backend) -> NoticeService:
    return NoticeService(db, local_backend)


@pytest.fixture
def remote_notices(db, remote_backend, remote) -> NoticeService:
    return NoticeService(db, remote_backend, remote)


@pytest.fixture
def settings(db) -> SettingsService:
    return SettingsService(db)
