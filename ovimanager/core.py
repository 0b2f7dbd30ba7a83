"""Headless bootstrap for OviManager services.

Initializes the service layer without any Flet dependency, suitable for
scripts and testing.

Usage:
    from core import bootstrap, shutdown

    svc = await bootstrap(db_path=Path("farm.db"))
    tasks = await svc.tasks.get_all()
    await shutdown(svc)
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import httpx

import database
from config import BackendConfig
from database import Database
from events import event_bus
from models.entities import AppState
from registry import registry, Services
from services.auth import AuthService
from services.entity_service import EntityService, build_entity_services
from services.knowledge_service import KnowledgeService
from services.notice_service import NoticeService
from services.radar_service import RadarService
from services.realtime import ChangeBridge, LocalChangeFeed
from services.remote_client import ChangeFeed, RemoteClient
from services.settings_service import SettingsService
from services.sheep_service import SheepService
from services.task_service import TaskService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Container holding all initialized services."""
    state: AppState
    backend: BackendConfig
    db: Database
    remote: Optional[RemoteClient]
    bridge: ChangeBridge
    tasks: TaskService
    notices: NoticeService
    knowledge: KnowledgeService
    radar: RadarService
    sheep: SheepService
    entities: Dict[str, EntityService]
    auth: AuthService
    settings: SettingsService


async def bootstrap(
    db_path: Optional[Union[str, Path]] = None,
    backend: Optional[BackendConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """Build the service layer.

    Args:
        db_path: Local database file. Uses ``OVIMANAGER_DB_PATH`` or
            ``ovimanager.db`` if None.
        backend: Remote credentials. Read from the environment if None.
        transport: Optional httpx transport for the remote client (tests).

    Returns:
        ServiceContainer with all services ready to use.
    """
    backend = backend or BackendConfig.from_env()
    db = Database(db_path if db_path is not None else database.DB_PATH)
    await db.init_db()

    remote: Optional[RemoteClient] = None
    feed: ChangeFeed
    if backend.remote_enabled:
        remote = RemoteClient(backend, transport=transport)
        feed = remote
        logger.info(f"Remote store enabled at {backend.url}")
    else:
        feed = LocalChangeFeed()
        logger.info("Remote store not configured, using local data only")

    settings = SettingsService(db)
    state = AppState(language=await settings.load_language())

    auth = AuthService(db, backend, remote)
    state.session = await auth.restore()

    container = ServiceContainer(
        state=state,
        backend=backend,
        db=db,
        remote=remote,
        bridge=ChangeBridge(feed),
        tasks=TaskService(db, backend, remote),
        notices=NoticeService(db, backend, remote),
        knowledge=KnowledgeService(db, backend, remote),
        radar=RadarService(db, backend, remote),
        sheep=SheepService(db, backend, remote),
        entities=build_entity_services(db, backend, remote),
        auth=auth,
        settings=settings,
    )

    registry.register(Services.EVENT_BUS, event_bus)
    registry.register(Services.DATABASE, db)
    registry.register(Services.REMOTE, remote)
    registry.register(Services.TASKS, container.tasks)
    registry.register(Services.NOTICES, container.notices)
    registry.register(Services.KNOWLEDGE, container.knowledge)
    registry.register(Services.RADAR, container.radar)
    registry.register(Services.SHEEP, container.sheep)
    registry.register(Services.AUTH, auth)
    registry.register(Services.SETTINGS, settings)

    return container


async def shutdown(container: ServiceContainer) -> None:
    """Stop change feeds and close connections."""
    container.bridge.close()
    if container.remote is not None:
        await container.remote.close()
    await container.db.close()
    registry.clear()
