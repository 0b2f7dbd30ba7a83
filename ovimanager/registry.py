"""
Central service registry.

Services are registered once by ``core.bootstrap`` and looked up by name
from places that cannot receive them through a constructor, such as Flet
event handlers built deep inside a view.

Usage:
    from registry import registry, Services

    registry.register(Services.TASKS, task_service)
    tasks = registry.require(Services.TASKS)
"""
import threading
from typing import Optional, Dict, Any


class ServiceRegistry:
    """Thread-safe name -> service lookup."""
    _instance: Optional["ServiceRegistry"] = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> "ServiceRegistry":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._services: Dict[str, Any] = {}
                    cls._instance._lock = threading.Lock()
        return cls._instance

    def register(self, name: str, service: Any) -> None:
        with self._lock:
            self._services[name] = service

    def get(self, name: str) -> Optional[Any]:
        """Return the service registered under ``name`` or None."""
        with self._lock:
            return self._services.get(name)

    def require(self, name: str) -> Any:
        """Return the service registered under ``name``.

        Raises:
            KeyError: If nothing was registered under that name.
        """
        with self._lock:
            if name not in self._services:
                raise KeyError(f"Service '{name}' not registered. "
                               f"Call core.bootstrap() first.")
            return self._services[name]

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._services

    def clear(self) -> None:
        with self._lock:
            self._services.clear()


registry = ServiceRegistry()


class Services:
    """Service name constants for registry access."""
    EVENT_BUS = "event_bus"
    DATABASE = "database"
    REMOTE = "remote"
    TASKS = "tasks"
    NOTICES = "notices"
    KNOWLEDGE = "knowledge"
    RADAR = "radar"
    SHEEP = "sheep"
    AUTH = "auth"
    SETTINGS = "settings"
