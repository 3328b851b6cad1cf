"""
Per-application service registry.

Services are wired once in ``build_container`` and built lazily on first
use; every later lookup in the same app returns the same instance, which is
what keeps the suppressed mailer's outbox alive between requests.
"""

from typing import Any, Callable, Dict, Set, Type, TypeVar

from flask import current_app

from storefront.core.config import Config

T = TypeVar("T")

CONFIG_KEY = "storefront.config"
CONTAINER_KEY = "storefront.container"


class DependencyContainer:
    def __init__(self):
        self._instances: Dict[type, Any] = {}
        self._factories: Dict[type, Callable[[], Any]] = {}
        self._building: Set[type] = set()

    def register_instance(self, cls: Type[T], instance: T) -> None:
        self._instances[cls] = instance

    def register(self, cls: Type[T], factory: Callable[[], T]) -> None:
        """Register how to build ``cls``; replaces any instance built earlier."""
        self._factories[cls] = factory
        self._instances.pop(cls, None)

    def get(self, cls: Type[T]) -> T:
        if cls in self._instances:
            return self._instances[cls]
        if cls not in self._factories:
            raise LookupError(f"{cls.__name__} is not registered")
        if cls in self._building:
            raise RuntimeError(f"Circular dependency while building {cls.__name__}")

        self._building.add(cls)
        try:
            instance = self._factories[cls]()
        finally:
            self._building.discard(cls)
        self._instances[cls] = instance
        return instance


def get_config() -> Config:
    """Configuration of the running application"""
    return current_app.extensions[CONFIG_KEY]


def get_service(cls: Type[T]) -> T:
    return current_app.extensions[CONTAINER_KEY].get(cls)
