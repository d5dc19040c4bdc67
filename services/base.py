"""
Common pieces of the producing services.

Each service keeps its own entities in an InMemoryRepository and publishes
an event after every committed change. The repository stands in for the
service's own database; nothing else reads it.
"""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

logger = logging.getLogger("crm_services")

E = TypeVar("E", bound=BaseModel)


class EntityNotFound(LookupError):
    """Raised when a service is asked about an entity it does not have."""

    def __init__(self, entity: str, entity_id: int):
        super().__init__(f"{entity} not found with ID: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InMemoryRepository(Generic[E]):
    """Id-assigning dict store for one entity kind."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        self._items: dict[int, E] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = self._next_id
            self._next_id += 1
            return value

    def save(self, entity: E) -> E:
        with self._lock:
            self._items[entity.id] = entity
        return entity

    def update(self, entity_id: int, **changes) -> tuple[E, E]:
        """
        Validate and store changes to an entity.

        Returns:
            (previous, updated)

        Raises:
            EntityNotFound: if the entity does not exist
            ValidationError: if the changed entity is invalid; nothing is stored
        """
        with self._lock:
            current = self.require(entity_id)
            updated = type(current).model_validate(current.model_dump() | changes)
            self._items[entity_id] = updated
        return current, updated

    def get(self, entity_id: int) -> Optional[E]:
        return self._items.get(entity_id)

    def require(self, entity_id: int) -> E:
        entity = self._items.get(entity_id)
        if entity is None:
            logger.error(f"{self.entity_name} not found: {entity_id}")
            raise EntityNotFound(self.entity_name, entity_id)
        return entity

    def delete(self, entity_id: int) -> E:
        with self._lock:
            entity = self._items.pop(entity_id, None)
        if entity is None:
            raise EntityNotFound(self.entity_name, entity_id)
        return entity

    def all(self) -> list[E]:
        return list(self._items.values())


def announce(publish: Callable[[BaseModel], bool], event_cls: type[BaseModel], **fields) -> bool:
    """
    Build an event and hand it to a publisher helper.

    The change it describes is already committed, so an event that fails
    to build is logged and reported like a failed publish.
    """
    try:
        event = event_cls(**fields)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to build {event_cls.__name__}: {e}")
        return False
    return publish(event)
