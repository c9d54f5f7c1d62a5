"""
EntityProjection: maps synchronizer lifecycle events onto HA entities.

Platforms register an add-entities callback and a factory for the entity
kinds they own. Records created before their platform has registered (the
first poll runs before platforms are forwarded) are buffered and added on
registration.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Iterable

from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.entity import Entity

from .models import EntityKey, EntityKind, EntityRecord

_LOGGER = logging.getLogger(__name__)

EntityFactory = Callable[[EntityRecord], list[Entity]]
AddEntities = Callable[[list[Entity]], None]


class EntityProjection:

    def __init__(self) -> None:
        self._platforms: dict[EntityKind, tuple[AddEntities, EntityFactory]] = {}
        self._pending: dict[EntityKind, dict[EntityKey, EntityRecord]] = defaultdict(dict)
        self._entities: dict[EntityKey, list[Entity]] = {}

    # ------------------------------------------------------------------
    # Platform side
    # ------------------------------------------------------------------

    def register_platform(
        self,
        kinds: Iterable[EntityKind],
        async_add_entities: AddEntities,
        factory: EntityFactory,
    ) -> None:
        """Attach a platform and flush any records buffered for its kinds."""
        for kind in kinds:
            self._platforms[kind] = (async_add_entities, factory)
            for record in self._pending.pop(kind, {}).values():
                self._add(record)

    def entities_for(self, key: EntityKey) -> list[Entity]:
        return list(self._entities.get(key, []))

    # ------------------------------------------------------------------
    # Synchronizer events
    # ------------------------------------------------------------------

    def on_entity_created(self, record: EntityRecord) -> None:
        if record.kind not in self._platforms:
            self._pending[record.kind][record.key] = record
            return
        self._add(record)

    def on_entity_updated(self, record: EntityRecord) -> None:
        # Existing entities refresh themselves from coordinator data
        if record.key in self._entities:
            return
        if record.key in self._pending.get(record.kind, {}):
            self._pending[record.kind][record.key] = record
            return
        _LOGGER.debug("Update for unknown entity %s, adding it", record.key.unique_id)
        self.on_entity_created(record)

    def on_entity_removed(self, key: EntityKey) -> None:
        self._pending.get(key.kind, {}).pop(key, None)
        for entity in self._entities.pop(key, []):
            _LOGGER.debug("Removing entity %s", entity.entity_id)
            self._remove(entity)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _add(self, record: EntityRecord) -> None:
        async_add_entities, factory = self._platforms[record.kind]
        entities = factory(record)
        if not entities:
            return
        self._entities[record.key] = entities
        async_add_entities(entities)

    @staticmethod
    def _remove(entity: Entity) -> None:
        if entity.hass is None:
            return
        if entity.registry_entry is not None:
            # Removing the registry entry also removes the live entity
            er.async_get(entity.hass).async_remove(entity.entity_id)
            return
        entity.hass.async_create_task(entity.async_remove(force_remove=True))
