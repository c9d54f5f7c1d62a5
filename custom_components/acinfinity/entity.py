"""Base entity for AC Infinity controllers, ports and sensors."""
from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .models import EntityRecord

if TYPE_CHECKING:
    from .coordinator import ACInfinityCoordinator


class ACInfinityEntity(CoordinatorEntity["ACInfinityCoordinator"]):
    """
    Entity bound to one EntityRecord.

    The record handed over at creation is replaced by the coordinator's copy
    after every successful poll.
    """

    def __init__(self, coordinator: ACInfinityCoordinator, record: EntityRecord, suffix: str | None = None) -> None:
        super().__init__(coordinator)
        self._key = record.key
        self._record = record
        unique_id = f"{DOMAIN}_{record.key.unique_id}"
        self._attr_unique_id = f"{unique_id}_{suffix}" if suffix else unique_id
        self._attr_device_info = coordinator.get_device_info(record.key.device_id)

    @property
    def record(self) -> EntityRecord:
        data = self.coordinator.data
        if data is not None:
            latest = data.records.get(self._key)
            if latest is not None:
                self._record = latest
        return self._record

    @property
    def available(self) -> bool:
        data = self.coordinator.data
        if not super().available or data is None or self._key not in data.records:
            return False
        return self.record.device.online
