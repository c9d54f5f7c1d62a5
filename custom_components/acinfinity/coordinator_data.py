"""
CoordinatorData: immutable snapshot of all AC Infinity data shared with entities.

This is a pure data module with no HA or network dependencies.
"""
from __future__ import annotations

import dataclasses

from .models import DeviceSnapshot, EntityKey, EntityRecord


@dataclasses.dataclass(frozen=True)
class CoordinatorData:
    """
    Typed, copy-on-write snapshot produced by one successful poll.

    Always replace via dataclasses.replace() and never mutate in place.
    """

    # device_id → controller as seen in the last successful poll
    devices: dict[str, DeviceSnapshot] = dataclasses.field(default_factory=dict)

    # EntityKey → record for every entity that exists after the last poll
    records: dict[EntityKey, EntityRecord] = dataclasses.field(default_factory=dict)

    def get_port(self, key: EntityKey):
        device = self.devices.get(key.device_id)
        if device is None or key.port is None:
            return None
        return device.get_port(key.port)
