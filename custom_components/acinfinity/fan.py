"""
Fan platform: one entity per relevant controller port.

Speed is the port's 0-10 power level exposed as a percentage in steps of
ten; presets switch the port's operating mode.
"""
from __future__ import annotations

import logging
import math
from typing import Any

from homeassistant.components.fan import FanEntity, FanEntityFeature
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util.percentage import percentage_to_ranged_value, ranged_value_to_percentage

from .const import MAX_PORT_SPEED
from .entity import ACInfinityEntity
from .models import EntityKind, EntityRecord, PortMode, PortSnapshot

_LOGGER = logging.getLogger(__name__)

SPEED_RANGE = (1, MAX_PORT_SPEED)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Register the fan factory with the coordinator's projection."""
    coordinator = config_entry.runtime_data

    def _factory(record: EntityRecord) -> list[ACInfinityPortFan]:
        return [ACInfinityPortFan(coordinator, record)]

    coordinator.projection.register_platform([EntityKind.PORT], async_add_entities, _factory)


class ACInfinityPortFan(ACInfinityEntity, FanEntity):
    """A controller port driving a fan (or any other load)."""

    _attr_supported_features = (
        FanEntityFeature.SET_SPEED
        | FanEntityFeature.PRESET_MODE
        | FanEntityFeature.TURN_ON
        | FanEntityFeature.TURN_OFF
    )
    _attr_speed_count = MAX_PORT_SPEED
    _attr_preset_modes = [mode.name.lower() for mode in PortMode]
    _attr_icon = "mdi:fan"

    def __init__(self, coordinator, record: EntityRecord) -> None:
        super().__init__(coordinator, record)
        port: PortSnapshot = record.snapshot
        self._attr_name = f"{record.device.name} {port.label}"

    @property
    def port(self) -> PortSnapshot:
        return self.record.snapshot

    @property
    def is_on(self) -> bool:
        return self.port.power_level > 0

    @property
    def percentage(self) -> int | None:
        level = self.port.power_level
        if level <= 0:
            return 0
        return ranged_value_to_percentage(SPEED_RANGE, level)

    @property
    def preset_mode(self) -> str | None:
        mode = self.port.mode
        return mode.name.lower() if mode is not None else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        port = self.port
        return {
            "port": port.port,
            "load_state": port.load_state,
            "remaining_time": port.remaining_time,
        }

    async def async_set_percentage(self, percentage: int) -> None:
        speed = 0 if percentage <= 0 else math.ceil(percentage_to_ranged_value(SPEED_RANGE, percentage))
        await self.coordinator.async_set_port_speed(self._key, speed)

    async def async_set_preset_mode(self, preset_mode: str) -> None:
        await self.coordinator.async_set_port_mode(self._key, PortMode[preset_mode.upper()])

    async def async_turn_on(
        self,
        percentage: int | None = None,
        preset_mode: str | None = None,
        **kwargs: Any,
    ) -> None:
        if preset_mode is not None:
            await self.async_set_preset_mode(preset_mode)
            return
        if percentage is None:
            await self.coordinator.async_set_port_speed(self._key, MAX_PORT_SPEED)
            return
        await self.async_set_percentage(percentage)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self.coordinator.async_set_port_speed(self._key, 0)
