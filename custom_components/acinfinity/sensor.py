"""
Sensor platform for AC Infinity controllers.

Controller records become built-in temperature / humidity / VPD sensors;
auxiliary sensor records (probes, CO2, soil, ...) become one sensor each.
"""
from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    CONCENTRATION_PARTS_PER_MILLION,
    PERCENTAGE,
    UnitOfPressure,
    UnitOfTemperature,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import CO2_ABNORMAL_THRESHOLD
from .entity import ACInfinityEntity
from .models import EntityKind, EntityRecord, SensorKind, SensorSnapshot

_LOGGER = logging.getLogger(__name__)

# suffix → (label, DeviceSnapshot attribute, device class, unit)
CONTROLLER_SENSORS: dict[str, tuple[str, str, SensorDeviceClass, str]] = {
    "temperature": ("Temperature", "ambient_temperature", SensorDeviceClass.TEMPERATURE, UnitOfTemperature.CELSIUS),
    "humidity": ("Humidity", "ambient_humidity", SensorDeviceClass.HUMIDITY, PERCENTAGE),
    "vpd": ("VPD", "ambient_vpd", SensorDeviceClass.PRESSURE, UnitOfPressure.KPA),
}

# SensorKind → (label, device class, unit)
AUXILIARY_SENSORS: dict[SensorKind, tuple[str, SensorDeviceClass | None, str | None]] = {
    SensorKind.PROBE_TEMPERATURE_F: ("Probe Temperature", SensorDeviceClass.TEMPERATURE, UnitOfTemperature.FAHRENHEIT),
    SensorKind.PROBE_TEMPERATURE_C: ("Probe Temperature", SensorDeviceClass.TEMPERATURE, UnitOfTemperature.CELSIUS),
    SensorKind.PROBE_HUMIDITY: ("Probe Humidity", SensorDeviceClass.HUMIDITY, PERCENTAGE),
    SensorKind.PROBE_VPD: ("Probe VPD", SensorDeviceClass.PRESSURE, UnitOfPressure.KPA),
    SensorKind.CONTROLLER_TEMPERATURE_F: ("Controller Temperature", SensorDeviceClass.TEMPERATURE, UnitOfTemperature.FAHRENHEIT),
    SensorKind.CONTROLLER_TEMPERATURE_C: ("Controller Temperature", SensorDeviceClass.TEMPERATURE, UnitOfTemperature.CELSIUS),
    SensorKind.CONTROLLER_HUMIDITY: ("Controller Humidity", SensorDeviceClass.HUMIDITY, PERCENTAGE),
    SensorKind.CONTROLLER_VPD: ("Controller VPD", SensorDeviceClass.PRESSURE, UnitOfPressure.KPA),
    SensorKind.SOIL: ("Soil Moisture", SensorDeviceClass.MOISTURE, PERCENTAGE),
    SensorKind.CO2: ("CO2", SensorDeviceClass.CO2, CONCENTRATION_PARTS_PER_MILLION),
    SensorKind.LIGHT: ("Light", None, PERCENTAGE),
    SensorKind.WATER: ("Water", None, None),
}


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Register the sensor factory with the coordinator's projection."""
    coordinator = config_entry.runtime_data

    def _factory(record: EntityRecord) -> list[SensorEntity]:
        if record.kind is EntityKind.CONTROLLER:
            return [
                ACInfinityControllerSensor(coordinator, record, suffix)
                for suffix, (_, attribute, _, _) in CONTROLLER_SENSORS.items()
                if getattr(record.snapshot, attribute) is not None
            ]
        return [ACInfinityAuxiliarySensor(coordinator, record)]

    coordinator.projection.register_platform(
        [EntityKind.CONTROLLER, EntityKind.SENSOR], async_add_entities, _factory
    )


class ACInfinityControllerSensor(ACInfinityEntity, SensorEntity):
    """Built-in controller reading (temperature, humidity or VPD)."""

    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator, record: EntityRecord, suffix: str) -> None:
        super().__init__(coordinator, record, suffix)
        label, self._attribute, device_class, unit = CONTROLLER_SENSORS[suffix]
        self._attr_name = f"{record.device.name} {label}"
        self._attr_device_class = device_class
        self._attr_native_unit_of_measurement = unit

    @property
    def native_value(self) -> float | None:
        return getattr(self.record.device, self._attribute)


class ACInfinityAuxiliarySensor(ACInfinityEntity, SensorEntity):
    """Sensor plugged into one of the controller's ports."""

    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator, record: EntityRecord) -> None:
        super().__init__(coordinator, record)
        sensor: SensorSnapshot = record.snapshot
        label, device_class, unit = AUXILIARY_SENSORS[sensor.kind]
        self._attr_name = f"{record.device.name} {label} {sensor.port}"
        self._attr_device_class = device_class
        self._attr_native_unit_of_measurement = unit

    @property
    def sensor(self) -> SensorSnapshot:
        return self.record.snapshot

    @property
    def native_value(self) -> float:
        return self.sensor.value

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        if self.sensor.kind is not SensorKind.CO2:
            return None
        return {"abnormal": self.sensor.value > CO2_ABNORMAL_THRESHOLD}
