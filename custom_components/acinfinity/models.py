"""
Domain models for the AC Infinity integration.

Pure data classes describing controllers, ports, sensors and the records the
synchronizer keeps about them. No HTTP, API logic or Home Assistant
internals in here.
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
import time
from typing import Any

from .const import NO_LOAD_RESISTANCE


class HardwareGeneration(enum.Enum):
    """Firmware era of a controller; decides how settings payloads are built."""

    LEGACY = "legacy"
    NEW_FRAMEWORK = "new_framework"


class PortMode(enum.IntEnum):
    OFF = 1
    ON = 2
    AUTO = 3
    TIMER_TO_ON = 4
    TIMER_TO_OFF = 5
    CYCLE = 6
    SCHEDULE = 7
    VPD = 8


class SensorKind(enum.IntEnum):
    PROBE_TEMPERATURE_F = 0
    PROBE_TEMPERATURE_C = 1
    PROBE_HUMIDITY = 2
    PROBE_VPD = 3
    CONTROLLER_TEMPERATURE_F = 4
    CONTROLLER_TEMPERATURE_C = 5
    CONTROLLER_HUMIDITY = 6
    CONTROLLER_VPD = 7
    SOIL = 10
    CO2 = 11
    LIGHT = 12
    WATER = 20


class EntityKind(enum.Enum):
    CONTROLLER = "controller"
    PORT = "port"
    SENSOR = "sensor"


class CommandTarget(enum.Enum):
    """Which settings object a command rewrites."""

    PORT_MODE = "port_mode"
    ADVANCED = "advanced"


@dataclasses.dataclass(frozen=True)
class EntityKey:
    """
    Stable identity of a controller, port or sensor.

    Built from business identifiers only (device id, port number, sensor
    kind) so the same physical thing maps to the same key whatever order the
    API lists it in.
    """

    device_id: str
    port: int | None = None
    sensor_kind: SensorKind | None = None

    @property
    def kind(self) -> EntityKind:
        if self.sensor_kind is not None:
            return EntityKind.SENSOR
        if self.port is not None:
            return EntityKind.PORT
        return EntityKind.CONTROLLER

    @property
    def unique_id(self) -> str:
        if self.sensor_kind is not None:
            return f"{self.device_id}_sensor_{self.port}_{self.sensor_kind.name.lower()}"
        if self.port is not None:
            return f"{self.device_id}_port_{self.port}"
        return self.device_id


@dataclasses.dataclass(frozen=True)
class PortSnapshot:
    port: int
    label: str
    online: bool
    load_state: int
    power_level: int
    mode: PortMode | None
    load_resistance: int
    remaining_time: int = 0

    @property
    def has_load(self) -> bool:
        """True when the port reports a connected load (65535 means nothing plugged in)."""
        return self.load_resistance != NO_LOAD_RESISTANCE

    @property
    def is_relevant(self) -> bool:
        return self.online or self.has_load

    @property
    def is_active(self) -> bool:
        return self.load_state > 0


@dataclasses.dataclass(frozen=True)
class SensorSnapshot:
    port: int
    kind: SensorKind
    raw_value: int
    precision: int = 0
    unit: int = 0

    @property
    def value(self) -> float:
        # sensorPrecision n means the raw reading carries n-1 implied decimals
        if self.precision > 1:
            return self.raw_value / 10 ** (self.precision - 1)
        return float(self.raw_value)


@dataclasses.dataclass(frozen=True)
class DeviceSnapshot:
    """
    One controller as seen in a single poll.

    ports and sensors are excluded from equality so that a controller record
    only counts as updated when the controller's own attributes change.
    """

    device_id: str
    name: str
    generation: HardwareGeneration
    mac_address: str
    device_type: int | None
    firmware_version: str | None
    hardware_version: str | None
    online: bool
    ambient_temperature: float | None
    ambient_humidity: float | None
    ambient_vpd: float | None = None
    ports: tuple[PortSnapshot, ...] = dataclasses.field(default=(), compare=False)
    sensors: tuple[SensorSnapshot, ...] = dataclasses.field(default=(), compare=False)

    @property
    def has_ambient_sensors(self) -> bool:
        return self.ambient_temperature is not None or self.ambient_humidity is not None

    def get_port(self, port: int) -> PortSnapshot | None:
        for snapshot in self.ports:
            if snapshot.port == port:
                return snapshot
        return None


@dataclasses.dataclass(frozen=True)
class EntityRecord:
    """What the synchronizer knows about one entity after the last poll."""

    key: EntityKey
    kind: EntityKind
    snapshot: DeviceSnapshot | PortSnapshot | SensorSnapshot
    device: DeviceSnapshot
    present_in_last_poll: bool = True


@dataclasses.dataclass(frozen=True)
class Diff:
    created: list[EntityRecord] = dataclasses.field(default_factory=list)
    updated: list[EntityRecord] = dataclasses.field(default_factory=list)
    removed: list[EntityKey] = dataclasses.field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.created or self.updated or self.removed)


@dataclasses.dataclass
class PendingCommand:
    """A mutation owned by the CommandGateway until it resolves."""

    key: EntityKey
    changes: dict[str, Any]
    generation: HardwareGeneration
    future: asyncio.Future
    target: CommandTarget = CommandTarget.PORT_MODE
    device_name: str = ""
    submitted_at: float = dataclasses.field(default_factory=time.monotonic)
