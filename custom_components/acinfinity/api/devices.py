"""
Low-level device data fetching from the AC Infinity API.

Responsible for:
- Fetching the raw controller list
- Deciding each controller's hardware generation
- Mapping the JSON response onto DeviceSnapshot / PortSnapshot / SensorSnapshot
"""
from __future__ import annotations

import logging

from custom_components.acinfinity.api.auth import AuthSession, HeaderVariant
from custom_components.acinfinity.const import (
    API_URL_GET_DEVICE_INFO_LIST_ALL,
    LEGACY_DEVICE_TYPES,
    NEW_FRAMEWORK_DEVICE_TYPES,
)
from custom_components.acinfinity.exceptions import MalformedResponse
from custom_components.acinfinity.models import (
    DeviceSnapshot,
    HardwareGeneration,
    PortMode,
    PortSnapshot,
    SensorKind,
    SensorSnapshot,
)

_LOGGER = logging.getLogger(__name__)


def detect_generation(device: dict) -> HardwareGeneration:
    """
    Decide which settings strategy a controller needs.

    An explicit newFrameworkDevice flag wins, then the known device types.
    Anything unrecognised is treated as legacy, because fetch-merge never
    writes a default over a live value.
    """
    flag = device.get("newFrameworkDevice")
    if flag is True:
        return HardwareGeneration.NEW_FRAMEWORK
    if flag is False:
        return HardwareGeneration.LEGACY
    dev_type = _as_int(device.get("devType"))
    if dev_type in NEW_FRAMEWORK_DEVICE_TYPES:
        return HardwareGeneration.NEW_FRAMEWORK
    if dev_type not in LEGACY_DEVICE_TYPES:
        _LOGGER.debug("Unknown device type %s, using legacy settings strategy", dev_type)
    return HardwareGeneration.LEGACY


def _as_int(value, default: int | None = None) -> int | None:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _scaled(value) -> float | None:
    """Controller readings are reported multiplied by 100."""
    raw = _as_int(value)
    return None if raw is None else raw / 100


def _info(device: dict) -> dict:
    info = device.get("deviceInfo")
    return info if isinstance(info, dict) else {}


def _info_value(device: dict, key: str):
    """Read key from deviceInfo, falling back to the top level."""
    info = _info(device)
    if key in info:
        return info[key]
    return device.get(key)


def parse_port(port: dict) -> PortSnapshot:
    index = _as_int(port.get("port"))
    if index is None:
        raise MalformedResponse(f"Port entry without port number: {port}")
    mode_value = _as_int(port.get("curMode"))
    try:
        mode = PortMode(mode_value) if mode_value is not None else None
    except ValueError:
        mode = None
    return PortSnapshot(
        port=index,
        label=port.get("portName") or f"Port {index}",
        online=bool(_as_int(port.get("online"), 0)),
        load_state=_as_int(port.get("loadState"), 0),
        power_level=_as_int(port.get("speak"), 0),
        mode=mode,
        load_resistance=_as_int(port.get("portResistance"), 0),
        remaining_time=_as_int(port.get("remainTime"), 0),
    )


def parse_sensor(sensor: dict) -> SensorSnapshot | None:
    """Map one auxiliary sensor; unknown sensor types are skipped."""
    kind_value = _as_int(sensor.get("sensorType"))
    try:
        kind = SensorKind(kind_value)
    except ValueError:
        _LOGGER.debug("Skipping unknown sensor type %s", kind_value)
        return None
    return SensorSnapshot(
        port=_as_int(sensor.get("accessPort"), 0),
        kind=kind,
        raw_value=_as_int(sensor.get("sensorData"), 0),
        precision=_as_int(sensor.get("sensorPrecision"), 0),
        unit=_as_int(sensor.get("sensorUnit"), 0),
    )


def parse_device(device: dict) -> DeviceSnapshot:
    """Map a single raw controller dict onto a DeviceSnapshot."""
    if not isinstance(device, dict) or device.get("devId") in (None, ""):
        raise MalformedResponse(f"Device entry without devId: {device!r:.200}")

    ports_raw = _info_value(device, "ports") or []
    sensors_raw = _info_value(device, "sensors") or []
    if not isinstance(ports_raw, list) or not isinstance(sensors_raw, list):
        raise MalformedResponse(f"Device {device['devId']} has malformed ports or sensors")

    sensors = tuple(s for s in (parse_sensor(raw) for raw in sensors_raw if isinstance(raw, dict)) if s is not None)
    device_id = str(device["devId"])
    return DeviceSnapshot(
        device_id=device_id,
        name=device.get("devName") or f"Controller {device_id}",
        generation=detect_generation(device),
        mac_address=device.get("devMacAddr") or "",
        device_type=_as_int(device.get("devType")),
        firmware_version=device.get("firmwareVersion"),
        hardware_version=device.get("hardwareVersion"),
        online=bool(_as_int(device.get("online"), 1)),
        ambient_temperature=_scaled(_info_value(device, "temperature")),
        ambient_humidity=_scaled(_info_value(device, "humidity")),
        ambient_vpd=_scaled(_info_value(device, "vpdnums")),
        ports=tuple(parse_port(raw) for raw in ports_raw if isinstance(raw, dict)),
        sensors=sensors,
    )


async def fetch_devices(auth: AuthSession) -> list[DeviceSnapshot]:
    """
    Fetch every controller on the account in one request.

    Transport and application errors propagate unchanged; a body that does
    not have the expected shape raises MalformedResponse.

    Corresponding CURL command:
    curl -X POST 'http://www.acinfinityserver.com/api/user/devInfoListAll' \\
      -H 'token: TOKEN' -d 'userId=TOKEN'
    """
    body = await auth.post(
        API_URL_GET_DEVICE_INFO_LIST_ALL,
        auth.auth_headers(HeaderVariant.WITH_VERSION_INFO),
        {"userId": auth.token},
    )
    raw_devices = body.get("data")
    if raw_devices is None:
        return []
    if not isinstance(raw_devices, list):
        raise MalformedResponse(f"Expected a device list, got {type(raw_devices).__name__}")
    return [parse_device(raw) for raw in raw_devices]
