"""
RemoteStateSynchronizer: turns AC Infinity snapshots into entity lifecycle events.

Responsibilities:
- Make sure the session is logged in before reading.
- Fetch the whole account in one request and flatten every controller into
  candidate entities (controller, relevant ports, auxiliary sensors).
- Diff the candidates against the records from the previous poll by
  EntityKey and report created / updated / removed.
- Leave the known records untouched when a poll fails.

No HA dependencies; the coordinator owns scheduling.
"""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterator, Mapping

from .api.auth import AuthSession
from .api.devices import fetch_devices
from .exceptions import (
    AuthError,
    InvalidCredentials,
    CannotConnect,
    MalformedResponse,
    NotAuthenticated,
    PollAuthFailed,
    PollCredentialsRejected,
    PollUnreachable,
    RequestRejected,
    SessionExpired,
)
from .models import DeviceSnapshot, Diff, EntityKey, EntityKind, EntityRecord

_LOGGER = logging.getLogger(__name__)


class RemoteStateSynchronizer:
    """Owns the EntityRecord set; the projection only ever sees frozen copies."""

    def __init__(self, auth: AuthSession, expose_ports: bool = True, expose_sensors: bool = True) -> None:
        self._auth = auth
        self.expose_ports = expose_ports
        self.expose_sensors = expose_sensors
        self._records: dict[EntityKey, EntityRecord] = {}
        self._devices: dict[str, DeviceSnapshot] = {}

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def records(self) -> Mapping[EntityKey, EntityRecord]:
        return MappingProxyType(self._records)

    @property
    def devices(self) -> Mapping[str, DeviceSnapshot]:
        return MappingProxyType(self._devices)

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    async def poll(self) -> Diff:
        """
        Read the remote state once and reconcile it with the known records.

        Raises PollAuthFailed, PollUnreachable or MalformedResponse; on any of
        them the previous records are kept as they were.
        """
        await self._ensure_authenticated()
        try:
            devices = await fetch_devices(self._auth)
        except CannotConnect as exc:
            raise PollUnreachable(str(exc)) from exc
        except (SessionExpired, NotAuthenticated) as exc:
            self._auth.invalidate()
            raise PollAuthFailed(f"Session no longer valid: {exc}") from exc
        except RequestRejected as exc:
            # Force a fresh login next time; an expired token shows up here too
            self._auth.invalidate()
            raise MalformedResponse(f"Device list request rejected: {exc}") from exc

        diff = self.reconcile(devices)
        _LOGGER.debug(
            "Poll found %s device(s): %s created, %s updated, %s removed",
            len(devices), len(diff.created), len(diff.updated), len(diff.removed),
        )
        return diff

    async def _ensure_authenticated(self) -> None:
        if self._auth.is_authenticated:
            return
        _LOGGER.debug("Logging into AC Infinity API")
        try:
            await self._auth.login()
        except CannotConnect as exc:
            raise PollUnreachable(str(exc)) from exc
        except InvalidCredentials as exc:
            raise PollCredentialsRejected(str(exc)) from exc
        except (AuthError, RequestRejected) as exc:
            raise PollAuthFailed(str(exc)) from exc

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def reconcile(self, devices: list[DeviceSnapshot]) -> Diff:
        """Replace the record set with the one derived from devices and return the difference."""
        candidates: dict[EntityKey, EntityRecord] = {}
        for device in devices:
            for record in self._flatten(device):
                if record.key in candidates:
                    _LOGGER.debug("Duplicate entity %s in snapshot, keeping the last one", record.key.unique_id)
                candidates[record.key] = record

        created: list[EntityRecord] = []
        updated: list[EntityRecord] = []
        for key, record in candidates.items():
            previous = self._records.get(key)
            if previous is None:
                created.append(record)
            elif previous.snapshot != record.snapshot:
                updated.append(record)

        removed = [key for key in self._records if key not in candidates]

        self._records = candidates
        self._devices = {device.device_id: device for device in devices}
        return Diff(created=created, updated=updated, removed=removed)

    def _flatten(self, device: DeviceSnapshot) -> Iterator[EntityRecord]:
        if device.has_ambient_sensors:
            yield EntityRecord(EntityKey(device.device_id), EntityKind.CONTROLLER, device, device)

        if self.expose_ports:
            for port in device.ports:
                # Offline ports with nothing plugged in are not worth an entity
                if port.is_relevant:
                    yield EntityRecord(EntityKey(device.device_id, port.port), EntityKind.PORT, port, device)

        if self.expose_sensors:
            for sensor in device.sensors:
                key = EntityKey(device.device_id, sensor.port, sensor.kind)
                yield EntityRecord(key, EntityKind.SENSOR, sensor, device)
