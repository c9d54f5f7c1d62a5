"""
DataUpdateCoordinator for the AC Infinity integration.

Responsibilities:
- Own the AuthSession, SettingsPayloadBuilder, CommandGateway and
  RemoteStateSynchronizer for the lifetime of a config entry.
- Poll on the configured interval; after a failed poll, retry after
  POLL_RETRY_DELAY and keep the last good snapshot.
- Forward each poll's diff to the EntityProjection.
- Turn entity control calls into queued commands and report terminal
  failures as HomeAssistantError.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api.auth import AuthSession
from .api.settings import SettingsPayloadBuilder
from .command_queue import CommandGateway
from .const import (
    CONF_EMAIL,
    CONF_EXPOSE_PORTS,
    CONF_EXPOSE_SENSORS,
    CONF_HOST,
    CONF_PASSWORD,
    CONF_POLLING_INTERVAL,
    CONF_TEMPLATE_VERSION,
    CONTROLLER_MODELS,
    DEFAULT_HOST,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TEMPLATE_VERSION,
    DOMAIN,
    KEY_AT_TYPE,
    KEY_ON_SPEED,
    MANUFACTURER,
    MAX_POLL_INTERVAL,
    MAX_PORT_SPEED,
    MIN_POLL_INTERVAL,
    POLL_RETRY_DELAY,
)
from .coordinator_data import CoordinatorData
from .exceptions import CommandError, PollAuthFailed, PollCredentialsRejected, PollError, RateLimitExhausted
from .models import CommandTarget, Diff, EntityKey, HardwareGeneration, PortMode
from .projection import EntityProjection
from .synchronizer import RemoteStateSynchronizer

__all__ = ["ACInfinityCoordinator", "CoordinatorData", "clamp_poll_interval"]

_LOGGER = logging.getLogger(__name__)


def clamp_poll_interval(value: Any) -> int:
    """Bound the configured interval to MIN_POLL_INTERVAL..MAX_POLL_INTERVAL seconds."""
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        seconds = DEFAULT_POLL_INTERVAL
    return max(MIN_POLL_INTERVAL, min(MAX_POLL_INTERVAL, seconds))


# ---------------------------------------------------------------------------
# ACInfinityCoordinator: main coordinator
# ---------------------------------------------------------------------------

class ACInfinityCoordinator(DataUpdateCoordinator[CoordinatorData]):
    """Polls the AC Infinity cloud and routes commands back to it."""

    def __init__(self, hass: HomeAssistant, entry_data: dict, config_entry: ConfigEntry | None = None) -> None:
        """Initialize the coordinator from config-entry data."""
        self._poll_interval = timedelta(seconds=clamp_poll_interval(
            entry_data.get(CONF_POLLING_INTERVAL, DEFAULT_POLL_INTERVAL)
        ))
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=self._poll_interval,
            config_entry=config_entry,
        )
        self._entry_data = entry_data

        self.auth = AuthSession(
            email=entry_data[CONF_EMAIL],
            password=entry_data[CONF_PASSWORD],
            host=entry_data.get(CONF_HOST) or DEFAULT_HOST,
        )
        self.builder = SettingsPayloadBuilder(
            self.auth, entry_data.get(CONF_TEMPLATE_VERSION, DEFAULT_TEMPLATE_VERSION)
        )
        self.gateway = CommandGateway(self.auth, self.builder)
        self.synchronizer = RemoteStateSynchronizer(
            self.auth,
            expose_ports=entry_data.get(CONF_EXPOSE_PORTS, True),
            expose_sensors=entry_data.get(CONF_EXPOSE_SENSORS, True),
        )
        self.projection = EntityProjection()

        # Snapshot starts empty; entities must handle missing records until first refresh
        self.data = CoordinatorData()

    # ------------------------------------------------------------------
    # HA entry point
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> CoordinatorData:
        """
        Called by HA on every update_interval tick.

        A failed poll switches to the retry delay and raises UpdateFailed;
        entities keep the previous snapshot. The next good poll restores the
        configured interval.
        """
        try:
            diff = await self.synchronizer.poll()
        except PollCredentialsRejected as exc:
            # Starts the reauth flow; polling stops until the entry is reloaded
            raise ConfigEntryAuthFailed("AC Infinity rejected the configured credentials") from exc
        except PollAuthFailed as exc:
            self.update_interval = timedelta(seconds=POLL_RETRY_DELAY)
            raise UpdateFailed(f"AC Infinity authentication failed: {exc}") from exc
        except PollError as exc:
            self.update_interval = timedelta(seconds=POLL_RETRY_DELAY)
            raise UpdateFailed(f"AC Infinity connection error: {exc}") from exc

        self.update_interval = self._poll_interval
        new_data = CoordinatorData(
            devices=dict(self.synchronizer.devices),
            records=dict(self.synchronizer.records),
        )
        # Entities created from this diff read the new snapshot straight away
        self.data = new_data
        self._dispatch(diff)
        return new_data

    def _dispatch(self, diff: Diff) -> None:
        for key in diff.removed:
            self.projection.on_entity_removed(key)
        for record in diff.created:
            self.projection.on_entity_created(record)
        for record in diff.updated:
            self.projection.on_entity_updated(record)

    # ------------------------------------------------------------------
    # Write path (called from fan.py)
    # ------------------------------------------------------------------

    async def async_set_port_speed(self, key: EntityKey, speed: int) -> None:
        """Set a port's on-speed (0-10)."""
        speed = max(0, min(MAX_PORT_SPEED, int(speed)))
        await self._async_run_command(key, {KEY_ON_SPEED: speed})

    async def async_set_port_mode(self, key: EntityKey, mode: PortMode) -> None:
        """Switch a port's operating mode."""
        changes: dict[str, Any] = {KEY_AT_TYPE: int(mode)}
        port = self.data.get_port(key)
        if self._generation(key.device_id) is HardwareGeneration.NEW_FRAMEWORK and port is not None:
            # The static template would otherwise reset the speed to 0
            changes[KEY_ON_SPEED] = port.power_level
        await self._async_run_command(key, changes)

    async def async_update_advanced_settings(self, device_id: str, changes: dict[str, Any], port: int = 0) -> None:
        """Rewrite controller-wide settings, keeping the current device name."""
        device = self.data.devices.get(device_id)
        if device is None:
            raise HomeAssistantError(f"Unknown AC Infinity controller {device_id}")
        await self._async_run_command(
            EntityKey(device_id, port),
            changes,
            target=CommandTarget.ADVANCED,
            device_name=device.name,
        )

    async def _async_run_command(
        self,
        key: EntityKey,
        changes: dict[str, Any],
        target: CommandTarget = CommandTarget.PORT_MODE,
        device_name: str = "",
    ) -> None:
        try:
            await self.gateway.enqueue(key, changes, self._generation(key.device_id), target, device_name)
        except RateLimitExhausted as exc:
            raise HomeAssistantError(
                "AC Infinity service unavailable: the API is rate limiting requests, try again later"
            ) from exc
        except CommandError as exc:
            raise HomeAssistantError(f"AC Infinity service unavailable: {exc}") from exc
        await self.async_request_refresh()

    def _generation(self, device_id: str) -> HardwareGeneration:
        device = self.data.devices.get(device_id)
        return device.generation if device is not None else HardwareGeneration.LEGACY

    # ------------------------------------------------------------------
    # Entity helper: device info dict
    # ------------------------------------------------------------------

    def get_device_info(self, device_id: str) -> dict | None:
        """Return the HA DeviceInfo dict for the given controller."""
        device = self.data.devices.get(device_id)
        if device is None:
            return None
        return {
            "identifiers": {(DOMAIN, device_id)},
            "name": device.name,
            "manufacturer": MANUFACTURER,
            "model": CONTROLLER_MODELS.get(device.device_type, "AC Infinity Controller"),
            "sw_version": device.firmware_version,
            "hw_version": device.hardware_version,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Stop polling, cancel queued commands and release the HTTP session."""
        await super().async_shutdown()
        await self.gateway.shutdown()
        await self.auth.close()

    @property
    def entry_data(self) -> dict:
        return self._entry_data
