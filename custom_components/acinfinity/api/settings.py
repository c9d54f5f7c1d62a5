"""
Settings payload construction for AC Infinity controllers.

The settings endpoints have no partial-update semantics: every write must
carry the full object. Two strategies exist, chosen once per command from
the controller's hardware generation:

- static template (new-framework controllers): a fixed, complete object
  with verified-safe defaults, overlaid with the requested changes. No read
  before write.
- fetch-merge (legacy controllers and anything unrecognised): read the live
  object, strip what the endpoint rejects when echoed, normalise types,
  overlay the requested changes.

Advanced (controller-wide) settings always use fetch-merge.
"""
from __future__ import annotations

import logging
from typing import Any

from custom_components.acinfinity.api.auth import AuthSession, HeaderVariant
from custom_components.acinfinity.const import (
    ADVANCED_SETTINGS_REMOVED_FIELDS,
    ADVANCED_SETTINGS_STRING_FIELDS,
    ADVANCED_SETTINGS_ZERO_DEFAULTS,
    API_URL_ADD_DEV_MODE,
    API_URL_GET_DEV_MODE_SETTING,
    API_URL_GET_DEV_SETTING,
    API_URL_UPDATE_ADV_SETTING,
    DEFAULT_TEMPLATE_VERSION,
    KEY_DEV_ID,
    KEY_DEV_NAME,
    KEY_ON_SELF_SPEED,
    KEY_ON_SPEED,
    LEGACY_USER_AGENT,
    MODE_SETTINGS_INT_FIELDS,
    MODE_SETTINGS_REMOVED_FIELDS,
    MODE_SETTINGS_ZERO_DEFAULTS,
    SETTINGS_TEMPLATES,
)
from custom_components.acinfinity.exceptions import RequestRejected
from custom_components.acinfinity.models import EntityKey, HardwareGeneration

_LOGGER = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Remote reads / writes
# ----------------------------------------------------------------------

def _settings_from(body: dict, path: str) -> dict:
    data = body.get("data")
    if not isinstance(data, dict):
        raise RequestRejected(body.get("code"), {"msg": f"No settings object returned by {path}"})
    return data


async def fetch_port_settings(auth: AuthSession, device_id: str, port: int) -> dict:
    """
    Read the live mode settings of one port.

    Older controllers only answer this with the older app User-Agent and the
    bare token header.
    """
    headers = auth.auth_headers(HeaderVariant.BASIC)
    headers["User-Agent"] = LEGACY_USER_AGENT
    body = await auth.post(API_URL_GET_DEV_MODE_SETTING, headers, {"devId": device_id, "port": port})
    return _settings_from(body, API_URL_GET_DEV_MODE_SETTING)


async def fetch_advanced_settings(auth: AuthSession, device_id: str, port: int = 0) -> dict:
    body = await auth.post(
        API_URL_GET_DEV_SETTING,
        auth.auth_headers(HeaderVariant.WITH_VERSION_INFO),
        {"devId": device_id, "port": port},
    )
    return _settings_from(body, API_URL_GET_DEV_SETTING)


async def send_mode_settings(auth: AuthSession, payload: dict[str, str]) -> None:
    await auth.post(API_URL_ADD_DEV_MODE, auth.auth_headers(HeaderVariant.WITH_VERSION_INFO), payload)


async def send_advanced_settings(auth: AuthSession, payload: dict[str, str]) -> None:
    await auth.post(API_URL_UPDATE_ADV_SETTING, auth.auth_headers(HeaderVariant.WITH_VERSION_INFO), payload)


# ----------------------------------------------------------------------
# Pure payload transforms
# ----------------------------------------------------------------------

def _stringify(payload: dict[str, Any]) -> dict[str, str]:
    return {field: str(value) for field, value in payload.items()}


def _template_defaults(template: dict[str, str], key: EntityKey, speed: Any) -> dict[str, str]:
    return {
        field: value.format(dev_id=key.device_id, port=key.port, speed=speed)
        for field, value in template.items()
    }


def render_template(template: dict[str, str], key: EntityKey, changes: dict[str, Any]) -> dict[str, str]:
    """Fill the static template and overlay changes."""
    speed = changes.get(KEY_ON_SPEED, 0)
    payload: dict[str, Any] = _template_defaults(template, key, speed)
    payload.update(changes)
    # The self-speed mirror must follow the requested speed or the controller ignores it
    if KEY_ON_SPEED in changes and KEY_ON_SELF_SPEED not in changes:
        payload[KEY_ON_SELF_SPEED] = changes[KEY_ON_SPEED]
    return _stringify(payload)


def merge_port_settings(
    live: dict[str, Any],
    key: EntityKey,
    changes: dict[str, Any],
    template: dict[str, str],
) -> dict[str, str]:
    """
    Overlay changes onto a fetched mode-settings object.

    Every fetched field survives except MODE_SETTINGS_REMOVED_FIELDS and
    nested objects. Required fields still missing are filled from the
    template, so devMacAddr always goes out blank.
    """
    payload: dict[str, Any] = {
        field: value
        for field, value in live.items()
        if field not in MODE_SETTINGS_REMOVED_FIELDS and not isinstance(value, (dict, list))
    }
    for field in MODE_SETTINGS_INT_FIELDS:
        if payload.get(field) not in (None, ""):
            payload[field] = int(payload[field])
    for field in MODE_SETTINGS_ZERO_DEFAULTS:
        payload.setdefault(field, 0)
    payload = {field: 0 if value is None else value for field, value in payload.items()}
    payload.update(changes)

    defaults = _template_defaults(template, key, 0)
    for field, value in defaults.items():
        if field not in payload:
            payload[field] = value
    return _stringify(payload)


def merge_advanced_settings(
    live: dict[str, Any],
    device_name: str,
    changes: dict[str, Any],
) -> dict[str, str]:
    """Overlay changes onto a fetched advanced-settings object."""
    payload = {
        field: value
        for field, value in live.items()
        if field not in ADVANCED_SETTINGS_REMOVED_FIELDS
    }
    # Echo the current name or the controller resets it
    payload[KEY_DEV_NAME] = device_name
    for field in ADVANCED_SETTINGS_STRING_FIELDS:
        if payload.get(field) is None:
            payload[field] = ""
    for field in ADVANCED_SETTINGS_ZERO_DEFAULTS:
        payload.setdefault(field, 0)
    if payload.get(KEY_DEV_ID) not in (None, ""):
        payload[KEY_DEV_ID] = int(payload[KEY_DEV_ID])
    payload = {field: 0 if value is None else value for field, value in payload.items()}
    payload.update(changes)
    return _stringify(payload)


# ----------------------------------------------------------------------
# Builder
# ----------------------------------------------------------------------

class SettingsPayloadBuilder:
    """
    Produce the full-object payload for a settings mutation.

    Read-step failures (transport, rejection) propagate unchanged; the
    CommandGateway decides how to classify them.
    """

    def __init__(self, auth: AuthSession, template_version: int = DEFAULT_TEMPLATE_VERSION) -> None:
        if template_version not in SETTINGS_TEMPLATES:
            raise ValueError(f"Unknown settings template version {template_version}")
        self._auth = auth
        self.template_version = template_version
        self._template = SETTINGS_TEMPLATES[template_version]

    @property
    def required_fields(self) -> frozenset[str]:
        return frozenset(self._template)

    async def build(
        self,
        key: EntityKey,
        generation: HardwareGeneration,
        changes: dict[str, Any],
    ) -> dict[str, str]:
        """Build a port mode-settings payload."""
        if key.port is None:
            raise ValueError(f"Mode settings need a port, got {key}")

        if generation is HardwareGeneration.NEW_FRAMEWORK:
            _LOGGER.debug(
                "Building static-template payload (v%s) for %s port %s: %s",
                self.template_version, key.device_id, key.port, changes,
            )
            return render_template(self._template, key, changes)

        _LOGGER.debug("Building fetch-merge payload for %s port %s: %s", key.device_id, key.port, changes)
        live = await fetch_port_settings(self._auth, key.device_id, key.port)
        return merge_port_settings(live, key, changes, self._template)

    async def build_advanced(
        self,
        key: EntityKey,
        device_name: str,
        changes: dict[str, Any],
    ) -> dict[str, str]:
        """Build an advanced-settings payload for the controller behind key."""
        _LOGGER.debug("Building advanced settings payload for %s: %s", key.device_id, changes)
        live = await fetch_advanced_settings(self._auth, key.device_id, key.port or 0)
        return merge_advanced_settings(live, device_name, changes)
