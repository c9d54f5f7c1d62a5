"""Config flow for the AC Infinity integration."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Mapping, Optional

import homeassistant.helpers.config_validation as cv
import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback

from .api.auth import AuthSession
from .const import (
    CONF_DEBUG,
    CONF_EMAIL,
    CONF_ENTRY_NAME,
    CONF_EXPOSE_PORTS,
    CONF_EXPOSE_SENSORS,
    CONF_HOST,
    CONF_PASSWORD,
    CONF_POLLING_INTERVAL,
    DEFAULT_HOST,
    DEFAULT_POLL_INTERVAL,
    DOMAIN,
    MAX_POLL_INTERVAL,
    MIN_POLL_INTERVAL,
)
from .exceptions import CannotConnect, InvalidCredentials, RequestRejected

_LOGGER = logging.getLogger(__name__)

poll_interval = vol.All(vol.Coerce(int), vol.Range(min=MIN_POLL_INTERVAL, max=MAX_POLL_INTERVAL))

DEFAULTS: Dict[str, Any] = {
    CONF_ENTRY_NAME: "My AC Infinity Account",
    CONF_EMAIL: "",
    CONF_PASSWORD: "",
    CONF_HOST: DEFAULT_HOST,
    CONF_POLLING_INTERVAL: DEFAULT_POLL_INTERVAL,
    CONF_EXPOSE_PORTS: True,
    CONF_EXPOSE_SENSORS: True,
    CONF_DEBUG: False,
}


def build_schema(defaults: Dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_ENTRY_NAME, default=defaults[CONF_ENTRY_NAME]): cv.string,
            vol.Required(CONF_EMAIL, default=defaults[CONF_EMAIL]): cv.string,
            vol.Required(CONF_PASSWORD, default=defaults[CONF_PASSWORD]): cv.string,
            vol.Required(CONF_HOST, default=defaults[CONF_HOST]): cv.string,
            vol.Required(CONF_POLLING_INTERVAL, default=defaults[CONF_POLLING_INTERVAL]): poll_interval,
            vol.Required(CONF_EXPOSE_PORTS, default=defaults[CONF_EXPOSE_PORTS]): cv.boolean,
            vol.Required(CONF_EXPOSE_SENSORS, default=defaults[CONF_EXPOSE_SENSORS]): cv.boolean,
            vol.Required(CONF_DEBUG, default=defaults[CONF_DEBUG]): cv.boolean,
        }
    )


CONFIG_SCHEMA = build_schema(DEFAULTS)
REAUTH_SCHEMA = vol.Schema({vol.Required(CONF_PASSWORD): cv.string})


async def _validate_credentials(email: str, password: str, host: str = DEFAULT_HOST) -> str | None:
    """Try to log in; return an error key for the form or None on success."""
    auth = AuthSession(email, password, host or DEFAULT_HOST)
    try:
        await auth.login()
    except InvalidCredentials:
        return "invalid_auth"
    except (CannotConnect, RequestRejected) as exc:
        _LOGGER.warning("Could not validate AC Infinity credentials: %s", exc)
        return "cannot_connect"
    finally:
        await auth.close()
    return None


def _check_required(user_input: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not user_input.get(CONF_ENTRY_NAME):
        errors["base"] = "entry_name_required"
    if not user_input.get(CONF_EMAIL):
        errors["base"] = "email_required"
    if not user_input.get(CONF_PASSWORD):
        errors["base"] = "password_required"
    return errors


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            errors = _check_required(user_input)
            if not errors:
                # One entry per AC Infinity account
                self._async_abort_entries_match({CONF_EMAIL: user_input[CONF_EMAIL]})
                error = await _validate_credentials(
                    user_input[CONF_EMAIL], user_input[CONF_PASSWORD], user_input.get(CONF_HOST)
                )
                if error:
                    errors["base"] = error
            if not errors:
                self.data = {**DEFAULTS, **user_input, "guid": str(uuid.uuid4())}
                return self.async_create_entry(title=self.data[CONF_ENTRY_NAME], data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    async def async_step_reauth(self, entry_data: Mapping[str, Any]):
        """Started by ConfigEntryAuthFailed when the stored password stops working."""
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        entry = self._get_reauth_entry()
        current = {**entry.data, **entry.options}
        if user_input is not None:
            if not user_input.get(CONF_PASSWORD):
                errors["base"] = "password_required"
            else:
                error = await _validate_credentials(
                    current[CONF_EMAIL], user_input[CONF_PASSWORD], current.get(CONF_HOST)
                )
                if error:
                    errors["base"] = error
            if not errors:
                password = {CONF_PASSWORD: user_input[CONF_PASSWORD]}
                # Options override data at setup, so a stale password there must go too
                options = {**entry.options, **password} if CONF_PASSWORD in entry.options else entry.options
                return self.async_update_reload_and_abort(entry, data_updates=password, options=options)

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=REAUTH_SCHEMA,
            description_placeholders={CONF_EMAIL: current[CONF_EMAIL]},
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler()


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    async def async_step_init(self, user_input: Dict[str, Any] = None):
        errors: Dict[str, str] = {}
        defaults = {**DEFAULTS, **self.config_entry.data, **self.config_entry.options}

        if user_input is not None:
            errors = _check_required(user_input)
            if not errors:
                error = await _validate_credentials(
                    user_input[CONF_EMAIL], user_input[CONF_PASSWORD], user_input.get(CONF_HOST)
                )
                if error:
                    errors["base"] = error
            if not errors:
                new_data = {**self.config_entry.data, **user_input}
                # Rename the entry in the UI; the update listener reloads it
                self.hass.config_entries.async_update_entry(
                    self.config_entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )
                return self.async_create_entry(title=new_data[CONF_ENTRY_NAME], data=user_input)
            defaults.update(user_input)

        return self.async_show_form(step_id="init", data_schema=build_schema(defaults), errors=errors)
