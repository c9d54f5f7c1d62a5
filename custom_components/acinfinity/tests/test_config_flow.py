"""
Unit tests for config_flow.py: CustomFlow (initial setup) and OptionsFlowHandler (options editing).

Coverage:
- CustomFlow.async_step_user:
    * GET (no input) → FORM with step_id "user"
    * Valid input → CREATE_ENTRY with title, every field and a generated guid
    * Missing name / email / password → FORM with the matching error
    * Credential check failures → FORM with invalid_auth / cannot_connect
    * Same email configured twice → flow aborts
- CustomFlow reauth: password form, entry update and reload, options password replaced
- OptionsFlowHandler.async_step_init:
    * GET → FORM with defaults from data, overridden by options
    * Valid input → CREATE_ENTRY and the entry is renamed
- poll_interval validator bounds
- _validate_credentials mapping of login outcomes
"""

from __future__ import annotations

import unittest
import uuid
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock, patch

import voluptuous as vol
from homeassistant.data_entry_flow import AbortFlow

from custom_components.acinfinity.config_flow import (
    CustomFlow,
    OptionsFlowHandler,
    _validate_credentials,
    poll_interval,
)
from custom_components.acinfinity.exceptions import CannotConnect, InvalidCredentials, RequestRejected

VALIDATE = "custom_components.acinfinity.config_flow._validate_credentials"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_mock_config_entry(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> MagicMock:
    entry = MagicMock()
    entry.entry_id = "test_entry_id"
    entry.data = dict(data)
    entry.options = dict(options) if options is not None else {}
    return entry


def _make_flow() -> CustomFlow:
    flow = CustomFlow()
    flow.hass = MagicMock()
    return flow


def _make_options_flow(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> OptionsFlowHandler:
    """OptionsFlowHandler resolves its entry through hass using the flow handler id."""
    entry = _make_mock_config_entry(data, options)
    handler = OptionsFlowHandler()
    handler.hass = MagicMock()
    handler.handler = entry.entry_id
    handler.hass.config_entries.async_get_known_entry.return_value = entry
    handler.hass.config_entries.async_get_entry.return_value = entry
    return handler


VALID_USER_INPUT = {
    "entry_name": "My Grow Room",
    "email": "user@example.com",
    "password": "s3cr3t",
    "host": "http://www.acinfinityserver.com",
    "polling_interval": 20,
    "expose_ports": True,
    "expose_sensors": False,
    "debug": False,
}

VALID_ENTRY_DATA = {
    "guid": "existing-guid-1234",
    "entry_name": "Original Name",
    "email": "original@example.com",
    "password": "original_pass",
    "host": "http://www.acinfinityserver.com",
    "polling_interval": 10,
    "expose_ports": True,
    "expose_sensors": True,
    "debug": False,
}

VALID_OPTIONS_INPUT = dict(VALID_ENTRY_DATA, entry_name="Updated Name", polling_interval=60)
del VALID_OPTIONS_INPUT["guid"]


# ---------------------------------------------------------------------------
# CustomFlow: initial config
# ---------------------------------------------------------------------------

class TestCustomFlow(unittest.IsolatedAsyncioTestCase):

    async def test_shows_form_on_get(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "user")
        self.assertEqual(result.get("errors", {}), {})

    async def test_valid_input_creates_entry(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "create_entry")
        self.assertEqual(result["title"], "My Grow Room")
        for field, value in VALID_USER_INPUT.items():
            self.assertEqual(result["data"][field], value)
        self.assertEqual(str(uuid.UUID(result["data"]["guid"])), result["data"]["guid"])

    async def test_missing_fields(self):
        for field, error in (
            ("entry_name", "entry_name_required"),
            ("email", "email_required"),
            ("password", "password_required"),
        ):
            flow = _make_flow()
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, **{field: ""}))
            self.assertEqual(result["type"], "form")
            self.assertEqual(result["errors"]["base"], error)

    async def test_invalid_credentials_show_error(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value="invalid_auth")):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "invalid_auth")

    async def test_unreachable_api_shows_error(self):
        flow = _make_flow()

        with patch(VALIDATE, new=AsyncMock(return_value="cannot_connect")):
            result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["errors"]["base"], "cannot_connect")

    async def test_duplicate_email_aborts_flow(self):
        flow = _make_flow()

        with self.assertRaises(AbortFlow) as ctx:
            with patch.object(flow, "_async_abort_entries_match", side_effect=AbortFlow("already_configured")):
                await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(str(ctx.exception.reason), "already_configured")

    async def test_duplicate_check_uses_email_as_key(self):
        flow = _make_flow()

        with patch.object(flow, "_async_abort_entries_match") as mock_abort_match, \
             patch(VALIDATE, new=AsyncMock(return_value=None)):
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        mock_abort_match.assert_called_once_with({"email": VALID_USER_INPUT["email"]})

    async def test_duplicate_check_skipped_when_fields_are_empty(self):
        flow = _make_flow()

        with patch.object(flow, "_async_abort_entries_match") as mock_abort_match:
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT, email=""))

        mock_abort_match.assert_not_called()


# ---------------------------------------------------------------------------
# CustomFlow: reauth
# ---------------------------------------------------------------------------

class TestReauthFlow(unittest.IsolatedAsyncioTestCase):

    def _flow(self, options: Dict[str, Any] | None = None):
        flow = _make_flow()
        entry = _make_mock_config_entry(VALID_ENTRY_DATA, options)
        patcher = patch.object(flow, "_get_reauth_entry", return_value=entry)
        patcher.start()
        self.addCleanup(patcher.stop)
        return flow, entry

    async def test_reauth_shows_password_form(self):
        flow, _ = self._flow()

        result = await flow.async_step_reauth(dict(VALID_ENTRY_DATA))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "reauth_confirm")
        self.assertEqual(result["description_placeholders"], {"email": "original@example.com"})

    async def test_new_password_updates_entry_and_reloads(self):
        flow, entry = self._flow()
        validate = AsyncMock(return_value=None)

        with patch(VALIDATE, new=validate), \
             patch.object(flow, "async_update_reload_and_abort", return_value={"type": "abort"}) as update:
            result = await flow.async_step_reauth_confirm({"password": "n3w"})

        self.assertEqual(result["type"], "abort")
        validate.assert_awaited_once_with("original@example.com", "n3w", "http://www.acinfinityserver.com")
        update.assert_called_once_with(entry, data_updates={"password": "n3w"}, options={})

    async def test_password_held_in_options_is_replaced_too(self):
        flow, entry = self._flow({"password": "stale", "polling_interval": 60})

        with patch(VALIDATE, new=AsyncMock(return_value=None)), \
             patch.object(flow, "async_update_reload_and_abort", return_value={"type": "abort"}) as update:
            await flow.async_step_reauth_confirm({"password": "n3w"})

        options = update.call_args.kwargs["options"]
        self.assertEqual(options, {"password": "n3w", "polling_interval": 60})

    async def test_rejected_password_keeps_form(self):
        flow, _ = self._flow()

        with patch(VALIDATE, new=AsyncMock(return_value="invalid_auth")), \
             patch.object(flow, "async_update_reload_and_abort") as update:
            result = await flow.async_step_reauth_confirm({"password": "still-wrong"})

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "invalid_auth")
        update.assert_not_called()

    async def test_empty_password(self):
        flow, _ = self._flow()

        with patch(VALIDATE, new=AsyncMock()) as validate:
            result = await flow.async_step_reauth_confirm({"password": ""})

        self.assertEqual(result["errors"]["base"], "password_required")
        validate.assert_not_awaited()


# ---------------------------------------------------------------------------
# OptionsFlowHandler
# ---------------------------------------------------------------------------

class TestOptionsFlowHandler(unittest.IsolatedAsyncioTestCase):

    async def test_shows_form_on_get(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "init")

    async def test_defaults_come_from_options_over_data(self):
        handler = _make_options_flow(VALID_ENTRY_DATA, {"polling_interval": 120})

        result = await handler.async_step_init(user_input=None)

        schema = result["data_schema"]
        defaults = {str(key): key.default() for key in schema.schema}
        self.assertEqual(defaults["polling_interval"], 120)
        self.assertEqual(defaults["email"], "original@example.com")

    async def test_valid_input_creates_entry_and_renames(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value=None)):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "create_entry")
        update = handler.hass.config_entries.async_update_entry
        update.assert_called_once()
        kwargs = update.call_args.kwargs
        self.assertEqual(kwargs["title"], "Updated Name")
        self.assertEqual(kwargs["data"]["guid"], "existing-guid-1234")
        self.assertEqual(kwargs["data"]["polling_interval"], 60)

    async def test_invalid_credentials_keep_form(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        with patch(VALIDATE, new=AsyncMock(return_value="invalid_auth")):
            result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "invalid_auth")
        handler.hass.config_entries.async_update_entry.assert_not_called()

    async def test_empty_password(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT, password=""))

        self.assertEqual(result["errors"]["base"], "password_required")


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

class TestPollIntervalValidator(unittest.TestCase):

    def test_accepts_range_and_coerces(self):
        self.assertEqual(poll_interval("30"), 30)
        self.assertEqual(poll_interval(5), 5)
        self.assertEqual(poll_interval(600), 600)

    def test_rejects_out_of_range(self):
        for value in (4, 601, "x"):
            with self.assertRaises(vol.Invalid):
                poll_interval(value)


class TestValidateCredentials(unittest.IsolatedAsyncioTestCase):

    async def _run(self, side_effect=None):
        with patch("custom_components.acinfinity.config_flow.AuthSession") as MockAuth:
            auth = MockAuth.return_value
            auth.login = AsyncMock(side_effect=side_effect)
            auth.close = AsyncMock()
            result = await _validate_credentials("user@example.com", "pw")
        auth.close.assert_awaited_once()
        return result

    async def test_success(self):
        self.assertIsNone(await self._run())

    async def test_invalid_credentials(self):
        self.assertEqual(await self._run(InvalidCredentials()), "invalid_auth")

    async def test_unreachable(self):
        self.assertEqual(await self._run(CannotConnect()), "cannot_connect")

    async def test_other_rejection(self):
        self.assertEqual(await self._run(RequestRejected(500, {"msg": "x"})), "cannot_connect")
