"""
Tests for AuthSession: login state machine, header variants and session ownership.
"""

from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from custom_components.acinfinity.api.auth import AuthSession, HeaderVariant
from custom_components.acinfinity.const import API_URL_LOGIN, DEFAULT_HOST
from custom_components.acinfinity.exceptions import (
    CannotConnect,
    InvalidCredentials,
    NotAuthenticated,
    RequestRejected,
)

MAKE_REQUEST = "custom_components.acinfinity.api.auth.make_request"


def _ok(app_id="tok-1") -> dict:
    return {"code": 200, "msg": "success", "data": {"appId": app_id}}


class TestLogin(unittest.IsolatedAsyncioTestCase):

    async def test_successful_login_stores_token(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok("abc"))):
            await auth.login()

        self.assertTrue(auth.is_authenticated)
        self.assertEqual(auth.token, "abc")
        self.assertIsNotNone(auth.issued_at)

    async def test_login_posts_to_login_endpoint_with_expected_fields(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok())) as mock_request:
            await auth.login()

        _, url, headers, data = mock_request.await_args.args
        self.assertEqual(url, DEFAULT_HOST + API_URL_LOGIN)
        self.assertEqual(headers, {})
        self.assertEqual(data, {"appEmail": "user@example.com", "appPasswordl": "secret"})

    async def test_password_is_truncated_to_25_characters(self):
        password = "p" * 30
        auth = AuthSession("user@example.com", password, session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok())) as mock_request:
            await auth.login()

        sent = mock_request.await_args.args[3]["appPasswordl"]
        self.assertEqual(sent, "p" * 25)

    async def test_numeric_app_id_becomes_string_token(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok(123456))):
            await auth.login()

        self.assertEqual(auth.token, "123456")

    async def test_invalid_credentials_code(self):
        auth = AuthSession("user@example.com", "wrong", session=MagicMock(closed=False))
        rejected = RequestRejected(10001, {"code": 10001, "msg": "Incorrect password"})
        with patch(MAKE_REQUEST, new=AsyncMock(side_effect=rejected)):
            with self.assertRaises(InvalidCredentials):
                await auth.login()

        self.assertFalse(auth.is_authenticated)

    async def test_other_rejection_propagates(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        rejected = RequestRejected(500, {"code": 500, "msg": "server busy"})
        with patch(MAKE_REQUEST, new=AsyncMock(side_effect=rejected)):
            with self.assertRaises(RequestRejected) as ctx:
                await auth.login()

        self.assertNotIsInstance(ctx.exception, InvalidCredentials)
        self.assertFalse(auth.is_authenticated)

    async def test_unreachable_api_propagates_cannot_connect(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(side_effect=CannotConnect())):
            with self.assertRaises(CannotConnect):
                await auth.login()

        self.assertFalse(auth.is_authenticated)

    async def test_missing_app_id_is_rejected(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value={"code": 200, "data": {}})):
            with self.assertRaises(RequestRejected):
                await auth.login()

        self.assertFalse(auth.is_authenticated)

    async def test_failed_relogin_drops_previous_token(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok("old"))):
            await auth.login()
        with patch(MAKE_REQUEST, new=AsyncMock(side_effect=CannotConnect())):
            with self.assertRaises(CannotConnect):
                await auth.login()

        self.assertFalse(auth.is_authenticated)


class TestHeaders(unittest.IsolatedAsyncioTestCase):

    async def _logged_in(self) -> AuthSession:
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok("tok"))):
            await auth.login()
        return auth

    def test_headers_before_login_raise(self):
        auth = AuthSession("user@example.com", "secret")
        with self.assertRaises(NotAuthenticated):
            auth.auth_headers()

    async def test_basic_variant_carries_only_token(self):
        auth = await self._logged_in()
        self.assertEqual(auth.auth_headers(HeaderVariant.BASIC), {"token": "tok"})

    async def test_version_info_variant(self):
        auth = await self._logged_in()
        headers = auth.auth_headers(HeaderVariant.WITH_VERSION_INFO)
        self.assertEqual(headers["token"], "tok")
        self.assertEqual(headers["phoneType"], "1")
        self.assertEqual(headers["appVersion"], "1.9.7")
        self.assertEqual(headers["minversion"], "3.5")

    async def test_default_variant_is_version_info(self):
        auth = await self._logged_in()
        self.assertIn("appVersion", auth.auth_headers())


class TestInvalidateAndClose(unittest.IsolatedAsyncioTestCase):

    async def test_invalidate_is_idempotent(self):
        auth = AuthSession("user@example.com", "secret", session=MagicMock(closed=False))
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=_ok())):
            await auth.login()

        auth.invalidate()
        auth.invalidate()

        self.assertFalse(auth.is_authenticated)
        self.assertIsNone(auth.issued_at)
        with self.assertRaises(NotAuthenticated):
            _ = auth.token

    async def test_close_leaves_injected_session_open(self):
        session = MagicMock(closed=False)
        session.close = AsyncMock()
        auth = AuthSession("user@example.com", "secret", session=session)

        await auth.close()

        session.close.assert_not_awaited()
        self.assertFalse(auth.is_authenticated)

    async def test_close_closes_owned_session(self):
        auth = AuthSession("user@example.com", "secret")
        owned = MagicMock(closed=False)
        owned.close = AsyncMock()
        auth._session = owned

        await auth.close()

        owned.close.assert_awaited_once()

    def test_url_strips_trailing_slash(self):
        auth = AuthSession("user@example.com", "secret", host="http://example.test/")
        self.assertEqual(auth.url("/api/x"), "http://example.test/api/x")
