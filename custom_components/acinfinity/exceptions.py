"""
Exception hierarchy for the AC Infinity integration.

Transport problems are normalised to CannotConnect at the HTTP boundary
(requests.py). The poll path re-raises them as PollError subclasses and the
command path as CommandError subclasses, so callers only ever need to catch
the family belonging to the operation they started.
"""
from __future__ import annotations


class ACInfinityError(Exception):
    """Base class for every error raised by this integration."""


# ----------------------------------------------------------------------
# Transport / application
# ----------------------------------------------------------------------

class CannotConnect(ACInfinityError):
    """The API could not be reached (network error, timeout, HTTP 5xx)."""

    def __init__(self, message: str = "Cannot connect to AC Infinity API") -> None:
        super().__init__(message)


class RequestRejected(ACInfinityError):
    """The API answered but its application code was not 200."""

    def __init__(self, code: int | None, body: dict | None = None) -> None:
        self.code = code
        self.body = body or {}
        super().__init__(f"Request rejected (code {code}): {self.message}")

    @property
    def message(self) -> str:
        return str(self.body.get("msg") or "")


class SessionExpired(RequestRejected):
    """HTTP 401/403: the token is no longer accepted."""


class NotAuthenticated(ACInfinityError):
    """An authenticated call was attempted before a successful login."""

    def __init__(self) -> None:
        super().__init__("AC Infinity client is not logged in")


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------

class AuthError(ACInfinityError):
    """Login failed."""


class InvalidCredentials(AuthError):
    """The API rejected the email / password pair."""

    def __init__(self) -> None:
        super().__init__("Invalid authentication credentials")


# ----------------------------------------------------------------------
# Poll path
# ----------------------------------------------------------------------

class PollError(ACInfinityError):
    """A poll did not produce a snapshot. Previously known records are kept."""


class PollAuthFailed(PollError):
    pass


class PollCredentialsRejected(PollAuthFailed):
    """Login was refused for the stored email and password."""


class PollUnreachable(PollError):
    pass


class MalformedResponse(PollError):
    """The device list did not have the expected shape."""


# ----------------------------------------------------------------------
# Command path
# ----------------------------------------------------------------------

class CommandError(ACInfinityError):
    """A queued command reached a terminal failure."""


class RateLimitExhausted(CommandError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"AC Infinity API still rate limiting after {attempts} attempts")


class CommandUnreachable(CommandError):
    pass


class BuildFailed(CommandError):
    """The settings payload could not be assembled (read step failed)."""


class CommandRejected(CommandError):
    """The API rejected the write for a reason retrying will not fix."""


class CommandCancelled(CommandError):
    """The gateway shut down before the command completed."""

    def __init__(self) -> None:
        super().__init__("Command cancelled: integration is shutting down")
