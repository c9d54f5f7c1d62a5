"""
CommandGateway: serialises every mutating AC Infinity API call.

Responsibilities:
- One FIFO queue drained by one worker task, so two writes are never in flight.
- Keep REQUEST_DELAY between the end of one request and the start of the next.
- Retry "save failed" / rate-limit rejections with a growing, capped delay.
- Fail fast with CommandUnreachable when the API cannot be reached.
- Resolve each caller's future with the terminal outcome of its command.

This is a pure asyncio primitive with no HA dependencies.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from .api.auth import AuthSession
from .api.settings import SettingsPayloadBuilder, send_advanced_settings, send_mode_settings
from .const import (
    MAX_RETRIES,
    REQUEST_DELAY,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RETRYABLE_CODES,
    RETRYABLE_MESSAGE_MARKERS,
)
from .exceptions import (
    AuthError,
    BuildFailed,
    CannotConnect,
    CommandCancelled,
    CommandError,
    CommandRejected,
    CommandUnreachable,
    NotAuthenticated,
    RateLimitExhausted,
    RequestRejected,
    SessionExpired,
)
from .models import CommandTarget, EntityKey, HardwareGeneration, PendingCommand

_LOGGER = logging.getLogger(__name__)


def is_retryable(exc: RequestRejected) -> bool:
    """True for rejections that mean "slow down and try again"."""
    if isinstance(exc, SessionExpired):
        return False
    if exc.code in RETRYABLE_CODES:
        return True
    message = exc.message.lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def _token_dropped(exc: NotAuthenticated) -> SessionExpired:
    """The token was invalidated (by a failed poll) while this command was running."""
    return SessionExpired(None, {"msg": str(exc)})


class CommandGateway:
    """
    Single-flight command queue in front of the settings endpoints.

    submit() never blocks and returns a Future; enqueue() awaits it. Commands
    complete in submission order.
    """

    def __init__(
        self,
        auth: AuthSession,
        builder: SettingsPayloadBuilder,
        request_delay: float = REQUEST_DELAY,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        retry_max_delay: float = RETRY_MAX_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._auth = auth
        self._builder = builder
        self._request_delay = request_delay
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._sleep = sleep
        self._clock = clock

        self._queue: asyncio.Queue[PendingCommand] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._in_flight: PendingCommand | None = None
        # monotonic time the previous request finished, None before the first
        self._last_request_end: float | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def submit(
        self,
        key: EntityKey,
        changes: dict[str, Any],
        generation: HardwareGeneration,
        target: CommandTarget = CommandTarget.PORT_MODE,
        device_name: str = "",
    ) -> asyncio.Future:
        """Queue a command and return the Future that resolves with its outcome."""
        if self._closed:
            raise CommandCancelled()
        future = asyncio.get_running_loop().create_future()
        command = PendingCommand(
            key=key,
            changes=dict(changes),
            generation=generation,
            future=future,
            target=target,
            device_name=device_name,
        )
        self._queue.put_nowait(command)
        self._ensure_worker()
        _LOGGER.debug("Queued %s command for %s: %s", target.value, key.unique_id, changes)
        return future

    async def enqueue(
        self,
        key: EntityKey,
        changes: dict[str, Any],
        generation: HardwareGeneration,
        target: CommandTarget = CommandTarget.PORT_MODE,
        device_name: str = "",
    ) -> None:
        """Queue a command and wait for its terminal outcome."""
        await self.submit(key, changes, generation, target, device_name)

    @property
    def pending(self) -> int:
        return self._queue.qsize() + (1 if self._in_flight is not None else 0)

    async def shutdown(self, drain: bool = False) -> None:
        """
        Stop the worker.

        With drain=True queued commands are allowed to finish first; anything
        still pending or in flight afterwards fails with CommandCancelled.
        """
        self._closed = True
        if drain and self._worker is not None and not self._worker.done():
            await self._queue.join()

        in_flight = self._in_flight
        if self._worker is not None:
            self._worker.cancel()
            results = await asyncio.gather(self._worker, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    _LOGGER.debug("CommandGateway worker error during shutdown: %s", result)
            self._worker = None

        if in_flight is not None and not in_flight.future.done():
            in_flight.future.set_exception(CommandCancelled())
        while not self._queue.empty():
            command = self._queue.get_nowait()
            if not command.future.done():
                command.future.set_exception(CommandCancelled())
            self._queue.task_done()
        self._in_flight = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        """Consume commands one at a time, indefinitely."""
        while True:
            command = await self._queue.get()
            try:
                if command.future.done():
                    # Caller gave up (cancelled) before we got to it
                    continue
                self._in_flight = command
                try:
                    await self._execute(command)
                except CommandError as exc:
                    _LOGGER.error("Command for %s failed: %s", command.key.unique_id, exc)
                    if not command.future.done():
                        command.future.set_exception(exc)
                except Exception as exc:  # noqa: BLE001
                    _LOGGER.exception("Unexpected error running command for %s", command.key.unique_id)
                    if not command.future.done():
                        command.future.set_exception(exc)
                else:
                    if not command.future.done():
                        command.future.set_result(None)
            finally:
                self._in_flight = None
                self._queue.task_done()

    async def _throttle(self) -> None:
        if self._last_request_end is None:
            return
        wait = self._request_delay - (self._clock() - self._last_request_end)
        if wait > 0:
            _LOGGER.debug("[API Throttle] Waiting %.2fs before next request", wait)
            await self._sleep(wait)

    async def _execute(self, command: PendingCommand) -> None:
        attempt = 0
        relogged = False
        while True:
            attempt += 1
            await self._throttle()
            try:
                await self._timed_attempt(command)
                return
            except SessionExpired as exc:
                self._auth.invalidate()
                if relogged:
                    raise CommandRejected(f"Session rejected after re-login: {exc}") from exc
                _LOGGER.debug("Session expired while sending command, logging in again")
                relogged = True
            except RequestRejected as exc:
                if not is_retryable(exc):
                    raise CommandRejected(str(exc)) from exc
                if attempt > self._max_retries:
                    raise RateLimitExhausted(attempt) from exc
                delay = min(self._retry_base_delay * attempt, self._retry_max_delay)
                _LOGGER.warning(
                    "AC Infinity rejected command for %s (%s), retry %s/%s in %.1fs",
                    command.key.unique_id, exc.message or exc.code, attempt, self._max_retries, delay,
                )
                await self._sleep(delay)

    async def _timed_attempt(self, command: PendingCommand) -> None:
        # Stamped before any backoff so the retry delay also counts as spacing
        try:
            await self._attempt(command)
        finally:
            self._last_request_end = self._clock()

    async def _attempt(self, command: PendingCommand) -> None:
        """One build + send. Retryable rejections propagate as RequestRejected."""
        if not self._auth.is_authenticated:
            try:
                await self._auth.login()
            except CannotConnect as exc:
                raise CommandUnreachable(str(exc)) from exc
            except AuthError as exc:
                raise CommandRejected(str(exc)) from exc

        try:
            payload = await self._build(command)
        except CannotConnect as exc:
            raise CommandUnreachable(str(exc)) from exc
        except RequestRejected as exc:
            if isinstance(exc, SessionExpired) or is_retryable(exc):
                raise
            raise BuildFailed(f"Could not read current settings: {exc}") from exc
        except NotAuthenticated as exc:
            raise _token_dropped(exc) from exc
        except (ValueError, TypeError, KeyError) as exc:
            raise BuildFailed(str(exc)) from exc

        sender = send_advanced_settings if command.target is CommandTarget.ADVANCED else send_mode_settings
        try:
            await sender(self._auth, payload)
        except CannotConnect as exc:
            raise CommandUnreachable(str(exc)) from exc
        except NotAuthenticated as exc:
            raise _token_dropped(exc) from exc
        _LOGGER.debug("Command for %s accepted", command.key.unique_id)

    async def _build(self, command: PendingCommand) -> dict[str, str]:
        if command.target is CommandTarget.ADVANCED:
            return await self._builder.build_advanced(command.key, command.device_name, command.changes)
        return await self._builder.build(command.key, command.generation, command.changes)
