from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from .errors import LoginTimeoutError, ValidationError
from .events import Authenticated, Debug, Error, Polling, RemoteInteraction, Timeout

if TYPE_CHECKING:
    from .service import LoginSession


class PollState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"
    ERRORED = "errored"


_FINAL_STATES = (PollState.COMPLETED, PollState.TIMED_OUT, PollState.ERRORED)


class PollingLoop:
    """Polls the login status until tokens arrive, the attempt is canceled or
    the login timeout runs out.

    At most one deferred tick is ever pending, and ticks never overlap.
    ``reset`` starts a new attempt; a poll that returns for a canceled or
    superseded attempt is dropped, whether it succeeded or failed.
    """

    def __init__(self, session: "LoginSession", *, clock: Optional[Callable[[], float]] = None):
        self.session = session
        self.clock = clock or time.monotonic
        self.state = PollState.NOT_STARTED
        self.canceled = False
        self.attempt = 0
        self.started_at: Optional[float] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def reset(self) -> None:
        self._clear_timer()
        self.attempt += 1
        self.state = PollState.NOT_STARTED
        self.canceled = False
        self.started_at = None

    def schedule(self, delay: float = 0.0) -> None:
        if self.canceled or self.state in _FINAL_STATES:
            return
        self._clear_timer()
        self._handle = asyncio.get_running_loop().call_later(delay, self._fire)

    def cancel(self) -> bool:
        self.canceled = True
        if self.state in (PollState.NOT_STARTED, PollState.RUNNING):
            self.state = PollState.CANCELED
        return self._clear_timer()

    def _stale(self, attempt: int) -> bool:
        return self.canceled or attempt != self.attempt

    def _clear_timer(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        self._task = asyncio.ensure_future(self.tick())

    async def tick(self) -> None:
        async with self._lock:
            if self.canceled or self.state in _FINAL_STATES:
                return
            self._clear_timer()
            await self._tick()

    async def _tick(self) -> None:
        session = self.session
        notify = session.notifier.emit

        if self.started_at is None:
            self.started_at = self.clock()
            self.state = PollState.RUNNING
            notify(Polling())

        elapsed_ms = int((self.clock() - self.started_at) * 1000)
        if elapsed_ms >= session.login_timeout:
            self.state = PollState.TIMED_OUT
            session.last_error = LoginTimeoutError(elapsed_ms, session.login_timeout)
            notify(Timeout(elapsed_ms=elapsed_ms))
            self.cancel()
            return

        start = session.start_result
        attempt = self.attempt
        try:
            result = await session.client.poll_login_status(start)
        except Exception as e:
            if self._stale(attempt):
                notify(Debug("login attempt canceled, discarding poll failure", repr(e)))
                return
            # the loop is detached from any caller, so failures go out as notifications
            self.state = PollState.ERRORED
            session.last_error = e
            notify(Error(error=e))
            return

        notify(Debug("poll response", result.model_dump(exclude={"access_token", "refresh_token"})))

        if self._stale(attempt):
            notify(Debug("login attempt canceled, discarding poll response"))
            return

        start.client_id = result.new_client_id or start.client_id

        if result.had_remote_interaction and not session.had_remote_interaction:
            session.had_remote_interaction = True
            notify(RemoteInteraction())

        if result.access_token:
            try:
                session.set_tokens(result.access_token, result.refresh_token)
            except ValidationError as e:
                self.state = PollState.ERRORED
                session.last_error = e
                notify(Error(error=e))
                return
            session.account_name = result.account_name
            self.state = PollState.COMPLETED
            steam_id = session.steam_id
            notify(Authenticated(steam_id=steam_id.steam_id64 if steam_id else None, account_name=session.account_name))
        elif not self.canceled:
            self.schedule(start.poll_interval)
