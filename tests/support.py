"""Fakes and helpers shared by the test modules."""

from __future__ import annotations

from typing import Any, List, Optional

import jwt

from steam_session.events import Notification
from steam_session.models import (
    CheckMachineAuthResult,
    EncryptedPassword,
    EResult,
    GuardChallenge,
    GuardType,
    PollResult,
    SessionStartResult,
    StartCredentialsDetails,
)

STEAM_ID = "76561197960287930"
OTHER_STEAM_ID = "76561198000000001"


def make_token(sub: Any = STEAM_ID, **claims) -> str:
    payload = dict(claims)
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, "test-secret-key-for-testing-only-0123456789", algorithm="HS256")


def start_result(*guards, steam_id: str = STEAM_ID, poll_interval: float = 5.0) -> SessionStartResult:
    confirmations = []
    for g in guards:
        if isinstance(g, tuple):
            confirmations.append(GuardChallenge(type=g[0], message=g[1]))
        else:
            confirmations.append(GuardChallenge(type=g))
    return SessionStartResult(
        client_id="client-1",
        request_id="request-1",
        steam_id=steam_id,
        poll_interval=poll_interval,
        allowed_confirmations=confirmations,
    )


def details(**overrides) -> StartCredentialsDetails:
    data = {"account_name": "gaben", "password": "hunter2"}
    data.update(overrides)
    return StartCredentialsDetails(**data)


class FakeAuthClient:
    def __init__(
        self,
        start: Optional[SessionStartResult] = None,
        polls: Optional[List[Any]] = None,
        submit_error: Optional[Exception] = None,
        machine_result: int = EResult.OK,
    ):
        self.start = start or start_result(GuardType.NONE)
        self.polls = list(polls or [])
        self.submit_error = submit_error
        self.machine_result = machine_result
        self.calls: List[tuple] = []

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def encrypt_password(self, account_name, password):
        self.calls.append(("encrypt_password", account_name))
        return EncryptedPassword(encrypted_password="ZW5j", key_timestamp="1700000000")

    async def start_session_with_credentials(self, params):
        self.calls.append(("start", params))
        return self.start.model_copy(deep=True)

    async def poll_login_status(self, start):
        self.calls.append(("poll", start.client_id))
        if not self.polls:
            return PollResult()
        item = self.polls.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def submit_steam_guard_code(self, start, auth_code, code_type):
        self.calls.append(("submit", auth_code, code_type))
        if self.submit_error is not None:
            raise self.submit_error

    async def check_machine_auth_or_send_code_email(self, start, machine_auth_token):
        self.calls.append(("machine", machine_auth_token))
        return CheckMachineAuthResult(result=self.machine_result)


class Recorder:
    """Listener that keeps every notification it sees."""

    def __init__(self) -> None:
        self.seen: List[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self.seen.append(notification)

    def of(self, kind) -> List[Notification]:
        return [n for n in self.seen if isinstance(n, kind)]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
