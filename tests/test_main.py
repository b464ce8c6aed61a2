"""HTTP front-end over in-memory login sessions."""

import pytest
from fastapi.testclient import TestClient

from steam_session.main import SessionRegistry, create_app
from steam_session.models import EResult, GuardType
from steam_session.errors import RemoteAuthError, TransportError
from steam_session.events import Debug, Error, Polling, RemoteInteraction
from tests.support import FakeAuthClient, FakeClock, start_result

CREDENTIALS = {"account_name": "gaben", "password": "hunter2"}


def _client_for(fake, **kwargs):
    registry = SessionRegistry(client_factory=lambda: fake, **kwargs)
    return TestClient(create_app(registry)), registry


def test_start_requiring_email_code():
    fake = FakeAuthClient(start_result((GuardType.EMAIL_CODE, "g***@valve.com")))
    client, _ = _client_for(fake)

    with client:
        r = client.post("/sessions", json=CREDENTIALS)
        assert r.status_code == 200
        body = r.json()
        assert body["action_required"] is True
        assert body["valid_actions"] == [{"type": GuardType.EMAIL_CODE, "detail": "g***@valve.com"}]

        status = client.get(f"/sessions/{body['session_id']}").json()
        assert status["polling_state"] == "not_started"
        assert status["authenticated"] is False
        assert status["access_token"] is None

        r = client.post(f"/sessions/{body['session_id']}/cancel")
        assert r.json() == {"canceled": False}


def test_submit_guard_code():
    fake = FakeAuthClient(start_result(GuardType.DEVICE_CODE))
    client, _ = _client_for(fake)

    with client:
        sid = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        r = client.post(f"/sessions/{sid}/guard-code", json={"code": "XY12Z"})
        assert r.status_code == 200
        assert fake.called("submit") == [("submit", "XY12Z", GuardType.DEVICE_CODE)]
        client.delete(f"/sessions/{sid}")


def test_guard_code_not_needed():
    fake = FakeAuthClient(start_result(GuardType.EMAIL_CONFIRMATION))
    client, _ = _client_for(fake)

    with client:
        sid = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        r = client.post(f"/sessions/{sid}/guard-code", json={"code": "ABCDE"})
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "no_guard_needed"
        client.delete(f"/sessions/{sid}")


def test_cookies_without_refresh_token():
    fake = FakeAuthClient(start_result(GuardType.EMAIL_CODE))
    client, _ = _client_for(fake)

    with client:
        sid = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        r = client.post(f"/sessions/{sid}/cookies")
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "missing_credential"


def test_failed_start_is_dropped():
    fake = FakeAuthClient(
        start_result(GuardType.EMAIL_CODE),
        submit_error=RemoteAuthError(EResult.ACCESS_DENIED),
    )
    client, registry = _client_for(fake)

    with client:
        r = client.post("/sessions", json={**CREDENTIALS, "steam_guard_code": "ABCDE"})
        assert r.status_code == 502
        assert r.json()["error"]["details"] == {"eresult": EResult.ACCESS_DENIED}
        assert registry._sessions == {}


@pytest.mark.parametrize("method, path", [
    ("get", "/sessions/nope"),
    ("post", "/sessions/nope/cancel"),
    ("post", "/sessions/nope/cookies"),
    ("delete", "/sessions/nope"),
])
def test_unknown_session(method, path):
    client, _ = _client_for(FakeAuthClient())
    with client:
        r = getattr(client, method)(path)
        assert r.status_code == 404
        assert r.json() == {
            "status": "error",
            "error": {"code": "not_found", "message": "Login session not found", "details": {"session_id": "nope"}},
        }


def test_delete_cancels_polling():
    fake = FakeAuthClient(start_result(GuardType.NONE, poll_interval=60))
    client, registry = _client_for(fake)

    with client:
        sid = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        session = registry.get(sid)
        assert client.delete(f"/sessions/{sid}").json() == {"deleted": True}
        assert session.polling.canceled
        assert client.get(f"/sessions/{sid}").status_code == 404


def test_status_lists_observed_notifications():
    fake = FakeAuthClient(start_result(GuardType.EMAIL_CODE))
    client, registry = _client_for(fake)

    with client:
        sid = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        assert client.get(f"/sessions/{sid}").json()["notifications"] == []

        notifier = registry.get(sid).notifier
        notifier.emit(Polling())
        notifier.emit(Debug("poll response", {"new_client_id": None}))
        notifier.emit(RemoteInteraction())
        notifier.emit(Error(error=TransportError("connection reset")))

        status = client.get(f"/sessions/{sid}").json()
        assert status["notifications"] == ["polling", "remote_interaction", "error"]


def test_expired_sessions_are_evicted():
    clock = FakeClock()
    fake = FakeAuthClient(start_result(GuardType.EMAIL_CODE))
    client, registry = _client_for(fake, ttl_sec=60, clock=clock)

    with client:
        old = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        session = registry.get(old)
        clock.advance(30)
        newer = client.post("/sessions", json=CREDENTIALS).json()["session_id"]
        assert client.get(f"/sessions/{old}").status_code == 200

        clock.advance(31)
        assert client.get(f"/sessions/{old}").status_code == 404
        assert session.polling.canceled
        assert client.get(f"/sessions/{newer}").status_code == 200

        clock.advance(30)
        client.post("/sessions", json=CREDENTIALS)
        assert newer not in registry._sessions
        assert len(registry._sessions) == 1
