from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .auth_client import AuthClient, HttpAuthClient
from .config import settings
from .cookies import CookieFinalizer
from .errors import SessionError, SessionNotFoundError
from .events import Authenticated, Error, Notification, Polling, RemoteInteraction, Timeout
from .models import PendingAction, PlatformType, SessionPersistence, StartCredentialsDetails
from .polling import PollState
from .service import LoginSession

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# notification kinds kept per session; Debug is left to the logs
_RECORDED = {
    Polling: "polling",
    RemoteInteraction: "remote_interaction",
    Authenticated: "authenticated",
    Timeout: "timeout",
    Error: "error",
}


@dataclass
class SessionEntry:
    session: LoginSession
    created_at: float
    notifications: List[str] = field(default_factory=list)

    def record(self, notification: Notification) -> None:
        kind = _RECORDED.get(type(notification))
        if kind is not None:
            self.notifications.append(kind)


class SessionRegistry:
    """In-memory login sessions keyed by an opaque id.

    Entries expire ``ttl_sec`` after creation and are evicted on the next
    ``create`` or ``get``.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], AuthClient]] = None,
        finalizer_factory: Optional[Callable[[], CookieFinalizer]] = None,
        ttl_sec: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.client_factory = client_factory or (
            lambda: HttpAuthClient(settings.AUTH_BASE_URL, settings.HTTP_TIMEOUT_SEC)
        )
        self.finalizer_factory = finalizer_factory or CookieFinalizer
        self.ttl = settings.LOGIN_TTL_SEC if ttl_sec is None else ttl_sec
        self.clock = clock or time.monotonic
        self._sessions: Dict[str, SessionEntry] = {}

    def create(self, platform_type: PlatformType) -> tuple[str, LoginSession]:
        self._evict_expired()
        session_id = secrets.token_urlsafe(24)
        session = LoginSession(
            platform_type,
            self.client_factory(),
            cookie_finalizer=self.finalizer_factory(),
        )
        entry = SessionEntry(session=session, created_at=self.clock())
        session.subscribe(entry.record)
        self._sessions[session_id] = entry
        return session_id, session

    def entry(self, session_id: str) -> SessionEntry:
        self._evict_expired()
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFoundError("Login session not found", detail={"session_id": session_id})
        return entry

    def get(self, session_id: str) -> LoginSession:
        return self.entry(session_id).session

    def drop(self, session_id: str) -> None:
        session = self.get(session_id)
        session.cancel_login_attempt()
        del self._sessions[session_id]

    def _evict_expired(self) -> None:
        now = self.clock()
        expired = [sid for sid, e in self._sessions.items() if now - e.created_at >= self.ttl]
        for sid in expired:
            self._sessions.pop(sid).session.cancel_login_attempt()
        if expired:
            logger.info("evicted %d expired login session(s)", len(expired))


class StartIn(BaseModel):
    account_name: str
    password: str
    steam_guard_code: Optional[str] = None
    steam_guard_machine_token: Optional[str] = None
    device_friendly_name: Optional[str] = None
    persistence: Optional[SessionPersistence] = None
    website_id: Optional[str] = None
    platform_type: PlatformType = PlatformType.WEB_BROWSER


class StartOut(BaseModel):
    session_id: str
    action_required: bool
    valid_actions: Optional[List[PendingAction]] = None


class CodeIn(BaseModel):
    code: str


class StatusOut(BaseModel):
    session_id: str
    polling_state: PollState
    authenticated: bool
    steam_id: Optional[str] = None
    account_name: Optional[str] = None
    had_remote_interaction: bool = False
    last_error: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    notifications: List[str] = []


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    app = FastAPI(title="Steam Login Sessions")
    app.state.registry = registry or SessionRegistry()

    def _registry(request: Request) -> SessionRegistry:
        return request.app.state.registry

    @app.exception_handler(SessionError)
    async def handle_session_error(request: Request, exc: SessionError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn("%s %s -> %s %s", request.method, request.url.path, exc.error_code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "error": {"code": exc.error_code, "message": exc.message, "details": exc.detail},
            },
        )

    @app.post("/sessions", response_model=StartOut)
    async def start(inp: StartIn, request: Request):
        registry = _registry(request)
        session_id, session = registry.create(inp.platform_type)
        details = StartCredentialsDetails(**inp.model_dump(exclude={"platform_type"}))
        try:
            res = await session.start_with_credentials(details)
        except SessionError:
            registry.drop(session_id)
            raise
        return StartOut(session_id=session_id, action_required=res.action_required, valid_actions=res.valid_actions)

    @app.get("/sessions/{session_id}", response_model=StatusOut)
    async def status(session_id: str, request: Request):
        entry = _registry(request).entry(session_id)
        session = entry.session
        authenticated = session.polling_state == PollState.COMPLETED
        steam_id = session.steam_id
        return StatusOut(
            session_id=session_id,
            polling_state=session.polling_state,
            authenticated=authenticated,
            steam_id=steam_id.steam_id64 if steam_id else None,
            account_name=session.account_name,
            had_remote_interaction=session.had_remote_interaction,
            last_error=str(session.last_error) if session.last_error else None,
            access_token=session.access_token if authenticated else None,
            refresh_token=session.refresh_token if authenticated else None,
            notifications=list(entry.notifications),
        )

    @app.post("/sessions/{session_id}/guard-code")
    async def guard_code(session_id: str, inp: CodeIn, request: Request):
        await _registry(request).get(session_id).submit_steam_guard_code(inp.code)
        return {"submitted": True}

    @app.post("/sessions/{session_id}/cancel")
    async def cancel(session_id: str, request: Request):
        return {"canceled": _registry(request).get(session_id).cancel_login_attempt()}

    @app.post("/sessions/{session_id}/cookies")
    async def cookies(session_id: str, request: Request):
        return {"cookies": await _registry(request).get(session_id).get_web_cookies()}

    @app.delete("/sessions/{session_id}")
    async def drop(session_id: str, request: Request):
        _registry(request).drop(session_id)
        return {"deleted": True}

    return app


app = create_app()
