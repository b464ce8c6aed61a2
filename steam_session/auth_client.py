from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import MalformedResponseError, RemoteAuthError, TransportError
from .models import (
    CheckMachineAuthResult,
    EncryptedPassword,
    EResult,
    GuardType,
    PollResult,
    SessionStartResult,
)

logger = logging.getLogger(__name__)


class AuthClient(Protocol):
    async def encrypt_password(self, account_name: str, password: str) -> EncryptedPassword: ...

    async def start_session_with_credentials(self, params: Dict[str, Any]) -> SessionStartResult: ...

    async def poll_login_status(self, start: SessionStartResult) -> PollResult: ...

    async def submit_steam_guard_code(
        self, start: SessionStartResult, auth_code: str, code_type: GuardType
    ) -> None: ...

    async def check_machine_auth_or_send_code_email(
        self, start: SessionStartResult, machine_auth_token: Optional[str]
    ) -> CheckMachineAuthResult: ...


class HttpAuthClient:
    """AuthClient speaking JSON to an identity gateway.

    Every reply is an envelope ``{"eresult": int, "response": {...}}``.
    """

    def __init__(self, base_url: str, timeout_sec: float = 8.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout_sec
        self.transport = transport

    async def _request(self, path: str, payload: Dict[str, Any], *, raise_on_eresult: bool = True) -> tuple[int, Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        logger.debug("POST %s", url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, json=payload)
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}", detail={"path": path}) from e

        try:
            data = r.json()
            eresult = int(data.get("eresult", EResult.OK))
            body = data.get("response") or {}
        except (ValueError, TypeError, AttributeError) as e:
            raise MalformedResponseError(f"Malformed response from {path}", detail={"path": path}) from e

        if raise_on_eresult and eresult != EResult.OK:
            raise RemoteAuthError(eresult)
        return eresult, body

    def _parse(self, model, body: Dict[str, Any], path: str):
        try:
            return model.model_validate(body)
        except ValueError as e:
            raise MalformedResponseError(f"Malformed response from {path}", detail={"path": path}) from e

    async def encrypt_password(self, account_name: str, password: str) -> EncryptedPassword:
        _, body = await self._request("/encrypt_password", {"account_name": account_name, "password": password})
        return self._parse(EncryptedPassword, body, "/encrypt_password")

    async def start_session_with_credentials(self, params: Dict[str, Any]) -> SessionStartResult:
        _, body = await self._request("/begin_session", params)
        return self._parse(SessionStartResult, body, "/begin_session")

    async def poll_login_status(self, start: SessionStartResult) -> PollResult:
        _, body = await self._request(
            "/poll_session",
            {"client_id": start.client_id, "request_id": start.request_id},
        )
        return self._parse(PollResult, body, "/poll_session")

    async def submit_steam_guard_code(self, start: SessionStartResult, auth_code: str, code_type: GuardType) -> None:
        await self._request(
            "/submit_guard_code",
            {
                "client_id": start.client_id,
                "steam_id": start.steam_id,
                "code": auth_code,
                "code_type": int(code_type),
            },
        )

    async def check_machine_auth_or_send_code_email(
        self, start: SessionStartResult, machine_auth_token: Optional[str]
    ) -> CheckMachineAuthResult:
        # a non-OK result here is an answer, not a failure
        eresult, _ = await self._request(
            "/check_machine_auth",
            {
                "client_id": start.client_id,
                "steam_id": start.steam_id,
                "machine_auth_token": machine_auth_token,
            },
            raise_on_eresult=False,
        )
        return CheckMachineAuthResult(result=eresult)
