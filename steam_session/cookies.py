from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Set, TypeVar

import httpx

from .config import settings
from .errors import (
    MalformedResponseError,
    MissingCookieError,
    MissingExpectedCookieError,
    MissingCredentialError,
    RemoteAuthError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# transfers still running after the race was decided
_stragglers: Set[asyncio.Task] = set()


def _forget(task: asyncio.Task) -> None:
    _stragglers.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug("ignored late transfer failure: %s", task.exception())


async def first_success(aws: Iterable[Awaitable[T]]) -> T:
    """Return the result of whichever awaitable succeeds first.

    All awaitables start at once. Losers keep running in the background and
    their results are dropped, and so do all of them when the caller is
    canceled before any succeeded. If every one fails, the failure of the first
    awaitable in submission order is raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        raise ValueError("first_success() needs at least one awaitable")

    pending = set(tasks)
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            winners = [t for t in tasks if t in done and t.exception() is None]
            if winners:
                return winners[0].result()
    finally:
        for t in tasks:
            if not t.done():
                _stragglers.add(t)
                t.add_done_callback(_forget)

    raise tasks[0].exception()


def _multipart(fields: Dict[str, Any]) -> Dict[str, tuple]:
    return {k: (None, str(v)) for k, v in fields.items() if v is not None}


class CookieFinalizer:
    """Trades a refresh token for web session cookies."""

    def __init__(
        self,
        finalize_url: str = settings.FINALIZE_LOGIN_URL,
        redirect_url: str = settings.FINALIZE_REDIRECT_URL,
        cookie_name: str = settings.SESSION_COOKIE_NAME,
        timeout_sec: float = settings.HTTP_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.finalize_url = finalize_url
        self.redirect_url = redirect_url
        self.cookie_name = cookie_name
        self.timeout = timeout_sec
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def finalize(self, refresh_token: Optional[str], steam_id: Optional[str]) -> List[str]:
        if not refresh_token or not steam_id:
            raise MissingCredentialError("A refresh token is required to get web cookies")

        transfer_info = await self._finalize_login(refresh_token)
        logger.debug("finalize login returned %d transfer(s)", len(transfer_info))
        return await first_success(
            self._transfer(t["url"], steam_id, t.get("params") or {}) for t in transfer_info
        )

    async def _finalize_login(self, refresh_token: str) -> List[Dict[str, Any]]:
        fields = {
            "nonce": refresh_token,
            "sessionid": secrets.token_hex(12),
            "redir": self.redirect_url,
        }
        try:
            async with self._client() as client:
                r = await client.post(self.finalize_url, files=_multipart(fields))
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Finalize login request failed: {e}") from e

        try:
            data = r.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            try:
                eresult = int(data["error"])
            except (TypeError, ValueError):
                raise MalformedResponseError("Malformed login response", detail={"error": data["error"]})
            raise RemoteAuthError(eresult)

        transfer_info = data.get("transfer_info") if isinstance(data, dict) else None
        if not transfer_info or not all(isinstance(t, dict) and t.get("url") for t in transfer_info):
            raise MalformedResponseError("Malformed login response")
        return transfer_info

    async def _transfer(self, url: str, steam_id: str, params: Dict[str, Any]) -> List[str]:
        try:
            async with self._client() as client:
                r = await client.post(url, files=_multipart({"steamID": steam_id, **params}))
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Transfer to {url} failed: {e}", detail={"url": url}) from e

        set_cookie = r.headers.get_list("set-cookie")
        if not set_cookie:
            raise MissingCookieError(url)

        if not any(c.startswith(f"{self.cookie_name}=") for c in set_cookie):
            raise MissingExpectedCookieError(url, self.cookie_name)

        return [c.split(";")[0].strip() for c in set_cookie]
