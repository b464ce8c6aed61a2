from __future__ import annotations

from typing import Callable, List, Optional

from .auth_client import AuthClient, HttpAuthClient
from .config import settings
from .cookies import CookieFinalizer
from .errors import NoGuardNeededError, NotStartedError
from .events import Debug, Listener, Notifier
from .guard import GuardResolutionEngine
from .models import (
    AccountIdentifier,
    GuardType,
    PlatformType,
    SessionPersistence,
    SessionStartResult,
    StartCredentialsDetails,
    StartSessionResponse,
    default_website_id,
)
from .polling import PollingLoop, PollState
from .tokens import TokenConsistencyValidator, ValidatedToken


def _mask(code: str) -> str:
    return code[:1] + "*" * max(len(code) - 1, 0)


class LoginSession:
    """One login attempt against the identity service.

    Starts the session, clears guard challenges, polls until tokens come
    back and finally trades the refresh token for web cookies. Progress is
    reported through ``subscribe``.
    """

    def __init__(
        self,
        platform_type: PlatformType = PlatformType.WEB_BROWSER,
        client: Optional[AuthClient] = None,
        *,
        cookie_finalizer: Optional[CookieFinalizer] = None,
        validator: Optional[TokenConsistencyValidator] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.platform_type = platform_type
        self.client: AuthClient = client or HttpAuthClient(settings.AUTH_BASE_URL, settings.HTTP_TIMEOUT_SEC)
        self.cookie_finalizer = cookie_finalizer or CookieFinalizer()
        self.validator = validator or TokenConsistencyValidator()
        self.notifier = Notifier()
        self.polling = PollingLoop(self, clock=clock)
        self.engine = GuardResolutionEngine(self)

        self.login_timeout: int = settings.LOGIN_TIMEOUT_MS
        self.account_name: Optional[str] = None  # not validated
        self.had_remote_interaction = False
        self.last_error: Optional[BaseException] = None

        self.steam_guard_code: Optional[str] = None
        self.steam_guard_machine_token: Optional[str] = None
        self._start_result: Optional[SessionStartResult] = None
        self._access: Optional[ValidatedToken] = None
        self._refresh: Optional[ValidatedToken] = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.notifier.subscribe(listener)

    @property
    def start_result(self) -> SessionStartResult:
        if self._start_result is None:
            raise NotStartedError()
        return self._start_result

    @property
    def polling_state(self) -> PollState:
        return self.polling.state

    # --- identity & tokens --------------------------------------------------

    @property
    def steam_id(self) -> Optional[AccountIdentifier]:
        if self._start_result is not None:
            return AccountIdentifier(self._start_result.steam_id)
        token = self._access or self._refresh
        return token.subject if token else None

    @property
    def access_token(self) -> Optional[str]:
        return self._access.value if self._access else None

    @access_token.setter
    def access_token(self, token: Optional[str]) -> None:
        if not token:
            self._access = None
            return
        self._access = self.validator.validate(
            token, kind="access", other=self._refresh, other_kind="refresh", expected=self._expected_subject()
        )

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh.value if self._refresh else None

    @refresh_token.setter
    def refresh_token(self, token: Optional[str]) -> None:
        if not token:
            self._refresh = None
            return
        self._refresh = self.validator.validate(
            token, kind="refresh", other=self._access, other_kind="access", expected=self._expected_subject()
        )

    def set_tokens(self, access_token: Optional[str], refresh_token: Optional[str]) -> None:
        """Validate both tokens as a pair, then commit them together."""
        expected = self._expected_subject()
        access = (
            self.validator.validate(access_token, kind="access", expected=expected) if access_token else None
        )
        refresh = (
            self.validator.validate(refresh_token, kind="refresh", other=access, other_kind="access", expected=expected)
            if refresh_token
            else None
        )
        self._access, self._refresh = access, refresh

    def _expected_subject(self) -> Optional[str]:
        return self._start_result.steam_id if self._start_result else None

    # --- login flow ---------------------------------------------------------

    async def start_with_credentials(self, details: StartCredentialsDetails) -> StartSessionResponse:
        self.had_remote_interaction = False
        self.last_error = None
        self.steam_guard_code = details.steam_guard_code
        self.steam_guard_machine_token = details.steam_guard_machine_token

        encrypted = await self.client.encrypt_password(details.account_name, details.password)

        self._start_result = await self.client.start_session_with_credentials(
            {
                "device_friendly_name": details.device_friendly_name,
                "account_name": details.account_name,
                "encrypted_password": encrypted.encrypted_password,
                "encryption_timestamp": encrypted.key_timestamp,
                "persistence": int(details.persistence if details.persistence is not None else SessionPersistence.PERSISTENT),
                "platform_type": int(self.platform_type),
                "website_id": details.website_id if details.website_id is not None else default_website_id(self.platform_type),
            }
        )
        self.notifier.emit(Debug("start session response", self._start_result.model_dump(exclude={"weak_token"})))

        self.polling.reset()
        return await self.engine.resolve()

    async def submit_steam_guard_code(self, auth_code: str) -> None:
        start = self.start_result
        self.notifier.emit(Debug("submitting steam guard code", _mask(auth_code)))

        needs_email_code = start.allows(GuardType.EMAIL_CODE)
        needs_totp_code = start.allows(GuardType.DEVICE_CODE)
        if not needs_email_code and not needs_totp_code:
            raise NoGuardNeededError()

        code_type = GuardType.EMAIL_CODE if needs_email_code else GuardType.DEVICE_CODE
        await self.client.submit_steam_guard_code(start, auth_code, code_type)

        self.polling.schedule()

    def cancel_login_attempt(self) -> bool:
        return self.polling.cancel()

    async def get_web_cookies(self) -> List[str]:
        steam_id = self.steam_id
        return await self.cookie_finalizer.finalize(
            self.refresh_token, steam_id.steam_id64 if steam_id else None
        )
