from __future__ import annotations

from typing import Optional

from .models import eresult_name


class SessionError(Exception):
    """Base class for login session failures.

    Each subclass carries an HTTP ``status_code`` and a stable ``error_code`` so
    the HTTP front-end can turn any of them into an error envelope.
    """

    status_code: int = 400
    error_code: str = "session_error"

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


# --- validation -------------------------------------------------------------

class ValidationError(SessionError):
    status_code = 400
    error_code = "validation_error"


class MalformedTokenError(ValidationError):
    """Token can't be decoded or its subject is not an account identifier."""
    error_code = "malformed_token"


class AccountMismatchError(ValidationError):
    """Token subject disagrees with the account already bound to the session."""
    error_code = "account_mismatch"


# --- protocol ---------------------------------------------------------------

class ProtocolError(SessionError):
    status_code = 502
    error_code = "protocol_error"


class UnknownGuardTypeError(ProtocolError):
    error_code = "unknown_guard_type"

    def __init__(self, guard_type: int) -> None:
        super().__init__(
            f"Unknown auth session guard type {guard_type}",
            detail={"guard_type": int(guard_type)},
        )
        self.guard_type = guard_type


class AmbiguousChallengeError(ProtocolError):
    error_code = "ambiguous_challenge"

    def __init__(self) -> None:
        super().__init__("Login requires action, but we can't tell what kind of action is required")


class MalformedResponseError(ProtocolError):
    error_code = "malformed_response"


class MissingCookieError(ProtocolError):
    error_code = "missing_cookie"

    def __init__(self, url: str) -> None:
        super().__init__("No Set-Cookie header in result", detail={"url": url})


class MissingExpectedCookieError(ProtocolError):
    error_code = "missing_expected_cookie"

    def __init__(self, url: str, cookie_name: str) -> None:
        super().__init__(f"No {cookie_name} cookie in result", detail={"url": url, "cookie": cookie_name})


# --- remote -----------------------------------------------------------------

class RemoteError(SessionError):
    """The identity service answered with a non-OK result code."""

    status_code = 502
    error_code = "remote_error"

    def __init__(self, eresult: int, message: Optional[str] = None) -> None:
        super().__init__(message or eresult_name(eresult), detail={"eresult": int(eresult)})
        self.eresult = eresult


class RemoteAuthError(RemoteError):
    error_code = "remote_auth_error"


# --- transport / timeout ----------------------------------------------------

class TransportError(SessionError):
    status_code = 503
    error_code = "transport_error"


class LoginTimeoutError(SessionError):
    status_code = 504
    error_code = "login_timeout"

    def __init__(self, elapsed_ms: int, timeout_ms: int) -> None:
        super().__init__(
            f"Login attempt timed out after {elapsed_ms} ms",
            detail={"elapsed_ms": elapsed_ms, "timeout_ms": timeout_ms},
        )
        self.elapsed_ms = elapsed_ms
        self.timeout_ms = timeout_ms


# --- preconditions ----------------------------------------------------------

class PreconditionError(SessionError):
    status_code = 409
    error_code = "precondition_failed"


class NotStartedError(PreconditionError):
    error_code = "not_started"

    def __init__(self) -> None:
        super().__init__("Login session has not been started yet")


class NoGuardNeededError(PreconditionError):
    error_code = "no_guard_needed"

    def __init__(self) -> None:
        super().__init__("No Steam Guard code is needed for this login attempt")


class MissingCredentialError(PreconditionError):
    error_code = "missing_credential"


class SessionNotFoundError(SessionError):
    status_code = 404
    error_code = "not_found"


__all__ = [
    "SessionError",
    "ValidationError",
    "MalformedTokenError",
    "AccountMismatchError",
    "ProtocolError",
    "UnknownGuardTypeError",
    "AmbiguousChallengeError",
    "MalformedResponseError",
    "MissingCookieError",
    "MissingExpectedCookieError",
    "RemoteError",
    "RemoteAuthError",
    "TransportError",
    "LoginTimeoutError",
    "PreconditionError",
    "NotStartedError",
    "NoGuardNeededError",
    "MissingCredentialError",
    "SessionNotFoundError",
]
