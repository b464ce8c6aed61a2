from __future__ import annotations

from enum import IntEnum
from typing import List, Optional, Union

from pydantic import BaseModel, field_validator


class PlatformType(IntEnum):
    STEAM_CLIENT = 1
    WEB_BROWSER = 2
    MOBILE_APP = 3


class SessionPersistence(IntEnum):
    EPHEMERAL = 0
    PERSISTENT = 1


class GuardType(IntEnum):
    UNKNOWN = 0
    NONE = 1
    EMAIL_CODE = 2
    DEVICE_CODE = 3
    DEVICE_CONFIRMATION = 4
    EMAIL_CONFIRMATION = 5
    MACHINE_TOKEN = 6


class EResult(IntEnum):
    OK = 1
    FAIL = 2
    NO_CONNECTION = 3
    INVALID_PASSWORD = 5
    LOGGED_IN_ELSEWHERE = 6
    INVALID_PARAM = 8
    BUSY = 10
    INVALID_STATE = 11
    ACCESS_DENIED = 15
    TIMEOUT = 16
    BANNED = 17
    ACCOUNT_NOT_FOUND = 18
    SERVICE_UNAVAILABLE = 20
    NOT_LOGGED_ON = 21
    EXPIRED = 27
    ACCOUNT_LOGON_DENIED = 63
    INVALID_LOGIN_AUTH_CODE = 65
    ACCOUNT_LOGON_DENIED_NO_MAIL = 66
    RATE_LIMIT_EXCEEDED = 84
    ACCOUNT_LOGIN_DENIED_NEED_TWO_FACTOR = 85
    TWO_FACTOR_CODE_MISMATCH = 88


def eresult_name(value: int) -> str:
    try:
        return EResult(value).name
    except ValueError:
        return f"EResult {value}"


def default_website_id(platform_type: PlatformType) -> str:
    if platform_type == PlatformType.STEAM_CLIENT:
        return ""
    if platform_type == PlatformType.MOBILE_APP:
        return "MobileApp"
    return "Community"


class AccountIdentifier:
    """64-bit Steam account identifier.

    Bits 0-31 are the account id, 32-51 the instance, 52-55 the account type
    and 56-63 the universe.

    Only ids that can name a real individual or group account are accepted:
    a universe of 1-4, an account type of 1-10 and a non-zero account id.
    Parseable ids outside that range (universe 0, account id 0) are refused,
    so a token whose subject is one of them counts as malformed.
    """

    __slots__ = ("_value",)

    def __init__(self, raw: Union[str, int]):
        text = str(raw).strip()
        if not text.isdigit():
            raise ValueError(f"Not a valid account identifier: {raw!r}")
        value = int(text)
        if value <= 0 or value >= 1 << 64:
            raise ValueError(f"Account identifier out of range: {raw!r}")
        if self._universe(value) not in (1, 2, 3, 4):
            raise ValueError(f"Account identifier has an invalid universe: {raw!r}")
        if not 1 <= self._account_type(value) <= 10:
            raise ValueError(f"Account identifier has an invalid account type: {raw!r}")
        if value & 0xFFFFFFFF == 0:
            raise ValueError(f"Account identifier has no account id: {raw!r}")
        self._value = value

    @staticmethod
    def _universe(value: int) -> int:
        return value >> 56

    @staticmethod
    def _account_type(value: int) -> int:
        return (value >> 52) & 0xF

    @property
    def account_id(self) -> int:
        return self._value & 0xFFFFFFFF

    @property
    def steam_id64(self) -> str:
        return str(self._value)

    def __eq__(self, other):
        if isinstance(other, AccountIdentifier):
            return self._value == other._value
        return NotImplemented

    def __hash__(self):
        return hash(self._value)

    def __str__(self):
        return self.steam_id64

    def __repr__(self):
        return f"AccountIdentifier({self.steam_id64})"


class GuardChallenge(BaseModel):
    type: Union[GuardType, int]
    message: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, v):
        # keep raw ints for guard types we don't know about
        try:
            return GuardType(v)
        except ValueError:
            return v


class SessionStartResult(BaseModel):
    client_id: str
    request_id: str
    steam_id: str
    poll_interval: float = 5.0
    allowed_confirmations: List[GuardChallenge] = []
    weak_token: Optional[str] = None

    @field_validator("steam_id", mode="before")
    @classmethod
    def _account(cls, v):
        return AccountIdentifier(v).steam_id64

    def allows(self, guard_type: GuardType) -> bool:
        return any(c.type == guard_type for c in self.allowed_confirmations)


class PollResult(BaseModel):
    new_client_id: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    account_name: Optional[str] = None
    had_remote_interaction: bool = False


class PendingAction(BaseModel):
    type: GuardType
    detail: Optional[str] = None


class StartSessionResponse(BaseModel):
    action_required: bool
    valid_actions: Optional[List[PendingAction]] = None


class StartCredentialsDetails(BaseModel):
    account_name: str
    password: str
    steam_guard_code: Optional[str] = None
    steam_guard_machine_token: Optional[str] = None
    device_friendly_name: Optional[str] = None
    persistence: Optional[SessionPersistence] = None
    website_id: Optional[str] = None


class EncryptedPassword(BaseModel):
    encrypted_password: str
    key_timestamp: str


class CheckMachineAuthResult(BaseModel):
    result: int
