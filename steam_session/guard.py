from __future__ import annotations

from typing import TYPE_CHECKING, List

from .errors import AmbiguousChallengeError, RemoteAuthError, UnknownGuardTypeError
from .events import Debug
from .models import EResult, GuardChallenge, GuardType, PendingAction, StartSessionResponse

if TYPE_CHECKING:
    from .service import LoginSession


# result code meaning "that code was wrong, ask the user for another one"
_WRONG_CODE = {
    GuardType.EMAIL_CODE: EResult.INVALID_LOGIN_AUTH_CODE,
    GuardType.DEVICE_CODE: EResult.TWO_FACTOR_CODE_MISMATCH,
}


class GuardResolutionEngine:
    """Works through the allowed confirmations of a fresh login attempt.

    Each challenge is either resolved on the spot (a code supplied up front, a
    trusted machine token) or handed back to the caller as a pending action.
    """

    def __init__(self, session: "LoginSession"):
        self.session = session

    def _debug(self, message: str) -> None:
        self.session.notifier.emit(Debug(message))

    async def resolve(self) -> StartSessionResponse:
        session = self.session
        start = session.start_result
        valid_actions: List[PendingAction] = []

        for challenge in start.allowed_confirmations:
            guard_type = challenge.type

            if guard_type == GuardType.NONE:
                self._debug("no guard required")
                session.polling.schedule()
                return StartSessionResponse(action_required=False)

            if guard_type in (GuardType.EMAIL_CODE, GuardType.DEVICE_CODE):
                code_kind = "email" if guard_type == GuardType.EMAIL_CODE else "device"
                self._debug(f"{code_kind} code required")
                if await self._attempt_code_auth(challenge):
                    return StartSessionResponse(action_required=False)
                valid_actions.append(PendingAction(type=guard_type, detail=challenge.message))
                continue

            if guard_type in (GuardType.DEVICE_CONFIRMATION, GuardType.EMAIL_CONFIRMATION):
                self._debug("device or email confirmation guard required")
                valid_actions.append(PendingAction(type=guard_type, detail=challenge.message))
                # approval happens out of band, keep polling until the server sees it
                session.polling.schedule()
                continue

            if guard_type == GuardType.MACHINE_TOKEN:
                # only consulted from the email code path
                continue

            raise UnknownGuardTypeError(guard_type)

        if not valid_actions:
            raise AmbiguousChallengeError()

        return StartSessionResponse(action_required=True, valid_actions=valid_actions)

    async def _attempt_code_auth(self, challenge: GuardChallenge) -> bool:
        """True when the challenge got resolved without asking the user."""
        session = self.session
        code = session.steam_guard_code

        if code:
            try:
                await session.submit_steam_guard_code(code)
                return True
            except RemoteAuthError as e:
                if e.eresult != _WRONG_CODE[challenge.type]:
                    raise
                self._debug("supplied guard code was rejected")

        if challenge.type == GuardType.EMAIL_CODE and session.start_result.allows(GuardType.MACHINE_TOKEN):
            return await self._attempt_machine_token()

        return False

    async def _attempt_machine_token(self) -> bool:
        session = self.session
        result = await session.client.check_machine_auth_or_send_code_email(
            session.start_result, session.steam_guard_machine_token
        )
        if result.result == EResult.OK:
            self._debug("machine auth token accepted")
            session.polling.schedule()
            return True

        # the server has mailed a code instead
        self._debug("machine auth token rejected, verification email sent")
        return False
