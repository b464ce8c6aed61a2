from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from .errors import AccountMismatchError, MalformedTokenError
from .models import AccountIdentifier


class TokenDecoder:
    """Reads claims out of a signed token without verifying the signature.

    The identity service owns the signing keys; all we need locally is the
    subject claim.
    """

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError("Token could not be decoded", detail={"reason": str(e)}) from e
        if not isinstance(claims, dict):
            raise MalformedTokenError("Token payload is not an object")
        return claims

    def subject(self, token: str) -> AccountIdentifier:
        sub = self.decode(token).get("sub")
        if sub is None:
            raise MalformedTokenError("Token has no subject claim")
        try:
            return AccountIdentifier(sub)
        except ValueError as e:
            raise MalformedTokenError("Not a valid Steam access token") from e


@dataclass(frozen=True)
class ValidatedToken:
    value: str
    subject: AccountIdentifier


class TokenConsistencyValidator:
    def __init__(self, decoder: Optional[TokenDecoder] = None):
        self.decoder = decoder or TokenDecoder()

    def validate(
        self,
        token: str,
        *,
        kind: str,
        other: Optional[ValidatedToken] = None,
        other_kind: str = "",
        expected: Optional[str] = None,
    ) -> ValidatedToken:
        """Decode ``token`` and check it against the rest of the session.

        ``expected`` is the account identifier from the session start response,
        ``other`` the token already stored in the opposite slot.
        """
        subject = self.decoder.subject(token)

        if expected and subject != AccountIdentifier(expected):
            raise AccountMismatchError(
                "Token is for a different account. To work with a different account, create a new LoginSession.",
                detail={"token": kind},
            )

        if other is not None and other.subject != subject:
            raise AccountMismatchError(
                f"This {kind} token belongs to a different account from the set {other_kind} token.",
                detail={"token": kind},
            )

        return ValidatedToken(value=token, subject=subject)
