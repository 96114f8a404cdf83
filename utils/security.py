"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Signer: JWT creation/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()

REQUIRED_CLAIMS = ["exp", "iat", "sub", "typ"]


class SignatureError(Exception):
    """Base class for every reason a token fails verification."""


class InvalidSignature(SignatureError):
    pass


class SignatureExpired(SignatureError):
    pass


class MalformedToken(SignatureError):
    pass


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False

def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())

def _now() -> datetime:
    return datetime.now(timezone.utc)


class Signer:
    """
    Produces and verifies signed, time-bounded tokens.

    The secret is handed over once at construction and never changes
    afterwards, so one instance is shared by every request handler.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        issuer: str | None = None,
        clock: Callable[[], datetime] = _now,
    ):
        if not secret:
            raise RuntimeError("JWT secret must be set")
        if refresh_ttl <= access_ttl:
            raise RuntimeError("refresh token lifetime must exceed access token lifetime")
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.issuer = issuer
        self._clock = clock

    def sign(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        now = self._clock()
        payload = dict(claims)
        payload["iat"] = int(now.timestamp())
        payload["exp"] = int((now + ttl).timestamp())
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises a SignatureError subclass on any
        problem; nothing ambiguous is ever returned as valid.
        """
        if not isinstance(token, str) or not token:
            raise MalformedToken("empty token")
        options = {"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False}
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self.issuer,
                options=options,
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature(str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(str(exc)) from exc

        # iat and exp are checked against our own clock so tests can move time
        iat, exp = decoded.get("iat"), decoded.get("exp")
        if not isinstance(iat, int) or not isinstance(exp, int):
            raise MalformedToken("iat and exp must be integers")
        now = int(self._clock().timestamp())
        if iat > now:
            raise MalformedToken("token issued in the future")
        if now >= exp:
            raise SignatureExpired("token expired")
        return decoded
