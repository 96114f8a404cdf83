"""
Error taxonomy for the token lifecycle.

- TokenError and subclasses: raised by TokenService, always a rejected credential
- AuthError and subclasses: raised by the request guard (401 vs 403)
- ValidationFailed: business rule rejection with a user facing message (400)
"""
from __future__ import annotations


class TokenError(Exception):
    """A presented token was not honoured."""

    kind = "invalid"
    message = "invalid token"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class InvalidToken(TokenError):
    kind = "invalid"
    message = "invalid token"


class TokenExpired(TokenError):
    kind = "expired"
    message = "token expired"


class TokenReused(TokenError):
    kind = "reused"
    message = "refresh token already used"


class WrongTokenKind(TokenError):
    kind = "wrong_kind"
    message = "wrong token type"


class TokenAlreadyRevoked(TokenError):
    kind = "already_revoked"
    message = "refresh token already revoked"


class AuthError(Exception):
    status = 403
    code = "FORBIDDEN"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(AuthError):
    """No credential was supplied."""

    status = 401
    code = "UNAUTHENTICATED"


class Forbidden(AuthError):
    """A credential was supplied but not honoured."""

    status = 403
    code = "FORBIDDEN"


class ValidationFailed(Exception):
    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
