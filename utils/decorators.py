from __future__ import annotations
from functools import wraps
from flask import request, g

from services import get_token_service
from services.errors import Forbidden, TokenError, Unauthenticated

SCHEME = "jwt"


def extract_token(raw_header: str | None) -> str:
    """
    Pull the token out of an `Authorization: jwt <token>` header.
    A missing or blank header is Unauthenticated; anything else that is
    not exactly "jwt <token>" is Forbidden.
    """
    if raw_header is None or not raw_header.strip():
        raise Unauthenticated("no credential supplied")
    parts = raw_header.strip().split(" ", 1)
    if len(parts) != 2 or parts[0] != SCHEME or not parts[1].strip():
        raise Forbidden("malformed Authorization header")
    return parts[1].strip()


def authenticate(raw_header: str | None, tokens):
    """Resolve a raw Authorization header to the caller's AccessIdentity."""
    token = extract_token(raw_header)
    try:
        return tokens.verify_access(token)
    except TokenError as exc:
        raise Forbidden(str(exc)) from exc


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            identity = authenticate(request.headers.get("Authorization"), get_token_service())
            g.identity = identity
            g.user_id = identity.user_id
            return fn(*args, **kwargs)

        return wrapper

    return decorator
