"""
TokenService: the only component that mints or retires tokens.

- issue: new session + access/refresh pair
- refresh: single-use rotation of a refresh token
- revoke: logout of one refresh token
- verify_access: stateless check of an access token (no store I/O)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from models.session_store import (
    SessionAlreadyRotated,
    SessionExpired,
    SessionNotFound,
    SessionRevoked,
    SessionStore,
)
from services.errors import (
    InvalidToken,
    TokenAlreadyRevoked,
    TokenExpired,
    TokenReused,
    WrongTokenKind,
)
from utils.security import (
    SignatureError,
    SignatureExpired,
    Signer,
    generate_jti,
)

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

REUSE_REJECT = "reject"
REUSE_REVOKE_FAMILY = "revoke_family"
REUSE_POLICIES = (REUSE_REJECT, REUSE_REVOKE_FAMILY)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    user_id: str


@dataclass(frozen=True)
class AccessIdentity:
    user_id: str
    family_id: str | None
    token_id: str | None


class TokenService:
    def __init__(self, signer: Signer, store: SessionStore, reuse_policy: str = REUSE_REJECT):
        if reuse_policy not in REUSE_POLICIES:
            raise ValueError(f"unknown refresh reuse policy: {reuse_policy!r}")
        self.signer = signer
        self.store = store
        self.reuse_policy = reuse_policy

    def _decode(self, token: str, expected_kind: str) -> dict:
        try:
            claims = self.signer.verify(token)
        except SignatureExpired:
            raise TokenExpired()
        except SignatureError as exc:
            raise InvalidToken(f"invalid token: {exc}")
        if claims.get("typ") != expected_kind:
            raise WrongTokenKind(f"expected {expected_kind} token")
        if expected_kind == REFRESH and not claims.get("sid"):
            raise InvalidToken("refresh token carries no session")
        return claims

    def _pair(self, user_id: str, session_id: str, family_id: str) -> TokenPair:
        access = self.signer.sign(
            {"sub": user_id, "typ": ACCESS, "jti": generate_jti(), "fam": family_id},
            self.signer.access_ttl,
        )
        refresh = self.signer.sign(
            {"sub": user_id, "typ": REFRESH, "sid": session_id},
            self.signer.refresh_ttl,
        )
        return TokenPair(access_token=access, refresh_token=refresh, user_id=user_id)

    def issue(self, user_id: str) -> TokenPair:
        session = self.store.create(user_id)
        logger.debug("issued tokens for user %s (session %s)", user_id, session.id)
        return self._pair(user_id, session.id, session.family_id)

    def _on_reuse(self, session_id: str, user_id: str):
        logger.warning("refresh token reuse detected for user %s (session %s)", user_id, session_id)
        if self.reuse_policy == REUSE_REVOKE_FAMILY:
            count = self.store.revoke_family(session_id)
            logger.warning("revoked %d session(s) in the family of %s", count, session_id)

    def refresh(self, refresh_token: str) -> TokenPair:
        claims = self._decode(refresh_token, REFRESH)
        session_id = claims["sid"]
        user_id = str(claims["sub"])
        try:
            successor = self.store.rotate(session_id, user_id=user_id)
        except SessionNotFound:
            raise InvalidToken("unknown session")
        except SessionExpired:
            raise TokenExpired()
        except (SessionAlreadyRotated, SessionRevoked):
            self._on_reuse(session_id, user_id)
            raise TokenReused()
        logger.info("rotated session %s -> %s for user %s", session_id, successor.id, user_id)
        return self._pair(user_id, successor.id, successor.family_id)

    def revoke(self, refresh_token: str) -> None:
        claims = self._decode(refresh_token, REFRESH)
        session_id = claims["sid"]
        try:
            self.store.revoke(session_id)
        except SessionNotFound:
            raise InvalidToken("unknown session")
        except SessionAlreadyRotated:
            # a rotated token presented again is still a replay
            self._on_reuse(session_id, str(claims["sub"]))
            raise TokenAlreadyRevoked()
        except SessionRevoked:
            raise TokenAlreadyRevoked()
        logger.info("session %s revoked (logout)", session_id)

    def revoke_all(self, user_id: str, except_family: str | None = None) -> int:
        return self.store.revoke_all(user_id, except_family=except_family)

    def verify_access(self, access_token: str) -> AccessIdentity:
        claims = self._decode(access_token, ACCESS)
        return AccessIdentity(
            user_id=str(claims["sub"]),
            family_id=claims.get("fam"),
            token_id=claims.get("jti"),
        )
