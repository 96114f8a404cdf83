"""
SessionStore: authoritative record of which refresh tokens are redeemable.

Every state change is a conditional UPDATE on `status`, so two callers racing
on the same session can never both move it out of `active`.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.auth_session import AuthSession, SessionStatus

logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id


class SessionNotFound(SessionStoreError):
    pass


class SessionAlreadyRotated(SessionStoreError):
    pass


class SessionRevoked(SessionStoreError):
    pass


class SessionExpired(SessionStoreError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(self, storage, ttl: timedelta, clock: Callable[[], datetime] = _utcnow):
        self._storage = storage
        self.ttl = ttl
        self._clock = clock

    def _session(self):
        return self._storage.get_session()

    def _new_row(self, user_id: str, family_id: Optional[str], parent_id: Optional[str],
                 session_id: Optional[str] = None) -> AuthSession:
        session_id = session_id or str(uuid.uuid4())
        return AuthSession(
            id=session_id,
            user_id=user_id,
            family_id=family_id or session_id,
            parent_id=parent_id,
            status=SessionStatus.ACTIVE.value,
            expires_at=self._clock() + self.ttl,
        )

    def create(self, user_id: str, family_id: Optional[str] = None,
               parent_id: Optional[str] = None) -> AuthSession:
        """Open a new active session; a fresh login starts its own family."""
        row = self._new_row(user_id, family_id, parent_id)
        self._storage.write_session().add(row)
        self._storage.save()
        logger.debug("session %s created for user %s", row.id, user_id)
        return row

    def status(self, session_id: str) -> SessionStatus:
        value = self._session().execute(
            select(AuthSession.status).where(AuthSession.id == session_id)
        ).scalar_one_or_none()
        if value is None:
            return SessionStatus.NOT_FOUND
        return SessionStatus(value)

    def family_of(self, session_id: str) -> Optional[str]:
        return self._session().execute(
            select(AuthSession.family_id).where(AuthSession.id == session_id)
        ).scalar_one_or_none()

    def _classify_failure(self, session_id: str) -> SessionStoreError:
        """Explain why a conditional update matched no row."""
        row = self._session().execute(
            select(AuthSession.status, AuthSession.expires_at).where(AuthSession.id == session_id)
        ).first()
        if row is None:
            return SessionNotFound(session_id)
        if row.status == SessionStatus.ROTATED.value:
            return SessionAlreadyRotated(session_id)
        if row.status == SessionStatus.REVOKED.value:
            return SessionRevoked(session_id)
        return SessionExpired(session_id)

    def rotate(self, session_id: str, user_id: Optional[str] = None) -> AuthSession:
        """
        Close `session_id` as rotated and open its successor in one transaction.
        Returns the successor. Exactly one of several concurrent callers wins;
        the others get SessionAlreadyRotated.

        When `user_id` is given and the session belongs to someone else,
        nothing is changed and SessionNotFound is raised.
        """
        session = self._storage.write_session()
        now = self._clock()
        successor_id = str(uuid.uuid4())
        try:
            result = session.execute(
                update(AuthSession)
                .where(
                    AuthSession.id == session_id,
                    AuthSession.status == SessionStatus.ACTIVE.value,
                    AuthSession.expires_at > now,
                )
                .values(
                    status=SessionStatus.ROTATED.value,
                    replaced_by=successor_id,
                    closed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                raise self._classify_failure(session_id)

            owner = session.execute(
                select(AuthSession.user_id, AuthSession.family_id).where(AuthSession.id == session_id)
            ).one()
            if user_id is not None and owner.user_id != user_id:
                session.rollback()
                logger.warning("session %s presented for user %s but owned by %s",
                               session_id, user_id, owner.user_id)
                raise SessionNotFound(session_id)
            successor = self._new_row(owner.user_id, owner.family_id, session_id, successor_id)
            session.add(successor)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        logger.debug("session %s rotated into %s", session_id, successor_id)
        return successor

    def revoke(self, session_id: str) -> None:
        """
        Close an active session. Revoking a session that is already closed is
        reported, so a double logout can be told apart from a fresh one.
        """
        session = self._storage.write_session()
        try:
            result = session.execute(
                update(AuthSession)
                .where(
                    AuthSession.id == session_id,
                    AuthSession.status == SessionStatus.ACTIVE.value,
                )
                .values(status=SessionStatus.REVOKED.value, closed_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                error = self._classify_failure(session_id)
                if isinstance(error, SessionExpired):
                    # expired but never closed: nothing left to revoke
                    error = SessionNotFound(session_id)
                raise error
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    def _revoke_where(self, *criteria) -> int:
        session = self._storage.write_session()
        try:
            result = session.execute(
                update(AuthSession)
                .where(AuthSession.status == SessionStatus.ACTIVE.value, *criteria)
                .values(status=SessionStatus.REVOKED.value, closed_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return result.rowcount

    def revoke_all(self, user_id: str, except_family: Optional[str] = None) -> int:
        criteria = [AuthSession.user_id == user_id]
        if except_family is not None:
            criteria.append(AuthSession.family_id != except_family)
        count = self._revoke_where(*criteria)
        logger.info("revoked %d session(s) for user %s", count, user_id)
        return count

    def revoke_family(self, session_id: str) -> int:
        family_id = self.family_of(session_id)
        if family_id is None:
            return 0
        return self._revoke_where(AuthSession.family_id == family_id)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete rows past expires_at whatever their status."""
        session = self._storage.write_session()
        try:
            result = session.execute(
                delete(AuthSession)
                .where(AuthSession.expires_at <= (now or self._clock()))
                .execution_options(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return result.rowcount
