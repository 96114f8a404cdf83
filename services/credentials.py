"""
CredentialChangeCoordinator: applies password/email/username changes and
decides what happens to the user's other sessions afterwards.

The change is verified first; a rejected change never touches the session
store. The access token that authorised the change keeps working until it
expires whatever the policy, since access tokens are checked statelessly.
"""
from __future__ import annotations

import logging

from models.user import User
from services.errors import Forbidden, ValidationFailed
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

KEEP = "keep"
REVOKE_OTHERS = "revoke_others"
REVOKE_ALL = "revoke_all"
POLICIES = (KEEP, REVOKE_OTHERS, REVOKE_ALL)


class CredentialChangeCoordinator:
    def __init__(self, storage, tokens, policy: str = KEEP):
        if policy not in POLICIES:
            raise ValueError(f"unknown credential change policy: {policy!r}")
        self._storage = storage
        self._tokens = tokens
        self.policy = policy

    def _load_user(self, identity) -> User:
        # the check and the change share one write transaction
        self._storage.write_session()
        user = self._storage.get(User, identity.user_id)
        if user is None:
            raise Forbidden("user no longer exists")
        return user

    def _taken(self, column, value, user_id: str) -> bool:
        session = self._storage.get_session()
        return session.query(User.id).filter(column == value, User.id != user_id).first() is not None

    def _commit(self, user: User):
        self._storage.new(user)
        self._storage.save()

    def _apply_policy(self, identity) -> int:
        if self.policy == REVOKE_OTHERS:
            return self._tokens.revoke_all(identity.user_id, except_family=identity.family_id)
        if self.policy == REVOKE_ALL:
            return self._tokens.revoke_all(identity.user_id)
        return 0

    def change_password(self, identity, old_password: str, new_password: str) -> int:
        """Returns how many sessions the policy revoked."""
        user = self._load_user(identity)
        if not verify_password(old_password, user.password_hash):
            raise ValidationFailed("old password is incorrect")
        user.password_hash = hash_password(new_password)
        user.password_version = (user.password_version or 1) + 1
        self._commit(user)
        logger.info("password changed for user %s", user.id)
        return self._apply_policy(identity)

    def change_email(self, identity, email: str) -> int:
        user = self._load_user(identity)
        if self._taken(User.email, email, user.id):
            raise ValidationFailed("email already used")
        user.email = email
        self._commit(user)
        logger.info("email changed for user %s", user.id)
        return self._apply_policy(identity)

    def change_username(self, identity, username: str) -> int:
        user = self._load_user(identity)
        if self._taken(User.username, username, user.id):
            raise ValidationFailed("username already taken")
        user.username = username
        self._commit(user)
        logger.info("username changed for user %s", user.id)
        return self._apply_policy(identity)
