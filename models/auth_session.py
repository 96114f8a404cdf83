"""
AuthSession model: one row per issued refresh token.

Fields:
- id (primary key) - the session id embedded in the refresh token as `sid`
- user_id (String(36)) - FK to users.id
- family_id - id of the first session of the rotation chain
- parent_id / replaced_by - rotation links, kept for audit only
- status - active | rotated | revoked (rotated and revoked are terminal)
- expires_at, closed_at
"""
import enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    ROTATED = "rotated"
    REVOKED = "revoked"
    NOT_FOUND = "not_found"  # never stored


class AuthSession(BaseModel, Base):
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_user_status", "user_id", "status"),
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id = Column(String(36), nullable=False, index=True)
    parent_id = Column(String(36), nullable=True)
    replaced_by = Column(String(36), nullable=True)
    status = Column(String(16), nullable=False, default=SessionStatus.ACTIVE.value)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="sessions")

    def __repr__(self):
        return f"<AuthSession id={self.id} user={self.user_id} status={self.status}>"
