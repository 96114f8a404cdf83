from models.base_model import Base, BaseModel
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(128), nullable=False)
    # bumped on every password change so consumers can tell credential generations apart
    password_version = Column(Integer, nullable=False, default=1)

    sessions = relationship(
        "AuthSession",
        back_populates="user",
        passive_deletes=True,
    )
    posts = relationship(
        "Post",
        back_populates="owner",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
