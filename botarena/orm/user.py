"""
botarena/orm/user.py
Directory-bound user identity. Authentication lives outside the engine.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from botarena.orm.base import BaseModel


class UserRole(str, PyEnum):
    ADMIN = "admin"
    USER = "user"


class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(255), nullable=False)
    ldap_dn = Column(String(255), nullable=False)
    role = Column(String(255), nullable=False, default=UserRole.USER.value)

    owned_teams = relationship("Team", back_populates="owner_user", foreign_keys="Team.owner")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"
