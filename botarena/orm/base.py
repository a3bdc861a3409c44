"""
botarena/orm/base.py
Base model for all ORM models
"""
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

from botarena.core.timeutils import utcnow

Base = declarative_base()


def new_id() -> str:
    """Opaque string primary key, as used by every schema table."""
    return str(uuid.uuid4())


class BaseModel(Base):
    """
    Abstract base model for the schema tables.
    Every row carries a VARCHAR(255) id and a creation timestamp.
    """
    __abstract__ = True

    id = Column(
        String(255),
        primary_key=True,
        default=new_id
    )

    created = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )
