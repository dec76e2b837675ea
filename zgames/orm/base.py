"""
zgames/orm/base.py
Base model for all ORM models
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    """Opaque primary key shared by every Z Games table."""
    return str(uuid.uuid4())


class BaseModel(Base):
    """
    Abstract base model with common fields.
    Mutable tables inherit from this; append-only score tables do not
    carry updated_at.
    """
    __abstract__ = True

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )
