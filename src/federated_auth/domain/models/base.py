"""
SQLAlchemy declarative base for user directory models.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all user directory models."""

    pass
