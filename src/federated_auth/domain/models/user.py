"""
User directory models.

A User is the local principal. Each AuthenticationMethod links it to one
external identity, keyed by (strategy, external_identifier).
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from federated_auth.domain.models.base import Base


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class User(Base):
    """
    Local user record.

    identifier holds the external subject id (the Firebase uid) and is
    unique: it is the backstop against duplicate provisioning.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    identifier: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False
    )

    authentication_methods: Mapped[list["AuthenticationMethod"]] = relationship(
        "AuthenticationMethod",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, identifier={self.identifier}, verified={self.verified})>"

    def has_method(self, strategy: str) -> bool:
        """Check if the user is linked to the given strategy."""
        return any(m.strategy == strategy for m in self.authentication_methods)


class AuthenticationMethod(Base):
    """
    External authentication method linked to a user.

    user_id is nullable because the method is flushed before the user
    that owns it; the link is written when the user is saved.
    """

    __tablename__ = "authentication_methods"
    __table_args__ = (
        UniqueConstraint("strategy", "external_identifier", name="uq_auth_method_strategy_identifier"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    strategy: Mapped[str] = mapped_column(String(50), nullable=False)
    external_identifier: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, nullable=False)

    user: Mapped[Optional["User"]] = relationship("User", back_populates="authentication_methods")

    def __repr__(self) -> str:
        return (
            f"<AuthenticationMethod(id={self.id}, strategy={self.strategy}, "
            f"external_identifier={self.external_identifier})>"
        )
