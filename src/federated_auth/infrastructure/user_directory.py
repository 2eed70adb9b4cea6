"""User Directory

Purpose: Look up and persist federated users

Wraps the request-scoped AsyncSession. Reads go straight to the session;
writes happen inside transaction(), which commits on success and rolls
back on any error so a failed provisioning leaves nothing behind.

Uniqueness violations are reported as DuplicateIdentityError so callers
can recover from a lost provisioning race without knowing SQLAlchemy.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from federated_auth.domain.models import AuthenticationMethod, User

logger = logging.getLogger(__name__)


class DuplicateIdentityError(Exception):
    """A user or authentication method already exists for this identity."""
    pass


class UserDirectory:
    """SQLAlchemy-backed user directory scoped to one request session"""

    def __init__(self, session: AsyncSession):
        """Initialize user directory

        Args:
            session: Request-scoped database session
        """
        self.session = session

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Get user by external identifier

        Args:
            identifier: External subject id

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(
            select(User).where(User.identifier == identifier)
        )
        return result.scalar_one_or_none()

    async def save_authentication_method(self, method: AuthenticationMethod) -> AuthenticationMethod:
        """Persist an authentication method within the current transaction"""
        self.session.add(method)
        await self._flush()
        return method

    async def save_user(self, user: User) -> User:
        """Persist a user within the current transaction"""
        self.session.add(user)
        await self._flush()
        return user

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["UserDirectory"]:
        """Group writes into one unit of work.

        Commits when the block exits cleanly, rolls back otherwise.

        Raises:
            DuplicateIdentityError: If a uniqueness constraint was violated
        """
        try:
            yield self
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateIdentityError(f"Identity already exists: {e.orig}") from e
        except Exception as e:
            await self.session.rollback()
            logger.warning(f"User directory transaction rolled back: {e}")
            raise

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateIdentityError(f"Identity already exists: {e.orig}") from e
