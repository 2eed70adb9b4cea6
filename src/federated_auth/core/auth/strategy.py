"""Abstract authentication strategy interface.

This module defines the contract that all authentication strategies must
implement, the contexts the host hands to them, and the result types a
strategy produces for one authentication attempt.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Generic, Literal, Optional, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncSession

from federated_auth.domain.models import User
from federated_auth.infrastructure.user_directory import UserDirectory

from .options import FirebaseAuthOptions

InputT = TypeVar("InputT")


@dataclass
class RequestContext:
    """Per-request state handed to a strategy.

    Attributes:
        session: Transactional database session for this request
        request_id: Correlation id for logs (optional)
    """
    session: AsyncSession
    request_id: Optional[str] = None


@dataclass
class StrategyContext:
    """What the host provides when a strategy is initialized.

    Attributes:
        options: Strategy configuration, loaded once
        directory_factory: Builds a User Directory bound to a request
    """
    options: FirebaseAuthOptions
    directory_factory: Callable[[RequestContext], UserDirectory] = field(
        default=lambda ctx: UserDirectory(ctx.session)
    )


@dataclass(frozen=True)
class Authenticated:
    """Credentials accepted; user is the authenticated principal."""
    user: User
    provisioned: bool = False
    outcome: Literal["authenticated"] = "authenticated"


@dataclass(frozen=True)
class Rejected:
    """Credentials rejected; not a system error."""
    reason: str
    outcome: Literal["rejected"] = "rejected"


@dataclass(frozen=True)
class SystemFailure:
    """The attempt could not be completed because of an internal error."""
    detail: str
    outcome: Literal["system_failure"] = "system_failure"


AuthResult = Union[Authenticated, Rejected, SystemFailure]


class AuthenticationStrategy(ABC, Generic[InputT]):
    """Abstract interface for authentication strategies.

    The host calls init() once at startup, authenticate() once per login
    request, and destroy() at shutdown.
    """

    name: str

    @abstractmethod
    def define_input_type(self) -> str:
        """Return the GraphQL input type the host adds to its schema."""
        pass

    @abstractmethod
    async def authenticate(self, ctx: RequestContext, data: InputT) -> Union[User, Literal[False]]:
        """Authenticate a login attempt.

        Returns:
            The authenticated User, or False if the credentials are rejected
        """
        pass

    async def init(self, context: StrategyContext) -> None:
        """Resolve collaborators from the host (optional)."""
        pass

    async def destroy(self) -> None:
        """Release resources at shutdown (optional)."""
        pass
