"""Firebase Authentication Routes

Key Endpoints:
- POST /api/v1/auth/firebase: Log in with a Firebase ID token
- GET /api/v1/auth/firebase/schema: GraphQL input type of the strategy

Every failed login returns the same 401 response, whatever the cause.
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from federated_auth.core.auth import FirebaseAuthStrategy, RequestContext
from federated_auth.domain.models import FirebaseAuthInput, User
from federated_auth.infrastructure.database import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


# ============================================================================
# Response Models
# ============================================================================

class AuthenticationMethodProfile(BaseModel):
    """Linked external identity."""
    strategy: str
    external_identifier: str


class UserProfile(BaseModel):
    """Authenticated user returned after a successful login."""
    id: UUID
    identifier: str
    verified: bool
    created_at: datetime
    authentication_methods: list[AuthenticationMethodProfile]

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            identifier=user.identifier,
            verified=user.verified,
            created_at=user.created_at,
            authentication_methods=[
                AuthenticationMethodProfile(
                    strategy=m.strategy,
                    external_identifier=m.external_identifier,
                )
                for m in user.authentication_methods
            ],
        )


class LoginResponse(BaseModel):
    """Successful login response."""
    user: UserProfile


# ============================================================================
# Dependencies
# ============================================================================

def get_strategy(request: Request) -> FirebaseAuthStrategy:
    """Get the strategy initialized during application startup."""
    return request.app.state.strategy


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/firebase", response_model=LoginResponse)
async def firebase_login(
    data: FirebaseAuthInput,
    request: Request,
    db: AsyncSession = Depends(get_db),
    strategy: FirebaseAuthStrategy = Depends(get_strategy),
):
    """Authenticate with a Firebase ID token.

    Returns:
        The authenticated user

    Raises:
        HTTPException: 401 if the credentials are rejected for any reason
    """
    ctx = RequestContext(session=db, request_id=request.headers.get("X-Request-ID"))
    user = await strategy.authenticate(ctx, data)

    if user is False:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return LoginResponse(user=UserProfile.from_user(user))


@router.get("/firebase/schema", response_class=PlainTextResponse)
async def firebase_input_schema(strategy: FirebaseAuthStrategy = Depends(get_strategy)):
    """Return the GraphQL input type the strategy contributes."""
    return strategy.define_input_type()
