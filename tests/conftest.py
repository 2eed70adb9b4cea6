"""
Pytest configuration and fixtures for federated auth tests.

Provides fixtures for:
- Database engine and sessions (file-based SQLite per test)
- RSA signing keys and Firebase-style ID tokens
- A stub verification client and strategy factory
- A user directory that records writes
"""

import time
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from federated_auth.core.auth import (
    FirebaseAuthOptions,
    FirebaseAuthStrategy,
    IdentityVerifier,
    InvalidTokenError,
    ProviderUnavailableError,
    StrategyContext,
)
from federated_auth.core.auth.credentials import AmbientCredential
from federated_auth.core.auth.verifier import reset_identity_verifier
from federated_auth.domain.models import AuthenticationMethod, Base, User
from federated_auth.infrastructure.database import create_session_factory
from federated_auth.infrastructure.user_directory import UserDirectory

PROJECT_ID = "test-project"
KEY_ID = "test-kid"


# ============================================================================
# Signing keys and tokens
# ============================================================================

@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key pair used to sign test ID tokens."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_jwks(rsa_private_key) -> dict:
    """JWKS document as published by the signing key endpoint."""
    public_pem = rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    key = jwk.construct(public_pem, "RS256").to_dict()
    key["kid"] = KEY_ID
    key["use"] = "sig"
    return {"keys": [key]}


@pytest.fixture(scope="session")
def service_account(private_key_pem) -> dict:
    """Service account key file contents."""
    return {
        "type": "service_account",
        "project_id": PROJECT_ID,
        "private_key_id": "abc123",
        "private_key": private_key_pem,
        "client_email": f"firebase-adminsdk@{PROJECT_ID}.iam.gserviceaccount.com",
        "client_id": "1234567890",
    }


@pytest.fixture
def make_id_token(private_key_pem):
    """Factory for signed Firebase-style ID tokens."""

    def _make(subject: str = "uid-42", kid: Optional[str] = KEY_ID, **overrides) -> str:
        now = int(time.time())
        claims = {
            "iss": f"https://securetoken.google.com/{PROJECT_ID}",
            "aud": PROJECT_ID,
            "sub": subject,
            "user_id": subject,
            "auth_time": now - 60,
            "iat": now - 60,
            "exp": now + 3600,
        }
        claims.update(overrides)
        headers = {"kid": kid} if kid else None
        return jwt.encode(claims, private_key_pem, algorithm="RS256", headers=headers)

    return _make


# ============================================================================
# Database
# ============================================================================

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create test database engine with the user directory schema."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_db.sqlite'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def count_rows(session_factory):
    """Count persisted rows of a model using a fresh session."""

    async def _count(model) -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    return _count


# ============================================================================
# Verification and strategy
# ============================================================================

class StubTokenClient:
    """Verification client that knows a fixed set of tokens."""

    def __init__(self):
        self.tokens: dict[str, str] = {}
        self.unavailable = False
        self.closed = False

    def register(self, token: str, subject: str) -> str:
        self.tokens[token] = subject
        return token

    async def verify_id_token(self, token: str) -> dict:
        if self.unavailable:
            raise ProviderUnavailableError("connection refused")
        if token not in self.tokens:
            raise InvalidTokenError("Token signature is invalid")
        return {"sub": self.tokens[token], "aud": PROJECT_ID}

    async def aclose(self) -> None:
        self.closed = True


class WriteRecorder:
    """Counts writes made through RecordingDirectory instances."""

    def __init__(self):
        self.users: list[User] = []
        self.methods: list[AuthenticationMethod] = []

    @property
    def total(self) -> int:
        return len(self.users) + len(self.methods)


class RecordingDirectory(UserDirectory):
    """User directory that records every save call."""

    def __init__(self, session: AsyncSession, recorder: WriteRecorder):
        super().__init__(session)
        self.recorder = recorder

    async def save_authentication_method(self, method):
        self.recorder.methods.append(method)
        return await super().save_authentication_method(method)

    async def save_user(self, user):
        self.recorder.users.append(user)
        return await super().save_user(user)


@pytest.fixture(autouse=True)
def _reset_global_verifier():
    reset_identity_verifier()
    yield
    reset_identity_verifier()


@pytest.fixture
def token_client() -> StubTokenClient:
    return StubTokenClient()


@pytest.fixture
def writes() -> WriteRecorder:
    return WriteRecorder()


@pytest_asyncio.fixture
async def make_strategy(token_client, writes):
    """Factory for initialized strategies backed by the stub client."""
    strategies = []

    async def _make(allow_registration: bool = True, directory_factory=None) -> FirebaseAuthStrategy:
        verifier = IdentityVerifier(client_factory=lambda credential: token_client)
        strategy = FirebaseAuthStrategy(verifier=verifier)
        await strategy.init(
            StrategyContext(
                options=FirebaseAuthOptions(
                    credential=AmbientCredential(project_id=PROJECT_ID),
                    allow_new_user_registration=allow_registration,
                ),
                directory_factory=directory_factory
                or (lambda ctx: RecordingDirectory(ctx.session, writes)),
            )
        )
        strategies.append(strategy)
        return strategy

    yield _make

    for strategy in strategies:
        await strategy.destroy()
