"""Identity verifier service.

Owns the process-wide verification client. Strategies share one verifier;
each init/destroy pair acquires and releases a reference, and the client is
created on the first acquire and closed on the last release.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Union

from federated_auth.domain.models.identity import VerifiedIdentity

from .credentials import AmbientCredential, ExplicitCredential
from .secure_token import SecureTokenClient

logger = logging.getLogger(__name__)

Credential = Union[ExplicitCredential, AmbientCredential]


class VerificationClient(Protocol):
    """Black-box token verification capability."""

    async def verify_id_token(self, token: str) -> dict: ...

    async def aclose(self) -> None: ...


ClientFactory = Callable[[Credential], VerificationClient]


class IdentityVerifier:
    """Validates external credentials and returns the subject they attest to.

    Initialization is guarded by a lock, so concurrent first use never
    builds two clients.
    """

    def __init__(self, client_factory: ClientFactory = SecureTokenClient.from_credential):
        self._client_factory = client_factory
        self._client: Optional[VerificationClient] = None
        self._refs = 0
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self, credential: Credential) -> None:
        """Create the verification client, or reuse the existing one.

        Args:
            credential: Explicit service account or ambient credentials

        Raises:
            CredentialError: If the credential is malformed
        """
        async with self._lock:
            if self._client is not None:
                self._refs += 1
                logger.debug(f"Reusing verification client (refs={self._refs})")
                return

            self._client = self._client_factory(credential)
            self._refs = 1
            logger.info(f"Identity verifier initialized ({credential.kind} credentials)")

    async def verify(self, token: str) -> VerifiedIdentity:
        """Verify a token and return the identity it attests to.

        Raises:
            InvalidTokenError: Token malformed, expired or signature-invalid
            ProviderUnavailableError: Verification backend unreachable
            RuntimeError: Verifier not initialized
        """
        client = self._client
        if client is None:
            raise RuntimeError("Identity verifier not initialized. Call initialize() first.")

        claims = await client.verify_id_token(token)
        return VerifiedIdentity(
            subject_id=claims["sub"],
            verified_at=datetime.now(timezone.utc),
            claims=claims,
        )

    async def teardown(self) -> None:
        """Release one reference; close the client on the last one.

        Safe to call when never initialized.
        """
        async with self._lock:
            if self._client is None:
                return

            self._refs -= 1
            if self._refs > 0:
                logger.debug(f"Verification client still in use (refs={self._refs})")
                return

            client, self._client = self._client, None
            self._refs = 0
            await client.aclose()
            logger.info("Identity verifier torn down")


# Global verifier instance (shared by all strategies in the process)
_verifier_instance: Optional[IdentityVerifier] = None


def get_identity_verifier() -> IdentityVerifier:
    """Get the process-wide identity verifier."""
    global _verifier_instance
    if _verifier_instance is None:
        _verifier_instance = IdentityVerifier()
    return _verifier_instance


def reset_identity_verifier() -> None:
    """Reset the global verifier instance (for testing)."""
    global _verifier_instance
    _verifier_instance = None
