"""Authentication strategy layer.

- strategy: abstract strategy contract, contexts and result types
- firebase: Firebase ID token strategy with user federation
- verifier: process-wide identity verifier service
"""

from .errors import (
    CredentialError,
    InvalidTokenError,
    ProviderUnavailableError,
)
from .firebase import FIREBASE_AUTH_STRATEGY_NAME, FirebaseAuthStrategy
from .options import FirebaseAuthOptions
from .strategy import (
    Authenticated,
    AuthenticationStrategy,
    AuthResult,
    Rejected,
    RequestContext,
    StrategyContext,
    SystemFailure,
)
from .verifier import IdentityVerifier, get_identity_verifier

__all__ = [
    "AuthenticationStrategy",
    "AuthResult",
    "Authenticated",
    "Rejected",
    "SystemFailure",
    "RequestContext",
    "StrategyContext",
    "FirebaseAuthStrategy",
    "FIREBASE_AUTH_STRATEGY_NAME",
    "FirebaseAuthOptions",
    "IdentityVerifier",
    "get_identity_verifier",
    "CredentialError",
    "InvalidTokenError",
    "ProviderUnavailableError",
]
