"""Domain models for the federated auth service"""

from federated_auth.domain.models.base import Base
from federated_auth.domain.models.identity import FirebaseAuthInput, VerifiedIdentity
from federated_auth.domain.models.user import AuthenticationMethod, User

__all__ = [
    "Base",
    "User",
    "AuthenticationMethod",
    "FirebaseAuthInput",
    "VerifiedIdentity",
]
