"""Firebase strategy options."""

from pydantic import BaseModel, ConfigDict, Field

from .credentials import AmbientCredential, CredentialSource


class FirebaseAuthOptions(BaseModel):
    """Process-wide strategy configuration, immutable once loaded.

    Attributes:
        credential: Where the verifier gets its project and keys from
        allow_new_user_registration: Provision a local user on first login
            from an unknown Firebase uid
    """

    model_config = ConfigDict(frozen=True)

    credential: CredentialSource = Field(default_factory=AmbientCredential)
    allow_new_user_registration: bool = False
