"""Federated Identity Models

Purpose: Transient models for a single authentication attempt

Key Components:
- FirebaseAuthInput: Credential payload supplied by the client
- VerifiedIdentity: Trusted output of the identity verifier
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class FirebaseAuthInput(BaseModel):
    """Credential payload for a Firebase login attempt

    The client sends the ID token it received from Firebase together with
    the uid it believes the token belongs to. Both must agree after
    verification.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "token": "eyJhbGciOiJSUzI1NiIsImtpZCI6Ij...",
                    "claimedSubjectId": "uid-42",
                }
            ]
        },
    )

    token: str = Field(..., min_length=1, description="Encoded Firebase ID token")
    claimed_subject_id: str = Field(
        ...,
        min_length=1,
        alias="claimedSubjectId",
        description="Firebase uid the caller claims the token belongs to",
    )


class VerifiedIdentity(BaseModel):
    """Identity attested by a successfully verified token"""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    verified_at: datetime
    claims: Dict[str, Any] = Field(default_factory=dict)
