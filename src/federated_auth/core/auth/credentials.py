"""Credential sources for the Firebase identity verifier.

A credential is resolved once, when the verifier is initialized:

- ExplicitCredential: a service account key (as downloaded from the Firebase
  console) plus an optional endpoint override for the token signing keys.
- AmbientCredential: the process environment provides the project, either
  through GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_CLOUD_PROJECT.
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CredentialError

logger = logging.getLogger(__name__)

PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")


class ServiceAccountInfo(BaseModel):
    """Subset of a Google service account key file used by the verifier."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["service_account"]
    project_id: str = Field(..., min_length=1)
    client_email: str = Field(..., min_length=1)
    private_key: str = Field(..., min_length=1)
    private_key_id: Optional[str] = None


class ExplicitCredential(BaseModel):
    """Service account key material with an optional endpoint override."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["explicit"] = "explicit"
    service_account: ServiceAccountInfo
    endpoint: Optional[str] = None


class AmbientCredential(BaseModel):
    """Use the credentials and project of the surrounding environment."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ambient"] = "ambient"
    project_id: Optional[str] = None
    endpoint: Optional[str] = None


CredentialSource = Annotated[
    Union[ExplicitCredential, AmbientCredential],
    Field(discriminator="kind"),
]


def parse_service_account(data: Union[str, dict]) -> ServiceAccountInfo:
    """Parse service account key material.

    Args:
        data: JSON document or already decoded mapping

    Returns:
        Validated ServiceAccountInfo

    Raises:
        CredentialError: If the document is not a valid service account key
    """
    try:
        if isinstance(data, str):
            data = json.loads(data)
        return ServiceAccountInfo.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise CredentialError(f"Malformed service account credential: {e}") from e


def load_service_account(path: Union[str, Path]) -> ServiceAccountInfo:
    """Load and parse a service account key file.

    Raises:
        CredentialError: If the file is missing or malformed
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise CredentialError(f"Cannot read service account file {path}: {e}") from e
    return parse_service_account(content)


def resolve_project_id(credential: Union[ExplicitCredential, AmbientCredential]) -> str:
    """Resolve the Firebase project whose tokens will be accepted.

    Raises:
        CredentialError: If no project can be determined
    """
    if isinstance(credential, ExplicitCredential):
        return credential.service_account.project_id

    if credential.project_id:
        return credential.project_id

    key_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path:
        logger.info(f"Using application default credentials from {key_path}")
        return load_service_account(key_path).project_id

    for name in PROJECT_ENV_VARS:
        project_id = os.getenv(name)
        if project_id:
            return project_id

    raise CredentialError(
        "No Firebase project configured. Provide a service account or set "
        "GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_CLOUD_PROJECT"
    )
