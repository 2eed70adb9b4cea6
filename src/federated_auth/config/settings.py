"""Configuration Settings for the Federated Auth Service

Manages environment variables and application configuration.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from federated_auth.core.auth.credentials import (
    AmbientCredential,
    ExplicitCredential,
    load_service_account,
    parse_service_account,
)
from federated_auth.core.auth.options import FirebaseAuthOptions


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service info
    service_name: str = "federated-auth-service"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database configuration
    database_url: str = "sqlite+aiosqlite:///./federated_auth.db"
    sql_echo: bool = False
    create_schema_on_startup: bool = True

    # Logging
    log_level: str = "INFO"

    # Firebase strategy
    firebase_allow_new_user_registration: bool = False
    firebase_service_account_path: Optional[str] = None
    firebase_service_account_json: Optional[str] = None
    firebase_project_id: Optional[str] = None
    firebase_public_keys_url: Optional[str] = None  # Alternate signing key endpoint

    def strategy_options(self) -> FirebaseAuthOptions:
        """Build the Firebase strategy options from settings.

        An explicit service account (inline JSON wins over a file path)
        selects explicit credentials; anything else falls back to ambient
        credentials.

        Raises:
            CredentialError: If the configured service account is malformed
        """
        if self.firebase_service_account_json:
            credential = ExplicitCredential(
                service_account=parse_service_account(self.firebase_service_account_json),
                endpoint=self.firebase_public_keys_url,
            )
        elif self.firebase_service_account_path:
            credential = ExplicitCredential(
                service_account=load_service_account(self.firebase_service_account_path),
                endpoint=self.firebase_public_keys_url,
            )
        else:
            credential = AmbientCredential(
                project_id=self.firebase_project_id,
                endpoint=self.firebase_public_keys_url,
            )

        return FirebaseAuthOptions(
            credential=credential,
            allow_new_user_registration=self.firebase_allow_new_user_registration,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
