"""Unit tests for settings and credential resolution"""

import json

import pytest
from pydantic import ValidationError

from federated_auth.config.settings import Settings
from federated_auth.core.auth import CredentialError, FirebaseAuthOptions
from federated_auth.core.auth.credentials import (
    AmbientCredential,
    ExplicitCredential,
    load_service_account,
    parse_service_account,
    resolve_project_id,
)
from tests.conftest import PROJECT_ID

pytestmark = pytest.mark.unit


@pytest.fixture
def clean_env(monkeypatch):
    """Remove ambient Google credentials from the environment"""
    for name in ("GOOGLE_APPLICATION_CREDENTIALS", "GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestStrategyOptions:
    """Test Settings.strategy_options()"""

    def test_defaults_to_ambient_and_no_registration(self):
        options = Settings(_env_file=None).strategy_options()

        assert isinstance(options.credential, AmbientCredential)
        assert options.allow_new_user_registration is False

    def test_inline_service_account(self, service_account):
        settings = Settings(
            _env_file=None,
            firebase_service_account_json=json.dumps(service_account),
            firebase_public_keys_url="https://keys.example.com/jwks",
            firebase_allow_new_user_registration=True,
        )

        options = settings.strategy_options()

        assert isinstance(options.credential, ExplicitCredential)
        assert options.credential.service_account.project_id == PROJECT_ID
        assert options.credential.endpoint == "https://keys.example.com/jwks"
        assert options.allow_new_user_registration is True

    def test_service_account_file(self, service_account, tmp_path):
        key_file = tmp_path / "service-account.json"
        key_file.write_text(json.dumps(service_account))

        options = Settings(_env_file=None, firebase_service_account_path=str(key_file)).strategy_options()

        assert isinstance(options.credential, ExplicitCredential)
        assert options.credential.service_account.client_email == service_account["client_email"]

    def test_malformed_service_account_is_fatal(self):
        settings = Settings(_env_file=None, firebase_service_account_json='{"type": "service_account"}')

        with pytest.raises(CredentialError):
            settings.strategy_options()

    def test_options_are_immutable(self):
        options = FirebaseAuthOptions()

        with pytest.raises(ValidationError):
            options.allow_new_user_registration = True

    def test_credential_variant_from_tag(self, service_account):
        options = FirebaseAuthOptions.model_validate(
            {"credential": {"kind": "explicit", "service_account": service_account}}
        )

        assert isinstance(options.credential, ExplicitCredential)


class TestServiceAccountParsing:
    """Test service account loading"""

    def test_not_json(self):
        with pytest.raises(CredentialError):
            parse_service_account("not json")

    def test_wrong_type(self, service_account):
        with pytest.raises(CredentialError):
            parse_service_account(dict(service_account, type="authorized_user"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(CredentialError, match="Cannot read"):
            load_service_account(tmp_path / "missing.json")


class TestResolveProjectId:
    """Test project resolution for ambient credentials"""

    def test_explicit_project(self, clean_env):
        assert resolve_project_id(AmbientCredential(project_id="configured")) == "configured"

    def test_application_default_credentials_file(self, clean_env, service_account, tmp_path):
        key_file = tmp_path / "adc.json"
        key_file.write_text(json.dumps(service_account))
        clean_env.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(key_file))

        assert resolve_project_id(AmbientCredential()) == PROJECT_ID

    def test_project_env_var(self, clean_env):
        clean_env.setenv("GOOGLE_CLOUD_PROJECT", "from-env")

        assert resolve_project_id(AmbientCredential()) == "from-env"

    def test_nothing_configured(self, clean_env):
        with pytest.raises(CredentialError, match="No Firebase project"):
            resolve_project_id(AmbientCredential())
