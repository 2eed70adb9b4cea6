"""Firebase ID token verification client.

Verifies ID tokens issued by Firebase Authentication against the public
signing keys Google publishes for the securetoken service account.

A token is accepted when:
- its header is RS256 and carries a kid matching a published key
- the signature verifies against that key
- aud is the Firebase project id
- iss is https://securetoken.google.com/<project id>
- exp is in the future, iat and auth_time are not
- sub is a non-empty string of at most 128 characters
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Optional, Union

import httpx
from jose import jwk, jwt, JWTError
from jose.exceptions import ExpiredSignatureError, JWKError, JWTClaimsError

from .credentials import ExplicitCredential, AmbientCredential, resolve_project_id
from .errors import CredentialError, InvalidTokenError, ProviderUnavailableError

logger = logging.getLogger(__name__)

PUBLIC_KEYS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)
ISSUER_PREFIX = "https://securetoken.google.com/"
TOKEN_ALGORITHM = "RS256"
MAX_SUBJECT_LENGTH = 128
DEFAULT_KEYS_MAX_AGE = 3600  # seconds, when the endpoint sends no max-age
CLOCK_SKEW_SECONDS = 5
REFRESH_COOLDOWN_SECONDS = 30  # minimum gap between forced key refreshes

_MAX_AGE_PATTERN = re.compile(r"max-age=(\d+)")


class SecureTokenClient:
    """Verifies Firebase ID tokens for a single project.

    Signing keys are fetched lazily and cached for the max-age advertised
    by the key endpoint. An unknown kid forces a refresh, since Google
    rotates keys every few hours, but at most once per cooldown period.
    Concurrent callers share one in-flight fetch.
    """

    def __init__(
        self,
        project_id: str,
        public_keys_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ):
        """Initialize the client.

        Args:
            project_id: Firebase project id (token audience)
            public_keys_url: Override for the signing key endpoint
            http_client: Shared HTTP client; one is created when omitted
            timeout: HTTP timeout for key fetches, in seconds
        """
        if not project_id:
            raise CredentialError("Firebase project id must not be empty")

        self.project_id = project_id
        self.issuer = f"{ISSUER_PREFIX}{project_id}"
        self.public_keys_url = public_keys_url or PUBLIC_KEYS_URL

        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

        self._keys: Optional[dict] = None
        self._keys_expire_at = 0.0
        self._keys_fetched_at: Optional[float] = None
        self._fetch: Optional[asyncio.Task] = None

    @classmethod
    def from_credential(
        cls,
        credential: Union[ExplicitCredential, AmbientCredential],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "SecureTokenClient":
        """Create a client from a credential source.

        Explicit credentials must carry a loadable RSA private key; this
        is checked here so a broken key file fails at startup.

        Raises:
            CredentialError: If the credential is malformed or no project
                can be resolved
        """
        if isinstance(credential, ExplicitCredential):
            try:
                jwk.construct(credential.service_account.private_key, TOKEN_ALGORITHM)
            except (JWKError, ValueError, TypeError) as e:
                raise CredentialError(f"Service account private key is invalid: {e}") from e

        project_id = resolve_project_id(credential)
        logger.info(f"Firebase token verification configured for project {project_id}")
        return cls(project_id, public_keys_url=credential.endpoint, http_client=http_client)

    async def verify_id_token(self, token: str) -> dict:
        """Verify a Firebase ID token.

        Args:
            token: Encoded ID token

        Returns:
            Decoded token claims

        Raises:
            InvalidTokenError: If the token is malformed, expired, or fails
                signature or claim checks
            ProviderUnavailableError: If signing keys cannot be fetched
        """
        if not token:
            raise InvalidTokenError("Token is empty")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise InvalidTokenError(f"Malformed token: {e}") from e

        if header.get("alg") != TOKEN_ALGORITHM:
            raise InvalidTokenError(f"Unexpected token algorithm: {header.get('alg')}")

        kid = header.get("kid")
        if not kid:
            raise InvalidTokenError("Token has no key id")

        key = self._find_key(await self._get_public_keys(), kid)
        if key is None:
            key = self._find_key(await self._get_public_keys(force_refresh=True), kid)
        if key is None:
            raise InvalidTokenError(f"No signing key matches key id {kid}")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[TOKEN_ALGORITHM],
                audience=self.project_id,
                issuer=self.issuer,
                options={"leeway": CLOCK_SKEW_SECONDS},
            )
        except ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except JWTClaimsError as e:
            raise InvalidTokenError(f"Invalid token claims: {e}") from e
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("Token has no subject")
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise InvalidTokenError("Token subject is too long")

        now = datetime.now(timezone.utc).timestamp()
        for claim in ("iat", "auth_time"):
            value = claims.get(claim)
            if value is None:
                continue
            if not isinstance(value, (int, float)) or value > now + CLOCK_SKEW_SECONDS:
                raise InvalidTokenError(f"Token {claim} is in the future")

        return claims

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._fetch is not None:
            self._fetch.cancel()
        if self._owns_http_client:
            await self._http.aclose()
        self._keys = None

    @staticmethod
    def _find_key(keys: dict, kid: str) -> Optional[dict]:
        for key in keys.get("keys", []):
            if key.get("kid") == kid:
                return key
        return None

    async def _get_public_keys(self, force_refresh: bool = False) -> dict:
        """Return the signing key set, honouring the endpoint's max-age.

        A forced refresh within REFRESH_COOLDOWN_SECONDS of the last fetch
        returns the cached keys instead.
        """
        now = time.monotonic()
        if self._keys is not None:
            if not force_refresh and now < self._keys_expire_at:
                return self._keys
            if force_refresh and now - self._keys_fetched_at < REFRESH_COOLDOWN_SECONDS:
                return self._keys

        if self._fetch is None:
            self._fetch = asyncio.create_task(self._fetch_public_keys())
        return await asyncio.shield(self._fetch)

    async def _fetch_public_keys(self) -> dict:
        try:
            try:
                response = await self._http.get(self.public_keys_url)
                response.raise_for_status()
                keys = response.json()
            except httpx.HTTPError as e:
                raise ProviderUnavailableError(f"Unable to fetch token signing keys: {e}") from e
            except ValueError as e:
                raise ProviderUnavailableError(f"Signing key endpoint returned invalid JSON: {e}") from e

            if not isinstance(keys, dict) or not isinstance(keys.get("keys"), list):
                raise ProviderUnavailableError("Signing key endpoint returned no key set")

            self._keys = keys
            self._keys_fetched_at = time.monotonic()
            self._keys_expire_at = self._keys_fetched_at + self._max_age(response)
            logger.debug(f"Loaded {len(keys['keys'])} signing keys from {self.public_keys_url}")
            return keys
        finally:
            self._fetch = None

    @staticmethod
    def _max_age(response: httpx.Response) -> int:
        match = _MAX_AGE_PATTERN.search(response.headers.get("cache-control", ""))
        if match:
            return int(match.group(1))
        return DEFAULT_KEYS_MAX_AGE
