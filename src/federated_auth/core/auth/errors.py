"""Errors raised by the identity verifier and the user directory.

Rejections (invalid token, unreachable provider) are caught inside the
strategy and turned into a failed login. CredentialError is the one error
that is allowed to escape: it is raised at startup and must stop the host.
"""


class VerificationError(Exception):
    """Base class for token verification failures."""
    pass


class InvalidTokenError(VerificationError):
    """Token is malformed, expired, or has an invalid signature or claims."""
    pass


class ProviderUnavailableError(VerificationError):
    """The verification backend could not be reached."""
    pass


class CredentialError(Exception):
    """Verifier credentials are missing or malformed (fatal at startup)."""
    pass
