"""Firebase authentication strategy.

Accepts a Firebase ID token plus the uid the client claims it belongs to,
verifies the token, and maps the verified uid to a local user:

- existing user with identifier == uid: returned as is
- no user, registration allowed: a user and its firebase authentication
  method are created in one transaction
- no user, registration disabled: rejected

Every failure, including unexpected ones, ends the attempt as a failed
login. The only error allowed to escape is a CredentialError from init().
"""

import logging
from typing import Literal, Optional, Union

from federated_auth.domain.models import AuthenticationMethod, FirebaseAuthInput, User
from federated_auth.infrastructure.user_directory import DuplicateIdentityError, UserDirectory

from .errors import InvalidTokenError, ProviderUnavailableError
from .options import FirebaseAuthOptions
from .strategy import (
    AuthenticationStrategy,
    Authenticated,
    AuthResult,
    Rejected,
    RequestContext,
    StrategyContext,
    SystemFailure,
)
from .verifier import IdentityVerifier, get_identity_verifier

logger = logging.getLogger(__name__)

FIREBASE_AUTH_STRATEGY_NAME = "firebase"

FIREBASE_AUTH_INPUT_SDL = '''
input FirebaseAuthInput {
  """
  The encoded Firebase ID token issued to the client
  """
  token: String!
  """
  The Firebase uid the client claims the token belongs to
  """
  claimedSubjectId: String!
}
'''


def _request_label(ctx: RequestContext) -> str:
    return f" [request {ctx.request_id}]" if ctx.request_id else ""


class FirebaseAuthStrategy(AuthenticationStrategy[FirebaseAuthInput]):
    """Authenticate users with Firebase ID tokens.

    Example:
        strategy = FirebaseAuthStrategy()
        await strategy.init(StrategyContext(options=settings.strategy_options()))

        user = await strategy.authenticate(
            RequestContext(session=db),
            FirebaseAuthInput(token=id_token, claimedSubjectId=uid),
        )
        if user is False:
            ...  # Invalid credentials
    """

    name = FIREBASE_AUTH_STRATEGY_NAME

    def __init__(self, verifier: Optional[IdentityVerifier] = None):
        """Initialize the strategy.

        Args:
            verifier: Identity verifier to use; the process-wide one when omitted
        """
        self._verifier = verifier or get_identity_verifier()
        self._options: Optional[FirebaseAuthOptions] = None
        self._context: Optional[StrategyContext] = None

    @property
    def options(self) -> Optional[FirebaseAuthOptions]:
        return self._options

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    def define_input_type(self) -> str:
        return FIREBASE_AUTH_INPUT_SDL

    async def init(self, context: StrategyContext) -> None:
        """Resolve options and directory, and initialize the verifier once.

        Calling init() again on an initialized strategy does nothing.

        Raises:
            CredentialError: If the verifier credentials are malformed
        """
        if self._context is not None:
            return

        await self._verifier.initialize(context.options.credential)
        self._options = context.options
        self._context = context
        logger.info(
            f"Firebase auth strategy initialized "
            f"(new user registration {'enabled' if context.options.allow_new_user_registration else 'disabled'})"
        )

    async def destroy(self) -> None:
        """Tear down the verifier. Safe to call repeatedly or without init()."""
        if self._context is None:
            return

        self._context = None
        await self._verifier.teardown()
        logger.info("Firebase auth strategy destroyed")

    async def authenticate(
        self,
        ctx: RequestContext,
        data: FirebaseAuthInput,
    ) -> Union[User, Literal[False]]:
        """Authenticate with a Firebase ID token.

        Returns:
            The matched or newly provisioned User, or False
        """
        result = await self.resolve(ctx, data)
        if isinstance(result, Authenticated):
            return result.user
        return False

    async def resolve(self, ctx: RequestContext, data: FirebaseAuthInput) -> AuthResult:
        """Run one authentication attempt and report its outcome.

        Never raises: unexpected errors are logged and returned as
        SystemFailure.
        """
        try:
            return await self._resolve(ctx, data)
        except Exception as e:
            logger.error(f"Error authenticating with Firebase login{_request_label(ctx)}: {e}", exc_info=True)
            return SystemFailure(detail=str(e))

    async def _resolve(self, ctx: RequestContext, data: FirebaseAuthInput) -> AuthResult:
        context = self._context
        if context is None:
            raise RuntimeError("Firebase auth strategy used before init()")

        try:
            identity = await self._verifier.verify(data.token)
        except InvalidTokenError as e:
            logger.warning(f"Firebase login rejected{_request_label(ctx)}: invalid token ({e})")
            return Rejected(reason="invalid_token")
        except ProviderUnavailableError as e:
            logger.error(f"Firebase login rejected{_request_label(ctx)}: verification backend unavailable ({e})")
            return Rejected(reason="provider_unavailable")

        if identity.subject_id != data.claimed_subject_id:
            logger.warning(
                f"Firebase login rejected{_request_label(ctx)}: claimed uid {data.claimed_subject_id} "
                f"does not match verified uid {identity.subject_id}"
            )
            return Rejected(reason="subject_mismatch")

        directory = context.directory_factory(ctx)
        user = await directory.find_by_identifier(identity.subject_id)
        if user is not None:
            self._note_unlinked(user)
            logger.info(f"Firebase login succeeded for existing user {user.id}")
            return Authenticated(user=user)

        if not context.options.allow_new_user_registration:
            logger.warning(
                f"Firebase login rejected{_request_label(ctx)}: no user for uid {identity.subject_id} "
                f"and new user registration is disabled"
            )
            return Rejected(reason="registration_disabled")

        return await self._provision(directory, identity.subject_id)

    async def _provision(self, directory: UserDirectory, subject_id: str) -> AuthResult:
        """Create the user and its authentication method in one transaction.

        The method is saved before the user that references it. If another
        request provisioned the same uid first, its user is returned.
        """
        try:
            async with directory.transaction():
                method = await directory.save_authentication_method(
                    AuthenticationMethod(strategy=self.name, external_identifier=subject_id)
                )
                user = await directory.save_user(
                    User(identifier=subject_id, verified=True, authentication_methods=[method])
                )
        except DuplicateIdentityError as e:
            logger.warning(f"Concurrent provisioning for uid {subject_id}, using existing user ({e})")
            existing = await directory.find_by_identifier(subject_id)
            if existing is None:
                raise
            self._note_unlinked(existing)
            return Authenticated(user=existing)

        logger.info(f"Provisioned new user {user.id} for Firebase uid {subject_id}")
        return Authenticated(user=user, provisioned=True)

    def _note_unlinked(self, user: User) -> None:
        # Matching is by identifier alone; no link is created here.
        if not user.has_method(self.name):
            logger.info(f"User {user.id} matched by identifier has no {self.name} authentication method")
