"""
Enrollment flow: profile registration, TOTP provisioning and verification.

save_profile() creates or updates the onboarding profile, makes sure the user
has a TOTP secret and returns the QR code to scan. verify_code() checks a code
from the authenticator app, marks 2FA as enabled and issues a session.
"""
import logging
import time
from dataclasses import replace
from typing import Callable, Optional

from ..errors import InvalidCode, UserNotEnrolled, ValidationError
from .account import EnrollmentState, ProfilePatch, UserAccount, merge_profile, transition
from .mfa import TOTPEngine
from .provisioning import ProvisioningArtifact, ProvisioningEncoder
from .replay import UsedCodeRegistry
from .session import SessionCredential, SessionIssuer

logger = logging.getLogger(__name__)

DEFAULT_ISSUER_LABEL = "DigiBridge"


class EnrollmentFlow:
    """
    Orchestrates the 2FA enrollment state machine.

    Example usage:
        flow = EnrollmentFlow(store, TOTPEngine(), ProvisioningEncoder(), issuer)
        artifact = flow.save_profile("alice@example.com", ProfilePatch(first_name="Alice"))
        credential = flow.verify_code("alice@example.com", "123456")
    """

    def __init__(
        self,
        store,
        engine: TOTPEngine,
        encoder: ProvisioningEncoder,
        session_issuer: SessionIssuer,
        issuer_label: str = DEFAULT_ISSUER_LABEL,
        replay_registry: Optional[UsedCodeRegistry] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: User store with find(), upsert() and mark_verified().
            engine: TOTP engine.
            encoder: Provisioning URI / QR encoder.
            session_issuer: Issues credentials after verification.
            issuer_label: Service name shown in authenticator apps.
            replay_registry: When set, each code is accepted once per time step.
            clock: Source of the current Unix time.
        """
        self.store = store
        self.engine = engine
        self.encoder = encoder
        self.session_issuer = session_issuer
        self.issuer_label = issuer_label
        self.replay_registry = replay_registry
        self._clock = clock

    def save_profile(self, email: str, patch: ProfilePatch) -> ProvisioningArtifact:
        """
        Save an onboarding profile and return the enrollment QR code.

        Re-saving a profile never rotates the secret: the store keeps the
        first secret persisted for an email, and the artifact is always built
        from the persisted one.

        Args:
            email: User identity (already format-checked by the caller).
            patch: Profile fields to overwrite.

        Returns:
            ProvisioningArtifact for the user's secret.

        Raises:
            ValidationError: If no email is given.
            StorageError: If the store fails.
            ArtifactEncodingError: If the URI cannot be rendered.
        """
        if not email:
            raise ValidationError("email is required")

        account = self.store.find(email)
        if account is None:
            account = UserAccount.new(email)
            logger.info(f"Creating onboarding profile: {email}")

        account = merge_profile(account, patch)
        account = replace(account, state=transition(account.state, EnrollmentState.PROFILE_SAVED))

        if not account.totp_secret:
            account = replace(
                account,
                totp_secret=self.engine.generate_secret(),
                state=transition(account.state, EnrollmentState.SECRET_ISSUED),
            )
            logger.info(f"TOTP secret issued for: {email}")

        saved = self.store.upsert(account)

        return self.encoder.provision(self.issuer_label, saved.email, saved.totp_secret)

    def verify_code(self, email: str, submitted_code: str) -> SessionCredential:
        """
        Verify a one-time code and issue a session.

        Verifying again after 2FA is enabled issues a fresh credential.

        Args:
            email: User identity.
            submitted_code: Code from the authenticator app.

        Returns:
            SessionCredential valid for one hour.

        Raises:
            UserNotEnrolled: No such user, or no secret issued yet.
            InvalidCode: Code does not match (or was already used when
                replay protection is on).
            StorageError: If the store fails.
        """
        if not email:
            raise ValidationError("email is required")

        account = self.store.find(email)
        if account is None or not account.totp_secret:
            logger.warning(f"Verification attempt for unenrolled identity: {email}")
            raise UserNotEnrolled("User has not been enrolled")

        now = self._clock()
        counter = self.engine.matching_step(account.totp_secret, submitted_code, now)
        if counter is None:
            logger.warning(f"Invalid TOTP code for: {email}")
            raise InvalidCode("Invalid authentication code")

        if self.replay_registry is not None:
            ttl = (2 * self.engine.window + 1) * self.engine.step
            if not self.replay_registry.claim(email, counter, ttl):
                logger.warning(f"Replayed TOTP code for: {email}")
                raise InvalidCode("Invalid authentication code")

        transition(account.state, EnrollmentState.VERIFIED)
        saved = self.store.mark_verified(email)
        if saved is None:
            raise UserNotEnrolled("User has not been enrolled")

        logger.info(f"2FA verified for: {email}")
        return self.session_issuer.issue(saved.user_id, saved.email)
