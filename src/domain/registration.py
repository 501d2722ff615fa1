"""
Registration coordinator - Orchestrates the registration lifecycle.

Email/password flow:
    eligibility (fresh snapshot)
    -> federated-account check
    -> IdentityGateway.create
    -> sign-out (an unverified identity is never an active session)
    -> verification email
    -> VerificationSession (polls until verified or deadline)

Federated flow:
    federated sign-in -> verified-email check -> eligibility -> profile commit

Outcomes are returned as values (Pending, Success, TimedOut, Rejected,
Error); collaborator exceptions never escape to the presentation layer.
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from .diagnostics import log_failure
from .eligibility import EligibilityChecker
from .exceptions import AllocationConflict, ProfileNotFound, ProviderError
from .models import (
    AllocationSnapshot,
    Error,
    Identity,
    Outcome,
    ProfileClaim,
    ProvisionalIdentity,
    RegistrationRequest,
    RegistrationResult,
    Rejected,
    Success,
)
from .ports import Clock, ErrorKind, IdentityGateway, ProfileStore, RejectionReason, Role, Ticker
from .verification import VerificationPolicy, VerificationSession, commit_profile

logger = logging.getLogger(__name__)


def _error_kind(exc: Exception) -> ErrorKind:
    return exc.kind if isinstance(exc, ProviderError) else ErrorKind.UNKNOWN


@dataclass
class RegistrationCoordinator:
    """
    Domain service for marketplace registration.

    Owns the index of verification sessions: at most one live session per
    email, and a bounded history of finished sessions so polling clients
    can read terminal outcomes.
    """

    gateway: IdentityGateway
    store: ProfileStore
    clock: Clock
    ticker: Ticker
    policy: VerificationPolicy = field(default_factory=VerificationPolicy)
    federated_method_id: str = "google.com"
    finished_session_retention: int = 1000
    checker: EligibilityChecker = field(default_factory=EligibilityChecker)

    _live: dict[str, VerificationSession] = field(default_factory=dict, init=False, repr=False)
    _sessions: "OrderedDict[str, VerificationSession]" = field(
        default_factory=OrderedDict, init=False, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def submit(self, request: RegistrationRequest) -> RegistrationResult:
        """
        Submit an email/password registration.

        Returns:
            RegistrationResult carrying Pending and the session handle on
            success, or a Rejected/Error outcome with no identity created.
        """
        request = replace(request, email=self._normalize_email(request.email))
        email = request.email

        live = self._live_session(email)
        if live is not None:
            claim = ProfileClaim(role=request.role, shop_id=request.shop_id)
            if not live.matches(claim, request.password):
                logger.warning(
                    "Resubmission for pending email %s differs from the original; refused", email
                )
                return RegistrationResult(Error(ErrorKind.EMAIL_IN_USE))
            # Same submission while a link is outstanding: no second identity,
            # and start() swaps out the earlier timer.
            live.start()
            logger.info("Resubmission for pending email %s; polling restarted", email)
            return RegistrationResult(live.outcome, live)

        try:
            snapshot = self.load_snapshot()
        except Exception as exc:
            log_failure(logger, "load-snapshot", exc, email=email)
            return RegistrationResult(Error(ErrorKind.STORE_UNAVAILABLE))

        rejected = self.checker.check(request, snapshot)
        if rejected is not None:
            logger.warning(
                "Registration rejected: email=%s role=%s reason=%s",
                email,
                request.role.value,
                rejected.reason.value,
            )
            return RegistrationResult(rejected)

        try:
            methods = self.gateway.list_sign_in_methods(email)
        except Exception as exc:
            log_failure(logger, "list-sign-in-methods", exc, email=email)
            return RegistrationResult(Error(_error_kind(exc)))

        if self.federated_method_id in methods:
            logger.info("Email %s belongs to a federated account", email)
            return RegistrationResult(Rejected(RejectionReason.USE_FEDERATED_SIGN_IN))

        try:
            identity = self.gateway.create(email, request.password)
        except Exception as exc:
            log_failure(logger, "create-identity", exc, email=email)
            return RegistrationResult(Error(_error_kind(exc)))

        try:
            self.gateway.sign_out()
            self.gateway.send_verification(identity)
        except Exception as exc:
            log_failure(logger, "dispatch-verification", exc, identity.account_id, email)
            self._discard(identity)
            return RegistrationResult(Error(_error_kind(exc)))

        session = VerificationSession(
            provisional=ProvisionalIdentity(identity=identity, password=request.password),
            claim=ProfileClaim(role=request.role, shop_id=request.shop_id),
            gateway=self.gateway,
            store=self.store,
            clock=self.clock,
            ticker=self.ticker,
            policy=self.policy,
        )
        with self._lock:
            self._live[email] = session
            self._sessions[session.session_id] = session
            self._prune()
        session.add_done_callback(self._session_finished)
        session.start()

        return RegistrationResult(session.outcome, session)

    def register_via_external_provider(self, claim: ProfileClaim) -> RegistrationResult:
        """
        Register through the federated provider, which vouches for the email.

        An account that already has a profile simply succeeds with its
        stored role.
        """
        try:
            identity = self.gateway.sign_in_with_federated_provider()
        except Exception as exc:
            log_failure(logger, "federated-sign-in", exc)
            return RegistrationResult(Error(_error_kind(exc)))

        if not identity.verified:
            logger.warning("Federated email not verified: %s", identity.email)
            self._sign_out_quietly(identity)
            return RegistrationResult(Rejected(RejectionReason.EMAIL_NOT_VERIFIED))

        try:
            existing = self.store.get(identity.account_id)
        except ProfileNotFound:
            existing = None
        except Exception as exc:
            log_failure(logger, "get-profile", exc, identity.account_id, identity.email)
            self._sign_out_quietly(identity)
            return RegistrationResult(Error(ErrorKind.STORE_UNAVAILABLE))

        if existing is not None:
            return RegistrationResult(Success(existing.role))

        try:
            snapshot = self.load_snapshot()
        except Exception as exc:
            log_failure(logger, "load-snapshot", exc, identity.account_id, identity.email)
            self._sign_out_quietly(identity)
            return RegistrationResult(Error(ErrorKind.STORE_UNAVAILABLE))

        rejected = self.checker.check(claim, snapshot)
        if rejected is not None:
            logger.warning(
                "Federated registration rejected: email=%s reason=%s",
                identity.email,
                rejected.reason.value,
            )
            self._sign_out_quietly(identity)
            return RegistrationResult(rejected)

        try:
            commit_profile(self.store, identity, claim, self.clock.now())
        except AllocationConflict as exc:
            log_failure(
                logger, "commit-profile", exc, identity.account_id, identity.email, logging.WARNING
            )
            self._sign_out_quietly(identity)
            return RegistrationResult(Rejected(exc.reason))
        except Exception as exc:
            log_failure(logger, "commit-profile", exc, identity.account_id, identity.email)
            return RegistrationResult(Error(ErrorKind.COMMIT_FAILED))

        return RegistrationResult(Success(claim.role))

    def load_snapshot(self) -> AllocationSnapshot:
        """Read the current admin slot and vendor shop assignments."""
        profiles = [*self.store.query(Role.ADMIN), *self.store.query(Role.VENDOR)]
        return AllocationSnapshot.from_profiles(profiles)

    def available_shops(self, shop_ids: Iterable[str]) -> list[str]:
        """Return the candidate shops that have no vendor yet."""
        return self.checker.available_shops(shop_ids, self.load_snapshot())

    def get_session(self, session_id: str) -> VerificationSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def detach(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.detach()
        return True

    def resend(self, session_id: str) -> Outcome | None:
        session = self.get_session(session_id)
        if session is None:
            return None
        return session.resend_verification()

    def shutdown(self) -> None:
        """Stop polling for every live session (process shutdown)."""
        with self._lock:
            live = list(self._live.values())
        for session in live:
            session.cancel()
        if live:
            logger.info("Stopped %d pending verification session(s)", len(live))

    def _live_session(self, email: str) -> VerificationSession | None:
        with self._lock:
            session = self._live.get(email)
        if session is not None and session.state.is_terminal:
            return None
        return session

    def _session_finished(self, session: VerificationSession) -> None:
        with self._lock:
            if self._live.get(session.email) is session:
                del self._live[session.email]

    def _prune(self) -> None:
        overflow = len(self._sessions) - self.finished_session_retention
        if overflow <= 0:
            return
        for session_id, session in list(self._sessions.items()):
            if overflow <= 0:
                break
            if session.state.is_terminal:
                del self._sessions[session_id]
                overflow -= 1

    def _discard(self, identity: Identity) -> None:
        """Best-effort removal of an identity whose verification never started."""
        try:
            self.gateway.delete(identity)
        except Exception as exc:
            log_failure(logger, "discard-identity", exc, identity.account_id, identity.email)
            self._sign_out_quietly(identity)

    def _sign_out_quietly(self, identity: Identity) -> None:
        try:
            self.gateway.sign_out()
        except Exception as exc:
            log_failure(logger, "sign-out", exc, identity.account_id, identity.email)

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()
