"""
Verification session - Email verification state machine.

One session exists per registration attempt. It owns the provisional
identity (including the in-memory password used for the post-verification
sign-in), the deadline, and the single recurring timer that drives polling.

Session State Machine
=====================

States:
- IDLE: Created, not yet polling
- AWAITING_VERIFICATION: Polling the identity provider until the deadline
- VERIFIED: Terminal, email verified and profile committed
- TIMED_OUT: Terminal, deadline passed and rollback attempted
- FAILED: Terminal, a collaborator call failed (no automatic retry)

Events:
- tick(): the timer fired. At or past the deadline the session times out
  without a further reload; otherwise it reloads the identity.
- on_reload(identity): the provider reported fresh identity state.

Exit paths:
Every terminal transition goes through _scope(), which releases the timer
and discards the plaintext password. detach() only silences observers; the
timer keeps running so an abandoned prompt still gets its rollback.
"""

import logging
import math
import secrets
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from .diagnostics import log_failure
from .exceptions import AllocationConflict, PostVerificationError, ProfileNotFound, ProviderError
from .models import (
    Error,
    Identity,
    Outcome,
    Pending,
    Profile,
    ProfileClaim,
    ProvisionalIdentity,
    Rejected,
    Success,
    TimedOut,
)
from .ports import (
    Clock,
    ErrorKind,
    IdentityGateway,
    ProfileStore,
    Role,
    SessionState,
    Ticker,
    TimerHandle,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationPolicy:
    """Polling cadence and deadlines for a verification session."""

    poll_interval_seconds: float = 2.0
    timeout_seconds: int = 300
    resend_cooldown_seconds: int = 30


def commit_profile(
    store: ProfileStore, identity: Identity, claim: ProfileClaim, created_at: datetime
) -> Profile:
    """
    Write the profile for a verified identity unless one already exists.

    An existing profile is returned untouched, so retrying a commit never
    writes twice.

    Raises:
        AllocationConflict: the admin slot or shop was taken concurrently
        ProfileStoreError: storage failure
    """
    try:
        return store.get(identity.account_id)
    except ProfileNotFound:
        pass

    profile = Profile(
        account_id=identity.account_id,
        email=identity.email,
        role=claim.role,
        shop_id=claim.shop_id if claim.role == Role.VENDOR else None,
        created_at=created_at,
    )
    store.put(profile)
    logger.info("Profile committed: account_id=%s role=%s", profile.account_id, profile.role.value)
    return profile


class VerificationSession:
    """State machine polling the identity provider until verification or deadline."""

    def __init__(
        self,
        provisional: ProvisionalIdentity,
        claim: ProfileClaim,
        gateway: IdentityGateway,
        store: ProfileStore,
        clock: Clock,
        ticker: Ticker,
        policy: VerificationPolicy | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid4().hex
        self.claim = claim
        self._provisional = provisional
        self._gateway = gateway
        self._store = store
        self._clock = clock
        self._ticker = ticker
        self._policy = policy or VerificationPolicy()

        self._state = SessionState.IDLE
        self._outcome: Outcome = Pending(self._policy.timeout_seconds)
        self._last_sent_at: datetime | None = None
        self._deadline: datetime | None = None
        self._timer: TimerHandle | None = None
        self._detached = False
        self._observers: list[Callable[[Outcome], None]] = []
        self._done_callbacks: list[Callable[["VerificationSession"], None]] = []
        self._lock = threading.RLock()

    def __enter__(self) -> "VerificationSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def outcome(self) -> Outcome:
        return self._outcome

    @property
    def account_id(self) -> str:
        return self._provisional.account_id

    @property
    def email(self) -> str:
        return self._provisional.email

    @property
    def deadline(self) -> datetime | None:
        return self._deadline

    @property
    def is_polling(self) -> bool:
        return self._timer is not None

    @property
    def is_detached(self) -> bool:
        return self._detached

    @property
    def holds_credential(self) -> bool:
        return self._provisional.password is not None

    @property
    def remaining_seconds(self) -> int:
        if self._deadline is None:
            return self._policy.timeout_seconds
        remaining = (self._deadline - self._clock.now()).total_seconds()
        return max(0, math.ceil(remaining))

    def matches(self, claim: ProfileClaim, password: str) -> bool:
        """True if a resubmission carries the same claim and password as this session."""
        with self._lock:
            held = self._provisional.password
            if held is None or claim != self.claim:
                return False
            return secrets.compare_digest(held.encode(), password.encode())

    def start(self) -> None:
        """
        Begin (or restart) polling.

        The first call records the deadline. Later calls keep the deadline
        and replace the timer, cancelling the previous one first.
        """
        with self._lock:
            if self._state.is_terminal:
                return

            self._release_timer()
            if self._state == SessionState.IDLE:
                now = self._clock.now()
                self._last_sent_at = now
                self._deadline = now + timedelta(seconds=self._policy.timeout_seconds)
                self._state = SessionState.AWAITING_VERIFICATION
                logger.info(
                    "Verification session started: session_id=%s account_id=%s deadline=%s",
                    self.session_id,
                    self.account_id,
                    self._deadline.isoformat(),
                )

            self._timer = self._ticker.every(self._policy.poll_interval_seconds, self.tick)
            self._publish(Pending(self.remaining_seconds))

    def cancel(self) -> None:
        """Release the polling timer. Used by the owner, not by UI dismissal."""
        with self._lock:
            self._release_timer()

    def detach(self) -> None:
        """Stop surfacing updates to observers; polling and rollback continue."""
        with self._lock:
            self._detached = True
            self._observers.clear()
            logger.info(
                "Verification prompt dismissed: session_id=%s remaining=%ss",
                self.session_id,
                self.remaining_seconds,
            )

    def subscribe(self, observer: Callable[[Outcome], None]) -> None:
        with self._lock:
            if not self._detached:
                self._observers.append(observer)

    def add_done_callback(self, callback: Callable[["VerificationSession"], None]) -> None:
        """Run callback once the session reaches a terminal state."""
        with self._lock:
            if not self._state.is_terminal:
                self._done_callbacks.append(callback)
                return
        callback(self)

    def tick(self) -> None:
        """Timer event: time out at the deadline, otherwise reload the identity."""
        with self._lock, self._scope():
            if self._state != SessionState.AWAITING_VERIFICATION:
                return

            if self._deadline is not None and self._clock.now() >= self._deadline:
                self._time_out()
                return

            try:
                identity = self._gateway.reload(self._provisional.identity)
            except Exception as exc:
                self._fail(ErrorKind.RELOAD_FAILED, "reload", exc)
                return

            self._handle_reload(identity)

    def on_reload(self, identity: Identity) -> None:
        """Reload-result event."""
        with self._lock, self._scope():
            if self._state == SessionState.AWAITING_VERIFICATION:
                self._handle_reload(identity)

    def resend_verification(self) -> Outcome:
        """Send the verification email again once the cooldown since the last send has elapsed."""
        with self._lock:
            if self._state != SessionState.AWAITING_VERIFICATION or self._last_sent_at is None:
                return Error(ErrorKind.NOT_AWAITING)

            now = self._clock.now()
            elapsed = (now - self._last_sent_at).total_seconds()
            if elapsed < self._policy.resend_cooldown_seconds:
                return Error(ErrorKind.RESEND_TOO_SOON)

            try:
                self._gateway.send_verification(self._provisional.identity)
            except Exception as exc:
                log_failure(logger, "resend-verification", exc, self.account_id, self.email)
                kind = exc.kind if isinstance(exc, ProviderError) else ErrorKind.UNKNOWN
                return Error(kind)

            self._last_sent_at = now
            logger.info("Verification email re-sent: session_id=%s", self.session_id)
            return Pending(self.remaining_seconds)

    @contextmanager
    def _scope(self) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            self._fail(ErrorKind.UNKNOWN, "verification", exc)
        finally:
            if self._state.is_terminal:
                self._release()

    def _handle_reload(self, identity: Identity) -> None:
        self._provisional.identity = identity
        if identity.verified:
            self._commit()
        elif self._deadline is not None and self._clock.now() >= self._deadline:
            self._time_out()
        else:
            self._publish(Pending(self.remaining_seconds))

    def _commit(self) -> None:
        logger.info("Email verified: session_id=%s account_id=%s", self.session_id, self.account_id)
        try:
            try:
                self._gateway.sign_in(self.email, self._provisional.password or "")
            except Exception as exc:
                raise PostVerificationError(ErrorKind.VERIFIED_LOGIN_FAILED, str(exc)) from exc

            try:
                profile = commit_profile(
                    self._store, self._provisional.identity, self.claim, self._clock.now()
                )
            except AllocationConflict:
                raise
            except Exception as exc:
                raise PostVerificationError(ErrorKind.COMMIT_FAILED, str(exc)) from exc
        except AllocationConflict as exc:
            # The identity stays verified; only the requested allocation is refused.
            log_failure(logger, "commit-profile", exc, self.account_id, self.email, logging.WARNING)
            self._finish(SessionState.FAILED, Rejected(exc.reason))
        except PostVerificationError as exc:
            action = (
                "post-verification-sign-in"
                if exc.kind == ErrorKind.VERIFIED_LOGIN_FAILED
                else "commit-profile"
            )
            log_failure(logger, action, exc.__cause__ or exc, self.account_id, self.email)
            self._finish(SessionState.FAILED, Error(exc.kind))
        else:
            self._finish(SessionState.VERIFIED, Success(profile.role))

    def _time_out(self) -> None:
        logger.warning(
            "Verification deadline passed: session_id=%s account_id=%s",
            self.session_id,
            self.account_id,
        )
        cleanup_required = not self._roll_back()
        if cleanup_required:
            logger.error(
                "Manual cleanup needed for unverified identity: account_id=%s email=%s",
                self.account_id,
                self.email,
            )
        self._finish(SessionState.TIMED_OUT, TimedOut(cleanup_required=cleanup_required))

    def _roll_back(self) -> bool:
        """Delete profile and identity independently; False if anything was left behind."""
        clean = True

        try:
            self._store.delete(self.account_id)
        except ProfileNotFound:
            pass
        except Exception as exc:
            log_failure(logger, "rollback-delete-profile", exc, self.account_id, self.email)
            clean = False

        try:
            self._gateway.delete(self._provisional.identity)
        except Exception as exc:
            log_failure(logger, "rollback-delete-identity", exc, self.account_id, self.email)
            clean = False
            try:
                self._gateway.sign_out()
            except Exception as sign_out_exc:
                log_failure(logger, "rollback-sign-out", sign_out_exc, self.account_id, self.email)

        return clean

    def _fail(self, kind: ErrorKind, action: str, exc: BaseException) -> None:
        log_failure(logger, action, exc, self.account_id, self.email)
        self._finish(SessionState.FAILED, Error(kind, str(exc)))

    def _finish(self, state: SessionState, outcome: Outcome) -> None:
        self._state = state
        self._publish(outcome)

    def _publish(self, outcome: Outcome) -> None:
        self._outcome = outcome
        for observer in list(self._observers):
            try:
                observer(outcome)
            except Exception as exc:
                log_failure(
                    logger, "notify-observer", exc, self.account_id, self.email, logging.WARNING
                )

    def _release_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release(self) -> None:
        self._release_timer()
        self._provisional.forget_password()
        callbacks, self._done_callbacks = self._done_callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as exc:
                log_failure(
                    logger, "session-done", exc, self.account_id, self.email, logging.WARNING
                )
