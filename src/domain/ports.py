"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the enums shared across the registration
lifecycle. Adapters implement these protocols structurally.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import Identity, Profile


class Role(str, Enum):
    """Marketplace roles a registration may request."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


class SessionState(str, Enum):
    """
    Verification session states.

    State Transitions:
    - IDLE -> AWAITING_VERIFICATION (session started, deadline recorded)
    - AWAITING_VERIFICATION -> VERIFIED (reload reports verified, profile committed)
    - AWAITING_VERIFICATION -> TIMED_OUT (deadline reached, rollback attempted)
    - any -> FAILED (unhandled collaborator error)

    Terminal States: VERIFIED, TIMED_OUT, FAILED
    """

    IDLE = "IDLE"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    VERIFIED = "VERIFIED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.VERIFIED, SessionState.TIMED_OUT, SessionState.FAILED)


class RejectionReason(str, Enum):
    """Reasons a registration is refused before or at commit time."""

    ADMIN_EXISTS = "admin-exists"
    SHOP_REQUIRED = "shop-required"
    SHOP_TAKEN = "shop-taken"
    USE_FEDERATED_SIGN_IN = "use-federated-sign-in"
    EMAIL_NOT_VERIFIED = "email-not-verified"


class ErrorKind(str, Enum):
    """Stable error kinds surfaced to the presentation layer."""

    EMAIL_IN_USE = "email-in-use"
    INVALID_EMAIL = "invalid-email"
    WEAK_PASSWORD = "weak-password"
    NETWORK = "network"
    POPUP_CLOSED = "popup-closed"
    INVALID_CREDENTIALS = "invalid-credentials"
    ACCOUNT_NOT_FOUND = "account-not-found"
    STORE_UNAVAILABLE = "store-unavailable"
    VERIFIED_LOGIN_FAILED = "verified-login-failed"
    COMMIT_FAILED = "commit-failed"
    RELOAD_FAILED = "reload-failed"
    RESEND_TOO_SOON = "resend-too-soon"
    NOT_AWAITING = "not-awaiting"
    UNKNOWN = "unknown"


class IdentityGateway(Protocol):
    """Port interface for the authentication provider."""

    def create(self, email: str, password: str) -> "Identity":
        """
        Create an email/password identity.

        Raises:
            ProviderError: email-in-use, invalid-email, weak-password or network
        """
        ...

    def delete(self, identity: "Identity") -> None:
        """Delete an identity. Raises ProviderError on failure."""
        ...

    def send_verification(self, identity: "Identity") -> None:
        """Dispatch the verification email for an identity."""
        ...

    def reload(self, identity: "Identity") -> "Identity":
        """Return fresh identity state (notably the verified flag)."""
        ...

    def sign_in(self, email: str, password: str) -> "Identity":
        """Open a session with email/password credentials."""
        ...

    def sign_out(self) -> None:
        """Close the current session."""
        ...

    def sign_in_with_federated_provider(self) -> "Identity":
        """
        Sign in through the federated provider.

        Raises:
            ProviderError: popup-closed when the user abandons the flow
        """
        ...

    def list_sign_in_methods(self, email: str) -> set[str]:
        """Return the sign-in method ids registered for an email."""
        ...


class ProfileStore(Protocol):
    """Port interface for profile persistence."""

    def get(self, account_id: str) -> "Profile":
        """
        Fetch a profile by account id.

        Raises:
            ProfileNotFound: no profile for this account
            ProfileStoreError: storage failure
        """
        ...

    def put(self, profile: "Profile") -> None:
        """
        Conditionally write a profile.

        The write fails with AllocationConflict when it would create a
        second admin or a second vendor for the same shop.
        """
        ...

    def delete(self, account_id: str) -> None:
        """
        Delete a profile.

        Raises:
            ProfileNotFound: no profile for this account
        """
        ...

    def query(self, role: Role | None = None) -> Sequence["Profile"]:
        """Return all profiles, optionally filtered by role."""
        ...


class Clock(Protocol):
    """Port interface for the current time (virtualised in tests)."""

    def now(self) -> datetime: ...


class TimerHandle(Protocol):
    """An active recurring timer."""

    def cancel(self) -> None: ...


class Ticker(Protocol):
    """Port interface for recurring, non-blocking timers."""

    def every(self, interval_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke callback every interval until the returned handle is cancelled."""
        ...
