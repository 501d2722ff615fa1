"""
Domain models - Value objects for the registration lifecycle.

Requests, identities, profiles and the outcome surface consumed by
the presentation layer. Plain dataclasses with no framework imports.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Union

from .ports import ErrorKind, RejectionReason, Role

if TYPE_CHECKING:
    from .verification import VerificationSession


@dataclass(frozen=True)
class RegistrationRequest:
    """A single email/password registration attempt."""

    email: str
    password: str = field(repr=False)
    role: Role = Role.CUSTOMER
    shop_id: str | None = None


@dataclass(frozen=True)
class ProfileClaim:
    """Role and shop requested through the federated entry point."""

    role: Role = Role.CUSTOMER
    shop_id: str | None = None


@dataclass(frozen=True)
class Identity:
    """Authentication-provider account record."""

    account_id: str
    email: str
    verified: bool = False


@dataclass
class ProvisionalIdentity:
    """
    Identity created but not yet verified.

    Holds the plaintext password in memory only, for the post-verification
    sign-in. Owned by exactly one VerificationSession.
    """

    identity: Identity
    password: str | None = field(default=None, repr=False)

    @property
    def account_id(self) -> str:
        return self.identity.account_id

    @property
    def email(self) -> str:
        return self.identity.email

    @property
    def verified(self) -> bool:
        return self.identity.verified

    def forget_password(self) -> None:
        self.password = None


@dataclass(frozen=True)
class Profile:
    """Durable application record asserting a user's role and shop."""

    account_id: str
    email: str
    role: Role
    shop_id: str | None
    created_at: datetime


@dataclass(frozen=True)
class AllocationSnapshot:
    """Read-only view of the admin slot and vendor shop assignments."""

    admin_exists: bool = False
    shops_taken_by_vendor: frozenset[str] = frozenset()

    @classmethod
    def from_profiles(cls, profiles: Iterable[Profile]) -> "AllocationSnapshot":
        admin_exists = False
        taken: set[str] = set()
        for profile in profiles:
            if profile.role == Role.ADMIN:
                admin_exists = True
            elif profile.role == Role.VENDOR and profile.shop_id:
                taken.add(profile.shop_id)
        return cls(admin_exists=admin_exists, shops_taken_by_vendor=frozenset(taken))


# Outcome surface


@dataclass(frozen=True)
class Pending:
    """Awaiting verification; whole seconds left before the deadline."""

    remaining_seconds: int


@dataclass(frozen=True)
class Success:
    """Profile committed for the given role."""

    role: Role


@dataclass(frozen=True)
class TimedOut:
    """Verification deadline passed; cleanup_required flags an orphaned identity."""

    cleanup_required: bool = False


@dataclass(frozen=True)
class Rejected:
    """Refused by an allocation rule or a sign-in requirement."""

    reason: RejectionReason


@dataclass(frozen=True)
class Error:
    """Collaborator failure, classified by kind."""

    kind: ErrorKind
    detail: str = ""


Outcome = Union[Pending, Success, TimedOut, Rejected, Error]


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a submission plus the session handle while pending."""

    outcome: Outcome
    session: "VerificationSession | None" = None
