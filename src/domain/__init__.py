"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration and email-verification lifecycle
for the marketplace: eligibility rules, the verification session state
machine and the coordinator that ties them to the identity provider and
profile store ports.
"""

from .eligibility import EligibilityChecker
from .exceptions import (
    AllocationConflict,
    EligibilityError,
    PostVerificationError,
    ProfileNotFound,
    ProfileStoreError,
    ProviderError,
    RegistrationError,
)
from .models import (
    AllocationSnapshot,
    Error,
    Identity,
    Outcome,
    Pending,
    Profile,
    ProfileClaim,
    ProvisionalIdentity,
    RegistrationRequest,
    RegistrationResult,
    Rejected,
    Success,
    TimedOut,
)
from .ports import (
    Clock,
    ErrorKind,
    IdentityGateway,
    ProfileStore,
    RejectionReason,
    Role,
    SessionState,
    Ticker,
    TimerHandle,
)
from .registration import RegistrationCoordinator
from .verification import VerificationPolicy, VerificationSession, commit_profile

__all__ = [
    "AllocationConflict",
    "AllocationSnapshot",
    "Clock",
    "EligibilityChecker",
    "EligibilityError",
    "Error",
    "ErrorKind",
    "Identity",
    "IdentityGateway",
    "Outcome",
    "Pending",
    "PostVerificationError",
    "Profile",
    "ProfileClaim",
    "ProfileNotFound",
    "ProfileStore",
    "ProfileStoreError",
    "ProviderError",
    "ProvisionalIdentity",
    "RegistrationCoordinator",
    "RegistrationError",
    "RegistrationRequest",
    "RegistrationResult",
    "Rejected",
    "RejectionReason",
    "Role",
    "SessionState",
    "Success",
    "Ticker",
    "TimedOut",
    "TimerHandle",
    "VerificationPolicy",
    "VerificationSession",
    "commit_profile",
]
