"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations and collaborator failures without leaking
infrastructure details.
"""

from .ports import ErrorKind, RejectionReason


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class EligibilityError(RegistrationError):
    """Requested role/shop violates an allocation rule."""

    def __init__(self, reason: RejectionReason) -> None:
        super().__init__(reason.value)
        self.reason = reason


class AllocationConflict(EligibilityError):
    """Conditional profile write lost the race for the admin slot or a shop."""

    pass


class ProviderError(RegistrationError):
    """Identity provider operation failed."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class PostVerificationError(RegistrationError):
    """Re-authentication or commit failed after the email was verified."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class ProfileStoreError(RegistrationError):
    """Profile storage failure."""

    pass


class ProfileNotFound(ProfileStoreError):
    """No profile exists for the account id."""

    pass
