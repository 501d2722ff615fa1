"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import Error, Outcome, Pending, Rejected, Success, TimedOut
from src.domain.ports import Role


class RegisterRequest(BaseModel):
    """Request model for email/password registration."""

    email: EmailStr
    password: str = Field(..., min_length=1, description="Account password")
    role: Role = Field(Role.CUSTOMER, description="Requested marketplace role")
    shop_id: str | None = Field(None, description="Shop to manage (required for vendors)")


class FederatedRegisterRequest(BaseModel):
    """Request model for registration through the federated provider."""

    email: EmailStr = Field(..., description="Email asserted by the federated provider")
    email_verified: bool = Field(True, description="Whether the provider verified the email")
    role: Role = Role.CUSTOMER
    shop_id: str | None = None


class OutcomeResponse(BaseModel):
    """Registration outcome as consumed by the presentation layer."""

    status: Literal["pending", "success", "timed_out", "rejected", "error"]
    session_id: str | None = None
    remaining_seconds: int | None = None
    role: Role | None = None
    reason: str | None = None
    kind: str | None = None
    cleanup_required: bool | None = None

    @classmethod
    def from_outcome(cls, outcome: Outcome, session_id: str | None = None) -> "OutcomeResponse":
        if isinstance(outcome, Pending):
            return cls(
                status="pending",
                session_id=session_id,
                remaining_seconds=outcome.remaining_seconds,
            )
        if isinstance(outcome, Success):
            return cls(status="success", session_id=session_id, role=outcome.role)
        if isinstance(outcome, TimedOut):
            return cls(
                status="timed_out",
                session_id=session_id,
                cleanup_required=outcome.cleanup_required,
            )
        if isinstance(outcome, Rejected):
            return cls(status="rejected", session_id=session_id, reason=outcome.reason.value)
        if isinstance(outcome, Error):
            return cls(status="error", session_id=session_id, kind=outcome.kind.value)
        raise TypeError(f"Unknown outcome: {outcome!r}")


class AvailableShopsResponse(BaseModel):
    """Shops that do not have a vendor yet."""

    shop_ids: list[str]


class VerifyResponse(BaseModel):
    """Response model for a followed verification link."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
