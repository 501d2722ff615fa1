"""
API v1 routes.

Defines REST endpoints for the marketplace registration API:
- POST   /v1/register                      - Begin email/password registration
- GET    /v1/register/{session_id}         - Poll a verification session
- DELETE /v1/register/{session_id}         - Dismiss the verification prompt
- POST   /v1/register/{session_id}/resend  - Re-send the verification email
- POST   /v1/register/federated            - Register via the federated provider
- GET    /v1/verify                        - Verification link target
- GET    /v1/shops/available               - Shops without a vendor
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.adapters.identity.memory import InMemoryIdentityGateway
from src.api.dependencies import get_coordinator, get_identity_gateway
from src.api.models import (
    AvailableShopsResponse,
    ErrorResponse,
    FederatedRegisterRequest,
    OutcomeResponse,
    RegisterRequest,
    VerifyResponse,
)
from src.domain.exceptions import ProfileStoreError
from src.domain.models import Error, Outcome, ProfileClaim, RegistrationRequest, Rejected
from src.domain.ports import ErrorKind
from src.domain.registration import RegistrationCoordinator

router = APIRouter(tags=["v1"])

_ERROR_STATUS = {
    ErrorKind.EMAIL_IN_USE: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_EMAIL: status.HTTP_400_BAD_REQUEST,
    ErrorKind.WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    ErrorKind.POPUP_CLOSED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.RESEND_TOO_SOON: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.NOT_AWAITING: status.HTTP_409_CONFLICT,
}


def _raise_for_outcome(outcome: Outcome) -> None:
    """Translate Rejected/Error outcomes into HTTP errors with stable detail strings."""
    if isinstance(outcome, Rejected):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.reason.value)
    if isinstance(outcome, Error):
        raise HTTPException(
            status_code=_ERROR_STATUS.get(outcome.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=outcome.kind.value,
        )


def _session_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


@router.post(
    "/register",
    response_model=OutcomeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email or weak password"},
        409: {"model": ErrorResponse, "description": "Rejected or email already in use"},
        422: {"description": "Validation error"},
        503: {"model": ErrorResponse, "description": "Provider or store unavailable"},
    },
    summary="Register a new user",
    description="Submit credentials and the requested role. A verification email is sent "
    "and the returned session is polled until the link is followed or the deadline passes.",
)
async def register(
    request_data: RegisterRequest,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
) -> OutcomeResponse:
    """
    Register a new user and start email verification.

    - **email**: Email address to register
    - **password**: Account password
    - **role**: customer, vendor or admin
    - **shop_id**: Shop to manage (vendors only)
    """
    result = coordinator.submit(
        RegistrationRequest(
            email=request_data.email,
            password=request_data.password,
            role=request_data.role,
            shop_id=request_data.shop_id,
        )
    )
    _raise_for_outcome(result.outcome)
    session_id = result.session.session_id if result.session is not None else None
    return OutcomeResponse.from_outcome(result.outcome, session_id)


@router.post(
    "/register/federated",
    response_model=OutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Sign-in window closed"},
        409: {"model": ErrorResponse, "description": "Rejected"},
        503: {"model": ErrorResponse, "description": "Store unavailable"},
    },
    summary="Register via federated sign-in",
)
async def register_federated(
    request_data: FederatedRegisterRequest,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
    gateway: InMemoryIdentityGateway = Depends(get_identity_gateway),
) -> OutcomeResponse:
    """Complete registration for an account asserted by the federated provider."""
    gateway.stage_federated_sign_in(request_data.email, verified=request_data.email_verified)
    result = coordinator.register_via_external_provider(
        ProfileClaim(role=request_data.role, shop_id=request_data.shop_id)
    )
    _raise_for_outcome(result.outcome)
    return OutcomeResponse.from_outcome(result.outcome)


@router.get(
    "/register/{session_id}",
    response_model=OutcomeResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown session"}},
    summary="Get verification session outcome",
)
async def get_registration(
    session_id: str,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
) -> OutcomeResponse:
    """Current outcome of a verification session (pending countdown or terminal result)."""
    session = coordinator.get_session(session_id)
    if session is None:
        raise _session_not_found()
    return OutcomeResponse.from_outcome(session.outcome, session.session_id)


@router.delete(
    "/register/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Unknown session"}},
    summary="Dismiss the verification prompt",
    description="Stops surfacing updates. Polling continues and an unverified "
    "account is still removed at the deadline.",
)
async def dismiss_registration(
    session_id: str,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
) -> Response:
    if not coordinator.detach(session_id):
        raise _session_not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/register/{session_id}/resend",
    response_model=OutcomeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown session"},
        409: {"model": ErrorResponse, "description": "Session no longer awaiting verification"},
        429: {"model": ErrorResponse, "description": "Resend requested too soon"},
    },
    summary="Resend verification email",
)
async def resend_verification(
    session_id: str,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
) -> OutcomeResponse:
    outcome = coordinator.resend(session_id)
    if outcome is None:
        raise _session_not_found()
    _raise_for_outcome(outcome)
    return OutcomeResponse.from_outcome(outcome, session_id)


@router.get(
    "/verify",
    response_model=VerifyResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or used link"}},
    summary="Follow a verification link",
)
async def verify_email(
    token: str = Query(..., min_length=1),
    gateway: InMemoryIdentityGateway = Depends(get_identity_gateway),
) -> VerifyResponse:
    if not gateway.confirm_email(token):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification link",
        )
    return VerifyResponse(message="Email verified")


@router.get(
    "/shops/available",
    response_model=AvailableShopsResponse,
    responses={503: {"model": ErrorResponse, "description": "Store unavailable"}},
    summary="List shops without a vendor",
)
async def available_shops(
    shop_id: list[str] | None = Query(None),
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
) -> AvailableShopsResponse:
    """Filter the given candidate shop ids down to those still open to a vendor."""
    try:
        shop_ids = coordinator.available_shops(shop_id or [])
    except ProfileStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ErrorKind.STORE_UNAVAILABLE.value,
        ) from None
    return AvailableShopsResponse(shop_ids=shop_ids)
