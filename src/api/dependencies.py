"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the registration
coordinator and infrastructure adapters into routes, plus the wiring
used at startup to build them from settings.
"""

from apscheduler.schedulers.base import BaseScheduler
from fastapi import Request

from src.adapters.identity.memory import InMemoryIdentityGateway
from src.adapters.scheduling.background import SchedulerTicker, SystemClock
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings
from src.domain.ports import ProfileStore
from src.domain.registration import RegistrationCoordinator
from src.domain.verification import VerificationPolicy


def build_identity_gateway(settings: Settings) -> InMemoryIdentityGateway:
    """Create the identity gateway with console email delivery."""
    return InMemoryIdentityGateway(
        email_sender=ConsoleEmailSender(),
        verification_url=settings.verification_url,
        min_password_length=settings.min_password_length,
        bcrypt_cost=settings.bcrypt_cost,
        federated_method_id=settings.federated_method_id,
    )


def build_coordinator(
    settings: Settings,
    store: ProfileStore,
    gateway: InMemoryIdentityGateway,
    scheduler: BaseScheduler,
) -> RegistrationCoordinator:
    """Wire the coordinator with the wall clock and polling jobs on the shared scheduler."""
    policy = VerificationPolicy(
        poll_interval_seconds=settings.poll_interval_seconds,
        timeout_seconds=settings.verification_timeout_seconds,
        resend_cooldown_seconds=settings.resend_cooldown_seconds,
    )
    return RegistrationCoordinator(
        gateway=gateway,
        store=store,
        clock=SystemClock(),
        ticker=SchedulerTicker(scheduler),
        policy=policy,
        federated_method_id=settings.federated_method_id,
        finished_session_retention=settings.finished_session_retention,
    )


def get_coordinator(request: Request) -> RegistrationCoordinator:
    """
    Get registration coordinator from app state.

    The coordinator is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.coordinator


def get_identity_gateway(request: Request) -> InMemoryIdentityGateway:
    """Get the identity gateway from app state."""
    return request.app.state.gateway
