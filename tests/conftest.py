"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A virtual clock and manually driven ticker (no real timers)
- Spy collaborators for the identity provider and profile store
- A wired RegistrationCoordinator
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import InMemoryProfileStore
from src.domain.models import Identity
from src.domain.registration import RegistrationCoordinator
from src.domain.verification import VerificationPolicy

ACCOUNT_ID = "acct-1"
EMAIL = "a@x.com"


class ManualClock:
    """Virtual clock advanced explicitly by tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class ManualTimer:
    """Recurring timer handle that only fires when the ticker is driven."""

    def __init__(self, interval_seconds: float, callback: Callable[[], None]) -> None:
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTicker:
    """Ticker whose timers fire as the virtual clock is advanced by run_for()."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.timers: list[ManualTimer] = []

    def every(self, interval_seconds: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def run_for(self, seconds: float) -> None:
        """Advance the clock in poll-interval steps, firing every active timer each step."""
        elapsed = 0.0
        while elapsed < seconds:
            active = self.active
            if not active:
                self.clock.advance(seconds - elapsed)
                return
            step = active[0].interval_seconds
            self.clock.advance(step)
            elapsed += step
            for timer in active:
                if not timer.cancelled:
                    timer.callback()


def make_identity(
    account_id: str = ACCOUNT_ID, email: str = EMAIL, verified: bool = False
) -> Identity:
    return Identity(account_id=account_id, email=email, verified=verified)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def ticker(clock: ManualClock) -> ManualTicker:
    return ManualTicker(clock)


@pytest.fixture
def gateway() -> Mock:
    """Spy identity gateway: creates acct-1, never verified unless reconfigured."""
    gateway = Mock()
    gateway.list_sign_in_methods.return_value = set()
    gateway.create.return_value = make_identity()
    gateway.reload.return_value = make_identity()
    gateway.sign_in.return_value = make_identity(verified=True)
    return gateway


@pytest.fixture
def store() -> Mock:
    """Spy profile store wrapping a real in-memory store."""
    return Mock(wraps=InMemoryProfileStore())


@pytest.fixture
def policy() -> VerificationPolicy:
    return VerificationPolicy(
        poll_interval_seconds=2, timeout_seconds=300, resend_cooldown_seconds=30
    )


@pytest.fixture
def coordinator(
    gateway: Mock,
    store: Mock,
    clock: ManualClock,
    ticker: ManualTicker,
    policy: VerificationPolicy,
) -> RegistrationCoordinator:
    return RegistrationCoordinator(
        gateway=gateway,
        store=store,
        clock=clock,
        ticker=ticker,
        policy=policy,
    )
