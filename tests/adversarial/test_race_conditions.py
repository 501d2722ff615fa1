"""
Adversarial tests for race condition attack prevention.

Verifies that concurrent registrations competing for the same allocation
are resolved atomically, preventing attackers from exploiting the gap
between the eligibility check and the profile commit to:
- Create a second administrator
- Attach two vendors to the same shop
- Register the same email twice

Security rationale:
- Eligibility is checked against a snapshot taken minutes before the
  verified commit, so the check alone cannot hold the invariants
- The conditional profile write (unique indexes in PostgreSQL, a locked
  check in memory) is the final arbiter
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from src.adapters.identity.memory import InMemoryIdentityGateway
from src.adapters.repository.memory import InMemoryProfileStore
from src.domain.exceptions import AllocationConflict
from src.domain.models import (
    Error,
    Identity,
    Pending,
    ProfileClaim,
    ProvisionalIdentity,
    RegistrationRequest,
    Rejected,
    Success,
)
from src.domain.ports import ErrorKind, RejectionReason, Role
from src.domain.registration import RegistrationCoordinator
from src.domain.verification import VerificationSession, commit_profile

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial

CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestAllocationRaceAttacks:
    """
    Adversarial tests simulating concurrent commits for a single slot.

    Every attacker passed the eligibility check while the slot was free;
    only the conditional write stands between them and the invariant.
    """

    def test_concurrent_admin_commits_exactly_one_succeeds(
        self, profile_store: InMemoryProfileStore
    ) -> None:
        """Ten verified identities race for the admin slot: exactly one wins."""
        num_attackers = 10

        def attack(i: int) -> str:
            identity = Identity(f"acct-{i}", f"admin{i}@x.com", verified=True)
            try:
                commit_profile(profile_store, identity, ProfileClaim(role=Role.ADMIN), CREATED)
            except AllocationConflict as exc:
                return exc.reason.value
            return "committed"

        with ThreadPoolExecutor(max_workers=num_attackers) as executor:
            results = list(executor.map(attack, range(num_attackers)))

        assert results.count("committed") == 1, (
            f"Race condition vulnerability: {results.count('committed')} admins committed"
        )
        assert results.count("admin-exists") == num_attackers - 1
        assert len(profile_store.query(Role.ADMIN)) == 1

    def test_concurrent_vendor_sessions_for_same_shop(
        self, profile_store: InMemoryProfileStore, clock, ticker
    ) -> None:
        """Verified vendor sessions for one shop: one Success, the rest shop-taken."""
        num_attackers = 8
        gateway = Mock()
        sessions = []
        for i in range(num_attackers):
            session = VerificationSession(
                provisional=ProvisionalIdentity(
                    identity=Identity(f"acct-{i}", f"v{i}@x.com"), password="secret1"
                ),
                claim=ProfileClaim(role=Role.VENDOR, shop_id="shop-1"),
                gateway=gateway,
                store=profile_store,
                clock=clock,
                ticker=ticker,
            )
            session.start()
            sessions.append(session)

        def verify(session: VerificationSession) -> None:
            session.on_reload(Identity(session.account_id, session.email, verified=True))

        with ThreadPoolExecutor(max_workers=num_attackers) as executor:
            list(executor.map(verify, sessions))

        outcomes = [session.outcome for session in sessions]
        assert outcomes.count(Success(Role.VENDOR)) == 1
        assert outcomes.count(Rejected(RejectionReason.SHOP_TAKEN)) == num_attackers - 1
        assert [p.shop_id for p in profile_store.query(Role.VENDOR)] == ["shop-1"]
        assert ticker.active == []

    def test_distinct_shops_do_not_conflict(self, profile_store: InMemoryProfileStore) -> None:
        """Concurrent vendors for different shops all commit."""

        def commit(i: int) -> None:
            identity = Identity(f"acct-{i}", f"v{i}@x.com", verified=True)
            claim = ProfileClaim(role=Role.VENDOR, shop_id=f"shop-{i}")
            commit_profile(profile_store, identity, claim, CREATED)

        with ThreadPoolExecutor(max_workers=5) as executor:
            list(executor.map(commit, range(5)))

        assert len(profile_store.query(Role.VENDOR)) == 5


class TestDuplicateEmailAttacks:
    """Concurrent submissions for the same email create one identity."""

    def test_concurrent_submits_create_one_identity(
        self,
        identity_gateway: InMemoryIdentityGateway,
        profile_store: InMemoryProfileStore,
        clock,
        ticker,
    ) -> None:
        """
        Simulate an attacker submitting the same email concurrently.

        Expected defense: the provider refuses duplicates and the coordinator
        reuses the live session, so every accepted result points at one session.
        """
        coordinator = RegistrationCoordinator(
            gateway=identity_gateway, store=profile_store, clock=clock, ticker=ticker
        )
        num_attackers = 6

        def attack(_: int):
            return coordinator.submit(
                RegistrationRequest(email="attack@x.com", password="secret1")
            )

        with ThreadPoolExecutor(max_workers=num_attackers) as executor:
            results = list(executor.map(attack, range(num_attackers)))

        accepted = {id(r.session) for r in results if isinstance(r.outcome, Pending)}
        refused = [r.outcome for r in results if not isinstance(r.outcome, Pending)]
        assert len(accepted) == 1
        assert all(outcome == Error(ErrorKind.EMAIL_IN_USE) for outcome in refused)
        assert identity_gateway.list_sign_in_methods("attack@x.com") == {"password"}
