"""
Integration tests for registration flow.

Tests the full registration lifecycle through the API with the in-memory
identity provider and profile store. Polling is driven by the virtual
ticker, so the verification deadline passes instantly.
"""

import logging
import re

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.identity.memory import InMemoryIdentityGateway
from src.adapters.repository.memory import InMemoryProfileStore
from src.adapters.smtp.console import ConsoleEmailSender
from src.api.v1 import router
from src.domain.ports import Role
from src.domain.registration import RegistrationCoordinator

TOKEN_PATTERN = re.compile(r"token=(\S+)")


@pytest.fixture
def identity_gateway() -> InMemoryIdentityGateway:
    return InMemoryIdentityGateway(email_sender=ConsoleEmailSender(), bcrypt_cost=4)


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def client(
    identity_gateway: InMemoryIdentityGateway,
    profile_store: InMemoryProfileStore,
    clock,
    ticker,
    policy,
) -> TestClient:
    """Create test client wired to real in-memory adapters and a virtual ticker."""
    app = FastAPI()
    app.include_router(router, prefix="/v1")
    app.state.gateway = identity_gateway
    app.state.coordinator = RegistrationCoordinator(
        gateway=identity_gateway,
        store=profile_store,
        clock=clock,
        ticker=ticker,
        policy=policy,
    )
    return TestClient(app)


def sent_token(caplog: pytest.LogCaptureFixture, email: str) -> str:
    """Pull the most recent verification token logged for an email."""
    for record in reversed(caplog.records):
        message = record.getMessage()
        if "[VERIFICATION]" in message and email in message:
            return TOKEN_PATTERN.search(message).group(1)
    raise AssertionError(f"No verification link logged for {email}")


def register(client: TestClient, email: str, role: str = "customer", shop_id=None):
    return client.post(
        "/v1/register",
        json={"email": email, "password": "secret1", "role": role, "shop_id": shop_id},
    )


class TestVerifiedRegistration:
    """Register, follow the link, and watch the session commit."""

    def test_vendor_flow(
        self, client: TestClient, caplog: pytest.LogCaptureFixture, ticker, profile_store
    ) -> None:
        """End-to-end vendor registration with the verification link from logs."""
        caplog.set_level(logging.INFO)

        response = register(client, "vendor@x.com", "vendor", "shop-1")
        assert response.status_code == 202
        session_id = response.json()["session_id"]
        assert response.json()["remaining_seconds"] == 300

        verify = client.get("/v1/verify", params={"token": sent_token(caplog, "vendor@x.com")})
        assert verify.status_code == 200

        ticker.run_for(2)

        status = client.get(f"/v1/register/{session_id}").json()
        assert status["status"] == "success"
        assert status["role"] == "vendor"
        [profile] = profile_store.query(Role.VENDOR)
        assert (profile.email, profile.shop_id) == ("vendor@x.com", "shop-1")

    def test_shop_taken_after_commit(
        self, client: TestClient, caplog: pytest.LogCaptureFixture, ticker
    ) -> None:
        """Once a vendor holds a shop, the next vendor is rejected up front."""
        caplog.set_level(logging.INFO)
        register(client, "first@x.com", "vendor", "shop-1")
        client.get("/v1/verify", params={"token": sent_token(caplog, "first@x.com")})
        ticker.run_for(2)

        response = register(client, "second@x.com", "vendor", "shop-1")

        assert response.status_code == 409
        assert response.json() == {"detail": "shop-taken"}
        available = client.get(
            "/v1/shops/available", params=[("shop_id", "shop-1"), ("shop_id", "shop-2")]
        )
        assert available.json() == {"shop_ids": ["shop-2"]}

    def test_link_is_single_use(self, client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO)
        register(client, "once@x.com")
        token = sent_token(caplog, "once@x.com")

        assert client.get("/v1/verify", params={"token": token}).status_code == 200
        assert client.get("/v1/verify", params={"token": token}).status_code == 400

    def test_weak_password_rejected_by_provider(self, client: TestClient) -> None:
        response = client.post(
            "/v1/register", json={"email": "weak@x.com", "password": "abc"}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "weak-password"}


class TestTimedOutRegistration:
    """Never follow the link and let the deadline pass."""

    def test_admin_times_out_and_is_rolled_back(
        self, client: TestClient, ticker, identity_gateway: InMemoryIdentityGateway
    ) -> None:
        response = register(client, "admin@x.com", "admin")
        session_id = response.json()["session_id"]

        ticker.run_for(300)

        status = client.get(f"/v1/register/{session_id}").json()
        assert status["status"] == "timed_out"
        assert status["cleanup_required"] is False
        assert identity_gateway.list_sign_in_methods("admin@x.com") == set()

        # The email and the admin slot are free again
        assert register(client, "admin@x.com", "admin").status_code == 202

    def test_dismissed_prompt_still_rolls_back(
        self, client: TestClient, ticker, identity_gateway: InMemoryIdentityGateway
    ) -> None:
        session_id = register(client, "gone@x.com").json()["session_id"]

        assert client.delete(f"/v1/register/{session_id}").status_code == 204
        ticker.run_for(300)

        assert client.get(f"/v1/register/{session_id}").json()["status"] == "timed_out"
        assert identity_gateway.list_sign_in_methods("gone@x.com") == set()

    def test_resend_cooldown(self, client: TestClient, ticker) -> None:
        session_id = register(client, "slow@x.com").json()["session_id"]

        assert client.post(f"/v1/register/{session_id}/resend").status_code == 429

        ticker.run_for(30)
        response = client.post(f"/v1/register/{session_id}/resend")
        assert response.status_code == 202
        assert response.json()["remaining_seconds"] == 270


class TestFederatedRegistration:
    """Federated sign-in skips email verification."""

    def test_federated_admin_then_password_signup_redirected(self, client: TestClient) -> None:
        response = client.post(
            "/v1/register/federated", json={"email": "g@x.com", "role": "admin"}
        )
        assert response.status_code == 201
        assert response.json()["role"] == "admin"

        again = register(client, "g@x.com")
        assert again.status_code == 409
        assert again.json() == {"detail": "use-federated-sign-in"}

    def test_returning_federated_user_keeps_role(self, client: TestClient) -> None:
        client.post("/v1/register/federated", json={"email": "g@x.com", "role": "admin"})

        response = client.post("/v1/register/federated", json={"email": "g@x.com"})

        assert response.status_code == 201
        assert response.json()["role"] == "admin"

    def test_unverified_federated_email(self, client: TestClient) -> None:
        response = client.post(
            "/v1/register/federated", json={"email": "u@x.com", "email_verified": False}
        )

        assert response.status_code == 409
        assert response.json() == {"detail": "email-not-verified"}
