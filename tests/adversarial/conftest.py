"""
Shared fixtures for adversarial tests.

Provides a real in-memory profile store and a fast-hashing identity
gateway so concurrent attack simulations exercise the actual locking.
"""

from unittest.mock import Mock

import pytest

from src.adapters.identity.memory import InMemoryIdentityGateway
from src.adapters.repository.memory import InMemoryProfileStore

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def identity_gateway() -> InMemoryIdentityGateway:
    """Identity gateway with minimum bcrypt cost to keep attack loops fast."""
    return InMemoryIdentityGateway(email_sender=Mock(), bcrypt_cost=4)
