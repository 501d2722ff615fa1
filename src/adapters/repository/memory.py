"""
In-memory profile store adapter - Implements ProfileStore protocol.

Process-local store for development and tests. Enforces the same
allocation rules as the PostgreSQL unique indexes, under a lock, so a
put() that would create a second admin or a second vendor for a shop
raises AllocationConflict.
"""

import threading
from collections.abc import Sequence

from src.domain.exceptions import AllocationConflict, ProfileNotFound
from src.domain.models import Profile
from src.domain.ports import RejectionReason, Role


class InMemoryProfileStore:
    """
    Implements ProfileStore protocol with a dict keyed by account id.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, profiles: Sequence[Profile] = ()) -> None:
        self._profiles: dict[str, Profile] = {}
        self._lock = threading.Lock()
        for profile in profiles:
            self.put(profile)

    def get(self, account_id: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(account_id)
        if profile is None:
            raise ProfileNotFound(account_id)
        return profile

    def put(self, profile: Profile) -> None:
        with self._lock:
            if profile.account_id in self._profiles:
                return
            for other in self._profiles.values():
                if profile.role == Role.ADMIN and other.role == Role.ADMIN:
                    raise AllocationConflict(RejectionReason.ADMIN_EXISTS)
                if (
                    profile.role == Role.VENDOR
                    and other.role == Role.VENDOR
                    and other.shop_id == profile.shop_id
                ):
                    raise AllocationConflict(RejectionReason.SHOP_TAKEN)
            self._profiles[profile.account_id] = profile

    def delete(self, account_id: str) -> None:
        with self._lock:
            if self._profiles.pop(account_id, None) is None:
                raise ProfileNotFound(account_id)

    def query(self, role: Role | None = None) -> Sequence[Profile]:
        with self._lock:
            profiles = list(self._profiles.values())
        if role is None:
            return profiles
        return [profile for profile in profiles if profile.role == role]
