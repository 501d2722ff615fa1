"""
Eligibility rules - Global allocation constraints for new registrations.

Two rules apply to every registration:
- At most one administrator account exists.
- Each shop has at most one vendor.

The checker is a pure function over an AllocationSnapshot. Callers must
evaluate it against a freshly read snapshot immediately before creating
an identity; the conditional profile write at commit time is the final
arbiter when two registrations race.
"""

from collections.abc import Iterable

from .models import AllocationSnapshot, ProfileClaim, RegistrationRequest, Rejected
from .ports import RejectionReason, Role


class EligibilityChecker:
    """Decides whether a requested role/shop assignment is allowed."""

    def check(
        self, request: RegistrationRequest | ProfileClaim, snapshot: AllocationSnapshot
    ) -> Rejected | None:
        """
        Check the role/shop a request asks for against a snapshot.

        Returns:
            None when allowed, otherwise Rejected with the first failing rule
        """
        role, shop_id = request.role, request.shop_id

        if role == Role.ADMIN and snapshot.admin_exists:
            return Rejected(RejectionReason.ADMIN_EXISTS)

        if role == Role.VENDOR:
            if not shop_id:
                return Rejected(RejectionReason.SHOP_REQUIRED)
            if shop_id in snapshot.shops_taken_by_vendor:
                return Rejected(RejectionReason.SHOP_TAKEN)

        return None

    def available_shops(self, shop_ids: Iterable[str], snapshot: AllocationSnapshot) -> list[str]:
        """Filter candidate shops down to those without a vendor, preserving order."""
        return [shop_id for shop_id in shop_ids if shop_id not in snapshot.shops_taken_by_vendor]
