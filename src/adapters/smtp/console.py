"""
Console email sender adapter.

Delivers verification links by logging them to stdout for demo purposes.
Used by the in-memory identity gateway in place of real email delivery.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints verification links to stdout.
    """

    def send_verification_link(self, email: str, link: str) -> None:
        """
        Log verification link to console (simulates email delivery).

        The link is logged at INFO level to be visible in docker-compose logs.

        Args:
            email: Recipient email address
            link: Verification URL the user follows to confirm the address
        """
        logger.info("[VERIFICATION] Email: %s Link: %s", email, link)
