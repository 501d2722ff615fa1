"""
Collaborator failure logging.

Every failed identity-provider or profile-store call is logged with the
action name, account id and email so orphaned identities can be traced
after the fact. Logging must never take down the caller.
"""

import logging


def log_failure(
    logger: logging.Logger,
    action: str,
    error: BaseException,
    account_id: str | None = None,
    email: str | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log a collaborator failure; errors raised while logging are dropped."""
    try:
        logger.log(
            level,
            "%s failed: %s (account_id=%s email=%s)",
            action,
            error,
            account_id,
            email,
            exc_info=error,
            extra={"action": action, "account_id": account_id, "email": email},
        )
    except Exception:  # noqa: BLE001
        pass
