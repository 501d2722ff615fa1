"""
Unit tests for ConsoleEmailSender adapter.

Tests verify the console email sender implements EmailSender protocol
and logs verification links in the correct format.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.adapters.identity.memory import EmailSender
from src.adapters.smtp.console import ConsoleEmailSender

LINK = "http://localhost:8000/v1/verify?token=abc"


class TestConsoleEmailSenderProtocol:
    """Tests for EmailSender protocol compliance."""

    def test_implements_email_sender_protocol(self) -> None:
        """ConsoleEmailSender satisfies EmailSender structurally."""
        sender = ConsoleEmailSender()
        assert callable(sender.send_verification_link)

        def accepts_email_sender(s: EmailSender) -> None:
            pass

        accepts_email_sender(sender)

    def test_no_explicit_inheritance(self) -> None:
        """ConsoleEmailSender uses structural subtyping, not inheritance."""
        assert ConsoleEmailSender.__bases__ == (object,)


class TestSendVerificationLink:
    """Tests for send_verification_link method."""

    def test_logs_single_info_record(self, caplog: pytest.LogCaptureFixture) -> None:
        """Verification link is logged once at INFO level."""
        with caplog.at_level(logging.INFO):
            ConsoleEmailSender().send_verification_link("test@example.com", LINK)

        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.INFO

    def test_log_format(self, caplog: pytest.LogCaptureFixture) -> None:
        """Log format: [VERIFICATION] Email: ... Link: ..."""
        with caplog.at_level(logging.INFO):
            ConsoleEmailSender().send_verification_link("user@example.com", LINK)

        assert caplog.records[0].getMessage() == (
            f"[VERIFICATION] Email: user@example.com Link: {LINK}"
        )

    def test_returns_none(self) -> None:
        """Method returns None (fire-and-forget)."""
        assert ConsoleEmailSender().send_verification_link("test@example.com", LINK) is None


class TestThreadSafety:
    """Tests for thread-safe logging."""

    def test_concurrent_logging_is_thread_safe(self, caplog: pytest.LogCaptureFixture) -> None:
        """Concurrent calls each produce one complete log entry."""
        sender = ConsoleEmailSender()
        emails = [f"user{i}@example.com" for i in range(10)]

        with caplog.at_level(logging.INFO), ThreadPoolExecutor(max_workers=5) as executor:
            futures = [
                executor.submit(sender.send_verification_link, email, f"{LINK}{i}")
                for i, email in enumerate(emails)
            ]
            for f in futures:
                f.result()

        assert len(caplog.records) == 10
        for record in caplog.records:
            assert "[VERIFICATION]" in record.message
            assert "Link:" in record.message
