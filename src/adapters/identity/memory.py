"""
In-memory identity gateway adapter - Implements IdentityGateway protocol.

A process-local identity provider for development and tests. It mimics
the behaviour the registration flow relies on from a hosted auth
provider:

- create() validates the email shape and password strength, rejects
  emails already in use, and stores a bcrypt hash (never the password).
- send_verification() issues a single-use token and hands the link to an
  EmailSender; confirm_email(token) is what following the link does.
- Federated sign-in has no popup here; stage_federated_sign_in() records
  the account the provider would return for the calling thread.
"""

import logging
import re
import secrets
import threading
from dataclasses import dataclass, field
from typing import Protocol
from uuid import uuid4

import bcrypt

from src.domain.exceptions import ProviderError
from src.domain.models import Identity
from src.domain.ports import ErrorKind

logger = logging.getLogger(__name__)

PASSWORD_METHOD = "password"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmailSender(Protocol):
    """Port interface for verification email delivery."""

    def send_verification_link(self, email: str, link: str) -> None:
        """
        Send a verification link to an email address.

        Args:
            email: Recipient email address
            link: URL that confirms the address when followed
        """
        ...


@dataclass
class _Account:
    account_id: str
    email: str
    password_hash: str | None
    verified: bool = False
    methods: set[str] = field(default_factory=set)

    def to_identity(self) -> Identity:
        return Identity(account_id=self.account_id, email=self.email, verified=self.verified)


@dataclass(frozen=True)
class _StagedSignIn:
    email: str
    verified: bool


class InMemoryIdentityGateway:
    """
    Implements IdentityGateway protocol with in-process account storage.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        email_sender: EmailSender,
        verification_url: str = "http://localhost:8000/v1/verify",
        min_password_length: int = 6,
        bcrypt_cost: int = 10,
        federated_method_id: str = "google.com",
    ) -> None:
        self._email_sender = email_sender
        self._verification_url = verification_url
        self._min_password_length = min_password_length
        self._bcrypt_cost = bcrypt_cost
        self._federated_method_id = federated_method_id

        self._accounts: dict[str, _Account] = {}
        self._by_email: dict[str, str] = {}
        self._tokens: dict[str, str] = {}
        self._current: str | None = None
        self._staged = threading.local()
        self._lock = threading.RLock()

    @property
    def current_account_id(self) -> str | None:
        return self._current

    def create(self, email: str, password: str) -> Identity:
        if not _EMAIL_PATTERN.match(email):
            raise ProviderError(ErrorKind.INVALID_EMAIL)
        if len(password) < self._min_password_length:
            raise ProviderError(ErrorKind.WEAK_PASSWORD)

        password_hash = self._hash_password(password)
        with self._lock:
            if email in self._by_email:
                raise ProviderError(ErrorKind.EMAIL_IN_USE)
            account = _Account(
                account_id=uuid4().hex,
                email=email,
                password_hash=password_hash,
                methods={PASSWORD_METHOD},
            )
            self._store(account)
            self._current = account.account_id

        logger.info("Identity created: account_id=%s", account.account_id)
        return account.to_identity()

    def delete(self, identity: Identity) -> None:
        with self._lock:
            account = self._accounts.pop(identity.account_id, None)
            if account is None:
                raise ProviderError(ErrorKind.ACCOUNT_NOT_FOUND)
            del self._by_email[account.email]
            self._tokens = {
                token: account_id
                for token, account_id in self._tokens.items()
                if account_id != account.account_id
            }
            if self._current == account.account_id:
                self._current = None

        logger.info("Identity deleted: account_id=%s", identity.account_id)

    def send_verification(self, identity: Identity) -> None:
        token = secrets.token_urlsafe(32)
        with self._lock:
            account = self._require(identity.account_id)
            self._tokens[token] = account.account_id

        self._email_sender.send_verification_link(
            account.email, f"{self._verification_url}?token={token}"
        )

    def reload(self, identity: Identity) -> Identity:
        with self._lock:
            return self._require(identity.account_id).to_identity()

    def sign_in(self, email: str, password: str) -> Identity:
        with self._lock:
            account_id = self._by_email.get(email)
            account = self._accounts.get(account_id) if account_id else None

        stored_hash = account.password_hash if account is not None else None
        if stored_hash is None or not bcrypt.checkpw(password.encode(), stored_hash.encode()):
            raise ProviderError(ErrorKind.INVALID_CREDENTIALS)

        with self._lock:
            self._current = account.account_id
        return account.to_identity()

    def sign_out(self) -> None:
        with self._lock:
            self._current = None

    def stage_federated_sign_in(self, email: str, verified: bool = True) -> None:
        """Record the account the federated provider returns to this thread's next sign-in."""
        self._staged.sign_in = _StagedSignIn(email=email, verified=verified)

    def sign_in_with_federated_provider(self) -> Identity:
        staged: _StagedSignIn | None = getattr(self._staged, "sign_in", None)
        self._staged.sign_in = None
        if staged is None:
            raise ProviderError(ErrorKind.POPUP_CLOSED)

        with self._lock:
            account_id = self._by_email.get(staged.email)
            if account_id is None:
                account = _Account(account_id=uuid4().hex, email=staged.email, password_hash=None)
                self._store(account)
            else:
                account = self._accounts[account_id]
            account.methods.add(self._federated_method_id)
            account.verified = account.verified or staged.verified
            self._current = account.account_id
            return account.to_identity()

    def list_sign_in_methods(self, email: str) -> set[str]:
        with self._lock:
            account_id = self._by_email.get(email)
            if account_id is None:
                return set()
            return set(self._accounts[account_id].methods)

    def confirm_email(self, token: str) -> bool:
        """Mark the token's account verified. Tokens are single-use."""
        with self._lock:
            account_id = self._tokens.pop(token, None)
            account = self._accounts.get(account_id) if account_id else None
            if account is None:
                return False
            account.verified = True

        logger.info("Email confirmed: account_id=%s", account.account_id)
        return True

    def _store(self, account: _Account) -> None:
        self._accounts[account.account_id] = account
        self._by_email[account.email] = account.account_id

    def _require(self, account_id: str) -> _Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise ProviderError(ErrorKind.ACCOUNT_NOT_FOUND)
        return account

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self._bcrypt_cost)).decode()
