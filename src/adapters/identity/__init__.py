"""Identity adapters - Identity provider implementations."""

from .memory import PASSWORD_METHOD, EmailSender, InMemoryIdentityGateway

__all__ = ["PASSWORD_METHOD", "EmailSender", "InMemoryIdentityGateway"]
