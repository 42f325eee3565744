"""Exceptions raised by the credential vault."""

from __future__ import annotations


class VaultError(Exception):
    """Base class for credential vault failures."""


class VaultConfigError(VaultError):
    """Raised when the encryption key is absent or too weak to use."""

    @classmethod
    def missing_key(cls, env_var: str) -> VaultConfigError:
        """Create an error for an unset encryption key."""
        return cls(f"{env_var} is not configured")

    @classmethod
    def short_key(cls, env_var: str, minimum: int) -> VaultConfigError:
        """Create an error for a key below the minimum length.

        The key itself is never included in the message.
        """
        return cls(f"{env_var} must be at least {minimum} characters")


class VaultDecryptError(VaultError):
    """Raised when a sealed blob cannot be authenticated or decoded."""

    @classmethod
    def invalid_token(cls) -> VaultDecryptError:
        """Create an error for tampered or foreign ciphertext."""
        return cls("sealed value failed authentication")

    @classmethod
    def invalid_payload(cls) -> VaultDecryptError:
        """Create an error for ciphertext that does not hold JSON."""
        return cls("sealed value does not contain JSON")
