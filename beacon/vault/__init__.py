"""Credential vault for destination configuration at rest."""

from __future__ import annotations

from .errors import VaultConfigError, VaultDecryptError, VaultError
from .vault import ENCRYPTION_KEY_ENV, MIN_KEY_LENGTH, CredentialVault

__all__ = [
    "ENCRYPTION_KEY_ENV",
    "MIN_KEY_LENGTH",
    "CredentialVault",
    "VaultConfigError",
    "VaultDecryptError",
    "VaultError",
]
