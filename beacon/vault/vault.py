"""Symmetric encryption of destination configuration blobs.

``CredentialVault`` seals JSON-serializable objects with Fernet
(AES-CBC plus HMAC-SHA256, random IV per token) so identical plaintexts
produce different ciphertexts. The key source is consulted on every call,
so a key removed or weakened at runtime fails the next operation instead
of silently continuing with stale material.

Usage
-----
>>> vault = CredentialVault.from_env()
>>> token = vault.seal({"apiSecret": "s3cret"})
>>> vault.open(token)
{'apiSecret': 's3cret'}

"""

from __future__ import annotations

import base64
import hashlib
import os
import typing as typ

import msgspec
from cryptography.fernet import Fernet, InvalidToken

from beacon.vault.errors import VaultConfigError, VaultDecryptError

__all__ = ["ENCRYPTION_KEY_ENV", "MIN_KEY_LENGTH", "CredentialVault"]

ENCRYPTION_KEY_ENV = "BEACON_ENCRYPTION_KEY"
MIN_KEY_LENGTH = 32

type KeySource = typ.Callable[[], str | None]


def _environment_key() -> str | None:
    return os.environ.get(ENCRYPTION_KEY_ENV)


class CredentialVault:
    """Seal and open JSON-serializable configuration objects."""

    def __init__(self, key_source: KeySource) -> None:
        """Store the callable that yields the current secret.

        Parameters
        ----------
        key_source
            Zero-argument callable returning the raw secret, or ``None``
            when it is not configured.

        """
        self._key_source = key_source

    @classmethod
    def from_env(cls) -> CredentialVault:
        """Build a vault that reads ``BEACON_ENCRYPTION_KEY`` per call."""
        return cls(_environment_key)

    @classmethod
    def from_secret(cls, secret: str | None) -> CredentialVault:
        """Build a vault bound to a fixed secret."""
        return cls(lambda: secret)

    def _fernet(self) -> Fernet:
        secret = self._key_source()
        if not secret:
            raise VaultConfigError.missing_key(ENCRYPTION_KEY_ENV)
        if len(secret) < MIN_KEY_LENGTH:
            raise VaultConfigError.short_key(ENCRYPTION_KEY_ENV, MIN_KEY_LENGTH)
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, value: object) -> str:
        """Encrypt ``value`` and return the ciphertext as text.

        Parameters
        ----------
        value
            Any object msgspec can encode as JSON.

        Returns
        -------
        str
            URL-safe Fernet token.

        Raises
        ------
        VaultConfigError
            If the key is missing or shorter than 32 characters.

        """
        fernet = self._fernet()
        return fernet.encrypt(msgspec.json.encode(value)).decode("ascii")

    def open(self, token: str) -> typ.Any:  # noqa: ANN401 - arbitrary JSON
        """Decrypt a token produced by :meth:`seal`.

        Raises
        ------
        VaultConfigError
            If the key is missing or shorter than 32 characters.
        VaultDecryptError
            If the token was tampered with, sealed under another key, or
            does not hold JSON.

        """
        fernet = self._fernet()
        try:
            plaintext = fernet.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise VaultDecryptError.invalid_token() from exc
        try:
            return msgspec.json.decode(plaintext)
        except msgspec.DecodeError as exc:
            raise VaultDecryptError.invalid_payload() from exc
