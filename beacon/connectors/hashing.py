"""Normalisation and one-way hashing of personally identifying fields.

Every ad-conversion platform requires identifiers to be trimmed and
lower-cased before SHA-256 hashing; some also strip inner whitespace.
Phone numbers are normalised to E.164 first.
"""

from __future__ import annotations

import hashlib
import re

__all__ = ["hash_identifier", "hash_phone", "normalize_phone", "sha256_hex"]

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")


def sha256_hex(value: str) -> str:
    """Return the lowercase hex SHA-256 digest of ``value``."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_identifier(value: str | None, *, strip_spaces: bool = False) -> str | None:
    """Trim, lower-case and hash ``value``; blank input yields ``None``.

    Parameters
    ----------
    value
        Raw identifier such as an email address or city name.
    strip_spaces
        Also remove whitespace inside the value.

    """
    if value is None:
        return None
    normalized = value.strip().lower()
    if strip_spaces:
        normalized = _WHITESPACE.sub("", normalized)
    if not normalized:
        return None
    return sha256_hex(normalized)


def normalize_phone(phone: str, country_code: str = "1") -> str:
    """Return ``phone`` in E.164 form, prefixing ``country_code`` when absent."""
    digits = _NON_DIGITS.sub("", phone)
    if not digits.startswith(country_code):
        return f"+{country_code}{digits}"
    return f"+{digits}"


def hash_phone(phone: str | None, country_code: str = "1") -> str | None:
    """Normalise ``phone`` to E.164 and hash it; blank input yields ``None``."""
    if phone is None or not _NON_DIGITS.sub("", phone):
        return None
    return sha256_hex(normalize_phone(phone, country_code))
