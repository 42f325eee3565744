"""Errors raised while managing destinations."""

from __future__ import annotations

__all__ = ["DestinationConfigError"]


class DestinationConfigError(ValueError):
    """Raised when a destination's configuration does not fit its type."""

    @classmethod
    def invalid(cls, destination_type: str, detail: str) -> DestinationConfigError:
        """Create an error for configuration rejected by the connector schema."""
        return cls(f"Invalid {destination_type} configuration: {detail}")
