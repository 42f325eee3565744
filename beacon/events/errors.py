"""Error types raised by the event store."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when a datetime bound for storage lacks timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error for a naive value bound to a UTC column."""
        return cls("stored datetime values")

    @classmethod
    def for_payload(cls) -> TimezoneAwareRequiredError:
        """Return an error for a naive datetime inside an event payload."""
        return cls("payload datetime values")


class UnsupportedPayloadTypeError(ValueError):
    """Raised when an event payload holds values JSON cannot represent."""

    def __init__(self, type_name: str) -> None:
        """Record the offending type name for diagnostics."""
        super().__init__(f"payload contains unsupported type {type_name}")


class EventPersistError(RuntimeError):
    """Raised when a duplicate insert cannot locate the row it collided with."""

    def __init__(self, external_event_id: str | None) -> None:
        """Include the idempotency key in the message for operators."""
        self.external_event_id = external_event_id
        super().__init__(
            f"expected existing event for key {external_event_id!r} after rollback"
        )
