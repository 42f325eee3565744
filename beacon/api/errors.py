"""Domain exceptions and Falcon error handlers for the API layer.

Every error body has the shape ``{"ok": false, "error": <message>}``.

Usage
-----
Register the handlers on the Falcon app::

    from beacon.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from beacon.destinations import DestinationConfigError
from beacon.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

    from beacon.admission import AdmissionDecision
    from beacon.webhooks import SignatureFailure

__all__ = [
    "InvalidInputError",
    "NotFoundError",
    "RateLimitedError",
    "SignatureRejectedError",
    "UnauthorizedError",
    "register_error_handlers",
]

logger = get_logger(__name__)

INVALID_JSON = "Invalid JSON"
RATE_LIMIT_EXCEEDED = "Rate limit exceeded"
INTERNAL_ERROR = "Internal server error"


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Use this instead of ``ValueError`` so that only intentional
    validation failures are surfaced to the caller.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.

    """

    def __init__(self, reason: str) -> None:
        """Initialize with a validation reason."""
        self.reason = reason
        super().__init__(reason)

    @classmethod
    def invalid_json(cls) -> InvalidInputError:
        """Create the error for a body that is not JSON."""
        return cls(INVALID_JSON)

    @classmethod
    def from_validation(cls, exc: msgspec.ValidationError) -> InvalidInputError:
        """Create the error from a msgspec schema violation."""
        return cls(str(exc))


class RateLimitedError(Exception):
    """Raised when admission control rejects a request."""

    def __init__(self, decision: AdmissionDecision) -> None:
        """Keep the decision so its headers can be returned."""
        self.decision = decision
        super().__init__(RATE_LIMIT_EXCEEDED)


class SignatureRejectedError(Exception):
    """Raised when a signed request fails verification."""

    def __init__(self, failure: SignatureFailure) -> None:
        """Record which verification step failed."""
        self.failure = failure
        super().__init__(str(failure))


class UnauthorizedError(Exception):
    """Raised when an administrative request lacks a valid token."""

    @classmethod
    def missing_token(cls) -> UnauthorizedError:
        """Create the error for an absent or wrong ``X-Admin-Token``."""
        return cls("Unauthorized")

    @classmethod
    def not_configured(cls) -> UnauthorizedError:
        """Create the error used when no admin token is configured."""
        return cls("Admin access is not configured")


class NotFoundError(Exception):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        """Name the kind of record and the identifier that was looked up."""
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier!r} not found")


def _fail(resp: Response, status: str, message: str) -> None:
    resp.status = status
    resp.media = {"ok": False, "error": message}


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    _fail(resp, falcon.HTTP_400, ex.reason)


async def handle_destination_config(
    _req: Request,
    resp: Response,
    ex: DestinationConfigError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``DestinationConfigError`` to an HTTP 400 JSON response."""
    _fail(resp, falcon.HTTP_400, str(ex))


async def handle_rate_limited(
    _req: Request,
    resp: Response,
    ex: RateLimitedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``RateLimitedError`` to HTTP 429 with ``Retry-After`` and limit headers.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status, headers and media are set.
    ex
        The rejection carrying the admission decision.
    _params
        URI template parameters (unused).

    """
    resp.set_headers(ex.decision.headers())
    resp.status = falcon.HTTP_429
    resp.media = {
        "ok": False,
        "error": RATE_LIMIT_EXCEEDED,
        "retryAfter": ex.decision.retry_after,
    }


async def handle_signature_rejected(
    _req: Request,
    resp: Response,
    ex: SignatureRejectedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``SignatureRejectedError`` to HTTP 401 naming the failed check."""
    _fail(resp, falcon.HTTP_401, str(ex.failure))


async def handle_unauthorized(
    _req: Request,
    resp: Response,
    ex: UnauthorizedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnauthorizedError`` to HTTP 401."""
    _fail(resp, falcon.HTTP_401, str(ex))


async def handle_not_found(
    _req: Request,
    resp: Response,
    ex: NotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``NotFoundError`` to HTTP 404."""
    _fail(resp, falcon.HTTP_404, str(ex))


async def handle_unexpected(
    req: Request,
    resp: Response,
    ex: Exception,
    _params: dict[str, typ.Any],
) -> None:
    """Log an unhandled exception and return a generic HTTP 500 body."""
    log_exception(logger, f"Unhandled error on {req.method} {req.path}", ex)
    _fail(resp, falcon.HTTP_500, INTERNAL_ERROR)


def register_error_handlers(app: App) -> None:
    """Install the handlers above on ``app``.

    Falcon resolves handlers by the most specific type, so the catch-all
    ``Exception`` handler leaves its built-in ``HTTPError`` handling intact.
    """
    app.add_error_handler(Exception, handle_unexpected)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(DestinationConfigError, handle_destination_config)
    app.add_error_handler(RateLimitedError, handle_rate_limited)
    app.add_error_handler(SignatureRejectedError, handle_signature_rejected)
    app.add_error_handler(UnauthorizedError, handle_unauthorized)
    app.add_error_handler(NotFoundError, handle_not_found)
