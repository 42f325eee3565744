"""Request body decoding shared by the API resources."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.api.errors import InvalidInputError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request


async def read_raw_body(req: Request) -> bytes:
    """Return the exact request bytes, as needed for signature checks."""
    return await req.stream.read()


def decode_json[T](raw: bytes, type_: type[T]) -> T:
    """Decode ``raw`` into ``type_``.

    Raises
    ------
    InvalidInputError
        ``"Invalid JSON"`` for malformed bodies, or the schema message
        when the JSON does not match ``type_``.

    """
    try:
        return msgspec.json.decode(raw, type=type_)
    except msgspec.ValidationError as exc:
        raise InvalidInputError.from_validation(exc) from exc
    except msgspec.DecodeError as exc:
        raise InvalidInputError.invalid_json() from exc
