from __future__ import annotations

import base64
import json
from typing import Any

import msgpack

from .errors import PayloadDecodeError


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, msgpack.Timestamp):
        return value.to_datetime().isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def msgpack_to_json(payload: bytes) -> bytes:
    """Decode one MessagePack value and re-encode it as compact JSON.

    Raises:
        PayloadDecodeError: payload is not a single MessagePack value, or the
            value has no JSON form
    """
    try:
        value = msgpack.unpackb(payload, raw=False, strict_map_key=False)
    except (ValueError, TypeError) as e:
        raise PayloadDecodeError(f"msgpack decode failed: {e}") from e

    try:
        return json.dumps(
            value, separators=(",", ":"), allow_nan=False, default=_json_default
        ).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadDecodeError(f"json encode failed: {e}") from e
