from __future__ import annotations

import base64
from typing import Any, Protocol, cast

import msgspec


class _JSONModule(Protocol):
    def encode(self, obj: Any) -> bytes: ...

    def decode(self, data: bytes) -> Any: ...


_json = cast(_JSONModule, getattr(msgspec, "json"))


def json_encode(value: Any) -> bytes:
    """Serialize ``value`` to JSON bytes using msgspec."""

    return _json.encode(value)


def json_decode(data: bytes) -> Any:
    """Deserialize JSON ``data`` into native Python values."""

    return _json.decode(data)


def b64_json(value: Any) -> str:
    """Return ``value`` as standard base64 over its JSON encoding."""

    return base64.b64encode(json_encode(value)).decode("ascii")


__all__ = ["b64_json", "json_decode", "json_encode"]
