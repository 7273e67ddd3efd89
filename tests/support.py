"""Test support utilities for the Freja eID client and adapter tests."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Mapping

from frejagate.serialization import json_decode, json_encode


@dataclass
class TransportCall:
    url: str
    body: bytes
    headers: dict[str, str]

    def field(self) -> str:
        return self.body.decode().split("=", 1)[0]

    def payload(self) -> Any:
        encoded = self.body.decode().split("=", 1)[1]
        return json_decode(base64.b64decode(encoded))


class FakeTransport:
    def __init__(self) -> None:
        self.calls: list[TransportCall] = []
        self._queued: list[tuple[int, bytes] | BaseException] = []

    def queue_json(self, document: Any, *, status: int = 200) -> None:
        self._queued.append((status, json_encode(document)))

    def queue_raw(self, body: bytes, *, status: int = 200) -> None:
        self._queued.append((status, body))

    def queue_error(self, error: BaseException) -> None:
        self._queued.append(error)

    def __call__(self, url: str, body: bytes, headers: Mapping[str, str]) -> tuple[int, bytes]:
        self.calls.append(TransportCall(url=url, body=body, headers=dict(headers)))
        result = self._queued.pop(0) if self._queued else (200, b"{}")
        if isinstance(result, BaseException):
            raise result
        return result
