"""Adapter exception types."""

from __future__ import annotations

from typing import Any


class FrejaGateError(Exception):
    """Base error type."""


class CorruptedCeremonyError(FrejaGateError):
    """Raised when a ceremony is resumed without a usable correlation reference."""


class RemoteServiceError(FrejaGateError):
    """Raised when the e-ID service cannot be reached or answers unintelligibly."""

    def __init__(self, message: str, *, status: int | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


class ConfigurationError(FrejaGateError):
    """Raised when adapter configuration cannot be loaded."""


__all__ = [
    "ConfigurationError",
    "CorruptedCeremonyError",
    "FrejaGateError",
    "RemoteServiceError",
]
