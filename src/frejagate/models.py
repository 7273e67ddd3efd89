"""Typed records exchanged between the adapter, the host, and the e-ID service."""

from __future__ import annotations

from enum import Enum
from typing import Union

import msgspec

UPN_CLAIM_TYPE = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/upn"
AUTHENTICATION_METHOD_CLAIM_TYPE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/authenticationmethod"
OTP_AUTHENTICATION_METHOD = "http://schemas.microsoft.com/ws/2012/12/authmethod/otp"


class AssertionStatus(str, Enum):
    """Status reported by the remote identity-assertion service."""

    INITIALIZED = "Initialized"
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ERROR = "Error"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {AssertionStatus.COMPLETED, AssertionStatus.CANCELLED, AssertionStatus.ERROR}
)


class AssertionHandle(msgspec.Struct, frozen=True):
    """Result of initiating or polling a remote assertion request.

    ``reference`` is only set while the request is pending, ``qr_payload`` only
    for flows the user can auto-start from a QR code, and ``error_code`` only
    when the service reported a failure or cancellation. ``raw_status`` keeps
    the service's own status string for diagnostics.
    """

    status: AssertionStatus
    reference: str | None = None
    code: str | None = None
    qr_payload: str | None = None
    error_code: str | None = None
    raw_status: str | None = None


class CeremonyState(msgspec.Struct, frozen=True):
    """Durable per-ceremony record the host round-trips between invocations."""

    subject_id: str
    reference: str = ""

    @property
    def has_reference(self) -> bool:
        return bool(self.reference)


class AuthView(msgspec.Struct, frozen=True, tag="auth"):
    """Non-terminal view letting the user continue or retry the ceremony."""

    code: str
    status: str
    qr_payload: str


class ErrorView(msgspec.Struct, frozen=True, tag="error"):
    """Failure view for remote-reported errors and adapter faults."""

    message: str


PresentationView = Union[AuthView, ErrorView]


class Terminal(msgspec.Struct, frozen=True, tag="terminal"):
    """Final outcome of a ceremony; ``view`` is set when ``success`` is false."""

    success: bool
    view: ErrorView | None = None


class Continue(msgspec.Struct, frozen=True, tag="continue"):
    """Non-terminal outcome; the host renders ``view`` and polls again later."""

    view: AuthView | ErrorView


PollOutcome = Union[Terminal, Continue]


class Claim(msgspec.Struct, frozen=True):
    type: str
    value: str


__all__ = [
    "AUTHENTICATION_METHOD_CLAIM_TYPE",
    "OTP_AUTHENTICATION_METHOD",
    "UPN_CLAIM_TYPE",
    "AssertionHandle",
    "AssertionStatus",
    "AuthView",
    "CeremonyState",
    "Claim",
    "Continue",
    "ErrorView",
    "PollOutcome",
    "PresentationView",
    "Terminal",
]
