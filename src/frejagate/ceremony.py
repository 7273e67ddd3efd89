"""Authentication ceremony state machine.

A ceremony is one ``begin`` followed by any number of ``resume`` calls, each
a separate host invocation. Nothing survives between invocations except the
:class:`~frejagate.models.CeremonyState` the host keeps in its per-ceremony
context, so the initiator and coordinator hold no per-ceremony attributes and
may be shared by every thread the host runs.
"""

from __future__ import annotations

from typing import Any, MutableMapping, Protocol

from .client import AssertionClient
from .exceptions import CorruptedCeremonyError
from .models import (
    AssertionHandle,
    AssertionStatus,
    AuthView,
    CeremonyState,
    Continue,
    ErrorView,
    PollOutcome,
    Terminal,
)
from .observability import Observability
from .presentation import failure_view, select_view

SUBJECT_KEY = "upn"
REFERENCE_KEY = "authref"


class CeremonyContext(Protocol):
    """Host-owned key/value bag scoped to one ceremony."""

    def get(self, key: str) -> Any | None:  # pragma: no cover - protocol
        ...

    def set(self, key: str, value: Any) -> None:  # pragma: no cover - protocol
        ...


class MappingCeremonyContext:
    """Adapt a host-supplied mutable mapping to :class:`CeremonyContext`."""

    def __init__(self, data: MutableMapping[str, Any] | None = None) -> None:
        self.data: MutableMapping[str, Any] = data if data is not None else {}

    def get(self, key: str) -> Any | None:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value


def store_state(context: CeremonyContext, state: CeremonyState) -> None:
    context.set(SUBJECT_KEY, state.subject_id)
    context.set(REFERENCE_KEY, state.reference)


def load_state(context: CeremonyContext | None) -> CeremonyState:
    """Rebuild the ceremony state written by :func:`store_state`.

    A missing key means the host lost or never stored the state. An empty
    reference is returned as-is and rejected by :meth:`PollCoordinator.resume`.
    """

    if context is None:
        raise CorruptedCeremonyError("Corrupted context.")
    subject = context.get(SUBJECT_KEY)
    reference = context.get(REFERENCE_KEY)
    if subject is None or reference is None:
        raise CorruptedCeremonyError("Corrupted context.")
    return CeremonyState(subject_id=str(subject), reference=str(reference))


def outcome_for(handle: AssertionHandle) -> PollOutcome:
    """Map a poll result to the ceremony outcome.

    The mapping depends only on ``handle``, so a host that re-polls after a
    terminal outcome and receives the same result gets the same outcome.
    """

    if handle.status is AssertionStatus.COMPLETED and not handle.error_code:
        return Terminal(success=True)
    if handle.status.is_terminal:
        return Terminal(success=False, view=failure_view(handle))
    return Continue(view=select_view(handle))


class RequestInitiator:
    """Start a ceremony by asking the remote service for a new assertion."""

    def __init__(self, client: AssertionClient, *, observability: Observability | None = None) -> None:
        self.client = client
        self._observability = observability or Observability()

    def begin(self, subject_id: str) -> tuple[CeremonyState, AuthView | ErrorView]:
        context = self._observability.on_ceremony_start("begin")
        try:
            handle = self.client.initiate_request(subject_id)
        except Exception as exc:
            self._observability.on_ceremony_error(context, exc)
            raise
        reference = ""
        if handle.status is AssertionStatus.INITIALIZED and handle.reference:
            reference = handle.reference
        state = CeremonyState(subject_id=subject_id, reference=reference)
        self._observability.on_ceremony_success(context, handle.status.value, reference=reference or None)
        return state, select_view(handle)


class PollCoordinator:
    """Resume a ceremony with exactly one poll of the remote service."""

    def __init__(self, client: AssertionClient, *, observability: Observability | None = None) -> None:
        self.client = client
        self._observability = observability or Observability()

    def resume(self, state: CeremonyState) -> PollOutcome:
        context = self._observability.on_ceremony_start("resume", reference=state.reference or None)
        try:
            if not state.has_reference:
                raise CorruptedCeremonyError("Corrupted context: no correlation reference to poll.")
            handle = self.client.poll_request(state.reference)
        except Exception as exc:
            self._observability.on_ceremony_error(context, exc)
            raise
        self._observability.on_ceremony_success(context, handle.status.value, reference=state.reference)
        return outcome_for(handle)


__all__ = [
    "REFERENCE_KEY",
    "SUBJECT_KEY",
    "CeremonyContext",
    "MappingCeremonyContext",
    "PollCoordinator",
    "RequestInitiator",
    "load_state",
    "outcome_for",
    "store_state",
]
