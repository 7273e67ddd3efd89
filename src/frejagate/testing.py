"""Testing helpers."""

from __future__ import annotations

import threading
from typing import Iterable

from .models import AssertionHandle, AssertionStatus

ResultOrError = AssertionHandle | BaseException


class SimulatedAssertionClient:
    """In-process stand-in for the remote service that records every call.

    Poll results are consumed in order; the last one is repeated once the
    queue is down to a single entry, which mirrors a service that keeps
    reporting a final status to a host that keeps polling.
    """

    __test__ = False

    def __init__(
        self,
        *,
        initiate: ResultOrError | None = None,
        polls: Iterable[ResultOrError] = (),
    ) -> None:
        self.initiate_result: ResultOrError = initiate or AssertionHandle(
            status=AssertionStatus.INITIALIZED,
            reference="req-simulated",
            code="started",
            qr_payload="frejaeid://bindUserToTransaction?transactionReference=req-simulated",
        )
        self._polls: list[ResultOrError] = list(polls)
        self._lock = threading.Lock()
        self.initiate_calls: list[str] = []
        self.poll_calls: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.initiate_calls) + len(self.poll_calls)

    def queue_poll(self, result: ResultOrError) -> None:
        with self._lock:
            self._polls.append(result)

    def initiate_request(self, subject_id: str) -> AssertionHandle:
        with self._lock:
            self.initiate_calls.append(subject_id)
            result = self.initiate_result
        return _resolve(result)

    def poll_request(self, reference: str) -> AssertionHandle:
        with self._lock:
            self.poll_calls.append(reference)
            if not self._polls:
                result: ResultOrError = AssertionHandle(status=AssertionStatus.PENDING, reference=reference)
            elif len(self._polls) == 1:
                result = self._polls[0]
            else:
                result = self._polls.pop(0)
        return _resolve(result)


def _resolve(result: ResultOrError) -> AssertionHandle:
    if isinstance(result, BaseException):
        raise result
    return result


__all__ = ["SimulatedAssertionClient"]
