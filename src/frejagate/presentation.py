"""Map assertion results and adapter faults to view descriptors."""

from __future__ import annotations

from .models import AssertionHandle, AssertionStatus, AuthView, ErrorView

_FAILED_STATUSES = frozenset({AssertionStatus.CANCELLED, AssertionStatus.ERROR})


def select_view(handle: AssertionHandle) -> AuthView | ErrorView:
    """Return the view to present for ``handle``.

    The mapping is pure: the same handle always yields an equal view. A
    remote error code wins over any QR payload carried by the same handle.
    """

    if handle.error_code or handle.status in _FAILED_STATUSES:
        return failure_view(handle)
    if handle.status is AssertionStatus.UNKNOWN:
        return api_error_view(f"unrecognized status {handle.raw_status or ''}".rstrip())
    return AuthView(
        code=handle.code or "",
        status=handle.status.value,
        qr_payload=handle.qr_payload or "",
    )


def failure_view(handle: AssertionHandle) -> ErrorView:
    """Return the error view for a handle that ended the ceremony unsuccessfully."""

    return api_error_view(handle.error_code or handle.status.value.lower())


def api_error_view(code: str) -> ErrorView:
    return ErrorView(message=f"API-Error: {code}")


def fault_view(error: BaseException) -> ErrorView:
    """Return the view shown when the adapter itself failed."""

    return ErrorView(message=f"Exception: {error}")


__all__ = ["api_error_view", "failure_view", "fault_view", "select_view"]
