"""Observability integration for authentication ceremonies."""

from __future__ import annotations

import json
import logging
import time
from contextlib import ExitStack
from typing import Any, Iterable, Mapping

import msgspec


class CeremonyObservabilityConfig(msgspec.Struct, frozen=True):
    """Ceremony metrics and tracing configuration."""

    span_name: str = "frejagate.ceremony"
    datadog_metric_outcome: str = "frejagate.ceremony.outcomes"
    datadog_metric_error: str = "frejagate.ceremony.errors"
    datadog_metric_timing: str = "frejagate.ceremony.duration"


class ObservabilityConfig(msgspec.Struct, frozen=True):
    """Top-level observability configuration."""

    enabled: bool = True
    logging_enabled: bool = True
    opentelemetry_enabled: bool = True
    opentelemetry_tracer: str = "frejagate"
    sentry_enabled: bool = True
    sentry_record_breadcrumbs: bool = True
    sentry_capture_exceptions: bool = True
    sentry_breadcrumb_category: str = "frejagate"
    sentry_breadcrumb_level: str = "info"
    datadog_enabled: bool = True
    datadog_tags: tuple[tuple[str, str], ...] = ()
    ceremony: CeremonyObservabilityConfig = CeremonyObservabilityConfig()


class _ObservationContext:
    __slots__ = (
        "capture_exception",
        "datadog_tags",
        "error_attributes",
        "log_fields",
        "metric_error",
        "metric_success",
        "metric_timing",
        "span",
        "stack",
        "start",
        "success_attributes",
    )

    def __init__(
        self,
        *,
        start: float,
        stack: ExitStack,
        span: Any | None,
        datadog_tags: tuple[str, ...],
        metric_success: str | None,
        metric_error: str | None,
        metric_timing: str | None,
        success_attributes: Mapping[str, Any] | None = None,
        error_attributes: Mapping[str, Any] | None = None,
        capture_exception: bool = True,
        log_fields: Mapping[str, Any] | None = None,
    ) -> None:
        self.start = start
        self.stack = stack
        self.span = span
        self.datadog_tags = datadog_tags
        self.metric_success = metric_success
        self.metric_error = metric_error
        self.metric_timing = metric_timing
        self.success_attributes = dict(success_attributes or {})
        self.error_attributes = dict(error_attributes or {})
        self.capture_exception = capture_exception
        self.log_fields = dict(log_fields or {})

    def close(self, error: BaseException | None = None) -> None:
        if error is None:
            self.stack.__exit__(None, None, None)
        else:
            self.stack.__exit__(type(error), error, error.__traceback__)


class Observability:
    """Coordinate tracing, error tracking, metrics, and logging providers."""

    def __init__(self, config: ObservabilityConfig | None = None) -> None:
        self.config = config or ObservabilityConfig()
        self._tracer = None
        self._client_span_kind = None
        self._status_cls = None
        self._status_code_cls = None
        self._status_ok = None
        self._status_error = None
        self._sentry_hub = None
        self._statsd = None
        self._logger = logging.getLogger("frejagate.observability")
        self._base_datadog_tags = tuple(f"{key}:{value}" for key, value in self.config.datadog_tags)
        if self.config.enabled:
            self._prepare_opentelemetry()
            self._prepare_sentry()
            self._prepare_datadog()
        self._enabled = self.config.enabled and (
            self.config.logging_enabled or any((self._tracer, self._sentry_hub, self._statsd))
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _prepare_opentelemetry(self) -> None:
        if not self.config.opentelemetry_enabled:
            return
        try:
            from opentelemetry import trace  # type: ignore[import-not-found]
        except ImportError:  # pragma: no cover - optional dependency
            return
        self._tracer = trace.get_tracer(self.config.opentelemetry_tracer)
        try:
            from opentelemetry.trace import SpanKind  # type: ignore[import-not-found]
        except ImportError:  # pragma: no cover - optional dependency
            SpanKind = None
        self._client_span_kind = getattr(SpanKind, "CLIENT", None) if SpanKind else None
        try:
            from opentelemetry.trace import (  # type: ignore[import-not-found]
                Status,
                StatusCode,
            )
        except ImportError:  # pragma: no cover - optional dependency
            self._status_cls = None
            self._status_code_cls = None
        else:
            self._status_cls = Status
            self._status_code_cls = StatusCode
            self._status_ok = getattr(StatusCode, "OK", None)
            self._status_error = getattr(StatusCode, "ERROR", None)

    def _prepare_sentry(self) -> None:
        if not self.config.sentry_enabled:
            return
        try:
            import sentry_sdk  # type: ignore[import-not-found]
        except ImportError:  # pragma: no cover - optional dependency
            return
        self._sentry_hub = sentry_sdk.Hub.current

    def _prepare_datadog(self) -> None:
        if not self.config.datadog_enabled:
            return
        statsd = None
        try:
            from datadog import statsd as datadog_statsd  # type: ignore[import-not-found]
        except ImportError:  # pragma: no cover - optional dependency
            try:
                from ddtrace import statsd as ddtrace_statsd  # type: ignore[import-not-found]
            except ImportError:  # pragma: no cover - optional dependency
                ddtrace_statsd = None
            statsd = ddtrace_statsd
        else:
            statsd = datadog_statsd
        if statsd is not None:
            self._statsd = statsd

    def _status(self, code: Any, description: str | None = None) -> Any | None:
        if self._status_cls is None or code is None:
            return None
        if description is None:
            return self._status_cls(code)
        return self._status_cls(code, description=description)

    def _log(self, context: _ObservationContext | None, event: str, extra: Mapping[str, Any] | None = None) -> None:
        if not self.config.logging_enabled:
            return
        payload: dict[str, Any] = {"event": event}
        if context is not None:
            payload.update(context.log_fields)
        if extra:
            for key, value in extra.items():
                if value is not None:
                    payload[key] = value
        payload["event"] = event
        self._logger.info(json.dumps(payload, separators=(",", ":")))

    def _start(
        self,
        span_name: str,
        *,
        kind: Any | None,
        attributes: Mapping[str, Any],
        datadog_tags: Iterable[str] = (),
        metrics: tuple[str | None, str | None, str | None] = (None, None, None),
        breadcrumb_message: str | None = None,
        breadcrumb_data: Mapping[str, Any] | None = None,
        sentry_tags: Mapping[str, Any] | None = None,
        success_attributes: Mapping[str, Any] | None = None,
        error_attributes: Mapping[str, Any] | None = None,
        capture_exception: bool = True,
        log_fields: Mapping[str, Any] | None = None,
    ) -> _ObservationContext | None:
        if not self._enabled:
            return None
        stack = ExitStack()
        span = None
        if self._tracer is not None:
            span = stack.enter_context(self._tracer.start_as_current_span(span_name, kind=kind))
            for key, value in attributes.items():
                span.set_attribute(key, value)
        if self._sentry_hub is not None:
            if breadcrumb_message is not None and self.config.sentry_record_breadcrumbs:
                self._sentry_hub.add_breadcrumb(
                    category=self.config.sentry_breadcrumb_category,
                    level=self.config.sentry_breadcrumb_level,
                    message=breadcrumb_message,
                    data=dict(breadcrumb_data or {}),
                )
            scope = stack.enter_context(self._sentry_hub.push_scope())
            if sentry_tags and hasattr(scope, "set_tag"):
                for key, value in sentry_tags.items():
                    scope.set_tag(key, value)
        tags = list(self._base_datadog_tags)
        for tag in datadog_tags:
            tags.append(tag)
        success_metric, error_metric, timing_metric = metrics
        return _ObservationContext(
            start=time.perf_counter(),
            stack=stack,
            span=span,
            datadog_tags=tuple(tags),
            metric_success=success_metric,
            metric_error=error_metric,
            metric_timing=timing_metric,
            success_attributes=success_attributes,
            error_attributes=error_attributes,
            capture_exception=capture_exception,
            log_fields=log_fields,
        )

    def _capture_exception(self, error: BaseException) -> None:
        if self._sentry_hub is not None and self.config.sentry_capture_exceptions:
            self._sentry_hub.capture_exception(error)

    def on_ceremony_start(self, operation: str, *, reference: str | None = None) -> _ObservationContext | None:
        """Open an observation around one ``begin`` or ``resume`` invocation.

        Subject identifiers are personal data and are never attached to spans,
        metrics, or logs; only the opaque correlation reference is.
        """

        attributes: dict[str, Any] = {"ceremony.operation": operation}
        log_fields: dict[str, Any] = {"operation": operation}
        if reference:
            attributes["ceremony.reference"] = reference
            log_fields["reference"] = reference
        context = self._start(
            self.config.ceremony.span_name,
            kind=self._client_span_kind,
            attributes=attributes,
            datadog_tags=[f"operation:{operation}"],
            metrics=(
                self.config.ceremony.datadog_metric_outcome,
                self.config.ceremony.datadog_metric_error,
                self.config.ceremony.datadog_metric_timing,
            ),
            breadcrumb_message=f"ceremony {operation}",
            breadcrumb_data={"operation": operation},
            sentry_tags={"ceremony.operation": operation},
            success_attributes={"ceremony.result": "success"},
            error_attributes={"ceremony.result": "error"},
            capture_exception=self.config.sentry_capture_exceptions,
            log_fields=log_fields,
        )
        if context is not None:
            self._log(context, "ceremony.start")
        return context

    def on_ceremony_success(
        self,
        context: _ObservationContext | None,
        status: str,
        *,
        reference: str | None = None,
    ) -> None:
        if context is None:
            return
        duration_ms = (time.perf_counter() - context.start) * 1000.0
        if self._statsd is not None:
            tags = [*context.datadog_tags, f"status:{status}"]
            if context.metric_success:
                self._statsd.increment(context.metric_success, tags=tags)
            if context.metric_timing:
                self._statsd.timing(context.metric_timing, duration_ms, tags=tags)
        if context.span is not None:
            context.span.set_attribute("ceremony.status", status)
            if reference:
                context.span.set_attribute("ceremony.reference", reference)
            for key, value in context.success_attributes.items():
                context.span.set_attribute(key, value)
            status_obj = self._status(self._status_ok)
            if status_obj is not None:
                context.span.set_status(status_obj)
        self._log(
            context,
            "ceremony.success",
            {"status": status, "reference": reference, "duration_ms": duration_ms},
        )
        context.close()

    def on_ceremony_error(self, context: _ObservationContext | None, error: BaseException) -> None:
        if context is None:
            self._capture_exception(error)
            return
        if context.span is not None:
            for key, value in context.error_attributes.items():
                context.span.set_attribute(key, value)
            if hasattr(context.span, "record_exception"):
                context.span.record_exception(error)
            status_obj = self._status(self._status_error, description=str(error))
            if status_obj is not None:
                context.span.set_status(status_obj)
        if self._statsd is not None and context.metric_error:
            tags = [*context.datadog_tags, f"error:{type(error).__name__}"]
            self._statsd.increment(context.metric_error, tags=tags)
        self._log(
            context,
            "ceremony.error",
            {"error_type": type(error).__name__, "error_message": str(error)},
        )
        if context.capture_exception:
            self._capture_exception(error)
        context.close(error)


__all__ = [
    "CeremonyObservabilityConfig",
    "Observability",
    "ObservabilityConfig",
]
