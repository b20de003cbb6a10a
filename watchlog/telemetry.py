from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sized
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

LOGGER = logging.getLogger("watchlog.telemetry")

WATCH_LOG_LOGGED = "watch_log.event.logged"
WATCH_LOG_SUPPRESSED = "watch_log.event.suppressed"
WATCH_LOG_FAILED = "watch_log.event.failed"
HTTP_REQUEST_FINISH = "http.request.finish"
HTTP_REQUEST_ERROR = "http.request.error"

TelemetryValue = bool | int | float | str | None

REDACTED = "[redacted]"
_REDACTED_KEY_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "description",
    "secret",
    "token",
)
_MAX_STRING_LENGTH = 160


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    attributes: Mapping[str, TelemetryValue] = field(default_factory=dict)


class TelemetrySink(Protocol):
    def record(self, event: TelemetryEvent) -> None:
        ...


class StructlogTelemetrySink:
    """Writes each event as one structured record on the ``watchlog.telemetry`` logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("watchlog.telemetry")

    def record(self, event: TelemetryEvent) -> None:
        self._logger.info(event.name, **dict(event.attributes))


_SINK_FACTORIES: dict[str, Callable[[], TelemetrySink]] = {
    "log": StructlogTelemetrySink,
}


class TelemetryClient:
    """Emits sanitized events to a sink; without a sink every call is a no-op.

    ``bind`` returns a client that adds the given attributes to every event,
    which lets a caller attach per-request or per-video context once.
    """

    def __init__(
        self,
        sink: TelemetrySink | None = None,
        *,
        base_attributes: Mapping[str, Any] | None = None,
    ) -> None:
        self._sink = sink
        self._base_attributes = sanitize_attributes(base_attributes or {})

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(None)

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    def bind(self, **attributes: Any) -> TelemetryClient:
        return TelemetryClient(
            self._sink,
            base_attributes={**self._base_attributes, **attributes},
        )

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self._sink is None:
            return
        self._sink.record(
            TelemetryEvent(
                name=event_name,
                attributes={**self._base_attributes, **sanitize_attributes(attributes)},
            )
        )


def build_telemetry_client(*, enabled: bool, sink: str) -> TelemetryClient:
    if not enabled:
        return TelemetryClient.disabled()
    factory = _SINK_FACTORIES.get(sink)
    if factory is None:
        if sink != "none":
            LOGGER.warning("telemetry sink unsupported, telemetry disabled sink=%s", sink)
        return TelemetryClient.disabled()
    return TelemetryClient(factory())


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if key:
            sanitized[key] = _shape_value(key, raw_value)
    return sanitized


def _shape_value(key: str, value: Any) -> TelemetryValue:
    if any(fragment in key for fragment in _REDACTED_KEY_FRAGMENTS):
        return REDACTED
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) > _MAX_STRING_LENGTH:
            return f"{compact[:_MAX_STRING_LENGTH]}..."
        return compact
    # Collections are reported by size only; their contents may hold user data.
    if isinstance(value, Sized):
        return len(value)
    return type(value).__name__
