"""Per-request telemetry traces for phrase lookups."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .observability import get_logger

TelemetryListener = Callable[[str, Dict[str, Any]], None]

_logger = get_logger(__name__).bind(component="telemetry")


class StructuredTelemetry:
    """Collects timings, counters and metadata for a single lookup trace.

    A fresh instance is created for every request, so nothing here is shared
    between requests. The lock only guards against the batch search workers
    reporting into the same trace from several threads.
    """

    def __init__(
        self,
        name: str,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        max_events: int = 128,
        listeners: Optional[Iterable[TelemetryListener]] = None,
    ) -> None:
        self.name = name
        self._time_fn = time_fn or time.perf_counter
        self._max_events = max(1, int(max_events))
        self._listeners: List[TelemetryListener] = list(listeners or [])
        self._lock = threading.Lock()
        self._timings: Dict[str, Dict[str, float]] = {}
        self._counters: Dict[str, float] = {}
        self._events: List[Dict[str, Any]] = []
        self._metadata: Dict[str, Any] = {"trace_name": name}
        self._started_at = self._time_fn()
        self._emit("trace_started", {"name": name})

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(event_type, dict(payload))
            except Exception as exc:
                _logger.warning(
                    "Telemetry listener failed",
                    context={"event": event_type, "trace": self.name, "error": str(exc)},
                )

    @contextmanager
    def timer(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Time the enclosed block; callers may add keys to the yielded dict."""

        payload: Dict[str, Any] = dict(metadata or {})
        self._emit("timer_started", {"name": name, "metadata": dict(payload)})
        start = self._time_fn()
        try:
            yield payload
        finally:
            self.record_timing(name, self._time_fn() - start, payload)

    def record_timing(
        self,
        name: str,
        duration: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        duration = max(0.0, float(duration))
        event: Dict[str, Any] = {"name": name, "duration": duration}
        if metadata:
            event["metadata"] = dict(metadata)
        with self._lock:
            bucket = self._timings.setdefault(name, {"count": 0, "total": 0.0, "max": 0.0})
            bucket["count"] += 1
            bucket["total"] += duration
            bucket["max"] = max(bucket["max"], duration)
            self._events.append(event)
            del self._events[: -self._max_events]
        self._emit("timing", event)

    def increment(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            value = self._counters.get(name, 0.0) + float(amount)
            self._counters[name] = value
        self._emit("counter", {"name": name, "delta": float(amount), "value": value})

    def annotate(self, key: str, value: Any) -> None:
        with self._lock:
            self._metadata[key] = value
        self._emit("metadata", {"key": key, "value": value})

    def add_listener(self, listener: TelemetryListener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> Dict[str, Any]:
        """Return a detached copy of everything recorded so far."""

        with self._lock:
            return {
                "name": self.name,
                "elapsed": max(0.0, self._time_fn() - self._started_at),
                "timings": {key: dict(value) for key, value in self._timings.items()},
                "counters": dict(self._counters),
                "events": [dict(event) for event in self._events],
                "metadata": dict(self._metadata),
            }


class TelemetryLogger:
    """Listener that mirrors telemetry events into the project logger."""

    def __init__(
        self,
        *,
        logger: Optional[logging.LoggerAdapter] = None,
        level: int = logging.DEBUG,
        level_map: Optional[Dict[str, int]] = None,
    ) -> None:
        self._logger = logger or get_logger(__name__).bind(component="telemetry")
        self._default_level = level
        self._level_map = dict(level_map or {})

    def __call__(self, event_type: str, payload: Dict[str, Any]) -> None:
        level = self._level_map.get(event_type, self._default_level)
        if not self._logger.isEnabledFor(level):
            return

        context = {"telemetry.event": event_type}
        context.update({str(key): value for key, value in payload.items()})
        label = payload.get("name") or payload.get("key") or "event"
        self._logger.log(level, f"Telemetry {event_type}: {label}", context=context)


__all__ = ["StructuredTelemetry", "TelemetryLogger", "TelemetryListener"]
