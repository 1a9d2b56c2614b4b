"""
Relay instrumentation.

Counters are kept per label set so ingestion can be broken down by event
kind and rejection reason, e.g.

    relay_emit_total{event="note.created"} 12
    relay_emit_rejected_total{reason="unauthorized"} 1

Gauges are plain values sampled from the room registry.
"""

from __future__ import annotations

import time
from typing import Any

from gumboard_shared.schemas.events import BoardEvent

Labels = tuple[tuple[str, str], ...]

KNOWN_EVENTS = frozenset(e.value for e in BoardEvent)


def event_label(event: str) -> str:
    """Collapse unknown event names so label cardinality stays bounded."""
    return event if event in KNOWN_EVENTS else "other"


def _format_labels(labels: Labels) -> str:
    if not labels:
        return ""
    pairs = ",".join(
        '{}="{}"'.format(k, v.replace("\\", "\\\\").replace('"', '\\"'))
        for k, v in labels
    )
    return "{" + pairs + "}"


class MetricsCollector:
    """Labelled counters and gauges for one relay process."""

    def __init__(self, namespace: str = "relay") -> None:
        self.namespace = namespace
        self._series: dict[str, dict[Labels, int]] = {}
        self._gauges: dict[str, float] = {}
        self._started = time.monotonic()

    def inc(self, name: str, value: int = 1, **labels: str) -> None:
        series = self._series.setdefault(name, {})
        key = tuple(sorted(labels.items()))
        series[key] = series.get(key, 0) + value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get(self, name: str, **labels: str) -> int | float:
        """
        Current value. Without labels a counter returns its total across
        every label set.
        """
        if name in self._gauges:
            return self._gauges[name]
        series = self._series.get(name, {})
        if labels:
            return series.get(tuple(sorted(labels.items())), 0)
        return sum(series.values())

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def render_prometheus(self) -> str:
        out: list[str] = []
        for name in sorted(self._series):
            metric = f"{self.namespace}_{name}"
            out.append(f"# TYPE {metric} counter")
            for labels, value in sorted(self._series[name].items()):
                out.append(f"{metric}{_format_labels(labels)} {value}")
        for name in sorted(self._gauges):
            metric = f"{self.namespace}_{name}"
            out.append(f"# TYPE {metric} gauge")
            out.append(f"{metric} {self._gauges[name]}")
        out.append(f"# TYPE {self.namespace}_uptime_seconds gauge")
        out.append(f"{self.namespace}_uptime_seconds {self.uptime_seconds:.1f}")
        return "\n".join(out) + "\n"

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly view for the /status endpoint."""
        counters = {
            name: {
                ",".join(f"{k}={v}" for k, v in labels) or "total": value
                for labels, value in series.items()
            }
            for name, series in self._series.items()
        }
        return {
            "counters": counters,
            "gauges": dict(self._gauges),
            "uptime_seconds": round(self.uptime_seconds, 1),
        }
