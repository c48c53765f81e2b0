"""
In-process metrics rendered in Prometheus text exposition format.

    from .metrics import METRICS
    METRICS.inc("rxauth_authorize_total", labels={"reason": "ok"})
    with METRICS.timer("rxauth_resolve_duration_seconds"):
        ...

Counters and gauges share one label-keyed store; histograms are registered
up front with fixed buckets.
"""
from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager

LabelSet = tuple[tuple[str, str], ...]

DEFAULT_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class _Histogram:
    def __init__(self, buckets: tuple[float, ...]) -> None:
        self.buckets = buckets
        # per label set: [count per bucket..., sum, total]
        self.series: dict[LabelSet, list[float]] = {}

    def observe(self, labels: LabelSet, value: float) -> None:
        row = self.series.setdefault(labels, [0.0] * (len(self.buckets) + 2))
        for i, bound in enumerate(self.buckets):
            if value <= bound:
                row[i] += 1
        row[-2] += value
        row[-1] += 1


class Registry:
    """Thread-safe counters, gauges and histograms."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[tuple[str, LabelSet], float] = defaultdict(float)
        self._types: dict[str, str] = {}
        self._help: dict[str, str] = {}
        self._histograms: dict[str, _Histogram] = {}

    def describe(self, name: str, help_text: str, metric_type: str = "counter") -> None:
        self._help[name] = help_text
        self._types[name] = metric_type

    def register_histogram(
        self, name: str, help_text: str, buckets: tuple[float, ...] = DEFAULT_BUCKETS
    ) -> None:
        self.describe(name, help_text, "histogram")
        self._histograms[name] = _Histogram(buckets)

    def inc(self, name: str, *, labels: dict[str, str] | None = None, delta: float = 1) -> None:
        with self._lock:
            self._values[(name, _labelset(labels))] += delta

    def dec(self, name: str, *, labels: dict[str, str] | None = None) -> None:
        self.inc(name, labels=labels, delta=-1)

    def get(self, name: str, *, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._values.get((name, _labelset(labels)), 0)

    def observe(self, name: str, value: float, *, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            hist = self._histograms.get(name)
            if hist is not None:
                hist.observe(_labelset(labels), value)

    @contextmanager
    def timer(self, name: str, *, labels: dict[str, str] | None = None):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - start, labels=labels)

    def reset(self) -> None:
        """Zero every series (tests only)."""
        with self._lock:
            self._values.clear()
            for hist in self._histograms.values():
                hist.series.clear()

    def render(self) -> str:
        with self._lock:
            values = sorted(self._values.items())
            histograms = {
                name: (h.buckets, {k: list(v) for k, v in h.series.items()})
                for name, h in self._histograms.items()
            }

        lines: list[str] = []
        by_name: dict[str, list[tuple[LabelSet, float]]] = defaultdict(list)
        for (name, labels), value in values:
            by_name[name].append((labels, value))

        for name in sorted(by_name):
            self._header(lines, name, self._types.get(name, "counter"))
            for labels, value in by_name[name]:
                lines.append(f"{name}{_render_labels(labels)} {_number(value)}")

        for name in sorted(histograms):
            buckets, series = histograms[name]
            self._header(lines, name, "histogram")
            for labels in sorted(series):
                row = series[labels]
                for bound, count in zip(buckets, row):
                    le = (*labels, ("le", str(bound)))
                    lines.append(f"{name}_bucket{_render_labels(le)} {_number(count)}")
                inf = (*labels, ("le", "+Inf"))
                lines.append(f"{name}_bucket{_render_labels(inf)} {_number(row[-1])}")
                lines.append(f"{name}_sum{_render_labels(labels)} {row[-2]:.6f}")
                lines.append(f"{name}_count{_render_labels(labels)} {_number(row[-1])}")

        lines.append("")
        return "\n".join(lines)

    def _header(self, lines: list[str], name: str, metric_type: str) -> None:
        if name in self._help:
            lines.append(f"# HELP {name} {self._help[name]}")
        lines.append(f"# TYPE {name} {metric_type}")


def _labelset(labels: dict[str, str] | None) -> LabelSet:
    return tuple(sorted(labels.items())) if labels else ()


def _render_labels(labels: LabelSet) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels) + "}"


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(value)


METRICS = Registry()

METRICS.describe("rxauth_authorize_total", "Authorization verdicts by reason.")
METRICS.describe("rxauth_identity_error_total", "Identity provider failures by kind.")
METRICS.describe("rxauth_role_lookup_degraded_total", "Role lookups degraded to the fail-open role.")
METRICS.describe("rxauth_identifiers_total", "Identifiers minted by kind.")
METRICS.describe("rxauth_audit_error_total", "Audit appends that failed.")
METRICS.describe("rxauth_requests_in_flight", "Requests currently being processed.", metric_type="gauge")
METRICS.register_histogram(
    "rxauth_resolve_duration_seconds",
    "Time spent resolving a credential to a principal.",
)
