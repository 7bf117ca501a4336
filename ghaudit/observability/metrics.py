"""In-process audit metrics: counters (optionally per category) and per-stage latency samples."""

import threading
from collections import defaultdict
from typing import Any


def _labelled(name: str, label: str, value: str) -> str:
    return f"{name}:{label}={value}"


class MetricsCollector:
    """
    Registry for one process. Counters are plain or keyed by category
    (e.g. violations_detected:category=hooks); latencies are kept as raw
    samples per stage. Safe to share between threads and worker tasks.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = defaultdict(float)
        self._labelled: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._samples: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: float = 1.0, *, category: str | None = None) -> None:
        with self._lock:
            if category is None:
                self._counters[name] += value
            else:
                self._labelled[name][_labelled(name, "category", category)] += value

    def observe_latency(self, name: str, latency_ms: float, *, stage: str | None = None) -> None:
        """Record one latency sample in milliseconds, optionally for a pipeline stage."""
        key = name if stage is None else _labelled(name, "stage", stage)
        with self._lock:
            self._samples[key].append(latency_ms)

    def counter(self, name: str, *, category: str | None = None) -> float:
        """Current value of a counter; 0 if it was never incremented."""
        with self._lock:
            if category is None:
                return self._counters.get(name, 0)
            return self._labelled.get(name, {}).get(_labelled(name, "category", category), 0)

    def export_metrics(self) -> dict[str, Any]:
        """Copy of every metric: counters, labelled counters and latency histograms."""
        with self._lock:
            histograms = {}
            for key, samples in self._samples.items():
                histograms[key] = {
                    "count": len(samples),
                    "sum": sum(samples),
                    "max": max(samples),
                    "values": list(samples),
                }
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {name: dict(v) for name, v in self._labelled.items()},
                "histograms": histograms,
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._labelled.clear()
            self._samples.clear()
