"""Metric primitives kept in process memory."""
from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Mapping, Tuple

LabelKey = Tuple[str, ...]


class Metric:
    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        self.name = name
        self.description = description
        self.label_names: Tuple[str, ...] = tuple(label_names or ())
        self._lock = Lock()

    def _key(self, labels: Mapping[str, str] | None) -> LabelKey:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"Unknown labels for metric '{self.name}': {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def snapshot(self) -> Dict[LabelKey, Dict[str, float]]:  # pragma: no cover - interface
        raise NotImplementedError


class CounterMetric(Metric):
    """Monotonic counter partitioned by label values."""

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._values: Dict[LabelKey, float] = {}

    def inc(self, amount: float = 1.0, *, labels: Mapping[str, str] | None = None) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, labels: Mapping[str, str] | None = None) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def snapshot(self) -> Dict[LabelKey, Dict[str, float]]:
        with self._lock:
            return {key: {"value": value} for key, value in self._values.items()}


class DistributionMetric(Metric):
    """Count and sum of observed values, exported as a summary."""

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._counts: Dict[LabelKey, int] = {}
        self._sums: Dict[LabelKey, float] = {}

    def observe(self, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._key(labels)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._sums[key] = self._sums.get(key, 0.0) + value

    def snapshot(self) -> Dict[LabelKey, Dict[str, float]]:
        with self._lock:
            return {key: {"count": float(self._counts[key]), "sum": self._sums[key]} for key in self._counts}

