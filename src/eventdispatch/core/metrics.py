from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from statistics import mean
from typing import Any, Deque, Dict, List, Optional, Tuple

# ---------------- Utilities ----------------

LabelKey = Tuple[Tuple[str, str], ...]  # sorted (k, v) pairs
MetricKey = Tuple[str, LabelKey]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(vals_sorted: List[float], q: float) -> float:
    if not vals_sorted:
        return 0.0
    idx = max(0, min(len(vals_sorted) - 1, int(round((len(vals_sorted) - 1) * q))))
    return vals_sorted[idx]


# ---------------- Metric types ----------------

@dataclass
class _Metric:
    name: str
    labels: LabelKey

    def __post_init__(self) -> None:
        self._lock = threading.Lock()


class Counter(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        with self._lock:
            return self._value


class Gauge(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def value(self) -> float:
        with self._lock:
            return self._value


class Histogram(_Metric):
    """Keeps the last `maxlen` observations; percentiles are computed on read."""

    def __init__(self, name: str, labels: LabelKey, maxlen: int = 1024):
        super().__init__(name, labels)
        self._values: Deque[float] = deque(maxlen=maxlen)

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0,
                    "p50": 0.0, "p90": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p90": _pct(vals, 0.90),
            "p99": _pct(vals, 0.99),
        }


# ---------------- Registry ----------------

class _Registry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[type, Dict[MetricKey, _Metric]] = {
            Counter: {}, Gauge: {}, Histogram: {},
        }

    def get(self, kind: type, name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            table = self._tables[kind]
            m = table.get(key)
            if m is None:
                m = kind(name, key[1])
                table[key] = m
            return m

    def peek(self, kind: type, name: str, labels: Dict[str, Any] | None):
        with self._lock:
            return self._tables[kind].get((name, _labels_key(labels)))

    def items(self, kind: type) -> List[Tuple[MetricKey, Any]]:
        with self._lock:
            return list(self._tables[kind].items())

    def clear(self) -> None:
        with self._lock:
            for table in self._tables.values():
                table.clear()


_REG = _Registry()

# ---------------- Public API ----------------

def inc_counter(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.get(Counter, name, labels).inc(n)


def set_gauge(name: str, v: float, **labels: Any) -> None:
    _REG.get(Gauge, name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.get(Histogram, name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    """Current value, 0.0 for a series that was never written."""
    m = _REG.peek(Counter, name, labels)
    return 0.0 if m is None else m.value()


def gauge_value(name: str, **labels: Any) -> float:
    m = _REG.peek(Gauge, name, labels)
    return 0.0 if m is None else m.value()


def reset() -> None:
    """Forget every metric (tests)."""
    _REG.clear()


def snapshot_all() -> dict:
    """Plain-dict view of every metric."""
    out: Dict[str, list] = {"counters": [], "gauges": [], "hists": []}
    for (name, labels), m in _REG.items(Counter):
        out["counters"].append({"name": name, "labels": dict(labels), "value": m.value()})
    for (name, labels), m in _REG.items(Gauge):
        out["gauges"].append({"name": name, "labels": dict(labels), "value": m.value()})
    for (name, labels), m in _REG.items(Histogram):
        out["hists"].append({"name": name, "labels": dict(labels), **m.snapshot()})
    return out


# ---------------- Exporter (log every N seconds) ----------------

class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float, json_mode: bool, logger: Optional[logging.Logger]):
        super().__init__(name="MetricsExporter", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = bool(json_mode)
        self.log = logger or logging.getLogger("metrics")
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.is_set():
            t0 = time.monotonic()
            self.emit()
            self._stop_evt.wait(max(0.5, self.interval - (time.monotonic() - t0)))

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_evt.set()
        self.join(timeout=timeout)

    def emit(self) -> None:
        snap = snapshot_all()
        if self.json_mode:
            for kind, rows in (("counter", snap["counters"]), ("gauge", snap["gauges"]), ("hist", snap["hists"])):
                for row in rows:
                    self.log.info({"type": kind, **row})
            return
        for row in snap["counters"]:
            self.log.info(f"[ctr] {row['name']} {row['labels']} value={row['value']:.0f}")
        for row in snap["gauges"]:
            self.log.info(f"[gauge] {row['name']} {row['labels']} value={row['value']:.3f}")
        for row in snap["hists"]:
            self.log.info(
                f"[hist] {row['name']} {row['labels']} "
                f"n={int(row['count'])} p50={row['p50']:.3f} p90={row['p90']:.3f} "
                f"p99={row['p99']:.3f} max={row['max']:.3f}"
            )


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec, json_mode, logger)
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.stop(timeout=timeout)
        _EXPORTER = None


def force_emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Emit one snapshot now instead of waiting for the exporter."""
    _Exporter(0, json_mode, logger).emit()


# ---------------- Timer Helper ----------------

class Timer:
    """Context manager: elapsed milliseconds go into a histogram, even on error."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self.elapsed_ms = 0.0
        self._t0 = 0.0

    def __enter__(self) -> "Timer":
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.elapsed_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, self.elapsed_ms, **self.labels)
        return False
