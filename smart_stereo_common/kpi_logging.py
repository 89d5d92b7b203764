"""KPI logging helpers for smart factor linearization."""
from __future__ import annotations

import json
import logging
import statistics
import time
from collections import deque
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("smart_stereo.kpi")


def _percentile(values: List[float], pct: float) -> Optional[float]:
    if not values:
        return None
    if pct <= 0:
        return values[0]
    if pct >= 100:
        return values[-1]
    rank = (pct / 100.0) * (len(values) - 1)
    lower = int(rank)
    upper = min(lower + 1, len(values) - 1)
    weight = rank - lower
    return values[lower] * (1 - weight) + values[upper] * weight


def _stats(values: Iterable[float]) -> Dict[str, Optional[float]]:
    vals = sorted(values)
    if not vals:
        return {"count": 0}
    out: Dict[str, Optional[float]] = {
        "count": len(vals),
        "min": vals[0],
        "max": vals[-1],
        "mean": statistics.mean(vals),
        "median": statistics.median(vals),
        "p90": _percentile(vals, 90.0),
        "p95": _percentile(vals, 95.0),
        "p99": _percentile(vals, 99.0),
    }
    if len(vals) > 1:
        out["stdev"] = statistics.pstdev(vals)
    return out


class KPILogger:
    """Emit structured KPI events for downstream analysis."""

    def __init__(
        self,
        enabled: bool = True,
        extra_fields: Optional[Dict[str, Any]] = None,
        log_path: Optional[str] = None,
        emit_to_logger: bool = True,
        max_samples: int = 10000,
    ):
        self.enabled = enabled
        self._extra = extra_fields.copy() if extra_fields else {}
        self._emit_to_logger = emit_to_logger
        # Rolling window; long runs keep only the most recent samples.
        self._durations: deque = deque(maxlen=max_samples)
        self._fh = None
        if log_path:
            self._fh = open(log_path, "w", encoding="utf-8")

    def _emit(self, event: str, **fields: Any) -> None:
        if not self.enabled:
            return
        payload = {"event": event, "ts": time.time()}
        payload.update(self._extra)
        payload.update({k: v for k, v in fields.items() if v is not None})
        if self._emit_to_logger:
            logger.info("KPI %s", json.dumps(payload, sort_keys=True))
        if self._fh:
            self._fh.write(json.dumps(payload, sort_keys=True) + "\n")
            self._fh.flush()

    def triangulation(self, views: int, status: str) -> None:
        self._emit("triangulation", views=views, status=status)

    def linearization(
        self,
        views: int,
        unique_keys: int,
        status: str,
        duration_s: float,
        *,
        damping: Optional[float] = None,
        diagonal_damping: Optional[bool] = None,
    ) -> None:
        self._durations.append(duration_s)
        self._emit(
            "linearization",
            views=views,
            unique_keys=unique_keys,
            status=status,
            duration_s=duration_s,
            damping=damping,
            diagonal_damping=diagonal_damping,
        )

    def duration_stats(self) -> Dict[str, Optional[float]]:
        return _stats(self._durations)

    def close(self) -> None:
        if self._fh:
            try:
                self._fh.close()
            finally:
                self._fh = None
