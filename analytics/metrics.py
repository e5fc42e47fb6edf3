"""In-process metric sink used by the tutorial analytics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

RUN_COMPLETED = "tutorial_run_completed"


@dataclass(frozen=True)
class MetricsEvent:
    """Container describing a single analytics event."""

    name: str
    payload: Dict[str, object]


@dataclass(frozen=True)
class VariantStats:
    """Finished-run aggregate for one policy variant."""

    variant: str
    runs: int
    clears: int
    mean_fail_count: float
    mean_clear_time: float

    @property
    def clear_rate(self) -> float:
        return self.clears / self.runs if self.runs else 0.0


class MetricsExporter:
    """Buffers analytics events and forwards each one to an optional sink."""

    def __init__(
        self,
        emitter: Optional[Callable[[MetricsEvent], None]] = None,
    ) -> None:
        self._events: List[MetricsEvent] = []
        self._emitter = emitter

    def record(self, name: str, payload: Optional[Dict[str, object]] = None) -> MetricsEvent:
        event = MetricsEvent(name=name, payload=dict(payload or {}))
        self._events.append(event)
        if self._emitter is not None:
            self._emitter(event)
        return event

    @property
    def events(self) -> List[MetricsEvent]:
        return list(self._events)

    def events_named(self, name: str) -> List[MetricsEvent]:
        return [event for event in self._events if event.name == name]

    def export_counts(self) -> Dict[str, int]:
        """Count events as ``name:variant`` (or bare ``name`` without a variant)."""
        counts: Dict[str, int] = {}
        for event in self._events:
            variant = event.payload.get("variant")
            key = f"{event.name}:{variant}" if variant else event.name
            counts[key] = counts.get(key, 0) + 1
        return counts

    def variant_stats(self) -> Dict[str, VariantStats]:
        """Aggregate finished runs per variant for A/B comparison."""
        grouped: Dict[str, List[Dict[str, object]]] = {}
        for event in self.events_named(RUN_COMPLETED):
            variant = str(event.payload.get("variant") or "unknown")
            grouped.setdefault(variant, []).append(event.payload)

        stats: Dict[str, VariantStats] = {}
        for variant, runs in grouped.items():
            clears = [run for run in runs if run.get("result") == "CLEAR"]
            fail_counts = [float(run.get("failCount", 0) or 0) for run in runs]
            clear_times = [float(run.get("clearTime", 0.0) or 0.0) for run in clears]
            stats[variant] = VariantStats(
                variant=variant,
                runs=len(runs),
                clears=len(clears),
                mean_fail_count=sum(fail_counts) / len(fail_counts),
                mean_clear_time=sum(clear_times) / len(clear_times) if clear_times else 0.0,
            )
        return stats

    def clear(self) -> None:
        self._events.clear()


__all__ = ["MetricsEvent", "MetricsExporter", "VariantStats", "RUN_COMPLETED"]
