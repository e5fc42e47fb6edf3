"""Analytics helpers tailored to the combat tutorial."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .metrics import RUN_COMPLETED, MetricsExporter


@dataclass(frozen=True)
class CombatTutorialLog:
    """Compact per-run record: which policy was played and how it went."""

    timestamp: str
    tutorial_version: str
    variant: str
    fail_count: int
    clear_time: float
    damage_taken: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "tutorialVersion": self.tutorial_version,
            "variant": self.variant,
            "failCount": self.fail_count,
            "clearTime": self.clear_time,
            "damageTaken": self.damage_taken,
        }


class TutorialAnalytics:
    """Wraps metric exports for tutorial-specific events."""

    def __init__(self, exporter: Optional[MetricsExporter] = None) -> None:
        self._exporter = exporter or MetricsExporter()

    @property
    def exporter(self) -> MetricsExporter:
        return self._exporter

    def track_run_started(self, variant: str, reason: str) -> None:
        self._exporter.record("tutorial_run_started", {"variant": variant, "reason": reason})

    def track_state_changed(self, variant: str, previous: str, state: str) -> None:
        self._exporter.record(
            "tutorial_state_changed",
            {"variant": variant, "from": previous, "to": state},
        )

    def track_hint_shown(self, variant: str, hint_delay: float) -> None:
        self._exporter.record(
            "tutorial_hint_shown",
            {"variant": variant, "hintDelay": hint_delay},
        )

    def track_assist_triggered(self, variant: str, fail_count: int) -> None:
        self._exporter.record(
            "tutorial_assist_triggered",
            {"variant": variant, "failCount": fail_count},
        )

    def track_run_completed(self, result: str, log: CombatTutorialLog) -> None:
        payload = log.to_dict()
        payload["result"] = result
        self._exporter.record(RUN_COMPLETED, payload)


__all__ = ["TutorialAnalytics", "CombatTutorialLog"]
