"""In-memory run report: metadata, policy snapshot, rolling summary, event log.

Events only ever land in a list while the run is going. The report is turned
into one JSON document and written once, when the run reaches its end.
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from config import get_app_version

from .policy import DEFAULT_TUTORIAL_VERSION, DEFAULT_VARIANT, TutorialPolicy

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
FLOAT_PRECISION = 3
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

Clock = Callable[[], float]


class TutorialEventType(Enum):
    RUN_START = "RUN_START"
    RUN_END = "RUN_END"
    STEP_START = "STEP_START"
    STEP_CLEAR = "STEP_CLEAR"
    FAIL = "FAIL"
    HINT_SHOWN = "HINT_SHOWN"
    ASSIST_TRIGGERED = "ASSIST_TRIGGERED"


@dataclass(frozen=True)
class TutorialEvent:
    """One entry of the run log; ``timestamp`` is seconds since run start."""

    type: TutorialEventType
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        return self.type.name

    def to_dict(self) -> Dict[str, Any]:
        return {"typeName": self.type_name, "timestamp": self.timestamp, "data": copy.deepcopy(self.data)}


@dataclass(frozen=True)
class RunMetadata:
    start_time: str
    seed: int
    variant: str
    app_version: str
    tutorial_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startTime": self.start_time,
            "seed": self.seed,
            "variant": self.variant,
            "appVersion": self.app_version,
            "tutorialVersion": self.tutorial_version,
        }


@dataclass
class RunSummary:
    result: Optional[str] = None
    duration_seconds: float = 0.0
    end_reason: Optional[str] = None
    step_count: int = 0
    fail_count: int = 0
    hint_shown_count: int = 0
    assist_triggered: bool = False
    damage_taken: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result,
            "durationSeconds": self.duration_seconds,
            "endReason": self.end_reason,
            "stepCount": self.step_count,
            "failCount": self.fail_count,
            "hintShownCount": self.hint_shown_count,
            "assistTriggered": self.assist_triggered,
            "damageTaken": self.damage_taken,
        }


def _round_floats(value: Any) -> Any:
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return round(value, FLOAT_PRECISION)
    if isinstance(value, dict):
        return {key: _round_floats(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_round_floats(item) for item in value]
    return value


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON constant {token}")


def _embed_policy_data(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        logger.warning("Stored policy text is not strict JSON; embedding it verbatim")
        return {"raw": text}
    if not isinstance(data, dict):
        return {"raw": text}
    return data


def _resolve_policy_data(policy: TutorialPolicy, original: Optional[str]) -> str:
    if original and original.strip():
        return original
    snapshot_text = policy.to_json()
    if snapshot_text.strip():
        return snapshot_text
    logger.error("Policy snapshot serialized to nothing; storing the default policy")
    default_text = TutorialPolicy.default().to_json()
    if default_text.strip():
        return default_text
    return "{}"


class RunReport:
    """Event log and summary for exactly one tutorial run."""

    def __init__(
        self,
        metadata: RunMetadata,
        policy: TutorialPolicy,
        policy_data: str,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.metadata = metadata
        self.policy = policy
        self.policy_data = policy_data
        self.summary = RunSummary()
        self._policy_document = _embed_policy_data(policy_data)
        self._events: List[TutorialEvent] = []
        self._clock: Clock = clock or time.monotonic
        self._run_start = self._clock()
        self._finalized = False
        self._persisted_to: Optional[str] = None

    @classmethod
    def create(
        cls,
        policy_snapshot: Optional[TutorialPolicy],
        original_serialized: Optional[str] = None,
        seed: int = 0,
        *,
        clock: Optional[Clock] = None,
        app_version: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> "RunReport":
        if policy_snapshot is None or policy_snapshot.is_blank():
            logger.warning("Run report created without a usable policy; using the default policy")
            policy_snapshot = TutorialPolicy.default()
        started_at = started_at or datetime.now(timezone.utc)
        metadata = RunMetadata(
            start_time=started_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            seed=int(seed),
            variant=(policy_snapshot.variant or "").strip() or DEFAULT_VARIANT,
            app_version=app_version or get_app_version(),
            tutorial_version=(policy_snapshot.tutorial_version or "").strip() or DEFAULT_TUTORIAL_VERSION,
        )
        policy_data = _resolve_policy_data(policy_snapshot, original_serialized)
        return cls(metadata, policy_snapshot, policy_data, clock=clock)

    @property
    def events(self) -> List[TutorialEvent]:
        return list(self._events)

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def persisted_to(self) -> Optional[str]:
        return self._persisted_to

    def elapsed(self) -> float:
        return max(0.0, self._clock() - self._run_start)

    def add_event(self, event_type: TutorialEventType, data: Optional[Dict[str, Any]] = None) -> TutorialEvent:
        timestamp = self.elapsed()
        if self._events and timestamp < self._events[-1].timestamp:
            timestamp = self._events[-1].timestamp
        event = TutorialEvent(type=event_type, timestamp=timestamp, data=copy.deepcopy(dict(data or {})))
        self._events.append(event)
        return event

    def finalize_summary(
        self,
        result: str,
        end_reason: str,
        duration_seconds: Optional[float] = None,
    ) -> bool:
        if self._finalized:
            logger.warning(
                "Run summary already finalized as %s; ignoring %s",
                self.summary.result,
                result,
            )
            return False
        self.summary.result = result
        self.summary.end_reason = end_reason
        self.summary.duration_seconds = self.elapsed() if duration_seconds is None else float(duration_seconds)
        self._finalized = True
        return True

    def close(self, result: str, end_reason: str) -> None:
        """Finalize the summary and log the matching ``RUN_END`` event."""
        if not self.finalize_summary(result, end_reason):
            return
        self.add_event(
            TutorialEventType.RUN_END,
            {
                "result": result,
                "endReason": end_reason,
                "durationSeconds": self.summary.duration_seconds,
                "failCount": self.summary.fail_count,
                "damageTaken": self.summary.damage_taken,
            },
        )

    def marker_copy(self, result: str, end_reason: str) -> "RunReport":
        """Return a closed copy of this report, leaving this one open."""
        marker = RunReport(self.metadata, self.policy, self.policy_data, clock=self._clock)
        marker._run_start = self._run_start
        marker._events = list(self._events)
        marker.summary = replace(self.summary)
        marker.close(result, end_reason)
        return marker

    def to_document(self) -> Dict[str, Any]:
        document = {
            "schemaVersion": SCHEMA_VERSION,
            "run": self.metadata.to_dict(),
            "policy": self.policy.to_dict(),
            "policyData": self._policy_document,
            "summary": self.summary.to_dict(),
            "events": [event.to_dict() for event in self._events],
        }
        return _round_floats(document)

    def serialize(self) -> str:
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False, default=str, allow_nan=False)

    def report_name(self, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")
        seed = f"seed{self.metadata.seed}" if self.metadata.seed > 0 else "noseed"
        result = self.summary.result or "UNKNOWN"
        variant = _UNSAFE_NAME_CHARS.sub("-", self.metadata.variant or "") or "Unknown"
        return f"run_{stamp}_{variant}_{seed}_{result}"

    def persist(self, store, *, now: Optional[datetime] = None) -> Optional[str]:
        """Write the report through ``store``; failures are logged, not raised."""
        if self._persisted_to is not None:
            logger.warning("Run report already persisted to %s; skipping", self._persisted_to)
            return None
        name = self.report_name(now)
        try:
            location = store.write(name, self.serialize())
        except Exception:
            logger.exception("Failed to persist run report %s", name)
            return None
        self._persisted_to = str(location)
        logger.info("Run report saved: %s", location)
        return self._persisted_to


class MemoryReportStore:
    """Keeps reports in a dict; handy for tests and headless runs."""

    def __init__(self) -> None:
        self._reports: Dict[str, str] = {}

    def write(self, name: str, text: str) -> str:
        self._reports[name] = text
        return f"memory://{name}"

    def read(self, name: str) -> Optional[str]:
        return self._reports.get(name)

    def list_reports(self) -> List[str]:
        return list(self._reports)

    def clear(self) -> None:
        self._reports.clear()


__all__ = [
    "MemoryReportStore",
    "RunReport",
    "RunMetadata",
    "RunSummary",
    "TutorialEvent",
    "TutorialEventType",
    "SCHEMA_VERSION",
]
