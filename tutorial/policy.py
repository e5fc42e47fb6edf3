"""Tutorial policy model and the store that interprets it.

A policy is the server-controlled knob set for one tutorial run: how long to
wait before hinting, whether to draw the guide arrow, how many failures are
tolerated and whether the forced assist may kick in. The controller never
reads policy fields directly; it asks the :class:`PolicyStore` instead.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .errors import PolicyParseError

logger = logging.getLogger(__name__)

DEFAULT_TUTORIAL_VERSION = "1.0.0"
DEFAULT_VARIANT = "A"
DEFAULT_HINT_DELAY_SECONDS = 3.0
DEFAULT_SHOW_ARROW = True
DEFAULT_MAX_FAIL_COUNT = 3
DEFAULT_ASSIST_ENABLED = False

PolicySource = Union[str, bytes, Mapping[str, Any]]
PolicyListener = Callable[["TutorialPolicy"], None]


@dataclass(frozen=True)
class TutorialPolicy:
    """Immutable policy value; replaced wholesale, never edited in place."""

    tutorial_version: str = DEFAULT_TUTORIAL_VERSION
    variant: str = DEFAULT_VARIANT
    hint_delay_seconds: float = DEFAULT_HINT_DELAY_SECONDS
    show_arrow: bool = DEFAULT_SHOW_ARROW
    max_fail_count: int = DEFAULT_MAX_FAIL_COUNT
    assist_enabled: bool = DEFAULT_ASSIST_ENABLED

    @classmethod
    def default(cls) -> "TutorialPolicy":
        return cls()

    def is_blank(self) -> bool:
        """True when neither the variant nor the version carries a value."""
        return not (self.variant or "").strip() and not (self.tutorial_version or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tutorialVersion": self.tutorial_version,
            "variant": self.variant,
            "hintDelaySeconds": float(self.hint_delay_seconds),
            "showArrow": bool(self.show_arrow),
            "maxFailCount": int(self.max_fail_count),
            "assistEnabled": bool(self.assist_enabled),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _decode(raw: PolicySource) -> Dict[str, Any]:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PolicyParseError(f"Policy bytes are not valid UTF-8: {exc}") from None
    if isinstance(raw, str):
        if not raw.strip():
            raise PolicyParseError("Policy document is empty")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PolicyParseError(f"Policy document is not valid JSON: {exc.msg}") from None
    else:
        data = raw
    if not isinstance(data, Mapping):
        raise PolicyParseError(f"Policy document must be an object, got {type(data).__name__}")
    return dict(data)


def _text_field(data: Dict[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        logger.warning("Policy field %s=%r is invalid; using %r", key, value, default)
        return default
    return value.strip()


def _number_field(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        logger.warning("Policy field %s=%r is invalid; using %r", key, value, default)
        return default
    return float(value)


def _count_field(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        logger.warning("Policy field %s=%r is invalid; using %r", key, value, default)
        return default
    return value


def _flag_field(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        logger.warning("Policy field %s=%r is invalid; using %r", key, value, default)
        return default
    return value


def parse_policy(raw: PolicySource) -> TutorialPolicy:
    """Build a policy from JSON text or an already decoded mapping.

    Raises :class:`PolicyParseError` when the document itself is unusable.
    Individual bad fields are repaired to their defaults so a half-valid
    policy from the server still drives the tutorial.
    """
    data = _decode(raw)
    return TutorialPolicy(
        tutorial_version=_text_field(data, "tutorialVersion", DEFAULT_TUTORIAL_VERSION),
        variant=_text_field(data, "variant", DEFAULT_VARIANT),
        hint_delay_seconds=_number_field(data, "hintDelaySeconds", DEFAULT_HINT_DELAY_SECONDS),
        show_arrow=_flag_field(data, "showArrow", DEFAULT_SHOW_ARROW),
        max_fail_count=_count_field(data, "maxFailCount", DEFAULT_MAX_FAIL_COUNT),
        assist_enabled=_flag_field(data, "assistEnabled", DEFAULT_ASSIST_ENABLED),
    )


class PolicyStore:
    """Holds the current policy and answers the controller's questions.

    ``apply_from_source`` is the only writer. Every change is announced to
    subscribers; the controller uses that to restart a pending hint timer
    with the new delay.
    """

    def __init__(self, initial: Optional[PolicySource] = None) -> None:
        self._current: Optional[TutorialPolicy] = None
        self._serialized: str = ""
        self._listeners: List[PolicyListener] = []
        if initial is not None:
            self.load(initial)

    @property
    def is_loaded(self) -> bool:
        return self._current is not None

    def subscribe(self, listener: PolicyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: PolicyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def load(self, raw: PolicySource) -> TutorialPolicy:
        """Parse ``raw`` and make it current, falling back to the default."""
        self.apply_from_source(raw)
        return self.get_current()

    def apply_from_source(self, raw: PolicySource) -> None:
        try:
            policy = parse_policy(raw)
        except PolicyParseError as exc:
            logger.warning("Falling back to the default tutorial policy: %s", exc)
            policy = TutorialPolicy.default()
        self._current = policy
        self._serialized = self._serialize_source(raw, policy)
        logger.info(
            "Tutorial policy applied: version %s, variant %s",
            policy.tutorial_version,
            policy.variant,
        )
        self._notify(policy)

    @staticmethod
    def _serialize_source(raw: PolicySource, policy: TutorialPolicy) -> str:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if isinstance(raw, str):
            return raw
        try:
            return json.dumps(dict(raw), indent=2, allow_nan=False)
        except (TypeError, ValueError):
            return policy.to_json()

    def _notify(self, policy: TutorialPolicy) -> None:
        for listener in list(self._listeners):
            try:
                listener(policy)
            except Exception:
                logger.exception("Policy change listener %r failed", listener)

    def get_current(self) -> TutorialPolicy:
        return self._current or TutorialPolicy.default()

    def get_current_serialized(self) -> str:
        """Return the text the current policy was loaded from."""
        if self._serialized.strip():
            return self._serialized
        return self.get_current().to_json()

    def tutorial_version(self) -> str:
        return self.get_current().tutorial_version or DEFAULT_TUTORIAL_VERSION

    def variant(self) -> str:
        return self.get_current().variant or DEFAULT_VARIANT

    def hint_delay_seconds(self) -> float:
        return self.get_current().hint_delay_seconds

    def show_arrow(self) -> bool:
        return self.get_current().show_arrow

    def max_fail_count(self) -> int:
        return self.get_current().max_fail_count

    def assist_enabled(self) -> bool:
        return self.get_current().assist_enabled

    def should_transition_to_assist(self, fail_count: int) -> bool:
        policy = self.get_current()
        return fail_count > policy.max_fail_count and policy.assist_enabled


__all__ = [
    "TutorialPolicy",
    "PolicyStore",
    "parse_policy",
    "DEFAULT_HINT_DELAY_SECONDS",
]
