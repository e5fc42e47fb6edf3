"""Tutorial state machine driven by combat signals, timers and policy.

The controller owns the current :class:`TutorialState`, the fail counter and
the run report. It never interprets policy fields itself; every decision
that depends on the policy is a question to the :class:`PolicyStore`.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from analytics import CombatTutorialLog, TutorialAnalytics
from combat.events import CombatEvent, CombatEventSource

from .errors import DuplicateInitializationError, MissingCollaboratorError
from .policy import PolicyStore, TutorialPolicy
from .report import MemoryReportStore, RunReport, TutorialEventType
from .timers import HintScheduler, TimerHandle

logger = logging.getLogger(__name__)

MAX_SEED = 2**31 - 1


class TutorialState(Enum):
    INIT = "Init"
    WAITING_FOR_ACTION = "WaitingForAction"
    HINT = "Hint"
    RETRY = "Retry"
    ASSIST = "Assist"
    CLEAR = "Clear"


StateListener = Callable[[TutorialState], None]


class TutorialController:
    """Coordinates tutorial state progression and run reporting."""

    def __init__(
        self,
        combat_source: Optional[CombatEventSource],
        policy_store: Optional[PolicyStore],
        *,
        scheduler: Optional[HintScheduler] = None,
        report_store=None,
        analytics: Optional[TutorialAnalytics] = None,
        rng: Optional[random.Random] = None,
        app_version: Optional[str] = None,
    ) -> None:
        self._combat_source = combat_source
        self._policy_store = policy_store
        self._scheduler = scheduler or HintScheduler()
        self._report_store = report_store if report_store is not None else MemoryReportStore()
        self._analytics = analytics or TutorialAnalytics()
        self._rng = rng or random.Random()
        self._app_version = app_version
        self._state = TutorialState.INIT
        self._fail_count = 0
        self._damage_taken = 0
        self._run_report: Optional[RunReport] = None
        self._hint_timer: Optional[TimerHandle] = None
        self._state_listeners: List[StateListener] = []
        self._initialized = False
        self._combat_subscribed = False

    # ------------------------------------------------------------------
    # Read-only views for observers
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> TutorialState:
        return self._state

    @property
    def fail_count(self) -> int:
        return self._fail_count

    @property
    def damage_taken(self) -> int:
        return self._damage_taken

    @property
    def run_report(self) -> Optional[RunReport]:
        return self._run_report

    @property
    def report_store(self):
        return self._report_store

    @property
    def analytics(self) -> TutorialAnalytics:
        return self._analytics

    @property
    def scheduler(self) -> HintScheduler:
        return self._scheduler

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def hint_pending(self) -> bool:
        return self._hint_timer is not None and self._hint_timer.pending

    @property
    def policy(self) -> TutorialPolicy:
        if self._policy_store is None:
            return TutorialPolicy.default()
        return self._policy_store.get_current()

    def hint_delay_seconds(self) -> float:
        return self.policy.hint_delay_seconds

    def max_fail_count(self) -> int:
        return self.policy.max_fail_count

    def assist_enabled(self) -> bool:
        return self.policy.assist_enabled

    def add_state_listener(self, listener: StateListener) -> None:
        if listener not in self._state_listeners:
            self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        try:
            self._guard_initialization()
        except DuplicateInitializationError as exc:
            logger.warning("%s; ignoring", exc)
            return
        self._initialized = True

        try:
            self._connect_combat_source()
        except MissingCollaboratorError as exc:
            logger.error("%s", exc)

        if self._policy_store is None:
            logger.warning("No policy store configured; default policy values will be used")
        else:
            self._policy_store.subscribe(self._on_policy_changed)
            if self._policy_store.is_loaded and self._run_report is None:
                self._open_run(
                    self._policy_store.get_current(),
                    self._policy_store.get_current_serialized(),
                    "Policy loaded",
                )

    def _guard_initialization(self) -> None:
        if self._initialized:
            raise DuplicateInitializationError("TutorialController is already initialized")

    def _connect_combat_source(self) -> None:
        if self._combat_source is None:
            raise MissingCollaboratorError(
                "No combat event source configured; combat outcomes will not reach the tutorial"
            )
        self._combat_source.unsubscribe(self.on_combat_event)
        self._combat_source.subscribe(self.on_combat_event)
        self._combat_subscribed = True

    def shutdown(self) -> None:
        self._cancel_hint_timer()
        if self._combat_source is not None and self._combat_subscribed:
            self._combat_source.unsubscribe(self.on_combat_event)
            self._combat_subscribed = False
        if self._policy_store is not None:
            self._policy_store.unsubscribe(self._on_policy_changed)
        self._initialized = False

    def on_tick(self, delta: float) -> None:
        self._scheduler.advance(delta)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def change_state(self, new_state: TutorialState) -> None:
        if new_state == self._state:
            return
        if new_state != TutorialState.INIT:
            self._ensure_run_report("Auto-created on state change")

        previous = self._state
        report = self._run_report
        if report is not None:
            if previous != TutorialState.INIT:
                report.add_event(TutorialEventType.STEP_CLEAR, {"previousState": previous.value})
            if new_state not in (TutorialState.INIT, TutorialState.CLEAR):
                report.add_event(TutorialEventType.STEP_START, {"stepName": new_state.value})
                report.summary.step_count += 1

        if previous == TutorialState.WAITING_FOR_ACTION:
            self._cancel_hint_timer()
        self._state = new_state
        if new_state == TutorialState.WAITING_FOR_ACTION:
            self._schedule_hint_timer()

        logger.info("Tutorial state changed: %s -> %s", previous.value, new_state.value)
        self._analytics.track_state_changed(self.policy.variant, previous.value, new_state.value)
        self._notify_state_listeners()

    def start(self) -> None:
        """Leave ``Init`` and wait for the player's first action."""
        if self._state != TutorialState.INIT:
            logger.warning("start() ignored in state %s", self._state.value)
            return
        self.change_state(TutorialState.WAITING_FOR_ACTION)

    def wait_for_action(self) -> None:
        """Return to ``WaitingForAction`` after a hint, retry or assist."""
        if self._state not in (TutorialState.HINT, TutorialState.RETRY, TutorialState.ASSIST):
            logger.warning("wait_for_action() ignored in state %s", self._state.value)
            return
        self.change_state(TutorialState.WAITING_FOR_ACTION)

    def show_hint(self) -> None:
        if self._state == TutorialState.CLEAR:
            return
        self._ensure_run_report("Auto-created on hint")
        hint_delay = self.hint_delay_seconds()
        self._run_report.add_event(TutorialEventType.HINT_SHOWN, {"hintDelay": hint_delay})
        self._run_report.summary.hint_shown_count += 1
        self._analytics.track_hint_shown(self.policy.variant, hint_delay)
        self.change_state(TutorialState.HINT)

    def on_failure(self) -> None:
        """Count a failure and move to ``Assist`` or ``Retry``."""
        if self._state == TutorialState.CLEAR:
            return
        self._ensure_run_report("Auto-created on failure")
        report = self._run_report
        self._fail_count += 1
        report.add_event(
            TutorialEventType.FAIL,
            {"failCount": self._fail_count, "state": self._state.value},
        )
        report.summary.fail_count = self._fail_count
        report.summary.damage_taken = self._damage_taken
        logger.info("Tutorial failure recorded (fail count %d)", self._fail_count)

        if self._should_transition_to_assist():
            report.summary.assist_triggered = True
            report.add_event(
                TutorialEventType.ASSIST_TRIGGERED,
                {"failCount": self._fail_count, "maxFailCount": self.max_fail_count()},
            )
            self._analytics.track_assist_triggered(self.policy.variant, self._fail_count)
            self.change_state(TutorialState.ASSIST)
        else:
            self.change_state(TutorialState.RETRY)

    def _should_transition_to_assist(self) -> bool:
        if self._policy_store is None:
            return False
        return self._policy_store.should_transition_to_assist(self._fail_count)

    def on_success(self) -> None:
        if self._state == TutorialState.CLEAR:
            return
        self._ensure_run_report("Auto-created on enemy defeat")
        self._fail_count = 0
        self.change_state(TutorialState.CLEAR)
        self._finish_run("CLEAR", "Enemy defeated")

    def _on_player_defeated(self) -> None:
        self._ensure_run_report("Auto-created on player defeat")
        report = self._run_report
        self._damage_taken += 1
        self._fail_count += 1
        report.add_event(
            TutorialEventType.FAIL,
            {"failCount": self._fail_count, "state": self._state.value, "reason": "Player defeated"},
        )
        report.summary.fail_count = self._fail_count
        report.summary.damage_taken = self._damage_taken
        self.change_state(TutorialState.CLEAR)
        self._finish_run("FAIL", "Player defeated")

    def _finish_run(self, result: str, end_reason: str) -> None:
        report = self._run_report
        report.summary.damage_taken = self._damage_taken
        report.close(result, end_reason)
        report.persist(self._report_store)
        self._analytics.track_run_completed(
            result,
            CombatTutorialLog(
                timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                tutorial_version=report.metadata.tutorial_version,
                variant=report.metadata.variant,
                fail_count=report.summary.fail_count,
                clear_time=report.summary.duration_seconds,
                damage_taken=self._damage_taken,
            ),
        )

    # ------------------------------------------------------------------
    # Combat signals
    # ------------------------------------------------------------------

    def on_combat_event(self, kind: CombatEvent | str) -> None:
        try:
            event = CombatEvent.parse(kind)
        except ValueError:
            logger.warning("Ignoring unknown combat event %r", kind)
            return
        if self._state == TutorialState.CLEAR:
            logger.debug("Run already finished; ignoring %s", event.value)
            return

        if event == CombatEvent.PLAYER_DAMAGED:
            self._damage_taken += 1
            self.on_failure()
        elif event == CombatEvent.ENEMY_DEFEATED:
            self.on_success()
        elif event == CombatEvent.PLAYER_DEFEATED:
            self._on_player_defeated()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def start_new_run_with_policy(
        self,
        policy: Optional[TutorialPolicy],
        serialized_policy: Optional[str] = None,
        reason: str = "Policy applied",
    ) -> RunReport:
        """Throw away the current run and open a new one under ``policy``.

        The new run's start is persisted right away as a ``START`` marker.
        The controller is left in ``Init``; call :meth:`start` to play.
        """
        if policy is None:
            logger.warning("New run requested without a policy; using the default policy")
            policy = TutorialPolicy.default()
            serialized_policy = None

        self._cancel_hint_timer()
        self._run_report = None
        self._fail_count = 0
        self._damage_taken = 0
        previous = self._state
        self._state = TutorialState.INIT

        report = self._open_run(policy, serialized_policy, reason)
        report.marker_copy("START", reason).persist(self._report_store)
        if previous != TutorialState.INIT:
            self._notify_state_listeners()
        return report

    def _open_run(self, policy: Optional[TutorialPolicy], serialized: Optional[str], reason: str) -> RunReport:
        report = RunReport.create(
            policy,
            serialized,
            seed=self._rng.randrange(0, MAX_SEED),
            clock=self._scheduler.now,
            app_version=self._app_version,
        )
        report.add_event(
            TutorialEventType.RUN_START,
            {
                "appVersion": report.metadata.app_version,
                "policyVariant": report.metadata.variant,
                "tutorialVersion": report.metadata.tutorial_version,
                "reason": reason,
            },
        )
        self._run_report = report
        self._analytics.track_run_started(report.metadata.variant, reason)
        logger.info("Tutorial run opened (variant %s): %s", report.metadata.variant, reason)
        return report

    def _ensure_run_report(self, reason: str) -> None:
        if self._run_report is not None:
            return
        logger.warning("No run report yet; creating one from the current policy (%s)", reason)
        policy = None
        serialized = None
        if self._policy_store is not None:
            policy = self._policy_store.get_current()
            serialized = self._policy_store.get_current_serialized()
        self._open_run(policy, serialized, reason)

    # ------------------------------------------------------------------
    # Hint timer
    # ------------------------------------------------------------------

    def _schedule_hint_timer(self) -> None:
        self._cancel_hint_timer()
        delay = self.hint_delay_seconds()
        self._hint_timer = self._scheduler.schedule_after(delay, self._on_hint_timer)
        logger.debug("Hint timer scheduled in %.2f seconds", delay)

    def _cancel_hint_timer(self) -> None:
        if self._hint_timer is not None:
            self._hint_timer.cancel()
            self._hint_timer = None

    def _on_hint_timer(self) -> None:
        self._hint_timer = None
        if self._state == TutorialState.WAITING_FOR_ACTION:
            self.show_hint()

    def _on_policy_changed(self, policy: TutorialPolicy) -> None:
        if self._state != TutorialState.WAITING_FOR_ACTION:
            return
        logger.info(
            "Policy changed while waiting; hint timer reset to %.2f seconds",
            policy.hint_delay_seconds,
        )
        self._schedule_hint_timer()

    def _notify_state_listeners(self) -> None:
        for listener in list(self._state_listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener %r failed", listener)


__all__ = ["TutorialController", "TutorialState"]
