"""Scene controller dedicated to the combat tutorial."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from analytics import TutorialAnalytics
from combat.arena import CombatArena
from config import get_policy_preset
from server.report_store import FileReportStore
from tutorial.controller import TutorialController, TutorialState
from tutorial.policy import PolicyStore
from tutorial.timers import HintScheduler
from ui.tutorial_hud import TutorialHud

logger = logging.getLogger(__name__)

PolicyInput = Union[str, bytes, Mapping[str, Any]]


@dataclass
class SceneState:
    """Serializable snapshot consumed by the UI layer."""

    state: str
    fail_count: int
    damage_taken: int
    variant: str
    hint_delay_seconds: float
    arrow_visible: bool
    banner: str
    info_text: str
    player_hp: int
    enemy_hp: int
    is_cleared: bool
    report_path: Optional[str]


class TutorialScene:
    """High-level façade that wires the controller, the fight and the HUD."""

    def __init__(
        self,
        *,
        store: Optional[PolicyStore] = None,
        scheduler: Optional[HintScheduler] = None,
        arena: Optional[CombatArena] = None,
        report_store=None,
        analytics: Optional[TutorialAnalytics] = None,
        controller: Optional[TutorialController] = None,
    ) -> None:
        self.store = store or PolicyStore()
        self.scheduler = scheduler or HintScheduler()
        self.arena = arena or CombatArena(self.scheduler)
        self.controller = controller or TutorialController(
            self.arena,
            self.store,
            scheduler=self.scheduler,
            report_store=report_store if report_store is not None else FileReportStore(),
            analytics=analytics,
        )
        self.analytics: TutorialAnalytics = self.controller.analytics
        self.hud = TutorialHud(self.controller, self.store)

    def start(self) -> SceneState:
        self.controller.initialize()
        self.controller.start()
        self.arena.start()
        return self.state()

    def apply_policy(self, policy: PolicyInput) -> SceneState:
        """Apply a named preset or raw policy and restart the run under it."""
        if not self.controller.initialized:
            self.controller.initialize()
        source: PolicyInput = policy
        if isinstance(policy, str):
            preset = get_policy_preset(policy)
            if preset is not None:
                source = preset
            else:
                logger.debug("No preset named %r; parsing it as a policy document", policy[:40])

        self.store.apply_from_source(source)
        self.controller.start_new_run_with_policy(
            self.store.get_current(),
            self.store.get_current_serialized(),
            "Policy button clicked",
        )
        self.arena.reset()
        self.controller.start()
        return self.state()

    def tick(self, delta: float) -> SceneState:
        self.controller.on_tick(delta)
        return self.state()

    def attack(self, damage: int = 1) -> SceneState:
        self.arena.player_attack(damage)
        return self.state()

    def state(self) -> SceneState:
        policy = self.store.get_current()
        report = self.controller.run_report
        return SceneState(
            state=self.controller.current_state.value,
            fail_count=self.controller.fail_count,
            damage_taken=self.controller.damage_taken,
            variant=policy.variant,
            hint_delay_seconds=policy.hint_delay_seconds,
            arrow_visible=self.hud.arrow_visible,
            banner=self.hud.banner,
            info_text=self.hud.info_text,
            player_hp=self.arena.player.hp,
            enemy_hp=self.arena.enemy.hp,
            is_cleared=self.controller.current_state == TutorialState.CLEAR,
            report_path=report.persisted_to if report else None,
        )

    def close(self) -> None:
        self.arena.stop()
        self.hud.close()
        self.controller.shutdown()


__all__ = ["TutorialScene", "SceneState"]
