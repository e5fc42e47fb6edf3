"""Minimal one-on-one fight that feeds the tutorial with combat signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config import get_settings
from tutorial.timers import HintScheduler, TimerHandle

from .events import CombatEvent, CombatEventSource

logger = logging.getLogger(__name__)


@dataclass
class Combatant:
    """HP counter clamped at zero."""

    name: str
    max_hp: int
    hp: int = -1

    def __post_init__(self) -> None:
        if self.max_hp <= 0:
            raise ValueError("max_hp must be positive")
        if self.hp < 0:
            self.hp = self.max_hp

    def take_damage(self, amount: int) -> bool:
        """Apply damage; returns True when this hit defeated the combatant."""
        if self.is_defeated():
            return False
        self.hp = max(0, self.hp - max(0, amount))
        return self.is_defeated()

    def is_defeated(self) -> bool:
        return self.hp <= 0

    def reset(self) -> None:
        self.hp = self.max_hp


class CombatArena(CombatEventSource):
    """Player versus a single enemy that strikes on a fixed interval.

    The enemy's strikes run on the shared scheduler, so the fight advances
    with the same ticks as the tutorial's hint timer.
    """

    def __init__(
        self,
        scheduler: HintScheduler,
        *,
        player_max_hp: Optional[int] = None,
        enemy_max_hp: Optional[int] = None,
        enemy_damage: Optional[int] = None,
        damage_interval: Optional[float] = None,
    ) -> None:
        super().__init__()
        settings = get_settings().get("combat", {})
        self._scheduler = scheduler
        self.player = Combatant("player", int(player_max_hp or settings.get("playerMaxHp", 3)))
        self.enemy = Combatant("enemy", int(enemy_max_hp or settings.get("enemyMaxHp", 3)))
        self.enemy_damage = int(enemy_damage or settings.get("enemyDamage", 1))
        self.damage_interval = float(damage_interval or settings.get("damageIntervalSeconds", 1.0))
        self._strike: Optional[TimerHandle] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self.player.is_defeated() or self.enemy.is_defeated()

    def start(self) -> None:
        if self._running or self.finished:
            return
        self._running = True
        self._schedule_strike()

    def stop(self) -> None:
        self._running = False
        if self._strike is not None:
            self._strike.cancel()
            self._strike = None

    def reset(self) -> None:
        """Restore both sides to full HP and restart the enemy strikes."""
        self.stop()
        self.player.reset()
        self.enemy.reset()
        self.start()

    def player_attack(self, damage: int = 1) -> None:
        if self.player.is_defeated():
            return
        self.emit(CombatEvent.PLAYER_HIT)
        if self.enemy.is_defeated():
            return
        if self.enemy.take_damage(damage):
            logger.info("Enemy defeated")
            self.stop()
            self.emit(CombatEvent.ENEMY_DEFEATED)

    def _schedule_strike(self) -> None:
        self._strike = self._scheduler.schedule_after(self.damage_interval, self._enemy_strike)

    def _enemy_strike(self) -> None:
        self._strike = None
        if not self._running or self.finished:
            return
        defeated = self.player.take_damage(self.enemy_damage)
        self.emit(CombatEvent.PLAYER_DAMAGED)
        if defeated:
            logger.info("Player defeated")
            self.stop()
            self.emit(CombatEvent.PLAYER_DEFEATED)
            return
        self._schedule_strike()


__all__ = ["CombatArena", "Combatant"]
