"""Combat outcome signals consumed by the tutorial."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List

logger = logging.getLogger(__name__)


class CombatEvent(Enum):
    PLAYER_HIT = "playerHit"
    PLAYER_DAMAGED = "playerDamaged"
    ENEMY_DEFEATED = "enemyDefeated"
    PLAYER_DEFEATED = "playerDefeated"

    @classmethod
    def parse(cls, value: "CombatEvent | str") -> "CombatEvent":
        """Accept an enum member, its wire name or its member name."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        raise ValueError(f"Unknown combat event: {value!r}")


CombatListener = Callable[[CombatEvent], None]


class CombatEventSource:
    """Fan-out hub for combat signals.

    Delivery is synchronous: ``emit`` returns after every listener ran, so
    listeners never see two signals interleaved.
    """

    def __init__(self) -> None:
        self._listeners: List[CombatListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: CombatListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: CombatListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, kind: CombatEvent) -> None:
        if not self._listeners:
            logger.debug("Combat event %s has no listeners", kind.value)
            return
        for listener in list(self._listeners):
            listener(kind)


class MockCombatEventSource(CombatEventSource):
    """Manual triggers for driving the tutorial without a fight."""

    def trigger_player_hit(self) -> None:
        self.emit(CombatEvent.PLAYER_HIT)

    def trigger_player_damaged(self) -> None:
        self.emit(CombatEvent.PLAYER_DAMAGED)

    def trigger_enemy_defeated(self) -> None:
        self.emit(CombatEvent.ENEMY_DEFEATED)

    def trigger_player_defeated(self) -> None:
        self.emit(CombatEvent.PLAYER_DEFEATED)


__all__ = ["CombatEvent", "CombatEventSource", "MockCombatEventSource"]
