"""Combat collaborators: signal sources and the tutorial fight."""

from .arena import CombatArena, Combatant
from .events import CombatEvent, CombatEventSource, MockCombatEventSource

__all__ = ["CombatArena", "Combatant", "CombatEvent", "CombatEventSource", "MockCombatEventSource"]
