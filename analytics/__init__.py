"""Analytics helpers for the tutorial."""

from .metrics import MetricsEvent, MetricsExporter, VariantStats
from .tutorial import CombatTutorialLog, TutorialAnalytics

__all__ = ["CombatTutorialLog", "MetricsEvent", "MetricsExporter", "TutorialAnalytics", "VariantStats"]
