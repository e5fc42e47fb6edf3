"""Tutorial package exposing the controller, policy store and run reports."""

from .controller import TutorialController, TutorialState
from .errors import PolicyParseError, TutorialError
from .policy import PolicyStore, TutorialPolicy, parse_policy
from .report import RunReport, TutorialEventType
from .timers import HintScheduler

__all__ = [
    "HintScheduler",
    "PolicyParseError",
    "PolicyStore",
    "RunReport",
    "TutorialController",
    "TutorialError",
    "TutorialEventType",
    "TutorialPolicy",
    "TutorialState",
    "parse_policy",
]
