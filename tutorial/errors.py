"""Exceptions raised inside the tutorial core.

None of these are meant to reach a player: each one is caught at the seam
where it can be recovered (default policy, skipped write, ignored call).
"""

from __future__ import annotations


class TutorialError(Exception):
    """Base class for tutorial errors."""


class PolicyParseError(TutorialError, ValueError):
    """The policy document could not be decoded into a policy."""


class MissingCollaboratorError(TutorialError):
    """A required collaborator (combat source, policy store) was not provided."""


class PersistenceError(TutorialError):
    """A report store failed to write a run report."""


class DuplicateInitializationError(TutorialError):
    """``initialize()`` was called on an already initialized controller."""


__all__ = [
    "TutorialError",
    "PolicyParseError",
    "MissingCollaboratorError",
    "PersistenceError",
    "DuplicateInitializationError",
]
