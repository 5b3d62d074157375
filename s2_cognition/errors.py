"""Exception hierarchy for the S2 diagnostic.

Trial timeouts and missed responses are scored outcomes and never raise.
Everything here is either a persistence failure that the orchestrator
surfaces to the UI, or a guarded transition that signals a programming
error.
"""

from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for diagnostic errors."""


class PersistenceError(DiagnosticError):
    """The result store could not be read or written."""


class ResultFetchError(PersistenceError):
    """Reading the latest result for a (user, sport) pair failed."""


class ResultSaveError(PersistenceError):
    """Inserting a completed result failed; nothing was recorded."""


class InvalidTransitionError(DiagnosticError):
    """A phase transition was requested from a phase that does not allow it."""
