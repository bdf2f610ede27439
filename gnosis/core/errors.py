"""
Exception hierarchy for the Gnosis engine.

Missing history is never an error (documented defaults apply) and malformed
records are normalized at read time. What remains are collaborator outages,
which callers may retry, and illegal session transitions.
"""

from __future__ import annotations


class GnosisError(Exception):
    """Base class for all engine errors."""
    pass


class CollaboratorUnavailableError(GnosisError):
    """
    An external collaborator (content generator, persistence sink) failed.

    Recoverable: local state is kept and the caller may retry later.
    """

    def __init__(self, collaborator: str, message: str, cause: Exception | None = None):
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator}: {message}")


class ContentGenerationError(CollaboratorUnavailableError):
    """The content generator could not produce content."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__("content-generator", message, cause)


class PersistenceError(CollaboratorUnavailableError):
    """The persistence sink rejected or could not accept a write."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__("persistence-sink", message, cause)


class SessionStateError(GnosisError):
    """Raised on an illegal guided-session state transition."""

    def __init__(self, action: str, status: str):
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} a session that is {status}")
