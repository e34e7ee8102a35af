"""
Error taxonomy for the tutoring engine.

Every error is scoped to the operation that raised it; history, vault and
profile state from before the operation stay intact.
"""


class PolicyPathError(Exception):
    """Base class for all engine errors."""


class TransportError(PolicyPathError):
    """The mentor or the persistence layer could not be reached. Safe to retry."""


class MalformedResponseError(PolicyPathError):
    """The mentor returned a payload that could not be turned into a usable result."""


class EmptyVaultError(PolicyPathError):
    """A quiz was requested while the learner has no mastered topics."""


class QuizStateError(PolicyPathError):
    """A quiz action was attempted from a state that does not allow it."""


class SessionBusyError(PolicyPathError):
    """A turn is already in flight for this conversation."""


class NoSessionError(PolicyPathError):
    """No identity session is active, so no core operation is permitted."""


class EmptyQueryError(PolicyPathError, ValueError):
    """The learner submitted a query that is empty after trimming."""


class DuplicateEntryError(PolicyPathError):
    """The store rejected a vault insert that violates the (owner, title) constraint."""

    def __init__(self, owner_id: str, title: str):
        super().__init__(f"Vault already holds '{title}' for {owner_id}")
        self.owner_id = owner_id
        self.title = title
