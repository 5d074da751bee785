"""Knowledge store exceptions.

Storage errors (sqlite3.Error) are not wrapped and reach callers unchanged.
"""


class KnowledgeError(Exception):
    """Base knowledge store error."""


class FactNotFoundError(KnowledgeError):
    """Addressed fact id does not exist."""


class FactValidationError(KnowledgeError, ValueError):
    """Malformed input, rejected before any store mutation."""


class PendingNotFoundError(KnowledgeError):
    """No pending confirmation under the key, or it expired."""


class StaleFactError(KnowledgeError):
    """The fact was invalidated by someone else before this change landed."""
