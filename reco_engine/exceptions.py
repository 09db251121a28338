"""Custom exception hierarchy for reco-engine.

"Not found" outcomes (no token, no billing record, no matching rule,
unparseable date) are modelled as ``None`` results and never raise.
The classes below are reserved for infrastructure failures.
"""


class RecoEngineError(Exception):
    """Base exception for all reco-engine errors."""


class EntityNotFoundError(RecoEngineError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a reference between stored entities is violated."""


class InvalidEntityStateError(RecoEngineError):
    """Raised when an entity is in an invalid state for the operation."""


class ConfigurationError(RecoEngineError):
    """Raised when configuration is invalid or missing."""


class RuleTableError(ConfigurationError):
    """Raised when a rule table is malformed."""


class PersistenceError(RecoEngineError):
    """Raised when a workflow state write fails and was rolled back."""

    def __init__(self, message: str, transaction_id: str | None = None) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


class SinkError(RecoEngineError):
    """Raised when a sink operation fails."""
