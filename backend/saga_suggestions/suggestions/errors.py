"""Error taxonomy for the suggestion engine."""


class SuggestionError(Exception):
    """Base class for suggestion engine errors."""


class SuggestionValidationError(SuggestionError, ValueError):
    """Raised when a suggestion, feature, or stored row fails validation."""


class SuggestionStateError(SuggestionError):
    """Raised when a lifecycle transition is not allowed from the current status."""


class SuggestionNotFoundError(SuggestionError, LookupError):
    """Raised when a suggestion ID does not exist."""


class EvidenceProviderError(SuggestionError):
    """Raised when the evidence provider cannot evaluate an entity pair.

    `retryable` is False when asking again will not help, such as a missing entity.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class SuggestionPersistenceError(SuggestionError):
    """Raised when a suggestion or its features cannot be stored."""


class PendingSuggestionConflictError(SuggestionStateError):
    """Raised when another writer already stored a pending suggestion for the same pair."""
