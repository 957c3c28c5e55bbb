"""
Custom Exceptions for the Transaction Labeler

Every user-visible failure carries a stable machine-readable ``code`` and a
human-readable ``message``. Raw provider/store error text is logged where it
is caught and never copied into these messages.
"""


class LabelerException(Exception):
    """Base exception for all labeler errors"""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


# Validation Exceptions
class ValidationError(LabelerException):
    """Malformed or out-of-range parameters, rejected before any external call"""

    pass


# Embedding provider Exceptions
class ProviderError(LabelerException):
    """Embedding provider failure"""

    pass


class ProviderUnavailableError(ProviderError):
    """Embedding provider unreachable or returned an error"""

    pass


class RateLimitedError(ProviderError):
    """Embedding provider rate limit exceeded"""

    pass


class EmbeddingUnavailableError(ProviderError):
    """Could not obtain an embedding for the requested text"""

    pass


# Store Exceptions
class StoreError(LabelerException):
    """Store unreachable or query failure"""

    pass


class RetrievalUnavailableError(StoreError):
    """Nearest-neighbor scan could not be executed"""

    pass


class RecordNotFoundError(StoreError):
    """Requested record not found in database"""

    pass
