"""Custom exceptions for the contribution matching engine."""


class ContribMatchError(Exception):
    """Base exception for contribution matching operations."""
    pass


class InvalidArgumentError(ContribMatchError):
    """Exception raised for malformed search or match requests."""
    pass


class DimensionError(InvalidArgumentError):
    """Exception raised when an embedding does not have the expected length."""

    def __init__(self, actual: int, expected: int = 1536):
        self.actual = actual
        self.expected = expected
        super().__init__(
            f"Embedding must have exactly {expected} components, got {actual}"
        )


class CorruptEmbeddingError(ContribMatchError):
    """Exception raised when a stored embedding cannot be parsed."""
    pass


class NotFoundError(ContribMatchError):
    """Exception raised when a referenced entity does not exist."""
    pass


class QueryTimeoutError(ContribMatchError, TimeoutError):
    """Exception raised when a query exceeds its execution budget."""
    pass


class IndexUnavailableError(ContribMatchError):
    """Exception raised when a similarity index cannot serve reads."""
    pass


class SearchError(ContribMatchError):
    """Exception raised for unexpected failures during search operations."""
    pass
