"""Custom exceptions for the application."""


class VectorIndexError(Exception):
    """Raised when vector index operations fail."""

    pass


class EmbeddingError(Exception):
    """Raised when embedding generation fails."""

    pass


class LLMError(Exception):
    """Raised when text completion fails."""

    pass


class CacheError(Exception):
    """Raised when cache operations fail."""

    pass


class DatabaseError(Exception):
    """Raised when database operations fail."""

    pass


class InvalidInputError(ValueError):
    """Raised when caller input is rejected before any external call."""

    pass


class DocumentNotFoundError(LookupError):
    """Raised when a document to index does not exist or is deleted."""

    pass
