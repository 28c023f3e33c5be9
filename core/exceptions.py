"""
Exception Definitions - Custom exceptions for Persona Responder
===============================================================

This module defines the custom exceptions used throughout the application.
Most of them describe local, recoverable degradations: the resolver logs
them and carries on with fewer tiers.
"""


class ResponderError(Exception):
    """
    Base exception for all Persona Responder errors.

    All custom exceptions in this application inherit from this base class,
    allowing for easy catching of all application-specific errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(ResponderError):
    """
    Configuration-related errors.

    Raised when there are issues with:
    - Invalid configuration values
    - Configuration parsing errors
    - Unknown embedding providers
    """
    pass


class RulesetLoadError(ResponderError):
    """
    Ruleset source errors.

    Raised when a ruleset file is missing, unreadable or cannot be
    parsed. The resolver catches it and continues with an empty ruleset.
    """
    pass


class EmbeddingError(ResponderError):
    """
    Embedding provider errors.

    Raised when there are issues with:
    - Model import or loading failures
    - Connection failures to a remote embedding service
    - Invalid or empty vectors

    The semantic tier is skipped for the call that hit it.
    """
    pass


class EmbeddingCacheError(ResponderError):
    """
    Keyword embedding cache corruption.

    Raised when cached vectors cannot be compared with a query vector,
    for example after the embedding model changed dimension. Unlike the
    other errors this one propagates out of the resolver.
    """
    pass
