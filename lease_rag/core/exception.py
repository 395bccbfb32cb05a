"""
Exception taxonomy for the retrieval engine.
Callers translate these into user-facing messages; the engine never does.
"""


class CustomException(Exception):
    """Base class for every error raised by lease_rag."""

    def __init__(self, error):
        if isinstance(error, BaseException):
            message = f"{type(error).__name__}: {error}"
        else:
            message = str(error)
        super().__init__(message)
        self.message = message


class ValidationError(CustomException):
    """Malformed input: pages, parameters, or persisted chunk records."""


class EmbeddingProviderError(CustomException):
    """
    The embedding provider failed.

    transient=True marks errors worth retrying (timeouts, throttling, 5xx).
    Once the Embedder gives up, it re-raises with transient=False.
    """

    def __init__(self, error, transient: bool = False):
        super().__init__(error)
        self.transient = transient


class NotReadyError(CustomException):
    """A query was attempted on an index that still has chunks without embeddings."""


class EmptyIndexError(CustomException):
    """An operation needing at least one chunk ran against an empty index."""
