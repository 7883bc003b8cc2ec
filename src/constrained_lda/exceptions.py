"""Exception classes for constrained LDA."""


class CLDAError(RuntimeError):
    """Base exception for constrained LDA errors."""
    pass


class NotInitializedError(CLDAError):
    """Error when the sampler is not initialized but the operation requires it."""
    pass


class CorpusFormatError(CLDAError, ValueError):
    """Error raised for malformed corpus, constraint or model records."""
    pass
