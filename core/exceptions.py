class CodeVibeError(Exception):
    """Base class for all exceptions in CodeVibe."""
    pass

class ConfigurationError(CodeVibeError):
    """Raised when there is a configuration-related error."""
    pass

class TransportError(CodeVibeError):
    """Raised when a remote call fails (network error or non-2xx status).

    ``status_code`` is ``None`` when no HTTP response was received.
    Only HTTP 429 is ever retried, and only inside :class:`core.transport.Transport`.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429

class InvalidResponseStructureError(CodeVibeError):
    """Raised when a successful response lacks ``candidates[0].content.parts[0].text``."""
    pass

class MalformedResponseError(CodeVibeError):
    """Raised when no candidate substring of a model response parses as JSON."""

    def __init__(self, message: str, preview: str = "", reason: str = ""):
        super().__init__(message)
        self.preview = preview
        self.reason = reason

class SchemaViolation(CodeVibeError):
    """Raised when parsed structured data lacks fields required by an agent contract."""

    def __init__(self, message: str, missing: list = None):
        super().__init__(message)
        self.missing = list(missing or [])

class WorkflowFailure(CodeVibeError):
    """Wraps any error raised inside an orchestrated workflow phase.

    The original exception is available both as ``cause`` and ``__cause__``.
    """

    def __init__(self, message: str, phase: str, iteration: int = 0, cause: Exception = None):
        super().__init__(message)
        self.phase = phase
        self.iteration = iteration
        self.cause = cause
