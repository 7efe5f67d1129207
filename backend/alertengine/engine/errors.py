"""
PURPOSE: Error types raised by the alert engine.

ParseError carries the offending raw body so the HTTP layer can echo it back
and nothing partial is ever persisted. Duplicate suppression is not an error;
see DuplicateSuppressed in engine.records.
"""


class EngineError(Exception):
    """Base class for alert engine errors."""


class ParseError(EngineError):
    """
    A webhook payload could not be normalized into an alert.

    Attributes:
        message: Human-readable reason.
        raw_body: The payload exactly as received.
    """

    def __init__(self, message: str, raw_body: object = None) -> None:
        super().__init__(message)
        self.message = message
        self.raw_body = raw_body


class StrategyConfigError(EngineError):
    """A strategy definition is invalid (zero threshold, bad operator, malformed groups)."""


class StoreTimeoutError(EngineError):
    """An external store or notifier call exceeded its timeout."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} timed out after {timeout:.1f}s")
        self.operation = operation
        self.timeout = timeout
