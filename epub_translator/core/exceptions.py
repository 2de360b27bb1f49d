"""
Exceptions raised by the translation pipeline.
"""
from typing import Optional


class TranslationError(Exception):
    """A segment could not be translated. The message is meant for end users."""


class TranslationTransportError(TranslationError):
    """
    The translation service could not be reached or answered with a non-success status.

    Attributes:
        status_code: HTTP status code, or None for connection-level failures
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyTranslationError(TranslationError):
    """The service finished a stream without producing any text."""


class TranslationCancelled(Exception):
    """
    Cancellation was requested while waiting.

    Raised by cancellable waits and always caught inside the pipeline, where
    it becomes an empty result. It never reaches callers of the pipeline.
    """
