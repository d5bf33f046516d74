"""Failure signals raised by the generation pipeline.

Every error carries a class level ``retriable`` flag. The background
processor is the only place that turns that flag into a decision (put the
identifier back on the queue or drop it).
"""


class GenerationError(Exception):
    """Base class for pipeline failures."""

    retriable: bool = False
    code: str = "GENERATION_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class RateLimitedError(GenerationError):
    """Cooldown window still open or the generation lock is contended."""

    retriable = True
    code = "RATE_LIMITED"

    def __init__(self, message: str | None = None, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after  # Seconds until the window closes


class ProviderError(GenerationError):
    """A generation backend failed to produce usable text."""

    retriable = True
    code = "PROVIDER_ERROR"

    def __init__(self, message: str | None = None, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ProviderTransientError(ProviderError):
    """Transport, timeout or server side failure of a backend."""

    code = "PROVIDER_TRANSIENT"


class ProviderEmptyError(ProviderError):
    """Backend answered with no text or text below the minimum length."""

    code = "PROVIDER_EMPTY"


class SourceContentTooShortError(GenerationError):
    """Source text is too short to be worth rewriting."""

    code = "CONTENT_TOO_SHORT"


class SourceNotFoundError(GenerationError):
    """The requested topic does not exist at the source."""

    code = "SOURCE_NOT_FOUND"


class InvalidIdentifierError(GenerationError):
    """The identifier cannot name a stored article."""

    code = "INVALID_IDENTIFIER"


class SourceUnavailableError(GenerationError):
    """The source could not be reached; the topic may still exist."""

    retriable = True
    code = "SOURCE_UNAVAILABLE"


class NoProvidersConfiguredError(RuntimeError):
    """No generation backend has usable credentials.

    Raised while wiring the application, never per call.
    """
