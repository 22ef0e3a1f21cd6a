class SniperError(Exception):
    """Base class for all errors raised by skin_sniper."""


class ProviderError(SniperError):
    """A price provider request failed."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class RateLimited(ProviderError):
    """Provider answered with HTTP 429."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        retry_after: float | None = None,
        cooldown: float = 0.0,
    ):
        super().__init__(message, provider)
        self.retry_after = retry_after
        self.cooldown = cooldown


class AuthError(ProviderError):
    """Credentials are missing or were rejected."""


class Transient(ProviderError):
    """Server-side failure worth retrying."""


class Unavailable(SniperError):
    """A remote service or the database could not be reached."""


class DispatchFailure(SniperError):
    """A notification could not be delivered."""


def is_retryable(error: Exception) -> bool:
    """Return True for failures that may succeed on another attempt."""
    return isinstance(error, (RateLimited, Transient, Unavailable))
