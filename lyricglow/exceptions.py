"""
Exception classes for LyricGlow.

Exception Hierarchy:
    LyricGlowError (base)
        ConfigError - Configuration file or value issues
        FetchError - Outbound HTTP request failures
            FetchTimeoutError - Request exceeded its timeout budget
        CacheError - Unusable cache root or unknown content type
        AuthError - Spotify token acquisition failures

Provider adapters never let these escape into the display layer: they log
and degrade to "no data". The exceptions exist so that the layers below the
adapters can tell failure modes apart.
"""


class LyricGlowError(Exception):
    """
    Base exception for all LyricGlow errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g. url, key).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(LyricGlowError):
    """
    Raised when a configuration file cannot be used.

    Example:
        raise ConfigError(
            "Invalid YAML in config file",
            details={'file_path': '/path/to/config.yaml'}
        )
    """
    pass


class FetchError(LyricGlowError):
    """
    Raised when an outbound HTTP request fails.

    Covers DNS failures, refused connections, TLS failures that could not be
    recovered by the trust-bypass retry, and other transport errors. Adapters
    treat it as a transient network failure and fall back to cached data.

    Attributes:
        url: The URL that was being fetched.
        original_error: The underlying requests exception, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        url: str | None = None,
        original_error: Exception | None = None
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.original_error = original_error
        if url:
            self.details.setdefault('url', url)


class FetchTimeoutError(FetchError):
    """
    Raised when a request exceeds its timeout budget.

    Kept distinct from FetchError so callers and logs can tell a slow
    upstream from a broken one.

    Attributes:
        timeout: The timeout budget in seconds that was exceeded.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        url: str | None = None,
        original_error: Exception | None = None,
        timeout: float | None = None
    ) -> None:
        super().__init__(message, details, url=url, original_error=original_error)
        self.timeout = timeout
        if timeout is not None:
            self.details.setdefault('timeout', timeout)


class CacheError(LyricGlowError):
    """
    Raised for programming errors against the cache, such as an unknown
    content type. Ordinary I/O failures are logged and reported through
    return values instead.
    """
    pass


class AuthError(LyricGlowError):
    """
    Raised when the Spotify authorization flow cannot complete.

    Only the interactive login path raises this; get_access_token() reports
    a missing token as None so metadata lookups can skip Spotify quietly.
    """
    pass
