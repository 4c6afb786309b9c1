"""Exception hierarchy for oauthview.

All exceptions inherit from :class:`OAuthViewError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oauthview.exit_codes`.
The top-level error handler in :func:`oauthview.app.main` catches
``OAuthViewError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Once a session is loading, none of these escape from its callbacks: the session
controller turns them into an error outcome delivered through the
:class:`~oauthview.delivery.DeliveryGate`.

Subclass hierarchy::

    OAuthViewError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- AuthError                  (exit 3)
    |   +-- ProviderError          (exit 3)
    +-- ConnectionError_           (exit 6)
    +-- ActivityUnavailableError   (exit 8)
    +-- MalformedRedirectURLError  (exit 9)
    +-- ConfigError                (exit 1)
"""

from oauthview.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HOST_UNAVAILABLE,
    EXIT_INVALID_USAGE,
    EXIT_MALFORMED_REDIRECT,
)


class OAuthViewError(Exception):
    """Base exception for all oauthview errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oauthview.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OAuthViewError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(OAuthViewError):
    """Raised when authorization fails, is dismissed, or tokens are unusable."""

    exit_code = EXIT_AUTH_FAILURE


class ProviderError(AuthError):
    """Raised when the provider redirected back with an ``error`` parameter.

    The provider-supplied value is kept verbatim on :attr:`error`.
    """

    def __init__(self, error: str):
        super().__init__(f"Provider returned error: {error}")
        self.error = error


class ConnectionError_(OAuthViewError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ActivityUnavailableError(OAuthViewError):
    """Raised when the host could not create or launch the browser view."""

    exit_code = EXIT_HOST_UNAVAILABLE


class MalformedRedirectURLError(OAuthViewError):
    """Raised when a redirect URL carries a marker but no extractable value."""

    exit_code = EXIT_MALFORMED_REDIRECT

    def __init__(self, url: str, param: str):
        super().__init__(f"Redirect URL has '{param}=' but no readable '{param}' value: {url}")
        self.url = url
        self.param = param


class ConfigError(OAuthViewError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
