"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oauthview.exceptions.OAuthViewError` subclass.
Shell wrappers can inspect the exit code to determine the failure class
without parsing stderr.

Example::

    $ oauthview replay --redirect-uri https://app.example/cb \\
        "https://app.example/cb?error=access_denied"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the provider refused authorization
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authorization failed or was refused by the provider."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_HOST_UNAVAILABLE = 8
"""The host browser view could not be launched."""

EXIT_MALFORMED_REDIRECT = 9
"""A redirect URL matched but its parameters could not be extracted."""
