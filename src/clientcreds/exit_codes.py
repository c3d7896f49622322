"""Numeric process exit codes used by the ``clientcreds`` CLI.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~clientcreds.exceptions.ClientCredsError` subclass.
Shell wrappers can inspect the exit code to tell a rejected credential
apart from an unreachable token endpoint without parsing stderr.

Example::

    $ clientcreds token --token-url https://auth.example.com/oauth/token
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint refused the credentials
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or unknown options."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or no token could be obtained."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
