"""Exception hierarchy for clientcreds.

All exceptions inherit from :class:`ClientCredsError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`clientcreds.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point in
:func:`clientcreds.app.main` catches ``ClientCredsError`` and exits with the
matching code.

Subclass hierarchy::

    ClientCredsError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    |   +-- TokenFetchError (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- HTTPStatusError     (exit 1)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from clientcreds.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)

if TYPE_CHECKING:
    import httpx


class ClientCredsError(Exception):
    """Base exception for all clientcreds errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`clientcreds.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ClientCredsError):
    """Raised for unknown request options or missing required ones."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(ClientCredsError):
    """Raised when the API rejects the request's credentials (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        response: Optional["httpx.Response"] = None,
    ):
        super().__init__(message, exit_code)
        self.response = response


class TokenFetchError(AuthError):
    """Raised when the token endpoint does not hand out a usable token.

    Covers transport failures, non-2xx statuses, non-JSON bodies, and JSON
    bodies missing a string ``access_token`` or ``token_type``.
    """


class NotFoundError(ClientCredsError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(ClientCredsError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(ClientCredsError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class HTTPStatusError(ClientCredsError):
    """Raised for 4xx responses without a more specific exception type."""


class ConfigError(ClientCredsError):
    """Raised for configuration problems (invalid audience URI, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
