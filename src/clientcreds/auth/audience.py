"""Audience gating for the client credentials plugin.

When ``client_credentials_params`` carries an ``audience``, a token is only
fetched and attached for requests whose scheme, host, and port match that
audience. Everything else is sent untouched, which keeps tokens scoped to
one API from leaking to unrelated hosts.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Union

import httpx

from clientcreds.exceptions import ConfigError

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


class Origin(NamedTuple):
    """The ``(scheme, host, port)`` triple compared by :func:`audience_matches`."""

    scheme: str
    host: str
    port: Optional[int]


def origin_of(url: Union[httpx.URL, str]) -> Origin:
    """Return the origin of *url*, resolving default ports from the scheme."""
    url = httpx.URL(url)
    port = url.port if url.port is not None else _DEFAULT_PORTS.get(url.scheme)
    return Origin(url.scheme, url.host, port)


def parse_audience(audience: str) -> Origin:
    """Parse a configured audience URI into its origin.

    Raises:
        ConfigError: If *audience* is not an absolute URI with a scheme and
            a host.
    """
    try:
        url = httpx.URL(audience)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigError(f"Invalid audience URI {audience!r}: {exc}") from exc
    if not url.scheme or not url.host:
        raise ConfigError(
            f"Invalid audience URI {audience!r}: scheme and host are required"
        )
    return origin_of(url)


def audience_matches(audience: Optional[str], url: Union[httpx.URL, str]) -> bool:
    """Return ``True`` if the plugin should act on a request to *url*.

    No audience means every request matches. Otherwise the scheme, host,
    and port of *audience* and *url* must all be equal.

    Raises:
        ConfigError: If *audience* cannot be parsed.
    """
    if audience is None:
        return True
    return parse_audience(audience) == origin_of(url)
