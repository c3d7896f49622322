"""The mutable request object threaded through the plugin pipeline.

A :class:`PipelineRequest` is created by
:meth:`~clientcreds.client.sync_client.SyncClient.build_request` for every
logical request. It carries:

- the HTTP parts (method, URL, headers, query params, body),
- **options** -- named settings validated against the set of registered
  option names (built-ins plus those declared by attached plugins),
- **private** state -- per-request storage plugins use for their own
  bookkeeping, discarded with the request,
- the tuple of attached plugins and the retry counter.

Retries re-send the *same* ``PipelineRequest``, so private state survives
across attempts of one logical request but is never shared between two
``build_request`` calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

import httpx

from clientcreds.exceptions import InvalidUsageError

if TYPE_CHECKING:
    from clientcreds.client.sync_client import SyncClient
    from clientcreds.plugins.base import Plugin


BUILTIN_OPTIONS = frozenset({"retry", "max_retries", "retry_delay", "http_errors", "timeout"})
"""Option names every request accepts regardless of attached plugins."""


class PipelineRequest:
    """A request under construction or in flight.

    Args:
        method: HTTP method; stored upper-cased.
        url: Absolute request URL.
        headers: Request headers.
        params: Query parameters merged into the URL when sent.
        json: JSON-serialisable body.
        data: Form-encoded body.
        content: Raw body.
        plugins: Plugins attached to this request, in hook order.
        client: The client that built the request. Plugins use it to issue
            requests of their own (see
            :meth:`~clientcreds.client.sync_client.SyncClient.build_request`).
    """

    def __init__(
        self,
        method: str,
        url: Union[httpx.URL, str],
        *,
        headers: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        content: Optional[Union[str, bytes]] = None,
        plugins: Iterable["Plugin"] = (),
        client: Optional["SyncClient"] = None,
    ) -> None:
        self.method = method.upper()
        self.url = httpx.URL(url)
        self.headers = httpx.Headers(headers)
        self.params: dict[str, Any] = dict(params or {})
        self.json = json
        self.data = data
        self.content = content
        self.plugins: tuple[Plugin, ...] = tuple(plugins)
        self.client = client
        self.options: dict[str, Any] = {}
        self.private: dict[str, Any] = {}
        self.retry_count = 0
        self._registered: set[str] = set(BUILTIN_OPTIONS)

    def __repr__(self) -> str:
        return f"<PipelineRequest [{self.method} {self.url}]>"

    # ------------------------------------------------------------------ #
    # Options
    # ------------------------------------------------------------------ #

    def register_options(self, *names: str) -> PipelineRequest:
        """Allow *names* to be used with :meth:`merge_options`."""
        self._registered.update(names)
        return self

    @property
    def registered_options(self) -> frozenset[str]:
        return frozenset(self._registered)

    def merge_options(self, **options: Any) -> PipelineRequest:
        """Set option values, replacing existing ones.

        Raises:
            InvalidUsageError: If any name has not been registered.
        """
        unknown = sorted(set(options) - self._registered)
        if unknown:
            raise InvalidUsageError(
                f"Unknown option(s): {', '.join(unknown)}. "
                f"Registered: {', '.join(sorted(self._registered))}"
            )
        self.options.update(options)
        return self

    def get_option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def fetch_option(self, name: str) -> Any:
        """Return option *name*, raising if it has not been set.

        Raises:
            InvalidUsageError: If the option is absent.
        """
        try:
            return self.options[name]
        except KeyError:
            raise InvalidUsageError(f"Option '{name}' is not set") from None

    def delete_option(self, name: str) -> PipelineRequest:
        self.options.pop(name, None)
        return self

    # ------------------------------------------------------------------ #
    # Private state
    # ------------------------------------------------------------------ #

    def put_private(self, key: str, value: Any) -> PipelineRequest:
        self.private[key] = value
        return self

    def get_private(self, key: str, default: Any = None) -> Any:
        return self.private.get(key, default)

    # ------------------------------------------------------------------ #
    # HTTP parts
    # ------------------------------------------------------------------ #

    def put_header(self, name: str, value: str) -> PipelineRequest:
        """Set header *name* to *value*, replacing every existing value."""
        self.headers[name] = value
        return self

    def to_httpx(self, http: httpx.Client) -> httpx.Request:
        """Build the :class:`httpx.Request` to put on the wire.

        *http* contributes its default headers, cookies, and timeout; the
        ``timeout`` option overrides the latter.
        """
        kwargs: dict[str, Any] = {
            "headers": self.headers,
            "params": self.params or None,
        }
        if self.data is not None:
            kwargs["data"] = self.data
        elif self.json is not None:
            kwargs["json"] = self.json
        elif self.content is not None:
            kwargs["content"] = self.content
        timeout = self.get_option("timeout")
        if timeout is not None:
            kwargs["timeout"] = timeout
        return http.build_request(self.method, self.url, **kwargs)
