"""Synchronous HTTP client with a plugin pipeline, retry, and error mapping.

This module provides :class:`SyncClient`, the blocking client every
clientcreds plugin runs inside. It wraps :class:`httpx.Client` and layers
on:

- **Options** -- named settings (``retry``, ``max_retries``,
  ``http_errors``, plugin-declared ones such as ``client_credentials_url``)
  given as client defaults and overridden per request.
- **Plugin hooks** -- attach, pre-request, post-response, and error hooks
  via :class:`~clientcreds.plugins.hooks.HookRunner`.
- **Retry with backoff** -- a pluggable retry policy evaluated after each
  attempt, with exponential delay (1 s, 2 s, 4 s, ...) by default.
- **Bare requests** -- ``build_request(..., authenticate=False)`` builds a
  request on the same transport without any auth plugin, for calls a
  plugin makes on its own behalf (e.g. fetching a token).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Optional, Union

import httpx

from clientcreds.client import retry as retry_policies
from clientcreds.client.request import BUILTIN_OPTIONS, PipelineRequest
from clientcreds.exceptions import (
    AuthError,
    ConnectionError_,
    HTTPStatusError,
    InvalidUsageError,
    NotFoundError,
    ServerError,
)
from clientcreds.models import RequestConfig
from clientcreds.plugins.base import Plugin
from clientcreds.plugins.hooks import HookRunner

logger = logging.getLogger(__name__)

_HTTP_ERROR_MODES = ("return", "raise")


class SyncClient:
    """Synchronous HTTP client running requests through a plugin pipeline.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        base_url: Prefix for relative request URLs.
        plugins: Plugins attached to every request, in hook order.
        config: Timeout, TLS verification, and default ``max_retries``.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`).
        headers: Default headers sent with every request.
        **options: Default option values for every request.

    Raises:
        InvalidUsageError: If an option name is not registered by the
            client or any of its plugins.

    Example::

        plugin = ClientCredentialsPlugin()
        with SyncClient(
            plugins=[plugin],
            client_credentials_url="https://auth.example.com/oauth/token",
            client_credentials_params={"client_id": "id", "client_secret": "secret"},
        ) as client:
            response = client.get("https://api.example.com/orders")
    """

    def __init__(
        self,
        base_url: Union[httpx.URL, str] = "",
        *,
        plugins: Iterable[Plugin] = (),
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[dict[str, str]] = None,
        **options: Any,
    ) -> None:
        self._config = config or RequestConfig()
        self._base_url = _enforce_trailing_slash(httpx.URL(base_url)) if base_url else None
        self._plugins = tuple(plugins)
        self._transport = transport
        self._headers = dict(headers or {})
        self._client: Optional[httpx.Client] = None

        self._auth_options = frozenset(
            name for plugin in self._plugins if plugin.provides_auth for name in plugin.options
        )
        registered = set(BUILTIN_OPTIONS)
        for plugin in self._plugins:
            registered.update(plugin.options)
        unknown = sorted(set(options) - registered)
        if unknown:
            raise InvalidUsageError(f"Unknown option(s): {', '.join(unknown)}")

        self._options: dict[str, Any] = {
            "retry": retry_policies.DEFAULT_POLICY,
            "max_retries": self._config.max_retries,
            "http_errors": "return",
        }
        self._options.update(options)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SyncClient:
        self._client = httpx.Client(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            headers=self._headers,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        return self._plugins

    @property
    def auth_options(self) -> frozenset[str]:
        """Option names owned by auth plugins; never set on bare requests."""
        return self._auth_options

    @property
    def default_options(self) -> dict[str, Any]:
        return dict(self._options)

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def build_request(
        self,
        method: str,
        url: Union[httpx.URL, str],
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        content: Optional[Union[str, bytes]] = None,
        authenticate: bool = True,
        **options: Any,
    ) -> PipelineRequest:
        """Build a request and attach the client's plugins to it.

        Client default options are merged first, then *options*. Each
        plugin's ``on_attach`` hook runs last, so configuration errors
        surface here rather than at send time.

        Args:
            method: HTTP method.
            url: Absolute URL, or a path relative to ``base_url``.
            params: Query parameters.
            headers: Extra request headers.
            json: JSON-serialisable body.
            data: Form-encoded body.
            content: Raw body.
            authenticate: When ``False`` the request gets no auth plugins
                and none of their options, only the transport settings and
                the remaining plugins.
            **options: Per-request option overrides.

        Returns:
            A fresh :class:`~clientcreds.client.request.PipelineRequest`.

        Raises:
            InvalidUsageError: On unknown option names or retry policies.
            ConfigError: If a plugin rejects its configuration.
        """
        if authenticate:
            plugins = self._plugins
            defaults = dict(self._options)
        else:
            plugins = tuple(p for p in self._plugins if not p.provides_auth)
            defaults = {k: v for k, v in self._options.items() if k not in self._auth_options}

        request = PipelineRequest(
            method,
            self._resolve_url(url),
            headers=headers,
            params=params,
            json=json,
            data=data,
            content=content,
            plugins=plugins,
            client=self,
        )
        for plugin in plugins:
            request.register_options(*plugin.options)
        request.merge_options(**defaults)
        request.merge_options(**options)

        retry_policies.validate_policy(request.get_option("retry"))
        if request.get_option("http_errors") not in _HTTP_ERROR_MODES:
            raise InvalidUsageError(
                f"http_errors must be one of {_HTTP_ERROR_MODES}, "
                f"got {request.get_option('http_errors')!r}"
            )

        HookRunner(plugins).run_attach(request)
        return request

    def send(self, request: PipelineRequest) -> httpx.Response:
        """Send *request* through the plugin pipeline, retrying per its policy.

        Each attempt runs the pre-request hooks, sends over the transport,
        then runs the post-response hooks (or the error hooks on a transport
        failure) before the ``retry`` option decides whether to go again.
        Retries stop once ``max_retries`` is reached.

        Returns:
            The final :class:`httpx.Response`.

        Raises:
            ConnectionError_: On a transport error that is not retried.
            AuthError: On 401 / 403 when ``http_errors="raise"``.
            NotFoundError: On 404 when ``http_errors="raise"``.
            ServerError: On 5xx when ``http_errors="raise"``.
            HTTPStatusError: On other 4xx when ``http_errors="raise"``.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        runner = HookRunner(request.plugins)
        while True:
            request = runner.run_pre_request(request)
            outcome: Union[httpx.Response, Exception]
            try:
                response = self._client.send(request.to_httpx(self._client))
            except httpx.TransportError as exc:
                runner.run_error(request, exc)
                outcome = exc
            else:
                request, outcome = runner.run_post_response(request, response)

            delay = self._retry_delay(request, outcome)
            if delay is None:
                break

            request.retry_count += 1
            logger.debug(
                "Retrying %s %s in %.1fs (attempt %d/%d): %s",
                request.method,
                request.url,
                delay,
                request.retry_count,
                request.get_option("max_retries"),
                _describe(outcome),
            )
            if delay > 0:
                time.sleep(delay)

        if isinstance(outcome, Exception):
            attempts = request.retry_count + 1
            raise ConnectionError_(
                f"Connection failed after {attempts} attempt(s): {outcome}"
            ) from outcome

        if request.get_option("http_errors") == "raise":
            self._map_response_error(outcome)
        return outcome

    def request(
        self,
        method: str,
        url: Union[httpx.URL, str],
        **kwargs: Any,
    ) -> httpx.Response:
        """Build and send a request. Keyword arguments go to :meth:`build_request`."""
        return self.send(self.build_request(method, url, **kwargs))

    def get(self, url: Union[httpx.URL, str], **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: Union[httpx.URL, str], **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: Union[httpx.URL, str], **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: Union[httpx.URL, str], **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: Union[httpx.URL, str], **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _resolve_url(self, url: Union[httpx.URL, str]) -> httpx.URL:
        """Join relative *url* onto ``base_url`` the way httpx does."""
        merge_url = httpx.URL(url)
        if merge_url.is_relative_url and self._base_url is not None:
            raw_path = self._base_url.raw_path + merge_url.raw_path.lstrip(b"/")
            return self._base_url.copy_with(raw_path=raw_path)
        return merge_url

    def _retry_delay(
        self,
        request: PipelineRequest,
        outcome: Union[httpx.Response, Exception],
    ) -> Optional[float]:
        """Return the delay before the next attempt, or ``None`` to stop."""
        decision = retry_policies.evaluate(request.get_option("retry"), request, outcome)
        delay = retry_policies.resolve_delay(
            decision, request.retry_count, request.get_option("retry_delay")
        )
        if delay is None:
            return None
        max_retries = request.get_option("max_retries", 0)
        if request.retry_count >= max_retries:
            logger.debug(
                "Not retrying %s %s: max_retries (%d) reached",
                request.method,
                request.url,
                max_retries,
            )
            return None
        return delay

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg, response=response)
        if status == 404:
            raise NotFoundError(full_msg)
        if status >= 500:
            raise ServerError(full_msg)
        raise HTTPStatusError(full_msg)


def _enforce_trailing_slash(url: httpx.URL) -> httpx.URL:
    if url.raw_path.endswith(b"/"):
        return url
    return url.copy_with(raw_path=url.raw_path + b"/")


def _describe(outcome: Union[httpx.Response, Exception]) -> str:
    if isinstance(outcome, httpx.Response):
        return f"HTTP {outcome.status_code}"
    return f"{type(outcome).__name__}: {outcome}"
