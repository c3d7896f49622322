"""OAuth2 Client Credentials plugin for the request pipeline.

This module provides :class:`ClientCredentialsPlugin`, which attaches a
client-credentials access token (:rfc:`6749` section 4.4) to every request
built by a :class:`~clientcreds.client.sync_client.SyncClient`.

Per request the plugin:

1. does nothing unless ``client_credentials_url`` is set;
2. does nothing if ``client_credentials_params`` has an ``audience``
   whose scheme, host, and port differ from the request's;
3. reads the token cached for the request host, or fetches one (a failed
   fetch here only means the request goes out without a token);
4. sets ``Authorization: <token_type> <access_token>``.

On a 401 response the token is fetched again, bypassing the cache, and the
request is re-sent once with the new token. A second 401 is returned to the
caller as-is. If that refresh fetch fails, the :class:`TokenFetchError`
is raised from :meth:`SyncClient.send` instead of returning the 401.

See Also:
    :mod:`clientcreds.auth.fetcher` for the token request itself.
    :mod:`clientcreds.auth.token_cache` for the shared cache.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional, Union

import httpx
from pydantic import ValidationError

from clientcreds.auth.audience import audience_matches, parse_audience
from clientcreds.auth.fetcher import TokenFetcher
from clientcreds.auth.session import AuthSession
from clientcreds.auth.token_cache import CachedToken, TokenCache, cache_key, default_cache
from clientcreds.client import retry as retry_policies
from clientcreds.client.request import PipelineRequest
from clientcreds.exceptions import ConfigError, TokenFetchError
from clientcreds.models import ClientCredentialsParams
from clientcreds.plugins.base import Plugin

logger = logging.getLogger(__name__)

CacheTarget = Union[PipelineRequest, httpx.URL, str]


class ClientCredentialsPlugin(Plugin):
    """Authenticate requests with a cached client-credentials token.

    Args:
        cache: Token cache to read and write. Defaults to the process-wide
            :data:`~clientcreds.auth.token_cache.default_cache`; pass a
            fresh :class:`TokenCache` to isolate clients (or tests).

    Example::

        plugin = ClientCredentialsPlugin()
        with SyncClient(
            plugins=[plugin],
            client_credentials_url="https://auth.example.com/oauth/token",
            client_credentials_params={
                "audience": "https://api.example.com",
                "client_id": os.environ["EXAMPLE_CLIENT_ID"],
                "client_secret": os.environ["EXAMPLE_CLIENT_SECRET"],
            },
        ) as client:
            client.get("https://api.example.com/path")
    """

    options = ("client_credentials_url", "client_credentials_params")
    provides_auth = True

    def __init__(self, cache: Optional[TokenCache] = None) -> None:
        self._cache = cache if cache is not None else default_cache
        self._fetcher = TokenFetcher(self._cache)

    @property
    def name(self) -> str:
        return "client_credentials"

    @property
    def cache(self) -> TokenCache:
        return self._cache

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    def on_attach(self, request: PipelineRequest) -> None:
        """Validate the configuration and start a fresh :class:`AuthSession`.

        The request's ``retry`` option is replaced by :meth:`retry`; the
        previous value is kept in the session.

        Raises:
            ConfigError: If ``client_credentials_params`` is malformed or
                its ``audience`` is not a valid URI.
        """
        if request.get_option("client_credentials_params") is not None:
            params = self._params(request)
            if params.audience is not None:
                parse_audience(params.audience)

        request.put_private(self.name, AuthSession(original_retry=request.get_option("retry")))
        request.merge_options(retry=self.retry)

    def on_pre_request(self, request: PipelineRequest) -> PipelineRequest:
        if not request.get_option("client_credentials_url"):
            return request

        params = self._params(request)
        if not audience_matches(params.audience, request.url):
            logger.debug("Audience %s does not match %s, skipping", params.audience, request.url)
            return request

        session = self._session(request)
        session.token_params = params

        token = self._cache.get(cache_key(request.url))
        if token is None:
            try:
                token = self._fetcher.fetch(request, params, session.original_retry)
            except TokenFetchError as exc:
                logger.warning(
                    "Sending %s %s without a token: %s", request.method, request.url, exc
                )
                return request
        else:
            logger.debug("Using cached token for %s", request.url.host)

        return request.put_header("Authorization", token.authorization)

    def on_post_response(
        self, request: PipelineRequest, response: httpx.Response
    ) -> tuple[PipelineRequest, httpx.Response]:
        if response.status_code != 401:
            return request, response

        session = self._session(request)
        if session.token_params is None:
            return request, response

        if session.refreshed:
            logger.debug("Refreshed token rejected by %s, giving up", request.url.host)
            session.decline_retry()
            return request, response

        logger.debug("Token rejected by %s, refreshing", request.url.host)
        token = self._fetcher.fetch(request, session.token_params, session.original_retry)
        request.put_header("Authorization", token.authorization)
        session.mark_refreshed()
        return request, response

    def retry(
        self, request: PipelineRequest, outcome: Union[httpx.Response, Exception]
    ) -> retry_policies.RetryDecision:
        """Retry policy installed on every request the plugin is attached to.

        A 401 is retried immediately when a refresh just succeeded, and
        never otherwise. Every other outcome is judged by the request's
        original policy.
        """
        session = self._session(request)
        if isinstance(outcome, httpx.Response) and outcome.status_code == 401:
            if session.retry_requested:
                return 0.0
            return False
        return retry_policies.evaluate(session.original_retry, request, outcome)

    # ------------------------------------------------------------------ #
    # Cache operations
    # ------------------------------------------------------------------ #

    def read_cache(self, target: CacheTarget) -> Optional[CachedToken]:
        """Return the token cached for *target*'s host, if any."""
        return self._cache.get(_key_for(target))

    def write_cache(self, target: CacheTarget, token: tuple[str, str]) -> None:
        """Seed the cache for *target*'s host with ``(access_token, token_type)``."""
        self._cache.put(_key_for(target), CachedToken(*token))

    def bust_cache(self, target: CacheTarget) -> None:
        """Forget the token cached for *target*'s host."""
        self._cache.erase(_key_for(target))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _session(self, request: PipelineRequest) -> AuthSession:
        session = request.get_private(self.name)
        if session is None:
            session = AuthSession(original_retry=request.get_option("retry"))
            request.put_private(self.name, session)
        return session

    def _params(self, request: PipelineRequest) -> ClientCredentialsParams:
        raw = request.get_option("client_credentials_params")
        if raw is None:
            return ClientCredentialsParams()
        if isinstance(raw, ClientCredentialsParams):
            return raw
        if not isinstance(raw, Mapping):
            raise ConfigError(
                "client_credentials_params must be a mapping or ClientCredentialsParams, "
                f"got {type(raw).__name__}"
            )
        try:
            return ClientCredentialsParams.model_validate(dict(raw))
        except ValidationError as exc:
            # Field names only; input values may be secrets.
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise ConfigError(
                f"Invalid client_credentials_params field(s): {', '.join(fields)}"
            ) from exc


def _key_for(target: CacheTarget) -> str:
    if isinstance(target, PipelineRequest):
        return cache_key(target.url)
    return cache_key(target)
