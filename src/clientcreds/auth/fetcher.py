"""Token endpoint calls for the client credentials grant (:rfc:`6749` section 4.4).

:class:`TokenFetcher` posts the form-encoded credentials to the configured
``client_credentials_url`` and caches the resulting token under the host
of the *protected* request.

The token request is built by the same
:class:`~clientcreds.client.sync_client.SyncClient` as the protected request,
so transport settings (TLS, proxies, timeouts) and non-auth plugins apply
to it too. It is built with ``authenticate=False``: no auth plugin runs on
it, none of their options are set on it, and nothing of the protected
request's body, query, or headers is carried over.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from clientcreds.auth.token_cache import CachedToken, TokenCache, cache_key
from clientcreds.client.retry import RetryPolicy
from clientcreds.exceptions import ConnectionError_, TokenFetchError
from clientcreds.models import ClientCredentialsParams, TokenResponse

if TYPE_CHECKING:
    from clientcreds.client.request import PipelineRequest
    from clientcreds.client.sync_client import SyncClient

logger = logging.getLogger(__name__)


class TokenFetcher:
    """Fetches access tokens and stores them in a :class:`TokenCache`.

    Args:
        cache: Where fetched tokens are written.
    """

    def __init__(self, cache: TokenCache) -> None:
        self._cache = cache

    def fetch(
        self,
        request: PipelineRequest,
        params: ClientCredentialsParams,
        original_retry: RetryPolicy,
    ) -> CachedToken:
        """Request a new token for *request* and cache it.

        Args:
            request: The protected-resource request that needs a token. Its
                ``client_credentials_url`` option names the token endpoint.
            params: Form fields for the token request.
            original_retry: Retry policy applied to the token request.

        Returns:
            The fetched token.

        Raises:
            TokenFetchError: If the endpoint is unreachable or does not
                return a usable token.
        """
        client = request.client
        if client is None:
            raise TokenFetchError(f"{request!r} is not bound to a client")

        options = {
            name: value
            for name, value in request.options.items()
            if name not in client.auth_options
        }
        options["retry"] = original_retry

        logger.debug("Fetching token for %s", request.url.host)
        token = request_token(
            client, request.fetch_option("client_credentials_url"), params, **options
        )
        self._cache.put(cache_key(request.url), token)
        return token


def request_token(
    client: SyncClient,
    token_url: str,
    params: ClientCredentialsParams,
    **options: Any,
) -> CachedToken:
    """POST *params* to *token_url* through *client* and parse the answer.

    The request is built with ``authenticate=False``. Nothing is cached.

    Args:
        client: An open client whose transport and non-auth plugins to use.
        token_url: The token endpoint.
        params: Form fields for the token request.
        **options: Pipeline options for the token request (``retry``,
            ``timeout``, ...). ``http_errors`` is always ``"return"``.

    Raises:
        TokenFetchError: If the endpoint is unreachable or does not return a
            usable token.
    """
    options["http_errors"] = "return"
    token_request = client.build_request(
        "POST",
        token_url,
        data=params.form_fields(),
        headers={"Accept": "application/json"},
        authenticate=False,
        **options,
    )
    try:
        response = client.send(token_request)
    except ConnectionError_ as exc:
        raise TokenFetchError(f"Token request to {token_url} failed: {exc}") from exc
    return parse_token_response(response)


def parse_token_response(response: httpx.Response) -> CachedToken:
    """Extract ``(access_token, token_type)`` from a token endpoint response.

    Raises:
        TokenFetchError: On a non-2xx status, a non-JSON body, or missing or
            non-string ``access_token`` / ``token_type`` fields.
    """
    if not response.is_success:
        raise TokenFetchError(
            f"Token request failed with status {response.status_code}",
            response=response,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise TokenFetchError(
            "Token response is not valid JSON", response=response
        ) from exc

    try:
        parsed = TokenResponse.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) or "body" for err in exc.errors()})
        raise TokenFetchError(
            f"Token response missing or invalid field(s): {', '.join(fields)}",
            response=response,
        ) from exc
    return CachedToken(parsed.access_token, parsed.token_type)
