"""Token handling for the client credentials flow.

- :class:`TokenCache` / :class:`CachedToken` -- the shared per-host token
  cache, with :data:`default_cache` as the process-wide instance.
- :func:`audience_matches` -- decides whether a request is in scope.
- :class:`TokenFetcher` -- calls the token endpoint.
- :class:`AuthSession` / :class:`RefreshState` -- per-request refresh state.
"""

from clientcreds.auth.audience import audience_matches, parse_audience
from clientcreds.auth.fetcher import TokenFetcher, parse_token_response, request_token
from clientcreds.auth.session import AuthSession, RefreshState
from clientcreds.auth.token_cache import CachedToken, TokenCache, cache_key, default_cache

__all__ = [
    "AuthSession",
    "CachedToken",
    "RefreshState",
    "TokenCache",
    "TokenFetcher",
    "audience_matches",
    "cache_key",
    "default_cache",
    "parse_audience",
    "parse_token_response",
    "request_token",
]
