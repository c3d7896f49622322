"""clientcreds -- OAuth 2.0 client credentials for httpx-based clients.

This package attaches client-credentials access tokens to outgoing HTTP
requests. Tokens are cached per target host and refreshed once when the API
rejects them with a 401.

Typical usage::

    from clientcreds import ClientCredentialsPlugin, SyncClient

    with SyncClient(
        plugins=[ClientCredentialsPlugin()],
        client_credentials_url="https://auth.example.com/oauth/token",
        client_credentials_params={"client_id": "...", "client_secret": "..."},
    ) as client:
        client.get("https://api.example.com/orders")

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Settings resolution from flags and environment variables.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes for the CLI.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from clientcreds.auth.token_cache import CachedToken, TokenCache, default_cache  # noqa: E402
from clientcreds.client import PipelineRequest, SyncClient  # noqa: E402
from clientcreds.exceptions import ClientCredsError, ConfigError, TokenFetchError  # noqa: E402
from clientcreds.models import ClientCredentialsParams  # noqa: E402
from clientcreds.plugins.client_credentials import ClientCredentialsPlugin  # noqa: E402

__all__ = [
    "CachedToken",
    "ClientCredentialsParams",
    "ClientCredentialsPlugin",
    "ClientCredsError",
    "ConfigError",
    "PipelineRequest",
    "SyncClient",
    "TokenCache",
    "TokenFetchError",
    "default_cache",
    "__version__",
]
