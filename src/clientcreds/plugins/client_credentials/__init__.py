"""OAuth2 Client Credentials plugin.

Attaches a cached ``client_credentials`` access token to outgoing requests
and refreshes it once when the API answers 401.

See Also:
    :class:`~clientcreds.plugins.client_credentials.plugin.ClientCredentialsPlugin`
"""

from clientcreds.plugins.client_credentials.plugin import ClientCredentialsPlugin

__all__ = ["ClientCredentialsPlugin"]
