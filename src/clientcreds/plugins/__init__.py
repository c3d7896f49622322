"""Plugin system for clientcreds -- lifecycle hooks around every request.

A :class:`~clientcreds.client.sync_client.SyncClient` attaches its plugins
to each request it builds, and the :class:`HookRunner` orchestrates attach,
pre-request, post-response, and error hooks across them in order.

Key classes:

* :class:`Plugin` -- Abstract base class that all plugins must extend.
* :class:`HookRunner` -- Executes hooks across plugins in order.

The built-in :class:`~clientcreds.plugins.client_credentials.ClientCredentialsPlugin`
lives in its own sub-package.
"""

from clientcreds.plugins.base import Plugin
from clientcreds.plugins.hooks import HookRunner

__all__ = ["Plugin", "HookRunner"]
