"""Runner that executes plugin hooks in registration order.

The hook chain follows a pipeline pattern: each plugin receives the output
of the previous plugin, so header injection, logging, and response
inspection compose without knowing about each other.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from clientcreds.plugins.base import Plugin

if TYPE_CHECKING:
    import httpx

    from clientcreds.client.request import PipelineRequest

logger = logging.getLogger(__name__)


class HookRunner:
    """Executes plugin hooks across a fixed list of plugins.

    The runner holds an immutable snapshot of the plugin list taken at
    creation time.
    """

    def __init__(self, plugins: Iterable[Plugin]) -> None:
        self._plugins = tuple(plugins)

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        return self._plugins

    def run_attach(self, request: PipelineRequest) -> None:
        for plugin in self._plugins:
            plugin.on_attach(request)

    def run_pre_request(self, request: PipelineRequest) -> PipelineRequest:
        """Execute ``on_pre_request`` hooks across all plugins.

        Each plugin receives the request returned by the one before it.
        """
        for plugin in self._plugins:
            request = plugin.on_pre_request(request)
        return request

    def run_post_response(
        self, request: PipelineRequest, response: httpx.Response
    ) -> tuple[PipelineRequest, httpx.Response]:
        """Execute ``on_post_response`` hooks across all plugins.

        Exceptions propagate to the caller of
        :meth:`~clientcreds.client.sync_client.SyncClient.send`.
        """
        for plugin in self._plugins:
            request, response = plugin.on_post_response(request, response)
        return request, response

    def run_error(self, request: PipelineRequest, error: Exception) -> None:
        """Execute ``on_error`` hooks across all plugins.

        A failing error hook is logged and skipped so that it cannot mask
        the original failure.
        """
        for plugin in self._plugins:
            try:
                plugin.on_error(request, error)
            except Exception:
                logger.warning(
                    "Error hook of plugin '%s' failed", plugin.name, exc_info=True
                )
