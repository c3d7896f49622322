"""Abstract base class for clientcreds plugins.

Every plugin must subclass :class:`Plugin` and implement the :attr:`name`
property. The lifecycle hooks (``on_attach``, ``on_pre_request``,
``on_post_response``, ``on_error``) are optional -- default implementations
are no-ops so plugins only override what they need.

Plugins are handed to :class:`~clientcreds.client.sync_client.SyncClient`
and attached to every request it builds.

Example:
    Minimal plugin implementation::

        class RequestIdPlugin(Plugin):
            @property
            def name(self) -> str:
                return "request-id"

            def on_pre_request(self, request):
                request.put_header("X-Request-Id", str(uuid.uuid4()))
                return request
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from clientcreds.client.request import PipelineRequest


class Plugin(ABC):
    """Base class for all clientcreds plugins.

    Class attributes:
        options: Option names the plugin registers on each request it is
            attached to. Values can then be given as client defaults or
            per-request keyword arguments.
        provides_auth: ``True`` for plugins that authenticate requests.
            Such plugins are left out of requests built with
            ``authenticate=False``, which is how a plugin can call a token
            endpoint through the same client without re-entering itself.

    The plugin lifecycle per logical request is:

    1. :meth:`on_attach` -- once, when the request is built.
    2. :meth:`on_pre_request` -- before every send attempt.
    3. :meth:`on_post_response` or :meth:`on_error` -- after every attempt.

    See Also:
        :class:`~clientcreds.plugins.hooks.HookRunner` for how hooks are
        chained across multiple plugins.
    """

    options: tuple[str, ...] = ()
    provides_auth: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique plugin name, also used as its private-state key."""
        ...

    def on_attach(self, request: PipelineRequest) -> None:
        """Called once when *request* is built, after options are merged.

        Override to validate options, initialise private state, or wrap the
        request's ``retry`` option.
        """

    def on_pre_request(self, request: PipelineRequest) -> PipelineRequest:
        """Called before each send attempt.

        Returns:
            The request to pass to the next plugin.
        """
        return request

    def on_post_response(
        self, request: PipelineRequest, response: httpx.Response
    ) -> tuple[PipelineRequest, httpx.Response]:
        """Called after each response is received, whatever its status.

        Returns:
            The ``(request, response)`` pair to pass to the next plugin.
        """
        return request, response

    def on_error(self, request: PipelineRequest, error: Exception) -> None:
        """Called when a send attempt fails with a transport error.

        Exceptions raised here are logged by the
        :class:`~clientcreds.plugins.hooks.HookRunner` and never replace the
        original failure.
        """
