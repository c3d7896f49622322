"""HTTP client module for clientcreds.

Provides the blocking request pipeline plugins run in: a
:class:`SyncClient` wrapping :class:`httpx.Client`, the
:class:`PipelineRequest` it threads through plugin hooks, and the retry
policies in :mod:`clientcreds.client.retry`.

Example::

    from clientcreds.client import SyncClient

    with SyncClient("https://api.example.com", plugins=[plugin]) as client:
        resp = client.get("/users")
"""

from clientcreds.client.request import PipelineRequest
from clientcreds.client.sync_client import SyncClient

__all__ = ["PipelineRequest", "SyncClient"]
