"""Shared test fixtures for clientcreds.

Provides a fake OAuth server built on :class:`httpx.MockTransport`, a fresh
token cache per test, a client factory wired to both, and the resets that
keep global output and logging state from leaking between tests. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl

import httpx
import pytest
from typer.testing import CliRunner

from clientcreds.auth.token_cache import TokenCache
from clientcreds.client import SyncClient
from clientcreds.output import reset_output
from clientcreds.plugins.client_credentials import ClientCredentialsPlugin


AUTH_HOST = "auth.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Drop handlers the CLI installs on the ``clientcreds`` logger."""
    yield
    logger = logging.getLogger("clientcreds")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ``CLIENTCREDS_*`` variables inherited from the shell."""
    for name in list(os.environ):
        if name.startswith("CLIENTCREDS_"):
            monkeypatch.delenv(name)


# ---------------------------------------------------------------------------
# Fake OAuth server
# ---------------------------------------------------------------------------


class FakeServer:
    """Token endpoint and protected resource behind one MockTransport.

    Every request is recorded in :attr:`events` as a tuple:

    - ``("token", form_fields)`` for ``POST /oauth/token``; each call issues
      a new ``token-<n>`` bearer token.
    - ``("token_failure", form_fields)`` for ``POST /broken``, which answers
      500.
    - ``("resource", host, authorization)`` for anything else. Answers 401
      to ``Bearer unauthorized`` (or to everything when
      :attr:`always_unauthorized` is set), otherwise pops the next status
      from :attr:`resource_statuses`, defaulting to 200.
    """

    token_url = f"https://{AUTH_HOST}/oauth/token"
    bad_token_url = f"https://{AUTH_HOST}/broken"

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []
        self.requests: list[httpx.Request] = []
        self.always_unauthorized = False
        self.resource_statuses: list[int] = []
        self.token_payload: Optional[dict[str, Any]] = None
        self._issued = 0

    @property
    def token_events(self) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] in ("token", "token_failure")]

    @property
    def resource_events(self) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == "resource"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == AUTH_HOST:
            form = dict(parse_qsl(request.read().decode()))
            if request.url.path == "/broken":
                self.events.append(("token_failure", form))
                return httpx.Response(500, json={"error": "server_error"})
            self.events.append(("token", form))
            self._issued += 1
            payload = self.token_payload or {
                "access_token": f"token-{self._issued}",
                "token_type": "Bearer",
            }
            return httpx.Response(200, json=payload)

        authorization = request.headers.get("authorization")
        self.events.append(("resource", request.url.host, authorization))
        if self.always_unauthorized or authorization == "Bearer unauthorized":
            return httpx.Response(401, json={"error": "invalid_token"})
        status = self.resource_statuses.pop(0) if self.resource_statuses else 200
        return httpx.Response(status, json={"ok": status < 400})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


# ---------------------------------------------------------------------------
# Plugin and client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_cache() -> TokenCache:
    """A private cache so tests never touch ``default_cache``."""
    return TokenCache()


@pytest.fixture
def plugin(token_cache: TokenCache) -> ClientCredentialsPlugin:
    return ClientCredentialsPlugin(cache=token_cache)


@pytest.fixture
def make_client(
    fake_server: FakeServer, plugin: ClientCredentialsPlugin
) -> Callable[..., SyncClient]:
    """Return a factory for clients wired to the fake server.

    Keyword arguments override the default options, which point the plugin
    at the fake token endpoint with test credentials and disable retry delays.
    """

    def _make(**options: Any) -> SyncClient:
        defaults: dict[str, Any] = {
            "client_credentials_url": fake_server.token_url,
            "client_credentials_params": {"client_id": "my-client", "client_secret": "s3cret"},
            "retry_delay": 0,
        }
        defaults.update(options)
        return SyncClient(plugins=[plugin], transport=fake_server.transport(), **defaults)

    return _make


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
