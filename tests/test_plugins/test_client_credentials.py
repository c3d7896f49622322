"""Tests for ClientCredentialsPlugin against the fake OAuth server."""

from __future__ import annotations

import logging
import threading

import httpx
import pytest

from clientcreds.auth.session import AuthSession, RefreshState
from clientcreds.auth.token_cache import CachedToken, default_cache
from clientcreds.client import SyncClient
from clientcreds.exceptions import ConfigError, TokenFetchError
from clientcreds.models import ClientCredentialsParams
from clientcreds.plugins.base import Plugin
from clientcreds.plugins.client_credentials import ClientCredentialsPlugin


RESOURCE_URL = "https://api.example.com/orders"
OTHER_RESOURCE_URL = "https://api2.example.com/orders"


class RecordingPlugin(Plugin):
    """Non-auth plugin that records every URL it sees before sending."""

    def __init__(self) -> None:
        self.seen: list[str] = []

    @property
    def name(self) -> str:
        return "recorder"

    def on_pre_request(self, request):
        self.seen.append(str(request.url))
        return request


# ---------------------------------------------------------------------------
# Plugin disabled
# ---------------------------------------------------------------------------


class TestDisabled:
    def test_no_url_sends_no_header_and_fetches_nothing(self, make_client, fake_server) -> None:
        with make_client(client_credentials_url=None) as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 200
        assert fake_server.events == [("resource", "api.example.com", None)]

    def test_url_removed_per_request(self, make_client, fake_server) -> None:
        with make_client() as client:
            client.get(RESOURCE_URL, client_credentials_url=None)

        assert fake_server.events == [("resource", "api.example.com", None)]

    def test_audience_mismatch_ignores_cached_token(
        self, make_client, fake_server, token_cache
    ) -> None:
        token_cache.put("api.example.com", CachedToken("cached", "Bearer"))
        params = {"client_id": "id", "client_secret": "x", "audience": "https://other.example.com"}

        with make_client(client_credentials_params=params) as client:
            client.get(RESOURCE_URL)

        assert fake_server.events == [("resource", "api.example.com", None)]

    def test_audience_port_mismatch(self, make_client, fake_server) -> None:
        params = {"audience": "https://api.example.com:8443"}
        with make_client(client_credentials_params=params) as client:
            client.get(RESOURCE_URL)

        assert fake_server.token_events == []

    def test_unauthorized_passes_through_when_plugin_did_not_act(
        self, make_client, fake_server
    ) -> None:
        fake_server.always_unauthorized = True
        with make_client(client_credentials_url=None) as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 401
        assert fake_server.events == [("resource", "api.example.com", None)]


# ---------------------------------------------------------------------------
# Token acquisition and caching
# ---------------------------------------------------------------------------


class TestTokenAcquisition:
    def test_token_response_sets_authorization_header(self, make_client, fake_server) -> None:
        fake_server.token_payload = {"access_token": "abc", "token_type": "Bearer"}
        with make_client() as client:
            client.get(RESOURCE_URL)

        assert fake_server.resource_events == [("resource", "api.example.com", "Bearer abc")]

    def test_cache_hit_fetches_once(self, make_client, fake_server, token_cache) -> None:
        with make_client() as client:
            client.get(RESOURCE_URL)
            client.get(RESOURCE_URL)

        assert fake_server.events == [
            ("token", {"grant_type": "client_credentials", "client_id": "my-client", "client_secret": "s3cret"}),
            ("resource", "api.example.com", "Bearer token-1"),
            ("resource", "api.example.com", "Bearer token-1"),
        ]
        assert token_cache.get("api.example.com") == CachedToken("token-1", "Bearer")

    def test_different_hosts_fetch_independently(
        self, make_client, fake_server, token_cache
    ) -> None:
        with make_client() as client:
            client.get(RESOURCE_URL)
            client.get(OTHER_RESOURCE_URL)

        assert len(fake_server.token_events) == 2
        assert token_cache.get("api.example.com").access_token == "token-1"
        assert token_cache.get("api2.example.com").access_token == "token-2"

    def test_existing_authorization_header_replaced(self, make_client, fake_server) -> None:
        with make_client() as client:
            client.get(RESOURCE_URL, headers={"Authorization": "Basic Zm9vOmJhcg=="})

        assert fake_server.resource_events == [("resource", "api.example.com", "Bearer token-1")]

    def test_matching_audience_is_sent_as_form_field(self, make_client, fake_server) -> None:
        params = {"client_id": "id", "client_secret": "x", "audience": "https://api.example.com"}
        with make_client(client_credentials_params=params) as client:
            client.get(RESOURCE_URL)

        form = fake_server.token_events[0][1]
        assert form == {
            "grant_type": "client_credentials",
            "client_id": "id",
            "client_secret": "x",
            "audience": "https://api.example.com",
        }

    def test_extra_params_and_grant_type_override(self, make_client, fake_server) -> None:
        params = {"client_id": "id", "grant_type": "urn:example:grant", "scope": "read:orders"}
        with make_client() as client:
            client.get(RESOURCE_URL, client_credentials_params=params)

        form = fake_server.token_events[0][1]
        assert form["grant_type"] == "urn:example:grant"
        assert form["scope"] == "read:orders"
        assert "client_secret" not in form

    def test_params_model_accepted(self, make_client, fake_server) -> None:
        params = ClientCredentialsParams(client_id="id", client_secret="x")
        with make_client(client_credentials_params=params) as client:
            client.get(RESOURCE_URL)

        assert fake_server.token_events[0][1]["client_id"] == "id"

    def test_token_request_carries_nothing_from_protected_request(
        self, make_client, fake_server
    ) -> None:
        with make_client() as client:
            client.post(
                RESOURCE_URL,
                params={"page": "2"},
                headers={"X-Trace": "abc"},
                json={"item": "widget"},
            )

        token_request = fake_server.requests[0]
        assert token_request.method == "POST"
        assert str(token_request.url) == fake_server.token_url
        assert "x-trace" not in token_request.headers
        assert "authorization" not in token_request.headers
        assert token_request.headers["accept"] == "application/json"
        assert b"widget" not in token_request.content

    def test_non_auth_plugins_run_on_token_request(
        self, fake_server, plugin
    ) -> None:
        recorder = RecordingPlugin()
        with SyncClient(
            plugins=[recorder, plugin],
            transport=fake_server.transport(),
            client_credentials_url=fake_server.token_url,
            client_credentials_params={"client_id": "id"},
        ) as client:
            client.get(RESOURCE_URL)

        assert recorder.seen == [RESOURCE_URL, fake_server.token_url]

    def test_fetch_failure_sends_without_token(self, make_client, fake_server, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="clientcreds"):
            with make_client(client_credentials_url=fake_server.bad_token_url) as client:
                response = client.get(RESOURCE_URL)

        assert response.status_code == 200
        assert [e[0] for e in fake_server.events] == ["token_failure", "resource"]
        assert fake_server.resource_events == [("resource", "api.example.com", None)]
        assert "without a token" in caplog.text

    def test_malformed_token_response_sends_without_token(
        self, make_client, fake_server, token_cache
    ) -> None:
        fake_server.token_payload = {"access_token": "abc"}
        with make_client() as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 200
        assert fake_server.resource_events == [("resource", "api.example.com", None)]
        assert len(token_cache) == 0

    def test_secrets_never_logged(self, make_client, fake_server, caplog) -> None:
        fake_server.always_unauthorized = True
        with caplog.at_level(logging.DEBUG, logger="clientcreds"):
            with make_client() as client:
                client.get(RESOURCE_URL)

        ours = "\n".join(
            r.getMessage() for r in caplog.records if r.name.startswith("clientcreds")
        )
        assert ours
        assert "s3cret" not in ours
        assert "token-1" not in ours


# ---------------------------------------------------------------------------
# Refresh on 401
# ---------------------------------------------------------------------------


class TestRefresh:
    def test_stale_token_refreshed_once(self, make_client, fake_server, plugin) -> None:
        plugin.write_cache(RESOURCE_URL, ("unauthorized", "Bearer"))
        with make_client() as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 200
        assert fake_server.events == [
            ("resource", "api.example.com", "Bearer unauthorized"),
            ("token", {"grant_type": "client_credentials", "client_id": "my-client", "client_secret": "s3cret"}),
            ("resource", "api.example.com", "Bearer token-1"),
        ]
        assert plugin.read_cache(RESOURCE_URL) == CachedToken("token-1", "Bearer")

    def test_seeded_token_always_rejected(self, make_client, fake_server, plugin) -> None:
        fake_server.always_unauthorized = True
        plugin.write_cache(RESOURCE_URL, ("unauthorized", "Bearer"))
        with make_client() as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 401
        assert [e[0] for e in fake_server.events] == ["resource", "token", "resource"]

    def test_refresh_at_most_once(self, make_client, fake_server) -> None:
        fake_server.always_unauthorized = True
        with make_client() as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 401
        assert fake_server.resource_events == [
            ("resource", "api.example.com", "Bearer token-1"),
            ("resource", "api.example.com", "Bearer token-2"),
        ]
        assert [e[0] for e in fake_server.events] == ["token", "resource", "token", "resource"]

    def test_each_request_gets_its_own_refresh(self, make_client, fake_server) -> None:
        fake_server.always_unauthorized = True
        with make_client() as client:
            client.get(RESOURCE_URL)
            client.get(RESOURCE_URL)

        assert len(fake_server.token_events) == 3
        assert len(fake_server.resource_events) == 4

    def test_refresh_retry_ignores_original_policy(
        self, make_client, fake_server, plugin
    ) -> None:
        plugin.write_cache(RESOURCE_URL, ("unauthorized", "Bearer"))
        with make_client() as client:
            response = client.post(RESOURCE_URL, retry=False)

        assert response.status_code == 200
        assert [e[0] for e in fake_server.events] == ["resource", "token", "resource"]

    def test_refresh_without_retry_budget(self, make_client, fake_server, plugin) -> None:
        plugin.write_cache(RESOURCE_URL, ("unauthorized", "Bearer"))
        with make_client(max_retries=0) as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 401
        assert [e[0] for e in fake_server.events] == ["resource", "token"]
        assert plugin.read_cache(RESOURCE_URL) == CachedToken("token-1", "Bearer")

    def test_refresh_fetch_failure_raises(self, make_client, fake_server, plugin) -> None:
        plugin.write_cache(RESOURCE_URL, ("unauthorized", "Bearer"))
        with make_client(client_credentials_url=fake_server.bad_token_url) as client:
            with pytest.raises(TokenFetchError) as exc_info:
                client.get(RESOURCE_URL)

        assert exc_info.value.response.status_code == 500
        assert [e[0] for e in fake_server.events] == ["resource", "token_failure"]


# ---------------------------------------------------------------------------
# Retry policy override
# ---------------------------------------------------------------------------


class TestRetryOverride:
    def test_transient_status_uses_original_policy(self, make_client, fake_server) -> None:
        fake_server.resource_statuses = [503]
        with make_client() as client:
            response = client.get(RESOURCE_URL)

        assert response.status_code == 200
        assert [e[0] for e in fake_server.events] == ["token", "resource", "resource"]

    def test_unsafe_method_not_retried_by_default(self, make_client, fake_server) -> None:
        fake_server.resource_statuses = [503]
        with make_client() as client:
            response = client.post(RESOURCE_URL)

        assert response.status_code == 503
        assert len(fake_server.resource_events) == 1

    def test_original_policy_disabled_per_request(self, make_client, fake_server) -> None:
        fake_server.resource_statuses = [503]
        with make_client() as client:
            response = client.get(RESOURCE_URL, retry=False)

        assert response.status_code == 503

    def test_callable_original_policy_consulted(
        self, make_client, fake_server, plugin
    ) -> None:
        seen = []

        def policy(request, outcome):
            seen.append(outcome.status_code)
            return outcome.status_code == 409

        plugin.write_cache(RESOURCE_URL, ("abc", "Bearer"))
        fake_server.resource_statuses = [409]
        with make_client() as client:
            response = client.put(RESOURCE_URL, retry=policy)

        assert response.status_code == 200
        assert seen == [409, 200]

    def test_retry_option_replaced_on_attach(self, make_client, plugin) -> None:
        with make_client(retry="transient") as client:
            request = client.build_request("GET", RESOURCE_URL)

        session = request.get_private("client_credentials")
        assert isinstance(session, AuthSession)
        assert session.original_retry == "transient"
        assert session.state is RefreshState.NOT_STARTED
        assert request.get_option("retry") == plugin.retry

    def test_non_response_outcome_defers_to_original_policy(self, make_client, plugin) -> None:
        with make_client(retry=False) as client:
            request = client.build_request("GET", RESOURCE_URL)

        assert plugin.retry(request, httpx.ConnectError("boom")) is False


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_invalid_audience_rejected_at_build(self, make_client) -> None:
        with make_client(client_credentials_params={"audience": "api.example.com"}) as client:
            with pytest.raises(ConfigError, match="audience"):
                client.build_request("GET", RESOURCE_URL)

    def test_params_must_be_mapping(self, make_client) -> None:
        with make_client() as client:
            with pytest.raises(ConfigError, match="mapping"):
                client.build_request("GET", RESOURCE_URL, client_credentials_params="nope")

    def test_invalid_params_do_not_echo_values(self, make_client) -> None:
        params = {"client_id": 123, "client_secret": ["super-secret"]}
        with make_client() as client:
            with pytest.raises(ConfigError) as exc_info:
                client.build_request("GET", RESOURCE_URL, client_credentials_params=params)

        message = str(exc_info.value)
        assert "client_id" in message
        assert "super-secret" not in message


# ---------------------------------------------------------------------------
# Cache operations
# ---------------------------------------------------------------------------


class TestCacheOperations:
    def test_write_then_read(self, plugin) -> None:
        plugin.write_cache("https://api.example.com/anything", ("abc", "Bearer"))
        assert plugin.read_cache(httpx.URL(RESOURCE_URL)) == CachedToken("abc", "Bearer")

    def test_seeded_token_is_used(self, make_client, fake_server, plugin) -> None:
        plugin.write_cache(RESOURCE_URL, ("abc", "MAC"))
        with make_client() as client:
            client.get(RESOURCE_URL)

        assert fake_server.events == [("resource", "api.example.com", "MAC abc")]

    def test_bust_cache_forces_fetch(self, make_client, fake_server, plugin) -> None:
        with make_client() as client:
            request = client.build_request("GET", RESOURCE_URL)
            client.send(request)
            plugin.bust_cache(request)
            assert plugin.read_cache(request) is None
            client.get(RESOURCE_URL)

        assert len(fake_server.token_events) == 2

    def test_default_cache_used_when_none_injected(self) -> None:
        assert ClientCredentialsPlugin().cache is default_cache


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    def test_threads_share_one_client(self, make_client, fake_server) -> None:
        results: list[int] = []
        with make_client() as client:

            def worker() -> None:
                results.append(client.get(RESOURCE_URL).status_code)

            threads = [threading.Thread(target=worker) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert results == [200] * 8
        assert 1 <= len(fake_server.token_events) <= 8
        for _, _, authorization in fake_server.resource_events:
            assert authorization.startswith("Bearer token-")
