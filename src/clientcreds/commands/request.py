"""``clientcreds request`` -- send one authenticated request.

Runs the request through :class:`~clientcreds.plugins.client_credentials.ClientCredentialsPlugin`
exactly as a library caller would: token fetch on a cache miss, one refresh
on 401, no token if the audience does not match the URL.

Example::

    clientcreds request GET https://api.example.com/orders \\
        --token-url https://auth.example.com/oauth/token \\
        --client-id my-client --client-secret env:API_SECRET \\
        --audience https://api.example.com
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from clientcreds.auth.token_cache import TokenCache
from clientcreds.client import SyncClient
from clientcreds.config import parse_params, resolve_settings
from clientcreds.exceptions import ClientCredsError
from clientcreds.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)
from clientcreds.output import error, print_response, warning
from clientcreds.plugins.client_credentials import ClientCredentialsPlugin


def request_command(
    method: str = typer.Argument(help="HTTP method, e.g. GET or POST."),
    url: str = typer.Argument(help="Absolute URL of the protected resource."),
    token_url: Optional[str] = typer.Option(
        None, "--token-url", "-u", help="Token endpoint [env: CLIENTCREDS_TOKEN_URL]."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Client ID, or env:VAR / file:/path [env: CLIENTCREDS_CLIENT_ID]."
    ),
    client_secret: Optional[str] = typer.Option(
        None,
        "--client-secret",
        help="Client secret source: env:VAR, file:/path, or prompt [env: CLIENTCREDS_CLIENT_SECRET].",
    ),
    audience: Optional[str] = typer.Option(
        None, "--audience", "-a", help="Only authenticate URLs matching this origin [env: CLIENTCREDS_AUDIENCE]."
    ),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Extra token request field as KEY=VALUE (repeatable)."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Request header as NAME=VALUE (repeatable)."
    ),
    body: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body; sent as JSON when it parses as JSON."
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds."),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", help="Retry budget [env: CLIENTCREDS_MAX_RETRIES]."
    ),
) -> None:
    """Send METHOD URL with a client-credentials bearer token attached."""
    try:
        settings = resolve_settings(
            token_url=token_url,
            client_id=client_id,
            client_secret=client_secret,
            audience=audience,
            extra_params=parse_params(param),
            timeout=timeout,
            max_retries=max_retries,
        )
        if not settings.token_url:
            warning("No token endpoint configured; sending without a token.")

        plugin = ClientCredentialsPlugin(cache=TokenCache())
        with SyncClient(
            plugins=[plugin],
            config=settings.request,
            client_credentials_url=settings.token_url,
            client_credentials_params=settings.client_credentials_params(),
        ) as client:
            response = client.request(
                method,
                url,
                headers=parse_params(header),
                **_body_kwargs(body),
            )
    except ClientCredsError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_response(response)
    if response.is_error:
        raise typer.Exit(code=_exit_code_for(response.status_code))


def _body_kwargs(body: Optional[str]) -> dict[str, Any]:
    if body is None:
        return {}
    try:
        return {"json": json.loads(body)}
    except json.JSONDecodeError:
        return {"content": body}


def _exit_code_for(status: int) -> int:
    if status in (401, 403):
        return EXIT_AUTH_FAILURE
    if status == 404:
        return EXIT_NOT_FOUND
    if status >= 500:
        return EXIT_SERVER_ERROR
    return EXIT_GENERIC_FAILURE
