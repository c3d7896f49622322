"""``clientcreds token`` -- fetch an access token and print it.

Useful for checking credentials against a token endpoint, or for handing a
token to another tool::

    clientcreds --plain token --client-secret env:API_SECRET | cut -f2
"""

from __future__ import annotations

from typing import Optional

import typer

from clientcreds.auth.fetcher import request_token
from clientcreds.client import SyncClient
from clientcreds.config import parse_params, resolve_settings
from clientcreds.exceptions import ClientCredsError
from clientcreds.exit_codes import EXIT_INVALID_USAGE
from clientcreds.output import debug, error, print_token


def token_command(
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
        None, "--audience", "-a", help="Token audience [env: CLIENTCREDS_AUDIENCE]."
    ),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Extra token request field as KEY=VALUE (repeatable)."
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds."),
) -> None:
    """Fetch a client-credentials access token.

    Prints ``access_token`` and ``token_type``. Nothing is cached between
    invocations.
    """
    try:
        settings = resolve_settings(
            token_url=token_url,
            client_id=client_id,
            client_secret=client_secret,
            audience=audience,
            extra_params=parse_params(param),
            timeout=timeout,
        )
        if not settings.token_url:
            error("No token endpoint configured. Pass --token-url or set CLIENTCREDS_TOKEN_URL.")
            raise typer.Exit(code=EXIT_INVALID_USAGE)

        debug(f"Requesting token from {settings.token_url}")
        with SyncClient(config=settings.request) as client:
            token = request_token(
                client, settings.token_url, settings.client_credentials_params()
            )
    except ClientCredsError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_token(token)
