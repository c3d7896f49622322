"""Settings resolution with precedence and credential sources.

This module turns CLI flags and environment variables into a
:class:`~clientcreds.models.ClientSettings`:

* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  ``CLIENTCREDS_*`` environment variables, and defaults.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts, so that a secret never has
  to appear on the command line.
* **Extra token parameters** -- :func:`parse_params` turns repeated
  ``KEY=VALUE`` flags into a dict.
"""

from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from clientcreds.exceptions import ConfigError
from clientcreds.models import ClientSettings, RequestConfig

ENV_PREFIX = "CLIENTCREDS_"

ENV_TOKEN_URL = f"{ENV_PREFIX}TOKEN_URL"
ENV_CLIENT_ID = f"{ENV_PREFIX}CLIENT_ID"
ENV_CLIENT_SECRET = f"{ENV_PREFIX}CLIENT_SECRET"
ENV_AUDIENCE = f"{ENV_PREFIX}AUDIENCE"
ENV_TIMEOUT = f"{ENV_PREFIX}TIMEOUT"
ENV_MAX_RETRIES = f"{ENV_PREFIX}MAX_RETRIES"
ENV_VERIFY_SSL = f"{ENV_PREFIX}VERIFY_SSL"

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)
        - anything else -- used literally

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        file_path = source[5:]
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    return source


def parse_params(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dict. Later keys win.

    Raises:
        ConfigError: If an item has no ``=`` or an empty key.
    """
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Expected KEY=VALUE, got {pair!r}")
        params[key] = value
    return params


# --- Precedence resolution ---


def resolve_settings(
    token_url: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    audience: Optional[str] = None,
    extra_params: Optional[dict[str, str]] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    verify_ssl: Optional[bool] = None,
) -> ClientSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Explicit arguments (CLI flags)
        2. Environment variables (``CLIENTCREDS_TOKEN_URL``,
           ``CLIENTCREDS_CLIENT_ID``, ``CLIENTCREDS_CLIENT_SECRET``,
           ``CLIENTCREDS_AUDIENCE``, ``CLIENTCREDS_TIMEOUT``,
           ``CLIENTCREDS_MAX_RETRIES``, ``CLIENTCREDS_VERIFY_SSL``)
        3. Defaults

    ``client_id`` and ``client_secret`` are passed through
    :func:`resolve_credential` after precedence is applied.

    Returns:
        The resolved :class:`~clientcreds.models.ClientSettings`.

    Raises:
        ConfigError: If a value is malformed or a credential source cannot
            be resolved.
    """
    token_url = _pick(token_url, ENV_TOKEN_URL)
    client_id = _pick(client_id, ENV_CLIENT_ID)
    client_secret = _pick(client_secret, ENV_CLIENT_SECRET)
    audience = _pick(audience, ENV_AUDIENCE)

    request_fields: dict[str, Any] = {}
    env_timeout = os.environ.get(ENV_TIMEOUT)
    if timeout is not None:
        request_fields["timeout"] = timeout
    elif env_timeout:
        request_fields["timeout"] = env_timeout

    env_retries = os.environ.get(ENV_MAX_RETRIES)
    if max_retries is not None:
        request_fields["max_retries"] = max_retries
    elif env_retries:
        request_fields["max_retries"] = env_retries

    env_verify = os.environ.get(ENV_VERIFY_SSL)
    if verify_ssl is not None:
        request_fields["verify_ssl"] = verify_ssl
    elif env_verify:
        request_fields["verify_ssl"] = env_verify.strip().lower() not in _FALSE_VALUES

    try:
        request = RequestConfig(**request_fields)
    except ValidationError as exc:
        raise ConfigError(f"Invalid request settings: {exc}") from exc

    return ClientSettings(
        token_url=token_url,
        client_id=resolve_credential(client_id) if client_id is not None else None,
        client_secret=resolve_credential(client_secret) if client_secret is not None else None,
        audience=audience,
        extra_params=dict(extra_params or {}),
        request=request,
    )


def _pick(value: Optional[str], env_var: str) -> Optional[str]:
    """Return *value* if given, else the non-empty env var, else ``None``."""
    if value is not None:
        return value
    return os.environ.get(env_var) or None
