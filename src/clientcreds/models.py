"""Canonical Pydantic models shared across all clientcreds modules.

The models fall into two groups:

**Configuration models** -- supplied by library callers or assembled by
:func:`~clientcreds.config.resolve_settings`:
    :class:`ClientCredentialsParams`, :class:`RequestConfig`, and
    :class:`ClientSettings`.

**Wire models** -- parsed from token endpoint responses:
    :class:`TokenResponse`.

All models use Pydantic v2. Models that accept provider-specific extensions
use ``extra="allow"`` so that unknown keys are preserved in ``model_extra``
and forwarded verbatim.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


DEFAULT_GRANT_TYPE = "client_credentials"


# --- Client credentials ---


class ClientCredentialsParams(BaseModel):
    """Parameters posted to the token endpoint.

    Besides the recognised fields, any extra keyword (``scope``,
    ``resource``, provider-specific flags) is kept and sent as-is in the
    form body of the token request.

    Example::

        ClientCredentialsParams(
            client_id="my-client",
            client_secret="s3cret",
            audience="https://api.example.com",
            scope="read:orders",
        )
    """

    model_config = ConfigDict(extra="allow")

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    audience: Optional[str] = Field(
        default=None,
        description="Resource server URI; the plugin only acts on matching requests",
    )
    grant_type: str = Field(
        default=DEFAULT_GRANT_TYPE, description="OAuth 2.0 grant type"
    )

    def form_fields(self) -> dict[str, Any]:
        """Return the form body for the token request.

        ``grant_type`` comes first; ``None`` values are dropped.
        """
        fields = self.model_dump(exclude_none=True)
        grant_type = fields.pop("grant_type", DEFAULT_GRANT_TYPE)
        return {"grant_type": grant_type, **fields}


class TokenResponse(BaseModel):
    """Successful token endpoint payload (:rfc:`6749` section 5.1).

    Only ``access_token`` and ``token_type`` are required; both must be JSON
    strings. ``expires_in`` and friends are preserved but unused, since
    tokens are refreshed reactively on a 401.
    """

    model_config = ConfigDict(extra="allow")

    access_token: StrictStr
    token_type: StrictStr


# --- Request settings ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every call made by a client."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, ge=0, description="Max retry attempts")


class ClientSettings(BaseModel):
    """Fully resolved settings for a client-credentials enabled client.

    Built by :func:`~clientcreds.config.resolve_settings` from CLI flags,
    environment variables, and defaults.
    """

    token_url: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    audience: Optional[str] = None
    extra_params: dict[str, str] = Field(default_factory=dict)
    request: RequestConfig = Field(default_factory=RequestConfig)

    def client_credentials_params(self) -> ClientCredentialsParams:
        """Assemble the token request parameters from these settings."""
        params: dict[str, Any] = dict(self.extra_params)
        for key in ("client_id", "client_secret", "audience"):
            value = getattr(self, key)
            if value is not None:
                params[key] = value
        return ClientCredentialsParams(**params)
