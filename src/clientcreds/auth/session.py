"""Per-request refresh state for the client credentials plugin."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from clientcreds.client.retry import RetryPolicy
from clientcreds.models import ClientCredentialsParams


class RefreshState(enum.Enum):
    """Whether the one permitted token refresh has been spent."""

    NOT_STARTED = "not_started"
    REFRESHED = "refreshed"


@dataclass
class AuthSession:
    """Auth bookkeeping for one logical request and its retries.

    Created fresh when the plugin is attached to a request, so two requests
    never share it even when they target the same host.

    Attributes:
        original_retry: The request's ``retry`` option before the plugin
            replaced it; consulted for every outcome that is not an auth
            retry, and re-applied to token requests.
        state: :attr:`RefreshState.NOT_STARTED` until a 401 triggered a
            refresh, then :attr:`RefreshState.REFRESHED` for good.
        retry_requested: Set when a refresh succeeded and the request
            should be re-sent with the new token.
        token_params: Parameters used for the token request; ``None`` while
            the plugin has not acted on this request.
    """

    original_retry: RetryPolicy
    state: RefreshState = RefreshState.NOT_STARTED
    retry_requested: bool = False
    token_params: Optional[ClientCredentialsParams] = None

    @property
    def refreshed(self) -> bool:
        return self.state is RefreshState.REFRESHED

    def mark_refreshed(self) -> None:
        """Record the refresh and ask the pipeline for one more attempt.

        Raises:
            RuntimeError: If the refresh was already spent.
        """
        if self.refreshed:
            raise RuntimeError("Token already refreshed for this request")
        self.state = RefreshState.REFRESHED
        self.retry_requested = True

    def decline_retry(self) -> None:
        self.retry_requested = False
