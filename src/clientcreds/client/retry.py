"""Retry policies for the request pipeline.

The ``retry`` option of a :class:`~clientcreds.client.request.PipelineRequest`
selects one of:

- ``"safe_transient"`` (default) -- retry idempotent ``GET``/``HEAD``
  requests on transient statuses or network errors.
- ``"transient"`` or ``True`` -- the same, for any method.
- ``False`` or ``None`` -- never retry.
- a callable ``(request, response_or_error) -> bool | float``.

A callable may return a number (not a bool) to request a retry after that
many seconds instead of the ``retry_delay`` schedule.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import httpx

from clientcreds.exceptions import InvalidUsageError

if TYPE_CHECKING:
    from clientcreds.client.request import PipelineRequest

Outcome = Union[httpx.Response, Exception]
RetryDecision = Union[bool, float]
RetryPredicate = Callable[["PipelineRequest", Outcome], RetryDecision]
RetryPolicy = Union[str, bool, None, RetryPredicate]

DEFAULT_POLICY = "safe_transient"
TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
SAFE_METHODS = frozenset({"GET", "HEAD"})

_NAMED_POLICIES = frozenset({"safe_transient", "transient"})


def is_transient(outcome: Outcome) -> bool:
    """Return ``True`` for transient statuses and retryable network errors."""
    if isinstance(outcome, httpx.Response):
        return outcome.status_code in TRANSIENT_STATUSES
    return isinstance(
        outcome, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)
    )


def validate_policy(policy: Any) -> None:
    """Reject retry option values :func:`evaluate` would not understand.

    Raises:
        InvalidUsageError: If *policy* is not a known policy.
    """
    if policy is None or isinstance(policy, bool) or callable(policy):
        return
    if isinstance(policy, str) and policy in _NAMED_POLICIES:
        return
    raise InvalidUsageError(
        f"Unknown retry policy {policy!r}; expected 'safe_transient', "
        "'transient', a bool, None, or a callable"
    )


def evaluate(policy: RetryPolicy, request: PipelineRequest, outcome: Outcome) -> RetryDecision:
    """Apply *policy* to the outcome of one send attempt."""
    if policy is None or policy is False:
        return False
    if policy is True or policy == "transient":
        return is_transient(outcome)
    if policy == "safe_transient":
        return request.method in SAFE_METHODS and is_transient(outcome)
    if callable(policy):
        return policy(request, outcome)
    validate_policy(policy)
    return False


def default_delay(retry_count: int) -> float:
    """Exponential backoff: 1 s, 2 s, 4 s, ..."""
    return float(2 ** retry_count)


def resolve_delay(
    decision: Any,
    retry_count: int,
    retry_delay: Union[float, Callable[[int], float], None],
) -> Optional[float]:
    """Turn a retry decision into a delay in seconds, or ``None`` to stop."""
    if isinstance(decision, bool) or not isinstance(decision, (int, float)):
        if not decision:
            return None
        if retry_delay is None:
            return default_delay(retry_count)
        if callable(retry_delay):
            return float(retry_delay(retry_count))
        return float(retry_delay)
    return max(0.0, float(decision))
