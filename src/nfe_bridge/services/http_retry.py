"""Bounded retries for the Frappe and NFE.io REST calls.

Reads retry on connection errors, timeouts and the gateway/throttling
statuses. The invoice submission retries only when the connection failed,
since NFE.io may already have accepted a request that timed out.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests.exceptions

from nfe_bridge.services.exceptions import UpstreamAPIError

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class RetryableHTTPError(requests.exceptions.HTTPError):
    """A response whose status the active policy retries. Kept in ``response``."""


_TRANSIENT = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    RetryableHTTPError,
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay: float
    max_delay: float
    backoff_factor: float
    jitter: float
    retryable_exceptions: tuple[type[Exception], ...]
    retryable_status_codes: frozenset[int] = field(default_factory=frozenset)


def _read_policy(max_attempts: int, base_delay: float, max_delay: float) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_factor=2.0,
        jitter=0.25,
        retryable_exceptions=_TRANSIENT,
        retryable_status_codes=RETRYABLE_STATUS_CODES,
    )


NFEIO_SUBMIT = RetryPolicy(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    backoff_factor=2.0,
    jitter=0.25,
    retryable_exceptions=(requests.exceptions.ConnectionError,),
)
NFEIO_READ = _read_policy(max_attempts=4, base_delay=1.0, max_delay=15.0)
FRAPPE_READ = _read_policy(max_attempts=3, base_delay=0.5, max_delay=5.0)


def _calc_delay(attempt: int, policy: RetryPolicy) -> float:
    """Seconds to wait after failed attempt number *attempt* (0-indexed)."""
    capped = min(policy.max_delay, policy.base_delay * policy.backoff_factor**attempt)
    spread = capped * policy.jitter
    return max(0.0, random.uniform(capped - spread, capped + spread))


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Call *func()* until it succeeds or *policy* runs out of attempts.

    Exceptions outside ``policy.retryable_exceptions`` propagate at once; the
    last retryable one propagates when the attempts are exhausted.
    """
    attempt = 0
    while True:
        try:
            return func()
        except policy.retryable_exceptions as exc:
            attempt += 1
            if attempt >= policy.max_attempts:
                raise
            delay = _calc_delay(attempt - 1, policy)
            logger.warning(
                "Tentativa %d/%d falhou (%s), repetindo em %.1fs",
                attempt,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            sleep_func(delay)


def check_response(
    resp: Any,
    action: str,
    policy: RetryPolicy,
    error_cls: type[UpstreamAPIError],
) -> None:
    """Raise for a non-2xx response.

    Statuses *policy* retries raise RetryableHTTPError; anything else raises
    *error_cls* with the status and the start of the body.
    """
    if resp.ok:
        return
    if resp.status_code in policy.retryable_status_codes:
        raise RetryableHTTPError(f"{error_cls.service} {action} ({resp.status_code})", response=resp)
    raise error_cls.from_response(action, resp)


def request_with_retry(
    send: Callable[[], Any],
    action: str,
    policy: RetryPolicy,
    error_cls: type[UpstreamAPIError],
) -> Any:
    """Send a request under *policy* and return the successful response.

    A retryable status that persists after the last attempt is reported as
    *error_cls*, so callers only deal with one error type per service.
    """

    def _attempt():
        resp = send()
        check_response(resp, action, policy, error_cls)
        return resp

    try:
        return retry_call(_attempt, policy)
    except RetryableHTTPError as exc:
        raise error_cls.from_response(action, exc.response) from exc
