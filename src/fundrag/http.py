"""Bounded retries for httpx-based provider backends.

Transient failures (network errors, timeouts, 408/409/429 and 5xx) are
retried with exponential backoff and jitter. Anything else, notably
401/403 credential errors, is raised on the first attempt.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({408, 409, 429})

DEFAULT_WAIT: wait_base = wait_exponential_jitter(multiplier=0.5, max=8.0, jitter=1.0)


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS or status >= 500
    return False


def _log_retry(retry_state: Any) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transient provider failure (attempt %d): %s",
        retry_state.attempt_number,
        exc,
    )


def post_json(
    client: httpx.Client,
    url: str,
    payload: dict[str, Any],
    max_retries: int = 3,
    wait: wait_base | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """POST a JSON payload, retrying transient failures.

    Returns the successful response. Raises ``httpx.HTTPStatusError`` or
    ``httpx.TransportError`` once retries are exhausted or the failure is
    not transient.
    """
    retrying = Retrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(max(max_retries, 0) + 1),
        wait=wait or DEFAULT_WAIT,
        before_sleep=_log_retry,
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            resp = client.post(url, json=payload, **kwargs)
            resp.raise_for_status()
    return resp
