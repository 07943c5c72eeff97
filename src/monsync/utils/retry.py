"""Retry helpers for idempotent remote calls.

Only reads and deletes are retried. Creates and updates are never
repeated because their remote effect is uncertain after a failure.
"""

from collections.abc import Callable, Mapping
from typing import Any

import backoff
from loguru import logger

from monsync.config.models import RetryConfig
from monsync.errors import RemoteAPIError


def on_backoff(details: Mapping[str, Any]) -> None:
    """Log retry attempts."""
    logger.warning(
        "Retrying {}: attempt={} wait={}s error={}",
        details["target"].__name__,
        details["tries"],
        details["wait"],
        details["exception"],
    )


def on_giveup(details: Mapping[str, Any]) -> None:
    """Log when a retryable error exhausted its attempts."""
    error = details["exception"]
    if not _is_transient(error):
        return
    logger.error(
        "Gave up on {}: attempts={} error={}",
        details["target"].__name__,
        details["tries"],
        error,
    )


def _is_transient(error: Exception) -> bool:
    return isinstance(error, RemoteAPIError) and error.retryable


def _permanent(error: Exception) -> bool:
    return not _is_transient(error)


def remote_retry(config: RetryConfig | None = None) -> Callable[[Any], Any]:
    """
    Build a retry decorator for remote reads from configuration.

    429 and 5xx responses are retried with exponential backoff; every
    other error (including NotFoundError) propagates on the first try.

    Args:
        config: Retry limits; defaults when None.

    Returns:
        A backoff decorator usable on coroutine functions.
    """
    config = config or RetryConfig()
    return backoff.on_exception(
        backoff.expo,
        RemoteAPIError,
        max_tries=config.max_tries,
        max_time=config.max_time_seconds,
        giveup=_permanent,
        on_backoff=on_backoff,
        on_giveup=on_giveup,
    )

