"""Utility modules for monsync."""

from monsync.utils.logging import configure_logging, get_logger
from monsync.utils.retry import on_backoff, on_giveup, remote_retry

__all__ = [
    "configure_logging",
    "get_logger",
    "on_backoff",
    "on_giveup",
    "remote_retry",
]
