"""Persisted state storage for monsync."""

from monsync.storage.state_store import StateStore

__all__ = ["StateStore"]
