"""Port interface for the remote monitor API."""

from typing import Any, Protocol

from monsync.models.remote import MonitorSnapshot


class MonitorAPIPort(Protocol):
    """Protocol for the remote monitor API client.

    Every call raises RemoteAPIError on failure and NotFoundError when the
    monitor does not exist. Writes may not be visible to the next read.
    """

    async def create(self, payload: dict[str, Any]) -> MonitorSnapshot:
        """Create a monitor and return the remote's immediate response."""
        ...

    async def get(self, monitor_id: str) -> MonitorSnapshot:
        """Fetch the current remote state."""
        ...

    async def update(self, monitor_id: str, payload: dict[str, Any]) -> MonitorSnapshot:
        """Apply a partial update."""
        ...

    async def delete(self, monitor_id: str) -> None:
        """Delete a monitor."""
        ...

    async def pause(self, monitor_id: str) -> MonitorSnapshot:
        """Pause checks on a monitor."""
        ...

    async def start(self, monitor_id: str) -> MonitorSnapshot:
        """Resume checks on a monitor."""
        ...
