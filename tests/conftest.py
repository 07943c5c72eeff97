"""Shared pytest fixtures for monsync tests."""

import io
from collections.abc import Generator
from itertools import count
from typing import Any

import pytest
from loguru import logger

from monsync.errors import NotFoundError
from monsync.models.remote import MonitorRequest, MonitorSnapshot


class FakeClock:
    """Monotonic clock that only moves when sleep is awaited."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedMonitorAPI:
    """
    In-memory remote monitor API.

    Writes are applied to a stored record the way the real service applies
    partial updates. Reads can be scripted per monitor (snapshots or
    exceptions, consumed in order) before falling back to the stored
    record, and a number of stale reads can be injected after each write.
    """

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.visible: dict[str, dict[str, Any]] = {}
        self.payloads: list[tuple[str, dict[str, Any]]] = []
        self.get_calls: list[str] = []
        self.get_script: dict[str, list[Any]] = {}
        self.drop_contacts: set[str] = set()
        self.stale_reads = 0
        self.create_error: Exception | None = None
        self.update_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.deleted_visible_reads = 0
        self._ids = count(1000)
        self._stale_left: dict[str, int] = {}
        self._delete_left: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Port methods
    # ------------------------------------------------------------------

    async def create(self, payload: dict[str, Any]) -> MonitorSnapshot:
        self.payloads.append(("create", payload))
        if self.create_error:
            raise self.create_error
        monitor_id = str(next(self._ids))
        record: dict[str, Any] = {"id": monitor_id, "status": "ACTIVE"}
        self._apply(record, payload)
        self.records[monitor_id] = record
        self._publish(monitor_id, fresh=True)
        return MonitorSnapshot.model_validate(record)

    async def get(self, monitor_id: str) -> MonitorSnapshot:
        self.get_calls.append(monitor_id)
        script = self.get_script.get(monitor_id)
        if script:
            item = script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        if monitor_id in self._delete_left:
            if self._delete_left[monitor_id] > 0:
                self._delete_left[monitor_id] -= 1
                return MonitorSnapshot.model_validate(self.visible[monitor_id])
            raise NotFoundError(f"monitor {monitor_id} not found")

        if monitor_id not in self.records:
            raise NotFoundError(f"monitor {monitor_id} not found")

        if self._stale_left.get(monitor_id, 0) > 0:
            self._stale_left[monitor_id] -= 1
        else:
            self.visible[monitor_id] = _copy(self.records[monitor_id])
        return MonitorSnapshot.model_validate(self.visible[monitor_id])

    async def update(self, monitor_id: str, payload: dict[str, Any]) -> MonitorSnapshot:
        self.payloads.append(("update", payload))
        if self.update_error:
            raise self.update_error
        if monitor_id not in self.records:
            raise NotFoundError(f"monitor {monitor_id} not found")
        self._apply(self.records[monitor_id], payload)
        self._publish(monitor_id)
        return MonitorSnapshot.model_validate(self.records[monitor_id])

    async def delete(self, monitor_id: str) -> None:
        if self.delete_error:
            raise self.delete_error
        if monitor_id not in self.records:
            raise NotFoundError(f"monitor {monitor_id} not found")
        self.visible[monitor_id] = self.records.pop(monitor_id)
        self._delete_left[monitor_id] = self.deleted_visible_reads

    async def pause(self, monitor_id: str) -> MonitorSnapshot:
        self.records[monitor_id]["status"] = "PAUSED"
        self._publish(monitor_id)
        return MonitorSnapshot.model_validate(self.records[monitor_id])

    async def start(self, monitor_id: str) -> MonitorSnapshot:
        self.records[monitor_id]["status"] = "ACTIVE"
        self._publish(monitor_id)
        return MonitorSnapshot.model_validate(self.records[monitor_id])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def seed(self, record: dict[str, Any]) -> str:
        """Store a remote record directly, as if created elsewhere."""
        monitor_id = str(record.get("id") or next(self._ids))
        self.records[monitor_id] = {"status": "ACTIVE", **record, "id": monitor_id}
        self.visible[monitor_id] = _copy(self.records[monitor_id])
        return monitor_id

    def last_payload(self) -> dict[str, Any]:
        return self.payloads[-1][1]

    def _publish(self, monitor_id: str, fresh: bool = False) -> None:
        if fresh or monitor_id not in self.visible:
            self.visible[monitor_id] = {"id": monitor_id}
        self._stale_left[monitor_id] = self.stale_reads

    def _apply(self, record: dict[str, Any], payload: dict[str, Any]) -> None:
        data = MonitorRequest.model_validate(payload).model_dump(exclude_none=True)
        for key, value in data.items():
            if key == "http_password":
                continue
            if key == "tag_names":
                record["tags"] = [{"name": name} for name in value]
            elif key == "maintenance_windows_ids":
                record["maintenance_windows"] = [{"id": i} for i in value]
            elif key == "assigned_alert_contacts":
                record[key] = [c for c in value if c["alert_contact_id"] not in self.drop_contacts]
            elif key == "config":
                self._apply_config(record.setdefault("config", {}), value)
            elif value == "":
                record[key] = None
            else:
                record[key] = value

    @staticmethod
    def _apply_config(config: dict[str, Any], sent: dict[str, Any]) -> None:
        for child, value in sent.items():
            if child == "dns_records":
                config.setdefault("dns_records", {}).update(value)
            elif child == "ip_version":
                config[child] = value or None
            elif child == "api_assertions":
                config[child] = value if value.get("checks") else None
            elif child == "udp":
                config[child] = value or None
            else:
                config[child] = value


def _copy(record: dict[str, Any]) -> dict[str, Any]:
    return MonitorSnapshot.model_validate(record).model_dump()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def remote() -> ScriptedMonitorAPI:
    """Provide an in-memory remote monitor API."""
    return ScriptedMonitorAPI()


@pytest.fixture
def log_capture() -> Generator[io.StringIO, None, None]:
    """Capture loguru output to a string buffer."""
    string_io = io.StringIO()
    handler_id = logger.add(string_io, format="{level} {message}", level="DEBUG")
    yield string_io
    logger.remove(handler_id)
