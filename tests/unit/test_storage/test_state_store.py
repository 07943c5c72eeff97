"""Tests for StateStore persistence and upgrade-on-load."""

from pathlib import Path

import pytest

from monsync.errors import StateMigrationError, StorageError
from monsync.migrations import CURRENT_VERSION
from monsync.models.monitor import (
    AlertContact,
    DNSRecords,
    MonitorConfig,
    MonitorState,
    MonitorType,
)
from monsync.models.values import CLEARED, UNMANAGED, Value
from monsync.storage.state_store import StateStore

STATE = MonitorState(
    id="42",
    status="ACTIVE",
    type=Value(MonitorType.DNS),
    name=Value("dns"),
    url=Value("example.com"),
    interval=Value(300),
    tags=CLEARED,
    assigned_alert_contacts=Value((AlertContact("7", 5, 0),)),
    config=Value(MonitorConfig(dns_records=Value(DNSRecords({"a": Value(("1.2.3.4",)), "txt": CLEARED})))),
)


@pytest.fixture
async def store(tmp_path: Path):
    """Provide initialized StateStore."""
    state_store = StateStore(tmp_path / "state.db")
    await state_store.initialize()
    yield state_store
    await state_store.close()


class TestSaveAndLoad:
    """Test persisting state records."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store: StateStore) -> None:
        await store.save("monitor.dns", STATE)

        loaded = await store.load("monitor.dns")

        assert loaded == STATE
        assert loaded.http_username is UNMANAGED

    @pytest.mark.asyncio
    async def test_saved_at_current_version(self, store: StateStore) -> None:
        await store.save("monitor.dns", STATE)

        record = await store.load_record("monitor.dns")

        assert record["schema_version"] == CURRENT_VERSION
        assert record["attributes"]["id"] == "42"
        assert record["attributes"]["tags"] == []

    @pytest.mark.asyncio
    async def test_save_replaces(self, store: StateStore) -> None:
        await store.save("monitor.dns", STATE)
        await store.save("monitor.dns", MonitorState(id="43", name=Value("other")))

        loaded = await store.load("monitor.dns")

        assert loaded.id == "43"
        assert loaded.config is UNMANAGED

    @pytest.mark.asyncio
    async def test_missing_address(self, store: StateStore) -> None:
        assert await store.load("nope") is None
        assert await store.load_record("nope") is None

    @pytest.mark.asyncio
    async def test_unserializable_record(self, store: StateStore) -> None:
        with pytest.raises(StorageError, match="not JSON serializable"):
            await store.save_record("bad", {"schema_version": 5, "attributes": {"id": object()}})


class TestUpgradeOnLoad:
    """Test stale records are upgraded and written back."""

    @pytest.mark.asyncio
    async def test_stale_record_upgraded(self, store: StateStore, log_capture) -> None:
        await store.save_record(
            "legacy",
            {
                "schema_version": 0,
                "attributes": {
                    "id": "9",
                    "type": "HTTP",
                    "name": "legacy",
                    "tags": ["b", "a"],
                    "assigned_alert_contacts": ["7"],
                    "post_value_data": "{oops",
                },
            },
        )

        state = await store.load("legacy")

        assert state.tags == Value(("a", "b"))
        assert state.assigned_alert_contacts == Value((AlertContact("7", 0, 0),))
        assert state.post_value_data is UNMANAGED
        record = await store.load_record("legacy")
        assert record["schema_version"] == CURRENT_VERSION
        output = log_capture.getvalue()
        assert "Upgraded state legacy from v0 to v5" in output
        assert "post_value_data was not valid JSON" in output

    @pytest.mark.asyncio
    async def test_newer_record_rejected(self, store: StateStore) -> None:
        await store.save_record("future", {"schema_version": 99, "attributes": {"id": "1"}})

        with pytest.raises(StateMigrationError, match="newer than supported"):
            await store.load("future")

    @pytest.mark.asyncio
    async def test_corrupt_attributes(self, store: StateStore) -> None:
        async with store.transaction():
            await store._get_conn().execute(
                "INSERT INTO monitor_states (address, schema_version, attributes, updated_at) "
                "VALUES ('broken', 5, '{not json', '2024-01-01T00:00:00')"
            )

        with pytest.raises(StateMigrationError, match="not valid JSON"):
            await store.load("broken")


class TestDeleteAndList:
    """Test removal and listing."""

    @pytest.mark.asyncio
    async def test_delete(self, store: StateStore) -> None:
        await store.save("monitor.dns", STATE)

        assert await store.delete("monitor.dns") is True
        assert await store.delete("monitor.dns") is False
        assert await store.load("monitor.dns") is None

    @pytest.mark.asyncio
    async def test_list_addresses_sorted(self, store: StateStore) -> None:
        await store.save("b", STATE)
        await store.save("a", STATE)

        assert await store.list_addresses() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_async_context_manager(self, tmp_path: Path) -> None:
        async with StateStore(tmp_path / "ctx.db") as ctx_store:
            await ctx_store.save("a", STATE)
            assert await ctx_store.list_addresses() == ["a"]

    @pytest.mark.asyncio
    async def test_uninitialized_store(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            await StateStore(tmp_path / "x.db").list_addresses()
