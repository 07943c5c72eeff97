"""Tests for state assembly after writes and reads."""

from dataclasses import replace
from typing import Any

import pytest

from monsync.errors import PartialApplicationError
from monsync.models.monitor import (
    AlertContact,
    AlertContactSpec,
    DesiredMonitor,
    DNSRecords,
    IPVersion,
    KeywordCaseType,
    MonitorConfig,
    MonitorState,
    MonitorType,
    PostValueType,
)
from monsync.models.remote import MonitorRequest, MonitorSnapshot, RemoteAlertContact
from monsync.models.values import CLEARED, UNKNOWN, UNMANAGED, Value
from monsync.reconcile.assembler import (
    assemble_after_read,
    assemble_after_write,
    is_import,
    verify_contacts_applied,
    verify_contacts_cleared,
)
from monsync.reconcile.builder import RequestBuilder

HTTP = DesiredMonitor(
    type=Value(MonitorType.HTTP),
    name=Value("site"),
    url=Value("https://example.com"),
    interval=Value(300),
)


def _snapshot(**fields: Any) -> MonitorSnapshot:
    data = {
        "id": "1",
        "type": "HTTP",
        "friendlyName": "site",
        "url": "https://example.com",
        "interval": 300,
        "timeout": 30,
        "status": "ACTIVE",
    }
    data.update(fields)
    return MonitorSnapshot.model_validate(data)


def _write(desired: DesiredMonitor, snapshot: MonitorSnapshot, prior: MonitorState | None = None) -> MonitorState:
    built = RequestBuilder().build(desired, prior)
    return assemble_after_write(desired, built, snapshot, prior)


class TestAssembleAfterWrite:
    """Test state produced after create and update."""

    def test_basic_http(self) -> None:
        state = _write(replace(HTTP, tags=Value(("prod",))), _snapshot(tags=[{"name": "Prod"}]))

        assert state.id == "1"
        assert state.status == "ACTIVE"
        assert state.type == Value(MonitorType.HTTP)
        assert state.name == Value("site")
        assert state.tags == Value(("prod",))
        assert state.timeout == Value(30)
        assert state.grace_period is UNMANAGED
        assert state.http_method_type == Value("GET")
        assert state.follow_redirections == Value(False)

    def test_unmanaged_fields_ignore_remote(self) -> None:
        state = _write(HTTP, _snapshot(httpUsername="bob", regionalData="eu", tags=[{"name": "x"}]))

        assert state.http_username is UNMANAGED
        assert state.regional_data is UNMANAGED
        assert state.tags is UNMANAGED

    def test_cleared_fields_stay_cleared(self) -> None:
        state = _write(replace(HTTP, tags=CLEARED, custom_http_headers=CLEARED), _snapshot())

        assert state.tags is CLEARED
        assert state.custom_http_headers is CLEARED

    def test_escaped_name_unescaped(self) -> None:
        state = _write(replace(HTTP, name=Value("A & B")), _snapshot(friendlyName="A &amp;amp; B"))
        assert state.name == Value("A & B")

    def test_heartbeat_grace_from_remote(self) -> None:
        desired = DesiredMonitor(
            type=Value(MonitorType.HEARTBEAT),
            name=Value("cron"),
            interval=Value(300),
            grace_period=Value(45),
        )
        state = _write(desired, _snapshot(type="HEARTBEAT", url=None, timeout=None, gracePeriod=45))

        assert state.timeout is UNMANAGED
        assert state.grace_period == Value(45)
        assert state.http_method_type is UNMANAGED

    def test_json_body_canonicalized(self) -> None:
        state = _write(replace(HTTP, post_value_data=Value('{"b": 1, "a": 2}')), _snapshot())

        assert state.post_value_type is PostValueType.RAW_JSON
        assert state.post_value_data == Value('{"a":2,"b":1}')
        assert state.post_value_kv is UNMANAGED
        assert state.http_method_type == Value("POST")

    def test_password_kept_from_desired(self) -> None:
        assert _write(replace(HTTP, http_password=Value("s3cret")), _snapshot()).http_password == Value("s3cret")
        assert _write(replace(HTTP, http_password=UNKNOWN), _snapshot()).http_password is UNMANAGED

    def test_contact_delays_from_remote(self) -> None:
        contacts = (AlertContactSpec(Value("7"), Value(0), Value(0)),)
        snapshot = _snapshot(assignedAlertContacts=[{"alertContactId": "7", "threshold": 5, "recurrence": 0}])

        state = _write(replace(HTTP, assigned_alert_contacts=Value(contacts)), snapshot)

        assert state.assigned_alert_contacts == Value((AlertContact("7", 5, 0),))

    def test_auto_added_windows_excluded(self) -> None:
        snapshot = _snapshot(maintenanceWindows=[{"id": 4}, {"id": 9, "autoAddMonitors": True}])
        state = _write(replace(HTTP, maintenance_window_ids=Value((4,))), snapshot)
        assert state.maintenance_window_ids == Value((4,))

    def test_dns_children_keep_their_shape(self) -> None:
        records = DNSRecords({"a": Value(("1.2.3.4",)), "txt": CLEARED})
        desired = replace(
            HTTP,
            type=Value(MonitorType.DNS),
            url=Value("example.com"),
            config=Value(MonitorConfig(dns_records=Value(records))),
        )
        snapshot = _snapshot(type="DNS", timeout=0, config={"dnsRecords": {"A": ["1.2.3.4"], "MX": ["m"]}})

        state = _write(desired, snapshot)

        merged = state.config.value.dns_records.value
        assert merged.get("a") == Value(("1.2.3.4",))
        assert merged.get("txt") is CLEARED
        assert merged.get("mx") is UNMANAGED

    def test_paused_reflects_remote(self) -> None:
        state = _write(replace(HTTP, paused=Value(True)), _snapshot(status="PAUSED"))
        assert state.paused == Value(True)

    def test_planned_timeout_when_remote_omits(self) -> None:
        prior = MonitorState(id="1", type=Value(MonitorType.HTTP), timeout=Value(20))
        desired = replace(HTTP, timeout=Value(20))
        state = _write(desired, _snapshot(timeout=None), prior)
        assert state.timeout == Value(20)


class TestAssembleAfterRead:
    """Test refresh and import."""

    PRIOR = MonitorState(
        id="1",
        type=Value(MonitorType.HTTP),
        name=Value("old"),
        url=Value("https://example.com"),
        interval=Value(300),
        timeout=Value(30),
        tags=Value(("a",)),
        paused=Value(False),
    )

    def test_is_import(self) -> None:
        assert is_import(MonitorState(id="1"))
        assert not is_import(self.PRIOR)

    def test_refresh_only_managed_fields(self) -> None:
        snapshot = _snapshot(friendlyName="new &amp; name", httpUsername="bob", tags=[])

        state = assemble_after_read(self.PRIOR, snapshot)

        assert state.name == Value("new & name")
        assert state.tags is CLEARED
        assert state.http_username is UNMANAGED
        assert state.timeout == Value(30)

    def test_region_object_keeps_managed_region(self) -> None:
        prior = replace(self.PRIOR, regional_data=Value("eu"))
        snapshot = _snapshot(regionalData={"REGION": ["eu"]}, tags=[{"name": "a"}])

        state = assemble_after_read(prior, snapshot)

        assert state.regional_data == Value("eu")

    def test_paused_drift_detected(self) -> None:
        state = assemble_after_read(self.PRIOR, _snapshot(status="PAUSED", tags=[{"name": "a"}]))
        assert state.paused == Value(True)
        assert state.tags == Value(("a",))

    def test_import_adopts_remote(self) -> None:
        snapshot = _snapshot(
            type="KEYWORD",
            httpUsername="bob",
            keywordValue="ok",
            keywordType="ALERT_EXISTS",
            keywordCaseType=1,
            tags=[{"name": "Prod"}],
            postValueType="KEY_VALUE",
            postValueData={"a": 1},
            maintenanceWindows=[{"id": 4}, {"id": 9, "autoAddMonitors": True}],
            config={"ipVersion": "IPV4ONLY"},
        )

        state = assemble_after_read(MonitorState(id="1"), snapshot)

        assert state.type == Value(MonitorType.KEYWORD)
        assert state.name == Value("site")
        assert state.http_username == Value("bob")
        assert state.http_method_type == Value("GET")
        assert state.keyword_case_type == Value(KeywordCaseType.CASE_INSENSITIVE)
        assert state.tags == Value(("prod",))
        assert state.post_value_type is PostValueType.KEY_VALUE
        assert state.post_value_kv == Value({"a": "1"})
        assert state.maintenance_window_ids == Value((4,))
        assert state.config.value.ip_version == Value(IPVersion.IPV4_ONLY)
        assert state.follow_redirections is UNMANAGED

    def test_import_without_config(self) -> None:
        state = assemble_after_read(MonitorState(id="1"), _snapshot())
        assert state.config is UNMANAGED
        assert state.post_value_type is None


class TestContactVerification:
    """Test alert contact application checks."""

    def test_missing_contacts_named(self) -> None:
        request = MonitorRequest(
            assigned_alert_contacts=[
                RemoteAlertContact(alert_contact_id="1"),
                RemoteAlertContact(alert_contact_id="2"),
            ]
        )
        snapshot = _snapshot(assignedAlertContacts=[{"alertContactId": "1"}])

        with pytest.raises(PartialApplicationError) as exc_info:
            verify_contacts_applied(request, snapshot)

        assert exc_info.value.missing == ["2"]
        assert "Missing IDs:   ['2']" in str(exc_info.value)

    def test_applied_contacts_pass(self) -> None:
        request = MonitorRequest(assigned_alert_contacts=[RemoteAlertContact(alert_contact_id="1")])
        verify_contacts_applied(request, _snapshot(assignedAlertContacts=[{"alertContactId": 1}]))

    def test_clear_left_contacts(self) -> None:
        request = MonitorRequest(assigned_alert_contacts=[])
        with pytest.raises(PartialApplicationError):
            verify_contacts_cleared(request, _snapshot(assignedAlertContacts=[{"alertContactId": "1"}]))
        verify_contacts_cleared(request, _snapshot())

    def test_unsent_contacts_not_checked(self) -> None:
        request = MonitorRequest()
        snapshot = _snapshot(assignedAlertContacts=[{"alertContactId": "1"}])
        verify_contacts_applied(request, snapshot)
        verify_contacts_cleared(request, snapshot)
