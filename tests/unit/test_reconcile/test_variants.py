"""Tests for the closed set of monitor variants."""

import pytest

from monsync.models.diagnostics import Diagnostics
from monsync.models.monitor import DesiredMonitor, MonitorType
from monsync.models.remote import MonitorSnapshot
from monsync.models.values import UNMANAGED, Value
from monsync.reconcile.variants import VARIANTS, Timing, variant_for


def _snapshot(**fields: object) -> MonitorSnapshot:
    return MonitorSnapshot.model_validate({"id": "1", **fields})


class TestRegistry:
    """Test the variant registry."""

    def test_every_type_has_a_variant(self) -> None:
        assert set(VARIANTS) == set(MonitorType)

    def test_lookup_is_case_insensitive(self) -> None:
        assert variant_for("keyword").monitor_type is MonitorType.KEYWORD

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            variant_for("smtp")


class TestRequestTiming:
    """Test timing sent on the wire per variant."""

    def test_heartbeat_sends_grace_only(self) -> None:
        desired = DesiredMonitor(grace_period=Value(45))
        assert variant_for(MonitorType.HEARTBEAT).request_timing(desired) == (None, 45)

    @pytest.mark.parametrize("monitor_type", [MonitorType.PING, MonitorType.DNS])
    def test_untimed_variants_send_zero(self, monitor_type: MonitorType) -> None:
        desired = DesiredMonitor(timeout=Value(10))
        assert variant_for(monitor_type).request_timing(desired) == (0, 0)

    def test_default_timeout(self) -> None:
        http = variant_for(MonitorType.HTTP)
        assert http.request_timing(DesiredMonitor()) == (30, 0)
        assert http.request_timing(DesiredMonitor(timeout=Value(12))) == (12, 0)
        assert http.request_timing(DesiredMonitor(), default_timeout=20) == (20, 0)


class TestStateTiming:
    """Test timing recorded in state."""

    def test_heartbeat_prefers_observed_grace(self) -> None:
        heartbeat = variant_for(MonitorType.HEARTBEAT)
        assert heartbeat.state_timing(None, 45, _snapshot(gracePeriod=60)) == (UNMANAGED, Value(60))
        assert heartbeat.state_timing(None, 45, _snapshot()) == (UNMANAGED, Value(45))

    def test_untimed_variants_leave_timing_unmanaged(self) -> None:
        dns = variant_for(MonitorType.DNS)
        assert dns.state_timing(0, 0, _snapshot(timeout=0)) == (UNMANAGED, UNMANAGED)

    def test_zero_observed_timeout_falls_back(self) -> None:
        http = variant_for(MonitorType.HTTP)
        assert http.state_timing(15, 0, _snapshot(timeout=0)) == (Value(15), UNMANAGED)
        assert http.state_timing(None, 0, _snapshot()) == (Value(30), UNMANAGED)

    def test_timing_kinds(self) -> None:
        assert variant_for(MonitorType.HEARTBEAT).timing is Timing.GRACE
        assert variant_for(MonitorType.PING).timing is Timing.NONE
        assert variant_for(MonitorType.PORT).timing is Timing.TIMEOUT


class TestVariantRules:
    """Test variant-specific field rules."""

    def _validate(self, monitor_type: MonitorType, desired: DesiredMonitor) -> Diagnostics:
        diags = Diagnostics()
        variant_for(monitor_type).validate(desired, diags)
        return diags

    def test_port_required_for_port_monitors(self) -> None:
        diags = self._validate(MonitorType.PORT, DesiredMonitor())
        assert [d.summary for d in diags.errors] == ["Missing port"]

    def test_port_forbidden_elsewhere(self) -> None:
        diags = self._validate(MonitorType.HTTP, DesiredMonitor(port=Value(80)))
        assert [d.path for d in diags.errors] == ["port"]

    def test_keyword_value_length(self) -> None:
        desired = DesiredMonitor(
            keyword_type=Value("ALERT_EXISTS"),
            keyword_case_type=Value("CaseSensitive"),
            keyword_value=Value("x" * 501),
        )
        diags = self._validate(MonitorType.KEYWORD, desired)
        assert [d.summary for d in diags.errors] == ["Keyword value too long"]

    def test_heartbeat_requires_grace_and_forbids_timeout(self) -> None:
        diags = self._validate(MonitorType.HEARTBEAT, DesiredMonitor(timeout=Value(30)))
        assert {d.summary for d in diags.errors} == {"Missing grace period", "Timeout not allowed"}

    def test_ping_timeout_is_a_warning(self) -> None:
        diags = self._validate(MonitorType.PING, DesiredMonitor(timeout=Value(30)))
        assert not diags.has_error
        assert [d.path for d in diags.warnings] == ["timeout"]

    def test_grace_forbidden_for_http(self) -> None:
        diags = self._validate(MonitorType.HTTP, DesiredMonitor(grace_period=Value(10)))
        assert [d.summary for d in diags.errors] == ["Grace period not allowed"]

    def test_ssl_flags_only_for_http_like(self) -> None:
        diags = self._validate(MonitorType.PORT, DesiredMonitor(port=Value(22), check_ssl_errors=Value(True)))
        assert [d.summary for d in diags.errors] == ["SSL option not allowed"]
