"""Monitor variants.

Each monitor type is a MonitorVariant subclass that declares which fields
it accepts and which timing semantics apply. The registry is checked for
exhaustiveness when this module is imported.
"""

from enum import StrEnum
from typing import ClassVar

from monsync.models.diagnostics import Diagnostics
from monsync.models.monitor import DesiredMonitor, MonitorConfig, MonitorType
from monsync.models.remote import MonitorSnapshot
from monsync.models.values import UNMANAGED, Value, is_known, is_managed, unwrap

DEFAULT_TIMEOUT_SECONDS = 30
KEYWORD_VALUE_MAX_LENGTH = 500


class Timing(StrEnum):
    """Which of timeout and grace period a variant uses."""

    TIMEOUT = "timeout"
    GRACE = "grace"
    NONE = "none"


class MonitorVariant:
    """Field rules and timing semantics for one monitor type."""

    monitor_type: ClassVar[MonitorType]
    timing: ClassVar[Timing] = Timing.TIMEOUT
    http_like: ClassVar[bool] = False
    requires_url: ClassVar[bool] = True
    allows_port: ClassVar[bool] = False
    allows_keyword: ClassVar[bool] = False
    allows_ssl_flags: ClassVar[bool] = False
    allows_ip_version: ClassVar[bool] = False
    requires_config: ClassVar[bool] = False
    config_children: ClassVar[frozenset[str]] = frozenset()
    required_config_children: ClassVar[frozenset[str]] = frozenset()

    # ---------------------------------------------------------------------
    # Timing
    # ---------------------------------------------------------------------

    def request_timing(
        self, desired: DesiredMonitor, default_timeout: int = DEFAULT_TIMEOUT_SECONDS
    ) -> tuple[int | None, int | None]:
        """Return (timeout, grace_period) to send; None means omit."""
        if self.timing is Timing.GRACE:
            return None, unwrap(desired.grace_period)
        if self.timing is Timing.NONE:
            return 0, 0
        return unwrap(desired.timeout, default_timeout), 0

    def state_timing(
        self,
        planned_timeout: int | None,
        planned_grace: int | None,
        observed: MonitorSnapshot,
    ) -> tuple[object, object]:
        """Return persisted (timeout, grace_period) for an observation."""
        if self.timing is Timing.GRACE:
            if observed.grace_period is not None:
                return UNMANAGED, Value(observed.grace_period)
            if planned_grace is not None:
                return UNMANAGED, Value(planned_grace)
            return UNMANAGED, UNMANAGED
        if self.timing is Timing.NONE:
            return UNMANAGED, UNMANAGED
        if observed.timeout is not None and observed.timeout > 0:
            return Value(observed.timeout), UNMANAGED
        return Value(planned_timeout or DEFAULT_TIMEOUT_SECONDS), UNMANAGED

    # ---------------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------------

    def validate(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        """Add diagnostics for fields this variant forbids or requires."""
        name = self.monitor_type.value
        self._validate_timing(desired, diags)

        if not self.allows_port and is_managed(desired.port):
            diags.add_error("Port not allowed", f"port is only valid for PORT monitors, not {name}", "port")

        if not self.allows_keyword:
            for field in ("keyword_type", "keyword_value", "keyword_case_type"):
                if is_managed(getattr(desired, field)):
                    diags.add_error(
                        "Keyword field not allowed",
                        f"{field} is only valid for KEYWORD monitors",
                        field,
                    )

        if not self.http_like:
            for field in ("http_method_type", "post_value_data", "post_value_kv"):
                if is_managed(getattr(desired, field)):
                    diags.add_error(
                        "HTTP field not allowed",
                        f"{field} is only valid for HTTP, KEYWORD and API monitors",
                        field,
                    )

        if not self.allows_ssl_flags:
            for field in ("ssl_expiration_reminder", "check_ssl_errors"):
                if unwrap(getattr(desired, field)) is True:
                    diags.add_error(
                        "SSL option not allowed",
                        f"{field} is only valid for HTTP, KEYWORD and API monitors",
                        field,
                    )

        self._validate_config(desired, diags)

    def _validate_timing(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        name = self.monitor_type.value
        if self.timing is Timing.GRACE:
            if not is_managed(desired.grace_period):
                diags.add_error(
                    "Missing grace period",
                    f"grace_period is required for {name} monitors",
                    "grace_period",
                )
            if is_managed(desired.timeout):
                diags.add_error(
                    "Timeout not allowed",
                    f"{name} monitors use grace_period instead of timeout",
                    "timeout",
                )
        elif self.timing is Timing.NONE:
            for field in ("timeout", "grace_period"):
                if is_managed(getattr(desired, field)):
                    diags.add_warning(
                        f"{field} is ignored",
                        f"{name} monitors do not use {field}; it will not be sent",
                        field,
                    )
        elif is_managed(desired.grace_period):
            diags.add_error(
                "Grace period not allowed",
                f"grace_period is only valid for HEARTBEAT monitors, not {name}",
                "grace_period",
            )

    def _validate_config(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        cfg = desired.config
        if not is_known(cfg):
            return
        managed: set[str] = set()
        if isinstance(cfg, Value):
            block: MonitorConfig = cfg.value
            managed = set(block.managed_children())
            for child in sorted(managed - self._allowed_children()):
                diags.add_error(
                    "Config field not allowed",
                    f"config.{child} is not valid for {self.monitor_type.value} monitors",
                    f"config.{child}",
                )

        for child in sorted(self.required_config_children - managed):
            diags.add_error(
                "Missing config field",
                f"config.{child} is required for {self.monitor_type.value} monitors",
                f"config.{child}",
            )

    def _allowed_children(self) -> frozenset[str]:
        allowed = set(self.config_children)
        if self.allows_ip_version:
            allowed.add("ip_version")
        return frozenset(allowed)


class HTTPVariant(MonitorVariant):
    monitor_type = MonitorType.HTTP
    http_like = True
    allows_ssl_flags = True
    allows_ip_version = True


class KeywordVariant(MonitorVariant):
    monitor_type = MonitorType.KEYWORD
    http_like = True
    allows_keyword = True
    allows_ssl_flags = True
    allows_ip_version = True

    def validate(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        super().validate(desired, diags)
        for field in ("keyword_type", "keyword_case_type", "keyword_value"):
            if not is_managed(getattr(desired, field)):
                diags.add_error("Missing keyword field", f"{field} is required for KEYWORD monitors", field)
        value = unwrap(desired.keyword_value)
        if isinstance(value, str) and len(value) > KEYWORD_VALUE_MAX_LENGTH:
            diags.add_error(
                "Keyword value too long",
                f"keyword_value must be at most {KEYWORD_VALUE_MAX_LENGTH} characters",
                "keyword_value",
            )


class PingVariant(MonitorVariant):
    monitor_type = MonitorType.PING
    timing = Timing.NONE
    allows_ip_version = True


class PortVariant(MonitorVariant):
    monitor_type = MonitorType.PORT
    allows_port = True
    allows_ip_version = True

    def validate(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        super().validate(desired, diags)
        if not is_managed(desired.port):
            diags.add_error("Missing port", "port is required for PORT monitors", "port")


class HeartbeatVariant(MonitorVariant):
    monitor_type = MonitorType.HEARTBEAT
    timing = Timing.GRACE
    requires_url = False


class DNSVariant(MonitorVariant):
    monitor_type = MonitorType.DNS
    timing = Timing.NONE
    requires_config = True
    config_children = frozenset({"ssl_expiration_period_days", "dns_records"})

    def validate(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        super().validate(desired, diags)
        cfg = desired.config
        if isinstance(cfg, Value) and not cfg.value.managed_children():
            diags.add_warning(
                "Empty DNS config",
                "config block has no managed fields; nothing will be enforced",
                "config",
            )


class APIVariant(MonitorVariant):
    monitor_type = MonitorType.API
    http_like = True
    allows_ssl_flags = True
    requires_config = True
    config_children = frozenset({"api_assertions"})
    required_config_children = frozenset({"api_assertions"})


class UDPVariant(MonitorVariant):
    monitor_type = MonitorType.UDP
    requires_config = True
    config_children = frozenset({"udp"})
    required_config_children = frozenset({"udp"})

    def validate(self, desired: DesiredMonitor, diags: Diagnostics) -> None:
        super().validate(desired, diags)
        cfg = desired.config
        if not isinstance(cfg, Value) or not isinstance(cfg.value.udp, Value):
            return
        threshold = cfg.value.udp.value.packet_loss_threshold
        if threshold is not None and not 0 <= threshold <= 100:
            diags.add_error(
                "Invalid packet loss threshold",
                "config.udp.packet_loss_threshold must be between 0 and 100",
                "config.udp.packet_loss_threshold",
            )


VARIANTS: dict[MonitorType, MonitorVariant] = {
    cls.monitor_type: cls()
    for cls in (
        HTTPVariant,
        KeywordVariant,
        PingVariant,
        PortVariant,
        HeartbeatVariant,
        DNSVariant,
        APIVariant,
        UDPVariant,
    )
}

_missing = set(MonitorType) - set(VARIANTS)
if _missing:
    raise RuntimeError(f"No variant registered for: {', '.join(sorted(_missing))}")


def variant_for(monitor_type: MonitorType | str) -> MonitorVariant:
    """Look up the variant for a monitor type."""
    return VARIANTS[MonitorType(str(monitor_type).upper())]
