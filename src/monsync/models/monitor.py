"""Monitor models: desired configuration and persisted state."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any

from monsync.models.values import UNMANAGED, Desired, Tri, is_managed


class MonitorType(StrEnum):
    """Monitor variant. Fixed for the lifetime of a monitor."""

    HTTP = "HTTP"
    KEYWORD = "KEYWORD"
    PING = "PING"
    PORT = "PORT"
    HEARTBEAT = "HEARTBEAT"
    DNS = "DNS"
    API = "API"
    UDP = "UDP"


class KeywordCaseType(StrEnum):
    """Keyword matching mode; the remote encodes it as 0 or 1."""

    CASE_SENSITIVE = "CaseSensitive"
    CASE_INSENSITIVE = "CaseInsensitive"

    def to_api(self) -> int:
        return 0 if self is KeywordCaseType.CASE_SENSITIVE else 1

    @classmethod
    def from_api(cls, value: int | None) -> "KeywordCaseType | None":
        if value is None:
            return None
        return cls.CASE_INSENSITIVE if value == 1 else cls.CASE_SENSITIVE


class IPVersion(StrEnum):
    """Address family restriction for network checks."""

    IPV4_ONLY = "ipv4Only"
    IPV6_ONLY = "ipv6Only"


class PostValueType(StrEnum):
    """Encoding of a request body sent by HTTP-like monitors."""

    RAW_JSON = "RAW_JSON"
    KEY_VALUE = "KEY_VALUE"


DNS_RECORD_TYPES: tuple[str, ...] = (
    "a",
    "aaaa",
    "cname",
    "mx",
    "ns",
    "txt",
    "srv",
    "ptr",
    "soa",
    "spf",
    "dnskey",
    "ds",
    "nsec",
    "nsec3",
)

CONFIG_CHILDREN: tuple[str, ...] = (
    "ssl_expiration_period_days",
    "dns_records",
    "ip_version",
    "api_assertions",
    "udp",
)


@dataclass(frozen=True)
class AlertContact:
    """Alert contact as applied on the remote monitor."""

    alert_contact_id: str
    threshold: int = 0
    recurrence: int = 0


@dataclass(frozen=True)
class AlertContactSpec:
    """Alert contact as declared; delays may be unknown until apply time."""

    alert_contact_id: Desired[str]
    threshold: Desired[int] = UNMANAGED
    recurrence: Desired[int] = UNMANAGED


@dataclass(frozen=True)
class AssertionCheck:
    """Single API assertion; target is JSON text or None."""

    property: str
    comparison: str
    target: str | None = None


@dataclass(frozen=True)
class APIAssertions:
    """Assertions evaluated against an API monitor's JSON response."""

    logic: str | None = None
    checks: tuple[AssertionCheck, ...] = ()


@dataclass(frozen=True)
class UDPSettings:
    """Payload and loss threshold for UDP monitors."""

    payload: str | None = None
    packet_loss_threshold: int | None = None


@dataclass(frozen=True)
class DNSRecords:
    """Expected DNS answers, keyed by lower-case record type.

    A record type missing from the mapping is unmanaged.
    """

    records: Mapping[str, Tri[tuple[str, ...]]] = field(default_factory=dict)

    def get(self, record_type: str) -> Tri[tuple[str, ...]]:
        return self.records.get(record_type, UNMANAGED)

    def managed_types(self) -> list[str]:
        return [t for t in DNS_RECORD_TYPES if is_managed(self.get(t))]


@dataclass(frozen=True)
class MonitorConfig:
    """Nested config block.

    The block itself can be unmanaged or present, and each child carries
    its own tri-state independently of the block.
    """

    ssl_expiration_period_days: Desired[tuple[int, ...]] = UNMANAGED
    dns_records: Desired[DNSRecords] = UNMANAGED
    ip_version: Desired[IPVersion] = UNMANAGED
    api_assertions: Desired[APIAssertions] = UNMANAGED
    udp: Desired[UDPSettings] = UNMANAGED

    def managed_children(self) -> list[str]:
        return [name for name in CONFIG_CHILDREN if is_managed(getattr(self, name))]


@dataclass(frozen=True)
class MonitorFields:
    """Fields shared by desired configuration and persisted state."""

    type: Desired[MonitorType] = UNMANAGED
    name: Desired[str] = UNMANAGED
    url: Desired[str] = UNMANAGED
    interval: Desired[int] = UNMANAGED
    timeout: Desired[int] = UNMANAGED
    grace_period: Desired[int] = UNMANAGED
    http_method_type: Desired[str] = UNMANAGED
    http_username: Desired[str] = UNMANAGED
    http_password: Desired[str] = UNMANAGED
    auth_type: Desired[str] = UNMANAGED
    post_value_data: Desired[str] = UNMANAGED
    post_value_kv: Desired[Mapping[str, str]] = UNMANAGED
    port: Desired[int] = UNMANAGED
    keyword_value: Desired[str] = UNMANAGED
    keyword_type: Desired[str] = UNMANAGED
    keyword_case_type: Desired[KeywordCaseType] = UNMANAGED
    follow_redirections: Desired[bool] = UNMANAGED
    ssl_expiration_reminder: Desired[bool] = UNMANAGED
    domain_expiration_reminder: Desired[bool] = UNMANAGED
    check_ssl_errors: Desired[bool] = UNMANAGED
    response_time_threshold: Desired[int] = UNMANAGED
    regional_data: Desired[str] = UNMANAGED
    group_id: Desired[int] = UNMANAGED
    custom_http_headers: Desired[Mapping[str, str]] = UNMANAGED
    success_http_response_codes: Desired[tuple[str, ...]] = UNMANAGED
    tags: Desired[tuple[str, ...]] = UNMANAGED
    maintenance_window_ids: Desired[tuple[int, ...]] = UNMANAGED
    assigned_alert_contacts: Desired[tuple[Any, ...]] = UNMANAGED
    config: Desired[MonitorConfig] = UNMANAGED
    paused: Desired[bool] = UNMANAGED


@dataclass(frozen=True)
class DesiredMonitor(MonitorFields):
    """User intent for one monitor.

    assigned_alert_contacts holds AlertContactSpec items.
    """


@dataclass(frozen=True)
class MonitorState(MonitorFields):
    """Last committed reconciliation result.

    Never holds unknown placeholders; assigned_alert_contacts holds
    AlertContact items.
    """

    id: str = ""
    status: str | None = None
    post_value_type: PostValueType | None = None


FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in fields(MonitorFields))
