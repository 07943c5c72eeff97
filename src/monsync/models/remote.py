"""Wire models for the remote monitor API.

Snapshots are parsed leniently (unknown keys ignored, ids coerced);
requests are dumped with camelCase aliases and None fields omitted so
that "not sent" and "sent empty" stay distinguishable on the wire.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ALLOWED_REGIONS = frozenset({"na", "eu", "as", "oc"})


class RemoteModel(BaseModel):
    """Base for all remote payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class RemoteAlertContact(RemoteModel):
    """Alert contact assignment."""

    alert_contact_id: str
    threshold: int | None = None
    recurrence: int | None = None

    @field_validator("alert_contact_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """The API returns ids as numbers or strings."""
        return str(v).strip()


class RemoteMaintenanceWindow(RemoteModel):
    """Maintenance window reference on a monitor."""

    id: int
    auto_add_monitors: bool = False


class RemoteTag(RemoteModel):
    """Tag attached to a monitor."""

    id: int | None = None
    name: str


class RemoteAssertionCheck(RemoteModel):
    """Single API assertion check; target is any JSON value."""

    property: str = ""
    comparison: str = ""
    target: Any = None


class RemoteAPIAssertions(RemoteModel):
    """API assertion set."""

    logic: str | None = None
    checks: list[RemoteAssertionCheck] | None = None


class RemoteUDP(RemoteModel):
    """UDP monitor settings."""

    payload: str | None = None
    packet_loss_threshold: int | None = None


class RemoteConfig(RemoteModel):
    """Nested monitor config; DNS record keys are upper-case record types."""

    ssl_expiration_period_days: list[int] | None = None
    dns_records: dict[str, list[str] | None] | None = None
    ip_version: str | None = None
    api_assertions: RemoteAPIAssertions | None = None
    udp: RemoteUDP | None = None


class MonitorSnapshot(RemoteModel):
    """Observed remote state at one point in time. Never persisted."""

    id: str
    friendly_name: str | None = None
    url: str | None = None
    type: str | None = None
    interval: int | None = None
    timeout: int | None = None
    grace_period: int | None = None
    http_method_type: str | None = None
    http_username: str | None = None
    auth_type: str | None = None
    port: int | None = None
    keyword_value: str | None = None
    keyword_type: str | None = None
    keyword_case_type: int | None = None
    post_value_type: str | None = None
    post_value_data: Any = None
    assigned_alert_contacts: list[RemoteAlertContact] = Field(default_factory=list)
    check_ssl_errors: bool | None = None
    custom_http_headers: dict[str, str] | None = None
    success_http_response_codes: list[str] | None = None
    maintenance_windows: list[RemoteMaintenanceWindow] = Field(default_factory=list)
    tags: list[RemoteTag] = Field(default_factory=list)
    ssl_expiration_reminder: bool | None = None
    domain_expiration_reminder: bool | None = None
    follow_redirections: bool | None = None
    response_time_threshold: int | None = None
    regional_data: str | None = None
    group_id: int | None = None
    status: str | None = None
    config: RemoteConfig | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("regional_data", mode="before")
    @classmethod
    def flatten_region(cls, v: Any) -> str | None:
        """Accept a plain region or a {"REGION": [...]} object.

        For the object form the first known region code in the list wins.
        """
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, dict):
            codes = v.get("REGION", v.get("region"))
            if isinstance(codes, str):
                codes = [codes]
            for code in codes or ():
                if isinstance(code, str) and code.strip().lower() in ALLOWED_REGIONS:
                    return code.strip().lower()
            return None
        return str(v)

    @field_validator("assigned_alert_contacts", "maintenance_windows", "tags", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def contact_ids(self) -> list[str]:
        return sorted({c.alert_contact_id for c in self.assigned_alert_contacts if c.alert_contact_id})

    def manual_window_ids(self) -> list[int]:
        """Window ids excluding those attached automatically by the remote."""
        return sorted({w.id for w in self.maintenance_windows if not w.auto_add_monitors})

    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]


class MonitorRequest(RemoteModel):
    """Create or update payload. Fields left as None are not sent."""

    type: str | None = None
    friendly_name: str | None = None
    url: str | None = None
    interval: int | None = None
    timeout: int | None = None
    grace_period: int | None = None
    http_method_type: str | None = None
    http_username: str | None = None
    http_password: str | None = None
    auth_type: str | None = None
    port: int | None = None
    keyword_value: str | None = None
    keyword_type: str | None = None
    keyword_case_type: int | None = None
    post_value_type: str | None = None
    post_value_data: Any = None
    assigned_alert_contacts: list[RemoteAlertContact] | None = None
    check_ssl_errors: bool | None = None
    custom_http_headers: dict[str, str] | None = None
    success_http_response_codes: list[str] | None = None
    maintenance_windows_ids: list[int] | None = None
    tag_names: list[str] | None = None
    ssl_expiration_reminder: bool | None = None
    domain_expiration_reminder: bool | None = None
    follow_redirections: bool | None = None
    response_time_threshold: int | None = None
    regional_data: str | None = None
    group_id: int | None = None
    config: RemoteConfig | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the wire."""
        return self.model_dump(by_alias=True, exclude_none=True)
