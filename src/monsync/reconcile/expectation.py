"""Expected remote state after a write.

Built from the request that was actually sent, so only fields the user
manages are asserted. Both sides go through the same normalization
before they are compared.
"""

from dataclasses import dataclass, field
from typing import Any

from monsync.config.models import SettleConfig
from monsync.models.monitor import MonitorType
from monsync.models.remote import MonitorRequest, MonitorSnapshot, RemoteConfig
from monsync.reconcile.builder import BuildResult
from monsync.reconcile.normalize import (
    keyword_case_label,
    normalize_assertion_checks,
    normalize_headers,
    normalize_ints,
    normalize_ip_version,
    normalize_method,
    normalize_region,
    normalize_strings,
    normalize_tags,
    unescape_html,
)
from monsync.reconcile.variants import Timing, variant_for

COLLECTION_FIELDS = frozenset(
    {"assigned_alert_contacts", "config.ssl_expiration_period_days", "maintenance_window_ids"}
)
NESTED_FIELDS = frozenset({"config.dns_records", "custom_http_headers", "config.api_assertions"})


@dataclass(frozen=True)
class MonitorExpectation:
    """Subset of remote fields a write is expected to produce."""

    monitor_type: MonitorType
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_build(cls, built: BuildResult) -> "MonitorExpectation":
        return cls.from_request(built.monitor_type, built.request, built.derived.effective_method)

    @classmethod
    def from_request(
        cls,
        monitor_type: MonitorType,
        request: MonitorRequest,
        effective_method: str | None = None,
    ) -> "MonitorExpectation":
        variant = variant_for(monitor_type)
        want: dict[str, Any] = {"type": monitor_type.value}

        if request.friendly_name is not None:
            want["name"] = unescape_html(request.friendly_name)
        if request.url is not None:
            want["url"] = unescape_html(request.url)
        if request.interval:
            want["interval"] = request.interval

        if variant.timing is Timing.TIMEOUT and request.timeout is not None:
            want["timeout"] = request.timeout
        if variant.timing is Timing.GRACE and request.grace_period is not None:
            want["grace_period"] = request.grace_period

        if variant.http_like:
            want["http_method_type"] = effective_method or normalize_method(request.http_method_type) or "GET"

        for name in ("http_username", "auth_type", "keyword_value", "keyword_type"):
            value = getattr(request, name)
            if value:
                want[name] = value
        if request.port is not None:
            want["port"] = request.port
        if request.keyword_case_type is not None:
            want["keyword_case_type"] = keyword_case_label(request.keyword_case_type)

        for name in ("follow_redirections", "ssl_expiration_reminder", "domain_expiration_reminder"):
            want[name] = bool(getattr(request, name))
        if request.check_ssl_errors is not None:
            want["check_ssl_errors"] = request.check_ssl_errors
        if request.response_time_threshold is not None:
            want["response_time_threshold"] = request.response_time_threshold
        if request.regional_data is not None:
            want["regional_data"] = normalize_region(request.regional_data)
        if request.group_id is not None:
            want["group_id"] = request.group_id

        if request.custom_http_headers is not None:
            want["custom_http_headers"] = normalize_headers(request.custom_http_headers)
        if request.tag_names is not None:
            want["tags"] = normalize_tags(request.tag_names)
        if request.assigned_alert_contacts is not None:
            want["assigned_alert_contacts"] = normalize_strings(
                c.alert_contact_id for c in request.assigned_alert_contacts
            )
        if request.success_http_response_codes:
            want["success_http_response_codes"] = normalize_strings(request.success_http_response_codes)
        if request.maintenance_windows_ids is not None:
            want["maintenance_window_ids"] = normalize_ints(request.maintenance_windows_ids)

        if request.config is not None:
            want.update(_config_expectation(request.config))

        return cls(monitor_type, want)

    # ---------------------------------------------------------------------

    def differences(self, snapshot: MonitorSnapshot) -> list[str]:
        """Field labels whose observed value does not match yet."""
        got = observe(snapshot, self.monitor_type)
        diffs = []
        for label, want in self.fields.items():
            have = got.get(label)
            if label == "config.dns_records":
                # only asserted record types; an empty want matches a missing got
                have = {key: have.get(key, ()) for key in want}
            if have != want:
                diffs.append(label)
        return diffs

    def matches(self, snapshot: MonitorSnapshot) -> bool:
        return not self.differences(snapshot)

    def required_matches(self, settle: SettleConfig) -> int:
        """Consecutive matches needed; server-rebuilt collections race longer."""
        asserted = set(self.fields)
        if asserted & NESTED_FIELDS:
            return settle.nested_required_matches
        if asserted & COLLECTION_FIELDS:
            return settle.collection_required_matches
        return settle.required_matches


def _config_expectation(config: RemoteConfig) -> dict[str, Any]:
    want: dict[str, Any] = {}
    if config.ssl_expiration_period_days is not None:
        want["config.ssl_expiration_period_days"] = normalize_ints(config.ssl_expiration_period_days)
    if config.dns_records is not None:
        want["config.dns_records"] = {
            key.upper(): normalize_strings(values or []) for key, values in config.dns_records.items()
        }
    if config.ip_version is not None:
        want["config.ip_version"] = normalize_ip_version(config.ip_version)
    if config.api_assertions is not None and config.api_assertions.checks:
        want["config.api_assertions"] = (
            (config.api_assertions.logic or "").strip().upper(),
            normalize_assertion_checks(
                (c.property, c.comparison, c.target) for c in config.api_assertions.checks
            ),
        )
    if config.udp is not None and (config.udp.payload or config.udp.packet_loss_threshold is not None):
        want["config.udp"] = (
            (config.udp.payload or "").strip(),
            config.udp.packet_loss_threshold,
        )
    return want


def observe(snapshot: MonitorSnapshot, monitor_type: MonitorType) -> dict[str, Any]:
    """Normalize a snapshot into the same labels an expectation uses."""
    variant = variant_for(monitor_type)
    method = normalize_method(snapshot.http_method_type)
    if variant.http_like and method is None:
        method = "GET"

    got: dict[str, Any] = {
        "type": (snapshot.type or "").strip().upper(),
        "name": unescape_html(snapshot.friendly_name or ""),
        "url": unescape_html(snapshot.url or ""),
        "interval": snapshot.interval,
        "timeout": snapshot.timeout,
        "grace_period": snapshot.grace_period,
        "http_method_type": method,
        "http_username": snapshot.http_username,
        "auth_type": snapshot.auth_type,
        "port": snapshot.port,
        "keyword_value": snapshot.keyword_value,
        "keyword_type": snapshot.keyword_type,
        "keyword_case_type": keyword_case_label(snapshot.keyword_case_type),
        "follow_redirections": bool(snapshot.follow_redirections),
        "ssl_expiration_reminder": bool(snapshot.ssl_expiration_reminder),
        "domain_expiration_reminder": bool(snapshot.domain_expiration_reminder),
        "check_ssl_errors": snapshot.check_ssl_errors,
        "response_time_threshold": snapshot.response_time_threshold,
        "regional_data": normalize_region(snapshot.regional_data),
        "group_id": snapshot.group_id,
        "custom_http_headers": normalize_headers(snapshot.custom_http_headers or {}),
        "tags": normalize_tags(snapshot.tag_names()),
        "assigned_alert_contacts": tuple(snapshot.contact_ids()),
        "success_http_response_codes": normalize_strings(snapshot.success_http_response_codes or []),
        "maintenance_window_ids": tuple(snapshot.manual_window_ids()),
    }

    config = snapshot.config or RemoteConfig()
    got["config.ssl_expiration_period_days"] = normalize_ints(config.ssl_expiration_period_days or [])
    got["config.ip_version"] = normalize_ip_version(config.ip_version)
    observed_dns = {k.upper(): v for k, v in (config.dns_records or {}).items()}
    got["config.dns_records"] = {
        key: normalize_strings(values or []) for key, values in observed_dns.items()
    }
    if config.api_assertions is not None:
        got["config.api_assertions"] = (
            (config.api_assertions.logic or "").strip().upper(),
            normalize_assertion_checks(
                (c.property, c.comparison, c.target) for c in config.api_assertions.checks or []
            ),
        )
    if config.udp is not None:
        got["config.udp"] = ((config.udp.payload or "").strip(), config.udp.packet_loss_threshold)

    return got
