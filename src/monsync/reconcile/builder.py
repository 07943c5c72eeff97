"""Translate desired configuration into a remote create/update payload."""

import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from monsync.errors import ValidationError
from monsync.models.diagnostics import Diagnostics
from monsync.models.monitor import (
    DNS_RECORD_TYPES,
    AlertContactSpec,
    APIAssertions,
    DesiredMonitor,
    DNSRecords,
    MonitorConfig,
    MonitorState,
    MonitorType,
    PostValueType,
    UDPSettings,
)
from monsync.models.remote import (
    MonitorRequest,
    RemoteAlertContact,
    RemoteAPIAssertions,
    RemoteAssertionCheck,
    RemoteConfig,
    RemoteUDP,
)
from monsync.models.values import Cleared, Unknown, Unmanaged, Value, is_managed, unwrap
from monsync.reconcile.normalize import (
    normalize_ints,
    normalize_method,
    normalize_strings,
    normalize_tags,
)
from monsync.reconcile.validation import BODYLESS_METHODS, validate_desired
from monsync.reconcile.variants import DEFAULT_TIMEOUT_SECONDS, MonitorVariant, variant_for


@dataclass(frozen=True)
class DerivedDefaults:
    """Values computed once during build and reused by settle and assembly."""

    effective_method: str | None = None
    timeout: int | None = None
    grace_period: int | None = None
    post_value_type: PostValueType | None = None
    cleared_config_children: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildResult:
    """Payload plus everything later stages need to interpret it."""

    monitor_type: MonitorType
    request: MonitorRequest
    derived: DerivedDefaults
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


def effective_method(desired: DesiredMonitor, variant: MonitorVariant) -> str | None:
    """HTTP method actually used by the remote.

    An explicit method wins; otherwise POST when a body is declared, GET
    when not. Non HTTP-like variants have no method.
    """
    if not variant.http_like:
        return None
    explicit = normalize_method(unwrap(desired.http_method_type))
    if explicit:
        return explicit
    if _json_body(desired) is not None or _kv_body(desired) is not None:
        return "POST"
    return "GET"


def _json_body(desired: DesiredMonitor) -> str | None:
    body = unwrap(desired.post_value_data)
    if isinstance(body, str) and body.strip():
        return body
    return None


def _kv_body(desired: DesiredMonitor) -> dict[str, str] | None:
    kv = unwrap(desired.post_value_kv)
    if kv:
        return dict(kv)
    return None


def _text(v: Any, *, clear: bool) -> str | None:
    """Send values; send an explicit clear as "" only when clearing is allowed."""
    if isinstance(v, Value):
        return str(v.value)
    if isinstance(v, Cleared) and clear:
        return ""
    return None


class RequestBuilder:
    """Builds remote payloads from desired configuration.

    Validation runs first; any error diagnostic aborts the build with
    ValidationError so nothing reaches the remote.
    """

    def __init__(self, default_timeout: int = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.default_timeout = default_timeout

    def build(self, desired: DesiredMonitor, prior: MonitorState | None = None) -> BuildResult:
        """Build a create payload, or an update payload when prior is given.

        Raises:
            ValidationError: If the desired configuration is invalid.
        """
        diags = validate_desired(desired, prior)
        if diags.has_error:
            raise ValidationError(diags.errors)

        monitor_type: MonitorType = desired.type.value  # type: ignore[union-attr]
        variant = variant_for(monitor_type)
        updating = prior is not None

        timeout, grace = variant.request_timing(desired, self.default_timeout)
        method = effective_method(desired, variant)
        post_type, post_data = self._body(desired, method)
        config, cleared = self._config(desired.config, prior.config if prior else None)

        request = MonitorRequest(
            type=None if updating else monitor_type.value,
            friendly_name=_text(desired.name, clear=False),
            url=_text(desired.url, clear=False),
            interval=unwrap(desired.interval),
            timeout=timeout,
            grace_period=grace,
            http_method_type=method,
            http_username=_text(desired.http_username, clear=updating),
            http_password=_text(desired.http_password, clear=updating),
            auth_type=_text(desired.auth_type, clear=False),
            post_value_type=post_type.value if post_type else None,
            post_value_data=post_data,
            check_ssl_errors=unwrap(desired.check_ssl_errors),
            ssl_expiration_reminder=unwrap(desired.ssl_expiration_reminder, False),
            domain_expiration_reminder=unwrap(desired.domain_expiration_reminder, False),
            follow_redirections=unwrap(desired.follow_redirections, False),
            response_time_threshold=unwrap(desired.response_time_threshold),
            regional_data=self._region(desired),
            group_id=self._group(desired, updating),
            custom_http_headers=self._headers(desired),
            success_http_response_codes=self._collection(
                desired.success_http_response_codes, normalize_strings
            ),
            maintenance_windows_ids=self._collection(desired.maintenance_window_ids, normalize_ints),
            tag_names=self._collection(desired.tags, normalize_tags),
            assigned_alert_contacts=self._contacts(desired),
            config=config,
        )

        if variant.allows_port:
            request.port = unwrap(desired.port)
        if variant.allows_keyword:
            request.keyword_value = _text(desired.keyword_value, clear=False)
            request.keyword_type = _text(desired.keyword_type, clear=False)
            case = unwrap(desired.keyword_case_type)
            request.keyword_case_type = case.to_api() if case is not None else None

        derived = DerivedDefaults(
            effective_method=method,
            timeout=timeout,
            grace_period=grace,
            post_value_type=post_type,
            cleared_config_children=cleared,
        )
        logger.debug(
            "Built {} request for {} monitor: method={} timeout={} grace={} cleared={}",
            "update" if updating else "create",
            monitor_type.value,
            method,
            timeout,
            grace,
            list(cleared),
        )
        return BuildResult(monitor_type, request, derived, diags)

    # =========================================================================
    # Field helpers
    # =========================================================================

    def _body(self, desired: DesiredMonitor, method: str | None) -> tuple[PostValueType | None, Any]:
        if method is None or method in BODYLESS_METHODS:
            return None, None
        body = _json_body(desired)
        if body is not None:
            return PostValueType.RAW_JSON, json.loads(body)
        kv = _kv_body(desired)
        if kv is not None:
            return PostValueType.KEY_VALUE, kv
        return None, None

    def _region(self, desired: DesiredMonitor) -> str | None:
        region = unwrap(desired.regional_data)
        return region.strip().lower() if isinstance(region, str) else None

    def _group(self, desired: DesiredMonitor, updating: bool) -> int | None:
        if isinstance(desired.group_id, Cleared) and updating:
            return 0
        return unwrap(desired.group_id)

    def _headers(self, desired: DesiredMonitor) -> dict[str, str] | None:
        headers = desired.custom_http_headers
        if isinstance(headers, Value):
            return {k.strip(): v.strip() for k, v in headers.value.items() if k.strip()}
        if isinstance(headers, Cleared):
            return {}
        return None

    def _collection(self, v: Any, normalize: Any) -> list[Any] | None:
        if isinstance(v, Value):
            return list(normalize(v.value))
        if isinstance(v, Cleared):
            return []
        return None

    def _contacts(self, desired: DesiredMonitor) -> list[RemoteAlertContact] | None:
        contacts = desired.assigned_alert_contacts
        if isinstance(contacts, Cleared):
            return []
        if not isinstance(contacts, Value):
            return None
        items: list[AlertContactSpec] = list(contacts.value)
        out = [
            RemoteAlertContact(
                alert_contact_id=str(unwrap(c.alert_contact_id)).strip(),
                threshold=unwrap(c.threshold),
                recurrence=unwrap(c.recurrence),
            )
            for c in items
        ]
        return sorted(out, key=lambda c: c.alert_contact_id)

    # =========================================================================
    # Config block
    # =========================================================================

    def _config(self, desired: Any, prior: Any) -> tuple[RemoteConfig | None, tuple[str, ...]]:
        """Expand the config block, including clears for removed children.

        A child (or the whole block) the prior state managed but the desired
        configuration no longer mentions is sent as an explicit clear. Children
        that were never managed are left alone.
        """
        if isinstance(desired, Unknown):
            return None, ()

        prior_cfg = prior.value if isinstance(prior, Value) else MonitorConfig()
        if isinstance(desired, Unmanaged | Cleared) and not isinstance(prior, Value):
            return None, ()
        want = desired.value if isinstance(desired, Value) else MonitorConfig()

        out = RemoteConfig()
        cleared: list[str] = []
        touched = False

        days = want.ssl_expiration_period_days
        if isinstance(days, Value):
            out.ssl_expiration_period_days = list(normalize_ints(days.value))
            touched = True
        elif isinstance(days, Cleared) or self._removed(days, prior_cfg.ssl_expiration_period_days):
            out.ssl_expiration_period_days = []
            cleared.append("ssl_expiration_period_days")
            touched = True

        records, dns_cleared = self._dns(want.dns_records, prior_cfg.dns_records)
        if records is not None:
            out.dns_records = records
            cleared.extend(dns_cleared)
            touched = True

        version = want.ip_version
        if isinstance(version, Value):
            out.ip_version = version.value.value
            touched = True
        elif isinstance(version, Cleared) or self._removed(version, prior_cfg.ip_version):
            out.ip_version = ""
            cleared.append("ip_version")
            touched = True

        assertions = want.api_assertions
        if isinstance(assertions, Value):
            out.api_assertions = self._assertions(assertions.value)
            touched = True
        elif self._removed(assertions, prior_cfg.api_assertions):
            out.api_assertions = RemoteAPIAssertions(checks=[])
            cleared.append("api_assertions")
            touched = True

        udp = want.udp
        if isinstance(udp, Value):
            settings: UDPSettings = udp.value
            out.udp = RemoteUDP(
                payload=settings.payload.strip() if settings.payload is not None else None,
                packet_loss_threshold=settings.packet_loss_threshold,
            )
            touched = True
        elif self._removed(udp, prior_cfg.udp):
            out.udp = RemoteUDP()
            cleared.append("udp")
            touched = True

        if not touched and not isinstance(desired, Value):
            return None, ()
        return out, tuple(cleared)

    @staticmethod
    def _removed(want: Any, had: Any) -> bool:
        return isinstance(want, Unmanaged) and is_managed(had)

    def _dns(self, want: Any, had: Any) -> tuple[dict[str, list[str]] | None, list[str]]:
        if isinstance(want, Unknown):
            return None, []
        want_records = want.value if isinstance(want, Value) else DNSRecords()
        had_records = had.value if isinstance(had, Value) else DNSRecords()
        if not isinstance(want, Value) and not isinstance(had, Value):
            return None, []

        out: dict[str, list[str]] = {}
        cleared: list[str] = []
        for record_type in DNS_RECORD_TYPES:
            child = want_records.get(record_type)
            if isinstance(child, Value):
                out[record_type.upper()] = list(normalize_strings(child.value))
            elif isinstance(child, Cleared) or self._removed(child, had_records.get(record_type)):
                out[record_type.upper()] = []
                cleared.append(f"dns_records.{record_type}")
        if not out and not isinstance(want, Value):
            return None, []
        return out, cleared

    def _assertions(self, assertions: APIAssertions) -> RemoteAPIAssertions:
        checks = []
        for check in assertions.checks:
            target = None
            if check.target is not None and check.target.strip():
                target = json.loads(check.target)
            checks.append(
                RemoteAssertionCheck(
                    property=check.property.strip(),
                    comparison=check.comparison.strip(),
                    target=target,
                )
            )
        logic = assertions.logic.strip().upper() if assertions.logic else None
        return RemoteAPIAssertions(logic=logic, checks=checks)
