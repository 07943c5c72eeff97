"""Validation of desired configuration before any remote call.

Variant-independent rules live here; rules tied to one monitor type are
delegated to its MonitorVariant.
"""

import json
from collections.abc import Mapping

from monsync.models.diagnostics import Diagnostics
from monsync.models.monitor import (
    APIAssertions,
    DesiredMonitor,
    IPVersion,
    MonitorState,
)
from monsync.models.values import Value, is_known, is_managed, unwrap
from monsync.reconcile.normalize import ALLOWED_REGIONS, has_html_entity, url_ip_literal
from monsync.reconcile.variants import variant_for

MIN_INTERVAL_SECONDS = 30
AUTH_TYPES = frozenset({"NONE", "HTTP_BASIC", "DIGEST", "BEARER"})
KEYWORD_TYPES = frozenset({"ALERT_EXISTS", "ALERT_NOT_EXISTS"})
BODYLESS_METHODS = frozenset({"GET", "HEAD"})
ASSERTION_LOGIC = frozenset({"AND", "OR"})
ASSERTION_COMPARISONS = frozenset(
    {
        "equals",
        "not_equals",
        "contains",
        "not_contains",
        "greater_than",
        "less_than",
        "is_null",
        "is_not_null",
    }
)
MAX_ASSERTION_CHECKS = 5


def validate_desired(desired: DesiredMonitor, prior: MonitorState | None = None) -> Diagnostics:
    """Check desired configuration; errors mean nothing may be sent."""
    diags = Diagnostics()

    monitor_type = desired.type
    if not isinstance(monitor_type, Value):
        diags.add_error("Missing monitor type", "type must be set to a known value", "type")
        return diags

    if prior is not None and isinstance(prior.type, Value) and prior.type.value != monitor_type.value:
        diags.add_error(
            "Monitor type cannot change",
            f"changing type from {prior.type.value} to {monitor_type.value} requires replacing the monitor",
            "type",
        )

    variant = variant_for(monitor_type.value)
    if prior is None and variant.requires_config and not is_managed(desired.config):
        diags.add_error(
            "Missing config",
            f"config is required when creating {monitor_type.value.value} monitors",
            "config",
        )

    _validate_required(desired, variant.requires_url, diags)
    _validate_text(desired, variant.http_like, diags)
    _validate_body(desired, diags)
    _validate_contacts(desired, diags)
    _validate_headers(desired, diags)
    _validate_misc(desired, diags)
    _validate_ip_version(desired, diags)
    _validate_assertions(desired, diags)

    variant.validate(desired, diags)
    return diags


def _validate_required(desired: DesiredMonitor, requires_url: bool, diags: Diagnostics) -> None:
    if not is_managed(desired.name):
        diags.add_error("Missing name", "name is required", "name")
    if requires_url and not is_managed(desired.url):
        diags.add_error("Missing URL", "url is required", "url")
    if not is_managed(desired.interval):
        diags.add_error("Missing interval", "interval is required", "interval")
    interval = unwrap(desired.interval)
    if interval is not None and interval < MIN_INTERVAL_SECONDS:
        diags.add_error(
            "Interval too short",
            f"interval must be at least {MIN_INTERVAL_SECONDS} seconds",
            "interval",
        )


def _validate_text(desired: DesiredMonitor, http_like: bool, diags: Diagnostics) -> None:
    for field in ("name", "url"):
        text = unwrap(getattr(desired, field))
        if isinstance(text, str) and has_html_entity(text):
            diags.add_error(
                "HTML entities not allowed",
                f"{field} must be plain text; write the characters instead of HTML entities",
                field,
            )

    url = unwrap(desired.url)
    if http_like and isinstance(url, str) and not url.lower().startswith(("http://", "https://")):
        diags.add_error("Invalid URL", "url must start with http:// or https://", "url")

    is_https = isinstance(url, str) and url.lower().startswith("https://")
    for field in ("ssl_expiration_reminder", "check_ssl_errors"):
        if unwrap(getattr(desired, field)) is True and is_known(desired.url) and not is_https:
            diags.add_error("HTTPS required", f"{field} requires an https:// url", field)


def _validate_body(desired: DesiredMonitor, diags: Diagnostics) -> None:
    has_json = is_managed(desired.post_value_data) and not _is_cleared_text(desired.post_value_data)
    has_kv = isinstance(desired.post_value_kv, Value)

    if has_json and has_kv:
        diags.add_error(
            "Conflicting request bodies",
            "set at most one of post_value_data and post_value_kv",
            "post_value_data",
        )

    body = unwrap(desired.post_value_data)
    if isinstance(body, str) and body.strip():
        try:
            json.loads(body)
        except ValueError as e:
            diags.add_error("Invalid JSON body", f"post_value_data must be valid JSON: {e}", "post_value_data")

    method = unwrap(desired.http_method_type)
    if isinstance(method, str) and method.strip().upper() in BODYLESS_METHODS and (has_json or has_kv):
        diags.add_error(
            "Body not allowed",
            f"{method.strip().upper()} requests cannot carry a body",
            "http_method_type",
        )


def _is_cleared_text(v: object) -> bool:
    return isinstance(v, Value) and isinstance(v.value, str) and not v.value.strip()


def _validate_contacts(desired: DesiredMonitor, diags: Diagnostics) -> None:
    contacts = desired.assigned_alert_contacts
    if not isinstance(contacts, Value):
        return

    seen: set[str] = set()
    for index, item in enumerate(contacts.value):
        path = f"assigned_alert_contacts[{index}]"
        cid = str(unwrap(item.alert_contact_id) or "").strip()
        if not is_known(item.alert_contact_id):
            diags.add_error("Unknown alert contact id", "alert_contact_id must be known before apply", path)
        elif not cid:
            diags.add_error("Missing alert contact id", "alert_contact_id must not be empty", path)
        elif cid in seen:
            diags.add_error("Duplicate alert contact", f"alert contact {cid} is listed more than once", path)
        else:
            seen.add(cid)

        for field, label in (("threshold", "Missing threshold"), ("recurrence", "Missing recurrence")):
            value = getattr(item, field)
            if not isinstance(value, Value):
                diags.add_error(
                    label,
                    f"{field} must be set to a known value for every alert contact",
                    f"{path}.{field}",
                )
            elif value.value < 0:
                diags.add_error(f"Invalid {field}", f"{field} must not be negative", f"{path}.{field}")


def _validate_headers(desired: DesiredMonitor, diags: Diagnostics) -> None:
    headers = unwrap(desired.custom_http_headers)
    if not isinstance(headers, Mapping):
        return
    seen: dict[str, str] = {}
    for key in headers:
        lowered = key.strip().lower()
        if lowered in seen:
            diags.add_error(
                "Duplicate header",
                f"custom_http_headers has {seen[lowered]!r} and {key!r}; names are case-insensitive",
                "custom_http_headers",
            )
        seen[lowered] = key


def _validate_misc(desired: DesiredMonitor, diags: Diagnostics) -> None:
    if is_managed(desired.http_password) and not is_managed(desired.http_username):
        diags.add_warning(
            "Password without username",
            "http_password is set but http_username is not; most auth types need both",
            "http_password",
        )

    auth = unwrap(desired.auth_type)
    if isinstance(auth, str) and auth not in AUTH_TYPES:
        diags.add_error("Invalid auth type", f"auth_type must be one of {sorted(AUTH_TYPES)}", "auth_type")

    keyword_type = unwrap(desired.keyword_type)
    if isinstance(keyword_type, str) and keyword_type not in KEYWORD_TYPES:
        diags.add_error(
            "Invalid keyword type",
            f"keyword_type must be one of {sorted(KEYWORD_TYPES)}",
            "keyword_type",
        )

    region = unwrap(desired.regional_data)
    if isinstance(region, str) and region.strip().lower() not in ALLOWED_REGIONS:
        diags.add_error(
            "Invalid region",
            f"regional_data must be one of {sorted(ALLOWED_REGIONS)}",
            "regional_data",
        )

    port = unwrap(desired.port)
    if port is not None and not 1 <= port <= 65535:
        diags.add_error("Invalid port", "port must be between 1 and 65535", "port")


def _validate_ip_version(desired: DesiredMonitor, diags: Diagnostics) -> None:
    cfg = unwrap(desired.config)
    if cfg is None:
        return
    version = unwrap(cfg.ip_version)
    url = unwrap(desired.url)
    if version is None or not isinstance(url, str):
        return
    literal = url_ip_literal(url)
    if literal is None:
        return
    if literal.version == 4 and version == IPVersion.IPV6_ONLY:
        diags.add_error(
            "Incompatible IP version",
            "url is an IPv4 literal but config.ip_version is ipv6Only",
            "config.ip_version",
        )
    if literal.version == 6 and version == IPVersion.IPV4_ONLY:
        diags.add_error(
            "Incompatible IP version",
            "url is an IPv6 literal but config.ip_version is ipv4Only",
            "config.ip_version",
        )


def _validate_assertions(desired: DesiredMonitor, diags: Diagnostics) -> None:
    cfg = unwrap(desired.config)
    if cfg is None:
        return
    assertions = unwrap(cfg.api_assertions)
    if not isinstance(assertions, APIAssertions):
        return
    base = "config.api_assertions"

    logic = (assertions.logic or "").strip().upper()
    if logic not in ASSERTION_LOGIC:
        diags.add_error("Invalid assertion logic", "logic must be AND or OR", f"{base}.logic")

    if not 1 <= len(assertions.checks) <= MAX_ASSERTION_CHECKS:
        diags.add_error(
            "Invalid assertion count",
            f"between 1 and {MAX_ASSERTION_CHECKS} checks are required",
            f"{base}.checks",
        )

    for index, check in enumerate(assertions.checks):
        path = f"{base}.checks[{index}]"
        if not check.property.strip().startswith("$"):
            diags.add_error("Invalid assertion property", "property must be a JSONPath starting with $", path)
        comparison = check.comparison.strip().lower()
        if comparison not in ASSERTION_COMPARISONS:
            diags.add_error(
                "Invalid assertion comparison",
                f"comparison must be one of {sorted(ASSERTION_COMPARISONS)}",
                path,
            )
            continue
        _validate_assertion_target(comparison, check.target, path, diags)


def _validate_assertion_target(
    comparison: str, target_text: str | None, path: str, diags: Diagnostics
) -> None:
    if comparison in ("is_null", "is_not_null"):
        if target_text is not None and target_text.strip():
            diags.add_error("Unexpected assertion target", f"{comparison} takes no target", path)
        return

    if target_text is None or not target_text.strip():
        diags.add_error("Missing assertion target", f"{comparison} requires a target", path)
        return
    try:
        target = json.loads(target_text)
    except ValueError:
        diags.add_error("Invalid assertion target", "target must contain valid JSON", path)
        return

    if comparison in ("greater_than", "less_than"):
        if isinstance(target, bool) or not isinstance(target, int | float):
            diags.add_error("Invalid assertion target", f"{comparison} requires a number", path)
    elif comparison in ("contains", "not_contains"):
        if not isinstance(target, str) or not target:
            diags.add_error("Invalid assertion target", f"{comparison} requires a non-empty string", path)
    elif isinstance(target, str):
        if not target:
            diags.add_error("Invalid assertion target", f"{comparison} requires a non-empty value", path)
    elif not isinstance(target, int | float | bool):
        diags.add_error(
            "Invalid assertion target",
            f"{comparison} requires a string, number or boolean",
            path,
        )
