"""Conversion between monitor models and plain mappings.

Plain mappings are what users declare (YAML/JSON) and what the state
store persists. None means unmanaged, an empty string or collection
means cleared, and the "(known after apply)" token means unknown.
"""

import json
from collections.abc import Callable, Mapping
from typing import Any

from monsync.models.monitor import (
    DNS_RECORD_TYPES,
    AlertContact,
    AlertContactSpec,
    APIAssertions,
    AssertionCheck,
    DesiredMonitor,
    DNSRecords,
    IPVersion,
    KeywordCaseType,
    MonitorConfig,
    MonitorState,
    MonitorType,
    PostValueType,
    UDPSettings,
)
from monsync.models.values import (
    UNKNOWN,
    UNKNOWN_TOKEN,
    UNMANAGED,
    Unmanaged,
    Value,
    from_raw,
    to_raw,
)


def _str_tuple(raw: Any) -> tuple[str, ...]:
    return tuple(str(item) for item in raw)


def _int_tuple(raw: Any) -> tuple[int, ...]:
    return tuple(int(item) for item in raw)


def _str_map(raw: Any) -> dict[str, str]:
    return {str(k): str(v) for k, v in raw.items()}


def _json_text(raw: Any) -> str:
    """Body JSON may be declared as text or inline as a mapping."""
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, sort_keys=True, separators=(",", ":"))


def _list() -> list[Any]:
    return []


def _dict() -> dict[str, Any]:
    return {}


def _str() -> str:
    return ""


# field name -> (decode, encode, empty factory)
_SCALAR_CODECS: dict[str, tuple[Callable[[Any], Any] | None, Callable[[Any], Any] | None, Callable[[], Any]]] = {
    "type": (lambda r: MonitorType(str(r).upper()), str, _str),
    "name": (str, None, _str),
    "url": (str, None, _str),
    "interval": (int, None, _str),
    "timeout": (int, None, _str),
    "grace_period": (int, None, _str),
    "http_method_type": (str, None, _str),
    "http_username": (str, None, _str),
    "http_password": (str, None, _str),
    "auth_type": (str, None, _str),
    "post_value_data": (_json_text, None, _str),
    "post_value_kv": (_str_map, dict, _dict),
    "port": (int, None, _str),
    "keyword_value": (str, None, _str),
    "keyword_type": (str, None, _str),
    "keyword_case_type": (KeywordCaseType, str, _str),
    "follow_redirections": (bool, None, _str),
    "ssl_expiration_reminder": (bool, None, _str),
    "domain_expiration_reminder": (bool, None, _str),
    "check_ssl_errors": (bool, None, _str),
    "response_time_threshold": (int, None, _str),
    "regional_data": (str, None, _str),
    "group_id": (int, None, _str),
    "custom_http_headers": (_str_map, dict, _dict),
    "success_http_response_codes": (_str_tuple, list, _list),
    "tags": (_str_tuple, list, _list),
    "maintenance_window_ids": (_int_tuple, list, _list),
    "paused": (bool, None, _str),
}


# =========================================================================
# Config block
# =========================================================================


def config_from_raw(raw: Any) -> Any:
    """Decode a config block. An empty mapping is a present, empty block."""
    if raw is None:
        return UNMANAGED
    if raw == UNKNOWN_TOKEN:
        return UNKNOWN
    if not isinstance(raw, Mapping):
        raise ValueError(f"config must be a mapping, not {type(raw).__name__}")

    dns_raw = raw.get("dns_records")
    if dns_raw is None:
        dns: Any = UNMANAGED
    elif dns_raw == UNKNOWN_TOKEN:
        dns = UNKNOWN
    else:
        dns = Value(
            DNSRecords(
                {
                    key: from_raw(dns_raw.get(key), _str_tuple)
                    for key in DNS_RECORD_TYPES
                    if dns_raw.get(key) is not None
                }
            )
        )

    return Value(
        MonitorConfig(
            ssl_expiration_period_days=from_raw(raw.get("ssl_expiration_period_days"), _int_tuple),
            dns_records=dns,
            ip_version=from_raw(raw.get("ip_version"), IPVersion),
            api_assertions=_block_from_raw(raw.get("api_assertions"), _assertions_from_raw),
            udp=_block_from_raw(raw.get("udp"), _udp_from_raw),
        )
    )


def _block_from_raw(raw: Any, decode: Callable[[Mapping[str, Any]], Any]) -> Any:
    if raw is None:
        return UNMANAGED
    if raw == UNKNOWN_TOKEN:
        return UNKNOWN
    return Value(decode(raw))


def _assertions_from_raw(raw: Mapping[str, Any]) -> APIAssertions:
    checks = []
    for check in raw.get("checks") or []:
        target = check.get("target")
        if target is not None and not isinstance(target, str):
            target = json.dumps(target)
        checks.append(
            AssertionCheck(
                property=str(check.get("property", "")),
                comparison=str(check.get("comparison", "")),
                target=target,
            )
        )
    return APIAssertions(logic=raw.get("logic"), checks=tuple(checks))


def _udp_from_raw(raw: Mapping[str, Any]) -> UDPSettings:
    threshold = raw.get("packet_loss_threshold")
    return UDPSettings(
        payload=raw.get("payload"),
        packet_loss_threshold=int(threshold) if threshold is not None else None,
    )


def config_to_raw(v: Any) -> Any:
    if isinstance(v, Unmanaged):
        return None
    if not isinstance(v, Value):
        return to_raw(v, _dict)
    cfg: MonitorConfig = v.value
    out: dict[str, Any] = {
        "ssl_expiration_period_days": to_raw(cfg.ssl_expiration_period_days, _list, list),
        "dns_records": None,
        "ip_version": to_raw(cfg.ip_version, _str, str),
        "api_assertions": None,
        "udp": None,
    }
    if isinstance(cfg.dns_records, Value):
        records: DNSRecords = cfg.dns_records.value
        out["dns_records"] = {
            key: to_raw(records.get(key), _list, list) for key in DNS_RECORD_TYPES
        }
    elif not isinstance(cfg.dns_records, Unmanaged):
        out["dns_records"] = to_raw(cfg.dns_records, _dict)
    if isinstance(cfg.api_assertions, Value):
        assertions: APIAssertions = cfg.api_assertions.value
        out["api_assertions"] = {
            "logic": assertions.logic,
            "checks": [
                {"property": c.property, "comparison": c.comparison, "target": c.target}
                for c in assertions.checks
            ],
        }
    if isinstance(cfg.udp, Value):
        udp: UDPSettings = cfg.udp.value
        out["udp"] = {"payload": udp.payload, "packet_loss_threshold": udp.packet_loss_threshold}
    return out


# =========================================================================
# Alert contacts
# =========================================================================


def _contact_spec_from_raw(raw: Any) -> AlertContactSpec:
    if isinstance(raw, str | int):
        return AlertContactSpec(alert_contact_id=Value(str(raw)))
    return AlertContactSpec(
        alert_contact_id=from_raw(
            raw.get("alert_contact_id"), lambda r: str(r).strip()
        ),
        threshold=from_raw(raw.get("threshold"), int),
        recurrence=from_raw(raw.get("recurrence"), int),
    )


def _contact_from_raw(raw: Mapping[str, Any]) -> AlertContact:
    return AlertContact(
        alert_contact_id=str(raw["alert_contact_id"]),
        threshold=int(raw.get("threshold") or 0),
        recurrence=int(raw.get("recurrence") or 0),
    )


def _contacts_to_raw(v: Any) -> Any:
    return to_raw(
        v,
        _list,
        lambda items: [
            {
                "alert_contact_id": c.alert_contact_id,
                "threshold": c.threshold,
                "recurrence": c.recurrence,
            }
            for c in items
        ],
    )


# =========================================================================
# Monitors
# =========================================================================


def _fields_from_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, (decode, _, _) in _SCALAR_CODECS.items():
        values[name] = from_raw(data.get(name), decode)
    values["config"] = config_from_raw(data.get("config"))
    return values


def desired_from_mapping(data: Mapping[str, Any]) -> DesiredMonitor:
    """Build desired configuration from a declared mapping."""
    values = _fields_from_mapping(data)
    raw_contacts = data.get("assigned_alert_contacts")
    values["assigned_alert_contacts"] = from_raw(
        raw_contacts, lambda items: tuple(_contact_spec_from_raw(i) for i in items)
    )
    return DesiredMonitor(**values)


def state_to_attributes(state: MonitorState) -> dict[str, Any]:
    """Encode persisted state as a JSON-compatible mapping."""
    attributes: dict[str, Any] = {"id": state.id, "status": state.status}
    attributes["post_value_type"] = str(state.post_value_type) if state.post_value_type else None
    for name, (_, encode, empty) in _SCALAR_CODECS.items():
        attributes[name] = to_raw(getattr(state, name), empty, encode)
    attributes["assigned_alert_contacts"] = _contacts_to_raw(state.assigned_alert_contacts)
    attributes["config"] = config_to_raw(state.config)
    return attributes


def state_from_attributes(attributes: Mapping[str, Any]) -> MonitorState:
    """Decode persisted state written by state_to_attributes."""
    values = _fields_from_mapping(attributes)
    values["assigned_alert_contacts"] = from_raw(
        attributes.get("assigned_alert_contacts"),
        lambda items: tuple(
            sorted((_contact_from_raw(i) for i in items), key=lambda c: c.alert_contact_id)
        ),
    )
    post_type = attributes.get("post_value_type")
    return MonitorState(
        id=str(attributes.get("id") or ""),
        status=attributes.get("status"),
        post_value_type=PostValueType(post_type) if post_type else None,
        **values,
    )

