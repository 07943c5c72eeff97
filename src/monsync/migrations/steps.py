"""Upgrade steps for persisted monitor state, v0 through v5.

Every step copies its input, touches only the keys it owns and returns
its own output unchanged when run again.
"""

import json
from collections.abc import Mapping
from typing import Any

from monsync.errors import StateMigrationError
from monsync.migrations.chain import Attributes, Migration
from monsync.models.monitor import CONFIG_CHILDREN
from monsync.reconcile.normalize import canonical_json_text, normalize_tags


def _list_field(attrs: Mapping[str, Any], name: str) -> list[Any] | None:
    value = attrs.get(name)
    if value is None:
        return None
    if not isinstance(value, list | tuple):
        raise StateMigrationError(f"Expected a list for {name}, got {type(value).__name__}")
    return list(value)


def _sorted_unique(items: list[Any]) -> list[Any]:
    return sorted(set(items))


def tags_and_body_to_v1(attrs: Mapping[str, Any]) -> tuple[Attributes, list[str]]:
    """Tags and the JSON body are stored canonically; kv body appears."""
    out = dict(attrs)
    warnings: list[str] = []

    tags = _list_field(attrs, "tags")
    if tags is not None:
        out["tags"] = list(normalize_tags(str(t) for t in tags))

    body = attrs.get("post_value_data")
    if isinstance(body, str) and body.strip():
        try:
            out["post_value_data"] = canonical_json_text(body)
        except json.JSONDecodeError:
            warnings.append("post_value_data was not valid JSON and has been cleared")
            out["post_value_data"] = None
    elif isinstance(body, dict):
        out["post_value_data"] = json.dumps(body, sort_keys=True, separators=(",", ":"))

    out.setdefault("post_value_kv", None)
    return out, warnings


def contacts_to_v2(attrs: Mapping[str, Any]) -> tuple[Attributes, list[str]]:
    """Alert contact ids become objects carrying threshold and recurrence."""
    out = dict(attrs)
    contacts = _list_field(attrs, "assigned_alert_contacts")
    if contacts is None:
        return out, []

    by_id: dict[str, dict[str, Any]] = {}
    for item in contacts:
        if isinstance(item, Mapping):
            contact_id = str(item.get("alert_contact_id") or "").strip()
            try:
                entry = {
                    "alert_contact_id": contact_id,
                    "threshold": int(item.get("threshold") or 0),
                    "recurrence": int(item.get("recurrence") or 0),
                }
            except (TypeError, ValueError) as e:
                raise StateMigrationError(f"Invalid alert contact delay: {e}") from e
        elif isinstance(item, str | int) and not isinstance(item, bool):
            contact_id = str(item).strip()
            entry = {"alert_contact_id": contact_id, "threshold": 0, "recurrence": 0}
        else:
            raise StateMigrationError(f"Unrecognized alert contact entry: {item!r}")
        if contact_id and contact_id not in by_id:
            by_id[contact_id] = entry

    out["assigned_alert_contacts"] = [by_id[k] for k in sorted(by_id)]
    return out, []


def ssl_and_config_to_v3(attrs: Mapping[str, Any]) -> tuple[Attributes, list[str]]:
    out = dict(attrs)
    out.setdefault("check_ssl_errors", None)
    out.setdefault("config", None)
    return out, []


def windows_to_v4(attrs: Mapping[str, Any]) -> tuple[Attributes, list[str]]:
    out = dict(attrs)
    windows = _list_field(attrs, "maintenance_window_ids")
    if windows is not None:
        try:
            out["maintenance_window_ids"] = _sorted_unique([int(w) for w in windows])
        except (TypeError, ValueError) as e:
            raise StateMigrationError(f"Invalid maintenance window id: {e}") from e
    return out, []


def config_shape_to_v5(attrs: Mapping[str, Any]) -> tuple[Attributes, list[str]]:
    """Config gains every current child; success codes become a set."""
    out = dict(attrs)

    config = attrs.get("config")
    if config is not None:
        if not isinstance(config, Mapping):
            raise StateMigrationError(f"Expected a mapping for config, got {type(config).__name__}")
        upgraded = dict(config)
        for child in CONFIG_CHILDREN:
            upgraded.setdefault(child, None)
        out["config"] = upgraded

    codes = _list_field(attrs, "success_http_response_codes")
    if codes is not None:
        out["success_http_response_codes"] = _sorted_unique([str(c) for c in codes])
    return out, []


STEPS: tuple[Migration, ...] = (
    Migration(0, tags_and_body_to_v1, "tags as set, canonical JSON body, kv body"),
    Migration(1, contacts_to_v2, "alert contacts with threshold and recurrence"),
    Migration(2, ssl_and_config_to_v3, "check_ssl_errors and config"),
    Migration(3, windows_to_v4, "maintenance windows as set"),
    Migration(4, config_shape_to_v5, "config children and success codes as set"),
)
