"""Canonical forms used on both the write and read paths.

Every function here is idempotent: normalizing twice equals
normalizing once.
"""

import html
import ipaddress
import json
import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from monsync.models.monitor import AlertContact, IPVersion, KeywordCaseType
from monsync.models.remote import ALLOWED_REGIONS

_ENTITY_RE = re.compile(r"&(#\d+|#x[0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);")


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Trim, lower-case, deduplicate and sort; blanks are dropped."""
    return tuple(sorted({t.strip().lower() for t in tags if t.strip()}))


def normalize_strings(values: Iterable[str]) -> tuple[str, ...]:
    """Trim, deduplicate and sort, preserving case."""
    return tuple(sorted({v.strip() for v in values if v.strip()}))


def normalize_ints(values: Iterable[int]) -> tuple[int, ...]:
    return tuple(sorted({int(v) for v in values}))


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lower-case keys, trim values, drop content-type.

    Content-Type is derived by the remote from the body encoding, so it
    never round-trips reliably.
    """
    out: dict[str, str] = {}
    for key, value in headers.items():
        k = key.strip().lower()
        if not k or k == "content-type":
            continue
        out[k] = value.strip()
    return dict(sorted(out.items()))


def normalize_contacts(contacts: Iterable[AlertContact]) -> tuple[AlertContact, ...]:
    """Deduplicate by id (first wins) and sort by id."""
    seen: dict[str, AlertContact] = {}
    for contact in contacts:
        cid = contact.alert_contact_id.strip()
        if cid and cid not in seen:
            seen[cid] = AlertContact(cid, contact.threshold, contact.recurrence)
    return tuple(seen[k] for k in sorted(seen))


def normalize_method(method: str | None) -> str | None:
    if method is None:
        return None
    return method.strip().upper() or None


def unescape_html(text: str, max_passes: int = 5) -> str:
    """Undo repeated HTML escaping applied by the remote to names and URLs."""
    current = text
    for _ in range(max_passes):
        decoded = html.unescape(current)
        if decoded == current:
            break
        current = decoded
    return current


def has_html_entity(text: str) -> bool:
    return bool(_ENTITY_RE.search(text))


def normalize_region(region: Any) -> str | None:
    """Lower-case a region code; anything outside the known set is dropped."""
    if region is None:
        return None
    value = str(region).strip().lower()
    return value if value in ALLOWED_REGIONS else None


def normalize_ip_version(value: str | None) -> IPVersion | None:
    if value is None:
        return None
    lowered = value.strip().lower()
    for member in IPVersion:
        if member.value.lower() == lowered:
            return member
    return None


def keyword_case_label(value: int | None) -> str | None:
    member = KeywordCaseType.from_api(value)
    return member.value if member else None


def canonical_json(value: Any) -> str:
    """Stable JSON text for comparisons and storage."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def canonical_json_text(text: str) -> str:
    """Re-serialize JSON text canonically.

    Raises:
        ValueError: If text is not valid JSON.
    """
    return canonical_json(json.loads(text))


def normalize_assertion_checks(
    checks: Iterable[tuple[str, str, Any]],
) -> tuple[tuple[str, str, str], ...]:
    """Sort (property, comparison, target) triples; comparison is lower-cased.

    Targets are decoded JSON values, compared as canonical JSON text so
    that key order inside objects does not matter.
    """
    out = [
        (prop.strip(), comparison.strip().lower(), canonical_json(target))
        for prop, comparison, target in checks
    ]
    return tuple(sorted(out))


def url_ip_literal(url: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """IP address in a URL or bare host, if the host is a literal."""
    candidate = url.strip()
    host = urlsplit(candidate).hostname if "://" in candidate else candidate.strip("[]")
    if not host:
        return None
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None
