"""Shape-preserving merge of observed remote values into prior values.

The prior decides whether a field is managed at all; the observation
only supplies the content. Nothing in this module raises.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from monsync.models.monitor import (
    DNS_RECORD_TYPES,
    AlertContact,
    APIAssertions,
    AssertionCheck,
    DNSRecords,
    MonitorConfig,
    UDPSettings,
)
from monsync.models.remote import RemoteAlertContact, RemoteConfig, RemoteMaintenanceWindow
from monsync.models.values import CLEARED, UNMANAGED, Cleared, Unknown, Unmanaged, Value
from monsync.reconcile.normalize import (
    canonical_json,
    normalize_contacts,
    normalize_ints,
    normalize_ip_version,
    normalize_strings,
)


def _empty(observed: Any) -> bool:
    if observed is None:
        return True
    if isinstance(observed, str):
        return observed.strip() == ""
    if isinstance(observed, Sequence | Mapping):
        return len(observed) == 0
    return False


def merge(
    prior: Any,
    observed: Any,
    normalize: Callable[[Any], Any] | None = None,
) -> Any:
    """Merge an observed value into a prior tri-state value.

    Unmanaged stays unmanaged whatever the remote reports. A managed field
    the remote reports as missing or empty becomes cleared.
    """
    if isinstance(prior, Unmanaged):
        return UNMANAGED
    if _empty(observed):
        return CLEARED
    value = normalize(observed) if normalize else observed
    if _empty(value):
        return CLEARED
    return Value(value)


def merge_keep_shape(
    prior: Any,
    observed: Any,
    normalize: Callable[[Any], Any] | None = None,
) -> Any:
    """Like merge, but a value the remote omitted keeps the prior value.

    Used for scalars whose zero value is meaningful, where an omitted
    field says nothing about the remote.
    """
    if isinstance(prior, Unmanaged):
        return UNMANAGED
    if observed is None:
        return _resolved(prior)
    return Value(normalize(observed) if normalize else observed)


def _resolved(prior: Any) -> Any:
    """Unknown placeholders never reach persisted state."""
    return CLEARED if isinstance(prior, Unknown) else prior


def adopt(observed: Any, normalize: Callable[[Any], Any] | None = None) -> Any:
    """Take the remote value unconditionally, as on the first read after import."""
    if _empty(observed):
        return UNMANAGED
    value = normalize(observed) if normalize else observed
    return UNMANAGED if _empty(value) else Value(value)


def contacts_from_remote(observed: Sequence[RemoteAlertContact]) -> tuple[AlertContact, ...]:
    return normalize_contacts(
        AlertContact(c.alert_contact_id, c.threshold or 0, c.recurrence or 0) for c in observed
    )


def merge_maintenance_windows(prior: Any, observed: Sequence[RemoteMaintenanceWindow]) -> Any:
    """Windows the remote attached automatically are never part of the managed set."""
    return merge(prior, [w.id for w in observed if not w.auto_add_monitors], normalize_ints)


def merge_success_codes(prior: Any, observed: Sequence[str] | None) -> Any:
    """An explicitly empty list stays empty even when the remote applies defaults."""
    if isinstance(prior, Cleared):
        return CLEARED
    return merge(prior, observed, normalize_strings)


# =========================================================================
# Config block
# =========================================================================


def merge_dns_records(prior: DNSRecords, observed: Mapping[str, Any] | None) -> DNSRecords:
    """Merge DNS record sets child by child.

    When the remote reports no records at all, managed children keep their
    prior value (the remote may not echo them yet) while the shape of the
    block is preserved.
    """
    observed_upper = {k.upper(): v for k, v in (observed or {}).items()}
    if all(not observed_upper.get(t.upper()) for t in DNS_RECORD_TYPES):
        return DNSRecords({t: _resolved(prior.get(t)) for t in prior.managed_types()})

    merged: dict[str, Any] = {}
    for record_type in prior.managed_types():
        values = observed_upper.get(record_type.upper())
        merged[record_type] = merge(prior.get(record_type), values, normalize_strings)
    return DNSRecords(merged)


def assertions_from_remote(observed: Any) -> APIAssertions | None:
    if observed is None or (not observed.checks and not observed.logic):
        return None
    checks = tuple(
        AssertionCheck(
            property=c.property.strip(),
            comparison=c.comparison.strip().lower(),
            target=None if c.target is None else canonical_json(c.target),
        )
        for c in observed.checks or []
    )
    logic = observed.logic.strip().upper() if observed.logic else None
    return APIAssertions(logic=logic, checks=tuple(sorted(checks, key=_check_key)))


def _check_key(check: AssertionCheck) -> tuple[str, str, str]:
    return (check.property, check.comparison, check.target or "")


def udp_from_remote(observed: Any) -> UDPSettings | None:
    if observed is None or (observed.payload is None and observed.packet_loss_threshold is None):
        return None
    payload = observed.payload.strip() if observed.payload is not None else None
    return UDPSettings(payload=payload, packet_loss_threshold=observed.packet_loss_threshold)


def merge_config(prior: Any, observed: RemoteConfig | None) -> Any:
    """Merge the nested config block.

    The block is refreshed only when the prior manages it; each child then
    follows its own tri-state.
    """
    if isinstance(prior, Unknown):
        return adopt_config(observed)
    if not isinstance(prior, Value):
        return prior
    cfg: MonitorConfig = prior.value
    remote = observed or RemoteConfig()

    adopted = adopt_config(remote)
    adopted_cfg = adopted.value if isinstance(adopted, Value) else MonitorConfig()

    dns = cfg.dns_records
    if isinstance(dns, Value):
        dns = Value(merge_dns_records(dns.value, remote.dns_records))
    elif isinstance(dns, Unknown):
        dns = adopted_cfg.dns_records

    api = cfg.api_assertions
    if isinstance(api, Value | Unknown):
        api = merge_keep_shape(api, assertions_from_remote(remote.api_assertions))

    udp = cfg.udp
    if isinstance(udp, Value | Unknown):
        udp = merge_keep_shape(udp, udp_from_remote(remote.udp))

    return Value(
        MonitorConfig(
            ssl_expiration_period_days=merge(
                cfg.ssl_expiration_period_days,
                remote.ssl_expiration_period_days,
                normalize_ints,
            ),
            dns_records=dns,
            ip_version=merge(cfg.ip_version, remote.ip_version, normalize_ip_version),
            api_assertions=api,
            udp=udp,
        )
    )


def adopt_config(observed: RemoteConfig | None) -> Any:
    """Config as found on the remote, for imports. Empty config stays unmanaged."""
    if observed is None:
        return UNMANAGED
    dns_raw = {k.upper(): v for k, v in (observed.dns_records or {}).items()}
    dns_children = {
        t: adopt(dns_raw.get(t.upper()), normalize_strings) for t in DNS_RECORD_TYPES
    }
    dns_children = {t: v for t, v in dns_children.items() if not isinstance(v, Unmanaged)}
    cfg = MonitorConfig(
        ssl_expiration_period_days=adopt(observed.ssl_expiration_period_days, normalize_ints),
        dns_records=Value(DNSRecords(dns_children)) if dns_children else UNMANAGED,
        ip_version=adopt(observed.ip_version, normalize_ip_version),
        api_assertions=adopt(assertions_from_remote(observed.api_assertions)),
        udp=adopt(udp_from_remote(observed.udp)),
    )
    if not cfg.managed_children():
        return UNMANAGED
    return Value(cfg)
