"""Assemble persisted state from an observation.

After a write the desired configuration is the merge baseline (there is
no prior on create, and on update the plan supersedes the prior). After
a read the prior state is the baseline, except on the first read after
an import where remote values are adopted as they are.
"""

from typing import Any

from monsync.errors import PartialApplicationError
from monsync.models.monitor import (
    DesiredMonitor,
    KeywordCaseType,
    MonitorState,
    MonitorType,
    PostValueType,
)
from monsync.models.remote import MonitorRequest, MonitorSnapshot
from monsync.models.values import (
    UNMANAGED,
    Cleared,
    Unknown,
    Unmanaged,
    Value,
    is_managed,
    unwrap,
)
from monsync.reconcile.builder import BuildResult
from monsync.reconcile.merge import (
    adopt,
    adopt_config,
    contacts_from_remote,
    merge,
    merge_config,
    merge_keep_shape,
    merge_maintenance_windows,
    merge_success_codes,
)
from monsync.reconcile.normalize import (
    canonical_json,
    canonical_json_text,
    normalize_headers,
    normalize_ints,
    normalize_region,
    normalize_strings,
    normalize_tags,
    unescape_html,
)
from monsync.reconcile.settler import is_paused
from monsync.reconcile.variants import variant_for


# =========================================================================
# Child-entity verification
# =========================================================================


def verify_contacts_applied(request: MonitorRequest, snapshot: MonitorSnapshot) -> None:
    """Fail when requested alert contacts are missing from the observation.

    Raises:
        PartialApplicationError: Naming every missing contact id.
    """
    if not request.assigned_alert_contacts:
        return
    requested = {c.alert_contact_id for c in request.assigned_alert_contacts}
    applied = set(snapshot.contact_ids())
    if requested - applied:
        raise PartialApplicationError("alert contacts", requested, applied & requested)


def verify_contacts_cleared(request: MonitorRequest, snapshot: MonitorSnapshot) -> None:
    """Fail when a requested clear left contacts on the monitor.

    Raises:
        PartialApplicationError: If any contact is still assigned.
    """
    if request.assigned_alert_contacts is None or request.assigned_alert_contacts:
        return
    remaining = snapshot.contact_ids()
    if remaining:
        raise PartialApplicationError("alert contact removals", remaining, [])


# =========================================================================
# Shared field assembly
# =========================================================================


def _keyword_case(prior: Any, observed: int | None) -> Any:
    return merge_keep_shape(prior, KeywordCaseType.from_api(observed))


def _resolve_unknown(v: Any) -> Any:
    return UNMANAGED if isinstance(v, Unknown) else v


def _body_state(desired: Any, post_type: PostValueType | None, want: PostValueType) -> Any:
    if isinstance(desired, Cleared):
        return desired
    if post_type is not want:
        return UNMANAGED
    return desired


def assemble_after_write(
    desired: DesiredMonitor,
    built: BuildResult,
    snapshot: MonitorSnapshot,
    prior: MonitorState | None = None,
) -> MonitorState:
    """
    Final state after a create or update has settled.

    Args:
        desired: Desired configuration that was applied.
        built: Build result, carrying the derived defaults.
        snapshot: Settled (or best-effort) observation.
        prior: Prior state on update, used for timing fallbacks.

    Returns:
        New persisted state.
    """
    monitor_type: MonitorType = built.monitor_type
    variant = variant_for(monitor_type)
    derived = built.derived

    planned_timeout = derived.timeout
    if planned_timeout is None and prior is not None:
        planned_timeout = unwrap(prior.timeout)
    timeout, grace = variant.state_timing(planned_timeout, derived.grace_period, snapshot)

    method: Any = UNMANAGED
    if variant.http_like and derived.effective_method:
        method = Value(derived.effective_method)

    post_data = desired.post_value_data
    if isinstance(post_data, Value) and derived.post_value_type is PostValueType.RAW_JSON:
        post_data = Value(canonical_json_text(post_data.value))

    contacts = desired.assigned_alert_contacts
    if is_managed(contacts):
        contacts = merge(contacts, contacts_from_remote(snapshot.assigned_alert_contacts))

    paused = desired.paused
    if is_managed(paused):
        paused = Value(is_paused(snapshot))

    return MonitorState(
        id=snapshot.id,
        status=snapshot.status,
        post_value_type=derived.post_value_type,
        type=Value(monitor_type),
        name=merge(desired.name, snapshot.friendly_name, unescape_html),
        url=merge(desired.url, snapshot.url, unescape_html),
        interval=merge_keep_shape(desired.interval, snapshot.interval),
        timeout=timeout,
        grace_period=grace,
        http_method_type=method,
        http_username=merge(desired.http_username, snapshot.http_username),
        http_password=_resolve_unknown(desired.http_password),
        auth_type=merge_keep_shape(desired.auth_type, snapshot.auth_type),
        post_value_data=_body_state(post_data, derived.post_value_type, PostValueType.RAW_JSON),
        post_value_kv=_body_state(desired.post_value_kv, derived.post_value_type, PostValueType.KEY_VALUE),
        port=merge_keep_shape(desired.port, snapshot.port) if variant.allows_port else UNMANAGED,
        keyword_value=merge(desired.keyword_value, snapshot.keyword_value),
        keyword_type=merge(desired.keyword_type, snapshot.keyword_type),
        keyword_case_type=_keyword_case(desired.keyword_case_type, snapshot.keyword_case_type),
        follow_redirections=Value(_bool(snapshot.follow_redirections, built.request.follow_redirections)),
        ssl_expiration_reminder=Value(
            _bool(snapshot.ssl_expiration_reminder, built.request.ssl_expiration_reminder)
        ),
        domain_expiration_reminder=Value(
            _bool(snapshot.domain_expiration_reminder, built.request.domain_expiration_reminder)
        ),
        check_ssl_errors=merge_keep_shape(desired.check_ssl_errors, snapshot.check_ssl_errors),
        response_time_threshold=merge_keep_shape(
            desired.response_time_threshold, snapshot.response_time_threshold
        ),
        regional_data=merge(desired.regional_data, snapshot.regional_data, normalize_region),
        group_id=merge_keep_shape(desired.group_id, snapshot.group_id),
        custom_http_headers=merge(
            desired.custom_http_headers, snapshot.custom_http_headers, normalize_headers
        ),
        success_http_response_codes=merge_success_codes(
            desired.success_http_response_codes, snapshot.success_http_response_codes
        ),
        tags=merge(desired.tags, snapshot.tag_names(), normalize_tags),
        maintenance_window_ids=merge_maintenance_windows(
            desired.maintenance_window_ids, snapshot.maintenance_windows
        ),
        assigned_alert_contacts=contacts,
        config=merge_config(desired.config, snapshot.config),
        paused=paused,
    )


def _bool(observed: bool | None, sent: bool | None) -> bool:
    if observed is not None:
        return observed
    return bool(sent)


# =========================================================================
# Read and import
# =========================================================================


def is_import(prior: MonitorState) -> bool:
    """A state with none of the required fields is a fresh import."""
    return all(
        isinstance(getattr(prior, name), Unmanaged) for name in ("name", "url", "type", "interval")
    )


def assemble_after_read(prior: MonitorState, snapshot: MonitorSnapshot) -> MonitorState:
    """
    Refresh persisted state from a read.

    Only fields the prior state manages are refreshed, except on the first
    read after an import, which adopts remote values.

    Args:
        prior: Prior persisted state.
        snapshot: Current remote observation.

    Returns:
        New persisted state.
    """
    importing = is_import(prior)
    monitor_type = MonitorType((snapshot.type or unwrap(prior.type, "HTTP")).upper())
    variant = variant_for(monitor_type)

    timeout, grace = variant.state_timing(
        unwrap(prior.timeout), unwrap(prior.grace_period), snapshot
    )

    def refresh(current: Any, observed: Any, normalize: Any = None) -> Any:
        if importing:
            return adopt(observed, normalize)
        return merge(current, observed, normalize)

    def refresh_scalar(current: Any, observed: Any) -> Any:
        if importing:
            return Value(observed) if observed is not None else UNMANAGED
        return merge_keep_shape(current, observed)

    method: Any = prior.http_method_type
    if importing and variant.http_like:
        method = Value((snapshot.http_method_type or "GET").strip().upper())

    post_type = prior.post_value_type
    post_data: Any = prior.post_value_data
    post_kv: Any = prior.post_value_kv
    if importing:
        post_type, post_data, post_kv = _adopt_body(snapshot)

    config = adopt_config(snapshot.config) if importing else merge_config(prior.config, snapshot.config)

    paused = prior.paused
    if is_managed(paused):
        paused = Value(is_paused(snapshot))

    return MonitorState(
        id=snapshot.id,
        status=snapshot.status,
        post_value_type=post_type,
        type=Value(monitor_type),
        name=adopt(snapshot.friendly_name, unescape_html) if snapshot.friendly_name else prior.name,
        url=adopt(snapshot.url, unescape_html) if snapshot.url else prior.url,
        interval=Value(snapshot.interval) if snapshot.interval is not None else prior.interval,
        timeout=timeout,
        grace_period=grace,
        http_method_type=method,
        http_username=refresh(prior.http_username, snapshot.http_username),
        http_password=prior.http_password,
        auth_type=refresh_scalar(prior.auth_type, snapshot.auth_type),
        post_value_data=post_data,
        post_value_kv=post_kv,
        port=refresh_scalar(prior.port, snapshot.port) if variant.allows_port else UNMANAGED,
        keyword_value=refresh(prior.keyword_value, snapshot.keyword_value),
        keyword_type=refresh(prior.keyword_type, snapshot.keyword_type),
        keyword_case_type=refresh_scalar(
            prior.keyword_case_type, KeywordCaseType.from_api(snapshot.keyword_case_type)
        ),
        follow_redirections=refresh_scalar(prior.follow_redirections, snapshot.follow_redirections),
        ssl_expiration_reminder=refresh_scalar(
            prior.ssl_expiration_reminder, snapshot.ssl_expiration_reminder
        ),
        domain_expiration_reminder=refresh_scalar(
            prior.domain_expiration_reminder, snapshot.domain_expiration_reminder
        ),
        check_ssl_errors=refresh_scalar(prior.check_ssl_errors, snapshot.check_ssl_errors),
        response_time_threshold=refresh_scalar(
            prior.response_time_threshold, snapshot.response_time_threshold
        ),
        regional_data=refresh(prior.regional_data, snapshot.regional_data, normalize_region),
        group_id=refresh_scalar(prior.group_id, snapshot.group_id),
        custom_http_headers=refresh(
            prior.custom_http_headers, snapshot.custom_http_headers, normalize_headers
        ),
        success_http_response_codes=(
            adopt(snapshot.success_http_response_codes, normalize_strings)
            if importing
            else merge_success_codes(prior.success_http_response_codes, snapshot.success_http_response_codes)
        ),
        tags=refresh(prior.tags, snapshot.tag_names(), normalize_tags),
        maintenance_window_ids=(
            adopt(snapshot.manual_window_ids(), normalize_ints)
            if importing
            else merge_maintenance_windows(prior.maintenance_window_ids, snapshot.maintenance_windows)
        ),
        assigned_alert_contacts=refresh(
            prior.assigned_alert_contacts, contacts_from_remote(snapshot.assigned_alert_contacts)
        ),
        config=config,
        paused=paused,
    )


def _adopt_body(snapshot: MonitorSnapshot) -> tuple[PostValueType | None, Any, Any]:
    raw_type = (snapshot.post_value_type or "").strip().upper()
    data = snapshot.post_value_data
    if raw_type == PostValueType.KEY_VALUE and isinstance(data, dict) and data:
        kv = {str(k): str(v) for k, v in data.items()}
        return PostValueType.KEY_VALUE, UNMANAGED, Value(kv)
    if raw_type == PostValueType.RAW_JSON and data not in (None, "", {}):
        text = data if isinstance(data, str) else canonical_json(data)
        return PostValueType.RAW_JSON, Value(text), UNMANAGED
    return None, UNMANAGED, UNMANAGED
