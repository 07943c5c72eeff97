"""Reconciliation of one monitor: create, read, update, delete, import.

Lower layers raise; this module alone turns failures into diagnostics
and decides which state (new, best-effort or prior) the caller keeps.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from monsync.config.models import Config
from monsync.errors import (
    NotFoundError,
    PartialApplicationError,
    RemoteAPIError,
    RemoteMutationError,
    SettleTimeoutError,
    ValidationError,
)
from monsync.models.diagnostics import Diagnostics
from monsync.models.monitor import DesiredMonitor, MonitorState, MonitorType
from monsync.models.remote import MonitorSnapshot
from monsync.models.values import Value
from monsync.ports.monitor_api import MonitorAPIPort
from monsync.reconcile.assembler import (
    assemble_after_read,
    assemble_after_write,
    verify_contacts_applied,
    verify_contacts_cleared,
)
from monsync.reconcile.builder import BuildResult, RequestBuilder
from monsync.reconcile.expectation import MonitorExpectation
from monsync.reconcile.settler import SettlePolicy, Settler, is_paused
from monsync.utils.retry import remote_retry

# Fields whose server-side rebuild is slow enough to earn the extended budget.
SLOW_UPDATE_FIELDS = frozenset(
    {"config.dns_records", "assigned_alert_contacts", "maintenance_window_ids"}
)


@dataclass(frozen=True)
class OperationContext:
    """Caller-imposed absolute deadline, on the reconciler's clock."""

    deadline: float | None = None

    @classmethod
    def with_timeout(
        cls, seconds: float, clock: Callable[[], float] = time.monotonic
    ) -> "OperationContext":
        return cls(deadline=clock() + seconds)


@dataclass
class OperationResult:
    """Outcome of one operation.

    state is None when nothing should be persisted: a failed create, or a
    monitor that no longer exists (removed=True).
    """

    state: MonitorState | None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    removed: bool = False

    @property
    def ok(self) -> bool:
        return not self.diagnostics.has_error


class MonitorReconciler:
    """
    Drives a monitor through the remote API until it matches intent.

    One instance may serve many monitors; operations on the same monitor
    must not run concurrently.
    """

    def __init__(
        self,
        api: MonitorAPIPort,
        config: Config | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.api = api
        self.config = config or Config()
        self.clock = clock
        self.builder = RequestBuilder(self.config.defaults.timeout_seconds)
        self.settler = Settler(api, clock=clock, sleep=sleep)

        retry = remote_retry(self.config.retry)
        self._get = retry(api.get)
        self._delete = retry(api.delete)

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(
        self, desired: DesiredMonitor, context: OperationContext | None = None
    ) -> OperationResult:
        """
        Create a monitor and wait for it to become visible.

        Args:
            desired: Desired configuration.
            context: Optional caller deadline.

        Returns:
            Result with the new state, or no state when creation failed.
        """
        context = context or OperationContext()
        diags = Diagnostics()

        built = self._build(desired, None, diags)
        if built is None:
            return OperationResult(None, diags)

        try:
            created = await self.api.create(built.request.to_payload())
        except (RemoteAPIError, RemoteMutationError) as e:
            diags.add_error("Failed to create monitor", str(_as_mutation_error("create", e)))
            return OperationResult(None, diags)

        logger.info("Created {} monitor {}", built.monitor_type.value, created.id)

        expectation = MonitorExpectation.from_build(built)
        snapshot = await self._settle_write(
            created.id,
            created,
            expectation,
            self.config.timeouts.create_seconds,
            context,
            diags,
            "Create settled slowly",
        )
        snapshot = await self._apply_pause(desired, snapshot, context, diags)

        try:
            verify_contacts_applied(built.request, snapshot)
        except PartialApplicationError as e:
            diags.add_error("Alert contacts were not applied", str(e), "assigned_alert_contacts")
            return OperationResult(None, diags)

        return OperationResult(assemble_after_write(desired, built, snapshot), diags)

    async def read(
        self, prior: MonitorState, context: OperationContext | None = None
    ) -> OperationResult:
        """
        Refresh state from the remote.

        A monitor that no longer exists is reported as removed, not as an
        error. Other failures keep the prior state.
        """
        context = context or OperationContext()
        diags = Diagnostics()

        try:
            snapshot = await self._within(context, self._get(prior.id))
        except NotFoundError:
            logger.info("Monitor {} no longer exists", prior.id)
            return OperationResult(None, diags, removed=True)
        except (RemoteAPIError, TimeoutError) as e:
            diags.add_error("Failed to read monitor", str(e) or "deadline exceeded")
            return OperationResult(prior, diags)

        return OperationResult(assemble_after_read(prior, snapshot), diags)

    async def update(
        self,
        desired: DesiredMonitor,
        prior: MonitorState,
        context: OperationContext | None = None,
    ) -> OperationResult:
        """
        Apply desired configuration to an existing monitor.

        Any error leaves the prior state untouched. A slow settle is only a
        warning; the state is then assembled from the last observation.
        """
        context = context or OperationContext()
        diags = Diagnostics()

        built = self._build(desired, prior, diags)
        if built is None:
            return OperationResult(prior, diags)

        try:
            updated = await self.api.update(prior.id, built.request.to_payload())
        except (RemoteAPIError, RemoteMutationError) as e:
            diags.add_error("Failed to update monitor", str(_as_mutation_error("update", e)))
            return OperationResult(prior, diags)

        logger.info("Updated {} monitor {}", built.monitor_type.value, prior.id)

        expectation = MonitorExpectation.from_build(built)
        snapshot = await self._settle_write(
            prior.id,
            updated,
            expectation,
            self._update_budget(built, expectation),
            context,
            diags,
            "Update settled slowly",
        )
        snapshot = await self._apply_pause(desired, snapshot, context, diags)

        try:
            verify_contacts_cleared(built.request, snapshot)
        except PartialApplicationError as e:
            diags.add_error("Alert contacts were not cleared", str(e), "assigned_alert_contacts")
            return OperationResult(prior, diags)

        try:
            verify_contacts_applied(built.request, snapshot)
        except PartialApplicationError as e:
            diags.add_error("Alert contacts were not applied", str(e), "assigned_alert_contacts")
            return OperationResult(prior, diags)

        return OperationResult(assemble_after_write(desired, built, snapshot, prior), diags)

    async def delete(
        self, prior: MonitorState, context: OperationContext | None = None
    ) -> OperationResult:
        """
        Delete a monitor and wait until reads stop returning it.

        A monitor that is already gone counts as deleted.
        """
        context = context or OperationContext()
        diags = Diagnostics()

        try:
            await self._within(context, self._delete(prior.id))
        except NotFoundError:
            logger.info("Monitor {} was already deleted", prior.id)
            return OperationResult(None, diags, removed=True)
        except (RemoteAPIError, TimeoutError) as e:
            diags.add_error(
                "Failed to delete monitor", str(_as_mutation_error("delete", e))
            )
            return OperationResult(prior, diags)

        settle = self.config.settle
        policy = SettlePolicy(
            timeout=self.config.timeouts.delete_seconds,
            required_matches=1,
            floor=settle.backoff_floor_seconds,
            ceiling=self.config.timeouts.delete_backoff_ceiling_seconds,
        )
        try:
            await self.settler.settle_deleted(prior.id, policy, context.deadline)
        except SettleTimeoutError as e:
            diags.add_error("Monitor still present after delete", str(e))
            return OperationResult(prior, diags)

        logger.info("Deleted monitor {}", prior.id)
        return OperationResult(None, diags, removed=True)

    async def import_state(
        self, monitor_id: str, context: OperationContext | None = None
    ) -> OperationResult:
        """Adopt an existing remote monitor into state."""
        result = await self.read(MonitorState(id=str(monitor_id)), context)
        if result.removed:
            result.diagnostics.add_error(
                "Cannot import non-existent monitor", f"monitor {monitor_id} was not found"
            )
        return result

    # =========================================================================
    # Steps
    # =========================================================================

    def _build(
        self, desired: DesiredMonitor, prior: MonitorState | None, diags: Diagnostics
    ) -> BuildResult | None:
        try:
            built = self.builder.build(desired, prior)
        except ValidationError as e:
            diags.extend(e.diagnostics)
            return None
        diags.extend(built.diagnostics)
        return built

    def _policy(self, timeout: float, required_matches: int) -> SettlePolicy:
        settle = self.config.settle
        return SettlePolicy(
            timeout=timeout,
            required_matches=required_matches,
            floor=settle.backoff_floor_seconds,
            ceiling=settle.backoff_ceiling_seconds,
        )

    def _update_budget(self, built: BuildResult, expectation: MonitorExpectation) -> float:
        timeouts = self.config.timeouts
        if built.monitor_type is MonitorType.KEYWORD or SLOW_UPDATE_FIELDS & set(expectation.fields):
            return timeouts.update_extended_seconds
        return timeouts.update_seconds

    async def _settle_write(
        self,
        monitor_id: str,
        response: MonitorSnapshot,
        expectation: MonitorExpectation,
        timeout: float,
        context: OperationContext,
        diags: Diagnostics,
        slow_summary: str,
    ) -> MonitorSnapshot:
        policy = self._policy(timeout, expectation.required_matches(self.config.settle))
        try:
            return await self.settler.settle(monitor_id, expectation, policy, context.deadline)
        except SettleTimeoutError as e:
            logger.warning("{} for monitor {}: {}", slow_summary, monitor_id, e.differences)
            diags.add_warning(
                slow_summary,
                f"fields still converging: {', '.join(e.differences)}",
            )
            return e.last_snapshot or response

    async def _apply_pause(
        self,
        desired: DesiredMonitor,
        snapshot: MonitorSnapshot,
        context: OperationContext,
        diags: Diagnostics,
    ) -> MonitorSnapshot:
        if not isinstance(desired.paused, Value):
            return snapshot
        want = desired.paused.value
        if is_paused(snapshot) == want:
            return snapshot

        action = "pause" if want else "start"
        policy = self._policy(
            self.config.timeouts.pause_seconds, self.config.settle.pause_required_matches
        )
        try:
            await (self.api.pause if want else self.api.start)(snapshot.id)
            return await self.settler.settle_pause_state(
                snapshot.id, want, policy, context.deadline
            )
        except RemoteAPIError as e:
            diags.add_error(f"Failed to {action} monitor", str(e), "paused")
        except SettleTimeoutError as e:
            diags.add_error(f"Failed to {action} monitor", str(e), "paused")
            if e.last_snapshot is not None:
                return e.last_snapshot
        return snapshot

    async def _within(self, context: OperationContext, call: Awaitable[Any]) -> Any:
        if context.deadline is None:
            return await call
        async with asyncio.timeout(max(context.deadline - self.clock(), 0)):
            return await call


def _as_mutation_error(operation: str, error: Exception) -> RemoteMutationError:
    if isinstance(error, RemoteMutationError):
        return error
    return RemoteMutationError(operation, str(error) or "deadline exceeded")
