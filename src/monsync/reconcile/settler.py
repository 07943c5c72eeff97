"""Polling until remote state converges after a write.

The remote is eventually consistent: a successful write may not be
visible on the next read, and a single matching read can be a race.
The settler therefore requires several consecutive matches, backs off
geometrically between polls and never outlives its deadline.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import backoff
from loguru import logger

from monsync.errors import NotFoundError, RemoteAPIError, SettleTimeoutError
from monsync.models.remote import MonitorSnapshot
from monsync.ports.monitor_api import MonitorAPIPort
from monsync.reconcile.expectation import MonitorExpectation

S = TypeVar("S")

PAUSED_STATUS = "PAUSED"


@dataclass(frozen=True)
class SettlePolicy:
    """How long and how carefully to wait for convergence."""

    timeout: float
    required_matches: int = 3
    floor: float = 0.5
    ceiling: float = 3.0

    def intervals(self) -> Any:
        """Geometric poll intervals from floor, capped at ceiling."""
        gen = backoff.expo(base=2, factor=self.floor, max_value=self.ceiling)
        next(gen)  # prime the generator
        return gen


class Settler:
    """Waits for remote state to match an expectation.

    Clock and sleep are injectable so the loop can be driven by a fake
    clock in tests.
    """

    def __init__(
        self,
        api: MonitorAPIPort,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._clock = clock
        self._sleep = sleep

    async def settle(
        self,
        monitor_id: str,
        expectation: MonitorExpectation,
        policy: SettlePolicy,
        deadline: float | None = None,
    ) -> MonitorSnapshot:
        """
        Poll until the monitor matches the expectation.

        Args:
            monitor_id: Remote monitor id.
            expectation: Asserted fields.
            policy: Timeout, backoff bounds and required consecutive matches.
            deadline: Caller's absolute deadline on this settler's clock.

        Returns:
            The snapshot that completed the streak.

        Raises:
            SettleTimeoutError: With the last observed snapshot if the
                streak was not reached in time.
        """
        return await self._poll(
            lambda: self._api.get(monitor_id),
            expectation.differences,
            policy,
            deadline,
            f"monitor {monitor_id}",
        )

    async def settle_pause_state(
        self,
        monitor_id: str,
        paused: bool,
        policy: SettlePolicy,
        deadline: float | None = None,
    ) -> MonitorSnapshot:
        """Wait until the run/pause toggle is reflected in the status."""

        def differences(snapshot: MonitorSnapshot) -> list[str]:
            return [] if is_paused(snapshot) == paused else ["status"]

        return await self._poll(
            lambda: self._api.get(monitor_id),
            differences,
            policy,
            deadline,
            f"monitor {monitor_id} {'pause' if paused else 'start'}",
        )

    async def settle_deleted(
        self,
        monitor_id: str,
        policy: SettlePolicy,
        deadline: float | None = None,
    ) -> None:
        """Wait until reads report the monitor as gone."""

        async def fetch() -> MonitorSnapshot | None:
            try:
                return await self._api.get(monitor_id)
            except NotFoundError:
                return None

        def differences(snapshot: MonitorSnapshot | None) -> list[str]:
            return [] if snapshot is None else ["exists"]

        await self._poll(fetch, differences, policy, deadline, f"monitor {monitor_id} deletion")

    async def _poll(
        self,
        fetch: Callable[[], Awaitable[S]],
        differences: Callable[[S], Sequence[str]],
        policy: SettlePolicy,
        deadline: float | None,
        what: str,
    ) -> S:
        start = self._clock()
        stop_at = start + policy.timeout
        if deadline is not None:
            stop_at = min(stop_at, deadline)

        intervals = policy.intervals()
        streak = 0
        attempts = 0
        observed = False
        last: Any = None
        last_diffs: Sequence[str] = ["no successful observation"]

        while True:
            remaining = stop_at - self._clock()
            if remaining <= 0:
                break

            attempts += 1
            try:
                async with asyncio.timeout(remaining):
                    snapshot = await fetch()
            except TimeoutError:
                logger.debug("Settle fetch for {} hit the deadline", what)
                break
            except RemoteAPIError as e:
                streak = 0
                logger.debug("Settle fetch for {} failed (attempt {}): {}", what, attempts, e)
            else:
                observed = True
                last = snapshot
                last_diffs = list(differences(snapshot))
                if last_diffs:
                    streak = 0
                    logger.debug("Settling {}: attempt={} differences={}", what, attempts, last_diffs)
                else:
                    streak += 1
                    logger.debug(
                        "Settling {}: attempt={} streak={}/{}",
                        what,
                        attempts,
                        streak,
                        policy.required_matches,
                    )
                    if streak >= policy.required_matches:
                        logger.debug("Settled {} after {} attempts", what, attempts)
                        return snapshot

            remaining = stop_at - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(next(intervals), remaining))

        if observed and not last_diffs:
            logger.debug("Settle budget for {} ran out on a matching observation", what)
            return last

        raise SettleTimeoutError(
            f"timeout waiting for {what} to settle; last differences: {list(last_diffs)}",
            last_snapshot=last,
            differences=last_diffs,
        )


def is_paused(snapshot: MonitorSnapshot) -> bool:
    return (snapshot.status or "").strip().upper() == PAUSED_STATUS
