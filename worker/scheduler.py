"""
One polling cycle across every subscription.

Per subscription: fetch -> dedup -> throttle -> dispatch -> commit cursor.
Each subscription ends in exactly one terminal state (COMMITTED, THROTTLED,
FAILED) and its failures never leave the subscription boundary.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List

from core.database import list_subscriptions, update_subscription_cursor
from core.errors import FetchError, StoreError
from core.models import Subscription
from worker.alerts import AlertDispatcher
from worker.dedup import new_sightings
from worker.throttle import should_notify

log = logging.getLogger("worker.scheduler")


class SubscriptionState(str, Enum):
    FETCHING = "fetching"
    FILTERING = "filtering"
    DISPATCHING = "dispatching"
    THROTTLED = "throttled"
    COMMITTED = "committed"
    FAILED = "failed"


TERMINAL_STATES = (SubscriptionState.THROTTLED, SubscriptionState.COMMITTED, SubscriptionState.FAILED)


@dataclass
class CycleReport:
    outcomes: Dict[int, SubscriptionState] = field(default_factory=dict)
    stopped_early: bool = False

    def counts(self) -> Dict[str, int]:
        counter = Counter(state.value for state in self.outcomes.values())
        return {state.value: counter.get(state.value, 0) for state in TERMINAL_STATES}


class PollScheduler:
    def __init__(
        self,
        *,
        feed,
        dispatcher: AlertDispatcher,
        min_interval_minutes: float = 60,
        concurrency: int = 1,
        list_subscriptions: Callable[[], List[Subscription]] = list_subscriptions,
        update_cursor: Callable[..., bool] = update_subscription_cursor,
    ):
        self.feed = feed
        self.dispatcher = dispatcher
        self.min_interval_minutes = min_interval_minutes
        self.concurrency = max(1, int(concurrency))
        self._list_subscriptions = list_subscriptions
        self._update_cursor = update_cursor
        self._cycle_lock = asyncio.Lock()
        self._sub_locks: Dict[int, asyncio.Lock] = {}
        self._stop_requested = False

    def request_stop(self) -> None:
        """Stop taking new subscriptions; the one in flight finishes its commit."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _lock_for(self, sub_id: int) -> asyncio.Lock:
        lock = self._sub_locks.get(sub_id)
        if lock is None:
            lock = self._sub_locks[sub_id] = asyncio.Lock()
        return lock

    async def _pipeline(self, sub: Subscription) -> SubscriptionState:
        try:
            observations = await self.feed.fetch_recent_observations(
                sub.species_code,
                sub.latitude,
                sub.longitude,
                sub.radius_miles,
                sub.look_back_days,
            )
        except FetchError as exc:
            log.warning("Feed fetch failed", extra={"subscription_id": sub.id, "error": str(exc)})
            return SubscriptionState.FAILED

        fresh = new_sightings(observations, sub.cursor)
        if not fresh:
            return SubscriptionState.THROTTLED
        if not should_notify(fresh, sub.cursor, self.min_interval_minutes):
            log.info(
                "Alert throttled",
                extra={"subscription_id": sub.id, "new_sightings": len(fresh)},
            )
            return SubscriptionState.THROTTLED

        if not await self.dispatcher.send(sub, fresh):
            return SubscriptionState.FAILED

        primary = fresh[0]
        # Everything in the batch was covered by this alert (primary plus extras).
        notified_at = max(obs.observed_at for obs in fresh)
        try:
            self._update_cursor(sub.id, primary.submission_id, notified_at)
        except StoreError as exc:
            # The alert went out; next cycle will send it again.
            log.error(
                "Cursor update failed after alert was sent",
                extra={"subscription_id": sub.id, "observation_id": primary.submission_id, "error": str(exc)},
            )
            return SubscriptionState.FAILED

        log.info(
            "Alert sent",
            extra={"subscription_id": sub.id, "observation_id": primary.submission_id, "new_sightings": len(fresh)},
        )
        return SubscriptionState.COMMITTED

    async def process_subscription(self, sub: Subscription) -> SubscriptionState:
        """Run one subscription through the pipeline; never raises."""
        async with self._lock_for(sub.id):
            try:
                return await self._pipeline(sub)
            except Exception:
                log.exception("Failed to process subscription", extra={"subscription_id": sub.id})
                return SubscriptionState.FAILED

    async def run_cycle(self) -> CycleReport:
        """Process every subscription once. Cycles never overlap."""
        async with self._cycle_lock:
            report = CycleReport()
            try:
                subs = self._list_subscriptions()
            except Exception:
                log.exception("Could not list subscriptions; skipping cycle")
                return report

            if not subs:
                log.info("No subscriptions. Nothing to check.")
                return report

            semaphore = asyncio.Semaphore(self.concurrency)

            async def _run(sub: Subscription) -> None:
                async with semaphore:
                    if self._stop_requested:
                        report.stopped_early = True
                        return
                    report.outcomes[sub.id] = await self.process_subscription(sub)

            if self.concurrency == 1:
                for sub in subs:
                    await _run(sub)
            else:
                await asyncio.gather(*(_run(sub) for sub in subs))

            log.info("Cycle complete", extra=report.counts())
            self._forget_locks(sub.id for sub in subs)
            return report

    def _forget_locks(self, live_ids: Iterable[int]) -> None:
        live = set(live_ids)
        for sub_id in list(self._sub_locks):
            if sub_id not in live and not self._sub_locks[sub_id].locked():
                del self._sub_locks[sub_id]


__all__ = ["CycleReport", "PollScheduler", "SubscriptionState"]
