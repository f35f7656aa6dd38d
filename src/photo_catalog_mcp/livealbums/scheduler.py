"""
Periodic driver for live and smart album reconciliation.

The scheduler is a two-state machine (stopped/running) owned by a single
instance. While running, a timer task sleeps for the configured interval and
then triggers a sweep. Manual ``run_now`` calls trigger sweeps regardless of
state.

Two locks are involved:
- ``_state_lock`` guards start/stop transitions and is held only briefly
- ``_sweep_lock`` is held for a whole sweep, so at most one sweep is ever in
  flight and ``stop`` can wait for it to drain

A timer tick that fires while a sweep is in flight is coalesced: it is
dropped, not queued. A manual ``run_now`` waits for the in-flight sweep and
then runs its own.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import logfire

from ..catalog.client import CatalogClient
from ..database.definition_store import DefinitionStore
from ..errors import DefinitionNotFound, MalformedMetadata, NotLive
from ..models.definition import utcnow
from ..models.results import ReconcileResult, RunStatus, SweepResult
from ..observability.metrics import record_sweep
from .reconciler import DefinitionCarrier, EmbeddedCarrier, Reconciler, StoredCarrier

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SchedulerState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Scheduler:
    """
    Drives sweeps across every known definition.

    Args:
        catalog: Asset catalog client, scanned for live albums
        store: Definition store holding smart albums
        reconciler: Executes each pass
        interval: Seconds between timer-driven sweeps
        enabled: When False, ``start`` is a successful no-op
        sleep: Timer primitive; tests inject a controllable fake
        clock: Source of sweep timestamps
    """

    def __init__(
        self,
        catalog: CatalogClient,
        store: DefinitionStore,
        reconciler: Reconciler,
        *,
        interval: float,
        enabled: bool = True,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.catalog = catalog
        self.store = store
        self.reconciler = reconciler
        self.interval = interval
        self.enabled = enabled
        self._sleep = sleep
        self._clock = clock

        self._state = SchedulerState.STOPPED
        self._state_lock = asyncio.Lock()
        self._sweep_lock = asyncio.Lock()
        self._cancel = asyncio.Event()
        self._timer: asyncio.Task | None = None
        self._sweeps: set[asyncio.Task] = set()

        self.last_sweep: SweepResult | None = None
        self.sweep_count = 0
        self.coalesced_count = 0

    # =========================================================================
    # State machine
    # =========================================================================

    @property
    def state(self) -> SchedulerState:
        return self._state

    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    def is_sweeping(self) -> bool:
        return self._sweep_lock.locked()

    async def start(self) -> bool:
        """
        Enter the running state and arm the timer.

        Returns:
            True if the scheduler is running afterwards
        """
        async with self._state_lock:
            if self._state == SchedulerState.RUNNING:
                logger.warning("Live album scheduler is already running")
                return True

            if not self.enabled:
                logger.info("Live albums are disabled; scheduler not started")
                return False

            self._cancel.clear()
            self._timer = asyncio.create_task(self._timer_loop(), name="live-album-timer")
            self._state = SchedulerState.RUNNING
            logger.info("Live album scheduler started (interval=%ss)", self.interval)
            return True

    async def stop(self, *, cancel_sweep: bool = False) -> None:
        """
        Disarm the timer and wait for any in-flight sweep to finish.

        Args:
            cancel_sweep: Ask the in-flight sweep to stop before its next
                definition instead of running to completion
        """
        async with self._state_lock:
            if self._state == SchedulerState.STOPPED:
                return

            timer, self._timer = self._timer, None
            self._state = SchedulerState.STOPPED
            if cancel_sweep:
                self._cancel.set()

            if timer is not None:
                timer.cancel()
                await asyncio.wait([timer])

            # Sweeps are shielded from the timer's cancellation; wait them out
            async with self._sweep_lock:
                pass
            self._cancel.clear()

        logger.info("Live album scheduler stopped")

    async def _timer_loop(self) -> None:
        while True:
            await self._sleep(self.interval)
            if self._sweep_lock.locked():
                self.coalesced_count += 1
                logger.info("Skipping scheduled sweep: previous sweep still in progress")
                continue

            task = asyncio.create_task(self._locked_sweep("timer"), name="live-album-sweep")
            self._sweeps.add(task)
            task.add_done_callback(self._sweeps.discard)
            await asyncio.shield(task)

    # =========================================================================
    # Sweeps
    # =========================================================================

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the sweep lock, so a single-definition run never overlaps a sweep."""
        async with self._sweep_lock:
            yield

    async def run_now(self) -> SweepResult:
        """Run a full sweep immediately, after any sweep already in flight."""
        return await self._locked_sweep("manual")

    async def _locked_sweep(self, trigger: str) -> SweepResult:
        async with self._sweep_lock:
            return await self._sweep(trigger)

    async def _sweep(self, trigger: str) -> SweepResult:
        sweep = SweepResult(started_at=self._clock(), trigger=trigger)
        logger.info("Starting live album sweep (trigger=%s)", trigger)

        with logfire.span("livealbum.sweep", trigger=trigger) as span:
            carriers = await self._enumerate(sweep)

            for carrier in carriers:
                if self._cancel.is_set():
                    sweep.cancelled = True
                    logger.warning(
                        "Sweep cancelled after %d of %d definitions",
                        len(sweep.results),
                        len(carriers),
                    )
                    break
                sweep.results.append(await self._reconcile_one(carrier))

            sweep.finished_at = self._clock()
            span.set_attribute("processed", len(sweep.results))
            span.set_attribute("errors", sweep.failure_count)

        self.last_sweep = sweep
        self.sweep_count += 1
        record_sweep(sweep)

        logger.info(
            "Live album sweep completed: success=%d errors=%d skipped=%d "
            "total_added=%d total_removed=%d",
            sweep.success_count,
            sweep.failure_count,
            sweep.skipped_count,
            sweep.total_added,
            sweep.total_removed,
        )
        return sweep

    async def _reconcile_one(self, carrier: DefinitionCarrier) -> ReconcileResult:
        try:
            definition = await carrier.refresh()
        except DefinitionNotFound:
            logger.debug("Skipping '%s': deleted since the sweep started", carrier.definition.label)
            return ReconcileResult(
                definition_id=carrier.definition.id,
                definition_name=carrier.definition.label,
                carrier=carrier.kind,
                collection_id=carrier.definition.collection_id,
                collection_name=carrier.definition.collection_name,
                status=RunStatus.SKIPPED,
            )

        if not definition.enabled:
            logger.debug("Skipping disabled definition '%s'", definition.label)
            return ReconcileResult(
                definition_id=definition.id,
                definition_name=definition.label,
                carrier=carrier.kind,
                collection_id=definition.collection_id,
                collection_name=definition.collection_name,
                status=RunStatus.SKIPPED,
            )

        try:
            return await self.reconciler.reconcile(carrier)
        except Exception as e:
            # One broken definition must not abort the sweep
            logger.exception("Unexpected error reconciling '%s'", definition.label)
            return ReconcileResult(
                definition_id=definition.id,
                definition_name=definition.label,
                carrier=carrier.kind,
                collection_id=definition.collection_id,
                status=RunStatus.FAILED,
                error=str(e),
                error_code="internal_error",
            )

    async def _enumerate(self, sweep: SweepResult) -> list[DefinitionCarrier]:
        """Collect live albums and stored smart albums in a stable order."""
        carriers: list[DefinitionCarrier] = []

        try:
            collections = await self.reconciler.bounded(self.catalog.list_collections())
        except Exception as e:
            message = f"failed to list albums: {e!s}"
            logger.error("Live album scan failed: %s", message)
            sweep.enumeration_errors.append(message)
        else:
            for collection in collections:
                try:
                    carriers.append(EmbeddedCarrier.from_collection(self.catalog, collection))
                except NotLive:
                    continue
                except MalformedMetadata:
                    logger.debug("Album %s description is not live album metadata", collection.id)

        carriers.extend(StoredCarrier(self.store, d) for d in self.store.list())
        carriers.sort(key=lambda c: (c.definition.label.lower(), c.definition.id or ""))
        return carriers

    def status(self) -> dict:
        """Snapshot for status tools."""
        return {
            "state": self._state.value,
            "running": self.is_running(),
            "enabled": self.enabled,
            "sweeping": self.is_sweeping(),
            "intervalSeconds": self.interval,
            "sweepCount": self.sweep_count,
            "coalescedCount": self.coalesced_count,
            "lastSweep": self.last_sweep.summary() if self.last_sweep else None,
        }
