"""Custom metrics for the live album engine."""

import logfire

from ..models.results import ReconcileResult, RunStatus, SweepResult

sweeps_total = logfire.metric_counter(
    "livealbum.sweeps.total", description="Scheduler sweeps by trigger"
)

assets_added = logfire.metric_counter(
    "livealbum.assets.added", description="Assets added to destination albums"
)

assets_removed = logfire.metric_counter(
    "livealbum.assets.removed", description="Assets removed from destination albums (full-sync)"
)

runs_failed = logfire.metric_counter(
    "livealbum.runs.failed", description="Reconciliation runs that failed outright"
)

sweep_duration = logfire.metric_histogram(
    "livealbum.sweep.duration_ms", unit="milliseconds", description="Wall time of one sweep"
)


def record_reconcile_result(result: ReconcileResult) -> None:
    """Count the membership changes and failures of one pass."""
    attributes = {"carrier": result.carrier}
    if result.added_ids:
        assets_added.add(len(result.added_ids), attributes)
    if result.removed_ids:
        assets_removed.add(len(result.removed_ids), attributes)
    if result.status == RunStatus.FAILED:
        runs_failed.add(1, {**attributes, "error_code": result.error_code or "unknown"})


def record_sweep(sweep: SweepResult) -> None:
    """Count one finished sweep."""
    sweeps_total.add(1, {"trigger": sweep.trigger, "cancelled": sweep.cancelled})
    if sweep.finished_at is not None:
        elapsed = (sweep.finished_at - sweep.started_at).total_seconds() * 1000
        sweep_duration.record(elapsed, {"trigger": sweep.trigger})
