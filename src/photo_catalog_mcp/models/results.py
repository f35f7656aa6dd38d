"""
Result models returned by the reconciliation engine.

Callers distinguish "nothing to do", "partial failure" and "hard failure"
through ``RunStatus`` instead of parsing messages.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RunStatus(str, enum.Enum):
    """Outcome of one reconciliation pass."""

    NO_CHANGES = "no_changes"
    APPLIED = "applied"
    PARTIAL = "partial"
    DRY_RUN = "dry_run"
    FAILED = "failed"
    SKIPPED = "skipped"


class BulkIdResult(BaseModel):
    """Partition of a best-effort bulk add or remove call."""

    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    """Everything one reconciliation pass did (or would do, for a dry run)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    definition_id: str | None = None
    definition_name: str = ""
    carrier: str = "store"
    collection_id: str = ""
    collection_name: str = ""
    status: RunStatus = RunStatus.NO_CHANGES
    dry_run: bool = False

    total_matches: int = 0
    already_present: int = 0
    to_add_count: int = 0
    to_remove_count: int = 0
    preview_add_ids: list[str] = Field(default_factory=list)
    preview_remove_ids: list[str] = Field(default_factory=list)

    added_ids: list[str] = Field(default_factory=list)
    failed_add_ids: list[str] = Field(default_factory=list)
    removed_ids: list[str] = Field(default_factory=list)
    failed_remove_ids: list[str] = Field(default_factory=list)

    error: str | None = None
    error_code: str | None = None
    persist_error: str | None = None
    persist_error_code: str | None = None
    run_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        """Partial failures still count as a successful run."""
        return self.status != RunStatus.FAILED

    @property
    def moved_count(self) -> int:
        """Assets whose membership actually changed."""
        return len(self.added_ids) + len(self.removed_ids)

    @property
    def failed_count(self) -> int:
        """Assets the catalog refused to add or remove."""
        return len(self.failed_add_ids) + len(self.failed_remove_ids)

    def to_response(self) -> dict:
        """camelCase dict for tool responses, including derived counters."""
        data = self.model_dump(mode="json", by_alias=True)
        data["movedCount"] = self.moved_count
        data["failedCount"] = self.failed_count
        data["addedCount"] = len(self.added_ids)
        data["removedCount"] = len(self.removed_ids)
        return data


class SweepResult(BaseModel):
    """Aggregate of one full sweep across every known definition."""

    started_at: datetime
    finished_at: datetime | None = None
    trigger: str = "manual"
    results: list[ReconcileResult] = Field(default_factory=list)
    enumeration_errors: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return sum(
            1 for r in self.results if r.succeeded and r.status != RunStatus.SKIPPED
        )

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.succeeded) + len(self.enumeration_errors)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == RunStatus.SKIPPED)

    @property
    def partial_count(self) -> int:
        return sum(1 for r in self.results if r.status == RunStatus.PARTIAL)

    @property
    def total_added(self) -> int:
        return sum(len(r.added_ids) for r in self.results)

    @property
    def total_removed(self) -> int:
        return sum(len(r.removed_ids) for r in self.results)

    def summary(self) -> dict:
        """Counters suitable for logging and tool responses."""
        return {
            "trigger": self.trigger,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "processed": len(self.results),
            "success": self.success_count,
            "errors": self.failure_count,
            "skipped": self.skipped_count,
            "partial": self.partial_count,
            "totalAdded": self.total_added,
            "totalRemoved": self.total_removed,
            "cancelled": self.cancelled,
        }
