"""Batch runner for units of work.

Drives the orchestrator over many units. A unit that fails with SkipUnit
(already reported) is recorded as failed and the batch continues; any other
exception is a defect and aborts the batch.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field

from protogen_core.errors import SkipUnit
from protogen_core.orchestrator import CompilationOrchestrator
from protogen_core.unit import UnitOfWork

logger = structlog.get_logger(__name__)


class UnitStatus(str, Enum):
    """Outcome of one unit.

    Attributes:
        SUCCEEDED: All generated files were written to the sink
        FAILED: The unit was skipped after reporting its failure
    """

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UnitResult(BaseModel):
    """Result of a single unit of work.

    Attributes:
        name: Unit name
        status: Unit outcome
        message: Failure message, empty on success
        error_type: Name of the error class that failed the unit
        artifacts: Qualified names written to the sink
        duration_ms: Unit duration in milliseconds
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Unit name")
    status: UnitStatus = Field(..., description="Unit outcome")
    message: str = Field(default="", description="Failure message")
    error_type: str | None = Field(default=None, description="Failing error class")
    artifacts: list[str] = Field(default_factory=list, description="Generated sources")
    duration_ms: int = Field(default=0, ge=0, description="Duration in milliseconds")

    @property
    def passed(self) -> bool:
        return self.status == UnitStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == UnitStatus.FAILED


class BatchResult(BaseModel):
    """Aggregated result of a batch of units.

    Attributes:
        units: Per-unit results, in submission order
        started_at: When the batch started
        finished_at: When the batch finished
        total_duration_ms: Total duration in milliseconds
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    units: list[UnitResult] = Field(default_factory=list, description="Unit results")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Start time"
    )
    finished_at: datetime | None = Field(default=None, description="End time")
    total_duration_ms: int = Field(default=0, ge=0, description="Total duration")

    @property
    def passed(self) -> bool:
        """True when every unit succeeded."""
        return all(u.passed for u in self.units)

    @property
    def passed_count(self) -> int:
        return sum(1 for u in self.units if u.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for u in self.units if u.failed)


def run_unit(orchestrator: CompilationOrchestrator, unit: UnitOfWork) -> UnitResult:
    """Run one unit and convert SkipUnit into a failed result.

    Raises:
        Exception: Anything other than SkipUnit raised by the orchestrator.
    """
    start_time = time.monotonic()
    try:
        artifacts = orchestrator.run(unit)
    except SkipUnit as skip:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.warning("unit_skipped", unit=unit.name, error=str(skip.error))
        return UnitResult(
            name=unit.name,
            status=UnitStatus.FAILED,
            message=str(skip.error),
            error_type=type(skip.error).__name__,
            duration_ms=duration_ms,
        )

    duration_ms = int((time.monotonic() - start_time) * 1000)
    return UnitResult(
        name=unit.name,
        status=UnitStatus.SUCCEEDED,
        artifacts=artifacts,
        duration_ms=duration_ms,
    )


def run_units(
    orchestrator: CompilationOrchestrator,
    units: Sequence[UnitOfWork],
    *,
    max_workers: int = 1,
) -> BatchResult:
    """Run a batch of units, isolating per-unit failures.

    Args:
        orchestrator: Orchestrator to run each unit with.
        units: Units to run.
        max_workers: Run units on a thread pool when greater than 1.

    Returns:
        BatchResult with one UnitResult per unit, in submission order.

    Example:
        >>> result = run_units(CompilationOrchestrator(), units, max_workers=4)
        >>> result.failed_count
        0
    """
    start_time = time.monotonic()
    started_at = datetime.now(UTC)
    log = logger.bind(component="batch_runner")
    log.info("batch_started", units=len(units), max_workers=max_workers)

    if max_workers > 1 and len(units) > 1:
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="protogen-unit"
        ) as executor:
            futures = [executor.submit(run_unit, orchestrator, unit) for unit in units]
            results = [future.result() for future in futures]
    else:
        results = [run_unit(orchestrator, unit) for unit in units]

    total_duration_ms = int((time.monotonic() - start_time) * 1000)
    batch = BatchResult(
        units=results,
        started_at=started_at,
        finished_at=datetime.now(UTC),
        total_duration_ms=total_duration_ms,
    )
    log.info(
        "batch_completed",
        passed=batch.passed_count,
        failed=batch.failed_count,
        duration_ms=total_duration_ms,
    )
    return batch
