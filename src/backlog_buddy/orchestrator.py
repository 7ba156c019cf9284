"""Batch runs that thread one backlog snapshot through the engines.

Every run follows the same shape:

Phase 1: Snapshot
    - Read all work items from the repository once
    - A FetchError ends the run with backlog_read_successfully=False;
      no engine is invoked and nothing is written

Phase 2: Analysis (pure)
    - hygiene: evaluate the rule battery against each item
    - release trains / SWAG updates: group marker items by normalized key

Phase 3: Apply (side effects, one group at a time)
    - release trains: create missing parents, link missing members
    - SWAG updates: write rolled-up estimates to out-of-date parents
    A repository failure is recorded for its group and the run continues.

Runs hold no state between calls: every run returns its own result object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from . import hygiene, swag
from .exceptions import FetchError
from .models import HygieneCheckSummary
from .reconciler import ReleaseTrainReconciler
from .release_train import build_groups
from .summary import summarize_hygiene, summarize_operations
from .swag_rollup import apply_rollups

if TYPE_CHECKING:
    from collections.abc import Callable

    from .models import EstimateValidationResult, GroupFailure, ReleaseTrainSummary, WorkItem
    from .protocols import WorkItemRepository
    from .swag_rollup import SwagRollup

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class HygieneRun:
    """Result of a hygiene audit run."""

    summary: HygieneCheckSummary
    backlog_read_successfully: bool


@dataclass
class SwagUpdateRun:
    """Result of a SWAG roll-up run."""

    rollups: list[SwagRollup] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)
    total_backlog_items_processed: int = 0
    backlog_read_successfully: bool = False

    @property
    def updated_count(self) -> int:
        return sum(1 for rollup in self.rollups if rollup.updated)


def fetch_snapshot(repository: WorkItemRepository) -> list[WorkItem] | None:
    """Read the backlog once; None when it cannot be read."""
    if repository is None:
        msg = "A work item repository is required"
        raise ValueError(msg)

    try:
        items = repository.fetch_work_items()
    except FetchError as e:
        logger.error(f"Failed to read the backlog: {e}")  # noqa: TRY400
        return None

    logger.info(f"Read {len(items)} work item(s) from the backlog")
    return items


def run_hygiene(repository: WorkItemRepository) -> HygieneRun:
    items = fetch_snapshot(repository)
    if items is None:
        return HygieneRun(summary=HygieneCheckSummary(), backlog_read_successfully=False)

    summary = summarize_hygiene(hygiene.evaluate(items))
    logger.info(
        f"Hygiene: {summary.passed_checks}/{summary.total_checks} checks passed "
        f"(health score {summary.health_score:.1f}%)"
    )
    return HygieneRun(summary=summary, backlog_read_successfully=True)


def run_release_trains(
    repository: WorkItemRepository,
    *,
    on_error: Callable[[GroupFailure], None] | None = None,
) -> ReleaseTrainSummary:
    """Create or complete the aggregate parent of every release train in the backlog."""
    items = fetch_snapshot(repository)
    if items is None:
        return summarize_operations([], 0, False)

    result = ReleaseTrainReconciler(repository, on_error=on_error).reconcile(build_groups(items))
    return summarize_operations(result.operations, len(items), True, result.failures)


def run_swag_updates(
    repository: WorkItemRepository,
    *,
    on_error: Callable[[GroupFailure], None] | None = None,
) -> SwagUpdateRun:
    """Roll member estimates up into the existing release train parents."""
    items = fetch_snapshot(repository)
    if items is None:
        return SwagUpdateRun()

    rollups, failures = apply_rollups(repository, build_groups(items), items, on_error=on_error)
    return SwagUpdateRun(
        rollups=rollups,
        failures=failures,
        total_backlog_items_processed=len(items),
        backlog_read_successfully=True,
    )


def validate_item(repository: WorkItemRepository, item_id: int) -> EstimateValidationResult | None:
    """Validate the SWAG sources of a single work item.

    Returns:
        The validation result, or None if the item is not in the backlog

    Raises:
        FetchError: If the backlog cannot be read
    """
    for item in repository.fetch_work_items():
        if item.id == item_id:
            return swag.validate(item)

    logger.warning(f"Work item #{item_id} not found in the backlog")
    return None
