"""Reduction of per-item results into run summaries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import HygieneCheckSummary, ReleaseTrainSummary

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import GroupFailure, HygieneCheckResult, ReleaseTrainOperation


def summarize_hygiene(results: Iterable[HygieneCheckResult]) -> HygieneCheckSummary:
    return HygieneCheckSummary(check_results=list(results))


def _results_of(source: HygieneCheckSummary | Iterable[HygieneCheckResult]) -> list[HygieneCheckResult]:
    if isinstance(source, HygieneCheckSummary):
        return source.check_results
    return list(source)


def group_failures_by_check(
    source: HygieneCheckSummary | Iterable[HygieneCheckResult],
) -> list[tuple[str, list[HygieneCheckResult]]]:
    """Group failed results by check name, largest group first.

    Groups of equal size keep the order in which their check first failed.
    """
    groups: dict[str, list[HygieneCheckResult]] = {}
    for result in _results_of(source):
        if not result.passed:
            groups.setdefault(result.check_name, []).append(result)
    # sorted() is stable, so ties keep first-discovery order
    return sorted(groups.items(), key=lambda group: len(group[1]), reverse=True)


def failed_checks_by_severity(
    source: HygieneCheckSummary | Iterable[HygieneCheckResult],
) -> list[HygieneCheckResult]:
    """Failed results, most severe first; equal severities keep evaluation order."""
    failed = [result for result in _results_of(source) if not result.passed]
    return sorted(failed, key=lambda result: result.severity.rank, reverse=True)


def summarize_operations(
    operations: Iterable[ReleaseTrainOperation],
    total_backlog_items_processed: int,
    backlog_read_successfully: bool,  # noqa: FBT001
    failures: Iterable[GroupFailure] = (),
) -> ReleaseTrainSummary:
    """Build the release train report; a failed read reports no operations."""
    if not backlog_read_successfully:
        return ReleaseTrainSummary(
            total_backlog_items_processed=total_backlog_items_processed,
            backlog_read_successfully=False,
        )
    return ReleaseTrainSummary(
        operations=list(operations),
        total_backlog_items_processed=total_backlog_items_processed,
        backlog_read_successfully=True,
        failures=list(failures),
    )
