"""Rule-based hygiene audit of work items.

Each rule looks at one work item and decides whether it applies. The engine
runs every rule against every item in backlog order and turns the outcomes into
HygieneCheckResult records. A rule that raises does not stop the audit: the
exception is recorded as a failed ERROR result for that item and rule.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from . import swag
from .models import FEATURE, RELEASE_TRAIN, HygieneCheckResult, Severity
from .release_train import is_separator_title, match_release_train

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from .models import WorkItem

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

KNOWN_STATES: Final[frozenset[str]] = frozenset(
    {
        "new",
        "proposed",
        "approved",
        "committed",
        "active",
        "open",
        "to do",
        "doing",
        "in progress",
        "resolved",
        "done",
        "completed",
        "closed",
        "removed",
        "cut",
    }
)

MIN_STATUS_NOTES_LENGTH: Final[int] = 20

_ERROR_RECOMMENDATION: Final[str] = "Review work item permissions and data integrity"
_MARKER_LIKE: Final[re.Pattern[str]] = re.compile(r"rt(?::\s*\d+)?\s*$", re.IGNORECASE)
_TRACKED_TYPES: Final[frozenset[str]] = frozenset({FEATURE, RELEASE_TRAIN})


@dataclass(frozen=True)
class RuleOutcome:
    """Verdict of one rule on one work item."""

    passed: bool
    severity: Severity = Severity.INFO
    details: str = ""
    recommendation: str = ""


@dataclass(frozen=True)
class HygieneRule:
    """A named single-item check.

    ``check`` returns None when the rule does not apply to the item.
    """

    name: str
    description: str
    check: Callable[[WorkItem], RuleOutcome | None]
    applies_to_separators: bool = False


def _is_tracked(item: WorkItem) -> bool:
    return item.work_item_type in _TRACKED_TYPES


def _check_title(item: WorkItem) -> RuleOutcome:
    if item.title and item.title.strip():
        return RuleOutcome(passed=True, details="Title present")
    return RuleOutcome(
        passed=False,
        severity=Severity.ERROR,
        details="Work item has no title",
        recommendation="Give the work item a descriptive title",
    )


def _check_state(item: WorkItem) -> RuleOutcome:
    state = (item.state or "").strip()
    if not state:
        return RuleOutcome(
            passed=False,
            severity=Severity.CRITICAL,
            details="Work item has no state",
            recommendation="Set the work item to a valid workflow state",
        )
    if state.lower() not in KNOWN_STATES:
        return RuleOutcome(
            passed=False,
            severity=Severity.WARNING,
            details=f"State '{state}' is not a known workflow state",
            recommendation="Move the work item to a standard workflow state",
        )
    return RuleOutcome(passed=True, details=f"State '{state}'")


def _check_status_notes(item: WorkItem) -> RuleOutcome | None:
    if not (_is_tracked(item) and item.is_open):
        return None

    notes = swag.strip_prefix(item.status_notes).strip()
    if len(notes) > MIN_STATUS_NOTES_LENGTH:
        return RuleOutcome(
            passed=True,
            details=f"Status notes present ({len(notes)} characters)",
            recommendation="Status documentation looks adequate",
        )
    return RuleOutcome(
        passed=False,
        severity=Severity.WARNING,
        details=f"Status notes present ({len(notes)} characters)" if notes else "No status notes provided",
        recommendation="Consider adding detailed status notes to provide context and current status",
    )


def _check_swag(item: WorkItem) -> RuleOutcome | None:
    if not _is_tracked(item):
        return None

    result = swag.validate(item)
    if not result.issues:
        return RuleOutcome(passed=True, details="SWAG field and status notes agree")
    return RuleOutcome(
        passed=False,
        severity=result.severity,
        details="; ".join(result.issues),
        recommendation="Keep the SWAG field and the [SWAG: n] status notes prefix in sync",
    )


def _check_iteration_path(item: WorkItem) -> RuleOutcome | None:
    if not (_is_tracked(item) and item.is_open):
        return None

    if item.iteration_path and item.iteration_path.strip():
        return RuleOutcome(passed=True, details=f"Iteration path: {item.iteration_path}")
    return RuleOutcome(
        passed=False,
        severity=Severity.WARNING,
        details="No iteration path set",
        recommendation=f"Set an appropriate iteration path for this {item.work_item_type}",
    )


def _check_marker(item: WorkItem) -> RuleOutcome | None:
    title = (item.title or "").strip()
    if not title.startswith("---") or not _MARKER_LIKE.search(title):
        return None

    name = match_release_train(title)
    if name is not None:
        return RuleOutcome(passed=True, details=f"Release Train '{name}'")
    return RuleOutcome(
        passed=False,
        severity=Severity.WARNING,
        details=f"Title '{title}' looks like a Release Train marker but cannot be parsed",
        recommendation="Use the '--- <name> ---rt' title format",
    )


DEFAULT_RULES: Final[tuple[HygieneRule, ...]] = (
    HygieneRule(
        "Title Present",
        "Check if the work item has a title",
        _check_title,
        applies_to_separators=True,
    ),
    HygieneRule("State Recognized", "Check if the work item is in a known workflow state", _check_state),
    HygieneRule("Status Notes Currency", "Check if the work item has adequate status notes", _check_status_notes),
    HygieneRule("SWAG Consistency", "Check if the SWAG field and status notes prefix agree", _check_swag),
    HygieneRule("Iteration Path Set", "Check if the work item has an iteration path set", _check_iteration_path),
    HygieneRule("Release Train Marker", "Check if a Release Train marker title is well formed", _check_marker),
)


def _run_rule(rule: HygieneRule, item: WorkItem) -> HygieneCheckResult | None:
    try:
        outcome = rule.check(item)
    except Exception as e:  # noqa: BLE001
        logger.exception(f"Hygiene rule '{rule.name}' failed for work item #{item.id}")
        return HygieneCheckResult(
            check_name=rule.name,
            passed=False,
            severity=Severity.ERROR,
            work_item_id=item.id,
            work_item_title=item.title,
            work_item_url=item.url,
            description=rule.description,
            details=f"Exception: {e}",
            recommendation=_ERROR_RECOMMENDATION,
        )

    if outcome is None:
        return None
    return HygieneCheckResult(
        check_name=rule.name,
        passed=outcome.passed,
        severity=outcome.severity,
        work_item_id=item.id,
        work_item_title=item.title,
        work_item_url=item.url,
        description=rule.description,
        details=outcome.details,
        recommendation=outcome.recommendation,
    )


def evaluate(items: Iterable[WorkItem], rules: Sequence[HygieneRule] = DEFAULT_RULES) -> list[HygieneCheckResult]:
    """Run every applicable rule against every item.

    Args:
        items: Work items in backlog order
        rules: Rules in evaluation order

    Returns:
        One result per applicable (item, rule) pair, ordered by item then rule
    """
    results: list[HygieneCheckResult] = []
    for item in items:
        separator = is_separator_title(item.title)
        for rule in rules:
            if separator and not rule.applies_to_separators:
                continue
            result = _run_rule(rule, item)
            if result is not None:
                results.append(result)

    logger.debug(f"Hygiene evaluation produced {len(results)} result(s)")
    return results
