"""Data models shared by the hygiene, estimate and release train engines.

These models represent the normalized data exchanged between a
WorkItemRepository and the engines. They are intentionally simple and
backend-agnostic: every derived object only carries the denormalized
id/title/url of the work item it describes, so a summary can be serialized
with ``dataclasses.asdict`` on its own.
"""

from __future__ import annotations

import enum
import functools
from dataclasses import dataclass, field

# Ranks backing the total order of Severity (higher is more severe)
_SEVERITY_RANKS: dict[str, int] = {
    "info": 0,
    "warning": 1,
    "error": 2,
    "critical": 3,
}

FEATURE = "Feature"
RELEASE_TRAIN = "Release Train"

# States (lowercase) in which a work item no longer needs grooming
CLOSED_STATES: frozenset[str] = frozenset({"closed", "removed", "done", "completed", "cut"})


@functools.total_ordering
class Severity(enum.Enum):
    """Severity of a hygiene finding, ordered INFO < WARNING < ERROR < CRITICAL."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


class OperationType(enum.Enum):
    """What the reconciler did with a release train's aggregate parent."""

    CREATED = "Created"
    UPDATED = "Updated"


@dataclass
class WorkItem:
    """A work item from the backlog.

    Work items are read-only snapshots: the engines compute desired values
    and ask the repository to apply them, they never mutate an item.
    """

    id: int
    title: str
    work_item_type: str
    state: str
    swag: float | None = None
    status_notes: str = ""
    url: str = ""
    iteration_path: str | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.state.strip().lower() not in CLOSED_STATES


@dataclass
class AggregateParent:
    """The repository's view of an existing release train parent."""

    id: int
    title: str
    linked_item_ids: list[int] = field(default_factory=list)
    swag: float | None = None
    status_notes: str = ""


@dataclass
class EstimateValidationResult:
    """Verdict on the two places a SWAG estimate can be recorded."""

    field_value: float | None
    notes_value: float | None
    is_consistent: bool = True
    severity: Severity = Severity.INFO
    issues: list[str] = field(default_factory=list)


@dataclass
class HygieneCheckResult:
    """Outcome of one hygiene rule for one work item."""

    check_name: str
    passed: bool
    severity: Severity
    work_item_id: int
    work_item_title: str
    work_item_url: str = ""
    description: str = ""
    details: str = ""
    recommendation: str = ""


@dataclass
class HygieneCheckSummary:
    """All hygiene results of a run, in evaluation order."""

    check_results: list[HygieneCheckResult] = field(default_factory=list)

    @property
    def total_checks(self) -> int:
        return len(self.check_results)

    @property
    def passed_checks(self) -> int:
        return sum(1 for r in self.check_results if r.passed)

    @property
    def failed_checks(self) -> int:
        return self.total_checks - self.passed_checks

    @property
    def health_score(self) -> float:
        """Percentage of passed checks; a run without checks is fully healthy."""
        if self.total_checks == 0:
            return 100.0
        return self.passed_checks / self.total_checks * 100

    @property
    def critical_issues(self) -> int:
        return self._failed_with(Severity.CRITICAL)

    @property
    def error_issues(self) -> int:
        return self._failed_with(Severity.ERROR)

    @property
    def warning_issues(self) -> int:
        return self._failed_with(Severity.WARNING)

    def _failed_with(self, severity: Severity) -> int:
        return sum(1 for r in self.check_results if not r.passed and r.severity is severity)


@dataclass
class ReleaseTrainOperation:
    """One create or update of a release train's aggregate parent."""

    operation: OperationType
    title: str
    id: int
    total_work_items: int
    new_relations_added: int


@dataclass
class GroupFailure:
    """A release train group whose create/link/update failed."""

    group_key: str
    title: str
    message: str


@dataclass
class ReleaseTrainSummary:
    """Result of a release train reconciliation run."""

    operations: list[ReleaseTrainOperation] = field(default_factory=list)
    total_backlog_items_processed: int = 0
    backlog_read_successfully: bool = False
    failures: list[GroupFailure] = field(default_factory=list)
