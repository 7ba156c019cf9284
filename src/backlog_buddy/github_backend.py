"""GitHub issues as a work item repository.

Work item attributes live in labels:

- ``type: <Type>``: work item type (e.g. ``type: Feature``)
- ``state: <State>``: workflow state of an open issue; closed issues are "Closed"
- ``swag: <n>``: the structured SWAG estimate

The issue body holds the status notes and the milestone title acts as the
iteration path. Release train parents carry the ``release-train`` and
``auto-generated`` labels and their members are linked as sub-issues.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

import requests
from github import GithubException

from .exceptions import FetchError, RepositoryError
from .models import RELEASE_TRAIN, AggregateParent, WorkItem
from .release_train import normalize_key
from .swag import format_value

if TYPE_CHECKING:
    from collections.abc import Sequence

    from github.Issue import Issue
    from github.Repository import Repository

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

TYPE_PREFIX: Final[str] = "type:"
STATE_PREFIX: Final[str] = "state:"
SWAG_PREFIX: Final[str] = "swag:"
RELEASE_TRAIN_LABEL: Final[str] = "release-train"
AUTO_GENERATED_LABEL: Final[str] = "auto-generated"

_DEFAULT_TYPE: Final[str] = "Issue"
_DEFAULT_OPEN_STATE: Final[str] = "Active"


def _label_value(labels: Sequence[str], prefix: str) -> str | None:
    """Value of the first ``<prefix> <value>`` label, matched case-insensitively."""
    for label in labels:
        if label.lower().startswith(prefix):
            value = label[len(prefix) :].strip()
            if value:
                return value
    return None


def _parse_swag(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.debug(f"Ignoring malformed SWAG label value '{raw}'")
        return None


def issue_to_work_item(issue: Issue) -> WorkItem:
    """Convert a GitHub issue to a WorkItem."""
    labels = [label.name for label in issue.labels]
    if issue.state == "closed":
        state = "Closed"
    else:
        state = _label_value(labels, STATE_PREFIX) or _DEFAULT_OPEN_STATE

    work_item_type = _label_value(labels, TYPE_PREFIX)
    if work_item_type is None:
        work_item_type = RELEASE_TRAIN if RELEASE_TRAIN_LABEL in labels else _DEFAULT_TYPE

    return WorkItem(
        id=issue.number,
        title=issue.title,
        work_item_type=work_item_type,
        state=state,
        swag=_parse_swag(_label_value(labels, SWAG_PREFIX)),
        status_notes=issue.body or "",
        url=issue.html_url,
        iteration_path=issue.milestone.title if issue.milestone else None,
        tags=[label for label in labels if not label.lower().startswith((TYPE_PREFIX, STATE_PREFIX, SWAG_PREFIX))],
    )


class GitHubRepository:
    """WorkItemRepository backed by the issues of one GitHub repository."""

    repo: Repository
    _issues: dict[int, Issue]

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self._issues = {}

    def _get_issue(self, number: int) -> Issue:
        if number not in self._issues:
            self._issues[number] = self.repo.get_issue(number)
        return self._issues[number]

    def fetch_work_items(self) -> list[WorkItem]:
        try:
            issues = [issue for issue in self.repo.get_issues(state="all", direction="asc") if issue.pull_request is None]
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to read issues of {self.repo.full_name}: {e}"
            raise FetchError(msg) from e

        self._issues = {issue.number: issue for issue in issues}
        logger.debug(f"Fetched {len(issues)} issues from {self.repo.full_name}")
        return [issue_to_work_item(issue) for issue in issues]

    def find_aggregate_parent(self, group_key: str) -> AggregateParent | None:
        try:
            for issue in self.repo.get_issues(state="all", labels=[RELEASE_TRAIN_LABEL, AUTO_GENERATED_LABEL]):
                if normalize_key(issue.title) != group_key:
                    continue
                item = issue_to_work_item(issue)
                return AggregateParent(
                    id=issue.number,
                    title=issue.title,
                    linked_item_ids=[sub_issue.number for sub_issue in issue.get_sub_issues()],
                    swag=item.swag,
                    status_notes=item.status_notes,
                )
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to look up release train parent '{group_key}': {e}"
            raise RepositoryError(msg) from e
        return None

    def create_aggregate_parent(self, title: str, member_ids: Sequence[int]) -> int:
        try:
            parent = self.repo.create_issue(
                title=title,
                body="",
                labels=[RELEASE_TRAIN_LABEL, AUTO_GENERATED_LABEL, f"{TYPE_PREFIX} {RELEASE_TRAIN}"],
            )
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to create release train parent '{title}': {e}"
            raise RepositoryError(msg) from e

        self._issues[parent.number] = parent
        logger.debug(f"Created release train parent #{parent.number} '{title}'")
        self.add_links(parent.number, member_ids)
        return parent.number

    def add_links(self, parent_id: int, member_ids: Sequence[int]) -> None:
        try:
            parent = self._get_issue(parent_id)
            for number in member_ids:
                # Sub-issues are added by issue id, not by number
                parent.add_sub_issue(self._get_issue(number).id)
                logger.debug(f"Linked #{number} as sub-issue of #{parent_id}")
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to link issues to release train parent #{parent_id}: {e}"
            raise RepositoryError(msg) from e

    def update_estimate(self, item_id: int, value: float, status_notes: str) -> None:
        try:
            issue = self._get_issue(item_id)
            labels = [label.name for label in issue.labels if not label.name.lower().startswith(SWAG_PREFIX)]
            issue.edit(body=status_notes, labels=[*labels, f"{SWAG_PREFIX} {format_value(value)}"])
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to update SWAG of issue #{item_id}: {e}"
            raise RepositoryError(msg) from e
