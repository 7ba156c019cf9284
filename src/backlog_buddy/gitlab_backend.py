"""GitLab project issues as a work item repository.

Work item attributes live in scoped labels (``type::Feature``,
``state::Active``, ``swag::5``); the description holds the status notes.
Release train parents are labelled ``release-train`` and ``auto-generated``
and are linked to their members with ``relates_to`` issue links.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests
from gitlab.exceptions import GitlabError

from .exceptions import FetchError, RepositoryError
from .models import RELEASE_TRAIN, AggregateParent, WorkItem
from .release_train import normalize_key
from .swag import format_value

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gitlab.v4.objects import Project, ProjectIssue

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

TYPE_SCOPE: Final[str] = "type::"
STATE_SCOPE: Final[str] = "state::"
SWAG_SCOPE: Final[str] = "swag::"
RELEASE_TRAIN_LABEL: Final[str] = "release-train"
AUTO_GENERATED_LABEL: Final[str] = "auto-generated"
LINK_TYPE: Final[str] = "relates_to"

_DEFAULT_TYPE: Final[str] = "Issue"
_DEFAULT_OPEN_STATE: Final[str] = "Active"


def _scoped_value(labels: Sequence[str], scope: str) -> str | None:
    for label in labels:
        if label.lower().startswith(scope):
            return label[len(scope) :].strip() or None
    return None


def _milestone_title(milestone: dict[str, Any] | None) -> str | None:
    if not milestone:
        return None
    return milestone.get("title")


def issue_to_work_item(issue: ProjectIssue) -> WorkItem:
    """Convert a GitLab issue to a WorkItem."""
    labels: list[str] = list(issue.labels)
    if issue.state == "closed":
        state = "Closed"
    else:
        state = _scoped_value(labels, STATE_SCOPE) or _DEFAULT_OPEN_STATE

    work_item_type = _scoped_value(labels, TYPE_SCOPE)
    if work_item_type is None:
        work_item_type = RELEASE_TRAIN if RELEASE_TRAIN_LABEL in labels else _DEFAULT_TYPE

    swag_label = _scoped_value(labels, SWAG_SCOPE)
    try:
        swag = float(swag_label) if swag_label is not None else None
    except ValueError:
        logger.debug(f"Ignoring malformed SWAG label on issue #{issue.iid}: {swag_label}")
        swag = None

    return WorkItem(
        id=issue.iid,
        title=issue.title,
        work_item_type=work_item_type,
        state=state,
        swag=swag,
        status_notes=issue.description or "",
        url=issue.web_url,
        iteration_path=_milestone_title(issue.milestone),
        tags=[label for label in labels if "::" not in label],
    )


class GitLabRepository:
    """WorkItemRepository backed by the issues of one GitLab project."""

    project: Project

    def __init__(self, project: Project) -> None:
        self.project = project

    def fetch_work_items(self) -> list[WorkItem]:
        try:
            issues = self.project.issues.list(get_all=True, order_by="created_at", sort="asc")
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to read issues of {self.project.path_with_namespace}: {e}"
            raise FetchError(msg) from e

        logger.debug(f"Fetched {len(issues)} issues from {self.project.path_with_namespace}")
        return [issue_to_work_item(issue) for issue in issues]

    def find_aggregate_parent(self, group_key: str) -> AggregateParent | None:
        try:
            candidates = self.project.issues.list(get_all=True, labels=[RELEASE_TRAIN_LABEL, AUTO_GENERATED_LABEL])
            for issue in candidates:
                if normalize_key(issue.title) != group_key:
                    continue
                links = issue.links.list(get_all=True)
                item = issue_to_work_item(issue)
                return AggregateParent(
                    id=issue.iid,
                    title=issue.title,
                    linked_item_ids=[
                        link.iid
                        for link in links
                        if link.link_type == LINK_TYPE and link.project_id == self.project.id
                    ],
                    swag=item.swag,
                    status_notes=item.status_notes,
                )
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to look up release train parent '{group_key}': {e}"
            raise RepositoryError(msg) from e
        return None

    def create_aggregate_parent(self, title: str, member_ids: Sequence[int]) -> int:
        try:
            parent = self.project.issues.create(
                {
                    "title": title,
                    "labels": [RELEASE_TRAIN_LABEL, AUTO_GENERATED_LABEL, f"{TYPE_SCOPE}{RELEASE_TRAIN}"],
                }
            )
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to create release train parent '{title}': {e}"
            raise RepositoryError(msg) from e

        logger.debug(f"Created release train parent #{parent.iid} '{title}'")
        self.add_links(parent.iid, member_ids)
        return parent.iid

    def add_links(self, parent_id: int, member_ids: Sequence[int]) -> None:
        try:
            parent = self.project.issues.get(parent_id)
            for iid in member_ids:
                parent.links.create(
                    {
                        "target_project_id": self.project.id,
                        "target_issue_iid": iid,
                        "link_type": LINK_TYPE,
                    }
                )
                logger.debug(f"Linked #{iid} to release train parent #{parent_id}")
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to link issues to release train parent #{parent_id}: {e}"
            raise RepositoryError(msg) from e

    def update_estimate(self, item_id: int, value: float, status_notes: str) -> None:
        try:
            issue = self.project.issues.get(item_id)
            labels = [label for label in issue.labels if not label.lower().startswith(SWAG_SCOPE)]
            issue.labels = [*labels, f"{SWAG_SCOPE}{format_value(value)}"]
            issue.description = status_notes
            issue.save()
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to update SWAG of issue #{item_id}: {e}"
            raise RepositoryError(msg) from e
