"""Protocol defining the contract for work item repositories.

The tool separates concerns into two sides:

1. WorkItemRepository: reads and writes work items in a remote store
   (GitHub, GitLab, Azure DevOps, ...)
2. The engines: hygiene scoring, release train grouping/reconciliation and
   SWAG reconciliation, which only ever see the normalized models

This separation allows:
- Adding new stores without changing the engines
- Testing the engines with an in-memory repository
- Keeping retries, rate limiting and API quirks inside the backends
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import AggregateParent, WorkItem


class WorkItemRepository(Protocol):
    """Protocol for a remote work item store.

    The engines call methods in this order during a run:
    1. fetch_work_items() - Read the backlog snapshot once
    2. find_aggregate_parent() - Look up the parent of each release train group
    3. create_aggregate_parent() / add_links() - Create or complete the parent
    4. update_estimate() - Write a rolled-up SWAG back to a parent

    Nothing in the engines retries a failed call; a backend that wants
    retries or backoff implements them itself.

    Example implementations:
        - GitHubRepository: issues, labels and sub-issues via PyGithub
        - GitLabRepository: issues, scoped labels and issue links via python-gitlab
        - AzureDevOpsRepository: work items and Related links via the REST API
    """

    def fetch_work_items(self) -> list[WorkItem]:
        """Return the backlog snapshot in backlog order.

        Raises:
            FetchError: If the backlog cannot be read at all
        """
        ...

    def find_aggregate_parent(self, group_key: str) -> AggregateParent | None:
        """Return the existing aggregate parent for a release train group.

        Args:
            group_key: Normalized release train key (see release_train.normalize_key)

        Returns:
            The parent with the ids of the items already linked to it, or None
        """
        ...

    def create_aggregate_parent(self, title: str, member_ids: Sequence[int]) -> int:
        """Create an aggregate parent and link the given members to it.

        Args:
            title: Display title of the release train
            member_ids: Work item ids to link to the new parent

        Returns:
            The id of the new parent

        Raises:
            RepositoryError: If creation or linking fails
        """
        ...

    def add_links(self, parent_id: int, member_ids: Sequence[int]) -> None:
        """Link additional members to an existing aggregate parent.

        Raises:
            RepositoryError: If any link cannot be created
        """
        ...

    def update_estimate(self, item_id: int, value: float, status_notes: str) -> None:
        """Write a SWAG value to both the estimate field and the status notes.

        Raises:
            RepositoryError: If the update fails
        """
        ...
