"""Create-or-update reconciliation of release train aggregate parents.

The link diff (plan_links) is pure; ReleaseTrainReconciler applies it through
a WorkItemRepository. Running the reconciler twice over the same backlog
creates every parent once and adds no links the second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import BuddyError
from .models import GroupFailure, OperationType, ReleaseTrainOperation

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .protocols import WorkItemRepository
    from .release_train import ReleaseTrainGroup

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


def plan_links(desired_ids: Iterable[int], linked_ids: Iterable[int]) -> list[int]:
    """Return the desired ids that are not linked yet, in desired order, without duplicates."""
    already_linked = set(linked_ids)
    planned: list[int] = []
    for item_id in desired_ids:
        if item_id in already_linked:
            continue
        already_linked.add(item_id)
        planned.append(item_id)
    return planned


@dataclass
class ReconcileResult:
    operations: list[ReleaseTrainOperation] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)


class ReleaseTrainReconciler:
    """Makes sure every release train group has one parent linked to all its members."""

    repository: WorkItemRepository
    on_error: Callable[[GroupFailure], None] | None

    def __init__(
        self,
        repository: WorkItemRepository,
        *,
        on_error: Callable[[GroupFailure], None] | None = None,
    ) -> None:
        if repository is None:
            msg = "A work item repository is required"
            raise ValueError(msg)
        self.repository = repository
        self.on_error = on_error

    def reconcile_group(self, group: ReleaseTrainGroup) -> ReleaseTrainOperation:
        """Create the group's parent, or link the members it is missing.

        Raises:
            ValueError: If group is None
            BuddyError: If the repository fails
        """
        if group is None:
            msg = "A release train group is required"
            raise ValueError(msg)

        member_ids = group.member_ids
        parent = self.repository.find_aggregate_parent(group.key)

        if parent is None:
            parent_id = self.repository.create_aggregate_parent(group.title, member_ids)
            logger.info(f"Created release train '{group.title}' (#{parent_id}) with {len(member_ids)} item(s)")
            return ReleaseTrainOperation(
                operation=OperationType.CREATED,
                title=group.title,
                id=parent_id,
                total_work_items=len(member_ids),
                new_relations_added=len(member_ids),
            )

        new_links = plan_links(member_ids, parent.linked_item_ids)
        if new_links:
            self.repository.add_links(parent.id, new_links)
            logger.info(f"Linked {len(new_links)} new item(s) to release train '{parent.title}' (#{parent.id})")
        else:
            logger.debug(f"Release train '{parent.title}' (#{parent.id}) is up to date")

        return ReleaseTrainOperation(
            operation=OperationType.UPDATED,
            title=parent.title,
            id=parent.id,
            total_work_items=len(set(parent.linked_item_ids) | set(member_ids)),
            new_relations_added=len(new_links),
        )

    def reconcile(self, groups: Iterable[ReleaseTrainGroup]) -> ReconcileResult:
        """Reconcile every group; a repository failure only affects its own group."""
        result = ReconcileResult()
        for group in groups:
            try:
                result.operations.append(self.reconcile_group(group))
            except BuddyError as e:
                failure = GroupFailure(group_key=group.key, title=group.title, message=str(e))
                logger.error(f"Failed to reconcile release train '{group.title}': {e}")  # noqa: TRY400
                result.failures.append(failure)
                if self.on_error is not None:
                    self.on_error(failure)
        return result
