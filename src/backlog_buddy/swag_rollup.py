"""Roll-up of member SWAG estimates into release train parents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from . import swag
from .exceptions import BuddyError
from .models import GroupFailure

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from .models import AggregateParent, WorkItem
    from .protocols import WorkItemRepository
    from .release_train import ReleaseTrainGroup

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class SwagRollup:
    """Estimate total of one release train compared with its parent's estimate."""

    parent_id: int
    title: str
    total: float
    current: float | None
    update_needed: bool
    member_count: int = 0
    members_without_estimate: list[int] = field(default_factory=list)
    updated: bool = False


def calculate_rollup(
    parent: AggregateParent,
    members: Sequence[WorkItem],
    snapshot: Mapping[int, WorkItem] | None = None,
) -> SwagRollup:
    """Sum the estimates of everything the parent covers and decide whether it needs an update.

    The parent covers its linked items plus the group members not linked yet.
    Linked ids are resolved through ``snapshot``; ids missing from it, and
    items without any estimate, count as zero and are listed in
    ``members_without_estimate``.
    """
    covered: dict[int, WorkItem | None] = {}
    for item_id in parent.linked_item_ids:
        covered[item_id] = snapshot.get(item_id) if snapshot is not None else None
    for member in members:
        covered[member.id] = member

    total = 0.0
    missing: list[int] = []
    for item_id, item in covered.items():
        value = swag.extract_value(item) if item is not None else None
        if value is None:
            missing.append(item_id)
        else:
            total += value

    current = parent.swag if parent.swag is not None else swag.notes_value(parent.status_notes)
    return SwagRollup(
        parent_id=parent.id,
        title=parent.title,
        total=total,
        current=current,
        update_needed=swag.is_update_needed(current, total),
        member_count=len(covered),
        members_without_estimate=missing,
    )


def apply_rollups(
    repository: WorkItemRepository,
    groups: Iterable[ReleaseTrainGroup],
    items: Iterable[WorkItem] = (),
    *,
    on_error: Callable[[GroupFailure], None] | None = None,
) -> tuple[list[SwagRollup], list[GroupFailure]]:
    """Write rolled-up estimates to every existing parent that is out of tolerance.

    ``items`` is the backlog snapshot used to resolve the parents' linked ids.
    Groups without a parent are skipped; run the release train reconciliation first.

    Returns:
        The computed roll-ups and the groups whose update failed
    """
    if repository is None:
        msg = "A work item repository is required"
        raise ValueError(msg)

    snapshot = {item.id: item for item in items}
    rollups: list[SwagRollup] = []
    failures: list[GroupFailure] = []
    for group in groups:
        try:
            parent = repository.find_aggregate_parent(group.key)
            if parent is None:
                logger.info(f"Release train '{group.title}' has no parent yet, skipping SWAG update")
                continue

            rollup = calculate_rollup(parent, group.members, snapshot)
            if rollup.update_needed:
                notes = swag.build_prefixed_notes(rollup.total, parent.status_notes)
                repository.update_estimate(parent.id, rollup.total, notes)
                rollup.updated = True
                logger.info(
                    f"Updated SWAG of release train '{parent.title}' (#{parent.id}): "
                    f"{rollup.current} -> {swag.format_value(rollup.total)}"
                )
            rollups.append(rollup)
        except BuddyError as e:
            failure = GroupFailure(group_key=group.key, title=group.title, message=str(e))
            logger.error(f"Failed to update SWAG of release train '{group.title}': {e}")  # noqa: TRY400
            failures.append(failure)
            if on_error is not None:
                on_error(failure)
    return rollups, failures
