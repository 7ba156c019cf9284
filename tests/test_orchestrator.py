"""
End-to-end runs against the in-memory repository.
"""

from collections.abc import Callable

import pytest

from backlog_buddy.models import OperationType, Severity, WorkItem
from backlog_buddy.orchestrator import (
    fetch_snapshot,
    run_hygiene,
    run_release_trains,
    run_swag_updates,
    validate_item,
)

MakeItem = Callable[..., WorkItem]


@pytest.fixture
def backlog(make_item: MakeItem) -> list[WorkItem]:
    """Five items, two of which belong to the same release train."""
    return [
        make_item("Implement login", swag=3.0, status_notes="[SWAG: 3] Design approved, coding started"),
        make_item("----- GCCH -----rt", work_item_type="Epic", swag=2.0),
        make_item("Harden API gateway", work_item_type="Bug", state="New"),
        make_item("--- gcch ---rt:17", work_item_type="Epic", status_notes="[SWAG: 4]"),
        make_item("Retire legacy reports", state="Closed"),
    ]


@pytest.mark.integration
class TestReleaseTrainRun:
    """Test the release train run end to end."""

    def test_creates_one_parent_for_the_shared_train(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog

        summary = run_release_trains(fake_repo)

        assert summary.backlog_read_successfully
        assert summary.total_backlog_items_processed == 5
        assert summary.failures == []
        assert len(summary.operations) == 1
        operation = summary.operations[0]
        assert operation.operation is OperationType.CREATED
        assert operation.title == "GCCH"
        assert operation.total_work_items == 2
        assert operation.new_relations_added == 2
        assert fake_repo.calls == [("create", "GCCH", [backlog[1].id, backlog[3].id])]

    def test_second_run_is_idempotent(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog
        first = run_release_trains(fake_repo)

        second = run_release_trains(fake_repo)

        assert len(fake_repo.parents) == 1
        assert [(op.operation, op.id, op.new_relations_added) for op in second.operations] == [
            (OperationType.UPDATED, first.operations[0].id, 0)
        ]
        assert [call[0] for call in fake_repo.calls] == ["create"]

    def test_new_member_is_linked_on_next_run(self, fake_repo, backlog: list[WorkItem], make_item: MakeItem) -> None:
        fake_repo.items = backlog
        run_release_trains(fake_repo)
        late = make_item("---GCCH---RT", work_item_type="Epic")
        fake_repo.items.append(late)

        summary = run_release_trains(fake_repo)

        operation = summary.operations[0]
        assert operation.operation is OperationType.UPDATED
        assert operation.total_work_items == 3
        assert operation.new_relations_added == 1
        assert fake_repo.calls[-1] == ("add_links", operation.id, [late.id])

    def test_backlog_without_trains(self, fake_repo, make_item: MakeItem) -> None:
        fake_repo.items = [make_item("A"), make_item("B")]
        summary = run_release_trains(fake_repo)
        assert summary.operations == []
        assert summary.total_backlog_items_processed == 2


@pytest.mark.integration
class TestSwagUpdateRun:
    """Test the SWAG roll-up run end to end."""

    def test_rolls_up_after_release_trains(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog
        run_release_trains(fake_repo)

        first = run_swag_updates(fake_repo)
        second = run_swag_updates(fake_repo)

        assert first.backlog_read_successfully
        assert first.updated_count == 1
        assert first.rollups[0].total == 6.0
        parent = next(iter(fake_repo.parents.values()))
        assert parent.swag == 6.0
        assert parent.status_notes == "[SWAG: 6]"
        assert second.updated_count == 0


@pytest.mark.integration
class TestHygieneRun:
    """Test the hygiene run end to end."""

    def test_reports_every_item(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog

        run = run_hygiene(fake_repo)

        assert run.backlog_read_successfully
        summary = run.summary
        assert {r.work_item_id for r in summary.check_results} == {item.id for item in backlog}
        assert summary.total_checks == summary.passed_checks + summary.failed_checks
        assert 0.0 <= summary.health_score <= 100.0
        # The open feature has no iteration path
        failed = {(r.work_item_id, r.check_name) for r in summary.check_results if not r.passed}
        assert (backlog[0].id, "Iteration Path Set") in failed


@pytest.mark.unit
class TestFailedRead:
    """Test runs whose backlog cannot be read."""

    def test_fetch_snapshot_returns_none(self, fake_repo) -> None:
        fake_repo.fail_fetch = True
        assert fetch_snapshot(fake_repo) is None

    def test_release_trains_report_failed_read(self, fake_repo) -> None:
        fake_repo.fail_fetch = True
        summary = run_release_trains(fake_repo)
        assert not summary.backlog_read_successfully
        assert summary.operations == []
        assert fake_repo.calls == []

    def test_hygiene_reports_failed_read(self, fake_repo) -> None:
        fake_repo.fail_fetch = True
        run = run_hygiene(fake_repo)
        assert not run.backlog_read_successfully
        assert run.summary.total_checks == 0

    def test_swag_updates_report_failed_read(self, fake_repo) -> None:
        fake_repo.fail_fetch = True
        run = run_swag_updates(fake_repo)
        assert not run.backlog_read_successfully
        assert run.rollups == []

    def test_none_repository(self) -> None:
        with pytest.raises(ValueError, match="repository is required"):
            fetch_snapshot(None)  # type: ignore[arg-type]


@pytest.mark.unit
class TestValidateItem:
    """Test validation of one item from the backlog."""

    def test_found(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog
        result = validate_item(fake_repo, backlog[3].id)
        assert result is not None
        assert result.notes_value == 4.0
        assert result.severity is Severity.WARNING

    def test_not_found(self, fake_repo, backlog: list[WorkItem]) -> None:
        fake_repo.items = backlog
        assert validate_item(fake_repo, 9999) is None
