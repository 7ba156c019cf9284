"""
Pytest configuration and fixtures.

This module configures pytest behavior for different test types:
- Integration tests: Fail on any warnings from the code under test
- Unit tests: Allow warnings

It also provides the work item factory and the in-memory repository that the
engine and end-to-end tests run against.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

import pytest
from typing_extensions import override

from backlog_buddy.exceptions import FetchError, RepositoryError
from backlog_buddy.models import AggregateParent, WorkItem
from backlog_buddy.release_train import normalize_key

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Sequence

# Store warning records during test execution
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class FakeRepository:
    """In-memory WorkItemRepository that records every write."""

    items: list[WorkItem]
    parents: dict[int, AggregateParent]
    calls: list[tuple[Any, ...]]
    fail_fetch: bool
    failing_keys: set[str]

    def __init__(self, items: Sequence[WorkItem] = (), *, first_parent_id: int = 1000) -> None:
        self.items = list(items)
        self.parents = {}
        self.calls = []
        self.fail_fetch = False
        self.failing_keys = set()
        self._next_id = first_parent_id

    def add_parent(self, title: str, linked_item_ids: Sequence[int] = (), **kwargs: Any) -> AggregateParent:
        parent = AggregateParent(id=self._next_id, title=title, linked_item_ids=list(linked_item_ids), **kwargs)
        self.parents[parent.id] = parent
        self._next_id += 1
        return parent

    def _check(self, title: str) -> None:
        if normalize_key(title) in self.failing_keys:
            msg = f"write rejected for '{title}'"
            raise RepositoryError(msg)

    def fetch_work_items(self) -> list[WorkItem]:
        if self.fail_fetch:
            msg = "backlog unavailable"
            raise FetchError(msg)
        return list(self.items)

    def find_aggregate_parent(self, group_key: str) -> AggregateParent | None:
        for parent in self.parents.values():
            if normalize_key(parent.title) == group_key:
                return dataclasses.replace(parent, linked_item_ids=list(parent.linked_item_ids))
        return None

    def create_aggregate_parent(self, title: str, member_ids: Sequence[int]) -> int:
        self._check(title)
        self.calls.append(("create", title, list(member_ids)))
        return self.add_parent(title, member_ids).id

    def add_links(self, parent_id: int, member_ids: Sequence[int]) -> None:
        parent = self.parents[parent_id]
        self._check(parent.title)
        self.calls.append(("add_links", parent_id, list(member_ids)))
        parent.linked_item_ids.extend(member_ids)

    def update_estimate(self, item_id: int, value: float, status_notes: str) -> None:
        parent = self.parents[item_id]
        self._check(parent.title)
        self.calls.append(("update_estimate", item_id, value, status_notes))
        parent.swag = value
        parent.status_notes = status_notes


@pytest.fixture
def make_item() -> Callable[..., WorkItem]:
    """Factory for work items with sensible defaults and sequential ids."""
    counter = iter(range(1, 10_000))

    def _make(title: str = "Some work item", **kwargs: Any) -> WorkItem:
        kwargs.setdefault("id", next(counter))
        kwargs.setdefault("work_item_type", "Feature")
        kwargs.setdefault("state", "Active")
        return WorkItem(title=title, **kwargs)

    return _make


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


class IntegrationTestWarningHandler(logging.Handler):
    """Custom logging handler to capture warnings during integration tests."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__()
        self.test_nodeid = test_nodeid
        self.setLevel(logging.WARNING)

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Capture WARNING and above level logs."""
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """
    Automatically fail integration tests if any WARNING level logs are emitted from the code under test.

    Warnings are acceptable when running the tool as a user, but an end-to-end
    run over a clean in-memory backlog is expected to be silent.
    """
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    # Add handler to root logger to capture all warnings
    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """Mark a passed integration test as failed if warnings were logged during its call phase."""
    outcome = yield
    report = outcome.get_result()

    # Only check during the test call phase (not setup or teardown)
    if call.when == "call" and report.outcome == "passed":
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(test_nodeid, None)
