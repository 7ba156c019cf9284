"""
Tests for Release Train marker detection and grouping.
"""

from collections.abc import Callable

import pytest

from backlog_buddy.models import WorkItem
from backlog_buddy.release_train import (
    build_groups,
    clean_title,
    group_items,
    is_separator_title,
    match_release_train,
    normalize_key,
)

MakeItem = Callable[..., WorkItem]


@pytest.mark.unit
class TestMatchReleaseTrain:
    """Test marker title parsing."""

    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("----- GCCH -----rt", "GCCH"),
            ("--- Spring Release ---rt", "Spring Release"),
            ("---Spring Release---RT", "Spring Release"),
            ("  --- GCCH --- rt  ", "GCCH"),
            ("--- GCCH ---rt:1234", "GCCH"),
            ("--- GCCH ---rt: 42", "GCCH"),
        ],
    )
    def test_marker_titles(self, title: str, expected: str) -> None:
        assert match_release_train(title) == expected

    @pytest.mark.parametrize(
        "title",
        [
            "Implement login",
            "--- GCCH ---",
            "-- GCCH --rt",
            "--- GCCH rt",
            "--- GCCH ---rt extra",
            "",
            None,
        ],
    )
    def test_non_marker_titles(self, title: str | None) -> None:
        assert match_release_train(title) is None

    def test_empty_train_name_is_not_a_marker(self) -> None:
        assert match_release_train("------ ------rt") is None


@pytest.mark.unit
class TestCleanTitleAndKey:
    """Test title cleanup and key normalization."""

    def test_clean_title_strips_dashes_and_whitespace(self) -> None:
        assert clean_title("----- GCCH -----") == "GCCH"

    def test_clean_title_keeps_inner_dashes(self) -> None:
        assert clean_title("-- Wave-2 --") == "Wave-2"

    def test_normalize_key_collapses_whitespace_and_case(self) -> None:
        assert normalize_key("---  Spring   Release ---") == "spring release"
        assert normalize_key("Spring Release") == "spring release"


@pytest.mark.unit
class TestIsSeparatorTitle:
    """Test separator row detection."""

    @pytest.mark.parametrize("title", ["----------", "%%%%%%%%", "-----a-----", "  ------  "])
    def test_separators(self, title: str) -> None:
        assert is_separator_title(title)

    @pytest.mark.parametrize("title", ["", "Implement login", "--- Spring Release ---", "--- GCCH ---rt"])
    def test_not_separators(self, title: str) -> None:
        assert not is_separator_title(title)


@pytest.mark.unit
class TestGrouping:
    """Test grouping of marker items."""

    def test_groups_by_normalized_name_in_discovery_order(self, make_item: MakeItem) -> None:
        items = [
            make_item("--- Beta ---rt"),
            make_item("Unrelated feature"),
            make_item("--- Alpha ---rt"),
            make_item("---  beta ---RT"),
        ]
        groups = group_items(items)

        assert list(groups) == ["beta", "alpha"]
        assert [item.id for item in groups["beta"]] == [items[0].id, items[3].id]
        assert [item.id for item in groups["alpha"]] == [items[2].id]

    def test_non_matching_items_are_ignored(self, make_item: MakeItem) -> None:
        assert group_items([make_item("A"), make_item("B")]) == {}

    def test_build_groups_titles_from_first_member(self, make_item: MakeItem) -> None:
        first = make_item("----- Spring Release -----rt")
        second = make_item("--- spring release ---rt")

        groups = build_groups([first, second])

        assert len(groups) == 1
        assert groups[0].key == "spring release"
        assert groups[0].title == "Spring Release"
        assert groups[0].member_ids == [first.id, second.id]
        assert len(groups[0]) == 2

    def test_marker_ids_do_not_split_a_train(self, make_item: MakeItem) -> None:
        first = make_item("--- GCCH ---rt:17")
        second = make_item("--- gcch ---rt:99")
        third = make_item("--- GCCH ---rt")

        groups = build_groups([first, second, third])

        assert [group.key for group in groups] == ["gcch"]
        assert groups[0].member_ids == [first.id, second.id, third.id]
