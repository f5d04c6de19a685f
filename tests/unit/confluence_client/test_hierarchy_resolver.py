"""Unit tests for hierarchy_resolver module."""

import pytest
from unittest.mock import Mock

from src.confluence_client.errors import AmbiguousPageError, PageNotFoundError
from src.confluence_client.hierarchy_resolver import (
    MAX_ANCESTOR_DEPTH,
    HierarchyResolutionStatus,
    PageHierarchyResolver,
)
from src.models.confluence_page import ConfluencePage


def make_page(page_id, title="Docs", parent_id=None):
    return ConfluencePage(
        page_id=page_id,
        title=title,
        space_id="42",
        space_key="TEAM",
        content_storage="",
        version=1,
        parent_id=parent_id,
    )


class TestResolveOrCreate:
    """Test cases for PageHierarchyResolver.resolve_or_create."""

    @pytest.fixture
    def api(self):
        mock_api = Mock()
        mock_api.create_page.return_value = make_page("900", parent_id="P")
        return mock_api

    def test_single_match_under_parent_is_found(self, api):
        """Exactly one match under the expected parent is reused."""
        api.find_pages_by_title.return_value = [make_page("1", parent_id="P"), make_page("2", parent_id="X")]

        resolution = PageHierarchyResolver(api).resolve_or_create("Docs", "P", "TEAM")

        assert resolution.status == HierarchyResolutionStatus.FOUND_UNDER_PARENT
        assert resolution.page.page_id == "1"
        assert resolution.total_matches == 2
        assert resolution.matches_under_parent == 1
        api.create_page.assert_not_called()

    def test_several_matches_under_parent_is_ambiguous(self, api):
        """Two matches under the expected parent never produce a guess."""
        api.find_pages_by_title.return_value = [make_page("1", parent_id="P"), make_page("2", parent_id="P")]

        resolution = PageHierarchyResolver(api).resolve_or_create("Docs", "P", "TEAM")

        assert resolution.is_ambiguous
        assert resolution.page is None
        assert resolution.matches_under_parent == 2
        api.create_page.assert_not_called()

    def test_several_matches_elsewhere_is_ambiguous(self, api):
        """No match under the parent but several elsewhere is ambiguous."""
        api.find_pages_by_title.return_value = [make_page("1", parent_id="X"), make_page("2", parent_id="Y")]

        resolution = PageHierarchyResolver(api).resolve_or_create("Docs", "P", "TEAM")

        assert resolution.status == HierarchyResolutionStatus.AMBIGUOUS
        assert resolution.total_matches == 2
        assert resolution.matches_under_parent == 0
        api.create_page.assert_not_called()

    def test_no_match_creates_under_parent(self, api):
        api.find_pages_by_title.return_value = []

        resolution = PageHierarchyResolver(api).resolve_or_create("Docs", "P", "TEAM")

        assert resolution.status == HierarchyResolutionStatus.CREATED
        assert resolution.page.page_id == "900"
        api.create_page.assert_called_once_with("TEAM", "Docs", "", parent_id="P")

    def test_single_match_elsewhere_creates_under_parent(self, api):
        """A single page with the title under another parent is not reused."""
        api.find_pages_by_title.return_value = [make_page("1", parent_id="X")]

        resolution = PageHierarchyResolver(api).resolve_or_create("Docs", "P", "TEAM")

        assert resolution.status == HierarchyResolutionStatus.CREATED
        assert resolution.total_matches == 1
        api.create_page.assert_called_once()

    def test_get_or_create_raises_when_ambiguous(self, api):
        api.find_pages_by_title.return_value = [make_page("1", parent_id="X"), make_page("2", parent_id="Y")]

        with pytest.raises(AmbiguousPageError) as exc_info:
            PageHierarchyResolver(api).get_or_create("Docs", "P", "TEAM")

        assert exc_info.value.total_matches == 2


class TestIsTraceableToRoot:
    """Test cases for PageHierarchyResolver.is_traceable_to_root."""

    def test_page_is_its_own_root(self):
        api = Mock()

        assert PageHierarchyResolver(api).is_traceable_to_root("R", "R") is True
        api.get_page_by_id.assert_not_called()

    def test_descendant_reaches_root(self):
        """The parent chain C → B → R reaches the root."""
        pages = {"C": make_page("C", parent_id="B"), "B": make_page("B", parent_id="R")}
        api = Mock()
        api.get_page_by_id.side_effect = lambda page_id: pages[page_id]

        assert PageHierarchyResolver(api).is_traceable_to_root("C", "R") is True

    def test_chain_ending_elsewhere_is_rejected(self):
        pages = {"C": make_page("C", parent_id="B"), "B": make_page("B", parent_id=None)}
        api = Mock()
        api.get_page_by_id.side_effect = lambda page_id: pages[page_id]

        assert PageHierarchyResolver(api).is_traceable_to_root("C", "R") is False

    def test_missing_ancestor_is_rejected(self):
        api = Mock()
        api.get_page_by_id.side_effect = PageNotFoundError("C")

        assert PageHierarchyResolver(api).is_traceable_to_root("C", "R") is False

    def test_walk_is_bounded(self):
        """A cyclic parent chain stops after MAX_ANCESTOR_DEPTH hops."""
        api = Mock()
        api.get_page_by_id.side_effect = lambda page_id: make_page(page_id, parent_id=page_id)

        assert PageHierarchyResolver(api).is_traceable_to_root("C", "R") is False
        assert api.get_page_by_id.call_count == MAX_ANCESTOR_DEPTH
