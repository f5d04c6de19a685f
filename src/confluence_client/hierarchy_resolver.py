"""Page hierarchy resolution against an expected parent page.

This module decides whether a page title already exists at the right place in
the Confluence tree or has to be created there, and checks that a page found by
title is actually a descendant of the intended root before it is reused.

Resolution rules for ``resolve_or_create(title, parent_id, space_key)``:
- exactly one title match under the expected parent → FOUND_UNDER_PARENT
- several matches under the parent, or none under it but several elsewhere
  → AMBIGUOUS (nothing is picked, nothing is created)
- otherwise (no match at all, or a single match under another parent)
  → a new page is created under the parent → CREATED
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.models.confluence_page import ConfluencePage
from .api_wrapper import APIWrapper
from .errors import AmbiguousPageError, PageNotFoundError

logger = logging.getLogger(__name__)

MAX_ANCESTOR_DEPTH = 50


class HierarchyResolutionStatus(str, Enum):
    """Outcome of a resolve-or-create lookup."""
    FOUND_UNDER_PARENT = "FoundUnderParent"
    CREATED = "Created"
    AMBIGUOUS = "Ambiguous"


@dataclass
class HierarchyResolution:
    """Result of resolving a title under an expected parent.

    Attributes:
        page: The found or created page (None when ambiguous)
        status: How the page was resolved
        total_matches: Pages with this title anywhere in the space
        matches_under_parent: Pages with this title directly under the parent
    """
    page: Optional[ConfluencePage]
    status: HierarchyResolutionStatus
    total_matches: int
    matches_under_parent: int

    @property
    def is_ambiguous(self) -> bool:
        return self.status == HierarchyResolutionStatus.AMBIGUOUS


class PageHierarchyResolver:
    """Resolves pages by title under an expected parent and verifies ancestry.

    Example:
        >>> resolver = PageHierarchyResolver(api)
        >>> resolution = resolver.resolve_or_create("Docs", space.homepage_id, "TEAM")
        >>> if resolution.is_ambiguous:
        ...     print(f"{resolution.total_matches} pages are called 'Docs'")
    """

    def __init__(self, api: APIWrapper):
        self.api = api

    def resolve_or_create(
        self,
        title: str,
        expected_parent_id: str,
        space_key: str,
    ) -> HierarchyResolution:
        """Find the page titled ``title`` under ``expected_parent_id`` or create it.

        Args:
            title: Page title to resolve
            expected_parent_id: Page ID the page must sit under
            space_key: Space to search and create in

        Returns:
            HierarchyResolution; AMBIGUOUS results carry no page

        Raises:
            ConfluenceError: If the lookup or the creation fails
        """
        matches = self.api.find_pages_by_title(space_key, title)
        under_parent = [page for page in matches if page.parent_id == expected_parent_id]

        if len(under_parent) == 1:
            existing = under_parent[0]
            logger.debug(
                f"Found existing page '{title}' ({existing.page_id}) "
                f"under expected parent {expected_parent_id}"
            )
            return HierarchyResolution(
                existing, HierarchyResolutionStatus.FOUND_UNDER_PARENT,
                len(matches), len(under_parent),
            )

        if len(under_parent) > 1 or (not under_parent and len(matches) > 1):
            logger.warning(
                f"Ambiguous page resolution for '{title}' in space '{space_key}': "
                f"{len(matches)} matches, {len(under_parent)} under parent {expected_parent_id}"
            )
            return HierarchyResolution(
                None, HierarchyResolutionStatus.AMBIGUOUS,
                len(matches), len(under_parent),
            )

        if len(matches) == 1:
            logger.info(
                f"Page '{title}' exists once under parent {matches[0].parent_id}, "
                f"creating a new page under {expected_parent_id}"
            )

        created = self.api.create_page(space_key, title, "", parent_id=expected_parent_id)
        return HierarchyResolution(
            created, HierarchyResolutionStatus.CREATED,
            len(matches), len(under_parent),
        )

    def get_or_create(self, title: str, expected_parent_id: str, space_key: str) -> ConfluencePage:
        """Like resolve_or_create but raises instead of returning AMBIGUOUS.

        Raises:
            AmbiguousPageError: If the title cannot be resolved to a single page
        """
        resolution = self.resolve_or_create(title, expected_parent_id, space_key)
        logger.info(
            f"Page decision status={resolution.status.value} title={title} "
            f"total_matches={resolution.total_matches} "
            f"matches_under_parent={resolution.matches_under_parent}"
        )
        if resolution.is_ambiguous or resolution.page is None:
            raise AmbiguousPageError(title, resolution.total_matches, resolution.matches_under_parent)
        return resolution.page

    def is_traceable_to_root(self, page_id: str, root_id: str) -> bool:
        """Check that ``page_id`` is ``root_id`` or one of its descendants.

        Walks the parent chain upward, at most MAX_ANCESTOR_DEPTH hops.

        Returns:
            True if the root was reached, False if the chain ended elsewhere
        """
        current_id: Optional[str] = page_id
        for _ in range(MAX_ANCESTOR_DEPTH):
            if current_id == root_id:
                return True
            if current_id is None:
                return False
            try:
                page = self.api.get_page_by_id(current_id)
            except PageNotFoundError:
                return False
            current_id = page.parent_id

        logger.warning(f"Ancestor chain exceeded {MAX_ANCESTOR_DEPTH} levels for page {page_id}")
        return False
