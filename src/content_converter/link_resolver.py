"""Cross-document link classification and resolution.

Every link target found in a markdown document is classified as one of
External, Anchor, InternalPage or Attachment. Internal page links (``*.md``,
optionally with a ``#fragment``) are resolved against a path → title map built
from the whole local document tree before any document is rendered, so links
become Confluence page references by title instead of file names.

Lookups are case-insensitive. A target missing from the map degrades to its
file-name stem and is reported through a callback; resolution never raises.
"""

import logging
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

logger = logging.getLogger(__name__)

STRATEGY_SPACE_TITLE = "space-title"
STRATEGY_PAGE_ID = "page-id"

EXTERNAL_SCHEMES = ("http://", "https://", "mailto:")


class LinkType(str, Enum):
    """Classification of a link target."""
    EXTERNAL = "External"
    INTERNAL_PAGE = "InternalPage"
    ANCHOR = "Anchor"
    ATTACHMENT = "Attachment"


@dataclass(frozen=True)
class LinkResolution:
    """Outcome of resolving one link target.

    Attributes:
        link_type: Classification of the target
        resolved_title: Page title (InternalPage) or file name (Attachment)
        display_url: URL to emit in web-UI mode, or the URL itself for external links
        fragment: Part after ``#`` (without the ``#``), if any
        is_resolved: False when an internal link fell back to its file-name stem
    """
    link_type: LinkType
    resolved_title: str
    display_url: Optional[str]
    fragment: Optional[str]
    is_resolved: bool


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def collapse_path(path: str) -> str:
    """Collapse ``.`` and ``..`` segments of a forward-slash path.

    A ``..`` that has nothing left to pop is kept as a literal segment, so a
    path never silently escapes above the tree root.

    Example:
        >>> collapse_path("docs/./guide/../setup.md")
        'docs/setup.md'
        >>> collapse_path("../shared/a.md")
        '../shared/a.md'
    """
    stack: List[str] = []
    for part in normalize_path(path).split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            if stack and stack[-1] != "..":
                stack.pop()
            else:
                stack.append(part)
            continue
        stack.append(part)
    return "/".join(stack)


def _file_stem(path: str) -> str:
    return posixpath.splitext(posixpath.basename(normalize_path(path)))[0]


class ConfluenceUrlBuilder:
    """Builds Confluence web-UI URLs for internal page links.

    Strategies:
        space-title: ``/wiki/display/{space}/{title}#{fragment}``
        page-id: ``/wiki/pages/viewpage.action?pageId={id}#{fragment}``, falling
            back to space-title when the page ID is unknown
    """

    def __init__(self, strategy: Optional[str] = None):
        self.strategy = (strategy or "").strip().lower() or STRATEGY_SPACE_TITLE

    def build_page_url(
        self,
        title: str,
        space_key: Optional[str],
        fragment: Optional[str],
        page_id: Optional[str],
    ) -> str:
        suffix = f"#{fragment}" if fragment else ""

        if self.strategy == STRATEGY_PAGE_ID and page_id and page_id.strip():
            return f"/wiki/pages/viewpage.action?pageId={quote(page_id, safe='')}{suffix}"

        encoded_title = quote(title, safe="")
        if space_key and space_key.strip():
            return f"/wiki/display/{quote(space_key, safe='')}/{encoded_title}{suffix}"
        return f"/wiki/display/{encoded_title}{suffix}"


UnresolvedLinkCallback = Callable[[str, Optional[str], str], None]
PageIdFallbackCallback = Callable[[str, Optional[str]], None]


class LinkResolver:
    """Resolves link targets against the batch's path → title index.

    Args:
        page_titles: Relative document path → resolved page title
        space_key: Space used for web-UI URLs
        page_ids: Relative document path → known page ID
        url_builder: Builder for web-UI URLs
        on_unresolved_link: Called with (link path, source path, fallback title)
            when an internal link is not found in the index
        on_webui_page_id_fallback: Called with (link path, source path) when the
            page-id URL strategy has no page ID for a resolved target

    Example:
        >>> resolver = LinkResolver({"guide.md": "Install Guide"}, "TEAM")
        >>> resolver.resolve("guide.md#setup").resolved_title
        'Install Guide'
    """

    def __init__(
        self,
        page_titles: Dict[str, str],
        space_key: Optional[str] = None,
        page_ids: Optional[Dict[str, str]] = None,
        url_builder: Optional[ConfluenceUrlBuilder] = None,
        on_unresolved_link: Optional[UnresolvedLinkCallback] = None,
        on_webui_page_id_fallback: Optional[PageIdFallbackCallback] = None,
    ):
        self._titles = {normalize_path(k).lower(): v for k, v in (page_titles or {}).items()}
        self._page_ids = {normalize_path(k).lower(): v for k, v in (page_ids or {}).items()}
        self.space_key = space_key
        self.url_builder = url_builder or ConfluenceUrlBuilder()
        self._on_unresolved_link = on_unresolved_link
        self._on_webui_page_id_fallback = on_webui_page_id_fallback

    def resolve(
        self,
        link_url: str,
        webui_mode: bool = False,
        source_path: Optional[str] = None,
    ) -> LinkResolution:
        """Classify and resolve a link target.

        Args:
            link_url: Raw link target from the markdown
            webui_mode: Build a web-UI URL for internal page links
            source_path: Relative path of the document containing the link

        Returns:
            LinkResolution describing the target
        """
        lowered = link_url.lower()
        if lowered.startswith(EXTERNAL_SCHEMES):
            return LinkResolution(LinkType.EXTERNAL, link_url, link_url, None, True)

        if link_url.startswith("#"):
            return LinkResolution(LinkType.ANCHOR, "", link_url, link_url[1:], True)

        if lowered.endswith(".md") or ".md#" in lowered:
            return self._resolve_page_link(link_url, webui_mode, source_path)

        file_name = posixpath.basename(normalize_path(link_url))
        return LinkResolution(LinkType.ATTACHMENT, file_name, None, None, True)

    def _resolve_page_link(
        self,
        link_url: str,
        webui_mode: bool,
        source_path: Optional[str],
    ) -> LinkResolution:
        path_part, _, fragment = link_url.partition("#")
        title, is_resolved, page_id = self._resolve_page_target(path_part, source_path)

        display_url = None
        if webui_mode:
            display_url = self.url_builder.build_page_url(title, self.space_key, fragment or None, page_id)
            if self.url_builder.strategy == STRATEGY_PAGE_ID and not page_id:
                if self._on_webui_page_id_fallback:
                    self._on_webui_page_id_fallback(path_part, source_path)
                logger.info(
                    f"Web UI page-id fallback for '{path_part}' from "
                    f"'{source_path or '<unknown>'}': no page ID known, using title URL"
                )

        return LinkResolution(LinkType.INTERNAL_PAGE, title, display_url, fragment or None, is_resolved)

    def _resolve_page_target(
        self,
        link_path: str,
        source_path: Optional[str],
    ) -> Tuple[str, bool, Optional[str]]:
        for candidate in self.lookup_candidates(link_path, source_path):
            key = candidate.lower()
            if key in self._titles:
                return self._titles[key], True, self._page_ids.get(key)

        fallback = _file_stem(link_path)
        logger.warning(
            f"Link target '{link_path}' from '{source_path or '<unknown>'}' not found in "
            f"page index ({len(self._titles)} entries), falling back to title '{fallback}'"
        )
        if self._on_unresolved_link:
            self._on_unresolved_link(link_path, source_path, fallback)
        return fallback, False, None

    @staticmethod
    def lookup_candidates(link_path: str, source_path: Optional[str] = None) -> List[str]:
        """Return the ordered, case-insensitively unique index keys to try.

        Candidates: the link relative to the source document's directory, the
        link as written, and the link stripped of leading ``./`` and ``../``.
        """
        normalized_link = normalize_path(link_path)
        candidates: List[str] = []

        def add_unique(value: str) -> None:
            if value.lower() not in (c.lower() for c in candidates):
                candidates.append(value)

        if source_path and source_path.strip():
            source_dir = posixpath.dirname(normalize_path(source_path))
            combined = f"{source_dir}/{normalized_link}" if source_dir else normalized_link
            add_unique(collapse_path(combined))

        add_unique(collapse_path(normalized_link))
        add_unique(collapse_path(normalized_link.lstrip("./")))
        return candidates
