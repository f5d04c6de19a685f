"""Page titles and the hidden macros added around a rendered page body.

The forward direction appends a collapsed ``expand`` macro titled with
METADATA_MARKER that records where the page came from locally, and may
prepend a "generated by" info macro. The reverse direction reads the former
back and drops the latter.
"""

import posixpath
import re
from typing import Optional, Tuple

from src.models.document import DocumentNode

METADATA_MARKER = "__ConfluenceSynkMD_metadata__"
# Spelling written by older releases, still accepted on download
LEGACY_METADATA_MARKERS = ("__ConfluentSynkMD_metadata__",)

GENERATED_BY_HINTS = ("markdown", "generated")

_SOURCE_FILE = re.compile(r'source-file:\s*(?P<value>[^\n<]+)')
_SOURCE_PATH = re.compile(r'source-path:\s*(?P<value>[^\n<]+)')


def is_metadata_marker(title: Optional[str]) -> bool:
    if not title:
        return False
    title = title.strip()
    return title == METADATA_MARKER or title in LEGACY_METADATA_MARKERS


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def metadata_macro(filename: str, relative_path: str) -> str:
    """Build the hidden expand macro carrying the page's local provenance."""
    return (
        '<ac:structured-macro ac:name="expand">'
        f'<ac:parameter ac:name="title">{METADATA_MARKER}</ac:parameter>'
        f'<ac:rich-text-body><p>source-file:{_escape(filename)}\n'
        f'source-path:{_escape(relative_path)}</p></ac:rich-text-body>'
        '</ac:structured-macro>'
    )


def parse_metadata_body(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Read ``(source file, source path)`` from the metadata macro body text."""
    file_match = _SOURCE_FILE.search(text or "")
    path_match = _SOURCE_PATH.search(text or "")
    source_file = file_match.group('value').strip() if file_match else None
    source_path = path_match.group('value').strip() if path_match else None
    return source_file or None, source_path or None


def generated_by_macro(text: str) -> str:
    return (
        '<ac:structured-macro ac:name="info" ac:schema-version="1">'
        f'<ac:rich-text-body><p>{_escape(text)}</p></ac:rich-text-body>'
        '</ac:structured-macro>'
    )


def looks_generated_by(text: str) -> bool:
    """Heuristic check for the auto-generated banner text."""
    lowered = (text or "").strip().lower()
    return any(hint in lowered for hint in GENERATED_BY_HINTS)


def apply_generated_by_template(template: str, relative_path: str) -> str:
    """Substitute ``%{filepath}``, ``%{filename}``, ``%{filedir}`` and ``%{filestem}``.

    Example:
        >>> apply_generated_by_template("From %{filename}", "docs/guide.md")
        'From guide.md'
    """
    path = relative_path.replace("\\", "/")
    file_name = posixpath.basename(path)
    file_dir = posixpath.dirname(path) or "."
    file_stem = posixpath.splitext(file_name)[0]
    return (
        template
        .replace("%{filepath}", path)
        .replace("%{filename}", file_name)
        .replace("%{filedir}", file_dir)
        .replace("%{filestem}", file_stem)
    )


def extract_first_heading(markdown: str) -> Optional[str]:
    """Return the text of the first ``# `` heading line, if any."""
    for line in markdown.split("\n"):
        stripped = line.lstrip()
        if stripped.startswith("# "):
            return stripped[2:].strip()
    return None


def resolve_title(node: DocumentNode, title_prefix: Optional[str] = None) -> str:
    """Resolve a document's page title.

    Order: explicit metadata title, first top-level heading, file name stem.
    The optional prefix is prepended afterwards.
    """
    title = (
        node.metadata.title
        or extract_first_heading(node.content)
        or posixpath.splitext(posixpath.basename(node.relative_path.replace("\\", "/")))[0]
    )
    return f"{title_prefix or ''}{title}"
