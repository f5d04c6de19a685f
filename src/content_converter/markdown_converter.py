"""Confluence storage format (XHTML) to markdown converter.

This module provides the reverse direction of the sync: a page body in
storage format is parsed with BeautifulSoup (lxml) and walked element by
element, producing markdown. The HTML parser does not understand CDATA
sections, so their payloads are swapped for placeholder tokens before parsing
and put back by the handlers that read them (code bodies, link bodies).

Tables are handed to markdownify, which produces clean pipe tables.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from bs4 import BeautifulSoup, NavigableString, Tag
from markdownify import MarkdownConverter as BaseMarkdownConverter

from src.models.conversion_result import ConversionResult
from ..confluence_client.errors import ConversionError
from .page_metadata import is_metadata_marker, looks_generated_by, parse_metadata_body

logger = logging.getLogger(__name__)

CDATA_SECTION = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)
CDATA_PLACEHOLDER = re.compile(r'CDATA_PLACEHOLDER_(\d+)_')
EXCESSIVE_NEWLINES = re.compile(r'\n{3,}')
WHITESPACE_RUN = re.compile(r"\s+")

# Directory, relative to the markdown file, that downloaded attachments go to
ATTACHMENT_DIR = "img"

# Macro name → GitHub alert type
ALERT_TYPES = {
    "info": "NOTE",
    "tip": "TIP",
    "note": "IMPORTANT",
    "warning": "WARNING",
}

# Attachment name prefixes of diagrams rendered by the upload, which is
# followed by a collapsed code macro holding the diagram source
DIAGRAM_KINDS = ("mermaid", "drawio", "plantuml", "latex")

TOC_PLACEHOLDER = "[[_TOC_]]"
LISTING_PLACEHOLDER = "[[_LISTING_]]"

HEADINGS = {f"h{level}": level for level in range(1, 7)}
INLINE_WRAPPERS = {
    "strong": "**",
    "b": "**",
    "em": "*",
    "i": "*",
    "del": "~~",
    "s": "~~",
}

# Children of <li> that belong to the item's first line
LIST_ITEM_INLINE_TAGS = set(INLINE_WRAPPERS) | {
    "code", "a", "br", "span", "u", "time", "sup", "sub", "ac:link", "ac:emoticon",
}


class _CustomMarkdownConverter(BaseMarkdownConverter):
    """markdownify converter producing pipe tables with ``<br>`` cell breaks."""

    def __init__(self, **options):
        options.setdefault('heading_style', 'atx')
        options.setdefault('bullets', '-')
        options.setdefault('strong_em_symbol', '*')
        options.setdefault('table_infer_header', True)
        # Cells may hold markdown produced by our own macro handlers
        options.setdefault('escape_underscores', False)
        options.setdefault('escape_asterisks', False)
        super().__init__(**options)

    def _is_in_table_cell(self, parent_tags):
        return 'td' in parent_tags or 'th' in parent_tags

    def convert_p(self, el, text, parent_tags):
        """Convert paragraph, using a newline marker for breaks in table cells.

        Confluence stores multi-line table cell content as multiple <p> tags.
        """
        text = text.strip()
        if not text:
            return ''
        if self._is_in_table_cell(parent_tags):
            return text + '\n'
        if '_inline' in parent_tags:
            return ' ' + text + ' '
        return '\n\n%s\n\n' % text

    def _cell(self, el, text):
        colspan = 1
        if 'colspan' in el.attrs and el['colspan'].isdigit():
            colspan = max(1, min(1000, int(el['colspan'])))
        cell_text = text.strip().replace('\n', '<br>')
        while '<br><br>' in cell_text:
            cell_text = cell_text.replace('<br><br>', '<br>')
        while cell_text.endswith('<br>'):
            cell_text = cell_text.removesuffix('<br>')
        return ' ' + cell_text.replace('|', '\\|') + ' |' * colspan

    def convert_td(self, el, text, parent_tags):
        return self._cell(el, text)

    def convert_th(self, el, text, parent_tags):
        return self._cell(el, text)

    def convert_br(self, el, text, parent_tags):
        if self._is_in_table_cell(parent_tags):
            return '<br>'
        if '_inline' in parent_tags:
            return ' '
        return '  \n'


def _markdownify(html: str, **options) -> str:
    """Convert HTML to markdown using custom converter."""
    return _CustomMarkdownConverter(**options).convert(html)


def _param(macro: Tag, name: str) -> Optional[str]:
    """Text of a macro's direct ``ac:parameter`` child with the given name."""
    for param in macro.find_all("ac:parameter", recursive=False):
        if param.get("ac:name") == name:
            return param.get_text()
    return None


def _is_blank(node) -> bool:
    return isinstance(node, NavigableString) and not str(node).strip()


def _collapse_whitespace(text: str) -> str:
    return WHITESPACE_RUN.sub(" ", text).strip()


class MarkdownConverter:
    """Converts Confluence storage format to markdown.

    Example:
        >>> result = MarkdownConverter().convert(page.content_storage)
        >>> if result.has_provenance:
        ...     print(f"Originally {result.source_path}")
    """

    def __init__(self):
        self.parser = "lxml"
        self._cdata: Dict[str, str] = {}
        self._warnings: List[str] = []

    def xhtml_to_markdown(self, xhtml: str) -> str:
        """Convert XHTML to markdown, discarding provenance."""
        return self.convert(xhtml).markdown

    def convert(self, xhtml: str) -> ConversionResult:
        """Convert a storage format page body to markdown.

        Args:
            xhtml: Confluence storage format XHTML

        Returns:
            ConversionResult with the markdown and any recovered provenance

        Raises:
            ConversionError: If the document cannot be parsed or converted
        """
        if not xhtml:
            return ConversionResult(markdown="")

        self._warnings = []
        preprocessed = self._extract_cdata(xhtml)

        try:
            soup = BeautifulSoup(preprocessed, self.parser)
            source_file, source_path = self._pop_metadata(soup)
            self._strip_generated_by(soup)
            root = soup.body or soup
            markdown = self._blocks(root, depth=0)
        except ConversionError:
            raise
        except Exception as e:
            raise ConversionError(f"Storage format conversion failed: {e}") from e

        markdown = EXCESSIVE_NEWLINES.sub("\n\n", markdown.strip()) + "\n"
        return ConversionResult(
            markdown=markdown,
            source_file=source_file,
            source_path=source_path,
            warnings=list(self._warnings),
        )

    # ------------------------------------------------------------------
    # Pre-processing
    # ------------------------------------------------------------------

    def _extract_cdata(self, xhtml: str) -> str:
        """Replace CDATA sections with placeholders and remember their payloads."""
        self._cdata = {}

        def _replace(match: re.Match) -> str:
            key = f"CDATA_PLACEHOLDER_{len(self._cdata)}_"
            self._cdata[key] = match.group(1)
            return key

        return CDATA_SECTION.sub(_replace, xhtml)

    def _restore_cdata(self, text: str) -> str:
        return CDATA_PLACEHOLDER.sub(lambda m: self._cdata.get(m.group(0), m.group(0)), text)

    def _pop_metadata(self, soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
        """Find the provenance macro, remove it and return (file name, path)."""
        for macro in soup.find_all("ac:structured-macro", attrs={"ac:name": "expand"}):
            if not is_metadata_marker(_param(macro, "title")):
                continue
            body = macro.find("ac:rich-text-body")
            source_file, source_path = parse_metadata_body(body.get_text() if body else "")
            macro.decompose()
            logger.debug(f"Recovered provenance: file={source_file}, path={source_path}")
            return source_file, source_path
        return None, None

    @staticmethod
    def _strip_generated_by(soup: BeautifulSoup) -> None:
        macro = soup.find("ac:structured-macro", attrs={"ac:name": "info"})
        if macro is None:
            return
        body = macro.find("ac:rich-text-body")
        if body is not None and looks_generated_by(body.get_text()):
            macro.decompose()

    # ------------------------------------------------------------------
    # Block level
    # ------------------------------------------------------------------

    def _blocks(self, node: Tag, depth: int) -> str:
        """Convert the children of ``node``, looking ahead across siblings."""
        children = list(node.children)
        parts = []
        for index, child in enumerate(children):
            if isinstance(child, NavigableString):
                if child.__class__ is NavigableString:
                    parts.append(self._restore_cdata(str(child)))
                continue
            if not isinstance(child, Tag):
                continue
            following = next((c for c in children[index + 1:] if not _is_blank(c)), None)
            parts.append(self._element(child, depth, following))
        return "".join(parts)

    def _element(self, el: Tag, depth: int, following=None) -> str:
        name = el.name.lower()

        if name in HEADINGS:
            return f"{'#' * HEADINGS[name]} {self._inline(el).strip()}\n\n"
        if name == "p":
            text = self._inline(el).strip()
            return f"{text}\n\n" if text else ""
        if name in INLINE_WRAPPERS or name in ("code", "a", "br", "span", "u", "time", "sup", "sub"):
            return self._inline_element(el)
        if name == "hr":
            return "---\n\n"
        if name in ("ul", "ol"):
            return self._list(el, depth, ordered=name == "ol")
        if name == "table":
            return self._table(el)
        if name == "blockquote":
            return self._quote(self._blocks(el, depth).strip()) + "\n"
        if name == "pre":
            return f"```\n{self._restore_cdata(el.get_text()).strip()}\n```\n\n"
        if name == "ac:structured-macro":
            return self._macro(el, depth)
        if name == "ac:image":
            return self._image(el, following)
        if name == "ac:task-list":
            return self._task_list(el, depth)
        if name in ("ac:link", "ac:emoticon"):
            return self._inline_element(el)
        return self._blocks(el, depth)

    def _list(self, el: Tag, depth: int, ordered: bool) -> str:
        lines = []
        index = 1
        for li in el.find_all("li", recursive=False):
            indent = "  " * depth
            bullet = f"{index}." if ordered else "-"
            index += 1

            # Paragraphs of the item share its first line; nested blocks follow it
            paragraphs: List[str] = []
            run: List[str] = []
            nested = ""
            for child in li.children:
                if isinstance(child, NavigableString):
                    if child.__class__ is NavigableString:
                        run.append(self._restore_cdata(str(child)))
                    continue
                if not isinstance(child, Tag):
                    continue
                tag = child.name.lower()
                if tag in LIST_ITEM_INLINE_TAGS:
                    run.append(self._inline_element(child))
                    continue

                paragraphs.append(_collapse_whitespace("".join(run)))
                run = []
                if tag in ("ul", "ol"):
                    nested += self._list(child, depth + 1, ordered=tag == "ol")
                elif tag == "p":
                    paragraphs.append(_collapse_whitespace(self._inline(child)))
                elif tag == "ac:structured-macro":
                    block_indent = " " * ((depth + 1) * 2 + (1 if ordered else 0))
                    block = self._macro(child, depth).rstrip()
                    nested += "".join(
                        f"{block_indent}{line}\n" if line else "\n" for line in block.split("\n")
                    )
                else:
                    paragraphs.append(_collapse_whitespace(self._element(child, depth)))
            paragraphs.append(_collapse_whitespace("".join(run)))

            text = " ".join(p for p in paragraphs if p)
            lines.append(f"{indent}{bullet} {text}".rstrip() + "\n" + nested)

        result = "".join(lines)
        return result + "\n" if depth == 0 else result

    def _task_list(self, el: Tag, depth: int) -> str:
        lines = []
        for task in el.find_all("ac:task", recursive=False):
            status = task.find("ac:task-status")
            body = task.find("ac:task-body")
            checked = "x" if status is not None and status.get_text().strip() == "complete" else " "
            text = self._inline(body).strip() if body is not None else ""
            lines.append(f"{'  ' * depth}- [{checked}] {text}\n")
        return "".join(lines) + "\n"

    def _table(self, el: Tag) -> str:
        # Macros inside cells are converted here, markdownify only sees plain HTML
        for nested in el.find_all(["ac:link", "ac:emoticon", "ac:image", "ac:structured-macro"]):
            if nested.parent is None:
                continue
            if any(p.name and p.name.startswith("ac:") for p in nested.parents if p is not el):
                continue
            nested.replace_with(NavigableString(self._inline_element(nested).strip()))
        table = _markdownify(self._restore_cdata(str(el)))
        return table.strip() + "\n\n"

    def _quote(self, markdown: str) -> str:
        return "".join(f"> {line}\n" if line.strip() else ">\n" for line in markdown.split("\n"))

    # ------------------------------------------------------------------
    # Macros
    # ------------------------------------------------------------------

    def _macro(self, macro: Tag, depth: int) -> str:
        name = (macro.get("ac:name") or "").lower()

        if name == "code":
            return self._code_macro(macro)
        if name in ALERT_TYPES:
            return self._alert(macro, ALERT_TYPES[name], depth)
        if name == "toc":
            return f"{TOC_PLACEHOLDER}\n\n"
        if name == "children":
            return f"{LISTING_PLACEHOLDER}\n\n"
        if name == "anchor":
            return ""
        if name == "expand":
            body = macro.find("ac:rich-text-body")
            title = _param(macro, "title")
            summary = f"<summary>{title}</summary>\n\n" if title else ""
            inner = self._blocks(body, depth).strip() if body is not None else ""
            return f"<details>\n{summary}{inner}\n\n</details>\n\n"
        if name == "eazy-math-inline":
            return f"${(_param(macro, 'body') or '').strip()}$"
        if name == "easy-math-block":
            return f"$$\n{(_param(macro, 'body') or '').strip()}\n$$\n\n"
        if name == "status":
            return f"`{(_param(macro, 'title') or '').strip()}`"

        logger.debug(f"Unknown macro '{name}', preserving as comment")
        self._warnings.append(f"Macro '{name}' has no markdown equivalent and was kept as a comment")
        body = macro.find("ac:rich-text-body")
        inner = self._blocks(body, depth).strip() if body is not None else ""
        if inner:
            return f"<!-- confluence-macro: {name} -->\n{inner}\n<!-- /confluence-macro: {name} -->\n\n"
        return f"<!-- confluence-macro: {name} -->\n\n"

    def _code_macro(self, macro: Tag) -> str:
        language = (_param(macro, "language") or "").strip()
        body = macro.find("ac:plain-text-body")
        code = ""
        if body is not None:
            raw = body.get_text()
            code = self._cdata.get(raw.strip())
            if code is None:
                code = self._restore_cdata(raw)
        # Only blank lines are trimmed, leading indentation is part of the code
        code = code.strip("\r\n")
        return f"```{language}\n{code}\n```\n\n"

    def _alert(self, macro: Tag, alert_type: str, depth: int) -> str:
        lines = [f"> [!{alert_type}]\n"]
        body = macro.find("ac:rich-text-body")
        if body is None:
            return lines[0] + "\n"

        for child in body.children:
            if isinstance(child, NavigableString):
                text = str(child).strip()
                if text and child.__class__ is NavigableString:
                    lines.append(f"> {self._restore_cdata(text)}\n")
                continue
            if not isinstance(child, Tag):
                continue

            first = next((c for c in child.children if not _is_blank(c)), None)
            if child.name == "p" and isinstance(first, Tag) and first.name in ("strong", "b"):
                lines.append(f"> **{first.get_text().strip()}**\n")
                first.extract()
                rest = self._inline(child).strip()
                if rest:
                    lines.append(self._quote(rest))
                continue

            converted = self._element(child, depth).strip()
            if converted:
                lines.append(self._quote(converted))
        return "".join(lines) + "\n"

    def _image(self, el: Tag, following=None) -> str:
        alt = el.get("ac:alt", "")
        attachment = el.find("ri:attachment")
        if attachment is not None:
            file_name = attachment.get("ri:filename", "")
            if self._is_diagram_with_source(file_name, following):
                return ""
            return f"![{alt}]({ATTACHMENT_DIR}/{quote(file_name)})\n\n"
        url = el.find("ri:url")
        if url is not None:
            return f"![{alt}]({url.get('ri:value', '')})\n\n"
        return ""

    @staticmethod
    def _is_diagram_with_source(file_name: str, following) -> bool:
        """True if the image is a rendered diagram followed by its source macro."""
        kind = file_name.split("-", 1)[0].lower()
        if kind not in DIAGRAM_KINDS or not isinstance(following, Tag):
            return False
        if following.name != "ac:structured-macro" or following.get("ac:name") != "code":
            return False
        return (_param(following, "language") or "").strip().lower() == kind

    # ------------------------------------------------------------------
    # Inline level
    # ------------------------------------------------------------------

    def _inline(self, node: Tag) -> str:
        parts = []
        for child in node.children:
            if isinstance(child, NavigableString):
                if child.__class__ is NavigableString:
                    parts.append(self._restore_cdata(str(child)))
            elif isinstance(child, Tag):
                parts.append(self._inline_element(child))
        return "".join(parts)

    def _inline_element(self, el: Tag) -> str:
        name = el.name.lower()
        if name in INLINE_WRAPPERS:
            marker = INLINE_WRAPPERS[name]
            inner = self._inline(el)
            return f"{marker}{inner.strip()}{marker}" if inner.strip() else inner
        if name == "code":
            return f"`{self._restore_cdata(el.get_text())}`"
        if name == "a":
            return f"[{self._inline(el).strip()}]({el.get('href', '')})"
        if name == "br":
            return "\n"
        if name == "u":
            return f"<ins>{self._inline(el)}</ins>"
        if name == "time":
            return el.get("datetime", "") or self._inline(el)
        if name == "ac:link":
            return self._link(el)
        if name == "ac:emoticon":
            shortname = el.get("ac:emoji-shortname")
            return shortname if shortname else f":{el.get('ac:name', '')}:"
        if name == "ac:image":
            return self._image(el).strip()
        if name == "ac:structured-macro":
            return self._macro(el, 0).strip()
        if name in ("ac:parameter", "ac:plain-text-body"):
            return ""
        return self._inline(el)

    def _link(self, el: Tag) -> str:
        body_el = el.find("ac:link-body") or el.find("ac:plain-text-link-body")
        body = self._inline(body_el).strip() if body_el is not None else ""

        page = el.find("ri:page")
        if page is not None:
            title = page.get("ri:content-title", "")
            anchor = el.get("ac:anchor")
            target = quote(f"{title}.md") + (f"#{anchor}" if anchor else "")
            return f"[{body or title}]({target})"

        attachment = el.find("ri:attachment")
        if attachment is not None:
            file_name = attachment.get("ri:filename", "")
            return f"[{body or file_name}]({ATTACHMENT_DIR}/{quote(file_name)})"

        anchor = el.get("ac:anchor")
        if anchor:
            return f"[{body or anchor}](#{anchor})"
        return body
