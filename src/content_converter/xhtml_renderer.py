"""Markdown to Confluence storage format (XHTML) renderer.

The markdown is parsed by mistune into its AST token list and walked
depth-first. Every token type has one handler in a dispatch table; handlers
return storage format text and may update the per-document RenderState
(skip regions, first heading, collected images, diagrams and formulas).

Example:
    >>> renderer = XhtmlRenderer(ConverterOptions(), LayoutOptions())
    >>> result = renderer.render("# Intro\\n\\nHello *world*")
    >>> result.xhtml
    '<h1>Intro</h1>\\n<p>Hello <em>world</em></p>\\n'
"""

import hashlib
import logging
import posixpath
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import mistune

from src.models.options import ConverterOptions, LayoutOptions
from .html_blocks import HtmlBlockRewriter
from .languages import normalize_language
from .link_resolver import LinkResolver, LinkType

logger = logging.getLogger(__name__)

Token = Dict[str, Any]

MISTUNE_PLUGINS = [
    "table", "footnotes", "strikethrough", "mark", "task_lists", "math", "url",
]

# GitHub alert type → macro name
GITHUB_ALERTS = {
    "NOTE": "info",
    "TIP": "tip",
    "IMPORTANT": "note",
    "WARNING": "warning",
    "CAUTION": "warning",
}

# GitLab alert prefix → macro name
GITLAB_ALERTS = {
    "FLAG": "note",
    "NOTE": "info",
    "WARNING": "note",
    "DISCLAIMER": "info",
}

GITHUB_ALERT_MARKER = re.compile(r'^\s*\[!(\w+)\]\s*', re.IGNORECASE)
GITLAB_ALERT_MARKER = re.compile(r'^\s*(FLAG|NOTE|WARNING|DISCLAIMER):\s*', re.IGNORECASE)

TOC_PLACEHOLDER = "[[_TOC_]]"
LISTING_PLACEHOLDER = "[[_LISTING_]]"

# Emoji shortcode → Confluence emoticon name
EMOTICONS = {
    "smile": "smile",
    "sad": "sad",
    "tongue": "cheeky",
    "wink": "wink",
    "thumbsup": "thumbs-up",
    "thumbs_up": "thumbs-up",
    "+1": "thumbs-up",
    "thumbsdown": "thumbs-down",
    "thumbs_down": "thumbs-down",
    "-1": "thumbs-down",
    "information_source": "information",
    "white_check_mark": "tick",
    "x": "cross",
    "warning": "warning",
    "star": "yellow-star",
    "heart": "heart",
    "broken_heart": "broken-heart",
    "bulb": "light-on",
    "question": "question",
    "exclamation": "warning",
    "laughing": "laugh",
}
EMOJI_SHORTCODE = re.compile(r':([\w+-]+):')

STATUS_COLORS = ("gray", "purple", "blue", "red", "yellow", "green")

SUPERSCRIPT_DIGITS = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")

UNSAFE_URL_CHARS = re.compile(r"[^\w\-._~:/?#\[\]@!$&'()*+,;=%]")

# Fence language → (diagram kind, converter flag)
DIAGRAM_LANGUAGES = {
    "mermaid": ("mermaid", "render_mermaid"),
    "drawio": ("drawio", "render_drawio"),
    "plantuml": ("plantuml", "render_plantuml"),
    "puml": ("plantuml", "render_plantuml"),
    "latex": ("latex", "render_latex"),
    "math": ("latex", "render_latex"),
}


def escape_text(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attr(text: str) -> str:
    return escape_text(text).replace('"', "&quot;")


def encode_unsafe_url(url: str) -> str:
    """Percent-encode characters that are not valid in a URL."""
    return UNSAFE_URL_CHARS.sub(
        lambda m: "".join(f"%{b:02X}" for b in m.group(0).encode("utf-8")), url.strip(),
    )


def cdata(text: str) -> str:
    """Wrap text in a CDATA section, splitting any embedded ``]]>``."""
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def short_hash(content: str) -> str:
    """First eight hex characters of the SHA-256 of ``content``."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:8]


def diagram_file_name(kind: str, source: str, extension: str) -> str:
    """Deterministic attachment name for a diagram or formula source."""
    return f"{kind}-{short_hash(source)}.{extension}"


def heading_slug(text: str) -> str:
    slug = re.sub(r'[^\w]+', '-', text.strip().lower())
    return slug.strip('-')


def _status_svg(color: str) -> str:
    return (
        '<svg height="10" width="10" xmlns="http://www.w3.org/2000/svg">'
        f'<circle r="5" cx="5" cy="5" fill="{color}" /></svg>'
    )


def _status_urn(color: str) -> str:
    digest = hashlib.sha1(_status_svg(color).encode("utf-8")).digest()[:16]
    return f"urn:uuid:{uuid.UUID(bytes_le=digest)}"


STATUS_URNS = {_status_urn(color): color for color in STATUS_COLORS}


@dataclass
class DiagramSource:
    """A diagram or formula found while rendering, still to be rasterized.

    Attributes:
        kind: Renderer kind ("mermaid", "drawio", "plantuml" or "latex")
        file_name: Content-hash derived attachment name
        source: Diagram or formula source text
    """
    kind: str
    file_name: str
    source: str


@dataclass
class RenderState:
    """Mutable state of one document render.

    Attributes:
        skip_active: Inside a confluence-skip-start/end region
        first_heading_seen: The first top-level heading was already handled
        referenced_images: (attachment file name, link target) of local images
        diagrams: Diagrams and formulas to render as attachments
        footnote_refs: Number of references seen per footnote key
    """
    skip_active: bool = False
    first_heading_seen: bool = False
    referenced_images: List[Tuple[str, str]] = field(default_factory=list)
    diagrams: List[DiagramSource] = field(default_factory=list)
    footnote_refs: Dict[str, int] = field(default_factory=dict)


@dataclass
class RenderResult:
    """Output of a render: the body plus its side channels."""
    xhtml: str
    referenced_images: List[Tuple[str, str]] = field(default_factory=list)
    diagrams: List[DiagramSource] = field(default_factory=list)

    @property
    def formulas(self) -> List[DiagramSource]:
        return [d for d in self.diagrams if d.kind == "latex"]


class XhtmlRenderer:
    """Renders markdown to Confluence storage format.

    One instance can render many documents; all per-document state lives in
    a RenderState created by render().

    Args:
        options: Converter flags
        layout: Layout options (already merged with any per-document override)
        link_resolver: Resolver for internal links; without one every ``.md``
            link falls back to its file name stem
        source_path: Tree-relative path of the document being rendered
    """

    def __init__(
        self,
        options: Optional[ConverterOptions] = None,
        layout: Optional[LayoutOptions] = None,
        link_resolver: Optional[LinkResolver] = None,
        source_path: Optional[str] = None,
    ):
        self.options = options or ConverterOptions()
        self.layout = layout or LayoutOptions()
        self.link_resolver = link_resolver or LinkResolver({})
        self.source_path = source_path
        self._parse = mistune.create_markdown(renderer=None, plugins=MISTUNE_PLUGINS)
        self._html_blocks = HtmlBlockRewriter()
        self._state = RenderState()

        self._block_handlers: Dict[str, Callable[[Token], str]] = {
            "paragraph": self._paragraph,
            "heading": self._heading,
            "blank_line": lambda token: "",
            "thematic_break": lambda token: "<hr/>\n",
            "block_code": self._block_code,
            "block_quote": self._block_quote,
            "list": self._list,
            "block_text": lambda token: self._inline(token.get("children", [])),
            "block_html": self._block_html,
            "table": self._table,
            "footnotes": self._footnotes,
            "block_math": self._block_math,
        }
        self._inline_handlers: Dict[str, Callable[[Token], str]] = {
            "text": self._text,
            "emphasis": lambda token: f"<em>{self._inline(token['children'])}</em>",
            "strong": lambda token: f"<strong>{self._inline(token['children'])}</strong>",
            "strikethrough": lambda token: f"<del>{self._inline(token['children'])}</del>",
            "mark": self._mark,
            "codespan": lambda token: f"<code>{escape_text(token['raw'])}</code>",
            "linebreak": lambda token: "<br/>",
            "softbreak": lambda token: "\n",
            "inline_html": self._inline_html,
            "link": self._link,
            "image": self._image,
            "footnote_ref": self._footnote_ref,
            "inline_math": self._inline_math,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse(self, markdown: str) -> List[Token]:
        return self._parse(markdown)

    def render(self, markdown: str) -> RenderResult:
        """Render a markdown document.

        Args:
            markdown: Markdown body (metadata already removed)

        Returns:
            RenderResult with the XHTML and the images/diagrams it references
        """
        self._state = RenderState()
        tokens = self.parse(markdown)
        xhtml = self._blocks(tokens)
        return RenderResult(
            xhtml=xhtml,
            referenced_images=list(self._state.referenced_images),
            diagrams=list(self._state.diagrams),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _blocks(self, tokens: List[Token]) -> str:
        return "".join(self._block(token) for token in tokens)

    def _block(self, token: Token) -> str:
        kind = token["type"]
        if kind == "block_html":
            return self._block_html(token)
        if self._state.skip_active:
            return ""
        handler = self._block_handlers.get(kind)
        if handler is None:
            if kind in self._inline_handlers:
                return self._inline([token])
            logger.debug(f"No handler for block token '{kind}', rendering children")
            return self._blocks(token.get("children", []))
        return handler(token)

    def _inline(self, tokens: List[Token]) -> str:
        parts = []
        for token in tokens:
            handler = self._inline_handlers.get(token["type"])
            if handler is None:
                logger.debug(f"No handler for inline token '{token['type']}', rendering children")
                parts.append(self._inline(token.get("children", [])))
            else:
                parts.append(handler(token))
        return "".join(parts)

    # ------------------------------------------------------------------
    # Plain text helpers
    # ------------------------------------------------------------------

    @classmethod
    def plain_text(cls, tokens: List[Token]) -> str:
        """Concatenate the raw text of inline tokens, dropping markup."""
        parts = []
        for token in tokens:
            if "children" in token:
                parts.append(cls.plain_text(token["children"]))
            elif token["type"] in ("softbreak", "linebreak"):
                parts.append(" ")
            else:
                parts.append(token.get("raw", ""))
        return "".join(parts)

    @classmethod
    def _source_like_text(cls, tokens: List[Token]) -> str:
        """Rebuild underscores around emphasis, so ``[[_TOC_]]`` is recognised."""
        parts = []
        for token in tokens:
            if token["type"] == "emphasis":
                parts.append(f"_{cls._source_like_text(token['children'])}_")
            elif "children" in token:
                parts.append(cls._source_like_text(token["children"]))
            else:
                parts.append(token.get("raw", ""))
        return "".join(parts)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _paragraph(self, token: Token) -> str:
        children = token.get("children", [])
        placeholder = self._source_like_text(children).strip()
        if placeholder == TOC_PLACEHOLDER:
            return (
                '<ac:structured-macro ac:name="toc" ac:schema-version="1" data-layout="default">'
                '<ac:parameter ac:name="outline">clear</ac:parameter>'
                '<ac:parameter ac:name="style">default</ac:parameter>'
                '</ac:structured-macro>\n'
            )
        if placeholder == LISTING_PLACEHOLDER:
            return (
                '<ac:structured-macro ac:name="children" ac:schema-version="2" data-layout="default">'
                '<ac:parameter ac:name="allChildren">true</ac:parameter>'
                '</ac:structured-macro>\n'
            )
        return f"<p>{self._inline(children)}</p>\n"

    def _heading(self, token: Token) -> str:
        level = min(max(int(token.get("attrs", {}).get("level", 1)), 1), 6)
        children = token.get("children", [])

        if level == 1 and not self._state.first_heading_seen:
            self._state.first_heading_seen = True
            if self.options.skip_title_heading:
                return ""

        anchor = ""
        if self.options.heading_anchors:
            slug = heading_slug(self.plain_text(children))
            if slug:
                anchor = (
                    '<ac:structured-macro ac:name="anchor">'
                    f'<ac:parameter ac:name="">{escape_text(slug)}</ac:parameter>'
                    '</ac:structured-macro>'
                )
        return f"{anchor}<h{level}>{self._inline(children)}</h{level}>\n"

    def _block_code(self, token: Token) -> str:
        code = token.get("raw", "")
        if code.endswith("\n"):
            code = code[:-1]
        info = (token.get("attrs", {}).get("info") or "").strip()
        language = info.split()[0] if info else None

        diagram = DIAGRAM_LANGUAGES.get((language or "").lower())
        if diagram and getattr(self.options, diagram[1]):
            kind = diagram[0]
            if kind in ("mermaid", "latex"):
                extension = "png"
            else:
                extension = self.options.diagram_output_format
            return self._diagram(kind, code, extension)

        parts = ['<ac:structured-macro ac:name="code">']
        effective = normalize_language(language, strict=self.options.force_valid_language)
        if effective:
            parts.append(f'<ac:parameter ac:name="language">{escape_text(effective)}</ac:parameter>')
        if self.options.code_line_numbers:
            parts.append('<ac:parameter ac:name="linenumbers">true</ac:parameter>')
        parts.append(f"<ac:plain-text-body>{cdata(code)}</ac:plain-text-body>\n")
        parts.append("</ac:structured-macro>\n")
        return "".join(parts)

    def _diagram(self, kind: str, source: str, extension: str) -> str:
        """Collect a diagram and emit its image plus a collapsed source macro."""
        file_name = diagram_file_name(kind, source, extension)
        self._state.diagrams.append(DiagramSource(kind, file_name, source))
        logger.debug(f"Collected {kind} diagram '{file_name}'")
        return (
            f'<ac:image><ri:attachment ri:filename="{escape_attr(file_name)}"/></ac:image>'
            '<ac:structured-macro ac:name="code">'
            f'<ac:parameter ac:name="language">{kind}</ac:parameter>'
            '<ac:parameter ac:name="collapse">true</ac:parameter>'
            f'<ac:parameter ac:name="title">{kind.capitalize()} Source (auto-generated)</ac:parameter>'
            f'<ac:plain-text-body>{cdata(source)}</ac:plain-text-body>'
            '</ac:structured-macro>\n'
        )

    def _block_quote(self, token: Token) -> str:
        children = list(token.get("children", []))
        macro, alert_type = self._detect_alert(children)

        title = ""
        if self.options.use_panel:
            if alert_type:
                title = f'<ac:parameter ac:name="title">{escape_text(alert_type)}</ac:parameter>'
            macro = "panel"
        elif macro is None:
            macro = "info"

        return (
            f'<ac:structured-macro ac:name="{macro}">{title}'
            f'<ac:rich-text-body>{self._blocks(children)}</ac:rich-text-body>'
            '</ac:structured-macro>\n'
        )

    def _detect_alert(self, children: List[Token]) -> Tuple[Optional[str], Optional[str]]:
        """Find and strip a leading alert marker from a quote's first paragraph.

        Returns:
            (macro name, alert type), both None for a plain quote. The first
            paragraph in ``children`` is replaced by a copy without the marker.
        """
        first = next((i for i, t in enumerate(children) if t["type"] != "blank_line"), None)
        if first is None or children[first]["type"] != "paragraph":
            return None, None

        paragraph = children[first]
        inline = paragraph.get("children", [])
        lead_count = 0
        while lead_count < len(inline) and inline[lead_count]["type"] == "text":
            lead_count += 1
        lead = "".join(t.get("raw", "") for t in inline[:lead_count])

        for pattern, table in ((GITHUB_ALERT_MARKER, GITHUB_ALERTS), (GITLAB_ALERT_MARKER, GITLAB_ALERTS)):
            match = pattern.match(lead)
            if not match:
                continue
            alert_type = match.group(1).upper()
            macro = table.get(alert_type)
            if macro is None:
                continue
            rest = inline[lead_count:]
            remainder = lead[match.end():]
            if remainder:
                rest = [{"type": "text", "raw": remainder}] + rest
            while rest and rest[0]["type"] in ("softbreak", "linebreak"):
                rest = rest[1:]
            if rest and rest[0]["type"] == "text":
                rest = [{"type": "text", "raw": rest[0]["raw"].lstrip()}] + rest[1:]

            if rest:
                children[first] = dict(paragraph, children=rest)
            else:
                del children[first]
            return macro, alert_type

        return None, None

    def _list(self, token: Token) -> str:
        items = [t for t in token.get("children", []) if t["type"] in ("list_item", "task_list_item")]
        if items and all(item["type"] == "task_list_item" for item in items):
            return self._task_list(items)

        tag = "ol" if token.get("attrs", {}).get("ordered") else "ul"
        parts = [f"<{tag}>\n"]
        for item in items:
            parts.append(f"<li>{self._blocks(item.get('children', []))}</li>\n")
        parts.append(f"</{tag}>\n")
        return "".join(parts)

    def _task_list(self, items: List[Token]) -> str:
        parts = ["<ac:task-list>\n"]
        for item in items:
            status = "complete" if item.get("attrs", {}).get("checked") else "incomplete"
            children = item.get("children", [])
            if children and children[0]["type"] in ("block_text", "paragraph"):
                body = self._inline(children[0].get("children", [])) + self._blocks(children[1:])
            else:
                body = self._blocks(children)
            parts.append(
                f"<ac:task><ac:task-status>{status}</ac:task-status>"
                f"<ac:task-body>{body}</ac:task-body></ac:task>\n"
            )
        parts.append("</ac:task-list>\n")
        return "".join(parts)

    def _block_html(self, token: Token) -> str:
        raw = token.get("raw", "")
        if self._html_blocks.is_skip_end(raw):
            self._state.skip_active = False
            return ""
        if self._html_blocks.is_skip_start(raw):
            self._state.skip_active = True
            return ""
        if self._state.skip_active:
            return ""
        return self._html_blocks.rewrite(raw)

    def _table(self, token: Token) -> str:
        style = self._table_style()
        parts = [f'<table style="{style}">\n' if style else "<table>\n"]
        for section in token.get("children", []):
            if section["type"] == "table_head":
                parts.append(self._table_row(section.get("children", []), header=True))
            else:
                for row in section.get("children", []):
                    parts.append(self._table_row(row.get("children", []), header=False))
        parts.append("</table>\n")
        return "".join(parts)

    def _table_row(self, cells: List[Token], header: bool) -> str:
        parts = ["<tr>"]
        for cell in cells:
            tag = "th" if header or cell.get("attrs", {}).get("head") else "td"
            parts.append(f"<{tag}>{self._inline(cell.get('children', []))}</{tag}>")
        parts.append("</tr>\n")
        return "".join(parts)

    def _table_style(self) -> str:
        style = ""
        if self.layout.table_width:
            style += f"width: {self.layout.table_width}px;"
        if self.layout.content_alignment:
            style += f" text-align: {self.layout.content_alignment.lower()};"
        if (self.layout.table_display_mode or "").lower() == "responsive":
            style += " table-layout: auto;"
        else:
            style += " table-layout: fixed;"
        return style.strip()

    def _footnotes(self, token: Token) -> str:
        parts = ["<hr/><ol>\n"]
        for item in token.get("children", []):
            key = item.get("attrs", {}).get("key", "")
            name = escape_text(str(key))
            parts.append(
                "<li>"
                '<ac:structured-macro ac:name="anchor" ac:schema-version="1">'
                f'<ac:parameter ac:name="">footnote-def-{name}</ac:parameter>'
                "</ac:structured-macro>"
            )
            body = self._blocks(item.get("children", [])).strip()
            if body.startswith("<p>") and body.endswith("</p>") and body.count("<p>") == 1:
                body = body[3:-4]
            parts.append(body)

            ref_count = self._state.footnote_refs.get(str(key), 0)
            for i in range(ref_count):
                suffix = f"-{i + 1}" if i > 0 else ""
                arrow = "↩" if ref_count == 1 else "↩" + str(i + 1).translate(SUPERSCRIPT_DIGITS)
                parts.append(
                    f' <ac:link ac:anchor="footnote-ref-{name}{suffix}">'
                    f"<ac:link-body>{cdata(arrow)}</ac:link-body></ac:link>"
                )
            parts.append("</li>\n")
        parts.append("</ol>\n")
        return "".join(parts)

    def _block_math(self, token: Token) -> str:
        content = (token.get("raw") or "").strip()
        if not content:
            return ""
        if self.options.render_latex:
            return self._formula_image(content) + "\n"
        alignment = self.layout.image_alignment or "center"
        return (
            '<ac:structured-macro ac:name="easy-math-block" ac:schema-version="1" '
            f'data-layout="default" ac:local-id="{uuid.uuid4()}" ac:macro-id="{uuid.uuid4()}">'
            f'<ac:parameter ac:name="body">{escape_text(content)}</ac:parameter>'
            f'<ac:parameter ac:name="align">{escape_text(alignment)}</ac:parameter>'
            "</ac:structured-macro>\n"
        )

    # ------------------------------------------------------------------
    # Inlines
    # ------------------------------------------------------------------

    def _text(self, token: Token) -> str:
        text = escape_text(token.get("raw", ""))
        return EMOJI_SHORTCODE.sub(self._emoticon, text)

    @staticmethod
    def _emoticon(match: re.Match) -> str:
        shortname = match.group(1)
        name = EMOTICONS.get(shortname)
        if name is None:
            return match.group(0)
        return (
            f'<ac:emoticon ac:name="{name}" ac:emoji-shortname=":{shortname}:" '
            f'ac:emoji-fallback=":{shortname}:"/>'
        )

    def _mark(self, token: Token) -> str:
        return (
            '<span style="background-color: rgb(254,222,200);">'
            f"{self._inline(token['children'])}</span>"
        )

    def _inline_html(self, token: Token) -> str:
        return self._html_blocks.rewrite_inline(token.get("raw", ""))

    def _link(self, token: Token) -> str:
        attrs = token.get("attrs", {})
        url = attrs.get("url", "")
        if self.options.force_valid_url:
            url = encode_unsafe_url(url)
        children = token.get("children", [])
        text = self._inline(children)

        resolution = self.link_resolver.resolve(
            url, webui_mode=self.options.webui_links, source_path=self.source_path,
        )

        if resolution.link_type in (LinkType.EXTERNAL, LinkType.ANCHOR):
            return f'<a href="{escape_attr(url)}">{text}</a>'

        if resolution.link_type == LinkType.INTERNAL_PAGE:
            if resolution.display_url:
                return f'<a href="{escape_attr(resolution.display_url)}">{text}</a>'
            body = escape_text(resolution.fragment) if resolution.fragment else text
            return (
                f'<ac:link><ri:page ri:content-title="{escape_attr(resolution.resolved_title)}"/>'
                f"<ac:link-body>{body}</ac:link-body></ac:link>"
            )

        return (
            f'<ac:link><ri:attachment ri:filename="{escape_attr(resolution.resolved_title)}"/>'
            f"<ac:link-body>{text}</ac:link-body></ac:link>"
        )

    def _image(self, token: Token) -> str:
        attrs = token.get("attrs", {})
        url = attrs.get("url", "")
        alt = self.plain_text(token.get("children", []))

        color = STATUS_URNS.get(url)
        if color is not None:
            colour = "" if color == "gray" else (
                f'<ac:parameter ac:name="colour">{color.title()}</ac:parameter>'
            )
            return (
                '<ac:structured-macro ac:name="status" ac:schema-version="1" '
                f'ac:macro-id="{uuid.uuid4()}">{colour}'
                f'<ac:parameter ac:name="title">{escape_text(alt)}</ac:parameter>'
                "</ac:structured-macro>"
            )

        image_attrs = ""
        if self.layout.image_alignment:
            image_attrs += f' ac:align="{escape_attr(self.layout.image_alignment)}"'
        if self.layout.image_max_width and self.layout.image_max_width > 0:
            image_attrs += f' ac:width="{self.layout.image_max_width}"'
        if alt:
            image_attrs += f' ac:alt="{escape_attr(alt)}"'

        if url.lower().startswith(("http://", "https://")):
            return f'<ac:image{image_attrs}><ri:url ri:value="{escape_attr(url)}"/></ac:image>'

        if self.options.prefer_raster and url.lower().endswith(".svg"):
            url = url[:-4] + ".png"
        file_name = posixpath.basename(url.replace("\\", "/"))
        self._state.referenced_images.append((file_name, url))
        return f'<ac:image{image_attrs}><ri:attachment ri:filename="{escape_attr(file_name)}"/></ac:image>'

    def _footnote_ref(self, token: Token) -> str:
        key = str(token.get("raw", ""))
        order = token.get("attrs", {}).get("index", 1)
        count = self._state.footnote_refs.get(key, 0) + 1
        self._state.footnote_refs[key] = count

        name = escape_text(key)
        suffix = f"-{count}" if count > 1 else ""
        return (
            "<sup>"
            '<ac:structured-macro ac:name="anchor" ac:schema-version="1">'
            f'<ac:parameter ac:name="">footnote-ref-{name}{suffix}</ac:parameter>'
            "</ac:structured-macro>"
            f'<ac:link ac:anchor="footnote-def-{name}">'
            f"<ac:link-body>{cdata(str(order))}</ac:link-body></ac:link>"
            "</sup>"
        )

    def _inline_math(self, token: Token) -> str:
        content = token.get("raw") or ""
        if not content:
            return ""
        if self.options.render_latex:
            return self._formula_image(content)
        alignment = self.layout.image_alignment or "center"
        return (
            '<ac:structured-macro ac:name="eazy-math-inline" ac:schema-version="1" '
            f'ac:local-id="{uuid.uuid4()}" ac:macro-id="{uuid.uuid4()}">'
            f'<ac:parameter ac:name="body">{escape_text(content)}</ac:parameter>'
            f'<ac:parameter ac:name="align">{escape_text(alignment)}</ac:parameter>'
            "</ac:structured-macro>"
        )

    def _formula_image(self, content: str) -> str:
        file_name = diagram_file_name("formula", content, "png")
        self._state.diagrams.append(DiagramSource("latex", file_name, content))
        return f'<ac:image><ri:attachment ri:filename="{escape_attr(file_name)}"/></ac:image>'
