"""Rewrites applied to raw HTML found in markdown documents.

Raw HTML is passed through to the storage format except for a few
constructs Confluence has its own representation for:
- ``<details>``/``<summary>`` becomes an expand macro
- ``<input type="date" value="...">`` becomes a ``<time>`` element
- ``<ins>`` becomes ``<u>``

``<!-- confluence-skip-start -->`` and ``<!-- confluence-skip-end -->``
comments delimit regions that are left out of the page entirely.
"""

import re

SKIP_START = "confluence-skip-start"
SKIP_END = "confluence-skip-end"

DETAILS_OPEN = re.compile(r'<details(\s+[^>]*)?>', re.IGNORECASE | re.DOTALL)
SUMMARY = re.compile(r'<summary[^>]*>(?P<text>.*?)</summary>', re.IGNORECASE | re.DOTALL)
SUMMARY_END = re.compile(r'</summary>', re.IGNORECASE)
DETAILS_END = re.compile(r'</details>', re.IGNORECASE)
DATE_INPUT = re.compile(
    r'<input\s+type\s*=\s*"date"\s+value\s*=\s*"(?P<date>[^"]+)"\s*/?>', re.IGNORECASE,
)
INS_OPEN = re.compile(r'<ins>', re.IGNORECASE)
INS_CLOSE = re.compile(r'</ins>', re.IGNORECASE)


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        .replace('"', "&quot;")
    )


class HtmlBlockRewriter:
    """Applies the raw HTML rewrites for block and inline HTML."""

    @staticmethod
    def is_skip_start(html: str) -> bool:
        return SKIP_START in html.lower()

    @staticmethod
    def is_skip_end(html: str) -> bool:
        return SKIP_END in html.lower()

    def rewrite(self, html: str) -> str:
        """Rewrite one raw HTML block.

        Args:
            html: Raw HTML as it appears in the markdown

        Returns:
            Storage format text for the block
        """
        if DETAILS_OPEN.search(html):
            return self._details_to_expand(html)
        return self.rewrite_inline(html)

    def rewrite_inline(self, html: str) -> str:
        html = DATE_INPUT.sub(lambda m: f'<time datetime="{_escape(m.group("date"))}"/>', html)
        html = INS_OPEN.sub("<u>", html)
        return INS_CLOSE.sub("</u>", html)

    @staticmethod
    def _details_to_expand(html: str) -> str:
        summary_match = SUMMARY.search(html)
        summary = summary_match.group("text").strip() if summary_match else ""

        body = ""
        summary_end = SUMMARY_END.search(html)
        details_end = DETAILS_END.search(html)
        if summary_end and details_end and details_end.start() > summary_end.end():
            body = html[summary_end.end():details_end.start()].strip()

        title = f'<ac:parameter ac:name="title">{_escape(summary)}</ac:parameter>' if summary else ""
        return (
            f'<ac:structured-macro ac:name="expand" ac:schema-version="1">{title}'
            f"<ac:rich-text-body>{body}</ac:rich-text-body>"
            "</ac:structured-macro>\n"
        )
