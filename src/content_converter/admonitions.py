"""MkDocs-style admonition to GitHub alert conversion.

``!!! type "Title"`` blocks with an indented body are rewritten into ``> [!TYPE]``
block quotes before markdown parsing, so they render through the same alert
macros as GitHub alerts.
"""

import re

ADMONITION_HEADER = re.compile(r'^!!!\s+(\w+)(?:\s+["\']([^"\']+)["\'])?\s*$')

ADMONITION_TYPES = {
    "info": "NOTE",
    "note": "NOTE",
    "question": "NOTE",
    "quote": "NOTE",
    "abstract": "NOTE",
    "summary": "NOTE",
    "tip": "TIP",
    "hint": "TIP",
    "example": "TIP",
    "success": "TIP",
    "check": "TIP",
    "done": "TIP",
    "important": "IMPORTANT",
    "todo": "IMPORTANT",
    "warning": "WARNING",
    "attention": "WARNING",
    "danger": "CAUTION",
    "caution": "CAUTION",
    "error": "CAUTION",
    "fail": "CAUTION",
    "failure": "CAUTION",
    "bug": "CAUTION",
}


def _is_indented(line: str) -> bool:
    return line.startswith("    ") or line.startswith("\t")


def _dedent(line: str) -> str:
    return line[4:] if line.startswith("    ") else line[1:]


class AdmonitionPreProcessor:
    """Rewrites admonition blocks into GitHub alert block quotes.

    Example:
        >>> AdmonitionPreProcessor.convert('!!! warning "Heads up"\\n    Be careful\\n')
        '> [!WARNING]\\n> **Heads up**\\n> Be careful\\n'
    """

    @staticmethod
    def convert(markdown: str) -> str:
        lines = markdown.split("\n")
        output = []
        i = 0

        while i < len(lines):
            match = ADMONITION_HEADER.match(lines[i])
            if not match:
                output.append(lines[i])
                i += 1
                continue

            alert_type = ADMONITION_TYPES.get(match.group(1).lower(), "NOTE")
            title = match.group(2)
            output.append(f"> [!{alert_type}]")
            if title and title.strip():
                output.append(f"> **{title.strip()}**")

            i += 1
            while i < len(lines):
                body_line = lines[i]
                if _is_indented(body_line):
                    output.append(f"> {_dedent(body_line)}")
                    i += 1
                elif not body_line.strip() and i + 1 < len(lines) and _is_indented(lines[i + 1]):
                    # Blank line inside the admonition body
                    output.append(">")
                    i += 1
                else:
                    break
            output.append("")

        return "\n".join(output).rstrip("\r\n") + "\n"
