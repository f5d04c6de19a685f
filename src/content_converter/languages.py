"""Code block language identifiers understood by the Confluence code macro."""

from typing import Optional

# Identifier → Confluence language name (values differ from keys only for aliases)
LANGUAGE_ALIASES = {
    name: name for name in (
        "abap", "actionscript3", "ada", "applescript", "arduino", "autoit",
        "bash", "c", "c#", "clojure", "coffeescript", "coldfusion", "cpp",
        "css", "cuda", "d", "dart", "delphi", "diff", "dockerfile", "elixir",
        "erl", "fortran", "foxpro", "gherkin", "go", "graphql", "groovy",
        "handlebars", "haskell", "haxe", "hcl", "html", "java", "javafx",
        "js", "json", "jsx", "julia", "kotlin", "livescript", "lua",
        "mathematica", "matlab", "objectivec", "objectivej", "ocaml",
        "octave", "pascal", "perl", "php", "powershell", "prolog", "protobuf",
        "puppet", "py", "qml", "r", "racket", "rst", "ruby", "rust", "sass",
        "scala", "scheme", "shell", "smalltalk", "splunk", "sql",
        "standardml", "swift", "tcl", "tex", "none", "toml", "tsx",
        "typescript", "vala", "vb", "verilog", "vhdl", "xml", "xquery", "yaml",
    )
}
LANGUAGE_ALIASES.update({
    "c++": "cpp",
    "csharp": "c#",
    "erlang": "erl",
    "javascript": "js",
    "python": "py",
    "text": "none",
    "plain": "none",
})

# Sentinel written for unknown languages in strict mode
UNKNOWN_LANGUAGE = "none"


def normalize_language(language: Optional[str], strict: bool = False) -> Optional[str]:
    """Map a fence info string to a Confluence code macro language.

    Args:
        language: First word of the fence info string (may be empty)
        strict: Replace unknown languages with ``none`` instead of passing them through

    Returns:
        The Confluence language name, or None when no language was given

    Example:
        >>> normalize_language("Python")
        'py'
        >>> normalize_language("brainfuck", strict=True)
        'none'
    """
    if not language:
        return None
    known = LANGUAGE_ALIASES.get(language.lower())
    if known is not None:
        return known
    return UNKNOWN_LANGUAGE if strict else language
