"""
Hooks: pluggable collaborators for formatting work the core delegates.

Each slot holds a single function. The core only calls them; swapping one
out (e.g. a stricter sanitizer) never changes dispatch or payload handling.
"""

import io
from dataclasses import dataclass
from typing import Any, Callable

from markdown_it import MarkdownIt
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound
from rich.console import Console
from rich.pretty import pretty_repr
from rich.text import Text


def _highlight_fence(code: str, lang: str, attrs: str) -> str:
    """Highlight fenced code blocks; empty string means default escaping."""
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return ""
    return highlight(code, lexer, HtmlFormatter(nowrap=True))


_md = MarkdownIt("commonmark", {"html": True, "highlight": _highlight_fence})


def render_markdown(text: str) -> str:
    """Render markdown to HTML with markdown-it-py."""
    return _md.render(text)


def ansi_to_html(text: str) -> str:
    """
    Convert ANSI-colored text to HTML.

    The result is escaped; styled runs become ``<span style=...>``.
    """
    if not text:
        return ""
    console = Console(
        record=True,
        file=io.StringIO(),
        force_terminal=True,
        color_system="truecolor",
        width=10_000,
    )
    console.print(Text.from_ansi(text, end=""), end="", soft_wrap=True, highlight=False)
    return console.export_html(inline_styles=True, code_format="{code}")


def to_display_string(value: Any) -> str:
    """Turn a captured value into display text; strings pass through."""
    if isinstance(value, str):
        return value
    return pretty_repr(value)


def identity(html: str) -> str:
    return html


def no_highlight(html: str, kind: str) -> str:
    return html


@dataclass
class Hooks:
    """External collaborator slots used by rendering and execution."""

    markdown: Callable[[str], str] = render_markdown
    sanitizer: Callable[[str], str] = identity
    ansi: Callable[[str], str] = ansi_to_html
    highlighter: Callable[[str, str], str] = no_highlight
    serializer: Callable[[Any], str] = to_display_string
