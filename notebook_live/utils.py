"""
Utility functions for notebook-live.
"""

from typing import Any, Iterable

from markupsafe import escape


VOID_TAGS = {"img", "br", "hr", "input", "meta", "link"}


def join_text(text: Any) -> str:
    """
    Join notebook text that may be stored as a list of line fragments.

    Nested lists are flattened in order; ``None`` becomes an empty string.
    """
    if text is None:
        return ""
    if isinstance(text, (list, tuple)):
        return "".join(join_text(t) for t in text)
    return text if isinstance(text, str) else str(text)


def escape_html(raw: str) -> str:
    """Escape text for inclusion in HTML markup."""
    return str(escape(raw))


def element(tag: str, body: str = "", **attrs: Any) -> str:
    """
    Build an HTML element string.

    Attribute names are written with underscores, e.g. ``data_prompt_number``
    becomes ``data-prompt-number`` and ``class_`` becomes ``class``.
    Attributes whose value is None are omitted. ``body`` is inserted as-is.
    """
    parts = [tag]
    for key, value in attrs.items():
        if value is None:
            continue
        name = key.rstrip("_").replace("_", "-")
        parts.append(f'{name}="{escape(value)}"')
    opening = " ".join(parts)
    if tag in VOID_TAGS:
        return f"<{opening}>"
    return f"<{opening}>{body}</{tag}>"


def class_names(prefix: str, names: Iterable[str]) -> str:
    """Prefix each class name, e.g. ``["cell"]`` -> ``"nb-cell"``."""
    return " ".join(prefix + name for name in names)


def format_ms(ms: float) -> str:
    """Format milliseconds with two decimals, dropping trailing zeros."""
    text = f"{ms:.2f}".rstrip("0").rstrip(".")
    return text or "0"


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text to max_length, adding ellipsis if needed."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def is_count(value: Any) -> bool:
    """True for integer execution counts (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)
