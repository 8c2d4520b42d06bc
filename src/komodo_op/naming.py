"""
Variable naming — how a 1Password field becomes a Komodo variable name.

Both the create/update phase and orphan detection recompute names
from scratch, so the mapping must stay pure: no prefix, no state.

    format_variable_name("production", "API Key")  ->  "PRODUCTION__API_KEY"
"""

from __future__ import annotations

import re

SEPARATOR = "__"

_WHITESPACE = re.compile(r"\s+")
_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_]+")


def _sanitize(text: str) -> str:
    # Hyphens from the whitespace pass are themselves invalid and
    # end up as underscores in the second pass.
    text = _WHITESPACE.sub("-", text)
    text = _INVALID_CHARS.sub("_", text)
    return text.upper()


def format_variable_name(item_title: str, field_label: str) -> str:
    """Build the Komodo variable name for one item field.

    Args:
        item_title: 1Password item title.
        field_label: Field label within the item. May be empty.

    Returns:
        ``ITEM__FIELD``, or just ``ITEM`` when the label is empty.
    """
    item = _sanitize(item_title)
    if field_label == "":
        return item
    return f"{item}{SEPARATOR}{_sanitize(field_label)}"


def redact_name(name: str) -> str:
    """Return a copy of a variable name that is safe to log.

    Every segment after the item segment is cut to its first two
    characters followed by ``***``; segments of two characters or
    fewer are masked entirely.

    Args:
        name: Variable name as sent to Komodo.

    Returns:
        The display form. Names without a separator come back unchanged.
    """
    parts = name.split(SEPARATOR)
    if len(parts) < 2:
        return name

    for i in range(1, len(parts)):
        part = parts[i]
        parts[i] = part[:2] + "***" if len(part) > 2 else "***"

    return SEPARATOR.join(parts)
