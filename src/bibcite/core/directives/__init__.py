"""Citation directives and their shortcode syntax."""

from __future__ import annotations

from .processor import DirectiveProcessor, DirectiveState, DocumentKeyTable
from .shortcodes import ShortcodeExpander, parse_attributes


__all__ = [
    "DirectiveProcessor",
    "DirectiveState",
    "DocumentKeyTable",
    "ShortcodeExpander",
    "parse_attributes",
]
