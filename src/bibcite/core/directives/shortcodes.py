"""Expansion of ``[bibshow]``, ``[bibcite]`` and ``[bibtex]`` shortcodes in text."""

from __future__ import annotations

import logging
import re

from ..config import BibciteConfig, BibshowConfig, BibtexConfig
from .processor import DirectiveProcessor


logger = logging.getLogger(__name__)

_SHORTCODE_RE = re.compile(
    r"""
    \[bibshow(?P<show_attrs>(?:\s[^\]]*)?)\]
    (?P<content>.*?)
    \[/bibshow\]
    |
    \[(?P<name>bibcite|bibtex)(?P<attrs>(?:\s[^\]]*)?)/?\]
    """,
    re.DOTALL | re.VERBOSE,
)

_ATTRIBUTE_RE = re.compile(
    r"""
    (?P<name>[A-Za-z_][\w-]*)
    \s*=\s*
    (?:"(?P<double>[^"]*)"|'(?P<single>[^']*)'|(?P<bare>[^\s"'\]]+))
    """,
    re.VERBOSE,
)


def parse_attributes(text: str) -> dict[str, str]:
    """Return the ``name=value`` pairs of a shortcode opening tag."""
    attributes: dict[str, str] = {}
    for match in _ATTRIBUTE_RE.finditer(text.rstrip("/")):
        value = next(
            group
            for group in (match.group("double"), match.group("single"), match.group("bare"))
            if group is not None
        )
        attributes[match.group("name").lower()] = value
    return attributes


class ShortcodeExpander:
    """Replace citation shortcodes in a text with their rendered markup.

    The content enclosed by ``[bibshow]...[/bibshow]`` is expanded first so
    that the inline citations it contains are collected before the closing
    bibliography is rendered. Any other text is returned untouched.
    """

    def __init__(self, processor: DirectiveProcessor) -> None:
        self._processor = processor

    @property
    def processor(self) -> DirectiveProcessor:
        return self._processor

    def expand(self, text: str, document_id: str) -> str:
        settings = self._processor.settings

        def replace(match: re.Match[str]) -> str:
            name = match.group("name")
            if name is None:
                config = BibshowConfig.from_attributes(
                    parse_attributes(match.group("show_attrs")), settings
                )
                content = match.group("content")
                return self._processor.bibshow(
                    document_id, config, lambda: self.expand(content, document_id)
                )

            attributes = parse_attributes(match.group("attrs"))
            if name == "bibcite":
                return self._processor.bibcite(
                    document_id, BibciteConfig.from_attributes(attributes, settings)
                )
            return self._processor.bibtex(
                document_id, BibtexConfig.from_attributes(attributes, settings)
            )

        return _SHORTCODE_RE.sub(replace, text)


__all__ = ["ShortcodeExpander", "parse_attributes"]
