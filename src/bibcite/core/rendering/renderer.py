"""Rendering of ordered record sets through a CSL style and a list template."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from html import escape
import json
import logging
from pathlib import Path

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemBytecodeCache,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
)

from ..config import RenderMode
from ..diagnostics import DiagnosticEmitter, LoggingEmitter
from ..exceptions import StyleEngineError, TemplateRenderError, exception_hint
from ..library.store import CitationRecord
from .engine import CiteprocStyleEngine, StyleEngine
from .styles import ResolvedStyle, StyleResolver


logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".html.j2"
FALLBACK_TEMPLATE = "built-in-unordered-list"
UNKNOWN_KEY = "unknown_key"
UNKNOWN_ENTRY = '<span class="bibcite-unknown" style="color:gray">Unknown entry</span>'

_FALLBACK_SOURCE = (
    '<ul class="bibcite-default-template">\n'
    "{% for entry in entries %}\n"
    "\t<li>{{ entry.entry | safe }}</li>\n"
    "{% endfor %}\n"
    "</ul>\n"
)


def builtin_templates_dir() -> Path:
    """Return the directory of the list templates shipped with the package."""
    return Path(__file__).resolve().parent.parent.parent / "templates"


@dataclass(frozen=True, slots=True)
class RenderedEntry:
    """One slot handed to a list template."""

    index: int
    key: str
    csl: str
    entry: str


class CitationRenderer:
    """Render records one at a time with a style, then apply a list template.

    Every record is rendered in isolation: a failure on one slot becomes an
    inline error fragment and never affects its neighbours. Template problems
    are logged and yield an empty string.
    """

    def __init__(
        self,
        *,
        engine: StyleEngine | None = None,
        styles: StyleResolver | None = None,
        templates_dir: Path | None = None,
        bytecode_cache_dir: Path | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._engine = engine or CiteprocStyleEngine()
        self._styles = styles or StyleResolver()
        self._emitter = emitter or LoggingEmitter(logger_obj=logger)
        # A missing user directory is still searched; it may be created later.
        self._search_paths = [
            str(path) for path in (templates_dir, builtin_templates_dir()) if path is not None
        ]

        bytecode_cache = None
        if bytecode_cache_dir is not None:
            Path(bytecode_cache_dir).mkdir(parents=True, exist_ok=True)
            bytecode_cache = FileSystemBytecodeCache(str(bytecode_cache_dir))

        self._environment = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader(self._search_paths),
                    DictLoader({f"{FALLBACK_TEMPLATE}{TEMPLATE_SUFFIX}": _FALLBACK_SOURCE}),
                ]
            ),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            bytecode_cache=bytecode_cache,
        )

    @property
    def environment(self) -> Environment:
        return self._environment

    def style_names(self) -> list[str]:
        return self._styles.style_names()

    def template_names(self) -> list[str]:
        """Return the names of every available list template."""
        names = {
            name[: -len(TEMPLATE_SUFFIX)]
            for name in self._environment.list_templates()
            if name.endswith(TEMPLATE_SUFFIX)
        }
        return sorted(names)

    def render(
        self,
        records: Sequence[CitationRecord | None] | None,
        style: str | None,
        template: str | None,
        *,
        mode: RenderMode = "citation",
        keys: Sequence[str] | None = None,
        indices: Sequence[int] | None = None,
    ) -> str:
        """Render ``records`` in order and apply the list template.

        ``keys`` and ``indices`` optionally supply, per slot, the citation key
        shown for the slot and the index exposed to the template. Indices
        default to the ordinal position of each record.
        """
        resolved = self._styles.resolve(style)
        entries: list[RenderedEntry] = []
        for position, record in enumerate(records or []):
            index = position
            if indices is not None and position < len(indices):
                index = indices[position]
            entries.append(self._render_entry(resolved, record, position, index, keys, mode))

        try:
            return self._apply_template(template, entries)
        except TemplateRenderError as exc:
            self._emitter.error(f"Exception when applying template: {exc}", exc)
            return ""

    def _render_entry(
        self,
        style: ResolvedStyle,
        record: CitationRecord | None,
        position: int,
        index: int,
        keys: Sequence[str] | None,
        mode: RenderMode,
    ) -> RenderedEntry:
        if not record:
            return RenderedEntry(
                index=index, key=UNKNOWN_KEY, csl=json.dumps(record), entry=UNKNOWN_ENTRY
            )

        key = self._record_key(record, position, keys)
        csl = json.dumps(record, ensure_ascii=False)
        try:
            rendered = self._engine.render(style, [record], mode)
        except StyleEngineError as exc:
            self._emitter.warning(f"Error when rendering CSL entry '{key}': {exc}", exc)
            rendered = (
                '<span class="bibcite-error">'
                f"Error when rendering {escape(key)}: {escape(str(exc))}</span>"
            )
        except Exception as exc:  # noqa: BLE001
            self._emitter.error(f"Exception when rendering CSL entry '{key}': {exc}", exc)
            hint = exception_hint(exc) or type(exc).__name__
            rendered = (
                '<span class="bibcite-exception">'
                f"Exception when rendering {escape(key)}: {escape(hint)}</span>"
            )
        return RenderedEntry(index=index, key=key, csl=csl, entry=rendered)

    @staticmethod
    def _record_key(
        record: CitationRecord, position: int, keys: Sequence[str] | None
    ) -> str:
        if keys is not None and position < len(keys) and keys[position]:
            return str(keys[position])
        return str(record.get("citation-label") or record.get("id") or UNKNOWN_KEY)

    def _apply_template(self, name: str | None, entries: list[RenderedEntry]) -> str:
        template_name = f"{(name or '').strip()}{TEMPLATE_SUFFIX}"
        try:
            template = self._environment.get_template(template_name)
            logger.debug("Using template: %s", template_name)
        except TemplateNotFound:
            logger.warning(
                "Unrecognised template: %s. Defaulting to built-in unordered list.",
                template_name,
            )
            template = self._environment.get_template(f"{FALLBACK_TEMPLATE}{TEMPLATE_SUFFIX}")
        except TemplateError as exc:
            raise TemplateRenderError(f"unable to load template '{template_name}': {exc}") from exc

        try:
            return template.render(entries=[asdict(entry) for entry in entries])
        except (TemplateError, TypeError, ValueError) as exc:
            message = f"unable to render template '{template_name}': {exc}"
            raise TemplateRenderError(message) from exc


__all__ = [
    "FALLBACK_TEMPLATE",
    "TEMPLATE_SUFFIX",
    "UNKNOWN_ENTRY",
    "UNKNOWN_KEY",
    "CitationRenderer",
    "RenderedEntry",
    "builtin_templates_dir",
]
