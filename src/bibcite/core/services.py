"""Process-wide wiring of the citation pipeline."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from pathlib import Path
import shutil
import time
from typing import TYPE_CHECKING, Any

from .config import BibciteSettings
from .diagnostics import DiagnosticEmitter
from .directives.processor import DirectiveProcessor
from .directives.shortcodes import ShortcodeExpander
from .library.fetcher import Fetcher
from .library.store import LibraryStore
from .library.sync import LibrarySynchronizer
from .rendering.engine import CiteprocStyleEngine, StyleEngine
from .rendering.renderer import CitationRenderer
from .rendering.styles import StyleResolver
from .transients import TransientStore
from .user_dir import BibciteUserDir, resolve_user_dir


if TYPE_CHECKING:  # pragma: no cover - typing only
    from requests import Session as RequestsSession
else:
    RequestsSession = Any


logger = logging.getLogger(__name__)

LIBRARY_DB = "library.sqlite3"
TRANSIENTS_DB = "transients.sqlite3"
TEMPLATE_CACHE = "templates"


@dataclass(slots=True)
class BibciteServices:
    """Every long-lived collaborator of the pipeline, built once per process."""

    settings: BibciteSettings
    cache_dir: Path
    transients: TransientStore
    store: LibraryStore
    fetcher: Fetcher
    synchronizer: LibrarySynchronizer
    renderer: CitationRenderer
    processor: DirectiveProcessor

    @classmethod
    def from_settings(
        cls,
        settings: BibciteSettings | None = None,
        *,
        user_dir: BibciteUserDir | None = None,
        session: RequestsSession | None = None,
        engine: StyleEngine | None = None,
        clock: Callable[[], float] = time.time,
        emitter: DiagnosticEmitter | None = None,
    ) -> BibciteServices:
        settings = settings or BibciteSettings()
        directories = user_dir or resolve_user_dir()

        cache_dir = settings.resolve_cache_dir(directories)
        transients = TransientStore(cache_dir / TRANSIENTS_DB, clock=clock)
        store = LibraryStore(cache_dir / LIBRARY_DB)
        fetcher = Fetcher(
            transients,
            session=session,
            dormancy_seconds=settings.dormancy_seconds,
            expiration_seconds=settings.transient_expiration_seconds,
            timeout=settings.request_timeout,
            verify_tls=settings.verify_tls,
            user_agent=settings.user_agent,
            clock=clock,
            emitter=emitter,
        )
        synchronizer = LibrarySynchronizer(
            fetcher,
            store,
            transients,
            source_formats=settings.source_formats,
            expiration_seconds=settings.transient_expiration_seconds,
            emitter=emitter,
        )
        renderer = CitationRenderer(
            engine=engine or CiteprocStyleEngine(),
            styles=StyleResolver(
                settings.resolve_styles_dir(directories),
                default_style=settings.default_style,
            ),
            templates_dir=settings.resolve_templates_dir(directories),
            bytecode_cache_dir=cache_dir / TEMPLATE_CACHE,
            emitter=emitter,
        )
        processor = DirectiveProcessor(synchronizer, renderer, settings)
        logger.debug("Citation services ready (cache: %s)", cache_dir)
        return cls(
            settings=settings,
            cache_dir=cache_dir,
            transients=transients,
            store=store,
            fetcher=fetcher,
            synchronizer=synchronizer,
            renderer=renderer,
            processor=processor,
        )

    def expander(self) -> ShortcodeExpander:
        return ShortcodeExpander(self.processor)

    def render_text(self, text: str, document_id: str) -> str:
        """Expand every citation shortcode of ``text``."""
        return self.expander().expand(text, document_id)

    def clear_cache(self) -> None:
        """Drop fetch state, library hashes, stored records and compiled templates."""
        logger.info("Clearing citation caches in %s", self.cache_dir)
        self.fetcher.clear()
        self.synchronizer.clear()
        self.store.clear_all()
        self.transients.clear()
        self.processor.reset()

        bytecode_dir = self.cache_dir / TEMPLATE_CACHE
        bytecode_cache = self.renderer.environment.bytecode_cache
        if bytecode_cache is not None:
            bytecode_cache.clear()
        if bytecode_dir.exists():
            shutil.rmtree(bytecode_dir)
        bytecode_dir.mkdir(parents=True, exist_ok=True)


__all__ = ["LIBRARY_DB", "TRANSIENTS_DB", "BibciteServices"]
