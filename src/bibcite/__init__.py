"""Primary public API for bibcite."""

from __future__ import annotations

from bibcite.core.config import (
    BibciteConfig,
    BibciteSettings,
    BibshowConfig,
    BibtexConfig,
    SourceFormat,
    load_settings,
)
from bibcite.core.directives import (
    DirectiveProcessor,
    DirectiveState,
    DocumentKeyTable,
    ShortcodeExpander,
)
from bibcite.core.exceptions import (
    BibciteError,
    ConversionError,
    FetchError,
    LibraryParseError,
    SettingsError,
    StyleEngineError,
    TemplateRenderError,
)
from bibcite.core.library import (
    BibtexParser,
    CslConverter,
    Fetcher,
    LibraryHandle,
    LibraryStore,
    LibrarySynchronizer,
    RawEntry,
)
from bibcite.core.rendering import (
    CitationRenderer,
    CiteprocStyleEngine,
    RenderedEntry,
    StyleResolver,
)
from bibcite.core.services import BibciteServices
from bibcite.core.transients import TransientStore
from bibcite.version import get_version


__version__ = get_version()

__all__ = [
    "BibciteConfig",
    "BibciteError",
    "BibciteServices",
    "BibciteSettings",
    "BibshowConfig",
    "BibtexConfig",
    "BibtexParser",
    "CitationRenderer",
    "CiteprocStyleEngine",
    "ConversionError",
    "CslConverter",
    "DirectiveProcessor",
    "DirectiveState",
    "DocumentKeyTable",
    "FetchError",
    "Fetcher",
    "LibraryHandle",
    "LibraryParseError",
    "LibraryStore",
    "LibrarySynchronizer",
    "RawEntry",
    "RenderedEntry",
    "SettingsError",
    "ShortcodeExpander",
    "SourceFormat",
    "StyleEngineError",
    "StyleResolver",
    "TemplateRenderError",
    "TransientStore",
    "__version__",
    "get_version",
    "load_settings",
]
