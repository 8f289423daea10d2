"""Document-scoped interpretation of the citation directives.

A document moves through three states while its directives are processed:

``IDLE``
: no enclosing `bibshow` is open; inline citations are ignored.

``COLLECTING``
: an enclosing `bibshow` is open; every `bibcite` registers its keys in the
  document key table and renders a note for its own keys.

``RESOLVED``
: the enclosing `bibshow` has closed and rendered the bibliography of every
  collected key. The key table is discarded.

The standalone `bibtex` directive is independent of the state machine.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
import json
import logging
from threading import Lock

from ..config import (
    BibciteConfig,
    BibciteSettings,
    BibshowConfig,
    BibtexConfig,
)
from ..library.store import CitationRecord
from ..library.sync import LibrarySynchronizer
from ..rendering.renderer import CitationRenderer


logger = logging.getLogger(__name__)


class DirectiveState(Enum):
    """Lifecycle of the enclosing bibliography of one document."""

    IDLE = auto()
    COLLECTING = auto()
    RESOLVED = auto()


@dataclass(slots=True)
class DocumentKeyTable:
    """Unique citation keys of one document in first-seen order."""

    keys: list[str] = field(default_factory=list)
    _indices: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        initial, self.keys = list(self.keys), []
        for key in initial:
            self.register(key)

    def register(self, key: str) -> int:
        """Add ``key`` when unseen and return its first-seen index."""
        index = self._indices.get(key)
        if index is None:
            index = len(self.keys)
            self._indices[key] = index
            self.keys.append(key)
        return index

    def index_of(self, key: str) -> int | None:
        return self._indices.get(key)

    def copy(self) -> DocumentKeyTable:
        return DocumentKeyTable(list(self.keys))

    def __len__(self) -> int:
        return len(self.keys)

    def __contains__(self, key: object) -> bool:
        return key in self._indices


@dataclass(slots=True)
class _DocumentScope:
    state: DirectiveState = DirectiveState.IDLE
    table: DocumentKeyTable | None = None


def _sort_value(record: CitationRecord, field_name: str) -> str:
    return json.dumps(record.get(field_name), sort_keys=True, ensure_ascii=False)


class DirectiveProcessor:
    """Interpret `bibshow`, `bibcite` and `bibtex` directives for documents.

    Per-document state is keyed by a caller-supplied document identifier and
    guarded by a lock, so distinct documents may be processed concurrently.
    Libraries are shared through the synchronizer's handle cache.
    """

    def __init__(
        self,
        synchronizer: LibrarySynchronizer,
        renderer: CitationRenderer,
        settings: BibciteSettings | None = None,
    ) -> None:
        self._synchronizer = synchronizer
        self._renderer = renderer
        self._settings = settings or BibciteSettings()
        self._documents: dict[str, _DocumentScope] = {}
        self._lock = Lock()

    @property
    def settings(self) -> BibciteSettings:
        return self._settings

    def state(self, document_id: str) -> DirectiveState:
        with self._lock:
            scope = self._documents.get(document_id)
            return scope.state if scope is not None else DirectiveState.IDLE

    def key_table(self, document_id: str) -> DocumentKeyTable | None:
        """Return a copy of the document's key table while it is collecting."""
        with self._lock:
            scope = self._documents.get(document_id)
            if scope is None or scope.table is None:
                return None
            return scope.table.copy()

    def reset(self, document_id: str | None = None) -> None:
        """Forget the state of one document, or of every document."""
        with self._lock:
            if document_id is None:
                self._documents.clear()
            else:
                self._documents.pop(document_id, None)

    def open_bibshow(self, document_id: str, config: BibshowConfig) -> None:
        """Start collecting inline citations for ``document_id``."""
        logger.debug("Document %s - opening bibshow (%s)", document_id, config.file)
        with self._lock:
            scope = self._documents.setdefault(document_id, _DocumentScope())
            if scope.state is DirectiveState.COLLECTING:
                logger.warning(
                    "Document %s - nested bibshow; discarding %d collected keys.",
                    document_id,
                    len(scope.table or ()),
                )
            scope.state = DirectiveState.COLLECTING
            scope.table = DocumentKeyTable()

    def bibcite(self, document_id: str, config: BibciteConfig) -> str:
        """Register the directive's keys and render a note for them."""
        keys = config.keys
        with self._lock:
            scope = self._documents.get(document_id)
            if scope is None or scope.state is not DirectiveState.COLLECTING or scope.table is None:
                logger.warning("Document %s - no enclosing bibshow. Skipping.", document_id)
                return ""
            if not keys:
                logger.warning("Document %s - no keys found. Skipping bibcite.", document_id)
                return ""
            slots: dict[int, str] = {}
            for key in keys:
                slots.setdefault(scope.table.register(key), key)

        slot_keys = list(slots.values())
        records = self._lookup(document_id, config.file, slot_keys)
        logger.info("Document %s - rendering keys %s", document_id, config.key)
        return self._renderer.render(
            records,
            config.style,
            config.template,
            mode=config.mode,
            keys=slot_keys,
            indices=list(slots),
        )

    def close_bibshow(self, document_id: str, config: BibshowConfig, content: str) -> str:
        """Append the bibliography of every collected key to ``content``."""
        with self._lock:
            scope = self._documents.get(document_id)
            if scope is None or scope.state is not DirectiveState.COLLECTING:
                logger.warning("Document %s - closing bibshow without an opening one.", document_id)
                return content
            table = scope.table or DocumentKeyTable()
            scope.state = DirectiveState.RESOLVED
            scope.table = None

        if not table:
            logger.warning("Document %s - no bibcite directives found. Skipping.", document_id)
            return content

        records = self._lookup(document_id, config.file, table.keys)
        logger.debug("Document %s - rendering %d keys for bibshow", document_id, len(table))
        bibliography = self._renderer.render(
            records,
            config.style,
            config.template,
            mode=config.mode,
            keys=table.keys,
        )
        return content + bibliography

    def bibshow(
        self,
        document_id: str,
        config: BibshowConfig,
        content_renderer: Callable[[], str],
    ) -> str:
        """Open a bibliography, expand its content, then close it."""
        self.open_bibshow(document_id, config)
        content = content_renderer()
        return self.close_bibshow(document_id, config, content)

    def bibtex(self, document_id: str, config: BibtexConfig) -> str:
        """Render a standalone bibliography of the directive's keys."""
        keys = config.keys
        if not keys:
            logger.warning("Document %s - no keys found. Skipping bibtex.", document_id)
            return ""

        found: list[tuple[str, CitationRecord]] = []
        for key, record in zip(keys, self._lookup(document_id, config.file, keys)):
            if record is None:
                continue
            found.append((key, record))

        if config.sort:
            found = self._sorted(found, config.sort, descending=config.order == "desc")

        logger.info("Document %s - rendering keys %s", document_id, config.key)
        return self._renderer.render(
            [record for _, record in found],
            config.style,
            config.template,
            mode=config.mode,
            keys=[key for key, _ in found],
        )

    def _lookup(
        self, document_id: str, url: str | None, keys: Iterable[str]
    ) -> list[CitationRecord | None]:
        keys = list(keys)
        if not url:
            logger.warning("Document %s - no library URL configured.", document_id)
            return [None] * len(keys)
        handle = self._synchronizer.get_or_update(url)
        records: list[CitationRecord | None] = []
        for key in keys:
            record = handle.get(key)
            if record is None:
                logger.warning("Document %s - could not find library entry: %s", document_id, key)
            records.append(record)
        return records

    @staticmethod
    def _sorted(
        found: Sequence[tuple[str, CitationRecord]], field_name: str, *, descending: bool
    ) -> list[tuple[str, CitationRecord]]:
        if found and not any(field_name in record for _, record in found):
            logger.warning(
                "No entry has the CSL attribute '%s'; keeping the original order.", field_name
            )
            return list(found)
        try:
            return sorted(
                found, key=lambda item: _sort_value(item[1], field_name), reverse=descending
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Could not sort on CSL attribute '%s': %s", field_name, exc)
            return list(found)


__all__ = ["DirectiveProcessor", "DirectiveState", "DocumentKeyTable"]
