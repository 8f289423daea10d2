"""Configuration models used by the citation pipeline.

BibciteSettings

`library_url` (`str | None`)
: Default source library URL used by directives that omit the `file`
  attribute.

`source_formats` (`dict[str, SourceFormat]`)
: Explicit source format per library URL (`bibtex` or `csl-json`). URLs not
  listed are detected from their suffix and content.

`dormancy_seconds` (`int`)
: Minimum interval between two network requests for the same URL. Fetches
  inside the window reuse the cached body.

`transient_expiration_seconds` (`int`)
: Lifetime of cached fetch state (ETag, fetch time, body, content hash).

`request_timeout` (`float`)
: Transport timeout for library downloads, in seconds.

`verify_tls` (`bool`)
: Verify TLS certificates when downloading. Disabled by default so that
  self-signed and test endpoints remain reachable.

`user_agent` (`str`)
: User agent sent with library downloads.

`cache_dir` (`Path | None`)
: Root of the durable stores and compiled templates. Defaults to the user
  cache directory (`BIBCITE_CACHE_DIR`, `XDG_CACHE_HOME/bibcite`, ...).

`styles_dir` (`Path | None`)
: Directory holding user CSL styles (`<name>.csl`). They take precedence over
  the built-in styles.

`templates_dir` (`Path | None`)
: Directory holding user list templates (`<name>.html.j2`). They take
  precedence over the built-in templates.

`default_style` (`str`)
: Style used when a requested style cannot be resolved.

`bibshow`, `bibcite`, `bibtex` (`DirectiveDefaults`)
: Per-directive default style, template and render mode.

Directive configs

`BibshowConfig`, `BibciteConfig` and `BibtexConfig` are the typed views of a
directive's attributes (`file`, `key`, `style`, `template`, `mode` and, for
`bibtex` only, `sort` and `order`). Build them with `from_attributes` so that
omitted or blank attributes fall back to the settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
import logging
from pathlib import Path
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import SettingsError
from .user_dir import BibciteUserDir, resolve_user_dir


logger = logging.getLogger(__name__)

RenderMode = Literal["citation", "bibliography"]
SortOrder = Literal["asc", "desc"]

DEFAULT_STYLE = "harvard-cite-them-right"
DORMANCY_SECONDS = 300
TRANSIENT_EXPIRATION_SECONDS = 3600 * 24 * 30


class SourceFormat(str, Enum):
    """Supported source library formats."""

    BIBTEX = "bibtex"
    CSL_JSON = "csl-json"


class DirectiveKind(str, Enum):
    """The three directives understood by the processor."""

    BIBSHOW = "bibshow"
    BIBCITE = "bibcite"
    BIBTEX = "bibtex"


class DirectiveDefaults(BaseModel):
    """Default style, template and render mode for one directive kind."""

    model_config = ConfigDict(extra="forbid")

    style: str = DEFAULT_STYLE
    template: str
    mode: RenderMode = "citation"


class BibciteSettings(BaseModel):
    """Process-wide settings for the citation pipeline."""

    model_config = ConfigDict(extra="forbid")

    library_url: str | None = None
    source_formats: dict[str, SourceFormat] = Field(default_factory=dict)
    dormancy_seconds: int = Field(default=DORMANCY_SECONDS, ge=0)
    transient_expiration_seconds: int = Field(default=TRANSIENT_EXPIRATION_SECONDS, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)
    verify_tls: bool = False
    user_agent: str = "bibcite-library-fetcher"
    cache_dir: Path | None = None
    styles_dir: Path | None = None
    templates_dir: Path | None = None
    default_style: str = DEFAULT_STYLE
    bibshow: DirectiveDefaults = Field(
        default_factory=lambda: DirectiveDefaults(template="bibshow-definition-list")
    )
    bibcite: DirectiveDefaults = Field(
        default_factory=lambda: DirectiveDefaults(template="bibcite-numbered-note")
    )
    bibtex: DirectiveDefaults = Field(
        default_factory=lambda: DirectiveDefaults(template="bibtex-unordered-list")
    )

    def defaults_for(self, kind: DirectiveKind) -> DirectiveDefaults:
        """Return the configured defaults for a directive kind."""
        return getattr(self, kind.value)

    def resolve_cache_dir(self, user_dir: BibciteUserDir | None = None) -> Path:
        """Return the cache root, creating it when needed."""
        if self.cache_dir is not None:
            target = self.cache_dir.expanduser()
            target.mkdir(parents=True, exist_ok=True)
            return target
        return (user_dir or resolve_user_dir()).cache_dir()

    def resolve_styles_dir(self, user_dir: BibciteUserDir | None = None) -> Path:
        """Return the user styles directory (which may not exist)."""
        if self.styles_dir is not None:
            return self.styles_dir.expanduser()
        return (user_dir or resolve_user_dir()).data_dir("styles", create=False)

    def resolve_templates_dir(self, user_dir: BibciteUserDir | None = None) -> Path:
        """Return the user templates directory (which may not exist)."""
        if self.templates_dir is not None:
            return self.templates_dir.expanduser()
        return (user_dir or resolve_user_dir()).data_dir("templates", create=False)


def load_settings(path: Path | str | None) -> BibciteSettings:
    """Load settings from a YAML file, returning defaults when ``path`` is None."""
    if path is None:
        return BibciteSettings()
    settings_path = Path(path)
    try:
        payload = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SettingsError(f"Unable to read settings file '{settings_path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise SettingsError(f"Invalid YAML in settings file '{settings_path}': {exc}") from exc

    if payload is None:
        return BibciteSettings()
    if not isinstance(payload, Mapping):
        raise SettingsError(f"Settings file '{settings_path}' must contain a mapping.")
    try:
        return BibciteSettings.model_validate(dict(payload))
    except ValidationError as exc:
        raise SettingsError(f"Invalid settings in '{settings_path}': {exc}") from exc


class _DirectiveConfig(BaseModel):
    """Attributes shared by every directive."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: ClassVar[DirectiveKind]

    file: str | None = None
    key: str = ""
    style: str
    template: str
    mode: RenderMode

    @field_validator("mode", mode="before")
    @classmethod
    def normalise_mode(cls, value: Any) -> Any:
        candidate = str(value).strip().lower()
        if candidate in ("citation", "bibliography"):
            return candidate
        logger.warning("Unknown render mode '%s'; using 'citation'.", value)
        return "citation"

    @property
    def keys(self) -> list[str]:
        """Return the comma-separated citation keys, trimmed and without blanks."""
        return [part.strip() for part in self.key.split(",") if part.strip()]

    @classmethod
    def from_attributes(
        cls,
        attributes: Mapping[str, Any] | None,
        settings: BibciteSettings,
    ) -> _DirectiveConfig:
        """Build a config from raw directive attributes, filling in defaults."""
        defaults = settings.defaults_for(cls.kind)
        payload: dict[str, Any] = {
            "file": settings.library_url,
            "style": defaults.style,
            "template": defaults.template,
            "mode": defaults.mode,
        }
        for name, value in (attributes or {}).items():
            field_name = str(name).strip().lower()
            if field_name == "kind" or field_name not in cls.model_fields:
                continue
            if value is None:
                continue
            text = str(value).strip()
            if not text:
                continue
            payload[field_name] = text
        return cls.model_validate(payload)


class BibshowConfig(_DirectiveConfig):
    """Attributes of the enclosing bibliography directive."""

    kind: ClassVar[DirectiveKind] = DirectiveKind.BIBSHOW


class BibciteConfig(_DirectiveConfig):
    """Attributes of the inline citation directive."""

    kind: ClassVar[DirectiveKind] = DirectiveKind.BIBCITE


class BibtexConfig(_DirectiveConfig):
    """Attributes of the standalone bibliography directive."""

    kind: ClassVar[DirectiveKind] = DirectiveKind.BIBTEX

    sort: str | None = None
    order: SortOrder = "asc"

    @field_validator("order", mode="before")
    @classmethod
    def normalise_order(cls, value: Any) -> Any:
        candidate = str(value).strip().lower()
        if candidate in ("asc", "desc"):
            return candidate
        logger.warning("Unknown sort order '%s'; using 'asc'.", value)
        return "asc"


__all__ = [
    "DEFAULT_STYLE",
    "DORMANCY_SECONDS",
    "TRANSIENT_EXPIRATION_SECONDS",
    "BibciteConfig",
    "BibciteSettings",
    "BibshowConfig",
    "BibtexConfig",
    "DirectiveDefaults",
    "DirectiveKind",
    "RenderMode",
    "SortOrder",
    "SourceFormat",
    "load_settings",
]
