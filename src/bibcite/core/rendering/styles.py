"""Lookup of CSL styles by name."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from pathlib import Path

import citeproc

from ..config import DEFAULT_STYLE


logger = logging.getLogger(__name__)

STYLE_SUFFIX = ".csl"


def builtin_styles_dir() -> Path:
    """Return the directory of the styles shipped with citeproc-py."""
    return Path(citeproc.__file__).resolve().parent / "data" / "styles"


def _style_names(directory: Path | None) -> list[str]:
    if directory is None or not directory.is_dir():
        return []
    return sorted(path.stem for path in directory.glob(f"*{STYLE_SUFFIX}") if path.is_file())


@dataclass(frozen=True, slots=True)
class ResolvedStyle:
    """A style name bound to the CSL file that implements it."""

    name: str
    path: Path
    user_defined: bool = False
    fallback: bool = False


class StyleResolver:
    """Resolve style names against user styles first, then built-in styles.

    Unknown names resolve to the default style with a warning, so that a
    mistyped attribute never prevents a page from rendering.
    """

    def __init__(
        self,
        user_styles_dir: Path | None = None,
        *,
        builtin_dir: Path | None = None,
        default_style: str = DEFAULT_STYLE,
    ) -> None:
        self._user_dir = Path(user_styles_dir).expanduser() if user_styles_dir else None
        self._builtin_dir = builtin_dir or builtin_styles_dir()
        self._default_style = default_style

    def user_style_names(self) -> list[str]:
        return _style_names(self._user_dir)

    def builtin_style_names(self) -> list[str]:
        return _style_names(self._builtin_dir)

    def style_names(self) -> list[str]:
        """Return built-in style names followed by user style names."""
        names = self.builtin_style_names()
        names.extend(name for name in self.user_style_names() if name not in names)
        return names

    def resolve(self, name: str | None) -> ResolvedStyle:
        candidate = (name or "").strip()
        resolved = self._lookup(candidate)
        if resolved is not None:
            return resolved

        fallback = self._lookup(self._default_style)
        if fallback is None:
            available = self.builtin_style_names()
            fallback = self._lookup(available[0]) if available else None
        if fallback is None:
            logger.error("No CSL style available in %s.", self._builtin_dir)
            return ResolvedStyle(
                name=self._default_style,
                path=self._builtin_dir / f"{self._default_style}{STYLE_SUFFIX}",
                fallback=True,
            )
        logger.warning(
            "Unrecognised style: %s. Defaulting to %s.", candidate or "<empty>", fallback.name
        )
        return replace(fallback, fallback=True)

    def _lookup(self, name: str) -> ResolvedStyle | None:
        if not name:
            return None
        if self._user_dir is not None:
            user_file = self._user_dir / f"{name}{STYLE_SUFFIX}"
            if user_file.is_file():
                logger.debug("Using custom style: %s", user_file)
                return ResolvedStyle(name=name, path=user_file, user_defined=True)
        builtin_file = self._builtin_dir / f"{name}{STYLE_SUFFIX}"
        if builtin_file.is_file():
            logger.debug("Using built-in style: %s", name)
            return ResolvedStyle(name=name, path=builtin_file)
        return None


__all__ = ["STYLE_SUFFIX", "ResolvedStyle", "StyleResolver", "builtin_styles_dir"]
