"""Resolution of the bibcite user data and cache directories."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import os
from pathlib import Path
import shutil


__all__ = [
    "BibciteUserDir",
    "resolve_user_dir",
]


def _resolve_root(root: str | Path | None) -> tuple[Path, bool]:
    if root is not None:
        return Path(root).expanduser(), True
    env_root = os.environ.get("BIBCITE_HOME")
    if env_root:
        return Path(env_root).expanduser(), True
    return Path.home() / ".bibcite", False


def _resolve_cache_root(
    cache_root: str | Path | None,
    *,
    user_root: Path,
    root_was_explicit: bool,
) -> Path:
    if cache_root is not None:
        return Path(cache_root).expanduser()
    env_cache = os.environ.get("BIBCITE_CACHE_DIR")
    if env_cache:
        return Path(env_cache).expanduser()
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache).expanduser() / "bibcite"
    if root_was_explicit:
        return user_root / "cache"
    return Path.home() / ".cache" / "bibcite"


@dataclass(slots=True)
class BibciteUserDir:
    """Resolved user and cache roots plus helpers to manage them."""

    root: Path
    cache_root: Path

    def data_dir(self, *parts: str | Path, create: bool = True) -> Path:
        """Return a directory under the user root, creating it when requested."""
        target = self.root.joinpath(*parts)
        if create:
            target.mkdir(parents=True, exist_ok=True)
        return target

    def cache_dir(self, *parts: str | Path, create: bool = True) -> Path:
        """Return a directory under the cache root, creating it when requested."""
        target = self.cache_root.joinpath(*parts)
        if create:
            target.mkdir(parents=True, exist_ok=True)
        return target

    def cache_path(self, *parts: str | Path, create: bool = True) -> Path:
        """Return a path under the cache root, creating parent directories if needed."""
        target = self.cache_root.joinpath(*parts)
        if create:
            target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def clear_cache(self, namespaces: Iterable[str] | None = None) -> list[Path]:
        """Clear cached namespaces and return the list of removed paths."""
        if namespaces is None:
            targets = [self.cache_root]
        else:
            targets = [self.cache_root / name for name in namespaces]

        cleared: list[Path] = []
        for path in targets:
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
            except OSError:
                continue
            cleared.append(path)
        return cleared


def resolve_user_dir(
    *,
    root: str | Path | None = None,
    cache_root: str | Path | None = None,
) -> BibciteUserDir:
    """Resolve the user directories from arguments and the environment.

    Precedence for the cache root is the explicit argument, then
    ``BIBCITE_CACHE_DIR``, ``XDG_CACHE_HOME/bibcite``, ``<root>/cache`` when the
    root itself was explicit, and finally ``~/.cache/bibcite``.
    """
    user_root, root_was_explicit = _resolve_root(root)
    resolved_cache_root = _resolve_cache_root(
        cache_root, user_root=user_root, root_was_explicit=root_was_explicit
    )
    return BibciteUserDir(root=user_root, cache_root=resolved_cache_root)
