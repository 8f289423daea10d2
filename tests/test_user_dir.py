from __future__ import annotations

from pathlib import Path

from bibcite.core.config import BibciteSettings
from bibcite.core.user_dir import resolve_user_dir


def test_user_dir_respects_environment(monkeypatch, tmp_path: Path) -> None:
    env_home = tmp_path / "home-root"
    env_cache = tmp_path / "cache-root"
    monkeypatch.setenv("BIBCITE_HOME", str(env_home))
    monkeypatch.setenv("BIBCITE_CACHE_DIR", str(env_cache))

    user_dir = resolve_user_dir()

    assert user_dir.root == env_home
    assert user_dir.cache_root == env_cache


def test_xdg_cache_home_is_namespaced(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("BIBCITE_CACHE_DIR", raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))

    assert resolve_user_dir().cache_root == tmp_path / "xdg" / "bibcite"


def test_cache_root_defaults_under_custom_home(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("BIBCITE_CACHE_DIR", raising=False)
    monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
    custom_root = tmp_path / "custom-home"

    assert resolve_user_dir(root=custom_root).cache_root == custom_root / "cache"


def test_settings_resolve_directories(tmp_path: Path) -> None:
    user_dir = resolve_user_dir(root=tmp_path / "home", cache_root=tmp_path / "cache")
    settings = BibciteSettings()

    assert settings.resolve_cache_dir(user_dir) == tmp_path / "cache"
    assert (tmp_path / "cache").is_dir()
    assert settings.resolve_styles_dir(user_dir) == tmp_path / "home" / "styles"
    assert settings.resolve_templates_dir(user_dir) == tmp_path / "home" / "templates"


def test_clear_cache_removes_namespaces(tmp_path: Path) -> None:
    user_dir = resolve_user_dir(root=tmp_path / "home", cache_root=tmp_path / "cache")
    templates_dir = user_dir.cache_dir("templates")
    (templates_dir / "entry").write_text("ok", encoding="utf-8")

    removed = user_dir.clear_cache(["templates", "missing"])

    assert removed == [templates_dir]
    assert not templates_dir.exists()
    assert user_dir.cache_root.exists()
