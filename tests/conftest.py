from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any

import pytest
import requests

from bibcite.core.config import BibciteSettings
from bibcite.core.rendering.styles import ResolvedStyle
from bibcite.core.services import BibciteServices
from bibcite.core.user_dir import resolve_user_dir


LIBRARY_URL = "https://example.org/library.bib"

SAMPLE_BIB = """
@article{smith2020,
    title = {{API} Design in Practice},
    author = {Smith, John},
    journal = {Journal of {Interfaces}},
    year = {2020},
}

@book{jones2019,
    title = {Citations at Scale},
    author = {Jones, Alice and {van der Berg}, Pieter},
    publisher = {Example Press},
    year = {2019},
}

@misc{doe2021,
    title = {A Third Entry},
    author = {Doe, Jane},
    year = {2021},
}
"""


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeResponse:
    status_code: int = 200
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class FakeSession:
    """Stand-in for `requests.Session` replaying queued responses."""

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses: list[FakeResponse | Exception] = list(responses)
        self.calls: list[dict[str, Any]] = []

    def queue(self, *responses: FakeResponse | Exception) -> None:
        self.responses.extend(responses)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if not self.responses:
            raise requests.ConnectionError("no response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeStyleEngine:
    """Style engine rendering ``<id>|<mode>`` and failing on selected ids."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple[str, list[str], str]] = []

    def render(self, style: ResolvedStyle, records: Sequence[dict[str, Any]], mode: str) -> str:
        ids = [str(record.get("id")) for record in records]
        self.calls.append((style.name, ids, mode))
        for record_id in ids:
            if record_id in self.failures:
                raise self.failures[record_id]
        return "".join(f"{record_id}|{mode}" for record_id in ids)


@pytest.fixture(autouse=True)
def _reset_bibcite_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("bibcite")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> BibciteSettings:
    return BibciteSettings(
        library_url=LIBRARY_URL,
        cache_dir=tmp_path / "cache",
        styles_dir=tmp_path / "styles",
        templates_dir=tmp_path / "templates",
    )


@pytest.fixture
def make_services(tmp_path: Path, settings: BibciteSettings, clock: FakeClock):
    def factory(
        session: FakeSession,
        *,
        engine: FakeStyleEngine | None = None,
        config: BibciteSettings | None = None,
    ) -> BibciteServices:
        return BibciteServices.from_settings(
            config or settings,
            user_dir=resolve_user_dir(root=tmp_path / "home", cache_root=tmp_path / "cache"),
            session=session,
            engine=engine or FakeStyleEngine(),
            clock=clock,
        )

    return factory
