from __future__ import annotations

from conftest import SAMPLE_BIB, FakeClock, FakeResponse, FakeSession

from bibcite.core.library.store import scope_id_for
from bibcite.core.services import LIBRARY_DB, TRANSIENTS_DB, BibciteServices


URL = "https://example.org/library.bib"


def test_services_share_one_cache_directory(make_services) -> None:
    services: BibciteServices = make_services(FakeSession())

    assert services.store.path == services.cache_dir / LIBRARY_DB
    assert services.transients.path == services.cache_dir / TRANSIENTS_DB


def test_dormant_library_issues_one_network_call(make_services, clock: FakeClock) -> None:
    session = FakeSession(FakeResponse(200, SAMPLE_BIB.encode("utf-8")))
    services: BibciteServices = make_services(session)

    services.synchronizer.get_or_update(URL)
    services.synchronizer.clear()
    clock.advance(60)
    services.synchronizer.get_or_update(URL)

    assert len(session.calls) == 1


def test_clear_cache_forces_a_fresh_download(make_services) -> None:
    body = SAMPLE_BIB.encode("utf-8")
    session = FakeSession(FakeResponse(200, body), FakeResponse(200, b"@misc{only, title={x}}"))
    services: BibciteServices = make_services(session)
    services.synchronizer.get_or_update(URL)
    (services.cache_dir / "templates" / "stale.cache").write_text("x", encoding="utf-8")

    services.clear_cache()

    assert services.store.scopes() == []
    assert not (services.cache_dir / "templates" / "stale.cache").exists()
    handle = services.synchronizer.get_or_update(URL)
    assert handle.keys() == ["only"]
    assert len(session.calls) == 2
    assert handle.scope_id == scope_id_for(URL)
