from __future__ import annotations

import json
import logging

from conftest import SAMPLE_BIB, FakeResponse, FakeSession, FakeStyleEngine
import pytest

from bibcite.core.config import BibciteConfig, BibciteSettings, BibshowConfig, BibtexConfig
from bibcite.core.directives.processor import DirectiveState, DocumentKeyTable
from bibcite.core.services import BibciteServices


SLOTS_TEMPLATE = "{% for e in entries %}{{ e.index }}:{{ e.key }}:{{ e.entry }};{% endfor %}"


@pytest.fixture
def services(make_services, settings: BibciteSettings) -> BibciteServices:
    assert settings.templates_dir is not None
    settings.templates_dir.mkdir(parents=True, exist_ok=True)
    (settings.templates_dir / "slots.html.j2").write_text(SLOTS_TEMPLATE, encoding="utf-8")
    return make_services(FakeSession(FakeResponse(200, SAMPLE_BIB.encode("utf-8"))))


def _cite(settings: BibciteSettings, key: str) -> BibciteConfig:
    return BibciteConfig.from_attributes({"key": key, "template": "slots"}, settings)


def _show(settings: BibciteSettings) -> BibshowConfig:
    return BibshowConfig.from_attributes({"template": "slots"}, settings)


def test_document_key_table_keeps_first_seen_indices() -> None:
    table = DocumentKeyTable()

    indices = [table.register(key) for key in ["a", "b", "a", "c"]]

    assert indices == [0, 1, 0, 2]
    assert table.keys == ["a", "b", "c"]
    assert table.index_of("a") == 0
    assert "c" in table
    assert len(table) == 3


def test_inline_citations_use_first_seen_indices(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))

    first = processor.bibcite("post-1", _cite(settings, "smith2020, jones2019"))
    again = processor.bibcite("post-1", _cite(settings, "smith2020"))
    third = processor.bibcite("post-1", _cite(settings, "doe2021"))

    assert first == "0:smith2020:smith2020|citation;1:jones2019:jones2019|citation;"
    assert again == "0:smith2020:smith2020|citation;"
    assert third == "2:doe2021:doe2021|citation;"
    table = processor.key_table("post-1")
    assert table is not None
    assert table.keys == ["smith2020", "jones2019", "doe2021"]


def test_closing_bibshow_appends_bibliography_in_first_seen_order(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))
    processor.bibcite("post-1", _cite(settings, "jones2019"))
    processor.bibcite("post-1", _cite(settings, "smith2020,jones2019"))

    output = processor.close_bibshow("post-1", _show(settings), "Body. ")

    assert output == (
        "Body. 0:jones2019:jones2019|citation;1:smith2020:smith2020|citation;"
    )
    assert processor.state("post-1") is DirectiveState.RESOLVED
    assert processor.key_table("post-1") is None


def test_bibshow_without_citations_returns_content(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))

    assert processor.close_bibshow("post-1", _show(settings), "Only text") == "Only text"


def test_orphan_bibcite_renders_nothing(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor

    assert processor.bibcite("post-1", _cite(settings, "smith2020")) == ""
    assert processor.state("post-1") is DirectiveState.IDLE


def test_bibcite_without_keys_renders_nothing(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))

    assert processor.bibcite("post-1", _cite(settings, " , ")) == ""


def test_unknown_keys_keep_their_slot(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))

    output = processor.bibcite("post-1", _cite(settings, "ghost,smith2020"))

    assert output.startswith("0:unknown_key:")
    assert "Unknown entry" in output
    assert output.endswith("1:smith2020:smith2020|citation;")


def test_bibshow_convenience_runs_the_whole_cycle(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor

    def content() -> str:
        assert processor.state("post-1") is DirectiveState.COLLECTING
        return "See " + processor.bibcite("post-1", _cite(settings, "doe2021"))

    output = processor.bibshow("post-1", _show(settings), content)

    assert output == "See 0:doe2021:doe2021|citation;0:doe2021:doe2021|citation;"


def test_documents_are_independent(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    processor = services.processor
    processor.open_bibshow("post-1", _show(settings))
    processor.open_bibshow("post-2", _show(settings))
    processor.bibcite("post-1", _cite(settings, "smith2020"))

    assert processor.bibcite("post-2", _cite(settings, "jones2019")).startswith("0:jones2019")

    processor.reset("post-1")
    assert processor.state("post-1") is DirectiveState.IDLE
    assert processor.state("post-2") is DirectiveState.COLLECTING


def test_standalone_bibliography_sorted_by_issued(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    config = BibtexConfig.from_attributes(
        {"key": "smith2020,jones2019", "sort": "issued", "order": "asc", "template": "slots"},
        settings,
    )

    output = services.processor.bibtex("post-1", config)

    assert output == "0:jones2019:jones2019|citation;1:smith2020:smith2020|citation;"


def test_standalone_bibliography_descending_and_missing_keys(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    config = BibtexConfig.from_attributes(
        {"key": "jones2019,ghost,doe2021", "sort": "issued", "order": "desc", "template": "slots"},
        settings,
    )

    output = services.processor.bibtex("post-1", config)

    assert output == "0:doe2021:doe2021|citation;1:jones2019:jones2019|citation;"


def test_standalone_bibliography_keeps_order_without_sort(
    services: BibciteServices, settings: BibciteSettings
) -> None:
    config = BibtexConfig.from_attributes(
        {"key": "smith2020,doe2021", "template": "slots"}, settings
    )

    output = services.processor.bibtex("post-1", config)

    assert output == "0:smith2020:smith2020|citation;1:doe2021:doe2021|citation;"


def test_missing_sort_field_keeps_order_and_warns(
    services: BibciteServices, settings: BibciteSettings, caplog: pytest.LogCaptureFixture
) -> None:
    config = BibtexConfig.from_attributes(
        {"key": "smith2020,jones2019", "sort": "no-such-field", "template": "slots"}, settings
    )

    with caplog.at_level(logging.WARNING, logger="bibcite"):
        output = services.processor.bibtex("post-1", config)

    assert output.index("smith2020") < output.index("jones2019")
    assert "No entry has the CSL attribute 'no-such-field'" in caplog.text


def test_standalone_bibliography_from_csl_json_library(
    make_services, settings: BibciteSettings
) -> None:
    url = "https://example.org/library.json"
    body = json.dumps(
        [{"id": "smith2020", "title": "Foo"}, {"id": "jones2019", "title": "Bar"}]
    ).encode("utf-8")
    engine = FakeStyleEngine()
    services = make_services(
        FakeSession(FakeResponse(200, body)),
        engine=engine,
        config=settings.model_copy(update={"library_url": url}),
    )
    ascending = BibtexConfig.from_attributes(
        {"key": "jones2019,smith2020", "sort": "id", "order": "asc"}, services.settings
    )
    descending = BibtexConfig.from_attributes(
        {"key": "jones2019,smith2020", "sort": "id", "order": "desc"}, services.settings
    )

    output = services.processor.bibtex("post-1", ascending)
    services.processor.bibtex("post-1", descending)

    assert [ids for _, ids, _ in engine.calls] == [
        ["jones2019"],
        ["smith2020"],
        ["smith2020"],
        ["jones2019"],
    ]
    assert output.index('data-key="jones2019"') < output.index('data-key="smith2020"')


def test_missing_library_url_renders_placeholders(
    make_services, settings: BibciteSettings
) -> None:
    config = settings.model_copy(update={"library_url": None})
    services = make_services(FakeSession(), config=config)
    services.processor.open_bibshow("post-1", BibshowConfig.from_attributes({}, config))

    output = services.processor.bibcite(
        "post-1", BibciteConfig.from_attributes({"key": "smith2020"}, config)
    )

    assert "Unknown entry" in output
