from __future__ import annotations

from pathlib import Path

from conftest import SAMPLE_BIB
import pytest

from bibcite.core.exceptions import ConversionError
from bibcite.core.library.csl import CslConverter, to_csl_json
from bibcite.core.library.parsing import BibtexParser, RawEntry, parse_entries


def _entry(key: str) -> RawEntry:
    return next(entry for entry in parse_entries(SAMPLE_BIB) if entry.key == key)


def test_parser_returns_every_entry_in_order() -> None:
    entries = BibtexParser().parse_string(SAMPLE_BIB)

    assert [entry.key for entry in entries] == ["smith2020", "jones2019", "doe2021"]
    assert entries[0].type == "article"
    assert entries[0].fields["year"] == "2020"
    assert "smith2020" in entries[0].original


def test_parser_reads_files(tmp_path: Path) -> None:
    path = tmp_path / "library.bib"
    path.write_text(SAMPLE_BIB, encoding="utf-8")

    assert len(BibtexParser().parse_file(path)) == 3


def test_parser_returns_empty_list_on_failure(tmp_path: Path) -> None:
    assert BibtexParser().parse_string("@article{broken, title = {unterminated") == []
    assert BibtexParser().parse_file(tmp_path / "missing.bib") == []


def test_title_braces_are_stripped() -> None:
    record = to_csl_json(_entry("smith2020"))

    assert record["title"] == "API Design in Practice"


def test_latex_grouping_is_decoded_in_other_fields() -> None:
    record = to_csl_json(_entry("smith2020"))

    assert record["container-title"] == "Journal of Interfaces"


def test_converter_maps_types_people_and_dates() -> None:
    record = CslConverter().to_csl_json(_entry("jones2019"))

    assert record["id"] == "jones2019"
    assert record["citation-label"] == "jones2019"
    assert record["type"] == "book"
    assert record["publisher"] == "Example Press"
    assert record["issued"] == {"date-parts": [[2019]]}
    assert record["author"][0] == {"family": "Jones", "given": "Alice"}
    assert record["author"][1]["family"] == "van der Berg"


def test_article_maps_to_journal_article() -> None:
    record = to_csl_json(_entry("smith2020"))

    assert record["type"] == "article-journal"
    assert record["author"] == [{"family": "Smith", "given": "John"}]


def test_month_and_number_fields() -> None:
    entry = parse_entries(
        """
        @article{k, title = {T}, year = {2018}, month = mar, number = {4}, pages = {1--9}}
        """
    )[0]

    record = to_csl_json(entry)

    assert record["issued"] == {"date-parts": [[2018, 3]]}
    assert record["issue"] == 4
    assert record["page"] == "1-9"


def test_convert_all_skips_failing_entries() -> None:
    entries = [_entry("smith2020"), RawEntry(key="", type="misc")]

    converted = CslConverter().convert_all(entries)

    assert [key for key, _ in converted] == ["smith2020"]


def test_unsupported_entry_types_are_skipped() -> None:
    entries = parse_entries(
        """
        @patent{p1, title = {A Patent}, year = {2001}}
        @online{site, title = {A Site}, url = {https://example.org/site}, year = {2022}}
        """
    )

    converted = dict(CslConverter().convert_all(entries))

    assert list(converted) == ["site"]
    assert converted["site"]["type"] == "webpage"
    assert converted["site"]["URL"] == "https://example.org/site"


def test_missing_key_is_a_conversion_error() -> None:
    with pytest.raises(ConversionError):
        CslConverter().to_csl_json(RawEntry(key="", type="misc"))


def test_csl_json_records_pass_through_unchanged() -> None:
    record = {"id": "x", "type": "book", "title": "{Kept} As Is"}

    accepted = CslConverter.accept_csl_json(record)

    assert accepted == record
    assert accepted is not record
