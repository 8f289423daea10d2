from __future__ import annotations

from conftest import SAMPLE_BIB, FakeResponse, FakeSession
import pytest

from bibcite.core.config import BibciteSettings
from bibcite.core.directives.shortcodes import ShortcodeExpander, parse_attributes
from bibcite.core.services import BibciteServices


SLOTS_TEMPLATE = "{% for e in entries %}[{{ e.index }}:{{ e.key }}]{% endfor %}"


@pytest.fixture
def services(make_services, settings: BibciteSettings) -> BibciteServices:
    assert settings.templates_dir is not None
    settings.templates_dir.mkdir(parents=True, exist_ok=True)
    (settings.templates_dir / "slots.html.j2").write_text(SLOTS_TEMPLATE, encoding="utf-8")
    return make_services(FakeSession(FakeResponse(200, SAMPLE_BIB.encode("utf-8"))))


def test_parse_attributes_accepts_every_quoting_style() -> None:
    attributes = parse_attributes(
        ' key="a, b" style=\'harvard1\' template=slots Order=DESC /'
    )

    assert attributes == {
        "key": "a, b",
        "style": "harvard1",
        "template": "slots",
        "order": "DESC",
    }


def test_bibshow_block_collects_nested_citations(services: BibciteServices) -> None:
    text = (
        "Intro [bibshow template=slots]"
        "A [bibcite key=smith2020 template=slots], "
        "B [bibcite key=\"jones2019,smith2020\" template=slots]."
        "[/bibshow] Outro"
    )

    output = ShortcodeExpander(services.processor).expand(text, "doc")

    assert output == (
        "Intro A [0:smith2020], B [1:jones2019][0:smith2020]."
        "[0:smith2020][1:jones2019] Outro"
    )


def test_citations_outside_bibshow_render_nothing(services: BibciteServices) -> None:
    text = "Before [bibcite key=smith2020] after"

    assert services.render_text(text, "doc") == "Before  after"


def test_standalone_bibtex_shortcode(services: BibciteServices) -> None:
    text = '[bibtex key="smith2020,jones2019" sort=issued template=slots]'

    assert services.render_text(text, "doc") == "[0:jones2019][1:smith2020]"


def test_unrelated_text_and_stray_closing_tags_are_untouched(
    services: BibciteServices,
) -> None:
    text = "Plain [b]bold[/b] text with [/bibshow] and [bibcitex key=a]."

    assert services.render_text(text, "doc") == text


def test_multiple_bibshow_blocks_are_independent(services: BibciteServices) -> None:
    text = (
        "[bibshow template=slots][bibcite key=doe2021 template=slots][/bibshow]"
        "|[bibshow template=slots][bibcite key=jones2019 template=slots][/bibshow]"
    )

    output = services.render_text(text, "doc")

    assert output == "[0:doe2021][0:doe2021]|[0:jones2019][0:jones2019]"
