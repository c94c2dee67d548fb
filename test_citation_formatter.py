"""
Test citation rendering in APA, MLA and Chicago styles
"""
import pytest

from litverify.schemas.citation import CandidateRecord, ParsedCitation
from litverify.services.citation_formatter import (
    format_apa_authors,
    format_chicago_authors,
    format_mla_authors,
    get_available_styles,
    render,
)
from litverify.types import ValidationError

ARTICLE = ParsedCitation(
    title="Machine learning in healthcare",
    title_with_subtitle="Machine learning in healthcare",
    authors=["J. Smith"],
    year="2020",
    journal="Journal of Medical Research",
    volume="45",
    issue="3",
    pages="123-145",
)
JAPANESE_BOOK = ParsedCitation(
    title="人工知能と社会",
    authors=["田中太郎"],
    year="2020",
    publisher="学術出版社",
    is_book=True,
    language="japanese",
)
CHAPTER = ParsedCitation(
    title="Encoding/decoding",
    authors=["S. Hall"],
    year="1980",
    is_book_chapter=True,
    book_title="Culture, Media, Language",
    pages="128-138",
)


def test_available_styles():
    assert get_available_styles() == ["apa", "mla", "chicago"]


def test_apa_article():
    assert render(ARTICLE, None, "apa") == (
        "Smith, J. (2020). Machine learning in healthcare. Journal of Medical Research, 45(3), 123-145."
    )


def test_mla_article():
    assert render(ARTICLE, None, "mla") == (
        'Smith, J. "Machine learning in healthcare." Journal of Medical Research, '
        'vol. 45, no. 3, 2020, pp. 123-145.'
    )


def test_chicago_article():
    assert render(ARTICLE, None, "chicago") == (
        'Smith, J. "Machine learning in healthcare." Journal of Medical Research 45, no. 3 (2020): 123-145.'
    )


def test_apa_japanese_book():
    assert render(JAPANESE_BOOK, None, "apa") == "田中太郎 (2020). 『人工知能と社会』 学術出版社."


def test_apa_chapter_without_publisher():
    assert render(CHAPTER, None, "apa") == (
        "Hall, S. (1980). Encoding/decoding. In Culture, Media, Language (pp. 128-138). [Publisher unknown]."
    )


def test_missing_authors_and_year():
    parsed = ParsedCitation(title="Some title")
    assert render(parsed, None, "apa") == "[Author unknown] (n.d.). Some title."


def test_many_japanese_authors_are_abbreviated():
    parsed = ParsedCitation(
        title="共同研究",
        authors=["田中太郎", "山田花子", "佐藤一郎", "鈴木次郎"],
        year="2021",
        language="japanese",
    )
    assert render(parsed, None, "apa").startswith("田中太郎・他 (2021).")


def test_doi_is_appended():
    parsed = ARTICLE.model_copy(update={"doi": "10.1000/xyz"})
    assert render(parsed, None, "apa").endswith(" https://doi.org/10.1000/xyz")


def test_candidate_values_win_over_parsed():
    found = CandidateRecord(
        source="Crossref",
        title="Machine Learning in Healthcare",
        authors=["John Smith", "Amy Doe"],
        year="2021",
        journal="Journal of Medical Research",
    )
    rendered = render(ARTICLE, found, "apa")

    assert rendered.startswith("Smith, J., & Doe, A. (2021). Machine Learning in Healthcare.")
    # volume/issue/pages come only from the candidate once one is chosen
    assert "45(3)" not in rendered


def test_highlight_marks_matches_and_mismatches():
    matches = {"title": True, "year": False, "journal": True}
    rendered = render(ARTICLE, None, "apa", matches, highlight=True)

    assert '<span class="match">Machine learning in healthcare</span>' in rendered
    assert '<span class="mismatch">2020</span>' in rendered
    assert '<span class="match"><em>Journal of Medical Research</em></span>' in rendered
    assert "<em>45</em>" in rendered


def test_highlight_escapes_html():
    parsed = ParsedCitation(title="Cats & <Dogs>", authors=["J. Smith"], year="2020")
    assert "Cats &amp; &lt;Dogs&gt;" in render(parsed, None, "apa", {}, highlight=True)


def test_japanese_titles_are_never_italic():
    rendered = render(JAPANESE_BOOK, None, "apa", {"title": True}, highlight=True)
    assert "<em>" not in rendered


def test_style_name_is_case_insensitive():
    assert render(ARTICLE, None, "APA") == render(ARTICLE, None, "apa")


def test_unknown_style_is_rejected():
    with pytest.raises(ValidationError):
        render(ARTICLE, None, "harvard")


def test_author_list_formats():
    authors = ["John Smith", "Amy Doe", "Bob Roe"]
    assert format_apa_authors(authors) == "Smith, J., Doe, A., & Roe, B."
    assert format_mla_authors(authors[:2]) == "Smith, John, and Amy Doe"
    assert format_mla_authors(authors) == "Smith, John, et al."
    assert format_chicago_authors(authors) == "Smith, John, Amy Doe, and Bob Roe"
    assert format_apa_authors(["John Smith"], has_et_al=True) == "Smith, J., et al."


@pytest.mark.parametrize("style,expected", [
    ("apa", 'Doe, J. (2015). Signals. 12(3), 45-60.'),
    ("mla", 'Doe, J. "Signals." vol. 12, no. 3, 2015, pp. 45-60.'),
    ("chicago", 'Doe, J. "Signals." 12, no. 3 (2015): 45-60.'),
])
def test_locators_are_rendered_without_a_journal(style, expected):
    parsed = ParsedCitation(title="Signals", authors=["J. Doe"], year="2015", volume="12", issue="3", pages="45-60")
    assert render(parsed, None, style) == expected


def test_parsed_fallback_keeps_the_japanese_subtitle():
    parsed = ParsedCitation(
        title="日本語教育の研究",
        title_with_subtitle="日本語教育の研究ーその理論と実践",
        authors=["山田太郎"],
        year="2015",
        journal="日本語教育",
        volume="12",
        issue="3",
        pages="45-60",
        language="japanese",
    )
    assert render(parsed, None, "apa") == "山田太郎 (2015). 日本語教育の研究ーその理論と実践. 日本語教育, 12(3), 45-60."


def test_highlight_marks_title_and_subtitle_separately():
    parsed = ParsedCitation(
        title="Behave: The biology",
        title_with_subtitle="Behave: The biology",
        authors=["R. M. Sapolsky"],
        year="2017",
        is_book=True,
    )
    found = CandidateRecord(source="Google Books", title="Behave: The biology of humans", publisher="Penguin Press")
    rendered = render(parsed, found, "apa", {"title": True, "subtitle": False}, highlight=True)

    assert (
        '<span class="match"><em>Behave</em></span>: <span class="mismatch"><em>The biology of humans</em></span>'
    ) in rendered
