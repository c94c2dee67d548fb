"""
Test citation parsing: field extraction and record-type classification
"""
import pytest

from litverify.services.citation_classifier import detect_language, detect_type, has_volume_issue_marker
from litverify.services.citation_parser import CitationParser, parse_citation

SCENARIO_A = "Smith, J. (2020). Machine learning in healthcare. Journal of Medical Research, 45(3), 123-145."
SCENARIO_B = "Hall, S. (1980). Encoding/decoding. In Culture, Media, Language, 128–138."
SCENARIO_C = "田中太郎 (2020). 『人工知能と社会』東京: 学術出版社."
SAKABE = (
    "坂部創一, 山崎秀夫 (2019). インターネット利用が新型うつ傾向へ及ぼす悪影響と予防策の縦断研究. "
    "キャリア教育研究, 33, 139-146."
)
EDITED_CHAPTER = (
    "Taylor, M. (2019). Digital cultures. In R. Johnson & K. Lee (Eds.), "
    "Media studies reader (pp. 45-67). Routledge."
)
JAPANESE_CHAPTER = "山田花子 (2018). 情報社会の変容. 佐藤花子編『AI社会論』学術出版社, 45-67."
ENGLISH_BOOK = "Sapolsky, R. M. (2017). Behave: The biology of humans at our best and worst. Penguin Press."
JAPANESE_SUBTITLE = "佐藤花子 (2021). 地域社会の再生―住民参加の可能性. 地域研究, 12(1), 1-15."
WITH_DOI = (
    "Wilson, R. (2018). Statistical learning theory. Nature Machine Intelligence, 2(3), 89-102. "
    "doi:10.1038/s42256-018-0001-4"
)
ET_AL = (
    "Garcia, A., et al. (2020). Transformer networks for language understanding. "
    "Journal of Machine Learning Research, 21(140), 1-67."
)
TWO_AUTHORS = (
    "Brown, L., & Davis, M. (2020). Deep neural networks for classification. "
    "Neural Computation, 32(4), 100-120."
)
PAGES_WITH_VOLUME = "Smith, J. (2020). Title. In Annual Review, 33, 139-146."

CORPUS = [
    SCENARIO_A, SCENARIO_B, SCENARIO_C, SAKABE, EDITED_CHAPTER, JAPANESE_CHAPTER,
    ENGLISH_BOOK, JAPANESE_SUBTITLE, WITH_DOI, ET_AL, TWO_AUTHORS, PAGES_WITH_VOLUME,
]


@pytest.fixture
def parser():
    return CitationParser()


def test_english_article(parser):
    parsed = parser.parse(SCENARIO_A)

    assert parsed.language == "english"
    assert parsed.is_book is False
    assert parsed.is_book_chapter is False
    assert parsed.title == "Machine learning in healthcare"
    assert parsed.title_with_subtitle == "Machine learning in healthcare"
    assert parsed.authors == ["J. Smith"]
    assert parsed.year == "2020"
    assert parsed.journal == "Journal of Medical Research"
    assert parsed.volume == "45"
    assert parsed.issue == "3"
    assert parsed.pages == "123-145"
    assert parsed.publisher == ""
    assert parsed.original_text == SCENARIO_A


def test_english_book_chapter(parser):
    parsed = parser.parse(SCENARIO_B)

    assert parsed.is_book is False
    assert parsed.is_book_chapter is True
    assert parsed.title == "Encoding/decoding"
    assert parsed.book_title == "Culture, Media, Language"
    assert parsed.pages == "128-138"
    assert parsed.authors == ["S. Hall"]


def test_japanese_book(parser):
    parsed = parser.parse(SCENARIO_C)

    assert parsed.language == "japanese"
    assert parsed.is_book is True
    assert parsed.is_book_chapter is False
    assert parsed.title == "人工知能と社会"
    assert parsed.authors == ["田中太郎"]
    assert "学術出版社" in parsed.publisher
    assert parsed.journal == ""


def test_sakabe_is_a_plain_journal_article(parser):
    # "Title, volume, pages" without "In" must never be read as a book chapter
    parsed = parser.parse(SAKABE)

    assert parsed.is_book is False
    assert parsed.is_book_chapter is False
    assert parsed.title == "インターネット利用が新型うつ傾向へ及ぼす悪影響と予防策の縦断研究"
    assert parsed.authors == ["坂部創一", "山崎秀夫"]
    assert parsed.year == "2019"
    assert parsed.journal == "キャリア教育研究"
    assert parsed.volume == "33"
    assert parsed.pages == "139-146"


def test_sakabe_with_full_width_punctuation(parser):
    raw = "坂部創ー，山崎秀夫（2019）．インターネット利用が新型うつ傾向へ及ぼす悪影響と予防策の縦断研究．キャリア教育研究，33，139-146．"
    parsed = parser.parse(raw)

    assert parsed.is_book is False
    assert parsed.is_book_chapter is False
    assert parsed.authors[0] == "坂部創一"
    assert parsed.journal == "キャリア教育研究"


def test_volume_marker_vetoes_pages_only_chapter(parser):
    parsed = parser.parse(PAGES_WITH_VOLUME)

    assert parsed.is_book_chapter is False
    assert parsed.is_book is False


def test_edited_english_chapter(parser):
    parsed = parser.parse(EDITED_CHAPTER)

    assert parsed.is_book_chapter is True
    assert parsed.title == "Digital cultures"
    assert parsed.book_title == "Media studies reader"
    assert parsed.editors == ["R. Johnson", "K. Lee"]
    assert parsed.pages == "45-67"
    assert parsed.publisher == "Routledge"


def test_japanese_chapter_with_editor(parser):
    parsed = parser.parse(JAPANESE_CHAPTER)

    assert parsed.is_book_chapter is True
    assert parsed.title == "情報社会の変容"
    assert parsed.book_title == "AI社会論"
    assert parsed.editors == ["佐藤花子"]
    assert parsed.pages == "45-67"
    assert parsed.publisher == "学術出版社"


def test_english_book_with_publisher(parser):
    parsed = parser.parse(ENGLISH_BOOK)

    assert parsed.is_book is True
    assert parsed.title == "Behave: The biology of humans at our best and worst"
    assert parsed.authors == ["R. M. Sapolsky"]
    assert parsed.publisher == "Penguin Press"
    assert parsed.journal == ""


def test_japanese_subtitle_is_split(parser):
    parsed = parser.parse(JAPANESE_SUBTITLE)

    assert parsed.title == "地域社会の再生"
    assert parsed.title_with_subtitle == "地域社会の再生―住民参加の可能性"
    assert parsed.journal == "地域研究"
    assert (parsed.volume, parsed.issue, parsed.pages) == ("12", "1", "1-15")


def test_doi_is_extracted(parser):
    parsed = parser.parse(WITH_DOI)

    assert parsed.doi == "10.1038/s42256-018-0001-4"
    assert parsed.journal == "Nature Machine Intelligence"
    assert (parsed.volume, parsed.issue, parsed.pages) == ("2", "3", "89-102")


def test_et_al_is_kept_as_last_author(parser):
    parsed = parser.parse(ET_AL)

    assert parsed.authors == ["A. Garcia", "et al."]


def test_ampersand_separated_authors(parser):
    parsed = parser.parse(TWO_AUTHORS)

    assert parsed.authors == ["L. Brown", "M. Davis"]
    assert parsed.journal == "Neural Computation"


@pytest.mark.parametrize("raw", CORPUS)
def test_book_and_chapter_are_exclusive(parser, raw):
    parsed = parser.parse(raw)
    assert not (parsed.is_book and parsed.is_book_chapter)
    if parsed.is_book_chapter:
        assert parsed.is_book is False


def test_empty_input():
    parsed = parse_citation("")
    assert parsed.title == ""
    assert parsed.authors == []
    assert parsed.original_text == ""


def test_line_without_title():
    parsed = parse_citation("2020")
    assert parsed.title == ""
    assert parsed.year == "2020"


def test_detect_language():
    assert detect_language(SCENARIO_C) == "japanese"
    assert detect_language(SCENARIO_A) == "english"
    assert detect_language("") == "english"


def test_volume_issue_markers():
    assert has_volume_issue_marker("Journal, 45(3), 1-10")
    assert has_volume_issue_marker("Vol. 5")
    assert has_volume_issue_marker("教育学研究 33巻")
    assert has_volume_issue_marker("Annual Review, 33, 139-146")
    assert not has_volume_issue_marker("In Culture, Media, Language, 128-138")


def test_detect_type_defaults_to_book_with_authors_only():
    decision = detect_type(
        "Doe, J. (2001). A long forgotten story.",
        {"title": "A long forgotten story", "authors": ["J. Doe"]},
        "english",
    )
    assert decision.is_book is True
    assert decision.is_book_chapter is False


def test_detect_type_article_from_extracted_volume():
    decision = detect_type(
        "Doe, J. (2001). Notes. Letters, 4, 10-12.",
        {"title": "Notes", "authors": ["J. Doe"], "journal": "Letters", "volume": "4", "pages": "10-12"},
        "english",
    )
    assert decision == (False, False, decision.reason)
    assert decision.reason.startswith("article")


@pytest.mark.parametrize("raw,title,journal", [
    ("Smith, J. (2020). Nature and nurture revisited. Nature, 580(2), 1-5.",
     "Nature and nurture revisited", "Nature"),
    ("鈴木一郎 (2018). 心理学研究の新展開. 心理学研究, 89(1), 1-10.",
     "心理学研究の新展開", "心理学研究"),
])
def test_journal_named_inside_the_title_is_kept(parser, raw, title, journal):
    parsed = parser.parse(raw)

    assert parsed.title == title
    assert parsed.journal == journal
    assert parsed.is_book is False
    assert parsed.is_book_chapter is False


def test_journal_named_inside_a_japanese_subtitled_title(parser):
    parsed = parser.parse("山田太郎 (2015). 日本語教育の研究ーその理論と実践. 日本語教育, 12(3), 45-60.")

    assert parsed.title == "日本語教育の研究"
    assert parsed.title_with_subtitle == "日本語教育の研究ーその理論と実践"
    assert parsed.journal == "日本語教育"
    assert (parsed.volume, parsed.issue, parsed.pages) == ("12", "3", "45-60")


def test_location_publisher_with_commas(parser):
    parsed = parser.parse("Kahneman, D. (2011). Thinking, fast and slow. New York: Farrar, Straus and Giroux.")

    assert parsed.is_book is True
    assert parsed.title == "Thinking, fast and slow"
    assert parsed.publisher == "Farrar, Straus and Giroux"


@pytest.mark.parametrize("raw,authors", [
    ('Doe, Jane. "A title of things." Journal of Stuff, vol. 3, no. 2, 2020, pp. 1-10.', ["Jane Doe"]),
    ('Smith, John, and Jane Doe. "Cities of tomorrow." Urban Studies, vol. 12, no. 1, 2019, pp. 5-20.',
     ["John Smith", "Jane Doe"]),
    ('Lee, K. "Signals and noise." Physics Letters, vol. 7, 2018, pp. 3-9.', ["K. Lee"]),
])
def test_mla_author_span_drops_the_sentence_period(parser, raw, authors):
    assert parser.parse(raw).authors == authors
