"""
Language and record-type classification for parsed citations.

Record type is decided once, in a fixed order:

1. book-chapter patterns ("In <Book>, pages", "<Editor> (Ed.)", 編『書名』, 所収, 第N章)
2. explicit journal evidence (volume/issue with pages, journal-name words)
3. publisher evidence (publisher-name patterns found after the title)
4. book by default when title and authors exist without journal/volume/issue
"""
import logging
import re
from typing import Any, List, Mapping, NamedTuple, Optional, Pattern, Tuple

from .text_normalizer import JAPANESE_CHAR_RE, JAPANESE_CHARS

logger = logging.getLogger(__name__)

JA = JAPANESE_CHARS
PAGE_RANGE = r"\d+\s*[-–—]\s*\d+"


def detect_language(text: str, threshold: float = 0.3) -> str:
    """Japanese when the share of Japanese characters exceeds the threshold."""
    if not text:
        return "english"
    ratio = len(JAPANESE_CHAR_RE.findall(text)) / len(text)
    return "japanese" if ratio > threshold else "english"


class ChapterMatch(NamedTuple):
    book_title: str
    editors: List[str]
    rule: str


class TypeDecision(NamedTuple):
    is_book: bool
    is_book_chapter: bool
    reason: str


class PublisherMatch(NamedTuple):
    name: str
    rule: str


# Chapter rules: (name, pattern, requires the volume/issue veto)
ENGLISH_CHAPTER_RULES: List[Tuple[str, Pattern[str], bool]] = [
    (
        "in_editors",
        re.compile(
            r"\bIn\s+(?P<editors>[^()]+?)\s*\((?:Eds?|eds?|Hrsg|Dir)\.?\)\s*,?\s*"
            r"(?P<book>[^()]+?)\s*(?:\([^)]*\))?\s*(?:\.\s|\.?$)"
        ),
        False,
    ),
    (
        "in_edited_by",
        re.compile(
            r"\bIn\s+(?P<book>[^,]+?),\s*(?:edited by|eds?\.)\s+(?P<editors>[^,(]+?)"
            r"(?:,\s*(?:pp?\.\s*)?\d|\.\s|\.?$)"
        ),
        False,
    ),
    (
        "in_parenthetical",
        re.compile(
            r"\bIn\s+(?P<book>[^()]+?)\s*\((?:[^)]*?\s)?(?:pp?\.|Ch\.|Chap\.|Chapter)\s*\d+[^)]*\)"
        ),
        False,
    ),
    (
        "in_pages",
        re.compile(rf"\bIn\s+(?P<book>.+?),\s*(?:pp?\.\s*)?{PAGE_RANGE}"),
        True,
    ),
    (
        "in_publisher",
        re.compile(r"\bIn\s+(?P<book>[A-Z][^.]+?)\.\s+[A-Z][\w .'-]*:\s*[A-Z]"),
        True,
    ),
]

JAPANESE_CHAPTER_RULES: List[Tuple[str, Pattern[str], bool]] = [
    (
        "ja_editor",
        re.compile(r"(?P<editors>[^\s.,『「」』()]+?)\s*(?:編著|共編|監修|編)\s*[『「](?P<book>[^』」]+)[』」]"),
        False,
    ),
    (
        "ja_collected_in",
        re.compile(r"[『「](?P<book>[^』」]+)[』」]\s*(?:所収|収録)"),
        False,
    ),
    (
        "ja_collected_in_prefix",
        re.compile(r"(?:所収|収録)\s*:?\s*[『「](?P<book>[^』」]+)[』」]"),
        False,
    ),
    (
        "ja_chapter_number",
        re.compile(r"(?:『(?P<book>[^』]+)』\s*)?第\s*\d+\s*章"),
        False,
    ),
    (
        "ja_quoted_pages",
        re.compile(rf"『(?P<book>[^』]+)』\s*,?\s*(?:pp?\.\s*)?{PAGE_RANGE}"),
        True,
    ),
    (
        "ja_trailing_pages",
        re.compile(rf"\.\s*(?P<book>[^.,\d][^.]*?)\s*,\s*(?:pp?\.\s*)?{PAGE_RANGE}\s*(?:頁|ページ)"),
        True,
    ),
]

# A separate volume/issue marker anywhere in the text vetoes the pages-only chapter shapes
VOLUME_ISSUE_MARKERS: List[Pattern[str]] = [
    re.compile(r"\d+\s*\(\s*\d+(?:\s*[-–]\s*\d+)?\s*\)"),
    re.compile(r"\bvol(?:ume)?\.?\s*\d+", re.IGNORECASE),
    re.compile(r"\b(?:no|issue)\.?\s*\d+", re.IGNORECASE),
    re.compile(r"\d+\s*[巻号]"),
    re.compile(rf"[,:]\s*\d{{1,4}}\s*,\s*(?:pp?\.\s*)?{PAGE_RANGE}"),
]

# Containers that are serials, not edited books
SERIAL_CONTAINER_RE = re.compile(
    r"^(?:Proceedings|Proc\.|Journal|Transactions|Annals)\b|\b(?:Conference|Symposium|Workshop)\b"
    r"|(?:学会誌|研究誌|論文集|紀要|学報|年報|ジャーナル|会誌|研究)$",
    re.IGNORECASE,
)

JOURNAL_EVIDENCE_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    ("volume_issue_pages", re.compile(rf"\b\d+\s*\(\s*\d+\s*\)\s*[,:]\s*(?:pp?\.\s*)?{PAGE_RANGE}")),
    (
        "vol_no_pages",
        re.compile(
            rf"\bvol(?:ume)?\.?\s*\d+\s*,?\s*(?:(?:no|issue)\.?\s*\d+\s*,?\s*)?"
            rf"(?:(?:19|20)\d{{2}}\s*,\s*)?(?:pp?\.?\s*)?{PAGE_RANGE}",
            re.IGNORECASE,
        ),
    ),
    ("ja_volume_issue", re.compile(r"(?:第\s*)?\d+\s*巻\s*(?:第\s*)?\d+\s*号")),
    ("ja_issue_pages", re.compile(rf"\d+\s*号\s*,\s*{PAGE_RANGE}")),
    ("ja_volume_pages", re.compile(rf"\d+\s*巻\s*,\s*{PAGE_RANGE}")),
]

JOURNAL_NAME_IN_TEXT_RE = re.compile(
    r"\b(?:Journal of|Proceedings of|Annals of|Transactions on)\b|学会誌|研究誌|論文集|紀要|学報|年報|ジャーナル"
)
JOURNAL_SUFFIX_RE = re.compile(
    r"(?:\bJournal\b|\bProceedings of\b|\bAnnals of\b|\bReview of\b|\bTransactions on\b"
    r"|研究|学会誌|研究誌|論文集|紀要|学報|年報|ジャーナル|会誌)",
    re.IGNORECASE,
)

# Publisher patterns in priority order; the generic location fallback is last
PUBLISHER_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (
        "ja_publisher",
        re.compile(
            rf"[{JA}A-Za-z]*[{JA}](?:出版社|出版会|出版部|出版|書店|書房|書院|社(?!会)|文庫|新書|叢書|選書|ブックス)"
        ),
    ),
    (
        "university_press",
        re.compile(
            r"\b(?:[A-Z][\w&'.-]*\s+)*University\s+Press\b"
            r"|\bUniversity\s+of\s+[A-Z]\w*(?:\s+[A-Z]\w*)*\s+Press\b"
        ),
    ),
    (
        "english_suffix",
        re.compile(
            r"\b[A-Z][\w&'.-]*(?:\s+(?:&\s+)?[A-Z][\w&'.-]*)*\s+"
            r"(?:Press|Publishing|Publishers|Publications|Books|Media|House|Group)\b"
        ),
    ),
    (
        "french",
        re.compile(
            r"\b(?:Les\s+)?[ÉE]ditions?\s+(?:(?:de|du|des)\s+)?[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*"
            r"|\bPresses\s+[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*"
            r"|\bLibrairie\s+[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*"
        ),
    ),
    (
        "german",
        re.compile(r"\b[A-Z][\w-]*(?:\s+[A-Z][\w-]*)*[\s-](?:Verlag|Verlage|Buchverlag)\b|\b[A-Z]\w*verlag\b"),
    ),
    (
        "italian_spanish",
        re.compile(
            r"\b[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*\s+(?:Editore|Editorial|Ediciones)\b"
            r"|\b(?:Editorial|Ediciones)\s+[A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*"
        ),
    ),
    (
        "well_known",
        re.compile(
            r"\b(?:Penguin|Random House|HarperCollins|Macmillan|Wiley|Springer|Elsevier|Routledge"
            r"|SAGE|Sage|Taylor\s*&\s*Francis|Blackwell|Palgrave|Norton|McGraw-Hill|Pearson"
            r"|Oxford|Cambridge|MIT|Harvard|Yale|Princeton|Stanford|Bloomsbury|Brill|De Gruyter"
            r"|Jossey-Bass|Guilford|Erlbaum|Academic Press|Psychology Press)(?:\s+[A-Z][\w&'-]*)*"
        ),
    ),
]

GENERIC_PUBLISHER_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    # "New York: Farrar, Straus and Giroux."; digits never appear in the name
    (
        "location_publisher",
        re.compile(r"[A-Z][\w .'-]*:\s*(?P<name>[A-Z](?:[^\W\d_]|[&.,' -])*?)\s*[.,]?\s*$"),
    ),
    ("ja_location_publisher", re.compile(rf"[{JA}]+\s*:\s*(?P<name>[{JA}A-Za-z]+)")),
]


def split_editors(raw: str) -> List[str]:
    """'M. Taylor & R. Johnson' / '田中太郎・佐藤花子' -> list of names"""
    if not raw:
        return []
    cleaned = re.sub(r"\((?:Eds?|eds?)\.?\)", "", raw)
    parts = re.split(r"\s*(?:,\s*(?:and|&)\s+|\band\b|&|,|・|、|;)\s*", cleaned)
    return [part.strip(" ,;") for part in parts if part.strip(" ,;")]


def _clean_book_title(raw: str) -> str:
    book = raw.strip().strip("*_")
    # "佐藤花子編『AI社会論』" -> "『AI社会論』"
    book = re.sub(r"^[^『「]*?(?:編著|監修|編|著)\s*(?=[『「])", "", book)
    innermost = re.search(r"[『「\"]([^『「」』\"]+)[』」\"]", book)
    if innermost:
        book = innermost.group(1)
    return book.strip(" ,.:;")


def has_volume_issue_marker(text: str) -> bool:
    return any(p.search(text) for p in VOLUME_ISSUE_MARKERS)


def match_chapter(
    text: str, language: str, fields: Optional[Mapping[str, Any]] = None
) -> Optional[ChapterMatch]:
    """
    Run the chapter rules for the language and return the first accepted match.

    Rules are matched against the text after the title (when one is known) so
    that a title starting with "In" is not mistaken for a container.

    Pages-only shapes are accepted only when no volume/issue marker exists
    anywhere in the text and the container does not look like a serial.
    """
    rules = list(ENGLISH_CHAPTER_RULES)
    if language == "japanese":
        rules = JAPANESE_CHAPTER_RULES + rules

    region = text_after_title(text, fields) if fields else text
    vetoed = has_volume_issue_marker(text)
    for name, pattern, needs_veto in rules:
        match = pattern.search(region)
        if not match:
            continue
        book = _clean_book_title(match.groupdict().get("book") or "")
        if name == "ja_chapter_number" and not book:
            # 第N章 without an adjacent 『書名』: take the nearest preceding one
            preceding = re.findall(r"『([^』]+)』", region[:match.start()])
            book = preceding[-1].strip() if preceding else ""
        if needs_veto and (vetoed or re.search(r"\d", book)):
            logger.debug(f"Chapter rule '{name}' vetoed by volume/issue evidence")
            continue
        if name != "in_editors" and book and SERIAL_CONTAINER_RE.search(book):
            logger.debug(f"Chapter rule '{name}' skipped: '{book}' looks like a serial")
            continue
        editors = split_editors(match.groupdict().get("editors") or "")
        return ChapterMatch(book_title=book, editors=editors, rule=name)
    return None


def journal_evidence(text: str, fields: Mapping[str, Any]) -> Optional[str]:
    """Return the reason the citation must be an article, or None."""
    for name, pattern in JOURNAL_EVIDENCE_PATTERNS:
        if pattern.search(text):
            return name

    if fields.get("volume") and (fields.get("issue") or fields.get("pages")):
        return "extracted_volume"

    journal = fields.get("journal") or ""
    if journal and JOURNAL_SUFFIX_RE.search(journal):
        return "journal_name"

    if JOURNAL_NAME_IN_TEXT_RE.search(text_after_title(text, fields)):
        return "journal_name_in_text"
    return None


def text_after_title(text: str, fields: Mapping[str, Any]) -> str:
    for key in ("title_with_subtitle", "title"):
        title = fields.get(key) or ""
        if title:
            index = text.find(title)
            if index != -1:
                return text[index + len(title):]
    return text


def find_publisher(text: str, title: str = "") -> Optional[PublisherMatch]:
    """
    Longest publisher-like phrase in text that is not part of the title.

    Ties are broken by pattern priority; the generic "Location: Name" shape is
    only consulted when no explicit pattern matched.
    """
    best: Optional[Tuple[int, int, str, str]] = None
    for priority, (name, pattern) in enumerate(PUBLISHER_PATTERNS):
        for match in pattern.finditer(text):
            candidate = match.group(0).strip(" ,.")
            if not candidate or (title and candidate in title):
                continue
            key = (len(candidate), -priority)
            if best is None or key > (best[0], best[1]):
                best = (len(candidate), -priority, candidate, name)
    if best:
        return PublisherMatch(name=best[2], rule=best[3])

    for name, pattern in GENERIC_PUBLISHER_PATTERNS:
        match = pattern.search(text)
        if match:
            candidate = match.group("name").strip(" ,.")
            if candidate and not (title and candidate in title):
                return PublisherMatch(name=candidate, rule=name)
    return None


def detect_type(text: str, fields: Mapping[str, Any], language: Optional[str] = None) -> TypeDecision:
    """
    文献種別を判定する

    Args:
        text: 正規化済みの引用文字列
        fields: 抽出済みフィールド (title, authors, journal, volume, issue, pages, publisher)
        language: 'japanese' / 'english'。省略時は text から判定

    Returns:
        TypeDecision(is_book, is_book_chapter, reason)
    """
    language = language or detect_language(text)

    chapter = match_chapter(text, language, fields)
    if chapter:
        return TypeDecision(False, True, f"chapter:{chapter.rule}")

    reason = journal_evidence(text, fields)
    if reason:
        return TypeDecision(False, False, f"article:{reason}")

    title = fields.get("title") or ""
    publisher = fields.get("publisher") or ""
    if not publisher:
        found = find_publisher(text_after_title(text, fields), title)
        publisher = found.name if found else ""
    if publisher:
        return TypeDecision(True, False, "book:publisher")

    has_serial_fields = any(fields.get(key) for key in ("journal", "volume", "issue"))
    if title and fields.get("authors") and not has_serial_fields:
        return TypeDecision(True, False, "book:default")
    return TypeDecision(False, False, "article:default")
