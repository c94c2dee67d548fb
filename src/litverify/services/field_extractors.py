"""
Field extractors for normalized citation strings.

Every extractor has the signature ``(text, language, fields) -> dict`` where
``fields`` holds what earlier extractors already found. Each field is
extracted by an ordered list of ``(name, pattern, handler)`` rules; the first
rule whose handler accepts the match wins. A field that cannot be found is
simply absent from the returned dict.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Tuple

from .author_normalizer import normalize_author_name
from .citation_classifier import JA, find_publisher, match_chapter, text_after_title
from .text_normalizer import KATAKANA_CHARS, normalize_page_range

logger = logging.getLogger(__name__)

Fields = Dict[str, Any]
Handler = Callable[[re.Match], Any]
Rule = Tuple[str, Pattern[str], Handler]

ET_AL = "et al."
PAGE_RANGE = r"\d+\s*[-–—]\s*\d+"
MAX_TITLE_LENGTH = 200
MAX_JAPANESE_AUTHORS = 6
MAX_ENGLISH_AUTHORS = 10

YEAR_RE = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
YEAR_PAREN_RE = re.compile(r"\(\s*(?:19|20)\d{2}[a-z]?(?:\s*,[^)]*)?\s*\)")
DOI_RULES: List[Pattern[str]] = [
    re.compile(r"\bdoi:\s*([^\s,]+)", re.IGNORECASE),
    re.compile(r"\b(10\.\d+/[^\s,]+)"),
]
URL_RE = re.compile(r"https?://[^\s,]+")


def _run_rules(rules: List[Rule], text: str, field: str) -> Any:
    for name, pattern, handler in rules:
        match = pattern.search(text)
        if not match:
            continue
        result = handler(match)
        if result:
            logger.debug(f"{field}: rule '{name}' -> {result!r}")
            return result
    return None


def _strip_locators(text: str) -> str:
    """DOI と URL を取り除く"""
    text = URL_RE.sub(" ", text)
    for pattern in DOI_RULES:
        text = pattern.sub(" ", text)
    return text


# ---------------------------------------------------------------------------
# year / doi / url
# ---------------------------------------------------------------------------

def extract_year(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    match = YEAR_RE.search(text)
    return {"year": match.group(1)} if match else {}


def extract_doi(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    for pattern in DOI_RULES:
        match = pattern.search(text)
        if match:
            doi = match.group(1).rstrip(".,;)")
            if doi:
                return {"doi": doi}
    return {}


def extract_url(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    match = URL_RE.search(text)
    return {"url": match.group(0).rstrip(".,;)")} if match else {}


# ---------------------------------------------------------------------------
# title
# ---------------------------------------------------------------------------

_TITLE_METADATA_RE = re.compile(
    r"\d+\s*(?:巻|号|頁|ページ|章)|\b(?:vol|no|pp?)\.\s*\d|\b(?:doi|https?)\b"
    r"|\((?:19|20)\d{2}[a-z]?\)|^[\d\s()\-–—.,:;]+$",
    re.IGNORECASE,
)
_JA_TITLE_NOISE_RE = re.compile(r"大学|研究所|学会|出版|書房|書店|センター|機構")
_EN_TITLE_NOISE_RE = re.compile(r"\b(?:University|Press|Journal|Publishing|Publishers)\b")
_EDITION_SUFFIX_RE = re.compile(
    r"\s*\((?:第\s*\d+\s*版|改訂[^)]*|新版|増補[^)]*|\d+(?:st|nd|rd|th)\s+ed\.?|rev(?:ised)?\.?\s+ed\.?"
    r"|[^)]*\bedition)\)\s*$",
    re.IGNORECASE,
)
# ー is a long-vowel mark after katakana, a subtitle dash elsewhere
_JA_SUBTITLE_SPLIT_RE = re.compile(rf"(?<![{KATAKANA_CHARS}])\s*[ー—‐−–―]+\s*")
_TRAILING_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)\s*$")
_SUBTITLE_COLON_RE = re.compile(r"\s*[:：]\s*")


def split_subtitle(title: str) -> Tuple[str, str, str]:
    """
    'Behave: The biology' / '地域社会の再生―住民参加' -> (main, separator, subtitle)

    The subtitle is empty when the title has no colon or subtitle dash.
    """
    for pattern in (_SUBTITLE_COLON_RE, _JA_SUBTITLE_SPLIT_RE):
        match = pattern.search(title or "")
        if match and match.start() > 0 and title[match.end():].strip():
            return title[:match.start()], match.group(0), title[match.end():]
    return title or "", "", ""


def _accept_title(candidate: str, min_chars: int = 1, min_words: int = 1) -> Optional[str]:
    candidate = candidate.strip(" .,:;")
    if len(candidate) < min_chars or len(candidate.split()) < min_words:
        return None
    if len(candidate) > MAX_TITLE_LENGTH:
        return None
    return candidate


def _sentence_title(match: re.Match) -> Optional[str]:
    title = _EDITION_SUFFIX_RE.sub("", match.group(1))
    return _accept_title(_TRAILING_PARENTHETICAL_RE.sub("", title))


JAPANESE_TITLE_RULES: List[Rule] = [
    (
        "quote_after_year",
        re.compile(r"(?:19|20)\d{2}[a-z]?\)\s*\.?\s*[「『]([^」』]+)[」』]"),
        lambda m: _accept_title(m.group(1)),
    ),
    (
        "segment_after_year",
        re.compile(r"(?:19|20)\d{2}[a-z]?\)\s*\.?\s*([^.,「『]+)"),
        lambda m: _accept_title(m.group(1), min_chars=5),
    ),
    (
        "quoted",
        re.compile(r"[「『]([^」』]+)[」』]"),
        lambda m: _accept_title(m.group(1)),
    ),
]

ENGLISH_TITLE_RULES: List[Rule] = [
    (
        "double_quoted",
        re.compile(r'"([^"]{3,})"'),
        lambda m: _accept_title(m.group(1)),
    ),
    (
        "sentence_after_year",
        re.compile(r"\((?:19|20)\d{2}[a-z]?(?:\s*,[^)]*)?\)\.\s*((?:[^.?!()]|\([^)]*\))+[?!]?)"),
        _sentence_title,
    ),
    (
        "segment_after_year",
        re.compile(r"\((?:19|20)\d{2}[a-z]?\)\s*\.?\s*([^.]+)"),
        lambda m: _accept_title(m.group(1), min_words=3),
    ),
]


def _longest_segment_title(text: str, language: str) -> Optional[str]:
    """メタデータらしくない最長の区切り片をタイトルとみなす"""
    best = None
    for segment in re.split(r"[.,;]", text):
        segment = segment.strip(" \"'「」『』")
        if not segment or _TITLE_METADATA_RE.search(segment):
            continue
        if language == "japanese":
            if len(segment) < 5 or _JA_TITLE_NOISE_RE.search(segment):
                continue
        elif len(segment.split()) < 3 or _EN_TITLE_NOISE_RE.search(segment):
            continue
        if len(segment) <= MAX_TITLE_LENGTH and (best is None or len(segment) > len(best)):
            best = segment
    return best


def extract_title(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    """
    タイトルを抽出する

    Returns:
        {"title": 主タイトル, "title_with_subtitle": サブタイトル込みのタイトル}
        Japanese titles are split at a subtitle dash; English titles keep
        their subtitle in both fields.
    """
    rules = JAPANESE_TITLE_RULES if language == "japanese" else ENGLISH_TITLE_RULES
    title = _run_rules(rules, text, "title") or _longest_segment_title(text, language)
    if not title:
        return {}

    full = _EDITION_SUFFIX_RE.sub("", title).strip(" \"'「」『』.,")
    main = full
    if language == "japanese":
        main = _JA_SUBTITLE_SPLIT_RE.split(full, maxsplit=1)[0].strip() or full
    return {"title": main, "title_with_subtitle": full}


# ---------------------------------------------------------------------------
# authors
# ---------------------------------------------------------------------------

_JA_ROLE_SUFFIX_RE = re.compile(r"(?:編著|共編|監修|監訳|編|著|訳|ほか|他)$")
_JA_AUTHOR_SEPARATOR_RE = re.compile(r"[、，,・•；;＆&\s]+")
_ORGANIZATION_RE = re.compile(r"出版社|大学院|研究所|学会誌|省庁|株式会社|センター|機構|vol\.|no\.|pp\.", re.IGNORECASE)
_ENGLISH_ONLY_RE = re.compile(r"^[A-Za-z\s.'-]+$")
_JA_AUTHOR_CHAR_RE = re.compile(rf"^[{JA}]+$")

_EN_SPAN_FALLBACK_RE = re.compile(r"^(.+?[a-z]{2,})\.\s")
_EDITOR_MARK_RE = re.compile(r"\((?:Eds?|eds?)\.?\)")
_ET_AL_RE = re.compile(r",?\s*(?:&\s*)?et\s+al\.?\s*$", re.IGNORECASE)
_CONJUNCTION_RE = re.compile(r"\s*(?:,\s*)?(?:&|\band\b)\s*")
_INITIALS_TOKEN_RE = re.compile(r"^(?:[A-Z]\.?\s*-?\s*){1,4}$")
_TRAILING_INITIAL_RE = re.compile(r"(?:^|[\s,.-])[A-Z]\.$")
_INSTITUTION_RE = re.compile(r"\b(?:University|Institute|Press|Journal|Department|Association)\b")


def _drop_sentence_period(span: str) -> str:
    """'Doe, Jane. ' -> 'Doe, Jane'; a closing initial such as 'Smith, J.' keeps its period"""
    span = span.rstrip()
    if span.endswith(".") and not _TRAILING_INITIAL_RE.search(span):
        span = span[:-1]
    return span


def _author_span(text: str, language: str) -> str:
    year = YEAR_PAREN_RE.search(text)
    if year:
        return text[:year.start()]
    if language == "japanese":
        quote = re.search(r"[「『]", text)
        if quote:
            return text[:quote.start()]
        period = text.find(".")
        return text[:period] if period != -1 else ""
    quote = text.find('"')
    if quote != -1:
        return _drop_sentence_period(text[:quote])
    match = _EN_SPAN_FALLBACK_RE.match(text)
    return match.group(1) if match else ""


def _merge_short_tokens(tokens: List[str]) -> List[str]:
    """'田中 太郎 佐藤 花子' のような過分割を2つずつ結合する"""
    if len(tokens) < 2 or not all(_JA_AUTHOR_CHAR_RE.match(token) for token in tokens):
        return tokens
    if sum(len(token) for token in tokens) / len(tokens) > 3:
        return tokens
    return ["".join(tokens[i:i + 2]) for i in range(0, len(tokens), 2)]


def _japanese_authors(span: str) -> List[str]:
    span = re.sub(r"\([^)]*\)|\[[^\]]*\]", " ", span)
    tokens = []
    for token in _JA_AUTHOR_SEPARATOR_RE.split(span):
        token = _JA_ROLE_SUFFIX_RE.sub("", token.strip(" .:"))
        if token:
            tokens.append(token)

    authors = []
    for token in _merge_short_tokens(tokens):
        if len(token) < 2 or re.search(r"\d", token):
            continue
        if _ENGLISH_ONLY_RE.match(token) or _ORGANIZATION_RE.search(token):
            continue
        authors.append(token)
    return authors[:MAX_JAPANESE_AUTHORS]


def _english_authors(span: str) -> Tuple[List[str], bool]:
    span = _EDITOR_MARK_RE.sub("", span).strip(" ,")
    has_et_al = bool(_ET_AL_RE.search(span))
    span = _ET_AL_RE.sub("", span).strip(" ,")
    if not span:
        return [], has_et_al

    if ";" in span:
        names = [part.strip(" .,") for part in span.split(";")]
    else:
        tokens = [t.strip() for t in _CONJUNCTION_RE.sub(", ", span).split(",") if t.strip()]
        if any(_INITIALS_TOKEN_RE.match(t) for t in tokens):
            names = []
            for token in tokens:
                # "Smith", "J." -> "Smith, J."
                if _INITIALS_TOKEN_RE.match(token) and names:
                    names[-1] = f"{names[-1]}, {token}"
                else:
                    names.append(token)
        elif len(tokens) >= 2 and len(tokens[0].split()) == 1:
            # MLA: "Smith, John, and Jane Doe"
            names = [f"{tokens[0]}, {tokens[1]}"] + tokens[2:]
        else:
            names = tokens

    authors = []
    for name in names:
        if not name or not name[0].isalpha() or re.search(r"\d", name):
            continue
        if _INSTITUTION_RE.search(name):
            continue
        authors.append(name)
    return authors[:MAX_ENGLISH_AUTHORS], has_et_al


def extract_authors(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    """
    著者リストを抽出する

    The span before the year parenthesis (or before the first quote) is split
    into names and converted to display form. A trailing "et al." is kept as
    the last element.
    """
    span = _author_span(text, language)
    if not span.strip():
        return {}

    has_et_al = False
    if language == "japanese":
        names = _japanese_authors(span)
    else:
        names, has_et_al = _english_authors(span)

    authors = [normalize_author_name(name) for name in names]
    authors = [name for name in authors if name]
    if has_et_al and authors:
        authors.append(ET_AL)
    return {"authors": authors} if authors else {}


# ---------------------------------------------------------------------------
# journal
# ---------------------------------------------------------------------------

_EN_NAME = r"[A-Z][A-Za-z\s&:'-]+?"
_LEADING_IN_RE = re.compile(r"^In\s+")
_JA_JOURNAL_SUFFIXES = "研究|学会誌|論文集|学報|紀要|ジャーナル|会誌|評論|報告"
_JA_JOURNAL_KEYWORDS_RE = re.compile(r"学会|協会|研究会|学部")
_VOLUME_FRAGMENT_RE = re.compile(
    rf"\d+\s*\([^)]*\)|\b(?:vol(?:ume)?|no|issue|pp?)\.?\s*[\d\s\-–—]+|{PAGE_RANGE}\s*(?:頁|ページ)?"
    r"|第?\s*\d+\s*[巻号章]|\b\d+\b",
    re.IGNORECASE,
)


def _english_journal(match: re.Match) -> Optional[str]:
    name = _LEADING_IN_RE.sub("", match.group(1).strip(" ,.:"))
    return name if len(name) >= 2 else None


ENGLISH_JOURNAL_RULES: List[Rule] = [
    ("markdown_italic", re.compile(r"\*([^*]+)\*"), lambda m: m.group(1).strip(" ,.")),
    ("before_volume_word", re.compile(rf"[.,\"]\s*({_EN_NAME}),?\s*(?:vol|volume)\b", re.IGNORECASE), _english_journal),
    ("before_volume_issue", re.compile(rf"[.,\"]\s*({_EN_NAME}),?\s*\d+\s*\("), _english_journal),
    ("before_volume_number", re.compile(rf"[.,\"]\s*({_EN_NAME}),\s*\d+\s*[,:]"), _english_journal),
    (
        "journal_of",
        re.compile(r"\b((?:Journal|Proceedings|Annals|Transactions|Review)\s+(?:of|on)\s+[A-Z][A-Za-z\s&'-]*[A-Za-z])"),
        _english_journal,
    ),
    (
        "x_journal",
        re.compile(r"\b([A-Z][A-Za-z&'-]*(?:\s+[A-Z][A-Za-z&'-]*)*\s+Journal)\b"),
        _english_journal,
    ),
    ("in_container", re.compile(r"\bIn\s+([A-Z][A-Za-z\s&:'-]*[A-Za-z])"), _english_journal),
]

JAPANESE_JOURNAL_RULES: List[Rule] = [
    ("quoted", re.compile(r"[『「]([^』」]+)[』」]"), lambda m: m.group(1).strip()),
    (
        "after_title_before_volume",
        re.compile(rf"^[\s.」』]*([{JA}A-Za-z][{JA}A-Za-z\s・]*?)\s*,\s*\d+"),
        lambda m: m.group(1).strip() if 3 <= len(m.group(1).strip()) <= 30 else None,
    ),
    (
        "suffix_word",
        re.compile(rf"([{JA}A-Za-z]*(?:{_JA_JOURNAL_SUFFIXES})[{JA}A-Za-z]*)"),
        lambda m: m.group(1) if len(m.group(1)) >= 3 else None,
    ),
]


def _keyword_journal(rest: str) -> Optional[str]:
    for segment in re.split(r"[.,]", rest):
        segment = segment.strip()
        if 3 <= len(segment) <= 25 and _JA_JOURNAL_KEYWORDS_RE.search(segment) and ":" not in segment:
            return segment
    return None


def _residual_journal(rest: str, title: str) -> Optional[str]:
    """Whatever is left once title, year, locators and numbers are removed."""
    rest = YEAR_PAREN_RE.sub(" ", _strip_locators(rest))
    rest = _VOLUME_FRAGMENT_RE.sub(" ", rest)
    rest = re.sub(r"[「」『』\"*()]", " ", rest)
    for segment in re.split(r"[.,;]", rest):
        segment = re.sub(r"\s+", " ", segment).strip()
        if len(segment) < 3:
            continue
        if len(segment) > 30 or ":" in segment or (title and segment in title):
            return None
        if find_publisher(segment):
            return None
        return segment
    return None


def extract_journal(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    title = fields.get("title_with_subtitle") or fields.get("title") or ""
    rest = text_after_title(text, fields) if title else text
    # only an unlocated title can still be inside the search region
    title_in_region = bool(title) and rest is text
    if title_in_region:
        # title not found verbatim; drop the author span at least
        year = YEAR_PAREN_RE.search(text)
        rest = text[year.end():] if year else text

    rules = JAPANESE_JOURNAL_RULES if language == "japanese" else ENGLISH_JOURNAL_RULES
    journal = None
    for name, pattern, handler in rules:
        match = pattern.search(rest)
        if not match:
            continue
        candidate = handler(match)
        if candidate and not (title_in_region and candidate in title):
            logger.debug(f"journal: rule '{name}' -> {candidate!r}")
            journal = candidate
            break

    if not journal and language == "japanese":
        journal = _keyword_journal(rest)
    if not journal:
        journal = _residual_journal(rest, title)
    return {"journal": journal} if journal else {}


# ---------------------------------------------------------------------------
# volume / issue / pages
# ---------------------------------------------------------------------------

def _is_year(value: str) -> bool:
    return bool(re.fullmatch(r"(?:19|20)\d{2}", value.strip()))


def _volume_issue_pages(match: re.Match) -> Optional[Fields]:
    groups = match.groupdict()
    result = {}
    if groups.get("volume"):
        result["volume"] = groups["volume"].strip()
    if groups.get("issue"):
        issue = normalize_page_range(groups["issue"])
        if not _is_year(issue):
            result["issue"] = issue
    if groups.get("pages"):
        result["pages"] = normalize_page_range(groups["pages"])
    return result or None


def _single(key: str) -> Handler:
    def handler(match: re.Match) -> Optional[Fields]:
        value = normalize_page_range(match.group(1))
        if key != "pages" and _is_year(value):
            return None
        return {key: value}
    return handler


COMBINED_VOLUME_RULES: List[Rule] = [
    (
        "volume_issue_pages",
        re.compile(
            rf"(?<![\d(])(?P<volume>\d{{1,4}})\s*\(\s*(?P<issue>\d{{1,4}}(?:\s*[-–]\s*\d{{1,4}})?)\s*\)"
            rf"(?:\s*[,:]\s*(?:pp?\.\s*)?(?P<pages>\d+(?:\s*[-–—]\s*\d+)?))?"
        ),
        _volume_issue_pages,
    ),
    (
        "vol_no_pages",
        re.compile(
            rf"\bvol(?:ume)?\.?\s*(?P<volume>\d+)\s*,?\s*(?:no|issue|number)\.?\s*(?P<issue>\d+)"
            rf"(?:\s*,?\s*(?:(?:19|20)\d{{2}}\s*,\s*)?(?:pp?\.?\s*)?(?P<pages>{PAGE_RANGE}))?",
            re.IGNORECASE,
        ),
        _volume_issue_pages,
    ),
    (
        "volume_issue_pages_commas",
        re.compile(rf"[,:]\s*(?P<volume>\d{{1,4}})\s*,\s*(?P<issue>\d{{1,4}})\s*,\s*(?:pp?\.\s*)?(?P<pages>{PAGE_RANGE})"),
        _volume_issue_pages,
    ),
    (
        "volume_pages",
        re.compile(
            rf"(?:[,:]|\bvol(?:ume)?\.?)\s*(?!(?:19|20)\d{{2}}\s*,)(?P<volume>\d{{1,4}})\s*,\s*"
            rf"(?:pp?\.\s*)?(?P<pages>{PAGE_RANGE})",
            re.IGNORECASE,
        ),
        _volume_issue_pages,
    ),
]

VOLUME_RULES: List[Rule] = [
    ("vol_word", re.compile(r"\bvol(?:ume)?\.?\s*(\d+)", re.IGNORECASE), _single("volume")),
    ("ja_volume", re.compile(r"(?:第\s*)?(\d+)\s*巻"), _single("volume")),
]

ISSUE_RULES: List[Rule] = [
    ("no_word", re.compile(r"\bno\.\s*(\d+)", re.IGNORECASE), _single("issue")),
    ("issue_word", re.compile(r"\bissue\s*(\d+)", re.IGNORECASE), _single("issue")),
    ("ja_issue", re.compile(r"(?:第\s*)?(\d+)\s*号"), _single("issue")),
]

PAGE_RULES: List[Rule] = [
    ("pp", re.compile(r"\bpp?\.\s*(\d+(?:\s*[-–—]\s*\d+)?)"), _single("pages")),
    ("pages_word", re.compile(rf"\bpages?\s+({PAGE_RANGE})", re.IGNORECASE), _single("pages")),
    ("ja_pages", re.compile(rf"({PAGE_RANGE})\s*(?:頁|ページ)"), _single("pages")),
    ("trailing_range", re.compile(rf",\s*({PAGE_RANGE})\s*[.,]?(?:\s|$)"), _single("pages")),
]


def extract_volume_issue_pages(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    """
    巻・号・ページを抽出する

    Combined forms ("45(3), 123-145", "vol. 5, no. 2, pp. 1-10") are tried
    first; whatever they leave empty is filled by the single-field rules.
    Values stay strings; page ranges use a plain hyphen.
    """
    clean = _strip_locators(text)
    if fields.get("title"):
        clean = text_after_title(clean, fields)

    result: Fields = _run_rules(COMBINED_VOLUME_RULES, clean, "volume/issue/pages") or {}
    for key, rules in (("volume", VOLUME_RULES), ("issue", ISSUE_RULES), ("pages", PAGE_RULES)):
        if result.get(key):
            continue
        found = _run_rules(rules, clean, key)
        if found:
            result.update(found)
    return result


# ---------------------------------------------------------------------------
# publisher / chapter
# ---------------------------------------------------------------------------

def extract_publisher(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    title = fields.get("title_with_subtitle") or fields.get("title") or ""
    region = text_after_title(text, fields) if title else text
    found = find_publisher(region, title)
    if not found:
        return {}
    logger.debug(f"publisher: rule '{found.rule}' -> {found.name!r}")
    return {"publisher": found.name}


def extract_chapter_info(text: str, language: str, fields: Mapping[str, Any]) -> Fields:
    """
    収録書名と編者を抽出する

    The containing book title also replaces ``journal``, since chapters
    use that slot for display.
    """
    chapter = match_chapter(text, language, fields)
    if not chapter:
        return {}
    result: Fields = {"editors": [normalize_author_name(e) for e in chapter.editors]}
    if chapter.book_title:
        result["book_title"] = chapter.book_title
        result["journal"] = chapter.book_title
    return result


# Applied in order; each sees the fields found so far
EXTRACTORS: List[Tuple[str, Callable[[str, str, Mapping[str, Any]], Fields]]] = [
    ("year", extract_year),
    ("doi", extract_doi),
    ("url", extract_url),
    ("title", extract_title),
    ("authors", extract_authors),
    ("journal", extract_journal),
    ("volume_issue_pages", extract_volume_issue_pages),
    ("publisher", extract_publisher),
    ("chapter", extract_chapter_info),
]

# Fields a later extractor may replace
OVERWRITABLE_FIELDS = {"journal"}
