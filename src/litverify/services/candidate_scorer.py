"""
候補レコードの類似度計算とランキング
"""
import logging
import re
import unicodedata
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import (
    BibliographicRecord,
    CandidateRecord,
    ParsedCitation,
    ScoredCandidate,
    Similarities,
    VerificationStatus,
)
from .author_normalizer import is_same_author
from .field_extractors import ET_AL, split_subtitle
from .text_normalizer import JAPANESE_CHARS

logger = logging.getLogger(__name__)

_DASH_VARIANTS = re.compile(r"[‐‑–—−―]")
_PAGE_RANGE = re.compile(r"(\d+)\s*[-–—]\s*(\d+)")
_SINGLE_PAGE = re.compile(r"(\d+)")
_LOCATION_PREFIX = re.compile(r"^[^:]{1,40}:\s*")
_CORPORATE_SUFFIX = re.compile(
    r"\b(?:inc|corp|ltd|llc|co|company|corporation|limited|incorporated)\b\.?", re.IGNORECASE
)
_EDITION_MARKERS: List[re.Pattern] = [
    re.compile(r"\(\s*\d+(?:st|nd|rd|th)?\s+(?:ed\.?|edition)\s*\)", re.IGNORECASE),
    re.compile(r"\b\d+(?:st|nd|rd|th)?\s+(?:ed\.?|edition)\b", re.IGNORECASE),
    re.compile(r"\(?\s*\b(?:revised|updated|expanded|new)\s+(?:ed\.?|edition)\b\s*\)?", re.IGNORECASE),
    re.compile(r"\(?\s*第?\d+[版刊]\s*\)?"),
    re.compile(r"\(?\s*(?:改訂|新|増補|最新)[版刊]\s*\)?"),
]
_FIELD_PUNCTUATION = re.compile(rf"[^\w\s{JAPANESE_CHARS}]")
FIELD_MATCH_THRESHOLD = 80.0


def normalize_dashes(text: str) -> str:
    return re.sub(r"-+", "-", _DASH_VARIANTS.sub("-", text))


def calculate_similarity(a: str, b: str) -> float:
    """
    正規化レーベンシュタイン類似度 (0-100)

    (maxLen - editDistance) / maxLen * 100, case-insensitive, with dash
    variants unified before comparison.
    """
    if not a or not b:
        return 0.0
    s1 = normalize_dashes(a.strip().lower())
    s2 = normalize_dashes(b.strip().lower())
    if s1 == s2:
        return 100.0
    max_len = max(len(s1), len(s2))
    return (max_len - Levenshtein.distance(s1, s2)) / max_len * 100


def _year_value(year: str) -> Optional[int]:
    match = re.search(r"\d{4}", year or "")
    return int(match.group(0)) if match else None


def compare_year(a: str, b: str, tolerance: int = 1) -> bool:
    """|a - b| <= tolerance. Unparseable or missing years never match."""
    year_a, year_b = _year_value(a), _year_value(b)
    if year_a is None or year_b is None:
        return False
    return abs(year_a - year_b) <= tolerance


def _real_authors(authors: Iterable[str]) -> List[str]:
    return [a for a in authors if a and a.strip().lower() != ET_AL]


def compare_authors(
    parsed_authors: Sequence[str],
    candidate_authors: Sequence[str],
    match_fraction: float = 1 / 3,
    short_list: int = 2,
) -> Optional[bool]:
    """
    Author-list match.

    True when at least ``match_fraction`` of the parsed authors appear in the
    candidate list, or when any one matches and the parsed list has at most
    ``short_list`` names. None when either list is empty.
    """
    parsed = _real_authors(parsed_authors)
    found = _real_authors(candidate_authors)
    if not parsed or not found:
        return None

    matches = sum(1 for author in parsed if any(is_same_author(author, other) for other in found))
    return matches / len(parsed) >= match_fraction or (matches >= 1 and len(parsed) <= short_list)


def _page_span(pages: str) -> Optional[Tuple[int, int]]:
    match = _PAGE_RANGE.search(pages)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _SINGLE_PAGE.search(pages)
    if match:
        page = int(match.group(1))
        return page, page
    return None


def compare_pages(a: str, b: str) -> bool:
    """Identical or overlapping page ranges."""
    if not a or not b:
        return False
    if normalize_dashes(a.strip()) == normalize_dashes(b.strip()):
        return True
    span_a, span_b = _page_span(a), _page_span(b)
    if not span_a or not span_b:
        return False
    return span_a[0] <= span_b[1] and span_b[0] <= span_a[1]


def compare_volume_issue_pages(parsed: BibliographicRecord, candidate: BibliographicRecord) -> Dict[str, Optional[bool]]:
    """
    巻・号・ページの個別一致

    None when neither side has the field, False when only one side has it.
    """
    result: Dict[str, Optional[bool]] = {}
    for key in ("volume", "issue"):
        mine, theirs = getattr(parsed, key), getattr(candidate, key)
        if not mine and not theirs:
            result[key] = None
        else:
            result[key] = bool(mine and theirs) and str(mine).strip() == str(theirs).strip()
    if not parsed.pages and not candidate.pages:
        result["pages"] = None
    else:
        result["pages"] = compare_pages(parsed.pages, candidate.pages)
    return result


def normalize_publisher(text: str) -> str:
    """'New York: Academic Press, Inc.' -> 'academic press'"""
    if not text:
        return ""
    text = _LOCATION_PREFIX.sub("", text.strip())
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = unicodedata.normalize("NFC", text)
    text = _CORPORATE_SUFFIX.sub("", text)
    text = re.sub(r"株式会社|有限会社", "", text)
    text = re.sub(r"[.,。，]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_book_title(text: str) -> str:
    """版表記を除いた書名 ('Climate Science (3rd ed.)' -> 'climate science')"""
    if not text:
        return ""
    text = text.strip().lower()
    for pattern in _EDITION_MARKERS:
        text = pattern.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def fields_match(a: str, b: str) -> bool:
    """Loose equality used for highlighting: punctuation-insensitive, >= 80% similar."""
    if not a or not b:
        return False
    left = re.sub(r"\s+", " ", _FIELD_PUNCTUATION.sub(" ", a.lower())).strip()
    right = re.sub(r"\s+", " ", _FIELD_PUNCTUATION.sub(" ", b.lower())).strip()
    return left == right or calculate_similarity(left, right) >= FIELD_MATCH_THRESHOLD


def compare_title_parts(parsed_title: str, candidate_title: str) -> Dict[str, Optional[bool]]:
    """
    主タイトルとサブタイトルを別々に照合する

    ``subtitle`` is None when the parsed title has no subtitle, and False when
    only the candidate lacks one.
    """
    if not parsed_title:
        return {"title": None, "subtitle": None}
    main, _, subtitle = split_subtitle(parsed_title)
    if not subtitle:
        return {"title": fields_match(parsed_title, candidate_title), "subtitle": None}
    candidate_main, _, candidate_subtitle = split_subtitle(candidate_title)
    return {
        "title": fields_match(main, candidate_main),
        "subtitle": fields_match(subtitle, candidate_subtitle) if candidate_subtitle else False,
    }


class CandidateScorer:
    """Scores candidates against a parsed citation and ranks them."""

    def __init__(self, settings: Optional[Settings] = None, logger: Optional[logging.Logger] = None):
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

    def score(self, parsed: ParsedCitation, candidate: CandidateRecord) -> Similarities:
        """フィールドごとの類似度 (0-100, 片方に無ければ None)"""
        s = self.settings
        similarities = Similarities()

        parsed_title = parsed.title_with_subtitle or parsed.title
        if parsed_title and candidate.title:
            if parsed.is_book:
                similarities.title = calculate_similarity(
                    normalize_book_title(parsed_title), normalize_book_title(candidate.title)
                )
            else:
                similarities.title = calculate_similarity(parsed_title, candidate.title)

        author_match = compare_authors(
            parsed.authors, candidate.authors, s.AUTHOR_MATCH_FRACTION, s.SHORT_AUTHOR_LIST
        )
        if author_match is not None:
            similarities.author = 100.0 if author_match else 0.0

        if parsed.year and candidate.year:
            similarities.year = 100.0 if compare_year(parsed.year, candidate.year, s.YEAR_TOLERANCE) else 0.0

        if parsed.is_book:
            if parsed.publisher and candidate.publisher:
                similarities.publisher = calculate_similarity(
                    normalize_publisher(parsed.publisher), normalize_publisher(candidate.publisher)
                )
        elif parsed.is_book_chapter:
            container = candidate.book_title or candidate.journal
            if parsed.book_title and container:
                similarities.journal = calculate_similarity(
                    normalize_book_title(parsed.book_title), normalize_book_title(container)
                )
        elif parsed.journal and candidate.journal:
            similarities.journal = calculate_similarity(parsed.journal, candidate.journal)

        return similarities

    def overall_score(self, similarities: Similarities) -> float:
        """
        重み付き総合スコア

        Fields that are None are dropped from both the numerator and the
        denominator. Publisher fills the journal weight for books.
        """
        s = self.settings
        container = similarities.journal if similarities.journal is not None else similarities.publisher
        weighted = [
            (similarities.title, s.TITLE_WEIGHT),
            (similarities.author, s.AUTHOR_WEIGHT),
            (similarities.year, s.YEAR_WEIGHT),
            (container, s.JOURNAL_WEIGHT),
        ]
        present = [(value, weight) for value, weight in weighted if value is not None]
        weight_sum = sum(weight for _, weight in present)
        if not weight_sum:
            return 0.0
        total = sum(value * weight for value, weight in present) / weight_sum
        return round(min(100.0, max(0.0, total)), 1)

    def rank(self, parsed: ParsedCitation, candidates: Iterable[CandidateRecord]) -> List[ScoredCandidate]:
        """
        候補をスコア順に並べる

        1. drop candidates without a title
        2. score every candidate
        3. drop those below MIN_OVERALL_SCORE
        4. keep the first candidate per DOI (pool order)
        5. sort by score, descending, and keep MAX_CANDIDATES
        """
        scored: List[ScoredCandidate] = []
        for candidate in candidates:
            if not candidate.title:
                continue
            similarities = self.score(parsed, candidate)
            overall = self.overall_score(similarities)
            if overall < self.settings.MIN_OVERALL_SCORE:
                continue
            scored.append(
                ScoredCandidate(**candidate.model_dump(), similarities=similarities, overall_score=overall)
            )

        seen_dois = set()
        unique: List[ScoredCandidate] = []
        for candidate in scored:
            doi = candidate.doi.strip().lower()
            if doi:
                if doi in seen_dois:
                    continue
                seen_dois.add(doi)
            unique.append(candidate)

        ranked = sorted(unique, key=lambda c: c.overall_score, reverse=True)[:self.settings.MAX_CANDIDATES]
        self.logger.debug(
            f"Ranked {len(ranked)} of {len(scored)} scored candidates"
            + (f", top {ranked[0].overall_score} from {ranked[0].source}" if ranked else "")
        )
        return ranked

    def decide_status(self, top: Optional[ScoredCandidate]) -> VerificationStatus:
        if top is None:
            return "not_found"
        if top.overall_score >= self.settings.FOUND_THRESHOLD:
            return "found"
        if top.overall_score >= self.settings.SIMILAR_THRESHOLD:
            return "similar"
        return "not_found"

    def field_matches(self, parsed: ParsedCitation, candidate: BibliographicRecord) -> Dict[str, Optional[bool]]:
        """
        表示用の一致/不一致

        None means the parsed citation had nothing to compare for that field.
        """
        s = self.settings
        matches: Dict[str, Optional[bool]] = {
            **compare_title_parts(parsed.title_with_subtitle or parsed.title, candidate.title),
            "authors": compare_authors(
                parsed.authors, candidate.authors, s.AUTHOR_MATCH_FRACTION, s.SHORT_AUTHOR_LIST
            ),
            "year": compare_year(parsed.year, candidate.year, s.YEAR_TOLERANCE) if parsed.year else None,
            "journal": fields_match(parsed.journal, candidate.journal) if parsed.journal else None,
            "publisher": (
                fields_match(normalize_publisher(parsed.publisher), normalize_publisher(candidate.publisher))
                if parsed.publisher else None
            ),
            "book_title": (
                fields_match(parsed.book_title, candidate.book_title or candidate.journal)
                if parsed.book_title else None
            ),
        }
        volume_issue_pages = compare_volume_issue_pages(parsed, candidate)
        for key, value in volume_issue_pages.items():
            matches[key] = value if getattr(parsed, key) else None
        return matches
