"""
検索戦略

Which sources to ask (by language and record type) and which queries to send
to each. A source is queried in stages; a stage only runs while the source's
pooled unique result count is below the "good enough" threshold.
"""
import logging
import re
from typing import Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import quote

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, ParsedCitation, SearchLink, SearchOptions
from ..types import SearchSourceProtocol
from .author_normalizer import split_display_name
from .field_extractors import ET_AL
from .text_normalizer import contains_japanese

logger = logging.getLogger(__name__)

CROSSREF = "Crossref"
SEMANTIC_SCHOLAR = "Semantic Scholar"
CINII = "CiNii"
NDL = "NDL"
GOOGLE_BOOKS = "Google Books"

# (language, record type) -> source order
SOURCE_PLAN: Dict[Tuple[str, str], List[str]] = {
    ("japanese", "article"): [CINII, CROSSREF],
    ("english", "article"): [CROSSREF, SEMANTIC_SCHOLAR, CINII],
    ("japanese", "book"): [NDL, CINII, GOOGLE_BOOKS],
    ("english", "book"): [GOOGLE_BOOKS, CROSSREF],
    ("japanese", "book-chapter"): [NDL, GOOGLE_BOOKS, CINII, CROSSREF],
    ("english", "book-chapter"): [GOOGLE_BOOKS, CROSSREF, CINII],
}

QUERY_PUNCTUATION = re.compile(r'[:;,()\[\]"\'.…]')

GOOGLE_SCHOLAR = "Google Scholar"
PUBMED = "PubMed"

# Manual search pages; the encoded query is appended to the prefix
SEARCH_LINK_PREFIXES: Dict[str, str] = {
    CINII: "https://cir.nii.ac.jp/all?q=",
    NDL: "https://ndlsearch.ndl.go.jp/search?cs=bib&keyword=",
    GOOGLE_BOOKS: "https://www.google.com/search?tbm=bks&q=",
    CROSSREF: "https://search.crossref.org/?from_ui=yes&q=",
    SEMANTIC_SCHOLAR: "https://www.semanticscholar.org/search?q=",
    GOOGLE_SCHOLAR: "https://scholar.google.com/scholar?q=",
    PUBMED: "https://pubmed.ncbi.nlm.nih.gov/?term=",
}

# (language, record type) -> manual search link order
LINK_PLAN: Dict[Tuple[str, str], List[str]] = {
    ("japanese", "article"): [CINII, NDL, GOOGLE_SCHOLAR, CROSSREF],
    ("english", "article"): [CROSSREF, GOOGLE_SCHOLAR, PUBMED, CINII],
    ("japanese", "book"): [CINII, NDL, GOOGLE_BOOKS],
    ("english", "book"): [CROSSREF, GOOGLE_BOOKS, PUBMED, CINII],
    ("japanese", "book-chapter"): [CINII, NDL, GOOGLE_BOOKS, CROSSREF, SEMANTIC_SCHOLAR],
    ("english", "book-chapter"): [GOOGLE_BOOKS, SEMANTIC_SCHOLAR, CROSSREF, CINII, NDL],
}


class Stage(NamedTuple):
    label: str
    query: str
    options: SearchOptions


def plan_sources(parsed: ParsedCitation) -> List[str]:
    return SOURCE_PLAN[(parsed.language, parsed.record_type)]


def clean_query(text: str) -> str:
    """Replace query-hostile punctuation with spaces"""
    return re.sub(r'\s+', ' ', QUERY_PUNCTUATION.sub(' ', text or '')).strip()


def title_key(title: str) -> str:
    return re.sub(r'[\W_]+', '', (title or '').lower())


def dedupe_by_title(records: List[CandidateRecord]) -> List[CandidateRecord]:
    """同一タイトル (正規化後) のレコードを除去する。先に出たものを残す"""
    seen = set()
    unique = []
    for record in records:
        key = title_key(record.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def first_author_query(parsed: ParsedCitation) -> str:
    """First real author as a search term: the surname for Western names"""
    for author in parsed.authors:
        if author.strip().lower() == ET_AL:
            continue
        if contains_japanese(author):
            return re.sub(r'[\s・]', '', author)
        return split_display_name(author)[0]
    return ""


def _first_author(parsed: ParsedCitation) -> str:
    return next((a for a in parsed.authors if a.strip().lower() != ET_AL), "")


def link_query(name: str, parsed: ParsedCitation) -> str:
    """
    手動検索用のクエリ

    Chapters lead with the containing book title; Google Scholar gets title,
    author and year; the book databases add the first author.
    """
    author = _first_author(parsed)
    terms: List[str]
    if parsed.is_book_chapter:
        book = parsed.book_title or parsed.journal
        if name in (NDL, GOOGLE_BOOKS):
            terms = [book, author] if book else [author, parsed.title]
        elif name == GOOGLE_SCHOLAR:
            terms = [book, parsed.title, author, parsed.year]
        elif name == PUBMED:
            terms = [parsed.title]
        else:
            terms = [book, parsed.title]
    elif name == GOOGLE_SCHOLAR:
        terms = [parsed.title, author, parsed.year]
    elif name == GOOGLE_BOOKS or (name == NDL and parsed.is_book):
        terms = [parsed.title, author]
    elif name == PUBMED:
        terms = [parsed.title, parsed.journal]
    else:
        # CiNii returns nothing once author names are added
        terms = [parsed.title]
    return " ".join(term for term in terms if term)


def search_links(parsed: ParsedCitation) -> List[SearchLink]:
    """言語と種別に応じた順序の手動検索リンク"""
    links = []
    for name in LINK_PLAN[(parsed.language, parsed.record_type)]:
        query = link_query(name, parsed)
        if query:
            links.append(SearchLink(name=name, url=SEARCH_LINK_PREFIXES[name] + quote(query)))
    return links


class SearchStrategy:
    """Builds and runs the per-source query stages for one parsed citation."""

    def __init__(self, settings: Optional[Settings] = None, logger: Optional[logging.Logger] = None):
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

    def good_enough(self, parsed: ParsedCitation) -> int:
        if parsed.is_book or parsed.is_book_chapter:
            return self.settings.BOOK_GOOD_ENOUGH_RESULTS
        return self.settings.GOOD_ENOUGH_RESULTS

    def crossref_stages(self, parsed: ParsedCitation) -> List[Stage]:
        """
        Crossref の段階的検索

        1. タイトル (掲載誌が分かれば container-title で絞る)
        2. タイトル + 掲載誌
        3. タイトル + 第一著者
        4. タイトル + 著者 + 掲載誌
        5. 書籍: 著者中心 (書籍タイプに限定)
        6. タイトルのみ (書籍は書籍タイプ限定、次に限定なし)
        """
        title = clean_query(parsed.title)
        journal = clean_query(parsed.journal)
        author = first_author_query(parsed)
        is_book = parsed.is_book or parsed.is_book_chapter

        stages = [Stage("title", title, SearchOptions(journal=parsed.journal if not is_book else ""))]
        if journal:
            stages.append(Stage("title+journal", f"{title} {journal}", SearchOptions()))
        if author:
            stages.append(Stage("title+author", title, SearchOptions(author=author)))
            if journal:
                stages.append(Stage("title+author+journal", f"{title} {journal}", SearchOptions(author=author)))
            if is_book:
                stages.append(Stage("author", f"{author} {title}", SearchOptions(author=author, book_only=True)))
        if is_book:
            stages.append(Stage("title (books)", title, SearchOptions(book_only=True)))
        stages.append(Stage("title only", title, SearchOptions()))
        return stages

    def default_stages(self, source_name: str, parsed: ParsedCitation) -> List[Stage]:
        title = clean_query(parsed.title)
        author = first_author_query(parsed)

        if source_name == SEMANTIC_SCHOLAR:
            # 短いタイトルは著者名で補う
            short = len(title) <= 20 or len(title.split()) <= 3
            return [Stage("title", title, SearchOptions(author=author if short else ""))]

        stages = []
        if author and source_name in (NDL, GOOGLE_BOOKS, CINII):
            stages.append(Stage("title+author", title, SearchOptions(author=author)))
        stages.append(Stage("title only", title, SearchOptions()))
        return stages

    def stages_for(self, source_name: str, parsed: ParsedCitation) -> List[Stage]:
        if source_name == CROSSREF:
            return self.crossref_stages(parsed)
        return self.default_stages(source_name, parsed)

    async def search_source(self, source: SearchSourceProtocol, parsed: ParsedCitation) -> List[CandidateRecord]:
        """
        1つの検索ソースに段階的に問い合わせる

        Args:
            source: 検索ソース
            parsed: 解析済みの引用

        Returns:
            タイトル重複を除いた候補リスト

        Raises:
            CollaboratorError: ソースへの問い合わせが失敗した場合
        """
        pool: List[CandidateRecord] = []

        # DOI があれば直接解決
        if parsed.doi and hasattr(source, "get_work_by_doi"):
            record = await source.get_work_by_doi(parsed.doi)
            if record is not None:
                self.logger.info(f"{source.name}: resolved DOI {parsed.doi}")
                pool.append(record)

        threshold = self.good_enough(parsed)
        executed = set()
        for stage in self.stages_for(source.name, parsed):
            if len(pool) >= threshold:
                break
            if not stage.query:
                continue
            key = (stage.query, stage.options.model_dump_json())
            if key in executed:
                continue
            executed.add(key)

            results = await source.search(stage.query, stage.options)
            pool = dedupe_by_title(pool + results)
            self.logger.debug(
                f"{source.name} stage '{stage.label}': {len(results)} results, {len(pool)} unique"
            )

        return pool
