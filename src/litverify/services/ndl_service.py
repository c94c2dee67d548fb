import logging
import re
from typing import Any, Dict, List, NamedTuple, Optional, Pattern

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, SearchOptions
from ..utils.errors import collaborator_boundary
from .author_normalizer import normalize_author_name
from .http_client import HttpClient
from .opensearch import (
    NAMESPACES,
    RDF_RESOURCE,
    XSI_TYPE,
    clean_publisher_name,
    extract_year,
    get_all_text,
    get_xml_text,
    parse_feed,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "NDL"

AUTHOR_SEPARATORS = re.compile(r'[;；|]|\s/\s')
ISBN_RE = re.compile(r'(?:ISBN[:\s]*)?(\d{13}|\d{9}[\dX])', re.IGNORECASE)

_PAGES = r'p\.?(?P<pages>\d+(?:[-–—]\d+)?)'
_JOURNAL = r'掲載誌[：:]\s*(?P<journal>.+?)'

# 掲載誌情報 (dc:description) のパターン。先にマッチしたものを採用
DESCRIPTION_RULES: List[Pattern] = [re.compile(p) for p in (
    rf'{_JOURNAL}\s+(?P<volume>\d+)\s*\((?P<issue>\d+)\)\s*{_PAGES}\s*$',
    rf'{_JOURNAL}\s+(?P<volume>\d+)巻\s*(?P<issue>\d+)号\s*{_PAGES}\s*$',
    rf'{_JOURNAL}\s+(?P<volume>\d+)[-–—](?P<issue>\d+)\s*{_PAGES}\s*$',
    rf'{_JOURNAL}\s+0\s+{_PAGES}\s*$',
    rf'{_JOURNAL}\s+(?P<volume>\d+)\s+{_PAGES}\s*$',
    rf'{_JOURNAL}\s+(?:19|20)\d{{2}}\s+(?P<volume>\d+)\s*$',
    rf'{_JOURNAL}\s+(?:19|20)\d{{2}}\s*$',
    rf'{_JOURNAL}\s+{_PAGES}\s*$',
    rf'{_JOURNAL}\s+\S+編\s*$',
    rf'{_JOURNAL}\s*$',
)]


class ArticleSource(NamedTuple):
    journal: str = ""
    volume: str = ""
    issue: str = ""
    pages: str = ""


def clean_journal_name(journal: str) -> str:
    """英訳の併記を除去: '年報カルチュラルスタディーズ = The annual review...' -> '年報カルチュラルスタディーズ'"""
    return re.sub(r'\s*=\s*.*$', '', journal).strip()


def parse_article_source(description: str) -> ArticleSource:
    """
    記事の dc:description から掲載誌・巻・号・ページを取り出す

    >>> parse_article_source("掲載誌: キャリア教育研究 33 p.139-146")
    ArticleSource(journal='キャリア教育研究', volume='33', issue='', pages='139-146')
    """
    for line in description.splitlines():
        for pattern in DESCRIPTION_RULES:
            match = pattern.search(line.strip())
            if not match:
                continue
            groups = match.groupdict()
            volume = groups.get("volume") or ""
            # 4桁の年は巻として扱わない
            if re.fullmatch(r'(?:19|20)\d{2}', volume):
                volume = ""
            return ArticleSource(
                journal=clean_journal_name(groups["journal"]),
                volume=volume,
                issue=groups.get("issue") or "",
                pages=re.sub(r'[–—]', '-', groups.get("pages") or ""),
            )
    return ArticleSource()


def split_creators(creators: List[str]) -> List[str]:
    """dc:creator を著者ごとに分割して正規化する ("中沢, 新一, 1950-" -> "中沢新一")"""
    authors = []
    for part in (p for creator in creators for p in AUTHOR_SEPARATORS.split(creator)):
        name = normalize_author_name(part.strip(), SOURCE_NAME)
        if name:
            authors.append(name)
    return authors


def _find_isbn(item) -> str:
    identifiers = item.findall('dc:identifier', NAMESPACES)
    # xsi:type="dcndl:ISBN" を優先
    identifiers.sort(key=lambda e: "ISBN" not in (e.get(XSI_TYPE) or "").upper())
    for identifier in identifiers:
        match = ISBN_RE.search(re.sub(r'-', '', identifier.text or ""))
        if match:
            return match.group(1)
    return ""


def parse_ndl_response(xml_content: str) -> List[CandidateRecord]:
    """Parse an NDL Search OpenSearch RSS 2.0 response"""
    root = parse_feed(xml_content, SOURCE_NAME)

    records = []
    seen = set()
    for item in root.iter('item'):
        title = get_xml_text(item, 'dc:title', 'title')
        if not title:
            continue

        creators = get_all_text(item, 'dc:creator') or get_all_text(item, 'author')
        authors = split_creators(creators)

        # タイトル+著者で重複除去
        key = (title, tuple(authors))
        if key in seen:
            continue
        seen.add(key)

        category = " ".join((e.text or "") for e in item.findall('category'))
        description = get_xml_text(item, 'dc:description')
        issued = get_xml_text(item, 'dcterms:issued')
        dc_date = get_xml_text(item, 'dc:date')
        raw_publisher = get_xml_text(item, 'dc:publisher')
        link = get_xml_text(item, 'link', 'guid')
        see_also = [
            e.get(RDF_RESOURCE) for e in item.findall('rdfs:seeAlso', NAMESPACES)
            if e.get(RDF_RESOURCE)
        ]

        is_article = "記事" in category
        article = parse_article_source(description) if is_article else ArticleSource()

        records.append(CandidateRecord(
            title=title,
            authors=authors,
            year=extract_year(issued) or extract_year(dc_date),
            url=link,
            journal=article.journal,
            volume=article.volume,
            issue=article.issue,
            pages=article.pages,
            publisher="" if is_article else clean_publisher_name(raw_publisher),
            isbn=_find_isbn(item),
            is_book=not is_article,
            source=SOURCE_NAME,
            original_data={
                "creators": creators,
                "publisher": raw_publisher,
                "category": category,
                "description": description,
                "issued": issued,
                "dc_date": dc_date,
                "see_also": see_also,
            }
        ))

    return records


class NDLService:
    """国立国会図書館サーチ OpenSearch"""

    name = SOURCE_NAME

    def __init__(
        self,
        http_client: HttpClient,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.http = http_client
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

    @collaborator_boundary(SOURCE_NAME)
    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[CandidateRecord]:
        options = options or SearchOptions()
        params: Dict[str, Any] = {
            'title': query,
            'cnt': options.rows or self.settings.NDL_COUNT,
        }
        if options.author:
            params['creator'] = options.author

        content = await self.http.get_text(SOURCE_NAME, self.settings.NDL_BASE_URL, params)
        records = parse_ndl_response(content)
        self.logger.info(f"NDL: {len(records)} results for '{query}'")
        return records
