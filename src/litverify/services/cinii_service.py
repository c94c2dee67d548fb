import logging
import re
from typing import Any, Dict, List, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, SearchOptions
from ..utils.errors import collaborator_boundary
from .author_normalizer import normalize_authors
from .http_client import HttpClient
from .opensearch import (
    NAMESPACES,
    clean_publisher_name,
    extract_year,
    get_all_text,
    get_xml_text,
    page_range,
    parse_feed,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "CiNii"


def _split_identifiers(identifiers: List[str]) -> Dict[str, str]:
    doi = ""
    isbn = ""
    for identifier in identifiers:
        if "doi.org" in identifier or identifier.startswith("10."):
            doi = doi or re.sub(r'^https?://(dx\.)?doi\.org/', '', identifier)
        elif "isbn" in identifier.lower() or re.fullmatch(r'\d{10,13}', re.sub(r'[-\s]', '', identifier)):
            isbn = isbn or re.sub(r'(?i)^.*?isbn[:\s]*', '', identifier)
    return {"doi": doi, "isbn": isbn}


def parse_cinii_response(xml_content: str) -> List[CandidateRecord]:
    """Parse a CiNii Research OpenSearch RSS (RDF) response"""
    root = parse_feed(xml_content, SOURCE_NAME)

    records = []
    for item in root.iter(f"{{{NAMESPACES['rss']}}}item"):
        title = get_xml_text(item, 'rss:title', 'dc:title')
        if not title:
            continue

        creators = get_all_text(item, 'dc:creator')
        publication_date = get_xml_text(item, 'prism:publicationDate')
        dc_date = get_xml_text(item, 'dc:date')
        raw_publisher = get_xml_text(item, 'dc:publisher')
        publisher = clean_publisher_name(raw_publisher)
        publication_name = get_xml_text(item, 'prism:publicationName')
        identifiers = _split_identifiers(get_all_text(item, 'dc:identifier'))
        pages = page_range(
            get_xml_text(item, 'prism:startingPage'),
            get_xml_text(item, 'prism:endingPage')
        )

        # dc:type で論文/書籍を判別
        dc_type = get_xml_text(item, 'dc:type')
        is_book = dc_type == "Book"
        is_article = dc_type == "Article"

        records.append(CandidateRecord(
            title=title,
            authors=normalize_authors(creators, SOURCE_NAME),
            year=extract_year(publication_date or dc_date),
            doi=identifiers["doi"],
            url=get_xml_text(item, 'rss:link'),
            journal="" if is_book else publication_name or (publisher if is_article else ""),
            publisher=publisher if is_book else "",
            volume=get_xml_text(item, 'prism:volume'),
            issue=get_xml_text(item, 'prism:number'),
            pages=pages,
            isbn=identifiers["isbn"],
            is_book=is_book,
            source=SOURCE_NAME,
            original_data={
                "creators": creators,
                "raw_publisher": raw_publisher,
                "publication_name": publication_name,
                "dc_type": dc_type,
                "publication_date": publication_date,
                "dc_date": dc_date,
            }
        ))

    return records


class CiNiiService:
    """CiNii Research OpenSearch (論文・図書)"""

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

    def _params(self, query: str, options: SearchOptions) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'count': options.rows or self.settings.CINII_COUNT,
            'start': 1,
            'lang': 'ja',
            'format': 'rss',
        }
        # 著者が分かればフィールド指定検索
        if options.author:
            params['title'] = query
            params['creator'] = options.author
        else:
            params['q'] = query
        if options.journal:
            params['publicationTitle'] = options.journal
        return params

    @collaborator_boundary(SOURCE_NAME)
    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[CandidateRecord]:
        options = options or SearchOptions()
        content = await self.http.get_text(
            SOURCE_NAME, self.settings.CINII_BASE_URL, self._params(query, options)
        )
        records = parse_cinii_response(content)
        self.logger.info(f"CiNii: {len(records)} results for '{query}'")
        return records
