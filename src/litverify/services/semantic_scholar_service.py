import logging
from typing import Any, Dict, List, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, SearchOptions
from ..utils.errors import collaborator_boundary
from .author_normalizer import normalize_authors
from .http_client import HttpClient
from .opensearch import extract_year

logger = logging.getLogger(__name__)

SOURCE_NAME = "Semantic Scholar"

SEARCH_FIELDS = "title,authors,year,venue,externalIds,url,publicationTypes"


def _parse_paper(item: Dict[str, Any]) -> CandidateRecord:
    external_ids = item.get("externalIds") or {}
    publication_types = item.get("publicationTypes") or []
    journal = item.get("venue") or (item.get("journal") or {}).get("name") or ""
    is_book = "Book" in publication_types and "JournalArticle" not in publication_types

    url = item.get("url") or ""
    if not url and item.get("paperId"):
        url = f"https://www.semanticscholar.org/paper/{item['paperId']}"

    return CandidateRecord(
        title=item.get("title") or "",
        authors=normalize_authors(item.get("authors") or [], SOURCE_NAME),
        year=str(item["year"]) if item.get("year") else extract_year(item.get("publicationDate")),
        doi=external_ids.get("DOI") or "",
        url=url,
        journal="" if is_book else journal,
        is_book=is_book,
        source=SOURCE_NAME,
        original_data={"paper_id": item.get("paperId"), "item": item}
    )


def parse_semantic_scholar_response(data: Dict[str, Any]) -> List[CandidateRecord]:
    """Parse Semantic Scholar JSON response"""
    papers = (data or {}).get("data") or []
    return [_parse_paper(item) for item in papers if item.get("title")]


class SemanticScholarService:
    """Semantic Scholar Graph API paper search"""

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
        # 著者・掲載誌はクエリ文字列に含める
        terms = [query] + [term for term in (options.author, options.journal) if term]
        params = {
            'query': " ".join(terms),
            'limit': options.rows or self.settings.SEMANTIC_SCHOLAR_LIMIT,
            'fields': SEARCH_FIELDS,
        }
        data = await self.http.get_json(
            SOURCE_NAME, f"{self.settings.SEMANTIC_SCHOLAR_BASE_URL}/paper/search", params
        )
        records = parse_semantic_scholar_response(data)
        self.logger.info(f"Semantic Scholar: {len(records)} results for '{query}'")
        return records
