import logging
from typing import Any, Dict, List, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, SearchOptions
from ..utils.errors import collaborator_boundary
from .author_normalizer import normalize_authors
from .http_client import HttpClient
from .opensearch import extract_year

logger = logging.getLogger(__name__)

SOURCE_NAME = "Google Books"


def _isbn(volume_info: Dict[str, Any]) -> str:
    identifiers = {
        identifier.get("type"): identifier.get("identifier", "")
        for identifier in volume_info.get("industryIdentifiers") or []
    }
    return identifiers.get("ISBN_13") or identifiers.get("ISBN_10") or ""


def _parse_volume(item: Dict[str, Any]) -> CandidateRecord:
    volume_info = item.get("volumeInfo") or {}
    title = volume_info.get("title") or ""
    if volume_info.get("subtitle"):
        title = f"{title}: {volume_info['subtitle']}"

    return CandidateRecord(
        title=title,
        authors=normalize_authors(volume_info.get("authors") or [], SOURCE_NAME),
        year=extract_year(volume_info.get("publishedDate")),
        publisher=volume_info.get("publisher") or "",
        url=volume_info.get("infoLink") or volume_info.get("canonicalVolumeLink") or volume_info.get("previewLink") or "",
        isbn=_isbn(volume_info),
        is_book=True,
        source=SOURCE_NAME,
        # pageCount は総ページ数なので pages には入れない
        original_data={
            "id": item.get("id"),
            "page_count": volume_info.get("pageCount"),
            "language": volume_info.get("language"),
            "volume_info": volume_info,
        }
    )


def parse_google_books_response(data: Dict[str, Any]) -> List[CandidateRecord]:
    """Parse Google Books volumes response"""
    items = (data or {}).get("items") or []
    return [
        _parse_volume(item) for item in items
        if (item.get("volumeInfo") or {}).get("title")
    ]


def build_query(title: str, author: str = "") -> str:
    """intitle:"..." inauthor:"..." """
    query = f'intitle:"{title}"'
    if author:
        query += f' inauthor:"{author}"'
    return query


class GoogleBooksService:
    """Google Books volumes search (書籍のみ)"""

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
        params = {
            'q': build_query(query, options.author),
            'printType': 'books',
            'maxResults': min(options.rows or self.settings.GOOGLE_BOOKS_MAX_RESULTS, 40),
        }
        data = await self.http.get_json(SOURCE_NAME, self.settings.GOOGLE_BOOKS_BASE_URL, params)
        records = parse_google_books_response(data)
        self.logger.info(f"Google Books: {len(records)} results for '{query}'")
        return records
