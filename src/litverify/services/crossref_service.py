"""
Crossref REST API (/works)
"""
import logging
import re
from typing import Any, Dict, List, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import CandidateRecord, SearchOptions
from ..utils.errors import collaborator_boundary
from .author_normalizer import normalize_authors
from .http_client import HttpClient, RateLimiter

logger = logging.getLogger(__name__)

SOURCE_NAME = "Crossref"

BOOK_TYPES = {"book", "monograph", "edited-book", "reference-book", "book-set"}
CHAPTER_TYPES = {"book-chapter", "book-section", "book-part"}
BOOK_TYPE_FILTER = "type:book,type:book-chapter,type:monograph"


def _first(values: Any) -> str:
    if isinstance(values, list):
        return str(values[0]).strip() if values else ""
    return str(values or "").strip()


def _year_from_dates(item: Dict[str, Any]) -> str:
    for key in ("published", "published-print", "published-online", "issued", "created"):
        date_parts = (item.get(key) or {}).get("date-parts") or []
        if date_parts and date_parts[0] and date_parts[0][0]:
            return str(date_parts[0][0])
    return ""


def parse_crossref_item(item: Dict[str, Any]) -> CandidateRecord:
    """Convert one Crossref work into a CandidateRecord"""
    title = _first(item.get("title"))
    subtitle = _first(item.get("subtitle"))
    if subtitle and subtitle.lower() not in title.lower():
        title = f"{title}: {subtitle}"

    work_type = item.get("type") or ""
    is_chapter = work_type in CHAPTER_TYPES
    is_book = work_type in BOOK_TYPES
    container = _first(item.get("container-title"))

    doi = re.sub(r'^(doi:|https?://(dx\.)?doi\.org/)', '', item.get("DOI") or "", flags=re.IGNORECASE)

    return CandidateRecord(
        title=title,
        authors=normalize_authors(item.get("author") or [], SOURCE_NAME),
        editors=normalize_authors(item.get("editor") or [], SOURCE_NAME) if is_chapter else [],
        year=_year_from_dates(item),
        doi=doi,
        url=item.get("URL") or (f"https://doi.org/{doi}" if doi else ""),
        journal="" if (is_book or is_chapter) else container,
        volume=str(item.get("volume") or ""),
        issue=str(item.get("issue") or ""),
        pages=str(item.get("page") or item.get("article-number") or ""),
        publisher=item.get("publisher") or "",
        isbn=_first(item.get("ISBN")),
        is_book=is_book,
        is_book_chapter=is_chapter,
        book_title=container if is_chapter else "",
        source=SOURCE_NAME,
        original_data={"type": work_type, "item": item}
    )


def parse_crossref_response(data: Dict[str, Any]) -> List[CandidateRecord]:
    """Parse Crossref JSON response"""
    items = (data or {}).get("message", {}).get("items", [])
    return [parse_crossref_item(item) for item in items if _first(item.get("title"))]


class CrossrefService:
    """
    Crossref works search with a minimum interval between requests.

    Crossref asks clients to stay well below its rate limit, so every
    request made through this service goes through one RateLimiter.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        http_client: HttpClient,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.http = http_client
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)
        self.rate_limiter = rate_limiter or RateLimiter(
            self.settings.CROSSREF_MIN_INTERVAL, logger=self.logger
        )

    def _params(self, query: str, options: SearchOptions) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'query.bibliographic': query,
            'rows': options.rows or self.settings.CROSSREF_ROWS,
        }
        if options.author:
            params['query.author'] = options.author

        filters = []
        if options.journal:
            filters.append(f"container-title:{options.journal}")
        if options.book_only:
            filters.append(BOOK_TYPE_FILTER)
        if filters:
            params['filter'] = ",".join(filters)

        if self.settings.CONTACT_EMAIL:
            params['mailto'] = self.settings.CONTACT_EMAIL
        return params

    @collaborator_boundary(SOURCE_NAME)
    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[CandidateRecord]:
        options = options or SearchOptions()
        data = await self.http.get_json(
            SOURCE_NAME,
            self.settings.CROSSREF_BASE_URL,
            self._params(query, options),
            rate_limiter=self.rate_limiter
        )
        records = parse_crossref_response(data)
        self.logger.info(f"Crossref: {len(records)} results for '{query}'")
        return records

    @collaborator_boundary(SOURCE_NAME)
    async def get_work_by_doi(self, doi: str) -> Optional[CandidateRecord]:
        """
        DOI から直接レコードを取得する

        Returns:
            CandidateRecord。DOI が登録されていなければ None
        """
        doi = re.sub(r'^(doi:\s*|https?://(dx\.)?doi\.org/)', '', doi.strip(), flags=re.IGNORECASE)
        if not doi:
            return None
        params = {'mailto': self.settings.CONTACT_EMAIL} if self.settings.CONTACT_EMAIL else None
        data = await self.http.get_json(
            SOURCE_NAME,
            f"{self.settings.CROSSREF_BASE_URL}/{doi}",
            params,
            rate_limiter=self.rate_limiter,
            not_found_ok=True
        )
        if not data or not data.get("message"):
            self.logger.info(f"Crossref: DOI {doi} not found")
            return None
        return parse_crossref_item(data["message"])
