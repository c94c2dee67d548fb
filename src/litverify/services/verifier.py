"""
引用の検証

parse -> search the planned sources one after another -> rank -> render.
A failing source is reported through the progress callback and skipped; it
never aborts the other sources or the other lines.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import (
    CandidateRecord,
    ParsedCitation,
    ProgressState,
    VerificationResult,
    VerificationSummary,
)
from ..types import ProgressCallback, SearchSourceProtocol, ServiceError
from ..utils.errors import validate_style
from .candidate_scorer import CandidateScorer
from .cinii_service import CiNiiService
from .citation_formatter import CITATION_STYLES, render
from .citation_parser import CitationParser
from .crossref_service import CrossrefService
from .google_books_service import GoogleBooksService
from .http_client import HttpClient
from .ndl_service import NDLService
from .search_strategy import SearchStrategy, plan_sources, search_links
from .semantic_scholar_service import SemanticScholarService

logger = logging.getLogger(__name__)


def build_default_sources(
    http_client: HttpClient,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> List[SearchSourceProtocol]:
    """Every built-in search source, sharing one HttpClient"""
    return [
        CrossrefService(http_client, settings, logger),
        SemanticScholarService(http_client, settings, logger),
        CiNiiService(http_client, settings, logger),
        NDLService(http_client, settings, logger),
        GoogleBooksService(http_client, settings, logger),
    ]


class CitationVerifier:
    """Verifies citation lines against the configured search sources."""

    def __init__(
        self,
        sources: Iterable[SearchSourceProtocol],
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)
        self.sources = {source.name: source for source in sources}
        self.parser = CitationParser(self.settings, self.logger)
        self.scorer = CandidateScorer(self.settings, self.logger)
        self.strategy = SearchStrategy(self.settings, self.logger)

    def _report(
        self,
        on_progress: Optional[ProgressCallback],
        source: str,
        state: ProgressState,
        count: Optional[int] = None,
    ) -> None:
        if on_progress:
            on_progress(source, state, count)

    def _malformed_result(self, line: str, parsed: ParsedCitation, style: str) -> VerificationResult:
        raw = (line or "").strip()
        self.logger.info(f"No title could be extracted, skipping search: '{raw[:60]}'")
        parsed = parsed.model_copy(update={"title": raw, "title_with_subtitle": raw})
        return VerificationResult(
            original_text=line or "",
            parsed_info=parsed,
            status="not_found",
            rendered_citation=render(parsed, None, style),
            highlighted_citation=render(parsed, None, style, highlight=True),
            search_links=search_links(parsed),
        )

    async def search_all(
        self,
        parsed: ParsedCitation,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[List[CandidateRecord], List[str]]:
        """
        計画された順にソースを検索する

        Returns:
            (候補のプール, 失敗したソース名のリスト)
        """
        pool: List[CandidateRecord] = []
        errors: List[str] = []

        for name in plan_sources(parsed):
            source = self.sources.get(name)
            if source is None:
                self.logger.debug(f"Source {name} is not configured, skipping")
                continue

            self._report(on_progress, name, "searching")
            try:
                records = await self.strategy.search_source(source, parsed)
            except ServiceError as e:
                self.logger.error(f"{name} search failed: {e}")
                errors.append(name)
                self._report(on_progress, name, "error")
                continue
            except Exception as e:
                # third-party sources need not raise ServiceError
                self.logger.error(f"{name} search failed unexpectedly: {e}", exc_info=True)
                errors.append(name)
                self._report(on_progress, name, "error")
                continue

            pool.extend(records)
            self._report(on_progress, name, "completed", len(records))

        return pool, errors

    async def verify(
        self,
        line: str,
        style: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> VerificationResult:
        """
        1行の引用を検証する

        Args:
            line: 引用文字列
            style: 'apa' / 'mla' / 'chicago' (省略時は設定の DEFAULT_STYLE)
            on_progress: (ソース名, 'searching'|'completed'|'error', 件数) を受け取るコールバック

        Returns:
            VerificationResult

        Raises:
            ValidationError: 未対応のスタイル
        """
        style = validate_style(style or self.settings.DEFAULT_STYLE, CITATION_STYLES)
        parsed = self.parser.parse(line)
        if not parsed.title:
            return self._malformed_result(line, parsed, style)

        pool, errors = await self.search_all(parsed, on_progress)

        ranked = self.scorer.rank(parsed, pool)
        top = ranked[0] if ranked else None
        status = self.scorer.decide_status(top)
        matches = self.scorer.field_matches(parsed, top) if top else {}
        self.logger.info(
            f"'{parsed.title[:50]}': {status}"
            + (f" ({top.overall_score} via {top.source})" if top else "")
        )

        return VerificationResult(
            original_text=line,
            parsed_info=parsed,
            ranked_candidates=ranked,
            most_likely_candidate=top,
            status=status,
            rendered_citation=render(parsed, top, style),
            highlighted_citation=render(parsed, top, style, matches, highlight=True),
            field_matches=matches,
            source_errors=errors,
            search_links=search_links(parsed),
        )

    async def verify_many(
        self,
        lines: Iterable[str],
        style: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[VerificationResult]:
        """空行を除く各行を順番に検証する"""
        results = []
        for line in lines:
            if not line.strip():
                continue
            results.append(await self.verify(line, style, on_progress))
        return results


def summarize(results: Iterable[VerificationResult]) -> VerificationSummary:
    """found / similar / not_found の件数を集計する"""
    summary = VerificationSummary()
    for result in results:
        if result.status == "found":
            summary.found += 1
        elif result.status == "similar":
            summary.similar += 1
        else:
            summary.not_found += 1
    return summary


async def verify(
    line: str,
    style: str = "apa",
    on_progress: Optional[ProgressCallback] = None,
    settings: Optional[Settings] = None,
) -> VerificationResult:
    """Verify one citation line with the built-in sources and a fresh HTTP session."""
    settings = settings or default_settings
    async with HttpClient(settings) as http_client:
        verifier = CitationVerifier(build_default_sources(http_client, settings), settings)
        return await verifier.verify(line, style, on_progress)
