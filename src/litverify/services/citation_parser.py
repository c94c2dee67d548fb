"""
引用文字列の解析

raw string -> normalize -> detect language -> field extractors -> detect type
"""
import logging
from typing import Any, Dict, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.citation import ParsedCitation
from .citation_classifier import detect_language, detect_type
from .field_extractors import EXTRACTORS, OVERWRITABLE_FIELDS
from .text_normalizer import normalize

logger = logging.getLogger(__name__)


class CitationParser:
    """Rule-based parser turning one citation line into a ParsedCitation."""

    def __init__(self, settings: Optional[Settings] = None, logger: Optional[logging.Logger] = None):
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

    def parse(self, raw: str) -> ParsedCitation:
        """
        引用文字列を解析する

        Args:
            raw: 入力された引用文字列 (1行分)

        Returns:
            ParsedCitation。抽出できなかったフィールドは空文字列/空リスト
        """
        text = normalize(raw or "")
        if not text:
            return ParsedCitation(original_text=raw or "")

        language = detect_language(text, self.settings.JAPANESE_CHAR_RATIO)
        self.logger.debug(f"Detected language: {language} for '{text[:60]}'")

        fields: Dict[str, Any] = {}
        for name, extractor in EXTRACTORS:
            for key, value in extractor(text, language, fields).items():
                if key in OVERWRITABLE_FIELDS or not fields.get(key):
                    fields[key] = value

        decision = detect_type(text, fields, language)
        self.logger.debug(f"Record type: {decision.reason}")

        if decision.is_book_chapter:
            fields["is_book_chapter"] = True
        else:
            fields.pop("book_title", None)
            fields.pop("editors", None)
            if decision.is_book:
                fields["is_book"] = True
                fields.pop("journal", None)
            else:
                fields.pop("publisher", None)

        parsed = ParsedCitation(language=language, original_text=raw, **fields)
        self.logger.debug(
            f"Parsed: title='{parsed.title}', authors={parsed.authors}, year='{parsed.year}', "
            f"journal='{parsed.journal}', volume='{parsed.volume}', issue='{parsed.issue}', "
            f"pages='{parsed.pages}', publisher='{parsed.publisher}'"
        )
        return parsed


def parse_citation(
    raw: str,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> ParsedCitation:
    """Convenience wrapper around CitationParser.parse."""
    return CitationParser(settings=settings, logger=logger).parse(raw)
