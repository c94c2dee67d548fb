"""Parse free-text citations and match them against bibliographic databases."""
from .schemas.citation import (
    CandidateRecord,
    ParsedCitation,
    ScoredCandidate,
    SearchLink,
    VerificationResult,
    VerificationSummary,
)
from .services.citation_formatter import get_available_styles, render
from .services.citation_parser import CitationParser, parse_citation
from .services.http_client import HttpClient, RateLimiter
from .services.search_strategy import search_links
from .services.verifier import CitationVerifier, build_default_sources, summarize, verify
from .types import CollaboratorError, ExternalAPIError, ServiceError, ValidationError

__version__ = "0.1.0"

__all__ = [
    "CandidateRecord", "ParsedCitation", "ScoredCandidate", "VerificationResult",
    "SearchLink", "VerificationSummary",
    "CitationParser", "parse_citation", "render", "get_available_styles",
    "HttpClient", "RateLimiter",
    "CitationVerifier", "build_default_sources", "verify", "summarize", "search_links",
    "ServiceError", "ValidationError", "ExternalAPIError", "CollaboratorError",
]
