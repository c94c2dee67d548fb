from .citation import (
    BibliographicRecord,
    CandidateRecord,
    CitationStyle,
    Language,
    ParsedCitation,
    ProgressState,
    ScoredCandidate,
    SearchOptions,
    Similarities,
    VerificationResult,
    VerificationStatus,
)

__all__ = [
    "BibliographicRecord", "ParsedCitation", "CandidateRecord",
    "Similarities", "ScoredCandidate", "SearchOptions", "VerificationResult",
    "Language", "VerificationStatus", "ProgressState", "CitationStyle",
]
