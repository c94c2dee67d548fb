from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Language = Literal["japanese", "english"]
VerificationStatus = Literal["found", "similar", "not_found"]
ProgressState = Literal["searching", "completed", "error"]
CitationStyle = Literal["apa", "mla", "chicago"]


class BibliographicRecord(BaseModel):
    """Fields shared by parsed citations and candidate records."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    authors: List[str] = Field(default_factory=list)
    editors: List[str] = Field(default_factory=list)
    year: str = ""
    doi: str = ""
    url: str = ""
    journal: str = ""
    volume: str = ""
    issue: str = ""
    pages: str = ""
    publisher: str = ""

    # 種別（どちらもFalseなら論文）
    is_book: bool = False
    is_book_chapter: bool = False
    book_title: str = ""

    @field_validator("authors", "editors")
    @classmethod
    def validate_names(cls, v: List[str]) -> List[str]:
        return [name.strip() for name in v if name and name.strip()]

    @model_validator(mode="after")
    def validate_record_type(self) -> "BibliographicRecord":
        if self.is_book and self.is_book_chapter:
            raise ValueError("A record cannot be both a book and a book chapter")
        return self

    @property
    def record_type(self) -> str:
        if self.is_book_chapter:
            return "book-chapter"
        if self.is_book:
            return "book"
        return "article"


class ParsedCitation(BibliographicRecord):
    """Structured fields extracted from one raw citation line."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title_with_subtitle: str = ""
    language: Language = "english"
    original_text: str = ""


class CandidateRecord(BibliographicRecord):
    """A bibliographic entry returned by an external search source."""

    source: str
    isbn: str = ""
    original_data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw source payload, kept for traceability only"
    )


class Similarities(BaseModel):
    """Per-field similarity on a 0-100 scale; None when the field is absent on either side."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[float] = None
    author: Optional[float] = None
    year: Optional[float] = None
    journal: Optional[float] = None
    publisher: Optional[float] = None


class ScoredCandidate(CandidateRecord):
    similarities: Similarities = Field(default_factory=Similarities)
    overall_score: Annotated[float, Field(ge=0.0, le=100.0)] = 0.0


class SearchOptions(BaseModel):
    """Narrowing options understood by search collaborators."""

    author: str = ""
    journal: str = ""
    book_only: bool = False
    rows: Optional[int] = None


class SearchLink(BaseModel):
    """A manual search page for one database, already filled with a query."""
    name: str
    url: str


class VerificationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    original_text: str
    parsed_info: ParsedCitation
    ranked_candidates: List[ScoredCandidate] = Field(default_factory=list)
    most_likely_candidate: Optional[ScoredCandidate] = None
    status: VerificationStatus = "not_found"
    rendered_citation: str = ""
    highlighted_citation: str = ""
    field_matches: Dict[str, Optional[bool]] = Field(default_factory=dict)
    source_errors: List[str] = Field(default_factory=list)
    search_links: List[SearchLink] = Field(default_factory=list)


class VerificationSummary(BaseModel):
    """Status counts over a batch of results."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    found: int = 0
    similar: int = 0
    not_found: int = 0

    @property
    def total(self) -> int:
        return self.found + self.similar + self.not_found
