"""
Test end-to-end verification with in-memory search sources
"""
import pytest

from litverify.core.config import Settings
from litverify.schemas.citation import CandidateRecord, ParsedCitation, VerificationResult
from litverify.services import verifier as verifier_module
from litverify.services.verifier import CitationVerifier, summarize
from litverify.types import CollaboratorError, ValidationError

LINE = "Smith, J. (2020). Machine learning in healthcare. Journal of Medical Research, 45(3), 123-145."

EXACT = CandidateRecord(
    source="Crossref",
    title="Machine learning in healthcare",
    authors=["John Smith"],
    year="2020",
    journal="Journal of Medical Research",
    volume="45",
    issue="3",
    pages="123-145",
    doi="10.1000/jmr.45.3",
)


class FakeSource:
    def __init__(self, name, records=None, error=None):
        self.name = name
        self.records = records or []
        self.error = error
        self.calls = []

    async def search(self, query, options=None):
        self.calls.append(query)
        if self.error:
            raise self.error
        return list(self.records)


class ProgressLog:
    def __init__(self):
        self.events = []

    def __call__(self, source, state, count):
        self.events.append((source, state, count))


def make_verifier(*sources):
    return CitationVerifier(sources, Settings())


@pytest.mark.asyncio
async def test_exact_match_is_found():
    crossref = FakeSource("Crossref", [EXACT])
    result = await make_verifier(crossref, FakeSource("Semantic Scholar"), FakeSource("CiNii")).verify(LINE, "apa")

    assert result.status == "found"
    assert result.most_likely_candidate.doi == "10.1000/jmr.45.3"
    assert result.most_likely_candidate.overall_score == 100.0
    assert result.rendered_citation == (
        "Smith, J. (2020). Machine learning in healthcare. Journal of Medical Research, 45(3), 123-145."
        " https://doi.org/10.1000/jmr.45.3"
    )
    assert '<span class="match">' in result.highlighted_citation
    assert result.field_matches["title"] is True
    assert result.source_errors == []


@pytest.mark.asyncio
async def test_nothing_found():
    result = await make_verifier(FakeSource("Crossref"), FakeSource("Semantic Scholar")).verify(LINE)

    assert result.status == "not_found"
    assert result.most_likely_candidate is None
    assert result.ranked_candidates == []
    assert result.rendered_citation.startswith("Smith, J. (2020). Machine learning in healthcare.")


@pytest.mark.asyncio
async def test_progress_follows_source_order():
    progress = ProgressLog()
    sources = [FakeSource("CiNii"), FakeSource("Semantic Scholar"), FakeSource("Crossref", [EXACT])]

    await make_verifier(*sources).verify(LINE, "apa", progress)

    assert progress.events == [
        ("Crossref", "searching", None),
        ("Crossref", "completed", 1),
        ("Semantic Scholar", "searching", None),
        ("Semantic Scholar", "completed", 0),
        ("CiNii", "searching", None),
        ("CiNii", "completed", 0),
    ]


@pytest.mark.asyncio
async def test_failing_source_does_not_stop_the_others():
    progress = ProgressLog()
    broken = FakeSource("Semantic Scholar", error=CollaboratorError("down", service="Semantic Scholar"))
    cinii = FakeSource("CiNii")

    result = await make_verifier(FakeSource("Crossref", [EXACT]), broken, cinii).verify(LINE, "apa", progress)

    assert ("Semantic Scholar", "error", None) in progress.events
    assert ("CiNii", "completed", 0) in progress.events
    assert cinii.calls
    assert result.source_errors == ["Semantic Scholar"]
    assert result.status == "found"


@pytest.mark.asyncio
async def test_unconfigured_sources_are_skipped():
    progress = ProgressLog()
    await make_verifier(FakeSource("Crossref")).verify(LINE, "apa", progress)

    assert {source for source, _, _ in progress.events} == {"Crossref"}


@pytest.mark.asyncio
async def test_line_without_title_is_not_searched():
    crossref = FakeSource("Crossref", [EXACT])
    progress = ProgressLog()

    result = await make_verifier(crossref).verify("2020", "apa", progress)

    assert result.status == "not_found"
    assert crossref.calls == []
    assert progress.events == []
    assert result.parsed_info.title == "2020"
    assert result.rendered_citation


@pytest.mark.asyncio
async def test_unknown_style_is_rejected():
    with pytest.raises(ValidationError):
        await make_verifier(FakeSource("Crossref")).verify(LINE, "vancouver")


@pytest.mark.asyncio
async def test_verify_many_skips_blank_lines():
    crossref = FakeSource("Crossref", [EXACT])
    results = await make_verifier(crossref).verify_many(["", LINE, "   ", LINE], "mla")

    assert len(results) == 2
    assert all(r.status == "found" for r in results)
    assert results[0].rendered_citation.startswith('Smith, John. "Machine learning in healthcare."')


@pytest.mark.asyncio
async def test_module_level_verify(monkeypatch):
    crossref = FakeSource("Crossref", [EXACT])
    monkeypatch.setattr(verifier_module, "build_default_sources", lambda http_client, settings: [crossref])

    result = await verifier_module.verify(LINE, "chicago", settings=Settings())

    assert result.status == "found"
    assert crossref.calls
    assert result.rendered_citation.startswith('Smith, John. "Machine learning in healthcare."')


def test_result_serializes_with_camel_case_aliases():
    result = VerificationResult(original_text=LINE, parsed_info=ParsedCitation(title="T", is_book=True))
    dumped = result.model_dump(by_alias=True)

    assert dumped["originalText"] == LINE
    assert dumped["parsedInfo"]["isBook"] is True
    assert dumped["mostLikelyCandidate"] is None


@pytest.mark.asyncio
async def test_unexpected_source_exception_is_contained():
    progress = ProgressLog()
    broken = FakeSource("Crossref", error=RuntimeError("boom"))
    scholar = FakeSource("Semantic Scholar", [EXACT])

    result = await make_verifier(broken, scholar).verify(LINE, "apa", progress)

    assert ("Crossref", "error", None) in progress.events
    assert ("Semantic Scholar", "completed", 1) in progress.events
    assert scholar.calls
    assert result.source_errors == ["Crossref"]
    assert result.status == "found"


@pytest.mark.asyncio
async def test_result_carries_manual_search_links():
    result = await make_verifier(FakeSource("Crossref")).verify(LINE, "apa")

    assert [link.name for link in result.search_links] == ["Crossref", "Google Scholar", "PubMed", "CiNii"]
    assert result.search_links[0].url.startswith("https://search.crossref.org/")


def test_summarize_counts_statuses():
    parsed = ParsedCitation(title="T")
    results = [
        VerificationResult(original_text=status, parsed_info=parsed, status=status)
        for status in ("found", "similar", "not_found", "found")
    ]
    summary = summarize(results)

    assert (summary.found, summary.similar, summary.not_found) == (2, 1, 1)
    assert summary.total == 4
    assert summary.model_dump(by_alias=True)["notFound"] == 1
