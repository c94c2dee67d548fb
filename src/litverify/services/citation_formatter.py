import html
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..schemas.citation import BibliographicRecord, ParsedCitation
from ..utils.errors import validate_style
from .author_normalizer import split_display_name
from .field_extractors import ET_AL, split_subtitle

AUTHOR_UNKNOWN = "[Author unknown]"
PUBLISHER_UNKNOWN = "[Publisher unknown]"
TITLE_UNKNOWN = "[Title unknown]"
NO_DATE = "n.d."


@dataclass
class CitationData:
    """Fields to render: the candidate's values, falling back to the parsed ones."""
    kind: str
    japanese: bool
    title: str
    authors: List[str]
    has_et_al: bool
    year: str
    journal: str = ""
    volume: str = ""
    issue: str = ""
    pages: str = ""
    publisher: str = ""
    book_title: str = ""
    editors: List[str] = field(default_factory=list)
    doi: str = ""


class Markup:
    """Wraps rendered fields; plain text unless ``highlight`` is set."""

    def __init__(self, matches: Optional[Dict[str, Optional[bool]]] = None, highlight: bool = False,
                 japanese: bool = False):
        self.matches = matches or {}
        self.highlight = highlight
        self.japanese = japanese

    def __call__(self, text: str, key: Optional[str] = None, italic: bool = False) -> str:
        if not self.highlight:
            return text
        out = html.escape(text, quote=False)
        # 和文ではイタリックを使わない
        if italic and not self.japanese:
            out = f"<em>{out}</em>"
        if key and self.matches.get(key) is not None:
            css_class = "match" if self.matches[key] else "mismatch"
            out = f'<span class="{css_class}">{out}</span>'
        return out


def build_citation_data(parsed: ParsedCitation, candidate: Optional[BibliographicRecord] = None) -> CitationData:
    """Search result first, parsed input only as a fallback."""
    source = candidate or parsed
    authors = list(source.authors or parsed.authors)
    has_et_al = any(a.strip().lower() == ET_AL for a in authors)
    authors = [a for a in authors if a.strip().lower() != ET_AL]
    kind = parsed.record_type

    return CitationData(
        kind=kind,
        japanese=parsed.language == "japanese",
        title=(
            (candidate.title if candidate else "") or parsed.title_with_subtitle or parsed.title or TITLE_UNKNOWN
        ),
        authors=authors,
        has_et_al=has_et_al,
        year=source.year or parsed.year,
        journal=source.journal or parsed.journal,
        volume=source.volume or (parsed.volume if candidate is None else ""),
        issue=source.issue or (parsed.issue if candidate is None else ""),
        pages=source.pages or (parsed.pages if candidate is None else ""),
        publisher=source.publisher or parsed.publisher,
        book_title=source.book_title or (source.journal if kind == "book-chapter" else "") or parsed.book_title,
        editors=list(source.editors or parsed.editors),
        doi=re.sub(r"^doi:\s*", "", source.doi or parsed.doi, flags=re.IGNORECASE),
    )


# ---------------------------------------------------------------------------
# author lists
# ---------------------------------------------------------------------------

def _japanese_authors(authors: List[str], has_et_al: bool) -> str:
    clean = [re.sub(r"[,，・•&;]", "", a).strip() for a in authors]
    clean = [a for a in clean if a]
    if not clean:
        return AUTHOR_UNKNOWN
    if len(clean) <= 3 and not has_et_al:
        return "・".join(clean)
    return f"{clean[0]}・他"


def _apa_name(name: str) -> str:
    surname, given = split_display_name(name)
    if not given:
        return surname
    initials = " ".join(
        "-".join(f"{part[0].upper()}." for part in token.split("-") if part)
        for token in given.split()
    )
    return f"{surname}, {initials}"


def _inverted_name(name: str) -> str:
    surname, given = split_display_name(name)
    return f"{surname}, {given}" if given else surname


def _natural_name(name: str) -> str:
    if "," not in name:
        return name
    surname, given = split_display_name(name)
    return f"{given} {surname}".strip()


def format_apa_authors(authors: List[str], has_et_al: bool = False) -> str:
    names = [_apa_name(a) for a in authors]
    if has_et_al:
        return ", ".join(names) + ", et al."
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]}, & {names[1]}"
    if len(names) <= 20:
        return ", ".join(names[:-1]) + f", & {names[-1]}"
    return ", ".join(names[:19]) + f", ... {names[-1]}"


def format_mla_authors(authors: List[str], has_et_al: bool = False) -> str:
    first = _inverted_name(authors[0])
    if len(authors) == 1 and not has_et_al:
        return first
    if len(authors) == 2 and not has_et_al:
        return f"{first}, and {_natural_name(authors[1])}"
    return f"{first}, et al."


def format_chicago_authors(authors: List[str], has_et_al: bool = False) -> str:
    first = _inverted_name(authors[0])
    if len(authors) == 1 and not has_et_al:
        return first
    if len(authors) <= 3 and not has_et_al:
        rest = [_natural_name(a) for a in authors[1:]]
        return ", ".join([first] + rest[:-1]) + f", and {rest[-1]}"
    return f"{first} et al."


def _authors(data: CitationData, m: Markup, english_formatter: Callable[[List[str], bool], str]) -> str:
    if not data.authors:
        return m(AUTHOR_UNKNOWN, "authors")
    if data.japanese:
        return m(_japanese_authors(data.authors, data.has_et_al), "authors")
    return m(english_formatter(data.authors, data.has_et_al), "authors")


def _editors(data: CitationData) -> str:
    if data.japanese:
        return "・".join(data.editors)
    names = [_natural_name(e) for e in data.editors]
    if len(names) <= 2:
        return " & ".join(names)
    return ", ".join(names[:-1]) + f", & {names[-1]}"


def _sentence(text: str) -> str:
    return text if text.endswith(".") else f"{text}."


def _doi(data: CitationData) -> str:
    return f" https://doi.org/{data.doi}" if data.doi else ""


def _title(data: CitationData, m: Markup, italic: bool = False) -> str:
    # main title and subtitle are marked separately once both were compared
    if m.highlight and m.matches.get("subtitle") is not None:
        main, separator, subtitle = split_subtitle(data.title)
        if subtitle:
            return f"{m(main, 'title', italic)}{m(separator)}{m(subtitle, 'subtitle', italic)}"
    return m(data.title, "title", italic)


def _publisher(data: CitationData, m: Markup) -> str:
    return m(data.publisher, "publisher") if data.publisher else m(PUBLISHER_UNKNOWN, "publisher")


# ---------------------------------------------------------------------------
# styles
# ---------------------------------------------------------------------------

def format_apa(data: CitationData, m: Markup) -> str:
    """Format citation in APA style"""
    year = m(data.year or NO_DATE, "year")
    citation = f"{_authors(data, m, format_apa_authors)} ({year})."

    if data.kind == "book":
        if data.japanese:
            citation += f" 『{_title(data, m)}』 {_publisher(data, m)}."
        else:
            citation += f" {_title(data, m, italic=True)}. {_publisher(data, m)}."
    elif data.kind == "book-chapter":
        citation += f" {_title(data, m)}."
        book = m(data.book_title, "book_title", italic=True) if data.book_title else ""
        if data.japanese:
            editors = f"{_editors(data)}編" if data.editors else ""
            citation += f" {editors}『{book}』"
            if data.pages:
                citation += f" {m(data.pages, 'pages')}頁"
            citation += f", {_publisher(data, m)}."
        else:
            citation += " In "
            if data.editors:
                label = "Ed." if len(data.editors) == 1 else "Eds."
                citation += f"{_editors(data)} ({label}), "
            citation += book
            if data.pages:
                citation += f" (pp. {m(data.pages, 'pages')})"
            citation += f". {_publisher(data, m)}."
    else:
        citation += f" {_title(data, m)}."
        source = []
        if data.journal:
            source.append(m(data.journal, "journal", italic=True))
        if data.volume:
            volume = m(data.volume, "volume", italic=True)
            if data.issue:
                volume += f"({m(data.issue, 'issue')})"
            source.append(volume)
        if data.pages:
            source.append(m(data.pages, "pages"))
        if source:
            citation += f" {', '.join(source)}."

    return citation + _doi(data)


def format_mla(data: CitationData, m: Markup) -> str:
    """Format citation in MLA style"""
    citation = _sentence(_authors(data, m, format_mla_authors))
    year = m(data.year or NO_DATE, "year")

    if data.kind == "book":
        title = f"『{_title(data, m)}』" if data.japanese else _title(data, m, italic=True)
        citation += f" {title}. {_publisher(data, m)}, {year}."
    elif data.kind == "book-chapter":
        citation += f' "{_title(data, m)}."'
        if data.book_title:
            if data.japanese:
                citation += f" 『{m(data.book_title, 'book_title')}』"
            else:
                citation += f" {m(data.book_title, 'book_title', italic=True)}"
            citation += ","
        if data.editors:
            citation += f" edited by {_editors(data)},"
        citation += f" {_publisher(data, m)}, {year}"
        if data.pages:
            citation += f", pp. {m(data.pages, 'pages')}"
        citation += "."
    else:
        citation += f' "{_title(data, m)}."'
        container = []
        if data.journal:
            container.append(m(data.journal, "journal", italic=True))
        if data.volume:
            container.append(f"vol. {m(data.volume, 'volume')}")
            if data.issue:
                container.append(f"no. {m(data.issue, 'issue')}")
        container.append(year)
        if data.pages:
            container.append(f"pp. {m(data.pages, 'pages')}")
        citation += f" {', '.join(container)}."

    return citation + _doi(data)


def format_chicago(data: CitationData, m: Markup) -> str:
    """Format citation in Chicago style"""
    citation = _sentence(_authors(data, m, format_chicago_authors))
    year = m(data.year or NO_DATE, "year")

    if data.kind == "book":
        title = f"『{_title(data, m)}』" if data.japanese else _title(data, m, italic=True)
        citation += f" {title}. {_publisher(data, m)}, {year}."
    elif data.kind == "book-chapter":
        citation += f' "{_title(data, m)}."'
        if data.book_title:
            if data.japanese:
                citation += f" 『{m(data.book_title, 'book_title')}』"
            else:
                citation += f" In {m(data.book_title, 'book_title', italic=True)}"
        if data.editors:
            citation += f", edited by {_editors(data)}"
        if data.pages:
            citation += f", {m(data.pages, 'pages')}"
        citation += f". {_publisher(data, m)}, {year}."
    else:
        citation += f' "{_title(data, m)}."'
        source = m(data.journal, "journal", italic=True) if data.journal else ""
        if data.volume:
            source = f"{source} {m(data.volume, 'volume')}".strip()
            if data.issue:
                source += f", no. {m(data.issue, 'issue')}"
        if source:
            citation += f" {source}"
        citation += f" ({year})"
        if data.pages:
            citation += f": {m(data.pages, 'pages')}"
        citation += "."

    return citation + _doi(data)


# Registry of citation formatters
CITATION_STYLES: Dict[str, Callable[[CitationData, Markup], str]] = {
    "apa": format_apa,
    "mla": format_mla,
    "chicago": format_chicago,
}


def render(
    parsed: ParsedCitation,
    candidate: Optional[BibliographicRecord] = None,
    style: str = "apa",
    field_matches: Optional[Dict[str, Optional[bool]]] = None,
    highlight: bool = False,
) -> str:
    """
    引用文字列を生成する

    Args:
        parsed: 入力から解析した引用情報 (種別・言語の判定に使う)
        candidate: 最も可能性の高い候補。None なら入力情報のみで生成
        style: 'apa' / 'mla' / 'chicago'
        field_matches: フィールドごとの一致判定 (highlight 時のみ使用)
        highlight: True なら HTML (<span class="match|mismatch">, <em>) を出力

    Raises:
        ValidationError: 未対応のスタイル
    """
    style = validate_style(style, CITATION_STYLES)
    data = build_citation_data(parsed, candidate)
    markup = Markup(field_matches, highlight=highlight, japanese=data.japanese)
    return CITATION_STYLES[style](data, markup)


def get_available_styles() -> List[str]:
    """Get list of available citation styles"""
    return list(CITATION_STYLES.keys())
