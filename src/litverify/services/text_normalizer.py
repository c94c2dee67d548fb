"""
引用文字列の正規化

Full-width Japanese punctuation is folded into half-width equivalents so the
extractors only need one set of patterns. 「」 and 『』 are kept: they are the
only markers that separate an article title from a book or journal title in
Japanese citations.
"""
import re
import unicodedata
from typing import List, Tuple

# Hiragana, katakana, CJK unified ideographs and the iteration mark 々
JAPANESE_CHARS = "\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\u3005"
JAPANESE_CHAR_RE = re.compile(f"[{JAPANESE_CHARS}]")
KATAKANA_CHARS = "\u30A0-\u30FF"

_PUNCTUATION_MAP: List[Tuple[str, str]] = [
    ("、", ", "),
    ("，", ", "),
    ("。", ". "),
    ("．", ". "),
    ("：", ": "),
    ("；", "; "),
    ("（", " ("),
    ("）", ") "),
    ("［", " ["),
    ("］", "] "),
    ("“", '"'),
    ("”", '"'),
    ("„", '"'),
    ("‘", "'"),
    ("’", "'"),
    ("　", " "),
]

# 既知の誤記・表記ゆれ
COMMON_ERRORS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"創ー"), "創一"),
    (re.compile(r"(?:第\s*)?(\d+)\s*巻\s*(?:第\s*)?(\d+)\s*号"), r"\1(\2)"),
]

_SPACE_BEFORE_CLOSER = re.compile(r"\s+([,.;:)\]」』])")
_SPACE_AFTER_OPENER = re.compile(r"([(\[「『])\s+")
_WHITESPACE = re.compile(r"\s+")

# Leading bullets or list numbering: "•", "1.", "[12]", "3)"
_LIST_MARKER = re.compile(r"^(?:\s*(?:[•·・*\-–]+|\[\d{1,3}\]|\d{1,3}[.)](?=\s)))+\s*")

_DASHES = re.compile(r"\s*[-‐‑–—−―]\s*")


def _fold_punctuation(text: str) -> str:
    for full_width, half_width in _PUNCTUATION_MAP:
        text = text.replace(full_width, half_width)
    return text


def fix_common_errors(text: str) -> str:
    for pattern, replacement in COMMON_ERRORS:
        text = pattern.sub(replacement, text)
    return text


def strip_list_marker(text: str) -> str:
    return _LIST_MARKER.sub("", text)


def normalize(raw: str) -> str:
    """
    引用文字列を正規化する

    Args:
        raw: 入力された引用文字列

    Returns:
        正規化後の文字列。normalize(normalize(s)) == normalize(s)
    """
    if not raw:
        return ""

    text = _fold_punctuation(raw)
    # Full-width letters/digits, half-width katakana and similar variants.
    # NFKC can itself produce 、 and 。 from their half-width forms.
    text = _fold_punctuation(unicodedata.normalize("NFKC", text))
    text = fix_common_errors(text)

    text = _WHITESPACE.sub(" ", text)
    text = _SPACE_BEFORE_CLOSER.sub(r"\1", text)
    text = _SPACE_AFTER_OPENER.sub(r"\1", text)

    text = strip_list_marker(text)
    return text.strip()


def normalize_page_range(pages: str) -> str:
    """'128 – 138' -> '128-138'"""
    return _DASHES.sub("-", pages.strip())


def contains_japanese(text: str) -> bool:
    return bool(text) and JAPANESE_CHAR_RE.search(text) is not None
