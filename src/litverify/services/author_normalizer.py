"""
著者名の正規化

Display form and comparison form are kept separate: ``normalize_author_name``
produces the string shown to users ("G. A. Miller", "中沢新一"), while
``parse_name`` / ``comparison_key`` reduce a name to a surname plus given-name
tokens so that "Le Guin, U. K." and "Ursula K. Le Guin" compare equal.
"""
import logging
import re
from typing import Any, Iterable, List, NamedTuple, Optional, Tuple, Union

from rapidfuzz.distance import Levenshtein
from unidecode import unidecode

from .text_normalizer import JAPANESE_CHAR_RE

logger = logging.getLogger(__name__)

# Surname particles that stay attached to the family name
NAME_PARTICLES = {
    "de", "da", "das", "dos", "du", "del", "della", "der", "den", "van", "von",
    "le", "la", "mac", "mc", "st.", "san", "santa", "el", "al", "ben", "di",
}

BIRTH_YEAR = r"\d{4}-?\d*"

_ROLE_ANNOTATION = re.compile(r"\[[^\]]*\]")
_JA_DOT_BIRTH_YEAR = re.compile(rf"^([^・]+)・([^・]+)・{BIRTH_YEAR}$")
_JA_SLASH_BIRTH_YEAR = re.compile(rf"^([^／/]+)[／/]([^・]+)・{BIRTH_YEAR}$")
_COMMA_BIRTH_YEAR = re.compile(rf"^([^,]+),\s*([^,]+),\s*{BIRTH_YEAR}$")
_COMMA_NAME = re.compile(r"^([^,]+),\s*([^,]+)$")
_FAMILY_CAPS_INITIALS = re.compile(r"^([A-Z][A-Z'-]+(?:\s+[A-Z][A-Z'-]+)*)\s+((?:[A-Z]\.\s*){1,3})$")
_POSTFIX_PARTICLE = re.compile(
    r"^(?P<given>[^.]+\.?(?:\s*[A-Z]\.)*)\s+(?P<particle>de|von|van|del|della|du|le|la|al|ben|el|das|dos|da)\.?$",
    re.IGNORECASE,
)
_TRAILING_BIRTH_YEAR = re.compile(rf"\s*[・,]\s*{BIRTH_YEAR}$")
_JA_SPACED = re.compile(rf"^({JAPANESE_CHAR_RE.pattern}+)\s+({JAPANESE_CHAR_RE.pattern}+)$")

# "Hinton G. E." / "Shannon CE"
_SURNAME_THEN_INITIALS = re.compile(r"^(?P<surname>[A-Za-z][\w'-]*[a-z][\w'-]*)\s+(?P<initials>(?:[A-Z]\.\s*)+)$")
_SURNAME_THEN_CAPS = re.compile(r"^(?P<surname>[A-Za-z][\w'-]*[a-z][\w'-]*)\s+(?P<initials>[A-Z]{1,3})$")

AuthorInput = Union[str, dict]


def _is_japanese(text: str) -> bool:
    return JAPANESE_CHAR_RE.search(text) is not None


def _reorder_western(last: str, first: str) -> str:
    """'Saussure', 'F. de' -> 'F. de Saussure'"""
    postfix = _POSTFIX_PARTICLE.match(first.strip())
    if postfix:
        last = f"{postfix.group('particle')} {last}"
        first = postfix.group("given")
    return f"{first.strip()} {last.strip()}".strip()


def normalize_author_name(raw: str, source_hint: Optional[str] = None) -> str:
    """
    単一の著者名を表示用に正規化する

    Args:
        raw: 著者名 ("Miller, G. A.", "中沢・新一・1950-", "MILLER G. A." など)
        source_hint: 取得元のソース名 (ログ用)

    Returns:
        表示用の著者名。入力が空なら空文字列
    """
    if not raw or not isinstance(raw, str):
        return ""

    name = _ROLE_ANNOTATION.sub("", raw).strip()
    if not name:
        return ""

    match = _JA_DOT_BIRTH_YEAR.match(name)
    if match:
        return match.group(1) + match.group(2)

    match = _JA_SLASH_BIRTH_YEAR.match(name)
    if match:
        return match.group(1) + match.group(2)

    match = _COMMA_BIRTH_YEAR.match(name)
    if match:
        last, first = match.group(1).strip(), match.group(2).strip()
        if _is_japanese(name):
            return last + first
        return _reorder_western(last, first)

    match = _COMMA_NAME.match(name)
    if match:
        last, first = match.group(1).strip(), match.group(2).strip()
        if _is_japanese(name):
            return last + first
        result = _reorder_western(last, first)
        if source_hint:
            logger.debug(f"Reordered '{raw}' -> '{result}' ({source_hint})")
        return result

    match = _FAMILY_CAPS_INITIALS.match(name)
    if match:
        return f"{match.group(2).strip()} {match.group(1)}"

    name = _TRAILING_BIRTH_YEAR.sub("", name).strip()
    name = name.replace("／", "")
    if "・" in name and _is_japanese(name) and name.count("・") < 2:
        name = name.replace("・", "")
    if _JA_SPACED.match(name):
        name = re.sub(r"\s+", "", name)
    return re.sub(r"\s+", " ", name).strip()


def _author_to_string(author: Any) -> str:
    if isinstance(author, str):
        return author
    if isinstance(author, dict):
        if author.get("name"):
            return str(author["name"])
        if author.get("given") or author.get("family"):
            return f"{author.get('given') or ''} {author.get('family') or ''}".strip()
    return ""


def normalize_authors(raw_list: Union[None, str, Iterable[AuthorInput]], source_hint: Optional[str] = None) -> List[str]:
    """
    著者名リストを正規化する

    Accepts a ';'-separated string, a list of strings, or a list of objects
    with either ``name`` or ``given``/``family`` keys.
    """
    if not raw_list:
        return []
    if isinstance(raw_list, str):
        raw_list = re.split(r"[;；]", raw_list)

    names = []
    for author in raw_list:
        normalized = normalize_author_name(_author_to_string(author), source_hint)
        if normalized:
            names.append(normalized)
    return names


class NameKey(NamedTuple):
    surname: str
    given: Tuple[str, ...]


def _split_given(given: str) -> Tuple[str, ...]:
    # "G.A." -> "G. A."
    given = re.sub(r"\.(?=[A-Za-z])", ". ", given)
    given = _TRAILING_BIRTH_YEAR.sub("", given)
    tokens = [token.strip(".,").lower() for token in given.split()]
    return tuple(token for token in tokens if token)


def parse_name(name: str) -> NameKey:
    """
    Split a name into (surname, given tokens) for comparison.

    Japanese names are kept whole as the surname with separators removed.
    Western names are accent-folded; particles before the last token join
    the surname as long as one given token remains.
    """
    cleaned = _ROLE_ANNOTATION.sub("", name or "").strip()
    if not cleaned:
        return NameKey("", ())

    if _is_japanese(cleaned):
        cleaned = _TRAILING_BIRTH_YEAR.sub("", cleaned)
        return NameKey(re.sub(r"[・•,，、／/\s]", "", cleaned).lower(), ())

    cleaned = unidecode(cleaned).strip()

    if "," in cleaned:
        last, first = (part.strip() for part in cleaned.split(",", 1))
        postfix = _POSTFIX_PARTICLE.match(first)
        if postfix:
            last = f"{postfix.group('particle')} {last}"
            first = postfix.group("given")
        return NameKey(" ".join(last.lower().split()), _split_given(first))

    match = _FAMILY_CAPS_INITIALS.match(cleaned)
    if match:
        return NameKey(match.group(1).lower(), _split_given(match.group(2)))

    match = _SURNAME_THEN_INITIALS.match(cleaned)
    if match:
        return NameKey(match.group("surname").lower(), _split_given(match.group("initials")))

    match = _SURNAME_THEN_CAPS.match(cleaned)
    if match:
        return NameKey(match.group("surname").lower(), tuple(c.lower() for c in match.group("initials")))

    tokens = cleaned.split()
    surname_tokens = [tokens.pop()]
    while len(tokens) > 1 and tokens[-1].lower() in NAME_PARTICLES:
        surname_tokens.insert(0, tokens.pop())
    return NameKey(" ".join(surname_tokens).lower(), _split_given(" ".join(tokens)))


def split_display_name(name: str) -> Tuple[str, str]:
    """'Ursula K. Le Guin' -> ('Le Guin', 'Ursula K.'), case preserved"""
    name = (name or "").strip()
    if "," in name:
        last, first = name.split(",", 1)
        return last.strip(), first.strip()
    tokens = name.split()
    if len(tokens) < 2:
        return name, ""
    surname = [tokens.pop()]
    while len(tokens) > 1 and tokens[-1].lower() in NAME_PARTICLES:
        surname.insert(0, tokens.pop())
    return " ".join(surname), " ".join(tokens)


def comparison_key(name: str) -> str:
    """'Ursula K. Le Guin' / 'Le Guin, U. K.' -> 'u. k. le guin'"""
    key = parse_name(name)
    initials = " ".join(f"{token[0]}." for token in key.given)
    return f"{initials} {key.surname}".strip()


def _given_component_match(a: str, b: str) -> bool:
    if len(a) == 1 or len(b) == 1:
        return a[0] == b[0]
    return a == b


def is_same_author(name1: str, name2: str) -> bool:
    """
    Whether two author strings refer to the same person.

    Surnames must match exactly. Given names match when every token of the
    shorter list matches some token of the longer one, an initial matching
    any token with the same first letter.
    """
    if not name1 or not name2:
        return False

    japanese1, japanese2 = _is_japanese(name1), _is_japanese(name2)
    if japanese1 != japanese2:
        return False

    key1, key2 = parse_name(name1), parse_name(name2)
    if not key1.surname or not key2.surname:
        return False

    if japanese1:
        if key1.surname == key2.surname:
            return True
        # 異体字・誤字の許容
        return Levenshtein.normalized_similarity(key1.surname, key2.surname) * 100 >= 90

    if key1.surname != key2.surname:
        return False

    shorter, longer = sorted((key1.given, key2.given), key=len)
    return all(
        any(_given_component_match(token, other) for other in longer)
        for token in shorter
    )
