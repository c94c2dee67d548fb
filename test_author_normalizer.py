"""
Test author name normalization and comparison
"""
import pytest

from litverify.services.author_normalizer import (
    comparison_key,
    is_same_author,
    normalize_author_name,
    normalize_authors,
    parse_name,
    split_display_name,
)


@pytest.mark.parametrize("raw,expected", [
    ("Miller, G. A.", "G. A. Miller"),
    ("MILLER G. A.", "G. A. MILLER"),
    ("中沢・新一・1950-", "中沢新一"),
    ("中沢, 新一, 1950-", "中沢新一"),
    ("Saussure, F. de", "F. de Saussure"),
    ("[編集] 田中 太郎", "田中太郎"),
    ("Geoffrey  Hinton", "Geoffrey Hinton"),
    ("", ""),
])
def test_normalize_author_name(raw, expected):
    assert normalize_author_name(raw) == expected


def test_normalize_authors_accepts_objects():
    authors = [{"name": "Geoffrey Hinton"}, {"given": "Yann", "family": "LeCun"}, {}]
    assert normalize_authors(authors) == ["Geoffrey Hinton", "Yann LeCun"]


def test_normalize_authors_accepts_semicolon_string():
    assert normalize_authors("Miller, G. A.; Chomsky, N.") == ["G. A. Miller", "N. Chomsky"]
    assert normalize_authors(None) == []


def test_comparison_key_handles_particles():
    assert comparison_key("Ursula K. Le Guin") == "u. k. le guin"
    assert comparison_key("Le Guin, U. K.") == "u. k. le guin"


def test_parse_name_folds_accents():
    assert parse_name("José García") == parse_name("Jose Garcia")


def test_split_display_name():
    assert split_display_name("Ursula K. Le Guin") == ("Le Guin", "Ursula K.")
    assert split_display_name("Smith, John") == ("Smith", "John")
    assert split_display_name("Plato") == ("Plato", "")


@pytest.mark.parametrize("a,b", [
    ("Miller, G. A.", "G. A. Miller"),
    ("MILLER G. A.", "George A. Miller"),
    ("Hinton G. E.", "Geoffrey E. Hinton"),
    ("J. Smith", "John Smith"),
    ("中沢 新一", "中沢新一"),
])
def test_same_author(a, b):
    assert is_same_author(a, b)
    assert is_same_author(b, a)


@pytest.mark.parametrize("a,b", [
    ("John Smith", "Jane Smith"),
    ("J. Smith", "J. Doe"),
    ("中沢新一", "Shinichi Nakazawa"),
    ("", "John Smith"),
])
def test_different_author(a, b):
    assert not is_same_author(a, b)
