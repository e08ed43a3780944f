import math

import pytest

from calcas.errors import TokenError
from calcas.lexer import tokenize


def token_pairs(text: str):
    """Helper function that returns (type, value) pairs for *text*."""
    return [(tok.type, tok.value) for tok in tokenize(text)]


def test_operators_and_identifiers():
    assert token_pairs("f'(x1) // 2 != y") == [
        ("ID", "f"), ("PRIME", "'"), ("LPAREN", "("), ("ID", "x1"), ("RPAREN", ")"),
        ("INTDIV", "//"), ("NUMBER", 2.0), ("NE", "!="), ("ID", "y"),
    ]


def test_power_alias():
    assert [tok.type for tok in tokenize("a ** b ^ c")] == ["ID", "POWER", "ID", "POWER", "ID"]


def test_comparison_tokens_prefer_longest_match():
    types = [tok.type for tok in tokenize("a <= b >= c == d < e > f = g")]
    assert types == ["ID", "LE", "ID", "GE", "ID", "EQ", "ID", "LT", "ID", "GT", "ID", "EQUALS", "ID"]


@pytest.mark.parametrize("text, value", [
    ("42", 42.0),
    ("3.25", 3.25),
    (".5", 0.5),
    ("1e3", 1000.0),
    ("2.5E-2", 0.025),
    ("0x1F", 31.0),
    ("0b101", 5.0),
])
def test_number_literals(text, value):
    assert token_pairs(text) == [("NUMBER", value)]


def test_huge_literal_is_infinite():
    (tok,) = tokenize("1" + "0" * 400)
    assert math.isinf(tok.value)


def test_whitespace_is_ignored():
    assert tokenize(" \t\n") == []


def test_invalid_character():
    with pytest.raises(TokenError, match="invalid token at char 2"):
        tokenize("1 $ 2")


def test_tokenize_is_reentrant():
    first = token_pairs("a + b")
    second = token_pairs("c")
    assert first == [("ID", "a"), ("PLUS", "+"), ("ID", "b")]
    assert second == [("ID", "c")]
