from pathlib import Path
from typing import get_args

import pytest

from calcas.parser import parse
from calcas.utils.ast_utils import (
    BinaryTag, ExprTag, NaryTag,
    ast_depth, ast_to_string, ast_uses_func, copy_ast, map_children, substitute_params,
)


VALID_TAGS = set(get_args(BinaryTag) + get_args(ExprTag) + get_args(NaryTag))

DATA_DIR = Path(__file__).parent / "data"
AST_DIR = DATA_DIR / "ast"
CALC_FILES = sorted(DATA_DIR.glob("*.calc"))
CALC_IDS = [f.stem for f in CALC_FILES]


def read_statements(calc_file: Path) -> list[str]:
    """Helper function that returns the non-empty lines of a ``.calc`` file."""
    return [line for line in calc_file.read_text().splitlines() if line.strip()]


def load_expected_ast(stem: str) -> list:
    """Helper function that load the expected trees from ``data/ast/<stem>.py``."""
    ns = {}
    exec((AST_DIR / f"{stem}.py").read_text(), ns)
    return ns["EXPECTED"]


def is_ast_node(node) -> bool:
    """Helper function that return True if *node* is a well-formed tagged tuple."""
    if isinstance(node, list):
        return all(is_ast_node(child) for child in node)
    if not isinstance(node, tuple) or not node or node[0] not in VALID_TAGS:
        return False
    for child in node[1:]:
        if isinstance(child, (tuple, list)) and not is_ast_node(child):
            return False
    return True


@pytest.mark.parametrize("calc_file", CALC_FILES, ids=CALC_IDS)
def test_parse_produces_ast_nodes(calc_file):
    """Verify every statement parses to a tree of known tags."""
    for statement in read_statements(calc_file):
        assert is_ast_node(parse(statement)), statement


@pytest.mark.parametrize("calc_file", CALC_FILES, ids=CALC_IDS)
def test_ast_matches_expected(calc_file):
    """Verify parse output matches the expected trees in data/ast/."""
    actual = [parse(statement) for statement in read_statements(calc_file)]
    expected = load_expected_ast(calc_file.stem)
    assert actual == expected


@pytest.mark.parametrize("calc_file", CALC_FILES, ids=CALC_IDS)
def test_to_string_reparses(calc_file):
    """Verify printing a tree and parsing the text again is stable."""
    for statement in read_statements(calc_file):
        text = ast_to_string(parse(statement))
        assert ast_to_string(parse(text)) == text


def test_copy_is_deep():
    tree = parse("f(x, 2) + g(y)^2")
    dup = copy_ast(tree)
    assert dup == tree
    assert dup is not tree
    assert dup[1] is not tree[1]
    assert dup[1][2] is not tree[1][2]


def test_map_children_rebuilds_only_one_level():
    tree = parse("-(a + b)")
    seen = []
    result = map_children(tree, lambda child: seen.append(child) or child)
    assert seen == [("add", ("var", "a"), ("var", "b"))]
    assert result == tree


def test_map_children_rejects_unknown_node():
    with pytest.raises(ValueError):
        map_children(("matrix", []), copy_ast)


def test_substitute_params_copies_each_occurrence():
    body = parse("x * x + y")
    arg = parse("sin(t)")
    result = substitute_params(body, ["x"], [arg])
    assert result == parse("sin(t) * sin(t) + y")
    left, right = result[1][1], result[1][2]
    assert left is not right
    assert left is not arg


def test_ast_uses_func():
    assert ast_uses_func(parse("1 + f(2)"), "f")
    assert ast_uses_func(parse("g'(h(f(x)))"), "f")
    assert not ast_uses_func(parse("f + 1"), "f")


def test_ast_depth():
    assert ast_depth(parse("x")) == 1
    assert ast_depth(parse("1 + 2 * 3")) == 3


@pytest.mark.parametrize("tree, text", [
    (("sub", ("var", "a"), ("sub", ("var", "b"), ("var", "c"))), "a - (b - c)"),
    (("pow", ("pow", ("var", "x"), ("num", 2.0)), ("num", 3.0)), "(x^2)^3"),
    (("pow", ("var", "x"), ("neg", ("var", "y"))), "x^-y"),
    (("mul", ("num", -1.0), ("var", "x")), "-1 * x"),
    (("neg", ("neg", ("var", "x"))), "-(-x)"),
    (("neg", ("pow", ("var", "x"), ("num", 2.0))), "-x^2"),
    (("deriv", "f", [("var", "x")], 2), "f''(x)"),
    (("num", 0.5), "0.5"),
])
def test_ast_to_string(tree, text):
    assert ast_to_string(tree) == text
