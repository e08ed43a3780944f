"""Automatic simplification into a canonical n-ary form.

``automatic_simplify`` lowers the binary arithmetic operators onto two
n-ary shapes:

* ``a + b``  -> ``("sum", [a, b])``
* ``a - b``  -> ``("sum", [a, (-1) * b])``
* ``-a``     -> ``("product", [-1, a])``
* ``a * b``  -> ``("product", [a, b])``
* ``a / b``  -> ``("product", [a, b^-1])``

Operand lists are kept flat and sorted by :func:`compare`.  Adding a term to
a list is a merge: the heads of both lists are combined (like terms add
their coefficients, like factors add their exponents) and any freshly
combined term is merged again, since it may now combine with a neighbour.

``simplify`` turns the canonical form back into left-nested binary nodes,
and ``prettify`` is a cosmetic pass on top of it that reintroduces negation,
subtraction and division.
"""
from __future__ import annotations

import logging
import math
from functools import reduce
from typing import Callable

import numpy as np

from calcas.runtime import COMPARISONS, integer_divide, modulus
from calcas.utils.ast_utils import ASTNode, COMPARISON_TAGS, ast_to_string, map_children

logger = logging.getLogger(__name__)

ZERO = ("num", 0.0)
ONE = ("num", 1.0)
MINUS_ONE = ("num", -1.0)

# product > pow > sum > everything else; the poorer side of a comparison is
# lifted into the richer shape
_LIFT_RANK = {"product": 3, "pow": 2, "sum": 1, "leaf": 0}

# order among nodes the simplifier treats as opaque
_OPAQUE_TAGS = ("intdiv", "mod", "eq", "ne", "lt", "le", "gt", "ge", "assign")

_FOLDABLE = {
    "intdiv": integer_divide,
    "mod": modulus,
    **COMPARISONS,
}


def _num(value: float) -> ASTNode:
    return ("num", float(value))


def _is_num(node: ASTNode, value: float | None = None) -> bool:
    if node[0] != "num":
        return False
    return value is None or node[1] == value


def _sign(a, b) -> int:
    return (a > b) - (a < b)


# CANONICAL ORDER

def _kind(node: ASTNode) -> str:
    if node[0] in _LIFT_RANK:
        return node[0]
    return "leaf"


def _compare_numbers(a: float, b: float) -> int:
    # NaN sorts after every other number
    if math.isnan(a) or math.isnan(b):
        return _sign(math.isnan(a), math.isnan(b))
    return _sign(a, b)


def _compare_operands(us: list[ASTNode], vs: list[ASTNode]) -> int:
    # most significant operand last; numeric coefficients come first in a
    # product, so terms differing only in their coefficient stay adjacent
    for u, v in zip(reversed(us), reversed(vs)):
        result = compare(u, v)
        if result:
            return result
    return _sign(len(us), len(vs))


def _compare_args(us: list[ASTNode], vs: list[ASTNode]) -> int:
    for u, v in zip(us, vs):
        result = compare(u, v)
        if result:
            return result
    return 0


def _leaf_rank(node: ASTNode) -> int:
    if node[0] in ("var", "call"):
        return 0
    if node[0] == "deriv":
        return 1
    return 2


def _compare_leaves(u: ASTNode, v: ASTNode) -> int:
    rank_u, rank_v = _leaf_rank(u), _leaf_rank(v)
    if rank_u != rank_v:
        return _sign(rank_u, rank_v)

    if rank_u == 0:
        if u[1] != v[1]:
            return _sign(u[1], v[1])
        if u[0] != v[0]:
            # x before x(...)
            return -1 if u[0] == "var" else 1
        if u[0] == "var":
            return 0
        return _sign(len(u[2]), len(v[2])) or _compare_args(u[2], v[2])

    if rank_u == 1:
        return (_sign(u[1], v[1]) or _sign(u[3], v[3])
                or _sign(len(u[2]), len(v[2])) or _compare_args(u[2], v[2]))

    return (_sign(_OPAQUE_TAGS.index(u[0]), _OPAQUE_TAGS.index(v[0]))
            or compare(u[1], v[1]) or compare(u[2], v[2]))


def compare(u: ASTNode, v: ASTNode) -> int:
    """Total order over simplified trees.

    Returns a negative number when *u* sorts before *v*, zero when they are
    structurally equal and a positive number otherwise.

    * numbers come before everything else and compare by value;
    * variables compare lexically;
    * two sums or two products compare operand-wise starting from their
      last (most significant) operand, then by arity;
    * powers compare by base, then by exponent;
    * calls compare by name, then arity, then arguments pairwise;
    * a variable and a call compare by name, the variable first on a tie;
    * derivative nodes and opaque operators (``//``, ``%``, comparisons,
      assignment) come after variables and calls.

    When the two shapes differ the poorer one is lifted: a factor becomes a
    one-element product, a base becomes ``base^1``, a term becomes a
    one-element sum.

    Examples
    --------
    >>> compare(("num", 2.0), ("var", "a"))
    -1
    >>> compare(("var", "y"), ("pow", ("var", "x"), ("num", 2.0)))
    1
    >>> compare(("product", [("num", 3.0), ("var", "x")]), ("var", "y"))
    -1
    """
    if u[0] == "num" and v[0] == "num":
        return _compare_numbers(u[1], v[1])
    if u[0] == "num":
        return -1
    if v[0] == "num":
        return 1

    kind_u, kind_v = _kind(u), _kind(v)
    if kind_u == kind_v:
        if kind_u in ("sum", "product"):
            return _compare_operands(u[1], v[1])
        if kind_u == "pow":
            return compare(u[1], v[1]) or compare(u[2], v[2])
        return _compare_leaves(u, v)

    if _LIFT_RANK[kind_u] < _LIFT_RANK[kind_v]:
        return -compare(v, u)
    if kind_u == "pow":
        return compare(u, ("pow", v, ONE))
    return compare(u, (kind_u, [v]))


# N-ARY MERGE

Combine = Callable[[ASTNode, ASTNode], "list[ASTNode]"]


def _operands(node: ASTNode, tag: str) -> list[ASTNode]:
    return list(node[1]) if node[0] == tag else [node]


def _merge(p: list[ASTNode], q: list[ASTNode], combine: Combine, tag: str) -> list[ASTNode]:
    """Merge two canonical operand lists of a ``tag`` node."""
    if not q:
        return list(p)
    if not p:
        return list(q)

    head = combine(p[0], q[0])
    if not head:
        return _merge(p[1:], q[1:], combine, tag)
    if len(head) == 2 and head[0] is p[0] and head[1] is q[0]:
        return [p[0]] + _merge(p[1:], q, combine, tag)
    if len(head) == 2 and head[0] is q[0] and head[1] is p[0]:
        return [q[0]] + _merge(p, q[1:], combine, tag)
    # a freshly combined term may combine again with its new neighbours
    return _merge(_operands(head[0], tag), _merge(p[1:], q[1:], combine, tag), combine, tag)


def _ordered(u: ASTNode, v: ASTNode) -> list[ASTNode]:
    return [v, u] if compare(v, u) < 0 else [u, v]


def _simplify_operands(operands: list[ASTNode], combine: Combine, tag: str) -> list[ASTNode]:
    if not operands:
        return []
    if len(operands) == 1:
        return _operands(operands[0], tag)
    if len(operands) == 2:
        u, v = operands
        if u[0] != tag and v[0] != tag:
            return combine(u, v)
        return _merge(_operands(u, tag), _operands(v, tag), combine, tag)
    rest = _simplify_operands(operands[1:], combine, tag)
    return _merge(_operands(operands[0], tag), rest, combine, tag)


def _canonical_operands(operands: list[ASTNode], combine: Combine, tag: str) -> list[ASTNode]:
    # a late combination can yield a number or a product whose factors sort
    # before operands that were already emitted, e.g. (2x)^2 * (2x)^-1
    result = _simplify_operands(operands, combine, tag)
    while True:
        again = _simplify_operands(result, combine, tag)
        if again == result:
            return result
        result = again


def _term_split(term: ASTNode) -> tuple[float, ASTNode]:
    """Split a term into (numeric coefficient, base)."""
    if term[0] == "product" and _is_num(term[1][0]):
        rest = term[1][1:]
        return term[1][0][1], rest[0] if len(rest) == 1 else ("product", rest)
    return 1.0, term


def _factor_split(factor: ASTNode) -> tuple[ASTNode, ASTNode]:
    """Split a factor into (base, exponent)."""
    if factor[0] == "pow":
        return factor[1], factor[2]
    return factor, ONE


def _combine_terms(u: ASTNode, v: ASTNode) -> list[ASTNode]:
    if _is_num(u) and _is_num(v):
        total = u[1] + v[1]
        return [] if total == 0 else [_num(total)]
    if _is_num(u, 0):
        return [v]
    if _is_num(v, 0):
        return [u]
    if not _is_num(u) and not _is_num(v):
        coeff_u, base_u = _term_split(u)
        coeff_v, base_v = _term_split(v)
        if base_u == base_v:
            coeff = coeff_u + coeff_v
            if coeff == 0:
                return []
            if coeff == 1:
                return [base_u]
            return [simplify_product([_num(coeff), base_u])]
    return _ordered(u, v)


def _combine_factors(u: ASTNode, v: ASTNode) -> list[ASTNode]:
    if _is_num(u) and _is_num(v):
        product = u[1] * v[1]
        return [] if product == 1 else [_num(product)]
    if _is_num(u, 0) or _is_num(v, 0):
        return [ZERO]
    if _is_num(u, 1):
        return [v]
    if _is_num(v, 1):
        return [u]
    if not _is_num(u) and not _is_num(v):
        base_u, exp_u = _factor_split(u)
        base_v, exp_v = _factor_split(v)
        if base_u == base_v:
            combined = simplify_power(base_u, simplify_sum([exp_u, exp_v]))
            return [] if _is_num(combined, 1) else [combined]
    return _ordered(u, v)


def simplify_sum(terms: list[ASTNode]) -> ASTNode:
    """Canonical sum of already simplified *terms*.

    Examples
    --------
    >>> x = ("var", "x")
    >>> simplify_sum([x, ("num", 1.0), x])
    ('sum', [('num', 1.0), ('product', [('num', 2.0), ('var', 'x')])])
    >>> simplify_sum([])
    ('num', 0.0)
    """
    operands = _canonical_operands(list(terms), _combine_terms, "sum")
    if not operands:
        return ZERO
    if len(operands) == 1:
        return operands[0]
    return ("sum", operands)


def simplify_product(factors: list[ASTNode]) -> ASTNode:
    """Canonical product of already simplified *factors*; ``0`` absorbs."""
    if any(_is_num(factor, 0) for factor in factors):
        return ZERO
    operands = _canonical_operands(list(factors), _combine_factors, "product")
    if any(_is_num(operand, 0) for operand in operands):
        return ZERO
    if not operands:
        return ONE
    if len(operands) == 1:
        return operands[0]
    return ("product", operands)


def simplify_power(base: ASTNode, exponent: ASTNode) -> ASTNode:
    """Canonical ``base ^ exponent`` of already simplified operands.

    Examples
    --------
    >>> simplify_power(("num", 2.0), ("num", 10.0))
    ('num', 1024.0)
    >>> simplify_power(("pow", ("var", "x"), ("num", 2.0)), ("num", 3.0))
    ('pow', ('var', 'x'), ('num', 6.0))
    """
    if _is_num(base) and _is_num(exponent):
        with np.errstate(all="ignore"):
            return _num(np.power(np.float64(base[1]), np.float64(exponent[1])))
    if _is_num(base, 0) and _is_num(exponent) and exponent[1] > 0:
        return ZERO
    if _is_num(base, 1):
        return ONE
    if _is_num(exponent, 0):
        return ONE
    if _is_num(exponent, 1):
        return base
    if base[0] == "pow":
        return simplify_power(base[1], simplify_product([base[2], exponent]))
    return ("pow", base, exponent)


def _simplify_opaque(node: ASTNode) -> ASTNode:
    if node[0] == "assign":
        # the target is a name or a parameter list, not a value
        return ("assign", node[1], automatic_simplify(node[2]))
    left, right = automatic_simplify(node[1]), automatic_simplify(node[2])
    if _is_num(left) and _is_num(right):
        fold = _FOLDABLE[node[0]]
        if node[0] in COMPARISON_TAGS:
            return ONE if fold(left[1], right[1]) else ZERO
        return _num(fold(left[1], right[1]))
    return (node[0], left, right)


def automatic_simplify(node: ASTNode) -> ASTNode:
    """Rewrite *node* into canonical n-ary form.

    Raises
    ------
    ValueError
        If *node* is not a tree node.
    """
    tag = node[0]

    if tag in ("num", "var"):
        return node
    if tag == "add":
        return simplify_sum([automatic_simplify(node[1]), automatic_simplify(node[2])])
    if tag == "sub":
        negated = simplify_product([MINUS_ONE, automatic_simplify(node[2])])
        return simplify_sum([automatic_simplify(node[1]), negated])
    if tag == "neg":
        return simplify_product([MINUS_ONE, automatic_simplify(node[1])])
    if tag == "mul":
        return simplify_product([automatic_simplify(node[1]), automatic_simplify(node[2])])
    if tag == "div":
        reciprocal = simplify_power(automatic_simplify(node[2]), MINUS_ONE)
        return simplify_product([automatic_simplify(node[1]), reciprocal])
    if tag == "pow":
        return simplify_power(automatic_simplify(node[1]), automatic_simplify(node[2]))
    if tag == "sum":
        return simplify_sum([automatic_simplify(term) for term in node[1]])
    if tag == "product":
        return simplify_product([automatic_simplify(factor) for factor in node[1]])
    if tag in _OPAQUE_TAGS:
        return _simplify_opaque(node)
    return map_children(node, automatic_simplify)


def binarize(node: ASTNode) -> ASTNode:
    """Turn n-ary nodes back into left-nested ``add``/``mul`` chains."""
    if node[0] in ("num", "var"):
        return node
    if node[0] == "sum":
        return reduce(lambda acc, term: ("add", acc, term), [binarize(t) for t in node[1]])
    if node[0] == "product":
        return reduce(lambda acc, factor: ("mul", acc, factor), [binarize(f) for f in node[1]])
    return map_children(node, binarize)


def simplify(node: ASTNode) -> ASTNode:
    """Simplify *node* into canonical binary form.

    The result is a fixed point: ``simplify(simplify(t)) == simplify(t)``.

    Examples
    --------
    >>> from calcas.parser import parse
    >>> simplify(parse("(x + 1) + (x + 1)"))
    ('add', ('num', 2.0), ('mul', ('num', 2.0), ('var', 'x')))
    >>> simplify(parse("x^2 * x / x^3"))
    ('num', 1.0)
    """
    result = binarize(automatic_simplify(node))
    logger.debug("simplified %s -> %s", ast_to_string(node), ast_to_string(result))
    return result


# PRETTY PRINTING

def _chain(node: ASTNode, tag: str) -> list[ASTNode]:
    if node[0] == tag:
        return _chain(node[1], tag) + _chain(node[2], tag)
    return [node]


def _is_negative(node: ASTNode) -> bool:
    return node[0] == "neg" or (node[0] == "num" and node[1] < 0)


def _strip_sign(node: ASTNode) -> ASTNode:
    if node[0] == "neg":
        return node[1]
    return _num(-node[1])


def _join(nodes: list[ASTNode], tag: str) -> ASTNode:
    return reduce(lambda acc, item: (tag, acc, item), nodes)


def _denominator(factor: ASTNode) -> ASTNode | None:
    if factor[0] == "pow" and _is_num(factor[2]) and factor[2][1] < 0:
        power = -factor[2][1]
        return factor[1] if power == 1 else ("pow", factor[1], _num(power))
    return None


def _pretty_factor(factor: ASTNode) -> ASTNode:
    # keep reciprocal powers intact until the product is split
    if _denominator(factor) is not None:
        return ("pow", prettify(factor[1]), factor[2])
    return prettify(factor)


def _pretty_product(factors: list[ASTNode]) -> ASTNode:
    negate = len(factors) > 1 and _is_num(factors[0], -1)
    if negate:
        factors = factors[1:]

    numerator, denominator = [], []
    for factor in factors:
        below = _denominator(factor)
        if below is None:
            numerator.append(factor)
        else:
            denominator.append(below)

    result = _join(numerator, "mul") if numerator else ONE
    if denominator:
        result = ("div", result, _join(denominator, "mul"))
    return ("neg", result) if negate else result


def _pretty_join_terms(acc: ASTNode, term: ASTNode) -> ASTNode:
    if _is_negative(acc) and _is_negative(term):
        return ("neg", ("add", _strip_sign(acc), _strip_sign(term)))
    if _is_negative(term):
        return ("sub", acc, _strip_sign(term))
    if _is_negative(acc):
        return ("sub", term, _strip_sign(acc))
    return ("add", acc, term)


def prettify(node: ASTNode) -> ASTNode:
    """Rewrite canonical artifacts into conventional notation.

    Only the notation changes, never the value:

    * a leading ``-1`` factor becomes a negation;
    * factors with a negative numeric exponent move to a denominator;
    * a sum of two negative operands becomes a negated sum;
    * a sum with one negative operand becomes a subtraction.

    Examples
    --------
    >>> from calcas.parser import parse
    >>> prettify(simplify(parse("a - b")))
    ('sub', ('var', 'a'), ('var', 'b'))
    >>> prettify(simplify(parse("2 / x")))
    ('div', ('num', 2.0), ('var', 'x'))
    """
    tag = node[0]
    if tag == "mul":
        return _pretty_product([_pretty_factor(factor) for factor in _chain(node, "mul")])
    if tag == "pow" and _denominator(node) is not None:
        return _pretty_product([_pretty_factor(node)])
    if tag == "add":
        return reduce(_pretty_join_terms, [prettify(term) for term in _chain(node, "add")])
    return map_children(node, prettify)
