from __future__ import annotations

import math
from typing import Callable, Literal, Union


# AST TYPE DEFINITIONS
# The parser produces a tree of tagged tuples.  Every node is a tuple whose
# first element is a string tag; the remaining elements are child nodes,
# lists of child nodes, or scalar leaves (numbers, identifiers, orders).
#
# ("num", 2.0)                      number literal
# ("var", "x")                      variable reference
# ("add", left, right)              binary operator (see BINARY_TAGS)
# ("neg", arg)                      unary negation
# ("call", "f", [args])             function call
# ("deriv", "f", [args], 2)         f''(args), numeric derivative request
# ("sum", [terms])                  n-ary sum, simplifier only
# ("product", [factors])            n-ary product, simplifier only

BinaryTag = Literal[
    "add", "sub", "mul", "div", "intdiv", "mod", "pow",   # arithmetic
    "assign",                                            # x = e, f(x) = e
    "eq", "ne", "lt", "le", "gt", "ge",                  # comparisons
]

ExprTag = Literal[
    "num", "var",            # leaves
    "neg",                   # unary arithmetic
    "call", "deriv",         # call-shaped nodes
]

NaryTag = Literal["sum", "product"]

ASTTag = Union[BinaryTag, ExprTag, NaryTag]

ASTNode = Union[
    tuple,              # tagged nodes: ("add", left, right), ("num", 1.0), ...
    list["ASTNode"],    # argument lists, n-ary term lists
    str,                # identifiers
    float,              # numeric literal values
    int,                # derivative orders
]

# operator symbol -> binary tag ("**" is accepted as an alias of "^")
OPERATOR_TAGS: dict[str, str] = {
    "+": "add", "-": "sub", "*": "mul", "/": "div", "//": "intdiv",
    "%": "mod", "^": "pow", "**": "pow", "=": "assign",
    "==": "eq", "!=": "ne", "<": "lt", "<=": "le", ">": "gt", ">=": "ge",
}

TAG_SYMBOLS: dict[str, str] = {
    "add": "+", "sub": "-", "mul": "*", "div": "/", "intdiv": "//",
    "mod": "%", "pow": "^", "assign": "=", "eq": "==", "ne": "!=",
    "lt": "<", "le": "<=", "gt": ">", "ge": ">=",
    "sum": "+", "product": "*",
}

BINARY_TAGS = frozenset(TAG_SYMBOLS) - {"sum", "product"}
COMPARISON_TAGS = frozenset({"eq", "ne", "lt", "le", "gt", "ge"})
NARY_TAGS = frozenset({"sum", "product"})

PRECEDENCE: dict[str, int] = {
    "assign": 1,
    "eq": 2, "ne": 2, "lt": 2, "le": 2, "gt": 2, "ge": 2,
    "add": 3, "sub": 3, "sum": 3,
    "mul": 4, "div": 4, "intdiv": 4, "mod": 4, "product": 4,
    "neg": 5,
    "pow": 6,
}
LEAF_PRECEDENCE = 7

# Right-leaning chains print without parentheses on the right
RIGHT_ASSOCIATIVE = frozenset({"pow", "assign"}) | COMPARISON_TAGS


def format_number(value: float) -> str:
    """Render a literal the way it would be typed.

    Examples
    --------
    >>> format_number(3.0), format_number(0.25), format_number(float("nan"))
    ('3', '0.25', 'NaN')
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def map_children(node: ASTNode, fn: Callable[[ASTNode], ASTNode]) -> ASTNode:
    """Return a new node whose direct children are ``fn(child)``.

    This is the single traverse-and-transform primitive: recursive passes
    (copying, substitution, macro expansion, simplification of opaque
    nodes) call it with themselves as *fn*.  Leaves are returned unchanged.

    Parameters
    ----------
    node : ASTNode
        A tagged tuple.
    fn : Callable[[ASTNode], ASTNode]
        Transformation applied to every child node.

    Returns
    -------
    ASTNode
        A freshly built node of the same kind.

    Examples
    --------
    >>> from calcas.utils.ast_utils import map_children
    >>> map_children(("add", ("var", "x"), ("num", 1.0)), lambda c: ("neg", c))
    ('add', ('neg', ('var', 'x')), ('neg', ('num', 1.0)))
    """
    tag = node[0]
    if tag in ("num", "var"):
        return node
    if tag == "neg":
        return ("neg", fn(node[1]))
    if tag == "call":
        return ("call", node[1], [fn(arg) for arg in node[2]])
    if tag == "deriv":
        return ("deriv", node[1], [fn(arg) for arg in node[2]], node[3])
    if tag in NARY_TAGS:
        return (tag, [fn(arg) for arg in node[1]])
    if tag in BINARY_TAGS:
        return (tag, fn(node[1]), fn(node[2]))
    raise ValueError(f"Unknown AST node: {node!r}")


def copy_ast(node: ASTNode) -> ASTNode:
    """Deep-copy a tree; every tuple and list in the result is new.

    Examples
    --------
    >>> tree = ("call", "f", [("var", "x")])
    >>> dup = copy_ast(tree)
    >>> dup == tree, dup is tree, dup[2] is tree[2]
    (True, False, False)
    """
    if node[0] == "num":
        return ("num", node[1])
    if node[0] == "var":
        return ("var", node[1])
    return map_children(node, copy_ast)


def substitute_params(node: ASTNode, params: list[str], args: list[ASTNode]) -> ASTNode:
    """Replace every ``("var", p)`` leaf by a copy of the matching argument.

    Used to inline a user function body at a call site (symbolic
    differentiation, torch code generation).  Each occurrence receives its
    own copy so the result owns all of its nodes.

    Parameters
    ----------
    node : ASTNode
        The function body (not modified).
    params : list[str]
        Formal parameter names.
    args : list[ASTNode]
        Argument trees, one per parameter.

    Returns
    -------
    ASTNode
        The inlined tree.

    Examples
    --------
    >>> body = ("add", ("pow", ("var", "x"), ("num", 2.0)), ("var", "y"))
    >>> substitute_params(body, ["x"], [("call", "sin", [("var", "t")])])
    ('add', ('pow', ('call', 'sin', [('var', 't')]), ('num', 2.0)), ('var', 'y'))
    """
    bindings = dict(zip(params, args))

    def visit(child: ASTNode) -> ASTNode:
        if child[0] == "var":
            if child[1] in bindings:
                return copy_ast(bindings[child[1]])
            return child
        return map_children(child, visit)

    return visit(node)


def ast_uses_func(node: ASTNode, func_name: str) -> bool:
    """Check whether a subtree contains a call (or derivative) of *func_name*.

    Examples
    --------
    >>> ast_uses_func(("add", ("call", "f", [("num", 1.0)]), ("num", 2.0)), "f")
    True
    >>> ast_uses_func(("deriv", "g", [("var", "x")], 1), "f")
    False
    """
    if not isinstance(node, (tuple, list)):
        return False
    if isinstance(node, tuple) and node[0] in ("call", "deriv") and node[1] == func_name:
        return True
    if isinstance(node, list):
        return any(ast_uses_func(item, func_name) for item in node)
    return any(ast_uses_func(child, func_name) for child in node[1:] if isinstance(child, (tuple, list)))


def ast_depth(node: ASTNode) -> int:
    """Height of the tree; leaves have depth 1."""
    depth = 0

    def visit(child: ASTNode) -> ASTNode:
        nonlocal depth
        depth = max(depth, ast_depth(child))
        return child

    map_children(node, visit)
    return depth + 1


def _precedence(node: ASTNode) -> int:
    if node[0] == "num" and node[1] < 0:
        return PRECEDENCE["neg"]
    return PRECEDENCE.get(node[0], LEAF_PRECEDENCE)


def _needs_parens(parent_tag: str, child: ASTNode, right: bool) -> bool:
    parent_prec = PRECEDENCE[parent_tag]
    child_prec = _precedence(child)
    if parent_tag == "pow" and right:
        # the exponent is parsed as a full factor, so "x^-y" and "x^y^z" are fine
        return child_prec < PRECEDENCE["neg"]
    if child_prec != parent_prec:
        return child_prec < parent_prec
    if parent_tag in RIGHT_ASSOCIATIVE:
        return not right
    if not right:
        return False
    # a + (b + c) and a * (b * c) read the same without parentheses
    return not (parent_tag == child[0] and parent_tag in ("add", "mul"))


def _wrap(parent_tag: str, child: ASTNode, right: bool) -> str:
    text = ast_to_string(child)
    return f"({text})" if _needs_parens(parent_tag, child, right) else text


def ast_to_string(node: ASTNode) -> str:
    """Serialize a tree back to calculator syntax with minimal parentheses.

    The output re-parses to an equivalent tree (n-ary nodes print
    like their binary counterparts).

    Examples
    --------
    >>> from calcas.utils.ast_utils import ast_to_string
    >>> ast_to_string(("mul", ("num", 3.0), ("pow", ("var", "x"), ("num", 2.0))))
    '3 * x^2'
    >>> ast_to_string(("sub", ("var", "a"), ("sub", ("var", "b"), ("var", "c"))))
    'a - (b - c)'
    >>> ast_to_string(("deriv", "f", [("var", "x")], 2))
    "f''(x)"
    """
    tag = node[0]
    if tag == "num":
        return format_number(node[1])
    if tag == "var":
        return node[1]
    if tag == "call":
        return f"{node[1]}({', '.join(ast_to_string(arg) for arg in node[2])})"
    if tag == "deriv":
        return f"{node[1]}{chr(39) * node[3]}({', '.join(ast_to_string(arg) for arg in node[2])})"
    if tag == "neg":
        arg = node[1]
        # "--x" does not parse, so any nested negation needs parentheses
        if _precedence(arg) <= PRECEDENCE["neg"]:
            return f"-({ast_to_string(arg)})"
        return f"-{ast_to_string(arg)}"
    if tag in NARY_TAGS:
        parts = [_wrap(tag, arg, index > 0) for index, arg in enumerate(node[1])]
        return f" {TAG_SYMBOLS[tag]} ".join(parts)
    if tag in BINARY_TAGS:
        left = _wrap(tag, node[1], False)
        right = _wrap(tag, node[2], True)
        if tag == "pow":
            return f"{left}^{right}"
        return f"{left} {TAG_SYMBOLS[tag]} {right}"
    raise ValueError(f"Unknown AST node: {node!r}")
