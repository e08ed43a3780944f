"""Structural symbolic differentiation.

The derivative is built as a new tree; no simplification happens here (the
``simplify`` macro or :func:`calcas.simplify.simplify` cleans the result up).
Calls to user functions are inlined by substituting the argument trees for
the formal parameters, so the chain rule applies to arbitrary user
functions at the cost of tree growth.
"""
from __future__ import annotations

from typing import Callable

from calcas.errors import ExpressionError
from calcas.runtime import Environment
from calcas.utils.ast_utils import ASTNode, ast_to_string, copy_ast, substitute_params


def _num(value: float) -> ASTNode:
    return ("num", float(value))


def _call(name: str, arg: ASTNode) -> ASTNode:
    return ("call", name, [copy_ast(arg)])


def _one_minus_square(u: ASTNode) -> ASTNode:
    return ("sub", _num(1), ("pow", copy_ast(u), _num(2)))


# d(f(u)) in terms of u and du = d(u)
CHAIN_RULES: dict[str, Callable[[ASTNode, ASTNode], ASTNode]] = {
    # d(ln(u)) = d(u) / u
    "ln": lambda u, du: ("div", du, copy_ast(u)),
    # d(sin(u)) = cos(u) * d(u)
    "sin": lambda u, du: ("mul", _call("cos", u), du),
    # d(cos(u)) = -(sin(u) * d(u))
    "cos": lambda u, du: ("neg", ("mul", _call("sin", u), du)),
    # d(tan(u)) = sec(u)^2 * d(u)
    "tan": lambda u, du: ("mul", ("pow", _call("sec", u), _num(2)), du),
    # d(csc(u)) = -(csc(u) * cot(u) * d(u))
    "csc": lambda u, du: ("neg", ("mul", ("mul", _call("csc", u), _call("cot", u)), du)),
    # d(sec(u)) = sec(u) * tan(u) * d(u)
    "sec": lambda u, du: ("mul", ("mul", _call("sec", u), _call("tan", u)), du),
    # d(cot(u)) = -(csc(u)^2 * d(u))
    "cot": lambda u, du: ("neg", ("mul", ("pow", _call("csc", u), _num(2)), du)),
    # d(asin(u)) = (1 - u^2)^(-1/2) * d(u)
    "asin": lambda u, du: ("mul", ("pow", _one_minus_square(u), _num(-0.5)), du),
    # d(acos(u)) = -((1 - u^2)^(-1/2) * d(u))
    "acos": lambda u, du: ("neg", ("mul", ("pow", _one_minus_square(u), _num(-0.5)), du)),
    # d(atan(u)) = d(u) / (1 + u^2)
    "atan": lambda u, du: ("div", du, ("add", _num(1), ("pow", copy_ast(u), _num(2)))),
    # d(exp(u)) = exp(u) * d(u)
    "exp": lambda u, du: ("mul", _call("exp", u), du),
    # d(sqrt(u)) = d(u) / (2 * sqrt(u))
    "sqrt": lambda u, du: ("div", du, ("mul", _num(2), _call("sqrt", u))),
}


def differentiate(node: ASTNode, var: str, env: Environment, partial: bool = False) -> ASTNode:
    """Differentiate *node* with respect to the variable *var*.

    Parameters
    ----------
    node : ASTNode
        The expression (borrowed; never modified).
    var : str
        Differentiation variable.
    env : Environment
        Used to look up user function bodies for inlining.
    partial : bool, default False
        When ``True`` every other free variable differentiates to ``0``.
        When ``False`` meeting another free variable is an error, so an
        unrelated name is never silently treated as a constant.

    Returns
    -------
    ASTNode
        The unsimplified derivative tree.

    Raises
    ------
    ExpressionError
        Unsupported node kinds (comparisons, assignment, ``%``, ``//``,
        derivative nodes), unknown or non-differentiable functions, arity
        mismatches, or a foreign variable in strict mode.

    Examples
    --------
    >>> from calcas.runtime import Environment
    >>> differentiate(("mul", ("num", 3.0), ("var", "x")), "x", Environment())
    ('add', ('mul', ('num', 0.0), ('var', 'x')), ('mul', ('num', 1.0), ('num', 3.0)))
    """

    def d(tree: ASTNode) -> ASTNode:
        tag = tree[0]

        if tag == "num":
            return _num(0)

        if tag == "var":
            if tree[1] == var:
                return _num(1)
            if partial:
                return _num(0)
            raise ExpressionError(f"can't take non-partial derivative of `{tree[1]}` with respect to {var}")

        if tag == "add":  # d(u + v) = d(u) + d(v)
            return ("add", d(tree[1]), d(tree[2]))

        if tag == "sub":  # d(u - v) = d(u) + d(-v)
            return ("add", d(tree[1]), d(("neg", tree[2])))

        if tag == "neg":  # d(-u) = -d(u)
            return ("neg", d(tree[1]))

        if tag == "mul":  # d(u * v) = d(u) * v + d(v) * u
            u, v = tree[1], tree[2]
            return ("add", ("mul", d(u), copy_ast(v)), ("mul", d(v), copy_ast(u)))

        if tag == "div":  # d(u / v) = d(u * v^-1)
            return d(("mul", tree[1], ("pow", tree[2], _num(-1))))

        if tag == "pow":  # d(u ^ v) = u^v * (d(v) * ln(u) + (d(u) / u) * v)
            u, v = tree[1], tree[2]
            log_term = ("mul", d(v), _call("ln", u))
            base_term = ("mul", ("div", d(u), copy_ast(u)), copy_ast(v))
            return ("mul", ("pow", copy_ast(u), copy_ast(v)), ("add", log_term, base_term))

        if tag == "call":
            return _call_derivative(tree)

        raise ExpressionError(f"cannot differentiate expression: `{ast_to_string(tree)}`")

    def _call_derivative(tree: ASTNode) -> ASTNode:
        name, args = tree[1], tree[2]
        function = env.functions.get(name)

        if function is not None and function["kind"] == "user":
            params = function["params"]
            if len(params) != len(args):
                raise ExpressionError(f"expected {len(params)} argument(s) for `{name}`; got {len(args)}")
            return d(substitute_params(function["body"], params, args))

        if name in CHAIN_RULES:
            if len(args) != 1:
                raise ExpressionError(f"expected 1 argument for `{name}`; got {len(args)}")
            return CHAIN_RULES[name](args[0], d(args[0]))

        if function is None:
            raise ExpressionError(f"no such function: `{name}`")
        raise ExpressionError(f"can't differentiate function `{name}`")

    return d(node)
