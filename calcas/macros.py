"""Macro expansion.

A macro is a call-shaped form that is rewritten before evaluation: the
expander walks the tree children first and replaces every ``("call", name,
args)`` whose name is in ``env.macros`` with whatever the macro returns.
Macros therefore see their arguments as trees (already expanded), which is
what lets ``deriv`` and ``simplify`` work symbolically.
"""
from __future__ import annotations

import logging
import math

from calcas import config
from calcas.derivative import differentiate
from calcas.errors import ExpressionError, FunctionCallError
from calcas.runtime import Environment, evaluate
from calcas.simplify import prettify, simplify
from calcas.utils.ast_utils import ASTNode, ast_to_string, copy_ast, map_children

logger = logging.getLogger(__name__)


def expand_macros(node: ASTNode, env: Environment) -> ASTNode:
    """Expand every macro call in *node*, innermost first.

    Examples
    --------
    >>> from calcas.execute import create_environment
    >>> from calcas.parser import parse
    >>> expand_macros(parse("deriv(x^2, x) + 1"), create_environment())[0]
    'add'
    """
    expanded = map_children(node, lambda child: expand_macros(child, env))
    if expanded[0] != "call":
        return expanded

    macro = env.macros.get(expanded[1])
    if macro is None:
        return expanded
    result = macro(expanded, env)
    logger.debug("expanded %s -> %s", ast_to_string(expanded), ast_to_string(result))
    return result


def _expect_args(node: ASTNode, count: int) -> list[ASTNode]:
    args = node[2]
    if len(args) != count:
        raise FunctionCallError(f"{node[1]}(...) accepts exactly {count} argument(s); got {len(args)}")
    return args


def _nan() -> ASTNode:
    return ("num", math.nan)


def symbolic_derivative(node: ASTNode, env: Environment) -> ASTNode:
    """deriv(expr, x): the symbolic derivative of expr with respect to x."""
    expr, var = _expect_args(node, 2)
    if var[0] != "var":
        raise ExpressionError("can't differentiate with respect to non-identifier")
    partial = env.get_id_value("PARTIAL") != 0
    return differentiate(expr, var[1], env, partial=partial)


def simplify_expression(node: ASTNode, env: Environment) -> ASTNode:
    (expr,) = _expect_args(node, 1)
    return prettify(simplify(expr))


def last_answer(node: ASTNode, env: Environment) -> ASTNode:
    _expect_args(node, 0)
    return ("num", env.last_answer)


def print_tree(node: ASTNode, env: Environment) -> ASTNode:
    """print_tree(a, b, ...): show each argument in calculator syntax."""
    for arg in node[2]:
        env.messages.append(ast_to_string(arg))
    return _nan()


def _graph_registry(env: Environment):
    if env.graphs is None:
        raise FunctionCallError("graphing is not available in this session")
    return env.graphs


def graph_expression(node: ASTNode, env: Environment) -> ASTNode:
    """graph(expr): register expr (in x) with the graph registry."""
    (expr,) = _expect_args(node, 1)
    index = _graph_registry(env).add(copy_ast(expr))
    return ("num", float(index))


def ungraph_expression(node: ASTNode, env: Environment) -> ASTNode:
    """ungraph(i) removes graph i; ungraph() removes every graph."""
    registry = _graph_registry(env)
    args = node[2]
    if len(args) > 1:
        raise FunctionCallError(f"ungraph(...) accepts at most 1 argument; got {len(args)}")
    if args:
        registry.remove(int(evaluate(args[0], env)))
    else:
        registry.clear()
    return _nan()


MACROS = {
    "deriv": symbolic_derivative,
    "simplify": simplify_expression,
    "ans": last_answer,
    "print_tree": print_tree,
    "graph": graph_expression,
    "ungraph": ungraph_expression,
}


def init_macro_functions(env: Environment) -> None:
    env.macros.update(MACROS)


def init_macro_constants(env: Environment) -> None:
    env.identifiers["ECHO"] = 1.0 if config.ECHO else 0.0
    env.identifiers["PARTIAL"] = 1.0 if config.PARTIAL else 0.0
