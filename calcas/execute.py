"""Statement pipeline: tokenize, parse, expand macros, evaluate, format.

Examples
--------
>>> from calcas.execute import Calculator
>>> calc = Calculator()
>>> calc.calculate("f(x) = x^2 + 1")
'NaN'
>>> calc.calculate("f(3)")
'10'
>>> calc.calculate("1 / 2)")
'ExpressionError: unmatched parenthesis.'
"""
from __future__ import annotations

import logging

from calcas import config
from calcas.errors import CalculatorError, ExpressionError
from calcas.graphing import GraphRegistry
from calcas.lexer import tokenize
from calcas.macros import expand_macros, init_macro_constants, init_macro_functions
from calcas.mathlib import init_math_constants, init_math_functions
from calcas.parser import parse_statement
from calcas.runtime import Environment, evaluate
from calcas.utils.ast_utils import ast_to_string
from calcas.utils.print_utils import format_result

logger = logging.getLogger(__name__)


def create_environment(seed: int | None = None) -> Environment:
    """A fresh session with the built-in constants, functions and macros."""
    env = Environment(seed=config.RANDOM_SEED if seed is None else seed)
    init_math_constants(env)
    init_math_functions(env)
    init_macro_constants(env)
    init_macro_functions(env)
    env.graphs = GraphRegistry(env)
    return env


class Calculator:
    """One calculator session.

    Parameters
    ----------
    env : Environment or None, default None
        Session state; a new one from :func:`create_environment` when
        omitted.
    """

    def __init__(self, env: Environment | None = None):
        self.env = env if env is not None else create_environment()

    def calculate(self, text: str) -> str:
        """Run one statement and return its display text.

        Errors never escape: a :class:`CalculatorError` is rendered as
        ``"<Kind>: <message>."`` and nesting too deep for the interpreter's
        stack is reported as an ``ExpressionError``.  The previous answer is
        only updated when the statement succeeds.
        """
        env = self.env
        env.messages = []
        lines: list[str] = []
        try:
            tree = parse_statement(tokenize(text))
            expanded = expand_macros(tree, env)
            if env.get_id_value("ECHO") != 0:
                lines.append(f">   {ast_to_string(tree)}")
                if expanded != tree:
                    lines.append(f"=>  {ast_to_string(expanded)}")
            value = evaluate(expanded, env)
        except CalculatorError as err:
            logger.warning("rejected %r: %s", text, err.message)
            return "\n".join(lines + env.messages + [err.render()])
        except RecursionError:
            logger.warning("rejected %r: recursion limit reached", text)
            err = ExpressionError("expression nested too deeply")
            return "\n".join(lines + env.messages + [err.render()])

        env.last_answer = value
        return "\n".join(lines + env.messages + [format_result(value)])


_default_calculator: Calculator | None = None


def calculate_text(text: str) -> str:
    """Run *text* in a module-level session shared between calls."""
    global _default_calculator
    if _default_calculator is None:
        _default_calculator = Calculator()
    return _default_calculator.calculate(text)
