from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import numpy as np

from calcas import config
from calcas.errors import ArgumentError, ExpressionError, FunctionCallError
from calcas.parser import check_assignment_target
from calcas.utils.ast_utils import ASTNode, copy_ast

logger = logging.getLogger(__name__)

INT64_MIN = float(np.iinfo(np.int64).min)
INT64_MAX = float(np.iinfo(np.int64).max)

Function = dict[str, Any]
Macro = Callable[[ASTNode, "Environment"], ASTNode]


def user_function(params: list[str], body: ASTNode) -> Function:
    """A function whose body is a stored tree evaluated with bound params."""
    return {"kind": "user", "params": params, "body": body}


def variadic_function(fn: Callable[[list[ASTNode], "Environment"], float]) -> Function:
    """A native function receiving the raw, unevaluated argument trees."""
    return {"kind": "variadic", "fn": fn}


def fixed_function(arity: int, fn: Callable[..., float]) -> Function:
    """A native function of exactly *arity* evaluated float arguments."""
    return {"kind": "fixed", "arity": arity, "fn": fn}


class Environment:
    """All mutable state of one calculator session.

    Attributes
    ----------
    identifiers : dict[str, float]
        Global variable values; unknown names read as ``0.0``.
    functions : dict[str, Function]
        Function table (``user``, ``variadic`` and ``fixed`` entries).
    macros : dict[str, Macro]
        Call names rewritten by the macro expander before evaluation.
    frames : list[dict[str, float]]
        Call-frame stack; the innermost frame binds the parameters of the
        user function currently being evaluated.
    last_answer : float
        Result of the last successful statement (``ans()``).
    messages : list[str]
        Output produced by macros while a statement runs.
    rng : numpy.random.Generator
        Source for ``rand()``.
    graphs : GraphRegistry or None
        Graphed expressions, attached by ``create_environment``.
    """

    def __init__(self, seed: int | None = None):
        self.identifiers: dict[str, float] = {}
        self.functions: dict[str, Function] = {}
        self.macros: dict[str, Macro] = {}
        self.frames: list[dict[str, float]] = []
        self.last_answer = math.nan
        self.messages: list[str] = []
        self.rng = np.random.default_rng(seed)
        self.graphs = None

    def get_id_value(self, name: str) -> float:
        if self.frames and name in self.frames[-1]:
            return self.frames[-1][name]
        return self.identifiers.get(name, 0.0)

    def set_id_value(self, name: str, value: float) -> float:
        self.identifiers[name] = value
        return value

    @contextmanager
    def call_frame(self, bindings: dict[str, float]) -> Iterator[None]:
        """Install *bindings* as the innermost frame for the duration of a call.

        The frame is popped on every exit path, so an error raised inside a
        function body never leaves stale parameter bindings behind.
        """
        if len(self.frames) >= config.MAX_CALL_DEPTH:
            raise FunctionCallError("maximum call depth exceeded")
        self.frames.append(bindings)
        try:
            yield
        finally:
            self.frames.pop()

    def assign_function(self, name: str, params: list[str], body: ASTNode) -> None:
        """Define or overwrite the user function *name*."""
        if len(set(params)) != len(params):
            duplicate = next(p for p in params if params.count(p) > 1)
            raise ExpressionError(f"argument id `{duplicate}` used twice in function assignment")
        if name in self.macros:
            raise ExpressionError(f"can't assign function `{name}`: macro with the same name exists")
        existing = self.functions.get(name)
        if existing is not None and existing["kind"] != "user":
            raise ExpressionError(f"can't assign function `{name}`: built-in function with the same name exists")

        self.functions[name] = user_function(list(params), copy_ast(body))
        logger.debug("defined %s(%s)", name, ", ".join(params))


def _check_arity(expected: int, args: list) -> None:
    if len(args) != expected:
        raise FunctionCallError(f"wrong number of arguments ({len(args)} given, {expected} expected)")


def call_function(env: Environment, name: str, args: list[ASTNode]) -> float:
    """Evaluate ``name(*args)`` against the function table.

    Dispatches on the function kind:

    * ``user`` -- evaluate every argument, bind them in a new call frame,
      evaluate the stored body.
    * ``variadic`` -- hand the raw trees to the native implementation.
    * ``fixed`` -- evaluate exactly ``arity`` arguments and call the
      numeric implementation.

    Raises
    ------
    FunctionCallError
        Unknown function or wrong argument count.
    ArgumentError
        A variadic argument slot was invalidated by an earlier consumer.
    """
    function = env.functions.get(name)
    if function is None:
        raise FunctionCallError(f"no such function: `{name}`")

    kind = function["kind"]
    if kind == "user":
        params = function["params"]
        _check_arity(len(params), args)
        values = [evaluate(arg, env) for arg in args]
        with env.call_frame(dict(zip(params, values))):
            return evaluate(function["body"], env)

    if kind == "variadic":
        if any(arg is None for arg in args):
            raise ArgumentError("function call invalidated")
        return float(function["fn"](args, env))

    if kind == "fixed":
        _check_arity(function["arity"], args)
        values = [evaluate(arg, env) for arg in args]
        with np.errstate(all="ignore"):
            return float(function["fn"](*values))

    raise FunctionCallError(f"`{name}` is not a function")


def _to_int64(value: float) -> int | None:
    if not math.isfinite(value):
        return None
    return int(min(max(math.trunc(value), INT64_MIN), INT64_MAX))


def integer_divide(left: float, right: float) -> float:
    """``left // right`` on int64-truncated operands, rounding toward zero.

    Examples
    --------
    >>> integer_divide(7.9, 2.0), integer_divide(-7.0, 2.0), integer_divide(5.0, 0.0)
    (3.0, -3.0, nan)
    """
    numerator, denominator = _to_int64(left), _to_int64(right)
    if numerator is None or denominator is None or denominator == 0:
        return math.nan
    quotient = abs(numerator) // abs(denominator)
    return float(quotient if (numerator < 0) == (denominator < 0) else -quotient)


def modulus(left: float, right: float) -> float:
    """``left % right`` on int64-truncated operands; the result takes the sign of *left*."""
    numerator, denominator = _to_int64(left), _to_int64(right)
    if numerator is None or denominator is None or denominator == 0:
        return math.nan
    remainder = abs(numerator) % abs(denominator)
    return float(-remainder if numerator < 0 else remainder)


_ARITHMETIC = {
    "add": np.add,
    "sub": np.subtract,
    "mul": np.multiply,
    "div": np.divide,
    "pow": np.power,
}

COMPARISONS = {
    "eq": lambda a, b: a == b,
    "ne": lambda a, b: a != b,
    "lt": lambda a, b: a < b,
    "le": lambda a, b: a <= b,
    "gt": lambda a, b: a > b,
    "ge": lambda a, b: a >= b,
}


def nth_derivative(env: Environment, name: str, order: int, at: float, step: float) -> float:
    """Nth derivative of the single-argument function *name* at *at*.

    Uses the recursive central difference
    ``D^n f(x) = (D^(n-1) f(x + h) - D^(n-1) f(x - h)) / 2h``.
    """
    if order == 0:
        return call_function(env, name, [("num", at)])
    forward = nth_derivative(env, name, order - 1, at + step, step)
    backward = nth_derivative(env, name, order - 1, at - step, step)
    with np.errstate(all="ignore"):
        return float((np.float64(forward) - backward) / (2 * step))


def evaluate(node: ASTNode, env: Environment) -> float:
    """Evaluate a tree to a float.

    Arithmetic follows IEEE semantics through numpy float64: division by
    zero and out-of-domain powers yield infinity or NaN instead of raising.
    Comparisons yield ``1.0`` or ``0.0``.

    Parameters
    ----------
    node : ASTNode
        The (macro-expanded) tree.
    env : Environment
        Identifier, function and call-frame state.

    Returns
    -------
    float
        The value of the statement.

    Examples
    --------
    >>> env = Environment()
    >>> evaluate(("add", ("num", 3.0), ("mul", ("num", 4.0), ("num", 2.0))), env)
    11.0
    >>> evaluate(("div", ("num", 1.0), ("num", 0.0)), env)
    inf
    """
    tag = node[0]

    if tag == "num":
        return node[1]

    if tag == "var":
        return env.get_id_value(node[1])

    if tag == "neg":
        return -evaluate(node[1], env)

    if tag in _ARITHMETIC:
        left = evaluate(node[1], env)
        right = evaluate(node[2], env)
        with np.errstate(all="ignore"):
            return float(_ARITHMETIC[tag](np.float64(left), np.float64(right)))

    if tag == "intdiv":
        return integer_divide(evaluate(node[1], env), evaluate(node[2], env))

    if tag == "mod":
        return modulus(evaluate(node[1], env), evaluate(node[2], env))

    if tag in COMPARISONS:
        left = evaluate(node[1], env)
        right = evaluate(node[2], env)
        return 1.0 if COMPARISONS[tag](left, right) else 0.0

    if tag == "assign":
        target = node[1]
        check_assignment_target(target)
        if target[0] == "var":
            return env.set_id_value(target[1], evaluate(node[2], env))
        env.assign_function(target[1], [arg[1] for arg in target[2]], node[2])
        return math.nan

    if tag == "call":
        return call_function(env, node[1], node[2])

    if tag == "deriv":
        args = node[2]
        if not args:
            raise ExpressionError("can't implicitly differentiate a function with no arguments")
        if len(args) > 1:
            raise ExpressionError("can't implicitly differentiate a function with more than one "
                                  "argument (consider using nderiv)")
        step = env.get_id_value("DERIV_STEP")
        return nth_derivative(env, node[1], node[3], evaluate(args[0], env), step)

    if tag == "sum":
        with np.errstate(all="ignore"):
            return float(np.sum([evaluate(arg, env) for arg in node[1]], dtype=np.float64))

    if tag == "product":
        with np.errstate(all="ignore"):
            return float(np.prod([evaluate(arg, env) for arg in node[1]], dtype=np.float64))

    raise ExpressionError(f"cannot evaluate node `{tag}`")
