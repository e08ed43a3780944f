"""Built-in constants and native functions.

Fixed-arity functions receive evaluated floats and are called inside
``np.errstate(all="ignore")``, so numpy ufuncs return NaN/inf for
out-of-domain input instead of raising.  Variadic functions receive the raw
argument trees; ``nderiv`` and ``nintegral`` need them to re-evaluate an
expression while shifting its differential identifier.
"""
from __future__ import annotations

import math

import numpy as np

from calcas import config
from calcas.errors import ArgumentError, FunctionCallError
from calcas.runtime import Environment, evaluate, fixed_function, variadic_function
from calcas.utils.ast_utils import ASTNode


def _as_count(value: float, name: str) -> int:
    if not math.isfinite(value) or value < 0 or value != int(value):
        raise ArgumentError(f"{name} requires non-negative integer arguments")
    return int(value)


def _exact(value: int) -> float:
    try:
        return float(value)
    except OverflowError:
        return math.inf


def factorial(n: float) -> float:
    count = _as_count(n, "factorial")
    if count > 170:  # 171! overflows a double
        return math.inf
    return float(math.factorial(count))


def permutation(n: float, r: float) -> float:
    return _exact(math.perm(_as_count(n, "perm"), _as_count(r, "perm")))


def combination(n: float, r: float) -> float:
    return _exact(math.comb(_as_count(n, "comb"), _as_count(r, "comb")))


def _require_args(args: list[ASTNode], name: str) -> None:
    if not args:
        raise ArgumentError(f"{name}(...) requires at least one argument")


def vararg_max(args: list[ASTNode], env: Environment) -> float:
    _require_args(args, "max")
    return max(evaluate(arg, env) for arg in args)


def vararg_min(args: list[ASTNode], env: Environment) -> float:
    _require_args(args, "min")
    return min(evaluate(arg, env) for arg in args)


def vararg_gcd(args: list[ASTNode], env: Environment) -> float:
    _require_args(args, "gcd")
    values = [evaluate(arg, env) for arg in args]
    if not all(math.isfinite(v) for v in values):
        return math.nan
    return float(math.gcd(*(int(v) for v in values)))


def _differential_id(args: list[ASTNode], name: str, arity: int) -> str:
    if len(args) != arity:
        raise FunctionCallError(f"wrong number of arguments ({len(args)} given, {arity} expected)")
    if args[1][0] != "var":
        raise ArgumentError(f"{name}(...) expects an identifier as its differential")
    return args[1][1]


def _evaluate_at(expr: ASTNode, env: Environment, name: str, value: float) -> float:
    # keep the enclosing call's parameters visible while shifting `name`
    bindings = dict(env.frames[-1]) if env.frames else {}
    bindings[name] = value
    with env.call_frame(bindings):
        return evaluate(expr, env)


def numeric_derivative(args: list[ASTNode], env: Environment) -> float:
    """nderiv(expr, d, x): d(expr)/dd at d = x by central difference."""
    name = _differential_id(args, "nderiv", 3)
    at = evaluate(args[2], env)
    step = env.get_id_value("DERIV_STEP")
    forward = _evaluate_at(args[0], env, name, at + step)
    backward = _evaluate_at(args[0], env, name, at - step)
    with np.errstate(all="ignore"):
        return float((np.float64(forward) - backward) / (2 * step))


def numeric_integral(args: list[ASTNode], env: Environment) -> float:
    """nintegral(expr, d, a, b): midpoint rule with INT_NUM_RECTS rectangles."""
    name = _differential_id(args, "nintegral", 4)
    lower = evaluate(args[2], env)
    upper = evaluate(args[3], env)
    count = int(env.get_id_value("INT_NUM_RECTS"))
    if count < 1:
        raise ArgumentError("INT_NUM_RECTS must be at least 1")

    edges = np.linspace(lower, upper, count + 1)
    midpoints = (edges[:-1] + edges[1:]) / 2
    heights = np.array([_evaluate_at(args[0], env, name, float(x)) for x in midpoints])
    with np.errstate(all="ignore"):
        return float(np.sum(heights) * (upper - lower) / count)


def vararg_rand(args: list[ASTNode], env: Environment) -> float:
    # an optional argument is evaluated and ignored
    if len(args) > 1:
        raise FunctionCallError(f"wrong number of arguments ({len(args)} given, 1 expected)")
    for arg in args:
        evaluate(arg, env)
    return float(env.rng.integers(0, config.RAND_MAX))


CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
    "NaN": math.nan,
    "RAND_MAX": float(config.RAND_MAX),
}

UNARY = {
    "floor": np.floor,
    "ceil": np.ceil,
    "abs": np.abs,
    "sqrt": np.sqrt,
    "exp": np.exp,
    "ln": np.log,
    "log": np.log10,
    "deg": np.degrees,
    "rad": np.radians,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "csc": lambda x: 1 / np.sin(np.float64(x)),
    "sec": lambda x: 1 / np.cos(np.float64(x)),
    "cot": lambda x: 1 / np.tan(np.float64(x)),
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "factorial": factorial,
}

BINARY = {
    "pow": np.power,
    "perm": permutation,
    "comb": combination,
}

VARIADIC = {
    "max": vararg_max,
    "min": vararg_min,
    "gcd": vararg_gcd,
    "nderiv": numeric_derivative,
    "nintegral": numeric_integral,
    "rand": vararg_rand,
}


def init_math_constants(env: Environment) -> None:
    env.identifiers.update(CONSTANTS)
    env.identifiers["DERIV_STEP"] = config.DERIV_STEP
    env.identifiers["INT_NUM_RECTS"] = float(config.INT_NUM_RECTS)


def init_math_functions(env: Environment) -> None:
    for name, fn in UNARY.items():
        env.functions[name] = fixed_function(1, fn)
    for name, fn in BINARY.items():
        env.functions[name] = fixed_function(2, fn)
    for name, fn in VARIADIC.items():
        env.functions[name] = variadic_function(fn)
