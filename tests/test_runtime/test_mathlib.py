import math

import pytest

from calcas import config
from calcas.errors import ArgumentError, FunctionCallError
from calcas.execute import create_environment
from calcas.mathlib import combination, factorial, permutation
from calcas.parser import parse
from calcas.runtime import evaluate


@pytest.fixture
def env():
    return create_environment(seed=1234)


def run(text, env):
    """Helper function that parses and evaluates one statement."""
    return evaluate(parse(text), env)


def test_constants(env):
    assert run("pi", env) == math.pi
    assert run("e", env) == math.e
    assert math.isnan(run("NaN", env))
    assert run("RAND_MAX", env) == config.RAND_MAX
    assert run("DERIV_STEP", env) == config.DERIV_STEP
    assert run("INT_NUM_RECTS", env) == config.INT_NUM_RECTS


@pytest.mark.parametrize("text, expected", [
    ("floor(-2.5)", -3.0),
    ("ceil(2.1)", 3.0),
    ("abs(-4)", 4.0),
    ("sqrt(16)", 4.0),
    ("exp(0)", 1.0),
    ("ln(e)", 1.0),
    ("log(1000)", 3.0),
    ("deg(pi)", 180.0),
    ("rad(180)", math.pi),
    ("sin(pi / 2)", 1.0),
    ("cos(0)", 1.0),
    ("tan(pi / 4)", 1.0),
    ("csc(pi / 2)", 1.0),
    ("sec(0)", 1.0),
    ("cot(pi / 4)", 1.0),
    ("asin(1)", math.pi / 2),
    ("acos(1)", 0.0),
    ("atan(1)", math.pi / 4),
    ("pow(2, 0.5)", math.sqrt(2)),
    ("factorial(5)", 120.0),
    ("perm(5, 2)", 20.0),
    ("comb(5, 2)", 10.0),
    ("max(3, 9, -1)", 9.0),
    ("min(3, 9, -1)", -1.0),
    ("gcd(12, 18, 30)", 6.0),
])
def test_builtin_functions(env, text, expected):
    assert run(text, env) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["sqrt(-1)", "ln(-1)", "asin(2)", "gcd(NaN, 2)"])
def test_out_of_domain_is_nan(env, text):
    assert math.isnan(run(text, env))


def test_ln_zero_is_negative_infinity(env):
    assert run("ln(0)", env) == -math.inf


@pytest.mark.parametrize("text", ["factorial(-1)", "factorial(2.5)", "perm(3, 0.5)", "comb(-2, 1)"])
def test_counting_functions_need_non_negative_integers(env, text):
    with pytest.raises(ArgumentError, match="non-negative integer"):
        run(text, env)


def test_counting_functions_directly():
    assert factorial(0.0) == 1.0
    assert factorial(171.0) == math.inf
    assert permutation(4.0, 5.0) == 0.0
    assert combination(10.0, 3.0) == 120.0


@pytest.mark.parametrize("name", ["max", "min", "gcd"])
def test_variadic_needs_an_argument(env, name):
    with pytest.raises(ArgumentError, match="at least one argument"):
        run(f"{name}()", env)


def test_rand_is_seeded_and_in_range():
    first = [run("rand()", create_environment(seed=7)) for _ in range(3)]
    second = [run("rand()", create_environment(seed=7)) for _ in range(3)]
    assert first == second
    env = create_environment(seed=7)
    for _ in range(20):
        value = run("rand()", env)
        assert 0 <= value < config.RAND_MAX
        assert value == int(value)


def test_rand_ignores_an_optional_argument():
    plain = [run("rand()", create_environment(seed=3)) for _ in range(2)]
    with_arg = [run("rand(0)", create_environment(seed=3)) for _ in range(2)]
    assert plain == with_arg


def test_rand_argument_count(env):
    with pytest.raises(FunctionCallError, match="2 given, 1 expected"):
        run("rand(1, 2)", env)


def test_nderiv(env):
    assert run("nderiv(x^3, x, 2)", env) == pytest.approx(12.0, rel=1e-5)
    assert run("nderiv(sin(t), t, 0)", env) == pytest.approx(1.0, rel=1e-6)


def test_nderiv_sees_enclosing_parameters(env):
    run("slope(a) = nderiv(a * x^2, x, 1)", env)
    assert run("slope(3)", env) == pytest.approx(6.0, rel=1e-5)


def test_nderiv_leaves_globals_untouched(env):
    run("x = 5", env)
    run("nderiv(x^2, x, 1)", env)
    assert run("x", env) == 5.0


def test_nintegral(env):
    assert run("nintegral(x^2, x, 0, 3)", env) == pytest.approx(9.0, rel=1e-3)
    assert run("nintegral(1, x, 2, 5)", env) == pytest.approx(3.0)


def test_nintegral_respects_rectangle_count(env):
    run("INT_NUM_RECTS = 1", env)
    # a single midpoint rectangle over [0, 2] samples x = 1
    assert run("nintegral(x^2, x, 0, 2)", env) == pytest.approx(2.0)


def test_differential_must_be_identifier(env):
    with pytest.raises(ArgumentError, match="identifier"):
        run("nderiv(x^2, 2, 1)", env)
    with pytest.raises(FunctionCallError, match="wrong number of arguments"):
        run("nintegral(x, x, 1)", env)
