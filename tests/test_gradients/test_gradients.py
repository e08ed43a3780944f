import math

import numpy as np
import pytest
import torch

from calcas.codegen import compile_to_torch, compute_grad
from calcas.derivative import differentiate
from calcas.execute import create_environment
from calcas.parser import parse
from calcas.runtime import evaluate
from calcas.simplify import simplify
from gradient_checker import numerical_gradient


r_tol = 1e-04


# Helper
def as_function(tree, env, var="x"):
    """Evaluate *tree* as a function of *var* through the interpreter."""
    def f(value):
        env.identifiers[var] = float(value)
        return evaluate(tree, env)
    return f


def autograd_slope(tree, env, x_val):
    """Slope of *tree* at *x_val* from the compiled torch function."""
    fn = compile_to_torch(tree, env)
    x = torch.tensor(x_val, dtype=torch.float64, requires_grad=True)
    return float(compute_grad(fn(x), x))


@pytest.fixture
def env():
    return create_environment(seed=0)


EXPRESSIONS = [
    "x^3 - 2x",
    "sin(x) * cos(x)",
    "exp(-x^2)",
    "ln(x^2 + 1)",
    "x / (1 + x^2)",
    "sqrt(x + 4)",
    "atan(2x)",
    "2^x",
    "tan(x) + sec(x)",
]
POINTS = [-1.3, 0.2, 0.9]


class TestSymbolicDerivative:
    """Symbolic derivatives evaluated by the interpreter."""

    @pytest.mark.parametrize("text", EXPRESSIONS)
    def test_matches_numerical(self, env, text):
        tree = parse(text)
        derivative = simplify(differentiate(tree, "x", env))
        symbolic = [as_function(derivative, env)(p) for p in POINTS]
        numeric = numerical_gradient(as_function(tree, env), np.array(POINTS))
        assert np.allclose(symbolic, numeric, rtol=r_tol, atol=r_tol)

    @pytest.mark.parametrize("x_val, expected", [
        (0.0, 1.0),
        (1.0, 0.0),
        (-2.0, -0.12),
    ])
    def test_matches_analytical(self, env, x_val, expected):
        # d/dx x / (1 + x^2) = (1 - x^2) / (1 + x^2)^2; the raw power rule
        # carries 0 * ln(x), which is NaN for x <= 0 until simplified
        derivative = simplify(differentiate(parse("x / (1 + x^2)"), "x", env))
        assert as_function(derivative, env)(x_val) == pytest.approx(expected, abs=1e-12)

    def test_simplification_keeps_the_slope(self, env):
        # raw power rule takes ln of the base, so stay where sin(x) > 0
        derivative = differentiate(parse("sin(x)^2 * x"), "x", env)
        raw = as_function(derivative, env)
        simplified = as_function(simplify(derivative), env)
        for p in [0.2, 0.9, 2.0]:
            assert simplified(p) == pytest.approx(raw(p), rel=1e-9)


class TestAutograd:
    """Autograd through compiled torch code."""

    @pytest.mark.parametrize("text", EXPRESSIONS)
    def test_matches_symbolic(self, env, text):
        tree = parse(text)
        derivative = as_function(simplify(differentiate(tree, "x", env)), env)
        for p in POINTS:
            assert autograd_slope(tree, env, p) == pytest.approx(derivative(p), rel=r_tol, abs=r_tol)

    @pytest.mark.parametrize("x_val", [-1.5, -0.5, 0.5, 1.5, 3.14])
    def test_sin_cos(self, env, x_val):
        tree = parse("sin(x) + cos(x)")
        assert autograd_slope(tree, env, x_val) == pytest.approx(math.cos(x_val) - math.sin(x_val))

    def test_user_function_is_inlined(self, env):
        evaluate(parse("f(t) = t^2 + 3t"), env)
        assert autograd_slope(parse("f(x)"), env, 2.0) == pytest.approx(7.0)

    def test_constant_has_zero_slope(self, env):
        assert autograd_slope(parse("y + 4"), env, 1.0) == 0.0

    def test_graph_slope(self, env):
        index = env.graphs.add(parse("x^2"))
        slope = env.graphs.slope(index, [0.0, 1.0, 2.5])
        assert torch.allclose(slope, torch.tensor([0.0, 2.0, 5.0], dtype=torch.float64))

    def test_second_derivative(self, env):
        fn = compile_to_torch(parse("x^3"), env)
        x = torch.tensor(2.0, dtype=torch.float64, requires_grad=True)
        first = compute_grad(fn(x), x)
        assert float(compute_grad(first, x)) == pytest.approx(12.0)
