from __future__ import annotations

import logging
import math
from typing import Callable, Union

import torch

from calcas.errors import ExpressionError
from calcas.runtime import Environment
from calcas.utils.ast_utils import ASTNode, ast_to_string, substitute_params

logger = logging.getLogger(__name__)

# calculator built-in -> torch expression template
TORCH_FUNCS = {
    "floor": "torch.floor({0})",
    "ceil": "torch.ceil({0})",
    "abs": "torch.abs({0})",
    "sqrt": "torch.sqrt({0})",
    "exp": "torch.exp({0})",
    "ln": "torch.log({0})",
    "log": "torch.log10({0})",
    "deg": "torch.rad2deg({0})",
    "rad": "torch.deg2rad({0})",
    "sin": "torch.sin({0})",
    "cos": "torch.cos({0})",
    "tan": "torch.tan({0})",
    "csc": "(1 / torch.sin({0}))",
    "sec": "(1 / torch.cos({0}))",
    "cot": "(1 / torch.tan({0}))",
    "asin": "torch.asin({0})",
    "acos": "torch.acos({0})",
    "atan": "torch.atan({0})",
    "pow": "torch.pow({0}, {1})",
}

_BINARY_OPS = {"add": "+", "sub": "-", "mul": "*", "div": "/", "pow": "**"}
_COMPARISON_OPS = {"eq": "==", "ne": "!=", "lt": "<", "le": "<=", "gt": ">", "ge": ">="}


def mangle(name: str) -> str:
    """Python identifier used for the free variable *name* in generated code."""
    return f"v_{name}"


def _tensor(code: str) -> str:
    return f"torch.as_tensor({code}, dtype=torch.float64)"


def _literal(value: float) -> str:
    if math.isfinite(value):
        # (-2.0) ** x, not -(2.0 ** x)
        return repr(float(value)) if value >= 0 else f"({float(value)!r})"
    return f"float('{value}')"


def ast_to_torch_expr(node: ASTNode, env: Environment, free_var: str = "x") -> str:
    """Convert a calculator tree to a PyTorch source expression.

    The free variable becomes the mangled argument name; every other
    variable is read from *env* at translation time and inlined as a
    constant, exactly as the evaluator would read it.  User function calls
    are inlined by substituting the argument trees into the body.

    Parameters
    ----------
    node : ASTNode
        Expression tree (not modified).
    env : Environment
        Supplies variable values and user function bodies.
    free_var : str, default "x"
        The variable left symbolic.

    Returns
    -------
    str
        A Python expression using ``torch``.

    Raises
    ------
    ExpressionError
        For assignments, numeric derivative nodes and functions without a
        torch translation.

    Examples
    --------
    >>> from calcas.runtime import Environment
    >>> ast_to_torch_expr(("mul", ("num", 2.0), ("call", "sin", [("var", "x")])), Environment())
    '(2.0 * torch.sin(v_x))'
    """
    op = node[0]

    if op == "num":
        return _literal(node[1])

    elif op == "var":
        if node[1] == free_var:
            return mangle(free_var)
        return _literal(env.get_id_value(node[1]))

    elif op == "neg":
        return f"(-{ast_to_torch_expr(node[1], env, free_var)})"

    elif op in _BINARY_OPS:
        left = ast_to_torch_expr(node[1], env, free_var)
        right = ast_to_torch_expr(node[2], env, free_var)
        return f"({left} {_BINARY_OPS[op]} {right})"

    elif op == "intdiv":
        left = ast_to_torch_expr(node[1], env, free_var)
        right = ast_to_torch_expr(node[2], env, free_var)
        return f"torch.div(torch.trunc({_tensor(left)}), torch.trunc({_tensor(right)}), rounding_mode='trunc')"

    elif op == "mod":
        left = ast_to_torch_expr(node[1], env, free_var)
        right = ast_to_torch_expr(node[2], env, free_var)
        return f"torch.fmod(torch.trunc({_tensor(left)}), torch.trunc({_tensor(right)}))"

    elif op in _COMPARISON_OPS:
        left = ast_to_torch_expr(node[1], env, free_var)
        right = ast_to_torch_expr(node[2], env, free_var)
        return _tensor(f"{left} {_COMPARISON_OPS[op]} {right}")

    elif op in ("sum", "product"):
        joiner = " + " if op == "sum" else " * "
        return f"({joiner.join(ast_to_torch_expr(arg, env, free_var) for arg in node[1])})"

    elif op == "call":
        func_name, args = node[1], node[2]
        function = env.functions.get(func_name)
        if function is not None and function["kind"] == "user":
            params = function["params"]
            if len(params) != len(args):
                raise ExpressionError(f"expected {len(params)} argument(s) for `{func_name}`; got {len(args)}")
            return ast_to_torch_expr(substitute_params(function["body"], params, args), env, free_var)

        if func_name in TORCH_FUNCS:
            template = TORCH_FUNCS[func_name]
            expected = template.count("{")
            if len(args) != expected:
                raise ExpressionError(f"expected {expected} argument(s) for `{func_name}`; got {len(args)}")
            return template.format(*(ast_to_torch_expr(arg, env, free_var) for arg in args))

        raise ExpressionError(f"no torch translation for function `{func_name}`")

    raise ExpressionError(f"cannot compile expression: `{ast_to_string(node)}`")


def compile_to_torch(node: ASTNode, env: Environment, var: str = "x") -> Callable[[torch.Tensor], torch.Tensor]:
    """Compile *node* into a function of one tensor.

    The generated source is executed with ``exec()``; the returned callable
    always yields a float64 tensor with the shape of its input, so constant
    expressions broadcast over the sample points.

    Examples
    --------
    >>> from calcas.runtime import Environment
    >>> fn = compile_to_torch(("pow", ("var", "x"), ("num", 2.0)), Environment())
    >>> fn(torch.tensor([1.0, 3.0], dtype=torch.float64))
    tensor([1., 9.], dtype=torch.float64)
    """
    source = f"def compiled({mangle(var)}):\n    return {ast_to_torch_expr(node, env, var)}\n"
    logger.debug("generated torch code:\n%s", source)
    namespace = {"torch": torch}
    exec(source, namespace)
    compiled = namespace["compiled"]

    def evaluate_points(xs: Union[torch.Tensor, float]) -> torch.Tensor:
        xs = torch.as_tensor(xs, dtype=torch.float64)
        out = torch.as_tensor(compiled(xs), dtype=torch.float64)
        if out.shape != xs.shape:
            out = out + torch.zeros_like(xs)
        return out

    return evaluate_points


def compute_grad(
    output: Union[torch.Tensor, float],
    input: Union[torch.Tensor, float]
) -> torch.Tensor:
    """Compute the gradient of ``output`` with respect to ``input``.

    Wraps ``torch.autograd.grad`` with automatic tensor conversion and
    ``requires_grad`` handling.  ``create_graph`` and ``retain_graph`` are
    set so that higher-order derivatives remain available.

    Parameters
    ----------
    output : torch.Tensor or float
        The scalar output whose gradient is computed.
    input : torch.Tensor or float
        The variable to differentiate with respect to.

    Returns
    -------
    torch.Tensor
        The gradient ``d output / d input``; zeros when ``output`` does not
        depend on ``input``.

    Examples
    --------
    >>> x = torch.tensor(2.0, dtype=torch.float64, requires_grad=True)
    >>> compute_grad(x ** 2, x)
    tensor(4., dtype=torch.float64, grad_fn=<MulBackward0>)
    """
    if not isinstance(input, torch.Tensor):
        input = torch.tensor(float(input), dtype=torch.float64, requires_grad=True)
    if not input.requires_grad:
        input = input.clone().requires_grad_(True)
    if not isinstance(output, torch.Tensor):
        output = torch.tensor(output, dtype=torch.float64)
    if not output.requires_grad:
        return torch.zeros_like(input)
    grads = torch.autograd.grad(output, input, create_graph=True, retain_graph=True, allow_unused=True)
    if grads[0] is None:
        return torch.zeros_like(input)
    return grads[0]
