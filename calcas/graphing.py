"""Graph registry.

Owns the expressions registered with the ``graph`` macro and samples them
over tensors of points.  Rendering is left to the host application.
"""
from __future__ import annotations

import logging
from typing import Union

import torch

from calcas.codegen import compile_to_torch, compute_grad
from calcas.errors import ArgumentError
from calcas.utils.ast_utils import ASTNode, ast_to_string, copy_ast

logger = logging.getLogger(__name__)


class GraphRegistry:
    """Graphed expressions of one session, keyed by a stable index.

    Indices are never reused, so removing a graph does not renumber the
    remaining ones.

    Examples
    --------
    >>> from calcas.execute import create_environment
    >>> env = create_environment()
    >>> index = env.graphs.add(("pow", ("var", "x"), ("num", 2.0)))
    >>> env.graphs.sample(index, torch.tensor([2.0], dtype=torch.float64))
    tensor([4.], dtype=torch.float64)
    """

    def __init__(self, env, var: str = "x"):
        self.env = env
        self.var = var
        self.graphs: dict[int, ASTNode] = {}
        self._next_index = 0

    def __len__(self) -> int:
        return len(self.graphs)

    def __contains__(self, index: int) -> bool:
        return index in self.graphs

    def add(self, tree: ASTNode) -> int:
        index = self._next_index
        self.graphs[index] = copy_ast(tree)
        self._next_index += 1
        logger.debug("graph %d: %s", index, ast_to_string(tree))
        return index

    def remove(self, index: int) -> None:
        if index not in self.graphs:
            raise ArgumentError(f"no graph with index {index}")
        del self.graphs[index]
        logger.debug("removed graph %d", index)

    def clear(self) -> None:
        self.graphs.clear()

    def _compiled(self, index: int):
        if index not in self.graphs:
            raise ArgumentError(f"no graph with index {index}")
        return compile_to_torch(self.graphs[index], self.env, self.var)

    def sample(self, index: int, xs: Union[torch.Tensor, list[float]]) -> torch.Tensor:
        """Values of graph *index* at the points *xs*."""
        return self._compiled(index)(torch.as_tensor(xs, dtype=torch.float64))

    def slope(self, index: int, xs: Union[torch.Tensor, list[float]]) -> torch.Tensor:
        """Derivative of graph *index* at the points *xs*, through autograd."""
        points = torch.as_tensor(xs, dtype=torch.float64).detach().clone().requires_grad_(True)
        values = self._compiled(index)(points)
        return compute_grad(values.sum(), points).detach()
