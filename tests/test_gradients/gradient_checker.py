import numpy as np
from typing import Callable


def numerical_gradient(
    f: Callable[[float], float],
    x: np.ndarray,
    h: float = 1e-5,
) -> np.ndarray:
    """Central-difference slope of a scalar function at several points.

    Used to check the symbolic differentiator and the autograd path of the
    torch code generator against an independent estimate.  For each point
    the derivative is approximated by:

        grad[i] = (f(x[i] + h) - f(x[i] - h)) / (2h)

    Parameters
    ----------
    f : Callable[[float], float]
        Function of one real variable.
    x : numpy.ndarray
        1-D array of evaluation points.  It is never modified.
    h : float, default 1e-5
        Step size for the central difference.

    Returns
    -------
    numpy.ndarray
        Slopes with the same shape as *x*.

    Examples
    --------
    >>> import math
    >>> import numpy as np
    >>> from gradient_checker import numerical_gradient
    >>> grad = numerical_gradient(lambda t: t ** 2, np.array([3.0]))
    >>> abs(grad[0] - 6.0) < 1e-4
    True
    >>> x0 = np.array([0.5, 1.0, 1.5])
    >>> grad = numerical_gradient(math.sin, x0)
    >>> bool(np.allclose(grad, np.cos(x0), atol=1e-4))
    True
    """
    grad = np.zeros_like(x, dtype=float)
    for i, point in enumerate(np.asarray(x, dtype=float)):
        grad[i] = (f(point + h) - f(point - h)) / (2 * h)
    return grad
