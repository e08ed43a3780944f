from __future__ import annotations

import math
from typing import Any

from calcas import config


def format_result(value: float, precision: int | None = None) -> str:
    """Format an evaluation result for display.

    Integral values print without a decimal point, everything else with
    ``precision`` significant digits (``config.OUTPUT_PRECISION`` by
    default).  NaN prints as ``NaN`` so that numerically undefined results
    are easy to tell apart from error messages.

    Parameters
    ----------
    value : float
        The evaluated statement.
    precision : int or None, default None
        Number of significant digits.

    Returns
    -------
    str
        The display string.

    Examples
    --------
    >>> from calcas.utils.print_utils import format_result
    >>> format_result(1024.0)
    '1024'
    >>> format_result(1 / 3, precision=4)
    '0.3333'
    >>> format_result(float("nan"))
    'NaN'
    """
    if precision is None:
        precision = config.OUTPUT_PRECISION
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value) and abs(value) < 10 ** precision:
        return str(int(value))
    return f"{value:.{precision}g}"


def _pformat(value: Any, indent: int = 0) -> str:
    """Pretty-format a tagged-tuple tree with indentation.

    Short nodes that fit within 80 columns stay on a single line, longer
    ones are expanded vertically.  Used for debug logging of parsed and
    rewritten trees.

    Examples
    --------
    >>> from calcas.utils.print_utils import _pformat
    >>> _pformat(("num", 3.0))
    "('num', 3.0)"
    >>> print(_pformat(("call", "f", [("var", "x")])))
    ('call', 'f', [('var', 'x')])
    """
    prefix = "  " * indent

    if isinstance(value, (int, float)):
        return f"{prefix}{value}"

    if isinstance(value, str):
        return f"{prefix}{repr(value)}"

    if isinstance(value, (list, tuple)):
        opener, closer = ("[", "]") if isinstance(value, list) else ("(", ")")
        if not value:
            return f"{prefix}{opener}{closer}"
        oneline = f"{prefix}{repr(value)}"
        if len(oneline) <= 80:
            return oneline
        lines = [f"{prefix}{opener}"]
        for item in value:
            lines.append(f"{_pformat(item, indent + 1)},")
        lines.append(f"{prefix}{closer}")
        return "\n".join(lines)

    return f"{prefix}{repr(value)}"
