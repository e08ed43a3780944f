"""Error family raised by every stage of the calculator.

All errors share :class:`CalculatorError`; subclasses only change the
``kind`` tag used when the error is rendered for the user.  Numeric edge
cases (division by zero, ``0^-1``, ``ln(-1)``) are *not* errors: they
propagate as NaN or infinity.
"""


class CalculatorError(Exception):
    """Base class for all calculator errors.

    Examples
    --------
    >>> from calcas.errors import ExpressionError
    >>> ExpressionError("unmatched parenthesis").render()
    'ExpressionError: unmatched parenthesis.'
    """

    kind = "CalculatorError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def render(self) -> str:
        return f"{self.kind}: {self.message}."


class TokenError(CalculatorError):
    """Unrecognized character in the input text."""

    kind = "TokenError"


class ExpressionError(CalculatorError):
    """Structural problem with a statement (parse or differentiation time)."""

    kind = "ExpressionError"


class FunctionCallError(CalculatorError):
    """Unknown function or wrong number of arguments."""

    kind = "FunctionCallError"


class ArgumentError(CalculatorError):
    """Domain violation inside a native function."""

    kind = "ArgumentError"
