from calcas.errors import (CalculatorError
                           , TokenError
                           , ExpressionError
                           , FunctionCallError
                           , ArgumentError)
from calcas.parser import parse
from calcas.runtime import Environment, evaluate
from calcas.derivative import differentiate
from calcas.simplify import simplify, prettify
from calcas.execute import Calculator, calculate_text, create_environment
