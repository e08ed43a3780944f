"""Centralized configuration for calcas.

Every value can be overridden through an environment variable prefixed
with ``CALCAS_`` (e.g. ``CALCAS_DERIV_STEP=1e-5``).  The numeric settings
that users may also change at runtime (``DERIV_STEP``, ``INT_NUM_RECTS``,
``ECHO``, ``PARTIAL``) only provide the initial identifier values of a new
environment.
"""

import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


# Numeric differentiation / integration
DERIV_STEP = float(os.getenv("CALCAS_DERIV_STEP", "1e-6"))
INT_NUM_RECTS = int(os.getenv("CALCAS_INT_NUM_RECTS", "100"))

# Recursion guards
MAX_EXPRESSION_DEPTH = int(os.getenv("CALCAS_MAX_EXPRESSION_DEPTH", "100"))  # nested sub-expressions
MAX_CALL_DEPTH = int(os.getenv("CALCAS_MAX_CALL_DEPTH", "150"))  # nested user-function calls

# Session behaviour
ECHO = _env_flag("CALCAS_ECHO", "false")
PARTIAL = _env_flag("CALCAS_PARTIAL", "true")

# Output
OUTPUT_PRECISION = int(os.getenv("CALCAS_OUTPUT_PRECISION", "12"))  # significant digits

# rand(); unset means a fresh seed per environment
_seed = os.getenv("CALCAS_RANDOM_SEED")
RANDOM_SEED = int(_seed) if _seed else None

RAND_MAX = 2147483647
