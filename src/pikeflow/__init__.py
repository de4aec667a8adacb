"""pikeflow package root."""

from pikeflow.analysis import Diagnostic, VariableState, analyze, analyze_source
from pikeflow.exceptions import NeverThrown, PikeflowError, TokenizeError
from pikeflow.invariants import never

__all__ = [
    "__version__",
    "Diagnostic",
    "NeverThrown",
    "PikeflowError",
    "TokenizeError",
    "VariableState",
    "analyze",
    "analyze_source",
    "never",
]

__version__ = "0.1.0"
