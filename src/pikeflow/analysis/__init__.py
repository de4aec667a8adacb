"""Uninitialized-use analysis subpackage for pikeflow."""

from .diagnostics import Diagnostic, Position
from .scope import VariableRecord, VariableState
from .tokenizer import tokenize
from .tokens import Token
from .uninitialized import DEFAULT_FILENAME, analyze, analyze_source

__all__ = [
    "DEFAULT_FILENAME",
    "Diagnostic",
    "Position",
    "Token",
    "VariableRecord",
    "VariableState",
    "analyze",
    "analyze_source",
    "tokenize",
]
