"""Entry points of the uninitialized-use analysis."""

from __future__ import annotations

import logging
from typing import Sequence

from pikeflow.analysis.diagnostics import Diagnostic
from pikeflow.analysis.flow_scanner import FlowScanner
from pikeflow.analysis.tokenizer import tokenize
from pikeflow.analysis.tokens import Token
from pikeflow.config import AnalysisOptions
from pikeflow.exceptions import TokenizeError

DEFAULT_FILENAME = "input.pike"

logger = logging.getLogger(__name__)


def analyze(
    tokens: Sequence[Token],
    source_lines: Sequence[str],
    filename: str,
    options: AnalysisOptions | None = None,
) -> list[Diagnostic]:
    """Diagnostics for risky reads of possibly uninitialized variables.

    Pure and synchronous: every call builds its own scope tables. Malformed
    brace or paren structure degrades the affected construct to a no-op
    instead of raising.
    """
    scanner = FlowScanner(
        tokens=tokens,
        source_lines=source_lines,
        filename=filename,
        options=options or AnalysisOptions(),
    )
    return scanner.run()


def analyze_source(
    code: str,
    filename: str = DEFAULT_FILENAME,
    options: AnalysisOptions | None = None,
) -> list[Diagnostic]:
    """Tokenize `code` and analyze it; a tokenizer failure yields no diagnostics."""
    try:
        tokens = tokenize(code)
    except TokenizeError as exc:
        logger.debug("%s: skipping uninitialized analysis: %s", filename, exc)
        return []
    return analyze(tokens, code.split("\n"), filename, options)
