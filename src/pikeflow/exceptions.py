"""Exception types raised by pikeflow."""

from __future__ import annotations


class PikeflowError(RuntimeError):
    """Base class for pikeflow failures."""


class TokenizeError(PikeflowError):
    """Source text could not be split into tokens.

    The flow scanner never sees this error: the analysis entry point absorbs
    it and reports no diagnostics for the file.
    """

    def __init__(self, message: str, *, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.reason = message
        self.line = line


class NeverThrown(PikeflowError):
    """Raised by never() when a path assumed unreachable is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.env = dict(env or {})
