"""Pike source tokenizer.

Whitespace, comments and preprocessor directives are kept as tokens; the
navigator helpers skip them when looking for meaningful tokens.
"""

from __future__ import annotations

import re

from pikeflow.analysis.tokens import Token
from pikeflow.exceptions import TokenizeError

_OPERATORS = (
    "...",
    "<<=",
    ">>=",
    "||=",
    "&&=",
    "->",
    "::",
    "..",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "++",
    "--",
    "<<",
    ">>",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "&=",
    "|=",
    "^=",
)

_TOKEN_RE = re.compile(
    r"""
    (?P<whitespace>\s+)
    | (?P<line_comment>//[^\n]*)
    | (?P<block_comment>/\*.*?\*/)
    | (?P<literal_string>\#"(?:[^"\\]|\\.)*")
    | (?P<string>"(?:[^"\\\n]|\\.)*")
    | (?P<char>'(?:[^'\\\n]|\\.)+')
    | (?P<number>0[xX][0-9a-fA-F]+|0[bB][01]+|\d+\.\d+(?:[eE][+-]?\d+)?|\d+(?:[eE][+-]?\d+)?)
    | (?P<identifier>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<operator_name>`(?:->=?|\[\]=?|\(\)|[+\-*/%&|^~<>=!]+|[A-Za-z_][A-Za-z0-9_]*))
    | (?P<operator>"""
    + "|".join(re.escape(op) for op in _OPERATORS)
    + r""")
    """,
    re.VERBOSE | re.DOTALL,
)

_DIRECTIVE_RE = re.compile(r"\#(?:[^\n\\]|\\.)*", re.DOTALL)


def _at_line_start(source: str, offset: int) -> bool:
    line_start = source.rfind("\n", 0, offset) + 1
    return not source[line_start:offset].strip()


def tokenize(source: str) -> list[Token]:
    """Split Pike source text into tokens carrying line and column.

    Raises TokenizeError for an unterminated string literal or block comment.
    """
    tokens: list[Token] = []
    line = 1
    line_start = 0
    offset = 0
    length = len(source)
    while offset < length:
        char = source[offset]
        match = None
        if char == "#" and not source.startswith('#"', offset):
            if _at_line_start(source, offset):
                match = _DIRECTIVE_RE.match(source, offset)
        if match is None:
            match = _TOKEN_RE.match(source, offset)
        if match is None:
            if char == '"' or source.startswith('#"', offset):
                raise TokenizeError("unterminated string literal", line=line)
            if source.startswith("/*", offset):
                raise TokenizeError("unterminated block comment", line=line)
            text = char
        else:
            text = match.group(0)
        tokens.append(Token(text=text, line=line, column=offset - line_start))
        newlines = text.count("\n")
        if newlines:
            line += newlines
            line_start = offset + text.rfind("\n") + 1
        offset += len(text)
    return tokens
