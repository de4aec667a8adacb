"""Token model, text classification and window navigation helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Sequence


@dataclass(frozen=True)
class Token:
    text: str
    line: int
    column: int | None = None


TYPE_KEYWORDS: frozenset[str] = frozenset(
    {
        "int",
        "float",
        "string",
        "array",
        "mapping",
        "multiset",
        "object",
        "function",
        "program",
        "mixed",
        "void",
        "auto",
        "zero",
    }
)

# Types whose zero value is unsafe to read.
RISKY_TYPES: frozenset[str] = frozenset(
    {
        "string",
        "array",
        "mapping",
        "multiset",
        "object",
        "function",
        "mixed",
    }
)

ASSIGNMENT_OPERATORS: frozenset[str] = frozenset(
    {
        "=",
        "+=",
        "-=",
        "*=",
        "/=",
        "%=",
        "&=",
        "|=",
        "^=",
        "<<=",
        ">>=",
        "||=",
        "&&=",
    }
)

MODIFIERS: frozenset[str] = frozenset(
    {
        "public",
        "private",
        "protected",
        "static",
        "final",
        "inline",
        "local",
        "optional",
        "variant",
    }
)

# Words that open a statement and so never name a type or a function.
STATEMENT_KEYWORDS: frozenset[str] = frozenset(
    {
        "if",
        "else",
        "while",
        "do",
        "for",
        "foreach",
        "switch",
        "case",
        "default",
        "return",
        "break",
        "continue",
        "catch",
        "gauge",
        "class",
        "lambda",
        "inherit",
        "import",
        "typedef",
        "enum",
        "constant",
    }
)

NOT_FOUND = -1


def is_type_keyword(text: str, keywords: AbstractSet[str] = TYPE_KEYWORDS) -> bool:
    return text in keywords


def is_identifier(text: str) -> bool:
    if not text:
        return False
    first = text[0]
    return first == "_" or first.isalpha()


def is_assignment_operator(text: str) -> bool:
    return text in ASSIGNMENT_OPERATORS


def is_modifier(text: str) -> bool:
    return text in MODIFIERS


def is_meaningful(token: Token) -> bool:
    text = token.text.strip()
    if not text:
        return False
    return not text.startswith(("//", "/*", "#")) or text.startswith('#"')


def find_next_token(tokens: Sequence[Token], start: int, end: int, literal: str) -> int:
    for index in range(max(start, 0), min(end, len(tokens))):
        if tokens[index].text == literal:
            return index
    return NOT_FOUND


def find_next_meaningful(tokens: Sequence[Token], start: int, end: int) -> int:
    for index in range(max(start, 0), min(end, len(tokens))):
        if is_meaningful(tokens[index]):
            return index
    return NOT_FOUND


def find_prev_meaningful(tokens: Sequence[Token], start: int, minimum: int) -> int:
    index = min(start, len(tokens) - 1)
    floor = max(minimum, 0)
    while index >= floor:
        if is_meaningful(tokens[index]):
            return index
        index -= 1
    return NOT_FOUND


def _find_matching(
    tokens: Sequence[Token], open_index: int, end: int, opener: str, closer: str
) -> int:
    if open_index < 0 or open_index >= len(tokens):
        return NOT_FOUND
    if tokens[open_index].text != opener:
        return NOT_FOUND
    depth = 0
    for index in range(open_index, min(end, len(tokens))):
        text = tokens[index].text
        if text == opener:
            depth += 1
        elif text == closer:
            depth -= 1
            if depth == 0:
                return index
    return NOT_FOUND


def find_matching_brace(tokens: Sequence[Token], open_index: int, end: int) -> int:
    return _find_matching(tokens, open_index, end, "{", "}")


def find_matching_paren(tokens: Sequence[Token], open_index: int, end: int) -> int:
    return _find_matching(tokens, open_index, end, "(", ")")


def find_statement_end(tokens: Sequence[Token], start: int, end: int) -> int:
    """Index of the `;` ending the statement that begins at `start`.

    Semicolons nested inside parens, brackets or braces do not count. A
    statement that is itself a braced block ends at its closing brace.
    """
    first = find_next_meaningful(tokens, start, end)
    if first == NOT_FOUND:
        return NOT_FOUND
    if tokens[first].text == "{":
        return find_matching_brace(tokens, first, end)
    depth = 0
    for index in range(first, min(end, len(tokens))):
        text = tokens[index].text
        if text in {"(", "[", "{"}:
            depth += 1
        elif text in {")", "]", "}"}:
            depth -= 1
            if depth < 0:
                return NOT_FOUND
        elif text == ";" and depth == 0:
            return index
    return NOT_FOUND


def split_top_level(
    tokens: Sequence[Token], start: int, end: int, separators: AbstractSet[str]
) -> list[tuple[int, int]]:
    """Split `[start, end)` at separators that sit outside any bracket pair."""
    segments: list[tuple[int, int]] = []
    depth = 0
    segment_start = start
    for index in range(start, min(end, len(tokens))):
        text = tokens[index].text
        if text in {"(", "[", "{"}:
            depth += 1
        elif text in {")", "]", "}"}:
            depth -= 1
        elif depth == 0 and text in separators:
            segments.append((segment_start, index))
            segment_start = index + 1
    segments.append((segment_start, min(end, len(tokens))))
    return segments


def meaningful_indices(tokens: Sequence[Token], start: int, end: int) -> list[int]:
    return [
        index
        for index in range(max(start, 0), min(end, len(tokens)))
        if is_meaningful(tokens[index])
    ]
