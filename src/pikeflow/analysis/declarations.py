"""Declaration recognition and definition boundary detection over token windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Sequence

from pikeflow.analysis.scope import VariableRecord, VariableState
from pikeflow.analysis.tokens import (
    NOT_FOUND,
    STATEMENT_KEYWORDS,
    TYPE_KEYWORDS,
    Token,
    find_matching_paren,
    find_next_meaningful,
    is_identifier,
    is_modifier,
    is_type_keyword,
    meaningful_indices,
    split_top_level,
)


@dataclass(frozen=True)
class DeclarationMatch:
    is_declaration: bool
    name: str = ""
    type: str = ""
    has_initializer: bool = False
    end_index: int = NOT_FOUND
    name_index: int = NOT_FOUND


NO_DECLARATION = DeclarationMatch(is_declaration=False)


@dataclass(frozen=True)
class TypeMatch:
    text: str
    members: tuple[str, ...]
    next_index: int


def parse_type(
    tokens: Sequence[Token],
    start: int,
    end: int,
    keywords: AbstractSet[str] = TYPE_KEYWORDS,
) -> TypeMatch | None:
    """Parse `kw[(...)]` optionally joined into a `kw|kw` union.

    `next_index` is the first meaningful token after the type, or NOT_FOUND
    when the window ends right after it.
    """
    index = start
    parts: list[str] = []
    members: list[str] = []
    while True:
        if index == NOT_FOUND or index >= end:
            return None
        keyword = tokens[index].text
        if not is_type_keyword(keyword, keywords):
            return None
        members.append(keyword)
        text = keyword
        index = find_next_meaningful(tokens, index + 1, end)
        if index != NOT_FOUND and tokens[index].text == "(":
            close = find_matching_paren(tokens, index, end)
            if close == NOT_FOUND:
                return None
            text += "".join(
                tokens[position].text for position in meaningful_indices(tokens, index, close + 1)
            )
            index = find_next_meaningful(tokens, close + 1, end)
        parts.append(text)
        if index == NOT_FOUND or tokens[index].text != "|":
            break
        index = find_next_meaningful(tokens, index + 1, end)
    return TypeMatch(text="|".join(parts), members=tuple(members), next_index=index)


def try_parse_declaration(
    tokens: Sequence[Token],
    start: int,
    end: int,
    keywords: AbstractSet[str] = TYPE_KEYWORDS,
) -> DeclarationMatch:
    """Recognise `<type> <name> [= <expr>]` starting at `start`.

    Only the first binding of a `,`-separated list is parsed; `end_index`
    then points at the comma. For an initializer it points just past `=`.
    """
    type_match = parse_type(tokens, start, end, keywords)
    if type_match is None:
        return NO_DECLARATION
    name_index = type_match.next_index
    if name_index != NOT_FOUND and tokens[name_index].text == "...":
        name_index = find_next_meaningful(tokens, name_index + 1, end)
    if name_index == NOT_FOUND:
        return NO_DECLARATION
    name = tokens[name_index].text
    if not is_identifier(name) or is_type_keyword(name, keywords):
        return NO_DECLARATION
    follower = find_next_meaningful(tokens, name_index + 1, end)
    if follower == NOT_FOUND:
        return DeclarationMatch(True, name, type_match.text, False, end, name_index)
    text = tokens[follower].text
    if text == "=":
        return DeclarationMatch(True, name, type_match.text, True, follower + 1, name_index)
    if text == ";":
        return DeclarationMatch(True, name, type_match.text, False, follower + 1, name_index)
    if text == ",":
        return DeclarationMatch(True, name, type_match.text, False, follower, name_index)
    return NO_DECLARATION


def needs_init_check(
    declared_type: str, risky_types: AbstractSet[str]
) -> bool:
    """True when every member of the declared type has an unsafe zero value.

    `array(int)` is checked like `array`; a union containing a primitive
    such as `string|int` is exempt because 0 is a valid value for it.
    """
    members = [part for part in declared_type.split("|") if part]
    if not members:
        return False
    for member in members:
        base = member.split("(", 1)[0]
        if base not in risky_types:
            return False
    return True


def _skip_modifiers(tokens: Sequence[Token], index: int, end: int) -> int:
    while index != NOT_FOUND and index < end and is_modifier(tokens[index].text):
        index = find_next_meaningful(tokens, index + 1, end)
    return index


@dataclass(frozen=True)
class DefinitionBounds:
    params_open: int
    params_close: int
    body_open: int


def _skip_named_type(tokens: Sequence[Token], start: int, end: int) -> int:
    """Index just past a class-typed name such as `Foo`, `Stdio.File` or `A::B`."""
    index = start
    while True:
        if index == NOT_FOUND or index >= end:
            return NOT_FOUND
        text = tokens[index].text
        if not is_identifier(text) or text in STATEMENT_KEYWORDS:
            return NOT_FOUND
        index = find_next_meaningful(tokens, index + 1, end)
        if index == NOT_FOUND or tokens[index].text not in {".", "::"}:
            return index
        index = find_next_meaningful(tokens, index + 1, end)


def function_definition_bounds(
    tokens: Sequence[Token],
    index: int,
    end: int,
    keywords: AbstractSet[str] = TYPE_KEYWORDS,
) -> DefinitionBounds | None:
    start = _skip_modifiers(tokens, index, end)
    if start == NOT_FOUND or start >= end:
        return None
    type_match = parse_type(tokens, start, end, keywords)
    if type_match is not None:
        name_index = type_match.next_index
    else:
        name_index = _skip_named_type(tokens, start, end)
    if name_index == NOT_FOUND:
        return None
    name = tokens[name_index].text
    if (
        not is_identifier(name)
        or is_type_keyword(name, keywords)
        or name in STATEMENT_KEYWORDS
    ):
        return None
    params_open = find_next_meaningful(tokens, name_index + 1, end)
    return _bounds_from_params(tokens, params_open, end)


def lambda_definition_bounds(
    tokens: Sequence[Token], index: int, end: int
) -> DefinitionBounds | None:
    if index >= end or tokens[index].text != "lambda":
        return None
    params_open = find_next_meaningful(tokens, index + 1, end)
    return _bounds_from_params(tokens, params_open, end)


def _bounds_from_params(
    tokens: Sequence[Token], params_open: int, end: int
) -> DefinitionBounds | None:
    if params_open == NOT_FOUND or tokens[params_open].text != "(":
        return None
    params_close = find_matching_paren(tokens, params_open, end)
    if params_close == NOT_FOUND:
        return None
    body_open = find_next_meaningful(tokens, params_close + 1, end)
    if body_open == NOT_FOUND or tokens[body_open].text != "{":
        return None
    return DefinitionBounds(params_open, params_close, body_open)


def is_function_definition_at(
    tokens: Sequence[Token],
    index: int,
    end: int,
    keywords: AbstractSet[str] = TYPE_KEYWORDS,
) -> bool:
    return function_definition_bounds(tokens, index, end, keywords) is not None


def is_lambda_definition_at(tokens: Sequence[Token], index: int, end: int) -> bool:
    return lambda_definition_bounds(tokens, index, end) is not None


def extract_parameter_bindings(
    tokens: Sequence[Token],
    params_open: int,
    body_open: int,
    keywords: AbstractSet[str] = TYPE_KEYWORDS,
) -> list[VariableRecord]:
    """Records for the parameters between `params_open` and its closing paren.

    Parameters are always initialized and never checked. A parameter the
    recogniser rejects (class-typed or unusual syntax) is bound by its last
    identifier.
    """
    params_close = find_matching_paren(tokens, params_open, body_open + 1)
    if params_close == NOT_FOUND:
        return []
    records: list[VariableRecord] = []
    for segment_start, segment_end in split_top_level(
        tokens, params_open + 1, params_close, {","}
    ):
        first = find_next_meaningful(tokens, segment_start, segment_end)
        if first == NOT_FOUND:
            continue
        first = _skip_modifiers(tokens, first, segment_end)
        if first == NOT_FOUND:
            continue
        match = try_parse_declaration(tokens, first, segment_end, keywords)
        if match.is_declaration:
            name, declared_type, name_index = match.name, match.type, match.name_index
        else:
            candidates = [
                position
                for position in meaningful_indices(tokens, first, segment_end)
                if is_identifier(tokens[position].text)
                and not is_type_keyword(tokens[position].text, keywords)
            ]
            if not candidates:
                continue
            name_index = candidates[-1]
            name = tokens[name_index].text
            declared_type = "mixed"
        token = tokens[name_index]
        records.append(
            VariableRecord(
                name=name,
                declared_type=declared_type,
                state=VariableState.INITIALIZED,
                declaration_line=token.line,
                declaration_column=token.column if token.column is not None else 0,
                scope_depth=1,
                needs_init_check=False,
            )
        )
    return records
