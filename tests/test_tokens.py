from __future__ import annotations

from pikeflow.analysis.tokenizer import tokenize
from pikeflow.analysis.tokens import (
    NOT_FOUND,
    Token,
    find_matching_brace,
    find_matching_paren,
    find_next_meaningful,
    find_next_token,
    find_prev_meaningful,
    find_statement_end,
    is_assignment_operator,
    is_identifier,
    is_meaningful,
    is_modifier,
    is_type_keyword,
    meaningful_indices,
    split_top_level,
)


def _index_of(tokens: list[Token], text: str, occurrence: int = 0) -> int:
    positions = [index for index, token in enumerate(tokens) if token.text == text]
    return positions[occurrence]


def test_classifiers() -> None:
    assert is_type_keyword("mapping")
    assert not is_type_keyword("Stdio")
    assert is_type_keyword("Stdio", frozenset({"Stdio"}))
    assert is_identifier("_private")
    assert is_identifier("name2")
    assert not is_identifier("2name")
    assert not is_identifier("")
    assert is_assignment_operator("||=")
    assert not is_assignment_operator("==")
    assert is_modifier("protected")
    assert not is_modifier("class")


def test_is_meaningful_skips_trivia_but_keeps_literal_strings() -> None:
    assert not is_meaningful(Token("   ", 1))
    assert not is_meaningful(Token("// note", 1))
    assert not is_meaningful(Token("/* block */", 1))
    assert not is_meaningful(Token("#pragma strict_types", 1))
    assert is_meaningful(Token('#"raw"', 1))
    assert is_meaningful(Token("x", 1))


def test_find_next_and_previous_meaningful() -> None:
    tokens = tokenize("a /* c */ b")
    a_index = _index_of(tokens, "a")
    b_index = _index_of(tokens, "b")
    assert find_next_meaningful(tokens, a_index + 1, len(tokens)) == b_index
    assert find_prev_meaningful(tokens, b_index - 1, 0) == a_index
    assert find_prev_meaningful(tokens, b_index - 1, a_index + 1) == NOT_FOUND
    assert find_next_meaningful(tokens, b_index + 1, len(tokens)) == NOT_FOUND


def test_find_next_token_respects_window() -> None:
    tokens = tokenize("x ; y ;")
    first = _index_of(tokens, ";")
    second = _index_of(tokens, ";", 1)
    assert find_next_token(tokens, 0, len(tokens), ";") == first
    assert find_next_token(tokens, first + 1, len(tokens), ";") == second
    assert find_next_token(tokens, 0, first, ";") == NOT_FOUND


def test_find_matching_pairs() -> None:
    tokens = tokenize("{ f(a, (b)); { } }")
    outer_open = _index_of(tokens, "{")
    assert find_matching_brace(tokens, outer_open, len(tokens)) == _index_of(tokens, "}", 1)
    paren_open = _index_of(tokens, "(")
    assert find_matching_paren(tokens, paren_open, len(tokens)) == _index_of(tokens, ")", 1)


def test_find_matching_reports_unbalanced_input() -> None:
    tokens = tokenize("{ ( }")
    assert find_matching_brace(tokens, 0, len(tokens)) == _index_of(tokens, "}")
    assert find_matching_paren(tokens, _index_of(tokens, "("), len(tokens)) == NOT_FOUND
    assert find_matching_brace(tokens, _index_of(tokens, "("), len(tokens)) == NOT_FOUND
    assert find_matching_paren(tokens, 99, len(tokens)) == NOT_FOUND


def test_find_statement_end_ignores_nested_semicolons() -> None:
    tokens = tokenize("for (i = 0; i < 3; i++) x; y;")
    close = _index_of(tokens, ")")
    assert find_statement_end(tokens, close + 1, len(tokens)) == _index_of(tokens, ";", 2)


def test_find_statement_end_of_block_is_its_closing_brace() -> None:
    tokens = tokenize(") { a; { b; } } c;")
    assert find_statement_end(tokens, 1, len(tokens)) == _index_of(tokens, "}", 1)


def test_find_statement_end_stops_at_enclosing_close() -> None:
    tokens = tokenize("x }")
    assert find_statement_end(tokens, 0, len(tokens)) == NOT_FOUND


def test_split_top_level() -> None:
    tokens = tokenize("(a, f(b, c), ({ d, e }))")
    close = len(tokens) - 1
    segments = split_top_level(tokens, 1, close, {","})
    assert [
        "".join(tokens[i].text for i in meaningful_indices(tokens, start, end))
        for start, end in segments
    ] == ["a", "f(b,c)", "({d,e})"]


def test_split_top_level_without_separator_returns_whole_window() -> None:
    tokens = tokenize("a b")
    assert split_top_level(tokens, 0, len(tokens), {","}) == [(0, len(tokens))]
