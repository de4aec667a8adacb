"""Source position lookup for tokens."""

from __future__ import annotations

import re
from typing import Sequence

from pikeflow.analysis.tokens import Token, is_identifier


class PositionResolver:
    """Resolve a token index to a 1-based line and 0-based character.

    Tokens that carry a column are reported as-is. For column-less tokens the
    character is recovered by locating the Nth occurrence of the token text on
    its source line, N being the token's ordinal among equal tokens on that
    line. Identifier occurrences must sit on word boundaries, so `s` is not
    found inside `string`; other substring collisions can still misplace the
    column.
    """

    def __init__(self, tokens: Sequence[Token], source_lines: Sequence[str]) -> None:
        self._tokens = tokens
        self._source_lines = source_lines
        self._ordinals: list[int] | None = None

    def resolve(self, index: int) -> tuple[int, int]:
        token = self._tokens[index]
        if token.column is not None:
            return token.line, token.column
        return token.line, self._search_column(token, self._ordinal(index))

    def _ordinal(self, index: int) -> int:
        if self._ordinals is None:
            seen: dict[tuple[int, str], int] = {}
            ordinals: list[int] = []
            for token in self._tokens:
                key = (token.line, token.text)
                ordinals.append(seen.get(key, 0))
                seen[key] = ordinals[-1] + 1
            self._ordinals = ordinals
        return self._ordinals[index]

    def _search_column(self, token: Token, ordinal: int) -> int:
        line_index = token.line - 1
        if line_index < 0 or line_index >= len(self._source_lines):
            return 0
        line_text = self._source_lines[line_index]
        if is_identifier(token.text):
            pattern = re.compile(
                r"(?<![A-Za-z0-9_])" + re.escape(token.text) + r"(?![A-Za-z0-9_])"
            )
            offsets = [match.start() for match in pattern.finditer(line_text)]
        else:
            offsets = []
            position = line_text.find(token.text)
            while position != -1 and token.text:
                offsets.append(position)
                position = line_text.find(token.text, position + len(token.text))
        if ordinal < len(offsets):
            return offsets[ordinal]
        return offsets[-1] if offsets else 0
