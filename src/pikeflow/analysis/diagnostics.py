"""Diagnostic records emitted by the uninitialized-use analysis."""

from __future__ import annotations

from dataclasses import dataclass

from pikeflow.analysis.scope import VariableState
from pikeflow.json_types import JSONObject

DIAGNOSTIC_SOURCE = "uninitialized-variable"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class Position:
    file: str
    line: int
    character: int


@dataclass(frozen=True)
class Diagnostic:
    message: str
    position: Position
    variable: str
    type: str = ""
    state: str = VariableState.UNINITIALIZED.value
    severity: str = SEVERITY_WARNING
    source: str = DIAGNOSTIC_SOURCE

    def as_dict(self) -> JSONObject:
        return {
            "message": self.message,
            "severity": self.severity,
            "position": {
                "file": self.position.file,
                "line": self.position.line,
                "character": self.position.character,
            },
            "variable": self.variable,
            "type": self.type,
            "state": self.state,
            "source": self.source,
        }

    def sort_key(self) -> tuple[int, int, str]:
        return (self.position.line, self.position.character, self.variable)


def uninitialized_message(name: str, state: VariableState) -> str:
    if state is VariableState.MAYBE_INITIALIZED:
        return f"Variable '{name}' may be uninitialized"
    return f"Variable '{name}' is used before being initialized"


def build_diagnostic(
    *,
    name: str,
    declared_type: str,
    state: VariableState,
    filename: str,
    line: int,
    character: int,
) -> Diagnostic:
    return Diagnostic(
        message=uninitialized_message(name, state),
        position=Position(file=filename, line=line, character=character),
        variable=name,
        type=declared_type,
        state=state.value,
    )
