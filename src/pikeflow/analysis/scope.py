"""Variable records, per-activation scope tables and branch snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterator, Mapping


class VariableState(StrEnum):
    UNINITIALIZED = "uninitialized"
    MAYBE_INITIALIZED = "maybe_init"
    INITIALIZED = "initialized"
    # A diagnostic was already emitted for the record; further reads stay quiet.
    UNKNOWN = "unknown"


@dataclass
class VariableRecord:
    name: str
    declared_type: str
    state: VariableState
    declaration_line: int
    declaration_column: int
    scope_depth: int
    needs_init_check: bool


StateSnapshot = dict[str, VariableState]


class ScopeTable:
    """Live variables of one activation, keyed by name.

    A declaration in a deeper block shadows the outer record of the same
    name; the outer record comes back when the inner block closes.
    """

    def __init__(self, records: list[VariableRecord] | None = None) -> None:
        self._records: dict[str, VariableRecord] = {}
        self._shadowed: dict[str, list[VariableRecord]] = {}
        for record in records or ():
            self.declare(record)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[VariableRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def get(self, name: str) -> VariableRecord | None:
        return self._records.get(name)

    def declare(self, record: VariableRecord) -> None:
        current = self._records.get(record.name)
        if current is not None and current.scope_depth < record.scope_depth:
            self._shadowed.setdefault(record.name, []).append(current)
        self._records[record.name] = record

    def remove_at_or_below(self, scope_depth: int) -> list[str]:
        """Drop records declared at `scope_depth` or deeper; returns their names."""
        removed = [
            name
            for name, record in self._records.items()
            if record.scope_depth >= scope_depth
        ]
        for name in removed:
            del self._records[name]
            outer = self._shadowed.get(name, [])
            while outer and outer[-1].scope_depth >= scope_depth:
                outer.pop()
            if outer:
                self._records[name] = outer.pop()
            if not outer:
                self._shadowed.pop(name, None)
        return removed

    def mark_initialized(self, name: str) -> None:
        record = self._records.get(name)
        if record is not None:
            record.state = VariableState.INITIALIZED

    def snapshot(self) -> StateSnapshot:
        return {name: record.state for name, record in self._records.items()}

    def restore(self, snapshot: Mapping[str, VariableState]) -> None:
        """Rewind states to `snapshot`. Records already reported stay UNKNOWN."""
        for name, state in snapshot.items():
            record = self._records.get(name)
            if record is not None and record.state is not VariableState.UNKNOWN:
                record.state = state


class BranchKind(StrEnum):
    IF = "if"
    WHILE = "while"
    FOR = "for"
    FOREACH = "foreach"
    SWITCH = "switch"


class BranchPhase(StrEnum):
    THEN = "then"
    AWAITING_ELSE = "awaiting_else"
    ELSE = "else"


@dataclass
class BranchFrame:
    """One open conditional.

    `arm_start`/`arm_end` delimit the token range of the arm being scanned;
    `pre_branch` is captured when the scan reaches `arm_start`, after the
    condition has been evaluated.
    """

    kind: BranchKind
    arm_start: int
    arm_end: int
    pre_branch: StateSnapshot | None = None
    phase: BranchPhase = BranchPhase.THEN
    then_branch: StateSnapshot | None = field(default=None)


def downgrade_conditional(table: ScopeTable, pre_branch: Mapping[str, VariableState]) -> None:
    """Records initialized only inside a conditional arm become maybe-initialized."""
    for name, before in pre_branch.items():
        record = table.get(name)
        if record is None:
            continue
        if record.state is VariableState.INITIALIZED and before in (
            VariableState.UNINITIALIZED,
            VariableState.MAYBE_INITIALIZED,
        ):
            record.state = VariableState.MAYBE_INITIALIZED


def join_states(
    then_state: VariableState, else_state: VariableState
) -> VariableState:
    match (then_state, else_state):
        case (VariableState.UNKNOWN, _) | (_, VariableState.UNKNOWN):
            return VariableState.UNKNOWN
        case (VariableState.INITIALIZED, VariableState.INITIALIZED):
            return VariableState.INITIALIZED
        case (VariableState.UNINITIALIZED, VariableState.UNINITIALIZED):
            return VariableState.UNINITIALIZED
        case _:
            return VariableState.MAYBE_INITIALIZED


def merge_branches(table: ScopeTable, frame: BranchFrame) -> None:
    """Join the then-arm outcome into the current (else-arm) states."""
    if frame.then_branch is None or frame.pre_branch is None:
        return
    for name in frame.pre_branch:
        record = table.get(name)
        then_state = frame.then_branch.get(name)
        if record is None or then_state is None:
            continue
        record.state = join_states(then_state, record.state)
