"""Single-pass flow scanner behind the uninitialized-use analysis.

Each function or lambda body, each class body and the top level are scanned
as separate activations. Activations are taken from an explicit work stack,
so source nesting never deepens the Python call stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Sequence

from pikeflow.analysis.declarations import (
    DefinitionBounds,
    extract_parameter_bindings,
    function_definition_bounds,
    lambda_definition_bounds,
    needs_init_check,
    try_parse_declaration,
)
from pikeflow.analysis.diagnostics import Diagnostic, build_diagnostic
from pikeflow.analysis.positions import PositionResolver
from pikeflow.analysis.scope import (
    BranchFrame,
    BranchKind,
    BranchPhase,
    ScopeTable,
    VariableRecord,
    VariableState,
    downgrade_conditional,
    merge_branches,
)
from pikeflow.analysis.tokens import (
    NOT_FOUND,
    Token,
    find_matching_brace,
    find_matching_paren,
    find_next_meaningful,
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
from pikeflow.config import AnalysisOptions

logger = logging.getLogger(__name__)

_CONDITIONAL_KEYWORDS: dict[str, BranchKind] = {
    "if": BranchKind.IF,
    "while": BranchKind.WHILE,
    "for": BranchKind.FOR,
    "switch": BranchKind.SWITCH,
}
_MEMBER_ACCESS = frozenset({"->", ".", "::"})
_OPENERS = frozenset({"(", "["})
_CLOSERS = frozenset({")", "]"})


@dataclass(frozen=True)
class Activation:
    start: int
    end: int
    seeds: tuple[VariableRecord, ...] = ()
    baseline_depth: int = 0
    label: str = "<toplevel>"


@dataclass
class _PendingDeclaration:
    declared_type: str
    paren_level: int


@dataclass
class FlowScanner:
    tokens: Sequence[Token]
    source_lines: Sequence[str]
    filename: str
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    def __post_init__(self) -> None:
        self.positions = PositionResolver(self.tokens, self.source_lines)
        self.diagnostics: list[Diagnostic] = []
        self._jobs: list[Activation] = []

    def run(self) -> list[Diagnostic]:
        self._jobs.append(Activation(start=0, end=len(self.tokens)))
        scanned = 0
        while self._jobs:
            job = self._jobs.pop()
            _ActivationScan(self, job).scan()
            scanned += 1
        logger.debug(
            "%s: %d activation(s), %d diagnostic(s)",
            self.filename,
            scanned,
            len(self.diagnostics),
        )
        return sorted(self.diagnostics, key=Diagnostic.sort_key)

    def schedule(self, activation: Activation) -> None:
        self._jobs.append(activation)

    def report(self, index: int, record: VariableRecord) -> None:
        line, character = self.positions.resolve(index)
        self.diagnostics.append(
            build_diagnostic(
                name=record.name,
                declared_type=record.declared_type,
                state=record.state,
                filename=self.filename,
                line=line,
                character=character,
            )
        )


class _ActivationScan:
    def __init__(self, scanner: FlowScanner, job: Activation) -> None:
        self.scanner = scanner
        self.tokens = scanner.tokens
        self.options = scanner.options
        self.job = job
        self.table = ScopeTable(
            [
                VariableRecord(
                    name=seed.name,
                    declared_type=seed.declared_type,
                    state=seed.state,
                    declaration_line=seed.declaration_line,
                    declaration_column=seed.declaration_column,
                    scope_depth=seed.scope_depth,
                    needs_init_check=seed.needs_init_check,
                )
                for seed in job.seeds
            ]
        )
        self.depth = job.baseline_depth
        self.frames: list[BranchFrame] = []
        self.paren_level = 0
        self.pending: _PendingDeclaration | None = None

    def scan(self) -> None:
        index = self.job.start
        while index < self.job.end:
            self._open_ready_arm(index)
            index = self._step(index)
            self._close_finished_arms(index)

    def _step(self, index: int) -> int:
        token = self.tokens[index]
        if not is_meaningful(token):
            return index + 1
        text = token.text
        if text == "{":
            self.depth += 1
            return index + 1
        if text == "}":
            if self.depth > self.job.baseline_depth:
                self.table.remove_at_or_below(self.depth)
                self.depth -= 1
            return index + 1
        keywords = self.options.type_keywords
        if (
            text == "lambda"
            or is_modifier(text)
            or is_type_keyword(text, keywords)
            or (is_identifier(text) and text not in self.table)
        ):
            resumed = self._enter_definition(index)
            if resumed is not None:
                return resumed
        if text == "class":
            resumed = self._enter_class(index)
            if resumed is not None:
                return resumed
        if is_type_keyword(text, keywords):
            resumed = self._declare(index)
            if resumed is not None:
                return resumed
        if text in self.table and is_identifier(text):
            return self._visit_identifier(index)
        if text in _CONDITIONAL_KEYWORDS:
            self._push_conditional(index, _CONDITIONAL_KEYWORDS[text])
            return index + 1
        if text == "else":
            self._enter_else(index)
            return index + 1
        if text == "foreach":
            resumed = self._bind_foreach(index)
            if resumed is not None:
                return resumed
        if text in self.options.output_parameter_functions:
            resumed = self._bind_output_arguments(index)
            if resumed is not None:
                return resumed
        return self._advance_punctuation(index)

    def _advance_punctuation(self, index: int) -> int:
        text = self.tokens[index].text
        if text in _OPENERS:
            self.paren_level += 1
        elif text in _CLOSERS:
            self.paren_level = max(0, self.paren_level - 1)
        elif text == ";":
            self.pending = None
        elif (
            text == ","
            and self.pending is not None
            and self.pending.paren_level == self.paren_level
        ):
            return self._declare_next_binding(index)
        return index + 1

    # Definitions

    def _enter_definition(self, index: int) -> int | None:
        if self.tokens[index].text == "lambda":
            bounds = lambda_definition_bounds(self.tokens, index, self.job.end)
            label = "lambda"
        else:
            bounds = function_definition_bounds(
                self.tokens, index, self.job.end, self.options.type_keywords
            )
            label = "function"
        if bounds is None:
            return None
        return self._schedule_body(bounds, label)

    def _schedule_body(self, bounds: DefinitionBounds, label: str) -> int | None:
        body_close = find_matching_brace(self.tokens, bounds.body_open, self.job.end)
        if body_close == NOT_FOUND:
            return None
        params = extract_parameter_bindings(
            self.tokens, bounds.params_open, bounds.body_open, self.options.type_keywords
        )
        self.scanner.schedule(
            Activation(
                start=bounds.body_open + 1,
                end=body_close,
                seeds=tuple(params),
                baseline_depth=1,
                label=label,
            )
        )
        return body_close + 1

    def _enter_class(self, index: int) -> int | None:
        for position in meaningful_indices(self.tokens, index + 1, self.job.end):
            text = self.tokens[position].text
            if text == ";":
                return None
            if text != "{":
                continue
            body_close = find_matching_brace(self.tokens, position, self.job.end)
            if body_close == NOT_FOUND:
                return None
            self.scanner.schedule(
                Activation(
                    start=position + 1,
                    end=body_close,
                    baseline_depth=1,
                    label="class",
                )
            )
            return body_close + 1
        return None

    # Declarations

    def _declare(self, index: int) -> int | None:
        match = try_parse_declaration(
            self.tokens, index, self.job.end, self.options.type_keywords
        )
        if not match.is_declaration:
            return None
        self._register(
            match.name,
            match.type,
            match.name_index,
            VariableState.INITIALIZED if match.has_initializer else VariableState.UNINITIALIZED,
        )
        if self.tokens[match.end_index - 1].text == ";":
            self.pending = None
        else:
            self.pending = _PendingDeclaration(match.type, self.paren_level)
        return match.end_index

    def _declare_next_binding(self, comma: int) -> int:
        assert self.pending is not None
        name_index = find_next_meaningful(self.tokens, comma + 1, self.job.end)
        if name_index == NOT_FOUND:
            return comma + 1
        name = self.tokens[name_index].text
        if not is_identifier(name) or is_type_keyword(name, self.options.type_keywords):
            self.pending = None
            return comma + 1
        follower = find_next_meaningful(self.tokens, name_index + 1, self.job.end)
        follower_text = self.tokens[follower].text if follower != NOT_FOUND else ";"
        if follower_text not in {"=", ",", ";"}:
            self.pending = None
            return comma + 1
        has_initializer = follower_text == "="
        self._register(
            name,
            self.pending.declared_type,
            name_index,
            VariableState.INITIALIZED if has_initializer else VariableState.UNINITIALIZED,
        )
        if follower == NOT_FOUND:
            return self.job.end
        if follower_text == ";":
            self.pending = None
            return follower + 1
        if has_initializer:
            return follower + 1
        return follower

    def _register(
        self, name: str, declared_type: str, name_index: int, state: VariableState
    ) -> None:
        token = self.tokens[name_index]
        self.table.declare(
            VariableRecord(
                name=name,
                declared_type=declared_type,
                state=state,
                declaration_line=token.line,
                declaration_column=token.column if token.column is not None else 0,
                scope_depth=self.depth,
                needs_init_check=needs_init_check(declared_type, self.options.risky_types),
            )
        )

    # Reads and writes

    def _visit_identifier(self, index: int) -> int:
        record = self.table.get(self.tokens[index].text)
        if record is None:
            return index + 1
        previous = find_prev_meaningful(self.tokens, index - 1, self.job.start)
        previous_text = self.tokens[previous].text if previous != NOT_FOUND else ""
        if previous_text in _MEMBER_ACCESS:
            return index + 1
        following = find_next_meaningful(self.tokens, index + 1, self.job.end)
        if following != NOT_FOUND and is_assignment_operator(self.tokens[following].text):
            record.state = VariableState.INITIALIZED
            return following + 1
        if is_type_keyword(previous_text, self.options.type_keywords):
            return index + 1
        self._check_read(index, record)
        return index + 1

    def _check_read(self, index: int, record: VariableRecord) -> None:
        if not record.needs_init_check:
            return
        match record.state:
            case VariableState.UNINITIALIZED | VariableState.MAYBE_INITIALIZED:
                self.scanner.report(index, record)
                record.state = VariableState.UNKNOWN
            case VariableState.INITIALIZED | VariableState.UNKNOWN:
                return

    def _visit_segment(self, start: int, end: int) -> None:
        for position in meaningful_indices(self.tokens, start, end):
            text = self.tokens[position].text
            if text in self.table and is_identifier(text):
                self._visit_identifier(position)

    # Branches

    def _push_conditional(self, index: int, kind: BranchKind) -> None:
        condition_open = find_next_meaningful(self.tokens, index + 1, self.job.end)
        if condition_open == NOT_FOUND or self.tokens[condition_open].text != "(":
            return
        condition_close = find_matching_paren(self.tokens, condition_open, self.job.end)
        if condition_close == NOT_FOUND:
            return
        arm_end = find_statement_end(self.tokens, condition_close + 1, self.job.end)
        if arm_end == NOT_FOUND:
            return
        self.frames.append(
            BranchFrame(kind=kind, arm_start=condition_close + 1, arm_end=arm_end)
        )

    def _enter_else(self, index: int) -> None:
        if not self.frames or self.frames[-1].phase is not BranchPhase.AWAITING_ELSE:
            return
        frame = self.frames[-1]
        frame.then_branch = self.table.snapshot()
        if frame.pre_branch is not None:
            self.table.restore(frame.pre_branch)
        following = find_next_meaningful(self.tokens, index + 1, self.job.end)
        if following != NOT_FOUND and self.tokens[following].text == "if":
            self.frames.pop()
            return
        arm_end = find_statement_end(self.tokens, index + 1, self.job.end)
        if arm_end == NOT_FOUND:
            self.frames.pop()
            return
        frame.phase = BranchPhase.ELSE
        frame.arm_start = index + 1
        frame.arm_end = arm_end

    def _open_ready_arm(self, index: int) -> None:
        if not self.frames:
            return
        frame = self.frames[-1]
        if frame.pre_branch is None and index >= frame.arm_start:
            frame.pre_branch = self.table.snapshot()

    def _close_finished_arms(self, index: int) -> None:
        while self.frames:
            frame = self.frames[-1]
            if frame.phase is BranchPhase.AWAITING_ELSE or index <= frame.arm_end:
                return
            if frame.pre_branch is None:
                frame.pre_branch = self.table.snapshot()
            if frame.phase is BranchPhase.THEN and frame.kind is BranchKind.IF:
                following = find_next_meaningful(
                    self.tokens, frame.arm_end + 1, self.job.end
                )
                if (
                    following != NOT_FOUND
                    and following >= index
                    and self.tokens[following].text == "else"
                ):
                    frame.phase = BranchPhase.AWAITING_ELSE
                    return
            self.frames.pop()
            if frame.phase is BranchPhase.ELSE:
                if self.options.merge_branches:
                    merge_branches(self.table, frame)
            else:
                downgrade_conditional(self.table, frame.pre_branch)

    # Special forms

    def _bind_foreach(self, index: int) -> int | None:
        clause_open = find_next_meaningful(self.tokens, index + 1, self.job.end)
        if clause_open == NOT_FOUND or self.tokens[clause_open].text != "(":
            return None
        clause_close = find_matching_paren(self.tokens, clause_open, self.job.end)
        if clause_close == NOT_FOUND:
            return None
        segments = split_top_level(self.tokens, clause_open + 1, clause_close, {",", ";"})
        iterable_start, iterable_end = segments[0]
        self._visit_segment(iterable_start, iterable_end)
        for segment_start, segment_end in segments[1:]:
            self._bind_loop_variable(segment_start, segment_end)
        arm_end = find_statement_end(self.tokens, clause_close + 1, self.job.end)
        if arm_end != NOT_FOUND:
            self.frames.append(
                BranchFrame(
                    kind=BranchKind.FOREACH,
                    arm_start=clause_close + 1,
                    arm_end=arm_end,
                    pre_branch=self.table.snapshot(),
                )
            )
        return clause_close + 1

    def _bind_loop_variable(self, start: int, end: int) -> None:
        positions = meaningful_indices(self.tokens, start, end)
        if not positions:
            return
        first = positions[0]
        if is_type_keyword(self.tokens[first].text, self.options.type_keywords):
            match = try_parse_declaration(self.tokens, first, end, self.options.type_keywords)
            if not match.is_declaration:
                return
            token = self.tokens[match.name_index]
            self.table.declare(
                VariableRecord(
                    name=match.name,
                    declared_type=match.type,
                    state=VariableState.INITIALIZED,
                    declaration_line=token.line,
                    declaration_column=token.column if token.column is not None else 0,
                    scope_depth=self.depth + 1,
                    needs_init_check=False,
                )
            )
            return
        if len(positions) != 1:
            return
        record = self.table.get(self.tokens[first].text)
        if record is not None:
            record.state = VariableState.INITIALIZED
            record.needs_init_check = False

    def _bind_output_arguments(self, index: int) -> int | None:
        call_open = find_next_meaningful(self.tokens, index + 1, self.job.end)
        if call_open == NOT_FOUND or self.tokens[call_open].text != "(":
            return None
        call_close = find_matching_paren(self.tokens, call_open, self.job.end)
        if call_close == NOT_FOUND:
            return None
        arguments = split_top_level(self.tokens, call_open + 1, call_close, {","})
        for argument_start, argument_end in arguments[:2]:
            self._visit_segment(argument_start, argument_end)
        for argument_start, argument_end in arguments[2:]:
            positions = meaningful_indices(self.tokens, argument_start, argument_end)
            if len(positions) == 1:
                self.table.mark_initialized(self.tokens[positions[0]].text)
            else:
                self._visit_segment(argument_start, argument_end)
        return call_close + 1
