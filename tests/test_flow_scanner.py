from __future__ import annotations

import pytest

from pikeflow.analysis.flow_scanner import Activation, FlowScanner
from pikeflow.analysis.tokenizer import tokenize
from pikeflow.config import AnalysisOptions


def _states(diagnostics) -> list[tuple[str, str]]:
    return [(d.variable, d.state) for d in diagnostics]


@pytest.mark.parametrize(
    "loop",
    [
        "while (more()) { s = \"x\"; }",
        "for (int i = 0; i < 3; i++) { s = \"x\"; }",
        "switch (k) { case 1: s = \"x\"; break; }",
        "array arr = ({}); foreach (arr; int i; mixed v) { s = v; }",
    ],
)
def test_loop_and_switch_bodies_are_conditional(diagnose, loop: str) -> None:
    code = f"int k; string s; {loop} write(s);"
    assert _states(diagnose(code)) == [("s", "maybe_init")]


def test_unbraced_then_arm(diagnose) -> None:
    code = 'string s; int c; if (c) s = "a"; write(s);'
    assert _states(diagnose(code)) == [("s", "maybe_init")]


def test_unbraced_if_else_both_assign(diagnose) -> None:
    code = 'string s; int c; if (c) s = "a"; else s = "b"; write(s);'
    assert diagnose(code) == []


def test_else_if_chain_is_conditional(diagnose) -> None:
    code = (
        "string s; int c;\n"
        'if (c == 1) { s = "a"; }\n'
        'else if (c == 2) { s = "b"; }\n'
        "write(s);"
    )
    diagnostics = diagnose(code)
    assert _states(diagnostics) == [("s", "maybe_init")]
    assert diagnostics[0].position.line == 4


def test_condition_reads_happen_before_the_arm(diagnose) -> None:
    code = 'string s; if (s) { s = "a"; }'
    diagnostics = diagnose(code)
    assert _states(diagnostics) == [("s", "uninitialized")]
    assert diagnostics[0].position.character == code.index("(s)") + 1


def test_then_only_assignment_last_writer_wins(diagnose) -> None:
    code = 'string s; int c; if (c) { s = "a"; } else { c = 2; } write(s);'
    assert _states(diagnose(code)) == [("s", "uninitialized")]


def test_then_only_assignment_with_branch_merging(diagnose) -> None:
    code = 'string s; int c; if (c) { s = "a"; } else { c = 2; } write(s);'
    options = AnalysisOptions(merge_branches=True)
    assert _states(diagnose(code, options)) == [("s", "maybe_init")]


def test_branch_merging_keeps_both_arm_initialization(diagnose) -> None:
    code = 'string s; int c; if (c) { s = "a"; } else { s = "b"; } write(s);'
    assert diagnose(code, AnalysisOptions(merge_branches=True)) == []


def test_block_locals_are_dropped_at_close(diagnose) -> None:
    assert diagnose("{ string s; } write(s);") == []


def test_inner_declaration_shadows_outer(diagnose) -> None:
    code = 'string s = "a"; { string s; write(s); }'
    diagnostics = diagnose(code)
    assert _states(diagnostics) == [("s", "uninitialized")]
    assert diagnostics[0].position.character == code.index("write(s)") + 6


def test_function_bodies_do_not_see_enclosing_locals(diagnose) -> None:
    code = "string s; void f() { write(s); }"
    assert diagnose(code) == []


def test_lambda_body_is_its_own_activation(diagnose) -> None:
    code = "function f = lambda(string p) { string t; write(p, t); };"
    diagnostics = diagnose(code)
    assert _states(diagnostics) == [("t", "uninitialized")]
    assert diagnostics[0].position.character == code.index("t);")


def test_class_methods_are_scanned(diagnose) -> None:
    code = (
        "class Greeter {\n"
        "  string name;\n"
        "  void greet() { string s; write(name, s); }\n"
        "}\n"
    )
    diagnostics = diagnose(code)
    assert [(d.variable, d.position.line) for d in diagnostics] == [("s", 3)]


def test_modifiers_before_function_definition(diagnose) -> None:
    code = "protected static void f() { array a; write(a); }"
    assert _states(diagnose(code)) == [("a", "uninitialized")]


def test_member_access_is_not_a_read(diagnose) -> None:
    code = "mapping m = ([]); string name; m->name; m.name; Foo::name; write(name);"
    diagnostics = diagnose(code)
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("name", code.index("write(name)") + 6)
    ]


def test_custom_output_parameter_functions(diagnose) -> None:
    options = AnalysisOptions(output_parameter_functions=frozenset({"read_into"}))
    code = 'string a; read_into(src, "%s", a); write(a);'
    assert diagnose(code, options) == []
    code = 'string a; sscanf("1", "%s", a); write(a);'
    diagnostics = diagnose(code, options)
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("a", code.index("a);"))
    ]


def test_output_function_complex_argument_is_read(diagnose) -> None:
    code = 'array a; sscanf("1", "%d", a[0]);'
    assert _states(diagnose(code)) == [("a", "uninitialized")]


def test_extra_risky_types(diagnose) -> None:
    code = "Connection c;\nwrite(c);"
    assert diagnose(code) == []
    options = AnalysisOptions.from_section({"extra_risky_types": ["Connection"]})
    diagnostics = diagnose(code, options)
    assert [(d.variable, d.type, d.position.line) for d in diagnostics] == [
        ("c", "Connection", 2)
    ]


def test_unbalanced_function_body_degrades_gracefully(diagnose) -> None:
    assert _states(diagnose("void f() { string s; write(s);")) == [("s", "uninitialized")]


def test_unbalanced_condition_is_ignored(diagnose) -> None:
    assert diagnose("string s; if (") == []


def test_diagnostics_are_sorted_across_activations(diagnose) -> None:
    code = "void g() { string b; write(b); }\nstring a; write(a);"
    assert [(d.variable, d.position.line) for d in diagnose(code)] == [("b", 1), ("a", 2)]


def test_deeply_nested_lambdas() -> None:
    depth = 1100
    code = "lambda(){" * depth + "string s; write(s);" + "}" * depth
    scanner = FlowScanner(tokenize(code), code.split("\n"), "deep.pike")
    diagnostics = scanner.run()
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("s", code.index("write(s)") + 6)
    ]


def test_activation_defaults() -> None:
    activation = Activation(start=0, end=3)
    assert activation.seeds == ()
    assert activation.baseline_depth == 0
    assert activation.label == "<toplevel>"


@pytest.mark.parametrize(
    "code",
    [
        "Foo make(string name, int n) { return Foo(name); }",
        "Stdio.File open_it(string path, string mode) { return Stdio.File(path, mode); }",
        "static Module::Klass build(mapping opts) { return Module::Klass(opts); }",
        "class Foo { Foo clone(array items) { return Foo(items); } }",
    ],
)
def test_class_typed_functions_do_not_flag_parameters(diagnose, code: str) -> None:
    assert diagnose(code) == []


def test_class_typed_function_body_is_scanned(diagnose) -> None:
    code = "Foo make(string name) { string s; return Foo(name, s); }"
    diagnostics = diagnose(code)
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("s", code.index("s); }"))
    ]


@pytest.mark.parametrize("merge", [False, True])
def test_read_in_both_arms_reports_once(diagnose, merge: bool) -> None:
    code = "string x; int c; if (c) { write(x); } else { write(x); } write(x);"
    diagnostics = diagnose(code, AnalysisOptions(merge_branches=merge))
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("x", code.index("write(x)") + 6)
    ]


def test_outer_variable_is_checked_after_shadowing_block(diagnose) -> None:
    code = 'string s; { string s = "a"; write(s); } write(s);'
    diagnostics = diagnose(code)
    assert [(d.variable, d.position.character) for d in diagnostics] == [
        ("s", code.rindex("write(s)") + 6)
    ]


def test_outer_initialization_survives_shadowing_block(diagnose) -> None:
    code = 'string s = "a"; { string s; s = "b"; } write(s);'
    assert diagnose(code) == []
