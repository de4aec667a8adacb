from __future__ import annotations

import logging
from pathlib import Path

from pikeflow import config
from pikeflow.analysis.tokens import RISKY_TYPES, TYPE_KEYWORDS


def _write_config(root: Path, text: str) -> Path:
    path = root / config.DEFAULT_CONFIG_NAME
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    assert config.load_config(root=tmp_path) == {}
    options = config.analysis_options(root=tmp_path)
    assert options == config.AnalysisOptions()
    assert options.output_parameter_functions == frozenset({"sscanf"})
    assert options.merge_branches is False
    assert options.max_problems == 100


def test_uninitialized_section_is_applied(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        "[uninitialized]\n"
        'extra_risky_types = ["Connection", "Stdio"]\n'
        'output_parameter_functions = "sscanf, array_sscanf"\n'
        "merge_branches = true\n"
        "max_problems = 7\n",
    )
    options = config.analysis_options(root=tmp_path)
    assert options.type_keywords == TYPE_KEYWORDS | {"Connection", "Stdio"}
    assert options.risky_types == RISKY_TYPES | {"Connection", "Stdio"}
    assert options.output_parameter_functions == frozenset({"sscanf", "array_sscanf"})
    assert options.merge_branches is True
    assert options.max_problems == 7


def test_explicit_config_path(tmp_path: Path) -> None:
    path = tmp_path / "custom.toml"
    path.write_text("[uninitialized]\nmax_problems = 3\n", encoding="utf-8")
    assert config.analysis_options(config_path=path).max_problems == 3
    assert config.uninitialized_defaults(config_path=path) == {"max_problems": 3}


def test_invalid_toml_is_ignored(tmp_path: Path, caplog) -> None:
    _write_config(tmp_path, "[uninitialized\n")
    with caplog.at_level(logging.WARNING, logger="pikeflow.config"):
        assert config.load_config(root=tmp_path) == {}
    assert "ignoring invalid config" in caplog.text


def test_non_table_section_is_ignored(tmp_path: Path) -> None:
    _write_config(tmp_path, 'uninitialized = "nope"\n')
    assert config.uninitialized_defaults(root=tmp_path) == {}


def test_from_section_tolerates_bad_values() -> None:
    options = config.AnalysisOptions.from_section(
        {
            "extra_risky_types": 5,
            "output_parameter_functions": [],
            "merge_branches": "no",
            "max_problems": -4,
        }
    )
    assert options == config.AnalysisOptions()
    assert config.AnalysisOptions.from_section(None) == config.AnalysisOptions()


def test_value_coercions() -> None:
    assert config._as_bool("Yes") is True
    assert config._as_bool(0) is False
    assert config._as_bool(None) is False
    assert config._as_positive_int("12", 1) == 12
    assert config._as_positive_int("x", 1) == 1
    assert config._as_positive_int(True, 1) == 1
    assert config._normalize_name_list(["a, b", 3, " c "]) == ["a", "b", "c"]
    assert config._normalize_name_list(None) == []


def test_merge_payload_skips_none() -> None:
    defaults = {"merge_branches": True, "max_problems": 5}
    merged = config.merge_payload({"merge_branches": None, "max_problems": 9}, defaults)
    assert merged == {"merge_branches": True, "max_problems": 9}
    assert defaults == {"merge_branches": True, "max_problems": 5}
