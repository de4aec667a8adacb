from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import logging
import tomllib

from pikeflow.analysis.tokens import RISKY_TYPES, TYPE_KEYWORDS

DEFAULT_CONFIG_NAME = "pikeflow.toml"
DEFAULT_OUTPUT_PARAMETER_FUNCTIONS: tuple[str, ...] = ("sscanf",)
DEFAULT_MAX_PROBLEMS = 100

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

logger = logging.getLogger(__name__)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.debug("cannot read %s: %s", path, exc)
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("ignoring invalid config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def uninitialized_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("uninitialized", {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_positive_int(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class AnalysisOptions:
    type_keywords: frozenset[str] = TYPE_KEYWORDS
    risky_types: frozenset[str] = RISKY_TYPES
    output_parameter_functions: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_OUTPUT_PARAMETER_FUNCTIONS)
    )
    merge_branches: bool = False
    max_problems: int = DEFAULT_MAX_PROBLEMS

    @classmethod
    def from_section(cls, section: TomlTable | None) -> AnalysisOptions:
        if not isinstance(section, dict):
            return cls()
        extra_types = frozenset(_normalize_name_list(section.get("extra_risky_types")))
        functions = _normalize_name_list(section.get("output_parameter_functions"))
        return cls(
            type_keywords=TYPE_KEYWORDS | extra_types,
            risky_types=RISKY_TYPES | extra_types,
            output_parameter_functions=frozenset(
                functions or DEFAULT_OUTPUT_PARAMETER_FUNCTIONS
            ),
            merge_branches=_as_bool(section.get("merge_branches")),
            max_problems=_as_positive_int(
                section.get("max_problems"), DEFAULT_MAX_PROBLEMS
            ),
        )


def analysis_options(
    root: Path | None = None, config_path: Path | None = None
) -> AnalysisOptions:
    return AnalysisOptions.from_section(
        uninitialized_defaults(root=root, config_path=config_path)
    )
