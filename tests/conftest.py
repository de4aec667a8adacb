from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from pikeflow.analysis import Diagnostic, analyze_source
from pikeflow.config import AnalysisOptions


@pytest.fixture
def diagnose():
    def _diagnose(code: str, options: AnalysisOptions | None = None) -> list[Diagnostic]:
        return analyze_source(code, "test.pike", options)

    return _diagnose


@pytest.fixture
def write_pike_file(tmp_path: Path):
    def _write(name: str, code: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(code, encoding="utf-8")
        return path

    return _write
