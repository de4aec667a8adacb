from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel

from pikeflow.analysis import DEFAULT_FILENAME


class AnalyzeUninitializedRequest(BaseModel):
    code: str
    filename: str = DEFAULT_FILENAME
    merge_branches: Optional[bool] = None
    extra_risky_types: List[str] = []


class PositionDTO(BaseModel):
    file: str
    line: int
    character: int


class UninitializedDiagnosticDTO(BaseModel):
    message: str
    severity: Literal["warning"] = "warning"
    position: PositionDTO
    variable: str
    type: Optional[str] = None
    state: Optional[Literal["uninitialized", "maybe_init"]] = None
    source: str = "uninitialized-variable"


class AnalyzeUninitializedResponse(BaseModel):
    diagnostics: List[UninitializedDiagnosticDTO] = []
    errors: List[str] = []
