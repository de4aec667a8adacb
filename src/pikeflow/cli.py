from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List, Optional, TypeAlias
import json
import logging
import os
import sys

import typer

from pikeflow.analysis import DEFAULT_FILENAME, Diagnostic, analyze_source
from pikeflow.config import analysis_options
from pikeflow.json_types import JSONObject
from pikeflow.lsp_client import CommandRequest, run_command, run_command_direct
from pikeflow.schema import AnalyzeUninitializedResponse
from pikeflow.server import ANALYZE_UNINITIALIZED_COMMAND, LSP_DIAGNOSTIC_SOURCE, start

app = typer.Typer(add_completion=False)
Runner: TypeAlias = Callable[..., JSONObject]

PIKE_SUFFIXES = frozenset({".pike", ".pmod"})
DIRECT_RUN_ENV = "PIKEFLOW_DIRECT_RUN"

logger = logging.getLogger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Flow-sensitive uninitialized-variable checks for Pike sources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def collect_pike_files(paths: Iterable[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                candidate
                for candidate in path.rglob("*")
                if candidate.is_file() and candidate.suffix in PIKE_SUFFIXES
            )
        elif path.is_file():
            files.append(path)
        else:
            raise typer.BadParameter(f"No such file or directory: {path}")
    return sorted(set(files))


def read_source(path: Path) -> str:
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def format_diagnostic(path: Path, diagnostic: Diagnostic) -> str:
    return (
        f"{path}:{diagnostic.position.line}:{diagnostic.position.character + 1}: "
        f"{diagnostic.severity}: {diagnostic.message} [{LSP_DIAGNOSTIC_SOURCE}]"
    )


def dispatch_command(
    *,
    command: str,
    payload: JSONObject,
    root: Path = Path("."),
    runner: Runner = run_command,
) -> JSONObject:
    request = CommandRequest(command, [payload])
    resolved = runner
    if runner is run_command:
        flag = os.getenv(DIRECT_RUN_ENV, "").strip().lower()
        if flag in {"1", "true", "yes", "on"}:
            resolved = run_command_direct
    return resolved(request, root=root)


@app.command("check")
def check(
    paths: List[Path] = typer.Argument(..., help="Pike files or directories to check."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Report reads of possibly uninitialized variables."""
    options = analysis_options(root=root, config_path=config)
    results: list[JSONObject] = []
    total = 0
    for path in collect_pike_files(paths):
        diagnostics = analyze_source(read_source(path), str(path), options)
        logger.debug("%s: %d diagnostic(s)", path, len(diagnostics))
        total += len(diagnostics)
        if json_output:
            results.append(
                {
                    "path": str(path),
                    "diagnostics": [diagnostic.as_dict() for diagnostic in diagnostics],
                }
            )
        else:
            for diagnostic in diagnostics:
                typer.echo(format_diagnostic(path, diagnostic))
    if json_output:
        typer.echo(json.dumps(results, indent=2, sort_keys=True))
    raise typer.Exit(code=1 if total else 0)


@app.command("analyze")
def analyze(
    input_path: Optional[Path] = typer.Option(
        None, "--input", help="Pike source file; reads stdin when omitted."
    ),
    filename: Optional[str] = typer.Option(None, "--filename"),
    root: Path = typer.Option(Path("."), "--root"),
) -> None:
    """Run the analyzeUninitialized server command and print its JSON response."""
    if input_path is None:
        code = sys.stdin.read()
        name = filename or DEFAULT_FILENAME
    else:
        code = read_source(input_path)
        name = filename or str(input_path)
    result = dispatch_command(
        command=ANALYZE_UNINITIALIZED_COMMAND,
        payload={"code": code, "filename": name},
        root=root,
    )
    normalized = AnalyzeUninitializedResponse.model_validate(result).model_dump()
    typer.echo(json.dumps(normalized, indent=2, sort_keys=True))
    if normalized["errors"]:
        raise typer.Exit(code=2)


@app.command("lsp")
def lsp() -> None:
    """Start the language server on stdio."""
    start()
