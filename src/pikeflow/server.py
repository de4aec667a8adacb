from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence
from urllib.parse import unquote, urlparse

from pygls.lsp.server import LanguageServer
from pydantic import ValidationError
from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    Diagnostic as LspDiagnostic,
    DiagnosticSeverity,
    Position,
    PublishDiagnosticsParams,
    Range,
)

from pikeflow import __version__
from pikeflow.analysis import Diagnostic, analyze_source
from pikeflow.config import AnalysisOptions, merge_payload, uninitialized_defaults
from pikeflow.invariants import never
from pikeflow.json_types import JSONObject
from pikeflow.schema import AnalyzeUninitializedRequest, AnalyzeUninitializedResponse

server = LanguageServer("pikeflow", __version__)
ANALYZE_UNINITIALIZED_COMMAND = "pikeflow.analyzeUninitialized"
LSP_DIAGNOSTIC_SOURCE = "pike-uninitialized"

logger = logging.getLogger(__name__)


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _workspace_root(ls: object) -> Path | None:
    workspace = getattr(ls, "workspace", None)
    root_path = getattr(workspace, "root_path", None)
    return Path(root_path) if root_path else None


def _workspace_options(ls: object, overrides: JSONObject | None = None) -> AnalysisOptions:
    section = uninitialized_defaults(root=_workspace_root(ls))
    if overrides:
        section = merge_payload(overrides, section)
    return AnalysisOptions.from_section(section)


def to_lsp_diagnostic(diagnostic: Diagnostic) -> LspDiagnostic:
    line = max(0, diagnostic.position.line - 1)
    character = max(0, diagnostic.position.character)
    return LspDiagnostic(
        range=Range(
            start=Position(line=line, character=character),
            end=Position(line=line, character=character + len(diagnostic.variable)),
        ),
        message=diagnostic.message,
        severity=DiagnosticSeverity.Warning,
        source=LSP_DIAGNOSTIC_SOURCE,
    )


def diagnostics_for_text(
    text: str, filename: str, options: AnalysisOptions
) -> list[LspDiagnostic]:
    diagnostics: Sequence[Diagnostic] = analyze_source(text, filename, options)
    if len(diagnostics) > options.max_problems:
        logger.debug(
            "%s: capping %d diagnostics at %d",
            filename,
            len(diagnostics),
            options.max_problems,
        )
        diagnostics = diagnostics[: options.max_problems]
    return [to_lsp_diagnostic(diagnostic) for diagnostic in diagnostics]


@server.command(ANALYZE_UNINITIALIZED_COMMAND)
def execute_analyze_uninitialized(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=ANALYZE_UNINITIALIZED_COMMAND)
    try:
        request = AnalyzeUninitializedRequest.model_validate(payload)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return AnalyzeUninitializedResponse(errors=errors).model_dump()
    overrides: JSONObject = {
        "merge_branches": request.merge_branches,
        "extra_risky_types": request.extra_risky_types or None,
    }
    options = _workspace_options(ls, overrides)
    diagnostics = analyze_source(request.code, request.filename, options)
    response = AnalyzeUninitializedResponse.model_validate(
        {"diagnostics": [diagnostic.as_dict() for diagnostic in diagnostics]}
    )
    return response.model_dump()


def _publish(ls: LanguageServer, uri: str, diagnostics: list[LspDiagnostic]) -> None:
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def _validate_document(ls: LanguageServer, uri: str) -> None:
    doc = ls.workspace.get_text_document(uri)
    filename = doc.path or str(_uri_to_path(uri))
    diagnostics = diagnostics_for_text(doc.source, filename, _workspace_options(ls))
    _publish(ls, uri, diagnostics)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _validate_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    _validate_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    _validate_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri, [])


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server on stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
