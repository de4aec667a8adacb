from __future__ import annotations

import json
import os
import select
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Callable

from pikeflow import server
from pikeflow.invariants import never
from pikeflow.json_types import JSONObject

DEFAULT_TIMEOUT_SECONDS = 30.0
TIMEOUT_ENV = "PIKEFLOW_LSP_TIMEOUT_SECONDS"


class LspClientError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommandRequest:
    command: str
    arguments: list[JSONObject] = field(default_factory=list)


def _normalized_command_payload(
    request: CommandRequest,
) -> tuple[list[JSONObject], JSONObject]:
    command_args = list(request.arguments)
    if not command_args:
        never("missing command payload arguments", command=request.command)
    payload_arg = command_args[0]
    if not isinstance(payload_arg, dict):
        never(
            "command payload must be a dict",
            command=request.command,
            payload_type=type(payload_arg).__name__,
        )
    payload = dict(payload_arg)
    command_args[0] = payload
    return command_args, payload


def env_timeout_seconds() -> float:
    raw = os.getenv(TIMEOUT_ENV, "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        seconds = float(raw)
    except ValueError:
        never("invalid env timeout seconds", seconds=raw)
    if seconds <= 0:
        never("invalid env timeout seconds", seconds=raw)
    return seconds


def _wait_readable(stream, deadline_ns: int) -> None:
    fileno = getattr(stream, "fileno", None)
    if fileno is None:
        if time.monotonic_ns() >= deadline_ns:
            raise LspClientError("LSP response timed out")
        return
    try:
        fd = fileno()
    except (OSError, ValueError):
        if time.monotonic_ns() >= deadline_ns:
            raise LspClientError("LSP response timed out")
        return
    remaining_ns = deadline_ns - time.monotonic_ns()
    timeout = max(0.0, remaining_ns / 1_000_000_000)
    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        raise LspClientError("LSP response timed out")


def _read_exact(stream, length: int, deadline_ns: int) -> bytes:
    body = bytearray()
    while len(body) < length:
        _wait_readable(stream, deadline_ns)
        chunk = stream.read(length - len(body))
        if not chunk:
            raise LspClientError("LSP stream closed")
        body.extend(chunk)
    return bytes(body)


def _read_rpc(stream, deadline_ns: int) -> JSONObject:
    header = b""
    while b"\r\n\r\n" not in header:
        _wait_readable(stream, deadline_ns)
        chunk = stream.read(1)
        if not chunk:
            raise LspClientError("LSP stream closed")
        header += chunk
    head, _, rest = header.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n"):
        if line.lower().startswith(b"content-length:"):
            length = int(line.split(b":", 1)[1].strip())
            break
    if length <= 0:
        raise LspClientError("Invalid LSP Content-Length")
    body = rest
    if len(body) < length:
        body += _read_exact(stream, length - len(body), deadline_ns)
    message = json.loads(body.decode("utf-8"))
    if not isinstance(message, dict):
        raise LspClientError("Invalid LSP message payload")
    return message


def _write_rpc(stream, message: JSONObject) -> None:
    payload = json.dumps(message).encode("utf-8")
    header = f"Content-Length: {len(payload)}\r\n\r\n".encode("utf-8")
    stream.write(header + payload)
    stream.flush()


def _read_response(stream, request_id: int, deadline_ns: int) -> JSONObject:
    while True:
        message = _read_rpc(stream, deadline_ns)
        if message.get("id") == request_id and (
            "result" in message or "error" in message
        ):
            return message


def run_command(
    request: CommandRequest,
    *,
    root: Path | None = None,
    timeout_seconds: float | None = None,
    process_factory: Callable[..., subprocess.Popen] = subprocess.Popen,
) -> JSONObject:
    command_args, _payload = _normalized_command_payload(request)
    seconds = timeout_seconds if timeout_seconds is not None else env_timeout_seconds()
    deadline_ns = time.monotonic_ns() + int(seconds * 1_000_000_000)
    proc = process_factory(
        [sys.executable, "-m", "pikeflow.server"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        bufsize=0,
    )
    assert proc.stdin is not None
    assert proc.stdout is not None

    root_uri = (root or Path.cwd()).resolve().as_uri()
    _write_rpc(
        proc.stdin,
        {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "initialize",
            "params": {"rootUri": root_uri, "capabilities": {}},
        },
    )
    _read_response(proc.stdout, 1, deadline_ns)
    _write_rpc(proc.stdin, {"jsonrpc": "2.0", "method": "initialized", "params": {}})
    _write_rpc(
        proc.stdin,
        {
            "jsonrpc": "2.0",
            "id": 2,
            "method": "workspace/executeCommand",
            "params": {"command": request.command, "arguments": command_args},
        },
    )
    response = _read_response(proc.stdout, 2, deadline_ns)
    _write_rpc(proc.stdin, {"jsonrpc": "2.0", "id": 3, "method": "shutdown"})
    _read_response(proc.stdout, 3, deadline_ns)
    _write_rpc(proc.stdin, {"jsonrpc": "2.0", "method": "exit"})
    remaining = max(1.0, (deadline_ns - time.monotonic_ns()) / 1_000_000_000)
    try:
        _out, err = proc.communicate(timeout=remaining)
    except subprocess.TimeoutExpired:
        proc.kill()
        _out, err = proc.communicate(timeout=1.0)
    if response.get("error"):
        raise LspClientError(f"LSP error: {response['error']}")
    if proc.returncode not in (0, None):
        detail = (err or b"").decode("utf-8", errors="replace").strip()
        raise LspClientError(f"LSP server failed (exit {proc.returncode}): {detail}")
    result = response.get("result", {})
    if not isinstance(result, dict):
        raise LspClientError(f"Unexpected LSP result payload: {type(result).__name__}")
    return result


def run_command_direct(
    request: CommandRequest,
    *,
    root: Path | None = None,
) -> JSONObject:
    _, payload = _normalized_command_payload(request)
    workspace = SimpleNamespace(root_path=str((root or Path.cwd()).resolve()))
    ls = SimpleNamespace(workspace=workspace)
    if request.command == server.ANALYZE_UNINITIALIZED_COMMAND:
        return server.execute_analyze_uninitialized(ls, payload)
    raise LspClientError(f"Unsupported direct command: {request.command}")
