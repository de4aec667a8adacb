"""Invariant markers for pikeflow boundaries."""

from __future__ import annotations

from typing import NoReturn

from pikeflow.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The env payload is carried on the exception for diagnostics only.
    """
    detail = reason or "never() marker reached"
    if env:
        rendered = ", ".join(f"{key}={env[key]!r}" for key in sorted(env))
        detail = f"{detail} ({rendered})"
    raise NeverThrown(detail, env=env)
