"""JSON value aliases for the command and wire boundaries.

Responses crossing the language-server boundary are declared with these
aliases instead of `Any` so the value space stays JSON-compatible.
"""

from __future__ import annotations

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
