"""Ordered field-path probing for provider responses.

Providers move ids and URLs around between API versions. Each adapter
declares a table of dotted paths; the first path that resolves to a
non-empty value wins. Numeric segments index into lists.

    JOB_ID = ResponseProbe("sdGenerationJob.generationId", "generationId", "id")
    JOB_ID.first(body)
"""

from __future__ import annotations

from typing import Any

_MISSING = object()


def resolve(body: Any, path: str) -> Any:
    """Follow a dotted path through dicts and lists. Returns None when absent."""
    node = body
    for segment in path.split("."):
        if isinstance(node, dict):
            node = node.get(segment, _MISSING)
        elif isinstance(node, (list, tuple)) and segment.lstrip("-").isdigit():
            index = int(segment)
            node = node[index] if -len(node) <= index < len(node) else _MISSING
        else:
            return None
        if node is _MISSING:
            return None
    return node


class ResponseProbe:
    """An ordered tuple of dotted paths tried against a response body."""

    def __init__(self, *paths: str) -> None:
        if not paths:
            raise ValueError("ResponseProbe needs at least one path")
        self.paths = paths

    def first(self, body: Any) -> Any:
        for path in self.paths:
            value = resolve(body, path)
            if value not in (None, "", [], {}):
                return value
        return None

    def first_str(self, body: Any) -> str | None:
        value = self.first(body)
        return str(value) if value is not None else None

    def __add__(self, other: "ResponseProbe") -> "ResponseProbe":
        return ResponseProbe(*self.paths, *other.paths)

    def __repr__(self) -> str:
        return f"ResponseProbe{self.paths!r}"
