"""Typed view over a MySQL ``EXPLAIN ANALYZE FORMAT=JSON`` document."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from explain_flame.errors import MalformedInputError

# "EXPLAIN: {...}" as printed by the mysql client in \G mode
_MARKER_RE = re.compile(r"^.*?EXPLAIN:\s*", re.IGNORECASE | re.DOTALL)
# "*************************** 1. row ***************************"
_BANNER_RE = re.compile(r"^\*+[^\n]*(?:\n|$)\s*")

_CHILD_FIELDS = ("inputs", "nested_loop", "children")


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _string(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _strings(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _children(raw: dict) -> list[dict]:
    children: list[dict] = []
    for key in _CHILD_FIELDS:
        value = raw.get(key)
        if isinstance(value, list):
            children.extend(item for item in value if isinstance(item, dict))
        elif isinstance(value, dict):
            children.append(value)
    return children


@dataclass(frozen=True)
class PlanNode:
    """One operation of the plan, read-only once parsed."""

    operation: str = ""
    table_name: str | None = None
    schema_name: str | None = None
    index_name: str | None = None
    alias: str | None = None
    access_type: str | None = None
    condition: str | None = None
    lookup_condition: str | None = None
    actual_rows: float | None = None
    estimated_rows: float | None = None
    actual_loops: float = 1.0
    actual_last_row_ms: float | None = None
    actual_first_row_ms: float | None = None
    estimated_total_cost: float | None = None
    ranges: tuple[str, ...] = ()
    covering: bool | None = None
    sort_fields: tuple[str, ...] = ()
    children: tuple["PlanNode", ...] = field(default=(), repr=False)

    @classmethod
    def from_dict(cls, raw: dict) -> "PlanNode":
        loops = _number(raw.get("actual_loops"))
        covering = raw.get("covering")
        return cls(
            operation=_string(raw.get("operation")) or "",
            table_name=_string(raw.get("table_name")),
            schema_name=_string(raw.get("schema_name")),
            index_name=_string(raw.get("index_name")),
            alias=_string(raw.get("alias")),
            access_type=_string(raw.get("access_type")),
            condition=_string(raw.get("condition")),
            lookup_condition=_string(raw.get("lookup_condition")),
            actual_rows=_number(raw.get("actual_rows")),
            estimated_rows=_number(raw.get("estimated_rows")),
            actual_loops=1.0 if loops is None else loops,
            actual_last_row_ms=_number(raw.get("actual_last_row_ms")),
            actual_first_row_ms=_number(raw.get("actual_first_row_ms")),
            estimated_total_cost=_number(raw.get("estimated_total_cost")),
            ranges=_strings(raw.get("ranges")),
            covering=covering if isinstance(covering, bool) else None,
            sort_fields=_strings(raw.get("sort_fields")),
            children=tuple(cls.from_dict(child) for child in _children(raw)),
        )

    def walk(self) -> Iterator["PlanNode"]:
        """Yield this node and its descendants, parents first."""
        yield self
        for child in self.children:
            yield from child.walk()


def strip_framing(text: str) -> str:
    """Remove client framing (``EXPLAIN:`` prefix, row banners) around the JSON payload."""
    text = text.lstrip("\ufeff").strip()
    if not text.startswith("{"):
        text = _MARKER_RE.sub("", text, count=1)
        text = _BANNER_RE.sub("", text, count=1)
    return text.strip()


def parse_plan(data: str | bytes) -> PlanNode:
    """
    Parse plan text into a PlanNode tree.

    Raises:
        MalformedInputError: if the stripped text is not a JSON object,
            or nests deeper than the interpreter can walk
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8-sig", errors="replace")
    text = strip_framing(data)
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(str(exc), text) from exc
    except RecursionError as exc:
        raise MalformedInputError("plan is nested too deeply", text) from exc
    if not isinstance(document, dict):
        raise MalformedInputError("expected a JSON object at the top level", text)
    try:
        return PlanNode.from_dict(document)
    except RecursionError as exc:
        raise MalformedInputError("plan is nested too deeply", text) from exc
