"""Per-node detail records kept for tooltip re-enrichment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from explain_flame.attribution import TimedOperation
from explain_flame.labels import build_match_key

KEY_FIELDS = ("label", "match_key")


@dataclass(frozen=True)
class LabelDetail:
    label: str
    match_key: str
    operation: str = ""
    table_name: str = ""
    schema_name: str = ""
    index_name: str = ""
    alias: str = ""
    access_type: str = ""
    actual_rows: float | None = None
    estimated_rows: float | None = None
    actual_loops: float = 1.0
    actual_last_row_ms: float | None = None
    actual_first_row_ms: float | None = None
    estimated_total_cost: float | None = None
    condition: str = ""
    ranges: tuple[str, ...] = ()
    covering: bool | None = None

    @classmethod
    def from_operation(cls, operation: TimedOperation) -> "LabelDetail":
        node = operation.node
        return cls(
            label=operation.label,
            match_key=build_match_key(node),
            operation=node.operation,
            table_name=node.table_name or "",
            schema_name=node.schema_name or "",
            index_name=node.index_name or "",
            alias=node.alias or "",
            access_type=node.access_type or "",
            actual_rows=node.actual_rows,
            estimated_rows=node.estimated_rows,
            actual_loops=node.actual_loops,
            actual_last_row_ms=node.actual_last_row_ms,
            actual_first_row_ms=node.actual_first_row_ms,
            estimated_total_cost=node.estimated_total_cost,
            condition=node.condition or "",
            ranges=node.ranges,
            covering=node.covering,
        )

    @property
    def estimate_ratio(self) -> float | None:
        """actual / estimated rows; >1 means the optimizer underestimated."""
        if self.actual_rows is None or self.estimated_rows is None:
            return None
        if self.estimated_rows <= 0:
            return 0.0
        return self.actual_rows / self.estimated_rows


def collect_details(operations: Iterable[TimedOperation], key: str = "label") -> dict[str, LabelDetail]:
    """
    Build the lookup table of details, keyed by label or by match key.

    Two nodes that share a key collapse into one entry and the later node
    wins; the table is advisory and only feeds tooltips.
    """
    if key not in KEY_FIELDS:
        raise ValueError(f"key must be one of {KEY_FIELDS}, got {key!r}")
    details: dict[str, LabelDetail] = {}
    for operation in operations:
        detail = LabelDetail.from_operation(operation)
        details[getattr(detail, key)] = detail
    return details
