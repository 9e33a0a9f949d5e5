"""Convert cumulative per-node timings into exclusive (self) time."""

from __future__ import annotations

from dataclasses import dataclass, field

from explain_flame.labels import CANONICAL, LabelVocabulary, synthesize
from explain_flame.plan import PlanNode


@dataclass(frozen=True)
class TimedOperation:
    """Self/total time of one plan node together with its label path from the root."""

    path: tuple[str, ...]
    self_time_ms: float
    total_time_ms: float
    children_time_ms: float
    rows: float | None
    loops: float
    depth: int
    node: PlanNode = field(repr=False, compare=False)

    @property
    def label(self) -> str:
        return self.path[-1]

    @property
    def clamped(self) -> bool:
        """True when the children measured more time than the node itself."""
        return self.children_time_ms > self.total_time_ms


def node_total_ms(node: PlanNode) -> float:
    """Per-iteration time multiplied by the iteration count; 0 without timing."""
    return (node.actual_last_row_ms or 0.0) * node.actual_loops


def attribute(root: PlanNode, vocabulary: LabelVocabulary = CANONICAL) -> list[TimedOperation]:
    """
    Walk the plan once and return one TimedOperation per node.

    Children are visited before their parent, so the list is in post-order
    with the root last. A child's contribution to its parent is the child's
    own total time, never its already-reduced self time.
    """
    operations: list[TimedOperation] = []

    def visit(node: PlanNode, parent_path: tuple[str, ...], depth: int) -> None:
        path = parent_path + (synthesize(node, vocabulary),)
        children_ms = 0.0
        for child in node.children:
            visit(child, path, depth + 1)
            children_ms += node_total_ms(child)
        total_ms = node_total_ms(node)
        operations.append(
            TimedOperation(
                path=path,
                self_time_ms=max(0.0, total_ms - children_ms),
                total_time_ms=total_ms,
                children_time_ms=children_ms,
                rows=node.actual_rows,
                loops=node.actual_loops,
                depth=depth,
                node=node,
            )
        )

    visit(root, (), 0)
    return operations
