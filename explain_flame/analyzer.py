"""Core analysis of a MySQL EXPLAIN ANALYZE plan."""

from explain_flame.attribution import TimedOperation, attribute
from explain_flame.enrich.details import LabelDetail, collect_details
from explain_flame.folded import FoldedStacks, serialize
from explain_flame.labels import CANONICAL, clean_text
from explain_flame.plan import PlanNode, parse_plan

CATEGORIES = ["scan", "index", "join", "filter", "sort", "aggregate", "materialize", "other"]


def _set_assumption(assumptions: dict, key: str, note: str) -> None:
    if key not in assumptions:
        assumptions[key] = note


def classify_operation(operation: str | None) -> str:
    """
    Classify an operation into a coarse work category using name tokens.
    """
    if not operation:
        return "other"

    lower_name = clean_text(operation).lower()
    token_map = [
        ("index", ["index lookup", "index range scan", "index scan", "covering index", "single-row index"]),
        ("scan", ["table scan", "rows fetched before execution", "constant row"]),
        ("join", ["nested loop", "hash join", "hash semijoin", "hash antijoin", "inner hash", "left hash"]),
        ("filter", ["filter"]),
        ("sort", ["sort"]),
        ("aggregate", ["aggregate", "group", "window"]),
        ("materialize", ["materialize", "temporary table", "stream results", "union", "intersect"]),
    ]
    for category, tokens in token_map:
        if any(token in lower_name for token in tokens):
            return category
    return "other"


def estimate_accuracy(actual_rows: float | None, estimated_rows: float | None) -> str | None:
    if actual_rows is None or estimated_rows is None:
        return None
    ratio = actual_rows / estimated_rows if estimated_rows > 0 else 0
    if ratio > 2:
        return "underestimate"
    if 0 < ratio < 0.5:
        return "overestimate"
    return "ok"


def _dominant_category(category_totals: dict[str, float]) -> tuple[str | None, str | None]:
    if not category_totals:
        return None, "No category totals available"
    max_value = max(category_totals.values())
    if max_value <= 0:
        return None, "Category totals are all zero"
    winners = [key for key, value in category_totals.items() if value == max_value]
    if len(winners) != 1:
        return None, "Category totals have a tie"
    return winners[0], None


class PlanAnalyzer:
    """Parsed plan plus the derived per-operation data every output is built from."""

    def __init__(self, plan_text: str | bytes):
        """
        Parse the plan and attribute self time once.

        Args:
            plan_text: Raw EXPLAIN ANALYZE FORMAT=JSON output, client framing allowed

        Raises:
            MalformedInputError: if the text is not a JSON plan
        """
        self.root: PlanNode = parse_plan(plan_text)
        self.operations: list[TimedOperation] = attribute(self.root, CANONICAL)

    def get_details(self, key: str = "label") -> dict[str, LabelDetail]:
        return collect_details(self.operations, key=key)

    def get_folded(self, mode: str = "self", time_unit: str = "ms") -> FoldedStacks:
        return serialize(self.operations, mode=mode, time_unit=time_unit)

    def get_total_ms(self) -> float:
        return self.operations[-1].total_time_ms

    def get_operation_rows(self) -> list[dict]:
        rows = []
        for op in sorted(self.operations, key=lambda item: item.self_time_ms, reverse=True):
            node = op.node
            rows.append(
                {
                    "label": op.label,
                    "path": list(op.path),
                    "operation": node.operation,
                    "table": node.table_name,
                    "index": node.index_name,
                    "self_time_ms": op.self_time_ms,
                    "total_time_ms": op.total_time_ms,
                    "rows": op.rows,
                    "estimated_rows": node.estimated_rows,
                    "loops": op.loops,
                    "depth": op.depth,
                    "category": classify_operation(node.operation),
                    "estimate_accuracy": estimate_accuracy(op.rows, node.estimated_rows)
                }
            )
        return rows

    def get_category_breakdown(self) -> dict[str, float]:
        by_category_ms = {category: 0.0 for category in CATEGORIES}
        for op in self.operations:
            by_category_ms[classify_operation(op.node.operation)] += op.self_time_ms
        return by_category_ms

    def get_worst_estimate(self) -> dict | None:
        """
        Operation whose row estimate is furthest off, as max(actual/est, est/actual).
        """
        worst = None
        worst_factor = 1.0
        for op in self.operations:
            actual = op.rows
            estimated = op.node.estimated_rows
            if actual is None or estimated is None or actual <= 0 or estimated <= 0:
                continue
            ratio = actual / estimated
            factor = max(ratio, 1.0 / ratio)
            if factor > worst_factor:
                worst_factor = factor
                worst = {
                    "label": op.label,
                    "actual_rows": actual,
                    "estimated_rows": estimated,
                    "error_factor": factor
                }
        return worst


def analyze_plan(plan_text: str | bytes, schema_version: str = "1", mode: str = "self") -> dict:
    """
    Analyze a plan and return a JSON-serializable document.

    Args:
        plan_text: Raw plan text
        schema_version: Version string to emit
        mode: "self" or "total" time for the folded stacks

    Returns:
        Dictionary with operations, breakdowns, summary and assumptions
    """
    analyzer = PlanAnalyzer(plan_text)
    assumptions: dict = {}

    operations = analyzer.get_operation_rows()
    folded = analyzer.get_folded(mode=mode)
    by_category_ms = analyzer.get_category_breakdown()
    dominant_category, dominant_reason = _dominant_category(by_category_ms)
    if dominant_reason:
        _set_assumption(assumptions, "dominant_category", dominant_reason)

    if folded.rescaled:
        _set_assumption(
            assumptions,
            "time_unit",
            f"Folded weights rescaled to {folded.unit} because the slowest frame is under 1 ms"
        )
    if folded.is_empty:
        _set_assumption(assumptions, "folded", "No frame carries any time; the plan has no timing")

    clamped = [op.label for op in analyzer.operations if op.clamped]
    if clamped:
        _set_assumption(
            assumptions,
            "self_time",
            f"Children measured more time than their parent for {len(clamped)} operation(s); "
            "self time clamped to 0"
        )

    untimed = [op.label for op in analyzer.operations if op.node.actual_last_row_ms is None]
    if untimed:
        _set_assumption(
            assumptions,
            "timing",
            f"{len(untimed)} operation(s) have no actual_last_row_ms and count as 0 ms"
        )

    worst_estimate = analyzer.get_worst_estimate()
    slowest = operations[0] if operations else None

    result = {
        "schema_version": schema_version,
        "time_unit": "ms",
        "total_time_ms": analyzer.get_total_ms(),
        "self_time_sum_ms": sum(op.self_time_ms for op in analyzer.operations),
        "operation_count": len(operations),
        "operations": operations,
        "by_category_ms": by_category_ms,
        "folded": {
            "mode": mode,
            "unit": folded.unit,
            "rescaled": folded.rescaled,
            "lines": folded.lines()
        },
        "summary": {
            "slowest_operation": slowest["label"] if slowest else None,
            "slowest_self_time_ms": slowest["self_time_ms"] if slowest else None,
            "dominant_category": dominant_category,
            "worst_estimate": worst_estimate
        },
        "assumptions": assumptions
    }
    _set_assumption(
        result["assumptions"],
        "classification",
        "Categories are operation-name token based and best-effort; other used when uncertain."
    )
    _set_assumption(
        result["assumptions"],
        "total_time",
        "Total time is actual_last_row_ms x actual_loops of the root operation"
    )
    return result
