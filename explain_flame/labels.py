"""
Label synthesis for plan operations.

MySQL reports operation identity as free text with embedded parameters
("Index lookup on o using idx_cust (cust_id=c.id)", "Limit: 10 row(s)"),
so labels are resolved by matching the cleaned text against an ordered
rule table. The first rule whose pattern matches wins; more specific
phrasings must therefore come before the general ones.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable

from explain_flame.plan import PlanNode

FILTER_BUDGET = 40
SORT_KEYS_BUDGET = 25
FALLBACK_BUDGET = 45
TRUNCATION_MARKER = ".."

_DATE_RE = re.compile(r"DATE'(\d{4}-\d{2}-\d{2})'")
_OUTER_PARENS_RE = re.compile(r"^\s*\(|\)\s*$")
_WHITESPACE_RE = re.compile(r"\s+")
_SORT_KEYS_RE = re.compile(r"Sort:\s*(.+)$", re.IGNORECASE)
_LIMIT_RE = re.compile(r"Limit(?:/Offset)?:\s*(\d+)", re.IGNORECASE)


def clean_text(text: str | None) -> str:
    """Strip identifier quoting and reduce DATE'...' literals to the bare date."""
    if not text:
        return ""
    return _DATE_RE.sub(r"\1", text.replace("`", ""))


def truncate(text: str, budget: int, marker: str = TRUNCATION_MARKER) -> str:
    if len(text) > budget:
        return text[:budget] + marker
    return text


def round_count(value: float) -> int:
    """Round half away from zero for non-negative counts (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def format_count(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _is_temporary(table: str) -> bool:
    return "temporary" in table.lower()


def _table_ref(node: PlanNode) -> str:
    return clean_text(node.alias) or clean_text(node.table_name)


def _bracket(name: str, node: PlanNode) -> str:
    table = _table_ref(node)
    index = clean_text(node.index_name)
    if table and index:
        return f"{name} [{table}.{index}]"
    if table or index:
        return f"{name} [{table or index}]"
    return name


@dataclass(frozen=True)
class LabelRule:
    """One category: a case-insensitive pattern over the cleaned operation text."""

    name: str
    pattern: re.Pattern
    format: Callable[[PlanNode, str, re.Match], str]

    def apply(self, node: PlanNode, operation: str) -> str | None:
        match = self.pattern.search(operation)
        if match is None:
            return None
        return self.format(node, operation, match)


def _rule(name: str, pattern: str, format: Callable[[PlanNode, str, re.Match], str]) -> LabelRule:
    return LabelRule(name, re.compile(pattern, re.IGNORECASE), format)


def _index_rule(name: str, pattern: str) -> LabelRule:
    return _rule(name.lower().replace(" ", "-"), pattern, lambda node, op, m: _bracket(name, node))


def _table_scan(node: PlanNode, operation: str, match: re.Match) -> str:
    if _is_temporary(clean_text(node.table_name)):
        return "TABLE SCAN <temp>"
    table = _table_ref(node)
    return f"TABLE SCAN [{table}]" if table else "TABLE SCAN"


def _filter(node: PlanNode, operation: str, match: re.Match) -> str:
    condition = clean_text(node.condition)
    if not condition:
        condition = operation.partition(":")[2]
    condition = _OUTER_PARENS_RE.sub("", condition)
    condition = _WHITESPACE_RE.sub(" ", condition).strip()
    return f"FILTER ({truncate(condition, FILTER_BUDGET)})"


def _sort(node: PlanNode, operation: str, match: re.Match) -> str:
    keys = ", ".join(clean_text(field) for field in node.sort_fields)
    if not keys:
        found = _SORT_KEYS_RE.search(operation)
        keys = found.group(1).strip() if found else ""
    if keys:
        return f"SORT [{truncate(keys, SORT_KEYS_BUDGET)}]"
    lowered = operation.lower()
    if "row ids" in lowered:
        return "SORT (row IDs)"
    if "filesort" in lowered:
        return "SORT (filesort)"
    return "SORT"


def _nested_loop(node: PlanNode, operation: str, match: re.Match) -> str:
    lowered = operation.lower()
    for token, kind in (("inner", "INNER"), ("left", "LEFT"), ("outer", "LEFT"),
                        ("semi", "SEMI"), ("anti", "ANTI")):
        if token in lowered:
            return f"NESTED LOOP {kind}"
    return "NESTED LOOP"


def _hash_join(node: PlanNode, operation: str, match: re.Match) -> str:
    kind = match.group(1) or match.group(2)
    if not kind:
        return "HASH JOIN"
    kind = kind.upper()
    return f"HASH JOIN {'LEFT' if kind == 'OUTER' else kind}"


def _aggregate(node: PlanNode, operation: str, match: re.Match) -> str:
    if "temporary" in operation.lower():
        return "AGGREGATE (temp table)"
    return "AGGREGATE"


def _limit(node: PlanNode, operation: str, match: re.Match) -> str:
    found = _LIMIT_RE.search(operation)
    return f"LIMIT {found.group(1)}" if found else "LIMIT"


def _fixed(text: str) -> Callable[[PlanNode, str, re.Match], str]:
    return lambda node, operation, match: text


CANONICAL_RULES: tuple[LabelRule, ...] = (
    _rule("table-scan", r"^table scan", _table_scan),
    _index_rule("INDEX RANGE SCAN", r"^index range scan"),
    _index_rule("INDEX SCAN", r"^index scan"),
    _index_rule("INDEX UNIQUE SCAN", r"^single-row (?:covering )?index lookup"),
    _index_rule("INDEX LOOKUP", r"^index lookup"),
    _index_rule("COVERING INDEX", r"^covering index"),
    _rule("filter", r"^filter", _filter),
    _rule("sort", r"^sort", _sort),
    _rule("nested-loop", r"^nested loop", _nested_loop),
    _rule("hash-join", r"^(?:(inner|left|outer|semi|anti)\s+)?hash\s+(semi|anti)?join", _hash_join),
    _rule("aggregate", r"^aggregate", _aggregate),
    _rule("group", r"^group", _fixed("GROUP")),
    _rule("materialize", r"^materialize", _fixed("MATERIALIZE")),
    _rule("stream", r"^stream results", _fixed("STREAM")),
    _rule("limit", r"^limit", _limit),
    _rule("intersect", r"^intersect", _fixed("INTERSECT")),
    _rule("union", r"^union", _fixed("UNION")),
)


def _canonical_fallback(node: PlanNode, operation: str) -> str:
    return truncate(operation or "unknown", FALLBACK_BUDGET)


def _canonical_suffix(node: PlanNode) -> str:
    metrics = []
    if node.actual_loops > 0:
        metrics.append(f"starts={format_count(node.actual_loops)}")
    if node.actual_rows is not None:
        metrics.append(f"rows={round_count(node.actual_rows)}")
    return " ".join(metrics)


def _bar_base(node: PlanNode, operation: str) -> str:
    operation = operation or "unknown"
    table = clean_text(node.table_name)
    if not table or _is_temporary(table):
        return operation
    index = clean_text(node.index_name)
    return f"{operation} [{table}.{index}]" if index else f"{operation} [{table}]"


def _bar_suffix(node: PlanNode) -> str:
    return f"x{format_count(node.actual_loops)}" if node.actual_loops > 1 else ""


@dataclass(frozen=True)
class LabelVocabulary:
    """A rule table plus the fallback and the metric suffix appended to every label."""

    name: str
    rules: tuple[LabelRule, ...]
    fallback: Callable[[PlanNode, str], str]
    suffix: Callable[[PlanNode], str]

    def classify(self, node: PlanNode, operation: str) -> str:
        for rule in self.rules:
            text = rule.apply(node, operation)
            if text is not None:
                return text
        return self.fallback(node, operation)


CANONICAL = LabelVocabulary("canonical", CANONICAL_RULES, _canonical_fallback, _canonical_suffix)
# Bar chart and summary rows keep the raw operation text.
BAR = LabelVocabulary("bar", (), _bar_base, _bar_suffix)


def synthesize(node: PlanNode, vocabulary: LabelVocabulary = CANONICAL) -> str:
    """Return the display label for a node: one line, never empty, never containing ';'."""
    operation = clean_text(node.operation).strip()
    category = vocabulary.classify(node, operation).strip()
    suffix = vocabulary.suffix(node)
    label = f"{category} {suffix}".strip()
    label = _WHITESPACE_RE.sub(" ", label.replace(";", "_")).strip()
    return label or "unknown"


def build_match_key(node: PlanNode) -> str:
    """Normalized ``operation|table|index|rows|loops`` key used by standalone tooltip enhancement."""
    rows = format_count(node.actual_rows) if node.actual_rows is not None else "0"
    parts = [
        (node.operation or "unknown").replace("`", ""),
        node.table_name or "",
        node.index_name or "",
        rows,
        format_count(node.actual_loops),
    ]
    return "|".join(parts).lower()
