"""Replace flame graph frame titles with multi-line plan details."""

from __future__ import annotations

import html
import re
from typing import Iterable

from explain_flame.enrich.details import LabelDetail
from explain_flame.enrich.matcher import FLAME_TITLES, MatchConfig, match
from explain_flame.labels import format_count, round_count

_TITLE_RE = re.compile(r"<title>([^<]+)</title>")
# newline inside an SVG <title>
LINE_SEPARATOR = "&#10;"

CONDITION_BUDGET = 80
RANGES_BUDGET = 60


def _clip(text: str, budget: int) -> str:
    if len(text) > budget + 3:
        return text[:budget] + "..."
    return text


def describe(title: str, detail: LabelDetail) -> list[str]:
    """Lines of the enriched tooltip, starting with the rendered title."""
    lines = [title, ""]

    if detail.table_name:
        table = f"{detail.schema_name}.{detail.table_name}" if detail.schema_name else detail.table_name
        if detail.index_name:
            table += f" (index: {detail.index_name})"
        lines.append(f"Table: {table}")

    if detail.access_type:
        lines.append(f"Access: {detail.access_type}")

    if detail.actual_rows is not None:
        rows = f"Rows: {round_count(detail.actual_rows)} actual"
        if detail.estimated_rows is not None:
            rows += f" ({round_count(detail.estimated_rows)} estimated)"
            ratio = detail.estimate_ratio or 0.0
            if ratio > 2:
                rows += " [UNDERESTIMATE]"
            elif 0 < ratio < 0.5:
                rows += " [OVERESTIMATE]"
        lines.append(rows)

    if detail.actual_loops > 1:
        lines.append(f"Loops: {format_count(detail.actual_loops)}")

    if detail.actual_last_row_ms is not None:
        timing = f"Time: {detail.actual_last_row_ms:.3f} ms (last row)"
        if detail.actual_first_row_ms is not None:
            timing += f", {detail.actual_first_row_ms:.3f} ms (first row)"
        lines.append(timing)

    if detail.estimated_total_cost is not None:
        lines.append(f"Cost: {detail.estimated_total_cost:.2f}")

    if detail.condition:
        lines.append(f"Condition: {_clip(detail.condition, CONDITION_BUDGET)}")

    if detail.ranges:
        lines.append(f"Ranges: {_clip(', '.join(detail.ranges), RANGES_BUDGET)}")

    if detail.covering is not None:
        lines.append(f"Covering: {'Yes' if detail.covering else 'No'}")

    return lines


def enhance_svg(
    svg: str,
    details: Iterable[LabelDetail],
    config: MatchConfig = FLAME_TITLES,
) -> str:
    """Rewrite every matched ``<title>``; unmatched titles are left byte-for-byte intact."""
    candidates = list(details)

    def replace(found: re.Match) -> str:
        title = html.unescape(found.group(1))
        detail = match(title, candidates, config)
        if detail is None:
            return found.group(0)
        lines = describe(title, detail)
        text = LINE_SEPARATOR.join(html.escape(line, quote=False) for line in lines)
        return f"<title>{text}</title>"

    return _TITLE_RE.sub(replace, svg)
