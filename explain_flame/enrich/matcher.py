"""
Best-effort reconciliation of rendered frame titles with plan node details.

The flame graph renderer only keeps the leaf label of each frame plus a
"(N unit, P%)" annotation, and it may escape or shorten text on the way.
Candidates are scored by independent signals found in the title text and
the highest score wins if it reaches the acceptance floor. A wrong
tooltip is worse than a plain one, so below the floor nothing matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple

from explain_flame.enrich.details import LabelDetail
from explain_flame.labels import round_count

_ROWS_RE = re.compile(r"rows[=:]?\s*(\d+)\b", re.IGNORECASE)
_STARTS_RE = re.compile(r"(?:starts|loops)[=:]?\s*(\d+)\b", re.IGNORECASE)

# (pattern over the title, pattern over the raw operation text)
KEYWORD_FAMILIES: tuple[tuple[re.Pattern, re.Pattern], ...] = tuple(
    (re.compile(title, re.IGNORECASE), re.compile(operation, re.IGNORECASE))
    for title, operation in (
        (r"TABLE.?SCAN", r"Table scan"),
        (r"INDEX.?RANGE.?SCAN", r"Index range scan"),
        (r"INDEX.?LOOKUP", r"Index lookup"),
        (r"\bFILTER\b", r"^Filter"),
        (r"\bSORT\b", r"Sort"),
        (r"Nested loop", r"Nested loop"),
        (r"Intersect", r"Intersect"),
        (r"Aggregate", r"Aggregate"),
        (r"GROUP", r"Group"),
    )
)


@dataclass(frozen=True)
class MatchConfig:
    """Signal weights and the minimum total score for accepting a match."""

    label_weight: int = 20
    index_weight: int = 10
    table_weight: int = 3
    rows_weight: int = 5
    starts_weight: int = 3
    keyword_weight: int = 4
    use_keywords: bool = False
    floor: int = 10


# Titles rendered from our own canonical labels.
FLAME_TITLES = MatchConfig()
# Titles from an SVG made earlier, possibly with another label vocabulary.
FOREIGN_TITLES = MatchConfig(use_keywords=True, floor=8)


class MatchCandidate(NamedTuple):
    detail: LabelDetail
    score: int


def _index_pattern(index: str) -> re.Pattern:
    escaped = re.escape(index)
    return re.compile(rf"\.{escaped}\]|\[{escaped}\]|using\s+{escaped}", re.IGNORECASE)


def score(title: str, detail: LabelDetail, config: MatchConfig = FLAME_TITLES) -> int:
    lowered = title.lower()
    total = 0

    if detail.label and detail.label.lower() in lowered:
        total += config.label_weight

    if detail.index_name and _index_pattern(detail.index_name).search(title):
        total += config.index_weight

    tables = [name.lower() for name in (detail.table_name, detail.alias) if name]
    if any(name in lowered for name in tables):
        total += config.table_weight

    rows = _ROWS_RE.search(title)
    if rows and detail.actual_rows is not None and round_count(detail.actual_rows) == int(rows.group(1)):
        total += config.rows_weight

    starts = _STARTS_RE.search(title)
    if starts and detail.actual_loops == int(starts.group(1)):
        total += config.starts_weight

    if config.use_keywords:
        for title_pattern, operation_pattern in KEYWORD_FAMILIES:
            if title_pattern.search(title) and operation_pattern.search(detail.operation):
                total += config.keyword_weight

    return total


def candidates(
    title: str,
    details: Iterable[LabelDetail],
    config: MatchConfig = FLAME_TITLES,
) -> Iterator[MatchCandidate]:
    for detail in details:
        yield MatchCandidate(detail, score(title, detail, config))


def match(
    title: str,
    details: Iterable[LabelDetail],
    config: MatchConfig = FLAME_TITLES,
) -> LabelDetail | None:
    """
    Return the best scoring detail for a rendered title, or None.

    Only a strictly higher score replaces the current best, so ties go to
    the candidate seen first.
    """
    best: MatchCandidate | None = None
    for candidate in candidates(title, details, config):
        if best is None or candidate.score > best.score:
            best = candidate
    if best is None or best.score < config.floor:
        return None
    return best.detail
