"""Tooltip enrichment: detail tables, title reconciliation, SVG rewriting."""

from explain_flame.enrich.details import LabelDetail, collect_details
from explain_flame.enrich.matcher import (
    FLAME_TITLES,
    FOREIGN_TITLES,
    MatchCandidate,
    MatchConfig,
    match
)
from explain_flame.enrich.tooltip import describe, enhance_svg

__all__ = [
    "FLAME_TITLES",
    "FOREIGN_TITLES",
    "LabelDetail",
    "MatchCandidate",
    "MatchConfig",
    "collect_details",
    "describe",
    "enhance_svg",
    "match"
]
