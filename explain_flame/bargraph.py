"""Horizontal bar chart SVG of self time per operation."""

from __future__ import annotations

import html
from typing import Iterable

from explain_flame.attribution import TimedOperation
from explain_flame.labels import format_count, round_count

MIN_SELF_TIME_MS = 0.001
LABEL_BUDGET = 85

BAR_HEIGHT = 32
BAR_GAP = 8
LEFT_MARGIN = 10
RIGHT_MARGIN = 10
TOP_MARGIN = 60
BOTTOM_MARGIN = 40
LABEL_WIDTH = 500
MIN_BAR_WIDTH = 3

PALETTE = (
    "rgb(255,90,90)",
    "rgb(255,130,70)",
    "rgb(255,165,50)",
    "rgb(255,200,50)",
    "rgb(255,220,80)",
    "rgb(200,200,100)",
    "rgb(150,200,150)",
    "rgb(100,180,180)",
)

_STYLE = """<style>
  text { font-family: Arial, sans-serif; font-size: 13px; }
  .title { font-size: 18px; font-weight: bold; }
  .label { font-size: 12px; }
  .value { font-size: 12px; font-weight: bold; }
  .bar:hover { opacity: 0.8; cursor: pointer; }
  .header { font-size: 11px; fill: #666; }
</style>"""


def _escape(text: str) -> str:
    return html.escape(text, quote=True)


def _format_time(value: float) -> str:
    return f"{value:.0f}" if value >= 1 else f"{value:.3f}"


def _number(value: float) -> str:
    return f"{value:g}"


def render_bargraph(
    operations: Iterable[TimedOperation],
    width: int = 1200,
    title: str = "MySQL Query Performance",
) -> str:
    """
    Render one bar per operation, slowest first.

    Operations under a microsecond of self time are omitted. When the summed
    self time is under 1 ms every value is shown in microseconds.
    """
    bars = sorted(
        (op for op in operations if op.self_time_ms >= MIN_SELF_TIME_MS),
        key=lambda op: op.self_time_ms,
        reverse=True,
    )
    total_ms = sum(op.self_time_ms for op in bars) or MIN_SELF_TIME_MS
    use_microseconds = total_ms < 1
    unit = "µs" if use_microseconds else "ms"
    multiplier = 1000 if use_microseconds else 1
    total = total_ms * multiplier

    bar_area_width = width - LEFT_MARGIN - RIGHT_MARGIN - LABEL_WIDTH - 150
    height = TOP_MARGIN + len(bars) * (BAR_HEIGHT + BAR_GAP) + BOTTOM_MARGIN
    center = _number(width / 2)

    out = [
        '<?xml version="1.0" standalone="no"?>',
        '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
        '"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">',
        f'<svg version="1.1" width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">',
        _STYLE,
        '<rect width="100%" height="100%" fill="#fafafa"/>',
        f'<text x="{center}" y="30" text-anchor="middle" class="title">{_escape(title)}</text>',
        f'<text x="{center}" y="48" text-anchor="middle" class="header">'
        f"Self-time per operation (sorted by time, slowest first) | "
        f"Total: {_format_time(total)} {unit}</text>",
    ]

    y = TOP_MARGIN
    for position, op in enumerate(bars):
        value = op.self_time_ms * multiplier
        share = value / total * 100
        bar_width = value / total * bar_area_width
        if bar_width < MIN_BAR_WIDTH:
            bar_width = MIN_BAR_WIDTH
        color = PALETTE[position % len(PALETTE)]
        bar_x = LEFT_MARGIN + LABEL_WIDTH
        text_y = _number(y + BAR_HEIGHT / 2 + 4)
        label = op.label
        shown = label[:LABEL_BUDGET] + "..." if len(label) > LABEL_BUDGET + 3 else label

        out.append(
            f'<text x="{LEFT_MARGIN + LABEL_WIDTH - 10}" y="{text_y}" '
            f'text-anchor="end" class="label">{_escape(shown)}</text>'
        )
        tooltip = "\n".join([
            _escape(label),
            f"Self-time: {_format_time(value)} {unit} ({share:.1f}%)",
            f"Rows: {round_count(op.rows or 0)}",
            f"Loops: {format_count(op.loops)}",
        ])
        out.append(
            f'<rect class="bar" x="{bar_x}" y="{y}" width="{_number(bar_width)}" '
            f'height="{BAR_HEIGHT}" fill="{color}" rx="3" ry="3">'
            f"<title>{tooltip}</title></rect>"
        )
        out.append(
            f'<text x="{_number(bar_x + bar_width + 8)}" y="{text_y}" class="value">'
            f"{_format_time(value)} {unit} ({share:.1f}%)</text>"
        )
        y += BAR_HEIGHT + BAR_GAP

    out.append("</svg>")
    return "\n".join(out) + "\n"
