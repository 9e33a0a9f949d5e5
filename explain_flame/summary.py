"""
Terminal views of an attributed plan.

- a table of operations sorted by self time (slowest first)
- a collapsible tree of the folded stacks with cumulative weights
"""

from __future__ import annotations

from typing import Iterable

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from explain_flame.attribution import TimedOperation
from explain_flame.folded import FoldedFrame
from explain_flame.labels import format_count, round_count

NAME_BUDGET = 60


def build_summary_table(operations: Iterable[TimedOperation]) -> Table:
    ordered = sorted(operations, key=lambda op: op.self_time_ms, reverse=True)
    total_ms = sum(op.self_time_ms for op in ordered) or 1.0

    table = Table(caption=f"TOTAL: {total_ms:.0f} ms", caption_justify="left")
    table.add_column("OPERATION", overflow="ellipsis", max_width=NAME_BUDGET)
    table.add_column("SELF TIME", justify="right")
    table.add_column("%", justify="right")
    table.add_column("ROWS", justify="right")
    table.add_column("LOOPS", justify="right")

    for op in ordered:
        share = op.self_time_ms / total_ms * 100
        bar = "#" * int(share / 2)
        name = escape(op.label) if share <= 1 else f"{escape(op.label)}\n[dim]{bar}[/dim]"
        table.add_row(
            name,
            f"{op.self_time_ms:.0f} ms",
            f"{share:.1f}%",
            str(round_count(op.rows or 0)),
            format_count(op.loops),
        )
    return table


def format_weight(value: int, unit: str) -> str:
    """Human-friendly weight, promoting to the next unit above 1000."""
    ladder = ["ns", "us", "ms", "s"]
    if unit in ladder:
        position = ladder.index(unit)
        scaled = float(value)
        while scaled >= 1000 and position < len(ladder) - 1:
            scaled /= 1000
            position += 1
        if position != ladder.index(unit):
            return f"{scaled:.2f}{ladder[position]}"
    return f"{value}{unit}"


def build_tree(frames: Iterable[FoldedFrame]) -> dict:
    # Nested dict: frame -> {'_time': cumulative weight, 'children': {}}
    root = {"_time": 0, "children": {}}
    for frame in frames:
        node = root
        node["_time"] += frame.weight
        for name in frame.path:
            children = node["children"]
            if name not in children:
                children[name] = {"_time": 0, "children": {}}
            node = children[name]
            node["_time"] += frame.weight
    return root


def render(node: dict, tree: Tree, total: int, unit: str) -> None:
    # Children sorted by descending weight
    for name, child in sorted(node["children"].items(), key=lambda kv: kv[1]["_time"], reverse=True):
        weight = child["_time"]
        share = weight / total * 100 if total else 0.0
        branch = tree.add(f"[bold]{escape(name)}[/] • {format_weight(weight, unit)} ({share:.1f}%)", highlight=False)
        render(child, branch, total, unit)


def build_rich_tree(frames: Iterable[FoldedFrame], unit: str) -> Tree:
    root = build_tree(frames)
    total = root["_time"]
    tree = Tree(f"[b]plan[/] • {format_weight(total, unit)} (100%)")
    render(root, tree, total, unit)
    return tree
