"""CLI entry point for MySQL EXPLAIN ANALYZE flame graphs."""

import json
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from explain_flame.analyzer import PlanAnalyzer, analyze_plan
from explain_flame.attribution import attribute
from explain_flame.bargraph import render_bargraph
from explain_flame.enrich import FLAME_TITLES, FOREIGN_TITLES, enhance_svg
from explain_flame.errors import EmptyResultWarning, ExplainFlameError
from explain_flame.labels import BAR
from explain_flame.renderer import RenderOptions, locate_renderer, render_flamegraph
from explain_flame.summary import build_rich_tree, build_summary_table

app = typer.Typer(
    help="MySQL EXPLAIN ANALYZE flame graphs - visualize where a query spends its time",
    no_args_is_help=True
)
# stdout carries the SVG/folded/JSON payload; diagnostics use stderr
console = Console(stderr=True)
out_console = Console()

PLAN_HELP = "EXPLAIN ANALYZE FORMAT=JSON output file (default: stdin)"


class TimeUnit(str, Enum):
    ms = "ms"
    us = "us"
    s = "s"


def _check_file(path: Path, kind: str) -> None:
    if not path.exists():
        console.print(f"[red]Error:[/red] {kind} file not found: {path}")
        raise typer.Exit(code=1)
    if not path.is_file():
        console.print(f"[red]Error:[/red] Path is not a file: {path}")
        raise typer.Exit(code=1)


def _read_input(path: Optional[Path], kind: str = "Plan") -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    _check_file(path, kind)
    return path.read_text(encoding="utf-8", errors="replace")


def _write_output(text: str, out: Optional[Path]) -> None:
    if out is None:
        typer.echo(text, nl=False)
        return
    with open(out, "w", encoding="utf-8") as f:
        f.write(text)
    console.print(f"[green]✓[/green] Written to: {out}")


def _fail(exc: ExplainFlameError) -> None:
    if isinstance(exc, EmptyResultWarning):
        console.print(f"[yellow]Warning:[/yellow] {escape(str(exc))}")
    else:
        console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
    raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """MySQL EXPLAIN ANALYZE flame graphs - visualize where a query spends its time."""
    if ctx.invoked_subcommand is None:
        # Show help if no subcommand is provided
        pass


@app.command()
def collapse(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
    use_total: bool = typer.Option(False, "--use-total", help="Use total time instead of self time"),
    time_unit: TimeUnit = typer.Option(TimeUnit.ms, "--time-unit", help="Time unit for weights"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output file (default: stdout)"),
):
    """Convert a plan into folded stacks for flamegraph.pl."""
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
        folded = analyzer.get_folded(
            mode="total" if use_total else "self",
            time_unit=time_unit.value
        ).require_frames()
    except ExplainFlameError as e:
        _fail(e)

    if folded.rescaled:
        console.print(f"[blue]Note:[/blue] Using {folded.unit} (query total < 1{time_unit.value})")
    _write_output(folded.to_text(), out)


@app.command()
def flamegraph(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
    out: Optional[Path] = typer.Option(None, "--out", help="Output SVG file (default: stdout)"),
    width: int = typer.Option(1800, "--width", help="SVG width in pixels"),
    height: int = typer.Option(32, "--height", help="Frame height in pixels"),
    colors: str = typer.Option("hot", "--colors", help="Color scheme: hot, mem, io, ..."),
    title: str = typer.Option("MySQL Query Plan", "--title", help="Title text"),
    inverted: bool = typer.Option(False, "--inverted", help="Generate an icicle graph"),
    enhance: bool = typer.Option(True, "--enhance/--no-enhance", help="Add plan details to tooltips"),
    renderer: Optional[str] = typer.Option(None, "--renderer", help="Path to flamegraph.pl"),
    use_total: bool = typer.Option(False, "--use-total", help="Use total time instead of self time"),
):
    """Render a plan as a flame graph SVG with enriched tooltips."""
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
        folded = analyzer.get_folded(mode="total" if use_total else "self").require_frames()
        options = RenderOptions(
            width=width,
            height=height,
            colors=colors,
            title=title,
            count_name=folded.unit,
            inverted=inverted
        )
        svg = render_flamegraph(folded.to_text(), options, command=locate_renderer(renderer))
    except ExplainFlameError as e:
        _fail(e)

    if enhance:
        svg = enhance_svg(svg, analyzer.get_details("label").values(), FLAME_TITLES)
    _write_output(svg, out)


@app.command("enhance-tooltips")
def enhance_tooltips(
    svg: Path = typer.Argument(..., help="Flame graph SVG to enhance"),
    plan: Path = typer.Argument(..., help="The EXPLAIN ANALYZE JSON the SVG was made from"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output SVG file (default: stdout)"),
):
    """Add plan details to the tooltips of an existing flame graph SVG."""
    svg_text = _read_input(svg, "SVG")
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
    except ExplainFlameError as e:
        _fail(e)

    details = analyzer.get_details("match_key")
    _write_output(enhance_svg(svg_text, details.values(), FOREIGN_TITLES), out)


@app.command()
def bargraph(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
    width: int = typer.Option(1200, "--width", help="SVG width in pixels"),
    title: str = typer.Option("MySQL Query Performance", "--title", help="Title text"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output SVG file (default: stdout)"),
):
    """Render self time per operation as a horizontal bar chart SVG."""
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
    except ExplainFlameError as e:
        _fail(e)

    _write_output(render_bargraph(attribute(analyzer.root, BAR), width=width, title=title), out)


@app.command()
def summary(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
):
    """Show operations sorted by self time, slowest first."""
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
    except ExplainFlameError as e:
        _fail(e)

    out_console.print(build_summary_table(attribute(analyzer.root, BAR)))


@app.command()
def tree(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
    use_total: bool = typer.Option(False, "--use-total", help="Use total time instead of self time"),
):
    """Show the folded stacks as a collapsible tree in the terminal."""
    try:
        analyzer = PlanAnalyzer(_read_input(plan))
        folded = analyzer.get_folded(mode="total" if use_total else "self").require_frames()
    except ExplainFlameError as e:
        _fail(e)

    out_console.print(build_rich_tree(folded.frames, folded.unit))


@app.command()
def analyze(
    plan: Optional[Path] = typer.Argument(None, help=PLAN_HELP),
    out: Optional[Path] = typer.Option(None, "--out", help="Output JSON file (default: stdout)"),
    schema_version: str = typer.Option("1", "--schema-version", help="Schema version to emit in JSON"),
    use_total: bool = typer.Option(False, "--use-total", help="Use total time for the folded stacks"),
):
    """Analyze a plan and emit a JSON document."""
    try:
        result = analyze_plan(
            _read_input(plan),
            schema_version=schema_version,
            mode="total" if use_total else "self"
        )
    except ExplainFlameError as e:
        _fail(e)

    _write_output(json.dumps(result, indent=2) + "\n", out)


if __name__ == "__main__":
    app()
