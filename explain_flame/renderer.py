"""Invoke an external flame graph renderer (flamegraph.pl or inferno-flamegraph)."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from explain_flame.errors import RendererFailureError, RendererUnavailableError

RENDERER_ENV = "FLAMEGRAPH_PL"
RENDERER_NAMES = ("flamegraph.pl", "inferno-flamegraph")
RENDER_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class RenderOptions:
    width: int = 1800
    height: int = 32
    colors: str = "hot"
    title: str = "MySQL Query Plan"
    count_name: str = "ms"
    inverted: bool = False

    def to_args(self) -> list[str]:
        args = [
            "--width", str(self.width),
            "--height", str(self.height),
            "--colors", self.colors,
            "--title", self.title,
            "--countname", self.count_name,
        ]
        if self.inverted:
            args.append("--inverted")
        return args


def _command_for(path: str) -> list[str]:
    if os.access(path, os.X_OK):
        return [path]
    if path.endswith(".pl"):
        perl = shutil.which("perl")
        if perl:
            return [perl, path]
    raise RendererUnavailableError(f"Renderer is not executable: {path}")


def locate_renderer(explicit: str | None = None) -> list[str]:
    """
    Resolve the renderer command line prefix.

    Lookup order: explicit path, $FLAMEGRAPH_PL, flamegraph.pl next to the
    running program, then flamegraph.pl / inferno-flamegraph on PATH.
    """
    for configured in (explicit, os.environ.get(RENDERER_ENV)):
        if not configured:
            continue
        if not Path(configured).is_file():
            raise RendererUnavailableError(f"Cannot find renderer: {configured}")
        return _command_for(configured)

    sibling = Path(sys.argv[0]).resolve().parent / "flamegraph.pl"
    if sibling.is_file():
        return _command_for(str(sibling))

    for name in RENDERER_NAMES:
        found = shutil.which(name)
        if found:
            return [found]

    raise RendererUnavailableError(
        "Cannot find flamegraph.pl or inferno-flamegraph; install one of them, "
        f"put it on PATH or set {RENDERER_ENV}"
    )


def render_flamegraph(
    folded_text: str,
    options: RenderOptions,
    command: list[str] | None = None,
    timeout: float | None = RENDER_TIMEOUT_SECONDS,
) -> str:
    """
    Feed folded stacks to the renderer and return the SVG it prints.

    Input is written and output drained concurrently (``communicate``), and
    stdin is closed once the payload is sent, so large plans cannot
    deadlock on full pipe buffers.
    """
    if command is None:
        command = locate_renderer()
    argv = [*command, *options.to_args()]
    try:
        completed = subprocess.run(
            argv,
            input=folded_text,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
            check=False,
        )
    except OSError as exc:
        raise RendererUnavailableError(f"Cannot run {command[0]}: {exc}") from exc
    except subprocess.TimeoutExpired as exc:
        raise RendererFailureError(f"{command[0]} timed out after {timeout}s") from exc

    if completed.returncode != 0:
        raise RendererFailureError(
            f"{command[0]} exited with status {completed.returncode}",
            returncode=completed.returncode,
            stderr=completed.stderr or "",
        )
    return completed.stdout
