"""Folded-stack serialization (``a;b;c <weight>`` lines) with automatic unit rescaling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from explain_flame.attribution import TimedOperation
from explain_flame.errors import EmptyResultWarning
from explain_flame.labels import round_count

MODES = ("self", "total")
# Plan timings are reported in milliseconds.
TIME_UNIT_FACTORS = {"ms": 1.0, "us": 1000.0, "s": 0.001}
# Unit reported after a sub-unit rescale (x1000).
UNIT_LADDER = {"s": "ms", "ms": "us", "us": "ns"}


@dataclass(frozen=True)
class FoldedFrame:
    path: tuple[str, ...]
    weight: int

    def to_line(self) -> str:
        return f"{';'.join(self.path)} {self.weight}"


@dataclass(frozen=True)
class FoldedStacks:
    frames: tuple[FoldedFrame, ...]
    unit: str
    rescaled: bool

    @property
    def is_empty(self) -> bool:
        return not self.frames

    def lines(self) -> list[str]:
        return [frame.to_line() for frame in self.frames]

    def to_text(self) -> str:
        return "".join(f"{line}\n" for line in self.lines())

    def require_frames(self) -> "FoldedStacks":
        """Return self, or raise EmptyResultWarning when nothing survived rounding."""
        if self.is_empty:
            raise EmptyResultWarning(
                "No valid EXPLAIN ANALYZE JSON data found. "
                "Make sure to use: EXPLAIN ANALYZE FORMAT=JSON SELECT ..."
            )
        return self


def serialize(
    operations: Iterable[TimedOperation],
    mode: str = "self",
    time_unit: str = "ms",
) -> FoldedStacks:
    """
    Turn timed operations into weighted folded-stack frames.

    If the largest value is below one unit, every value is multiplied by
    1000 and the reported unit moves one step down the ladder. The decision
    is taken once for the whole output. Weights are rounded to integers;
    a zero-weight root is kept with weight 1, any other zero weight is dropped.
    A plan without any timing produces no frames at all.
    """
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
    if time_unit not in TIME_UNIT_FACTORS:
        raise ValueError(f"time_unit must be one of {tuple(TIME_UNIT_FACTORS)}, got {time_unit!r}")

    factor = TIME_UNIT_FACTORS[time_unit]
    entries = []
    for operation in operations:
        value = operation.self_time_ms if mode == "self" else operation.total_time_ms
        entries.append((operation.path, value * factor))

    max_time = max((value for _path, value in entries), default=0.0)
    if max_time <= 0:
        # no timing anywhere in the plan
        return FoldedStacks((), time_unit, False)
    rescaled = max_time < 1
    multiplier = 1000 if rescaled else 1
    unit = UNIT_LADDER[time_unit] if rescaled else time_unit

    frames = []
    for path, value in entries:
        weight = round_count(value * multiplier)
        if weight == 0 and len(path) == 1:
            weight = 1
        if weight <= 0:
            continue
        frames.append(FoldedFrame(path, weight))
    return FoldedStacks(tuple(frames), unit, rescaled)


def parse_folded(lines: Iterable[str]) -> list[FoldedFrame]:
    """Read folded-stack lines back, skipping blank or malformed ones."""
    frames = []
    for line in lines:
        line = line.strip()
        if not line or " " not in line:
            continue
        stack_part, weight_part = line.rsplit(" ", 1)
        try:
            weight = int(weight_part)
        except ValueError:
            continue
        frames.append(FoldedFrame(tuple(stack_part.split(";")), weight))
    return frames
