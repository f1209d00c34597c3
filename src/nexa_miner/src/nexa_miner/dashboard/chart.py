"""Chart generation utilities for the dashboard."""

from math import ceil, floor, isfinite
from typing import Sequence

_SEGMENT_FLAT = "─"
_SEGMENT_VERTICAL = "│"
_AXIS = "┤"
_AXIS_MARK = "┼"


def line_chart(
    series: Sequence[float],
    *,
    height: int = 6,
    label_format: str = "{:8.2f} ",
    include_zero: bool = True,
) -> str:
    """Render a single series as a box-drawing line chart.

    Each point occupies one column. Non-finite points leave a gap. Returns an
    empty string when there is nothing finite to draw.
    """
    points = [float(p) for p in series]
    finite = [p for p in points if isfinite(p)]
    if not finite:
        return ""

    low, high = min(finite), max(finite)
    if include_zero:
        low = min(0.0, low)
    span = high - low
    ratio = height / span if span > 0 else 1.0

    bottom = floor(low * ratio)
    top = ceil(high * ratio)
    rows = top - bottom

    def level(value: float) -> int:
        return int(round(min(max(value, low), high) * ratio)) - bottom

    cells = [[" "] * len(points) for _ in range(rows + 1)]

    for x in range(len(points) - 1):
        current, following = points[x], points[x + 1]
        if not isfinite(current) and not isfinite(following):
            continue
        if not isfinite(current):
            cells[rows - level(following)][x] = "╶"
            continue
        if not isfinite(following):
            cells[rows - level(current)][x] = "╴"
            continue

        y0, y1 = level(current), level(following)
        if y0 == y1:
            cells[rows - y0][x] = _SEGMENT_FLAT
            continue

        falling = y0 > y1
        cells[rows - y1][x] = "╰" if falling else "╭"
        cells[rows - y0][x] = "╮" if falling else "╯"
        for y in range(min(y0, y1) + 1, max(y0, y1)):
            cells[rows - y][x] = _SEGMENT_VERTICAL

    last = len(points) - 1
    if isfinite(points[last]):
        cells[rows - level(points[last])][last] = _SEGMENT_FLAT

    first_row = rows - level(points[0]) if isfinite(points[0]) else None
    step = span / rows if rows else 0.0

    lines = []
    for row in range(rows + 1):
        row_level = rows - row
        label = label_format.format(low + row_level * step)
        axis = _AXIS_MARK if row == first_row or bottom + row_level == 0 else _AXIS
        lines.append(f"{label}{axis}{''.join(cells[row])}".rstrip())
    return "\n".join(lines)
