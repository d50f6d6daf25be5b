from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in pixels (left/top inclusive)."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value into [lo, hi].

    When the range is inverted (lo > hi, e.g. content wider than the safe
    zone) the midpoint of the two bounds is returned so the content stays
    centered instead of snapping to one edge.
    """
    if lo > hi:
        return (lo + hi) / 2.0
    return min(hi, max(lo, value))


def finite_or(value, default: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(v):
        return float(default)
    return v


def safe_zone(width: float, height: float, margin: float) -> Box:
    """Return the drawable area of a width x height canvas inset by margin.

    The margin is clamped so the zone never inverts.
    """
    w = max(0.0, finite_or(width, 0.0))
    h = max(0.0, finite_or(height, 0.0))
    m = clamp(finite_or(margin, 0.0), 0.0, min(w, h) / 2.0)
    return Box(m, m, w - m, h - m)


def polar_to_cartesian(cx: float, cy: float, r: float, angle_deg: float) -> Tuple[float, float]:
    # 0 deg points to 12 o'clock, angles grow clockwise on a y-down canvas
    rad = math.radians(angle_deg - 90.0)
    return cx + r * math.cos(rad), cy + r * math.sin(rad)


def describe_arc(cx: float, cy: float, r: float, start_deg: float, end_deg: float) -> str:
    """SVG path data for a circular arc from start_deg to end_deg (clock angles)."""
    sx, sy = polar_to_cartesian(cx, cy, r, end_deg)
    ex, ey = polar_to_cartesian(cx, cy, r, start_deg)
    large_arc = "0" if abs(end_deg - start_deg) <= 180 else "1"
    # drawn from the end angle back to the start angle
    sweep = "0" if end_deg > start_deg else "1"
    return f"M {fmt(sx)} {fmt(sy)} A {fmt(r)} {fmt(r)} 0 {large_arc} {sweep} {fmt(ex)} {fmt(ey)}"


def rotate_point(x: float, y: float, cx: float, cy: float, angle_rad: float) -> Tuple[float, float]:
    s = math.sin(angle_rad)
    c = math.cos(angle_rad)
    dx = x - cx
    dy = y - cy
    return cx + dx * c - dy * s, cy + dx * s + dy * c


def compute_line_baselines(
    height: float,
    count: int,
    top: float = 10.0,
    bottom: float = 10.0,
    extra_spacing: float = 0.0,
) -> List[float]:
    """Evenly distribute `count` baselines between the top and bottom insets.

    Used for straight lines that carry no explicit vertical position. A
    single line sits on the vertical center.
    """
    safe_top = top
    safe_bottom = height - bottom
    span = safe_bottom - safe_top
    if count <= 0:
        return []
    if count == 1:
        return [safe_top + span / 2.0]
    step = span / (count + 1)
    out = []
    for i in range(count):
        y = round(safe_top + step * (i + 1) + i * extra_spacing)
        out.append(float(min(height - bottom, max(top, y))))
    return out


def fmt(num: float) -> str:
    """Compact fixed-point formatting used for SVG attributes and path data."""
    try:
        s = f"{float(num):.3f}"
    except (TypeError, ValueError):
        return "0"
    s = s.rstrip("0").rstrip(".")
    return "0" if s in ("-0", "") else s
