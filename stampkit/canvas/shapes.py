"""Clip boundary and border stroke geometry shared by both render backends."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Tuple

from stampkit.core.objects import ShapeSpec, BorderSpec
from stampkit.core.state import DOUBLE_BORDER_GAP_MM
from stampkit.canvas.geometry import safe_zone, finite_or, fmt
from stampkit.canvas.units import mm_to_px

# on/off lengths in px; both backends read these
DASH_PATTERNS = {
    "solid": (),
    "double": (),
    "dashed": (8.0, 4.0),
    "dotted": (2.0, 2.0),
}


@dataclass(frozen=True)
class ShapePath:
    """
    Closed outline described by its bounding box.

    `kind` is "rect" (optionally with rounded corners) or "ellipse"
    (circles are ellipses with equal radii).
    """
    kind: str
    x: float
    y: float
    width: float
    height: float
    corner_radius: float = 0.0

    @property
    def cx(self) -> float:
        return self.x + self.width / 2.0

    @property
    def cy(self) -> float:
        return self.y + self.height / 2.0

    @property
    def rx(self) -> float:
        return self.width / 2.0

    @property
    def ry(self) -> float:
        return self.height / 2.0

    def inset(self, delta: float) -> "ShapePath":
        w = max(0.0, self.width - 2 * delta)
        h = max(0.0, self.height - 2 * delta)
        return replace(
            self,
            x=self.cx - w / 2.0,
            y=self.cy - h / 2.0,
            width=w,
            height=h,
            corner_radius=max(0.0, self.corner_radius - delta),
        )

    def contains(self, px: float, py: float) -> bool:
        if self.kind == "ellipse":
            if self.rx <= 0 or self.ry <= 0:
                return False
            dx = (px - self.cx) / self.rx
            dy = (py - self.cy) / self.ry
            return dx * dx + dy * dy <= 1.0
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def svg_d(self) -> str:
        """SVG path data for the outline (closed)."""
        if self.kind == "ellipse":
            rx, ry = self.rx, self.ry
            left, right = self.cx - rx, self.cx + rx
            return (
                f"M {fmt(left)} {fmt(self.cy)} "
                f"A {fmt(rx)} {fmt(ry)} 0 1 0 {fmt(right)} {fmt(self.cy)} "
                f"A {fmt(rx)} {fmt(ry)} 0 1 0 {fmt(left)} {fmt(self.cy)} Z"
            )
        x0, y0 = self.x, self.y
        x1, y1 = self.x + self.width, self.y + self.height
        r = min(self.corner_radius, self.width / 2.0, self.height / 2.0)
        if r <= 0:
            return f"M {fmt(x0)} {fmt(y0)} H {fmt(x1)} V {fmt(y1)} H {fmt(x0)} Z"
        return (
            f"M {fmt(x0 + r)} {fmt(y0)} H {fmt(x1 - r)} "
            f"A {fmt(r)} {fmt(r)} 0 0 1 {fmt(x1)} {fmt(y0 + r)} V {fmt(y1 - r)} "
            f"A {fmt(r)} {fmt(r)} 0 0 1 {fmt(x1 - r)} {fmt(y1)} H {fmt(x0 + r)} "
            f"A {fmt(r)} {fmt(r)} 0 0 1 {fmt(x0)} {fmt(y1 - r)} V {fmt(y0 + r)} "
            f"A {fmt(r)} {fmt(r)} 0 0 1 {fmt(x0 + r)} {fmt(y0)} Z"
        )


@dataclass(frozen=True)
class StrokeSpec:
    path: ShapePath
    color: str
    width: float
    dash: Tuple[float, ...] = ()


def shape_path(width: float, height: float, kind: str, margin: float, corner_radius: float = 0.0) -> ShapePath:
    """Outline of the drawable area of a width x height canvas (all px).

    Rectangles and squares use the safe zone box; a circle is centered with
    radius min(width, height)/2 - margin; an ellipse uses independent radii
    width/2 - margin and height/2 - margin.
    """
    w = max(0.0, finite_or(width, 0.0))
    h = max(0.0, finite_or(height, 0.0))
    m = max(0.0, finite_or(margin, 0.0))
    if kind == "circle":
        r = max(0.0, min(w, h) / 2.0 - m)
        return ShapePath("ellipse", w / 2.0 - r, h / 2.0 - r, 2 * r, 2 * r)
    if kind == "ellipse":
        rx = max(0.0, w / 2.0 - m)
        ry = max(0.0, h / 2.0 - m)
        return ShapePath("ellipse", w / 2.0 - rx, h / 2.0 - ry, 2 * rx, 2 * ry)
    box = safe_zone(w, h, m)
    return ShapePath("rect", box.left, box.top, box.width, box.height, max(0.0, finite_or(corner_radius, 0.0)))


def clip_path(width: float, height: float, shape: ShapeSpec) -> ShapePath:
    return shape_path(width, height, shape.kind, mm_to_px(shape.margin_mm), mm_to_px(shape.corner_radius_mm))


def dash_pattern(style: str) -> Tuple[float, ...]:
    return DASH_PATTERNS.get(style, ())


def border_strokes(width: float, height: float, shape: ShapeSpec, border: BorderSpec, ink_color: str) -> List[StrokeSpec]:
    """Stroke descriptors for the border, outermost first.

    The outer stroke follows the clip outline. The "double" style adds a
    second outline inset by a fixed 2 mm and drawn at one third of the
    stroke width.
    """
    if border.style == "none":
        return []
    thickness = finite_or(border.thickness_px, 0.0)
    if thickness <= 0:
        return []
    color = border.color or ink_color
    margin = mm_to_px(shape.margin_mm)
    radius = mm_to_px(shape.corner_radius_mm)
    outer = shape_path(width, height, shape.kind, margin, radius)
    strokes = [StrokeSpec(outer, color, thickness, dash_pattern(border.style))]
    if border.style == "double":
        inner = shape_path(width, height, shape.kind, margin + mm_to_px(DOUBLE_BORDER_GAP_MM), radius)
        strokes.append(StrokeSpec(inner, color, max(1.0, thickness / 3.0), ()))
    return strokes
