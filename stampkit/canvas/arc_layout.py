"""Glyph placement for text that follows a circular arc.

The arc is described by its center, radius and angular span. Its bisector
points to 12 o'clock (before the optional global rotation), so "outside"
text sits on top of the circle reading clockwise and "inside" text sits at
the bottom reading counter-clockwise; both read left to right.

Known overflow condition: letter spacing is the only thing that shrinks to
make text fit. When the glyph advances alone are longer than the arc, the
spacing scale saturates at 0 and the text extends past the requested span.
Font size is never reduced automatically.

Glyph rotation is the tangent of the polar angle of the glyph position.
For "inside" text that polar angle is t + 180 deg, so the rotation comes
out as t + 90 deg rather than t - 90 deg and bottom text stays upright.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Sequence

from stampkit.core.objects import FontSpec
from stampkit.canvas.geometry import clamp, finite_or, rotate_point

EPSILON = 1e-6
ARC_BISECTOR = -math.pi / 2.0  # 12 o'clock on a y-down canvas

Measure = Callable[[str, FontSpec], float]


@dataclass(frozen=True)
class GlyphPose:
    """
    One placed character.

    Attributes:
        char: The character.
        x: Glyph center x in pixels.
        y: Glyph center y in pixels.
        angle: Glyph rotation in radians (tangent to the arc).
        theta: Angular parameter on the arc in radians, including the global
            rotation. Increases along the text for "outside", decreases for
            "inside".
    """
    char: str
    x: float
    y: float
    angle: float
    theta: float


@dataclass(frozen=True)
class ArcLayoutInput:
    text: str
    font: FontSpec
    radius_px: float
    arc_degrees: float = 180.0
    align: str = "center"
    direction: str = "outside"
    letter_spacing_px: float = 0.0
    center_x: float = 0.0
    center_y: float = 0.0
    rotation_deg: float = 0.0


def fit_scale(advances: Sequence[float], letter_spacing: float, arc_length: float) -> float:
    """Letter-spacing scale in [0, 1] that makes the text fit the arc.

    Zero-width glyphs contribute no spacing. Returns 1.0 when the text
    already fits or when there is no positive spacing to give up.
    """
    base = sum(advances)
    spacing_total = sum(letter_spacing for adv in advances if adv > 0)
    if base + spacing_total <= arc_length or spacing_total <= 0:
        return 1.0
    return clamp((arc_length - base) / spacing_total, 0.0, 1.0)


def layout_arc(inp: ArcLayoutInput, measure: Measure) -> List[GlyphPose]:
    """Compute one pose per character of `inp.text` along the arc.

    `measure(char, font)` returns the advance width of a single character
    in pixels. Exceptions raised by `measure` propagate to the caller; all
    other degenerate numeric input is clamped (radius and arc length to a
    small epsilon, non-finite coordinates to 0).
    """
    chars = list(inp.text or "")
    if not chars:
        return []

    radius = finite_or(inp.radius_px, EPSILON)
    if radius <= 0:
        radius = EPSILON
    arc_rad = math.radians(finite_or(inp.arc_degrees, 180.0))
    arc_length = radius * arc_rad
    if arc_length <= 0:
        arc_length = EPSILON

    spacing = finite_or(inp.letter_spacing_px, 0.0)
    cx = finite_or(inp.center_x, 0.0)
    cy = finite_or(inp.center_y, 0.0)
    rot = math.radians(finite_or(inp.rotation_deg, 0.0))
    sign = -1.0 if inp.direction == "inside" else 1.0

    advances = [max(0.0, finite_or(measure(ch, inp.font), 0.0)) for ch in chars]
    scale = fit_scale(advances, spacing, arc_length)
    widths = [adv + (spacing * scale if adv > 0 else 0.0) for adv in advances]
    sweep = sum(widths) / radius

    # offsets are measured from the bisector along the reading direction
    if inp.align == "start":
        offset = -arc_rad / 2.0
    elif inp.align == "end":
        offset = arc_rad / 2.0 - sweep
    else:
        offset = -arc_rad / 2.0 + (arc_rad - sweep) / 2.0

    poses: List[GlyphPose] = []
    for ch, w in zip(chars, widths):
        half = (w / radius) / 2.0
        offset += half
        t = ARC_BISECTOR + sign * offset
        x = cx + sign * radius * math.cos(t)
        y = cy + sign * radius * math.sin(t)
        polar = t if sign > 0 else t + math.pi
        angle = polar + sign * math.pi / 2.0
        x, y = rotate_point(x, y, cx, cy, rot)
        poses.append(GlyphPose(char=ch, x=x, y=y, angle=angle + rot, theta=t + rot))
        offset += half
    return poses
