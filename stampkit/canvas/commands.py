"""Backend-agnostic draw commands for a stamp design.

`build_commands` resolves a Design into one ordered list of commands:
clip, optional background fill, logo, auxiliary elements, text in list
order, clip release and finally the border strokes. Every coordinate is
resolved here (text origins sit on the alphabetic baseline at the left
edge of the run), so a backend only has to translate commands into its own
drawing calls.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

from stampkit.core.objects import (
    Design,
    DesignElement,
    FontSpec,
    StraightLine,
    CurvedLine,
    TextLine,
)
from stampkit.canvas.arc_layout import ArcLayoutInput, layout_arc
from stampkit.canvas.fonts import FontsManager, shape_text
from stampkit.canvas.geometry import Box, clamp, compute_line_baselines, finite_or, safe_zone
from stampkit.canvas.images import ImageManager, fit_size
from stampkit.canvas.shapes import ShapePath, clip_path, border_strokes
from stampkit.canvas.units import mm_to_px

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipCommand:
    path: ShapePath


@dataclass(frozen=True)
class FillCommand:
    path: ShapePath
    color: str


@dataclass(frozen=True)
class ImageCommand:
    ref: str
    x: float
    y: float
    width: float
    height: float
    image: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TextCommand:
    """
    A positioned text run.

    The run is drawn in a local frame translated to (`x`, `y`) and rotated
    by `angle` radians; its left alphabetic-baseline origin sits at
    (`dx`, `dy`) in that frame.
    """
    text: str
    x: float
    y: float
    font: FontSpec
    color: str
    angle: float = 0.0
    dx: float = 0.0
    dy: float = 0.0
    rtl: bool = False
    line_id: str = ""


@dataclass(frozen=True)
class ArcGuideCommand:
    """Reference arc of a curved line (clock angles in degrees). Not painted."""
    line_id: str
    cx: float
    cy: float
    radius: float
    start_deg: float
    end_deg: float


@dataclass(frozen=True)
class ReleaseClipCommand:
    pass


@dataclass(frozen=True)
class StrokeCommand:
    path: ShapePath
    color: str
    width: float
    dash: Tuple[float, ...] = ()


Command = Union[
    ClipCommand,
    FillCommand,
    ImageCommand,
    TextCommand,
    ArcGuideCommand,
    ReleaseClipCommand,
    StrokeCommand,
]

_ALIGN_FACTOR = {"start": 0.0, "center": 0.5, "end": 1.0}


def line_font(line: TextLine) -> FontSpec:
    return FontSpec(
        family=line.font_family,
        size_px=max(1, mm_to_px(line.font_size_mm)),
        weight=line.font_weight,
        style=line.font_style,
    )


def _baseline_shift(baseline: str, ascent: float, descent: float) -> float:
    """Offset from the requested anchor y down to the alphabetic baseline."""
    if baseline == "alphabetic":
        return 0.0
    if baseline == "hanging":
        return ascent
    return (ascent - descent) / 2.0


def _run_width(advances: Sequence[float], spacing: float) -> float:
    visible = [a for a in advances if a > 0]
    if not visible:
        return 0.0
    return sum(visible) + spacing * (len(visible) - 1)


def straight_line_commands(
    line: StraightLine,
    auto_y: float,
    zone: Box,
    ink_color: str,
    fonts: FontsManager,
) -> List[TextCommand]:
    """Resolve one straight line into text runs.

    The anchor comes from explicit mm coordinates when present, otherwise
    from the alignment edge (x) or the automatic stacking baseline (y),
    shifted by the percentage drag offset relative to half the safe zone.
    The anchor is then clamped so the whole run stays inside the zone.
    """
    font = line_font(line)
    display = shape_text(line.text)
    spacing = float(mm_to_px(line.letter_spacing_mm))
    advances = [fonts.measure(ch, font) for ch in display] if spacing else []
    width = _run_width(advances, spacing) if spacing else fonts.measure_text(line.text, font)
    ascent, descent = fonts.metrics(font)
    factor = _ALIGN_FACTOR.get(line.align, 0.5)
    cx, cy = zone.center

    if line.x_mm is not None:
        x = float(mm_to_px(line.x_mm))
    else:
        edge = {"start": zone.left, "end": zone.right}.get(line.align, cx)
        x = edge + finite_or(line.x_offset_pct, 0.0) / 100.0 * (zone.width / 2.0)
    if line.y_mm is not None:
        y = float(mm_to_px(line.y_mm))
    else:
        y = auto_y + finite_or(line.y_offset_pct, 0.0) / 100.0 * (zone.height / 2.0)

    x = clamp(x, zone.left + width * factor, zone.right - width * (1.0 - factor))
    half_h = font.size_px / 2.0
    y = clamp(y, zone.top + half_h, zone.bottom - half_h)

    left = x - width * factor
    base_y = y + _baseline_shift(line.baseline, ascent, descent)
    color = line.color or ink_color
    rtl = display != line.text

    if not spacing:
        return [TextCommand(display, left, base_y, font, color, rtl=rtl, line_id=line.id)]

    runs = []
    pen = left
    for ch, adv in zip(display, advances):
        runs.append(TextCommand(ch, pen, base_y, font, color, line_id=line.id))
        if adv > 0:
            pen += adv + spacing
    return runs


def default_radius(zone: Box, font: FontSpec) -> float:
    return max(1.0, min(zone.width, zone.height) / 2.0 - float(font.size_px))


def curved_line_commands(
    line: CurvedLine,
    width: float,
    height: float,
    zone: Box,
    ink_color: str,
    fonts: FontsManager,
) -> List[Command]:
    """Resolve one curved line into per-glyph text runs plus its guide arc.

    If the layout raises (e.g. a font metrics failure) the line is drawn as
    plain centered text at the arc center instead.
    """
    font = line_font(line)
    color = line.color or ink_color
    cx = float(mm_to_px(line.axis_x_mm)) if line.axis_x_mm is not None else width / 2.0
    cy = float(mm_to_px(line.axis_y_mm)) if line.axis_y_mm is not None else height / 2.0
    radius = float(mm_to_px(line.radius_mm)) if line.radius_mm is not None else default_radius(zone, font)
    arc_deg = finite_or(line.arc_deg, 180.0)
    rotation = finite_or(line.rotation_deg, 0.0)

    bisector = 180.0 if line.direction == "inside" else 0.0
    out: List[Command] = [ArcGuideCommand(
        line.id, cx, cy, radius,
        bisector + rotation - arc_deg / 2.0,
        bisector + rotation + arc_deg / 2.0,
    )]

    display = shape_text(line.text)
    try:
        poses = layout_arc(
            ArcLayoutInput(
                text=display,
                font=font,
                radius_px=radius,
                arc_degrees=arc_deg,
                align=line.align,
                direction=line.direction,
                letter_spacing_px=float(mm_to_px(line.letter_spacing_mm)),
                center_x=cx,
                center_y=cy,
                rotation_deg=rotation,
            ),
            fonts.measure,
        )
        ascent, descent = fonts.metrics(font)
        shift = (ascent - descent) / 2.0
        for pose in poses:
            adv = fonts.measure(pose.char, font)
            out.append(TextCommand(
                pose.char, pose.x, pose.y, font, color,
                angle=pose.angle, dx=-adv / 2.0, dy=shift, line_id=line.id,
            ))
    except Exception:
        logger.exception(f"Curved layout failed for line {line.id}, drawing it straight")
        out = out[:1]
        out.append(_fallback_run(line, display, cx, cy, font, color, fonts))
    return out


def _fallback_run(line: CurvedLine, display: str, cx: float, cy: float, font: FontSpec, color: str, fonts: FontsManager) -> TextCommand:
    # metrics may be what failed, so estimate from the font size
    try:
        width = fonts.measure_text(line.text, font)
        ascent, descent = fonts.metrics(font)
    except Exception:
        logger.exception(f"Font metrics unavailable for {font.css()!r}")
        width = 0.6 * font.size_px * len(display)
        ascent, descent = 0.8 * font.size_px, 0.2 * font.size_px
    return TextCommand(
        display, cx - width / 2.0, cy + (ascent - descent) / 2.0, font, color,
        rtl=display != line.text, line_id=line.id,
    )


def logo_command(design: Design, width: float, height: float, zone: Box, images: Optional[ImageManager]) -> Optional[ImageCommand]:
    logo = design.logo
    if not logo.enabled or not logo.image or images is None:
        return None
    bitmap = images.get(logo.image)
    if bitmap is None:
        logger.debug("Logo bitmap not loaded yet, skipping")
        return None

    scale = clamp(finite_or(logo.scale, 0.2), 0.0, 1.0)
    box_w, box_h = width * scale, height * scale
    w, h = fit_size(bitmap.width, bitmap.height, box_w, box_h)
    if w <= 0 or h <= 0:
        return None

    cx, cy = zone.center
    anchors = {
        "top": (cx, zone.top + box_h / 2.0),
        "bottom": (cx, zone.bottom - box_h / 2.0),
        "left": (zone.left + box_w / 2.0, cy),
        "right": (zone.right - box_w / 2.0, cy),
        "center": (cx, cy),
    }
    ax, ay = anchors.get(logo.position, anchors["top"])
    ax += finite_or(logo.x_pct, 0.0) / 100.0 * max(0.0, (zone.width - w) / 2.0)
    ay += finite_or(logo.y_pct, 0.0) / 100.0 * max(0.0, (zone.height - h) / 2.0)
    ax = clamp(ax, zone.left + w / 2.0, zone.right - w / 2.0)
    ay = clamp(ay, zone.top + h / 2.0, zone.bottom - h / 2.0)
    return ImageCommand(logo.image, ax - w / 2.0, ay - h / 2.0, w, h, image=bitmap)


def element_command(element: DesignElement, zone: Box, images: Optional[ImageManager]) -> Optional[ImageCommand]:
    if images is None:
        return None
    bitmap = images.get(element.image)
    if bitmap is None:
        return None
    w = float(mm_to_px(element.width_mm))
    h = float(mm_to_px(element.height_mm))
    if w <= 0 or h <= 0:
        return None
    cx, cy = zone.center
    x = cx + finite_or(element.x_pct, 0.0) / 100.0 * (zone.width - w) / 2.0
    y = cy + finite_or(element.y_pct, 0.0) / 100.0 * (zone.height - h) / 2.0
    x = clamp(x, zone.left + w / 2.0, zone.right - w / 2.0)
    y = clamp(y, zone.top + h / 2.0, zone.bottom - h / 2.0)
    return ImageCommand(element.image, x - w / 2.0, y - h / 2.0, w, h, image=bitmap)


def build_commands(
    design: Design,
    width: float,
    height: float,
    fonts: FontsManager,
    images: Optional[ImageManager] = None,
    background: str = "",
) -> List[Command]:
    """Ordered draw commands for `design` on a width x height px canvas."""
    width = max(0.0, finite_or(width, 0.0))
    height = max(0.0, finite_or(height, 0.0))
    zone = safe_zone(width, height, mm_to_px(design.shape.margin_mm))
    clip = clip_path(width, height, design.shape)

    commands: List[Command] = [ClipCommand(clip)]
    if background:
        commands.append(FillCommand(clip, background))

    logo = logo_command(design, width, height, zone, images)
    if logo is not None:
        commands.append(logo)
    for element in design.elements:
        cmd = element_command(element, zone, images)
        if cmd is not None:
            commands.append(cmd)

    visible = [ln for ln in design.lines if ln.visible and ln.text]
    stacked = [ln for ln in visible if isinstance(ln, StraightLine) and ln.y_mm is None]
    baselines = iter(compute_line_baselines(height, len(stacked), top=zone.top, bottom=height - zone.bottom))
    for line in visible:
        if isinstance(line, CurvedLine):
            commands.extend(curved_line_commands(line, width, height, zone, design.ink_color, fonts))
        else:
            auto_y = next(baselines) if line.y_mm is None else zone.center[1]
            commands.extend(straight_line_commands(line, auto_y, zone, design.ink_color, fonts))

    commands.append(ReleaseClipCommand())
    for stroke in border_strokes(width, height, design.shape, design.border, design.ink_color):
        commands.append(StrokeCommand(stroke.path, stroke.color, stroke.width, stroke.dash))
    return commands


def text_commands(commands: Sequence[Command]) -> List[TextCommand]:
    return [c for c in commands if isinstance(c, TextCommand)]
