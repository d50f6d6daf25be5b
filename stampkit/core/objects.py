from __future__ import annotations

import uuid
import logging
from dataclasses import dataclass, field, asdict, replace
from typing import Optional, Union, Tuple, Any, Dict, ClassVar

logger = logging.getLogger(__name__)

ALIGNMENTS = ("start", "center", "end")
DIRECTIONS = ("outside", "inside")
BASELINES = ("middle", "alphabetic", "hanging")
SHAPES = ("rectangle", "square", "circle", "ellipse")
BORDER_STYLES = ("none", "solid", "dashed", "dotted", "double")
LOGO_POSITIONS = ("top", "bottom", "left", "right", "center")

_LEGACY_ALIGN = {"left": "start", "right": "end", "center": "center", "middle": "center"}


def new_line_id() -> str:
    return f"line-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class FontSpec:
    """
    Resolved font request in pixel units.

    Attributes:
        family: Font family name, mapped to a file by the fonts manager.
        size_px: Font size in pixels.
        weight: "normal", "bold" or a numeric CSS weight as a string.
        style: "normal" or "italic".
    """
    family: str
    size_px: float
    weight: str = "normal"
    style: str = "normal"

    @property
    def is_bold(self) -> bool:
        w = str(self.weight).strip().lower()
        if w in ("bold", "bolder"):
            return True
        try:
            return int(w) >= 600
        except ValueError:
            return False

    @property
    def is_italic(self) -> bool:
        return str(self.style).strip().lower() in ("italic", "oblique")

    def css(self) -> str:
        """Canvas-style font string, e.g. "italic bold 16px Arial"."""
        size = f"{self.size_px:g}"
        return f"{self.style} {self.weight} {size}px {self.family}"


@dataclass(frozen=True)
class _LineBase:
    id: str = field(default_factory=new_line_id)
    text: str = ""
    font_family: str = "Arial"
    font_weight: str = "normal"
    font_style: str = "normal"
    font_size_mm: float = 4.0
    letter_spacing_mm: float = 0.0
    color: Optional[str] = None
    visible: bool = True
    align: str = "center"


@dataclass(frozen=True)
class StraightLine(_LineBase):
    """
    A line of text laid out horizontally.

    Position is either absolute (`x_mm`/`y_mm`, from the top-left corner of
    the stamp) or, when those are unset, a percentage offset from the stamp
    center in [-100, 100] (the drag-based positioning model). A missing
    `y_mm` falls back to automatic vertical stacking of straight lines.
    """
    x_mm: Optional[float] = None
    y_mm: Optional[float] = None
    x_offset_pct: float = 0.0
    y_offset_pct: float = 0.0
    baseline: str = "middle"

    kind: ClassVar[str] = "straight"


@dataclass(frozen=True)
class CurvedLine(_LineBase):
    """
    A line of text following a circular arc.

    `axis_x_mm`/`axis_y_mm` give the arc center and `radius_mm` its radius;
    when unset the renderer uses the stamp center and a radius derived
    from the safe zone. `arc_deg` is the angular span, `direction` selects
    convex ("outside", top of the circle) or concave ("inside", bottom)
    placement, `rotation_deg` rotates the whole arc around its center.
    """
    axis_x_mm: Optional[float] = None
    axis_y_mm: Optional[float] = None
    radius_mm: Optional[float] = None
    arc_deg: float = 180.0
    direction: str = "outside"
    rotation_deg: float = 0.0

    kind: ClassVar[str] = "curved"


TextLine = Union[StraightLine, CurvedLine]


@dataclass(frozen=True)
class ShapeSpec:
    kind: str = "rectangle"
    margin_mm: float = 1.0
    corner_radius_mm: float = 0.0


@dataclass(frozen=True)
class BorderSpec:
    style: str = "solid"
    thickness_px: float = 2.0
    color: Optional[str] = None  # None -> ink color


@dataclass(frozen=True)
class Logo:
    """
    Optional logo placed inside the stamp.

    Attributes:
        enabled: Whether the logo is drawn at all.
        image: File path or data URL of the bitmap.
        position: Preset anchor ("top", "bottom", "left", "right", "center").
        x_pct: Horizontal drag offset in [-100, 100] of the free range.
        y_pct: Vertical drag offset in [-100, 100] of the free range.
        scale: Logo box size as a fraction of the stamp width/height.
    """
    enabled: bool = False
    image: Optional[str] = None
    position: str = "top"
    x_pct: float = 0.0
    y_pct: float = 0.0
    scale: float = 0.2


@dataclass(frozen=True)
class DesignElement:
    """Auxiliary bitmap item such as a barcode or QR code."""
    id: str
    type: str
    image: str
    width_mm: float
    height_mm: float
    x_pct: float = 0.0
    y_pct: float = 0.0


@dataclass(frozen=True)
class Design:
    """Immutable snapshot of everything the renderer needs.

    Every change produces a new Design via `dataclasses.replace`; history
    frames hold these values directly.
    """
    lines: Tuple[TextLine, ...] = ()
    ink_color: str = "blue"
    logo: Logo = field(default_factory=Logo)
    shape: ShapeSpec = field(default_factory=ShapeSpec)
    border: BorderSpec = field(default_factory=BorderSpec)
    elements: Tuple[DesignElement, ...] = ()
    global_alignment: str = "center"

    def with_line(self, index: int, line: TextLine) -> "Design":
        lines = list(self.lines)
        lines[index] = line
        return replace(self, lines=tuple(lines))


@dataclass(frozen=True)
class Product:
    """
    Catalog record consumed by the designer.

    Only id, size, shape, ink colors and line capacity matter here; all
    other catalog fields (price, images, ...) are kept opaquely in `extra`.
    """
    id: str
    name: str = ""
    size: str = "60x40mm"
    shape: str = "rectangle"
    ink_colors: Tuple[str, ...] = ()
    lines: int = 1
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def size_mm(self) -> Tuple[float, float]:
        from stampkit.canvas.units import parse_size_mm
        return parse_size_mm(self.size)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        known = {"id", "name", "size", "shape", "inkColors", "ink_colors", "lines"}
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            size=str(data.get("size", "60x40mm")),
            shape=_pick(data.get("shape"), SHAPES, "rectangle"),
            ink_colors=tuple(data.get("inkColors", data.get("ink_colors", ())) or ()),
            lines=_int(data.get("lines"), 1),
            extra={k: v for k, v in data.items() if k not in known},
        )


# ---- construction helpers ----

def blank_line(font_family: str = "Arial") -> StraightLine:
    return StraightLine(font_family=font_family)


def new_design(product: Optional[Product] = None, settings=None) -> Design:
    """Seed a design from a product: one empty line per line slot, first ink color, product shape."""
    family = getattr(settings, "default_font_family", "Arial")
    ink = getattr(settings, "default_ink_color", "blue")
    margin = getattr(settings, "safe_margin_mm", 1.0)
    if product is None:
        return Design(lines=(blank_line(family),), ink_color=ink, shape=ShapeSpec(margin_mm=margin))
    count = max(1, int(product.lines or 1))
    return Design(
        lines=tuple(blank_line(family) for _ in range(count)),
        ink_color=product.ink_colors[0] if product.ink_colors else ink,
        shape=ShapeSpec(kind=product.shape, margin_mm=margin),
    )


def to_curved(line: TextLine) -> CurvedLine:
    if isinstance(line, CurvedLine):
        return line
    return CurvedLine(**_shared_fields(line))


def to_straight(line: TextLine) -> StraightLine:
    if isinstance(line, StraightLine):
        return line
    return StraightLine(**_shared_fields(line))


def _shared_fields(line: TextLine) -> Dict[str, Any]:
    return {f: getattr(line, f) for f in _LineBase.__dataclass_fields__}


# ---- serialization ----

def _pick(value, allowed, default: str) -> str:
    v = str(value).strip().lower() if value is not None else ""
    return v if v in allowed else default


def _float(value, default: Optional[float]) -> Optional[float]:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def line_to_dict(line: TextLine) -> Dict[str, Any]:
    data = asdict(line)
    data["type"] = line.kind
    return data


def line_from_dict(data: Dict[str, Any]) -> TextLine:
    """Resolve a serialized line (current or legacy shape) into its tagged variant.

    Legacy records carry a `curved` flag and/or a `curve` settings object,
    pixel `fontSize`/`letterSpacing`, `bold`/`italic` booleans, a
    left/center/right `alignment` and `xPosition`/`yPosition` drag offsets.
    Those are folded into the same fields the current format uses, so the
    renderer never has to look at them.
    """
    curve = data.get("curve") if isinstance(data.get("curve"), dict) else {}
    kind = str(data.get("type", "")).lower()
    if kind not in ("straight", "curved"):
        kind = "curved" if (data.get("curved") or curve.get("enabled")) else "straight"

    size_mm = _float(data.get("font_size_mm", data.get("fontSizeMm")), None)
    if size_mm is None:
        size_px = _float(data.get("fontSize"), None)
        size_mm = size_px / 10.0 if size_px is not None else 4.0

    spacing_mm = _float(data.get("letter_spacing_mm", data.get("letterSpacingMm")), None)
    if spacing_mm is None:
        spacing_mm = (_float(data.get("letterSpacing"), 0.0) or 0.0) / 10.0

    weight = data.get("font_weight", data.get("fontWeight"))
    if weight is None:
        weight = "bold" if data.get("bold") else "normal"
    style = data.get("font_style", data.get("fontStyle"))
    if style is None:
        style = "italic" if data.get("italic") else "normal"

    raw_align = data.get("curvedAlign") if kind == "curved" else None
    raw_align = raw_align or data.get("align") or data.get("alignment") or "center"
    align = _LEGACY_ALIGN.get(str(raw_align).lower(), str(raw_align).lower())
    if align not in ALIGNMENTS:
        align = "center"

    shared = dict(
        id=str(data.get("id") or new_line_id()),
        text=str(data.get("text", "") or ""),
        font_family=str(data.get("font_family", data.get("fontFamily")) or "Arial"),
        font_weight=str(weight),
        font_style=str(style),
        font_size_mm=size_mm,
        letter_spacing_mm=spacing_mm,
        color=data.get("color") or None,
        visible=bool(data.get("visible", True)),
        align=align,
    )

    if kind == "curved":
        direction = data.get("direction") or curve.get("direction") or "outside"
        direction = {"outer": "outside", "inner": "inside"}.get(str(direction), str(direction))
        return CurvedLine(
            axis_x_mm=_float(data.get("axis_x_mm", data.get("axisXMm")), None),
            axis_y_mm=_float(data.get("axis_y_mm", data.get("axisYMm")), None),
            radius_mm=_float(data.get("radius_mm", data.get("radiusMm", curve.get("radiusMm"))), None),
            arc_deg=_float(data.get("arc_deg", data.get("arcDeg", curve.get("sweepDeg"))), 180.0),
            direction=_pick(direction, DIRECTIONS, "outside"),
            rotation_deg=_float(data.get("rotation_deg", data.get("rotationDeg")), 0.0),
            **shared,
        )

    return StraightLine(
        x_mm=_float(data.get("x_mm", data.get("xMm")), None),
        y_mm=_float(data.get("y_mm", data.get("yMm")), None),
        x_offset_pct=_float(data.get("x_offset_pct", data.get("xPosition")), 0.0),
        y_offset_pct=_float(data.get("y_offset_pct", data.get("yPosition")), 0.0),
        baseline=_pick(data.get("baseline"), BASELINES, "middle"),
        **shared,
    )


def design_to_dict(design: Design) -> Dict[str, Any]:
    return {
        "lines": [line_to_dict(ln) for ln in design.lines],
        "ink_color": design.ink_color,
        "logo": asdict(design.logo),
        "shape": asdict(design.shape),
        "border": asdict(design.border),
        "elements": [asdict(el) for el in design.elements],
        "global_alignment": design.global_alignment,
    }


def design_from_dict(data: Dict[str, Any]) -> Design:
    """Inverse of design_to_dict; also accepts the legacy flat logo/border keys."""
    logo_data = data.get("logo") if isinstance(data.get("logo"), dict) else {}
    logo = Logo(
        enabled=bool(logo_data.get("enabled", data.get("includeLogo", False))),
        image=logo_data.get("image", data.get("logoImage")) or None,
        position=_pick(logo_data.get("position", data.get("logoPosition")), LOGO_POSITIONS, "top"),
        x_pct=_float(logo_data.get("x_pct", data.get("logoX")), 0.0),
        y_pct=_float(logo_data.get("y_pct", data.get("logoY")), 0.0),
        scale=_float(logo_data.get("scale"), 0.2),
    )

    shape_data = data.get("shape")
    if isinstance(shape_data, dict):
        shape = ShapeSpec(
            kind=_pick(shape_data.get("kind"), SHAPES, "rectangle"),
            margin_mm=_float(shape_data.get("margin_mm"), 1.0),
            corner_radius_mm=_float(shape_data.get("corner_radius_mm"), 0.0),
        )
    else:
        shape = ShapeSpec(kind=_pick(shape_data, SHAPES, "rectangle"))

    border_data = data.get("border") if isinstance(data.get("border"), dict) else {}
    style = border_data.get("style", data.get("borderStyle"))
    if style == "single":
        style = "solid"
    border = BorderSpec(
        style=_pick(style, BORDER_STYLES, "solid"),
        thickness_px=_float(border_data.get("thickness_px", data.get("borderThickness")), 2.0),
        color=border_data.get("color") or None,
    )

    elements = []
    for el in data.get("elements") or []:
        try:
            elements.append(DesignElement(
                id=str(el.get("id") or f"element-{uuid.uuid4().hex[:8]}"),
                type=str(el.get("type", "image")),
                image=str(el.get("image", el.get("dataUrl", ""))),
                width_mm=float(el.get("width_mm", el.get("width", 10.0))),
                height_mm=float(el.get("height_mm", el.get("height", 10.0))),
                x_pct=_float(el.get("x_pct", el.get("x")), 0.0),
                y_pct=_float(el.get("y_pct", el.get("y")), 0.0),
            ))
        except (AttributeError, TypeError, ValueError):
            logger.warning(f"Skipping malformed design element: {el!r}")

    raw_align = str(data.get("global_alignment", data.get("globalAlignment", "center"))).lower()
    global_alignment = _LEGACY_ALIGN.get(raw_align, raw_align)
    if global_alignment not in ALIGNMENTS:
        global_alignment = "center"

    return Design(
        lines=tuple(line_from_dict(ln) for ln in data.get("lines") or [] if isinstance(ln, dict)),
        ink_color=str(data.get("ink_color", data.get("inkColor", "blue"))),
        logo=logo,
        shape=shape,
        border=border,
        elements=tuple(elements),
        global_alignment=global_alignment,
    )
