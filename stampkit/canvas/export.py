from __future__ import annotations

import io
import math
import logging
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple
from xml.sax.saxutils import escape, quoteattr

import cairo
import numpy as np
from PIL import Image, ImageColor, ImageDraw

from stampkit.core.objects import Design
from stampkit.canvas.commands import (
    ArcGuideCommand,
    ClipCommand,
    Command,
    FillCommand,
    ImageCommand,
    ReleaseClipCommand,
    StrokeCommand,
    TextCommand,
    build_commands,
)
from stampkit.canvas.fonts import FontsManager
from stampkit.canvas.geometry import describe_arc, fmt
from stampkit.canvas.images import ImageManager, to_data_url
from stampkit.canvas.shapes import ShapePath

logger = logging.getLogger(__name__)

Trace = Callable[[str, Mapping[str, Any]], None]

RASTER_FORMATS = ("png", "jpeg", "webp")


def parse_color(value: str, default: Tuple[int, int, int, int] = (0, 0, 0, 255)) -> Tuple[int, int, int, int]:
    """CSS color name or hex string to an RGBA tuple."""
    try:
        rgb = ImageColor.getrgb(str(value or "").strip())
    except ValueError:
        logger.warning(f"Unknown color {value!r}, using default")
        return default
    if len(rgb) == 3:
        return rgb[0], rgb[1], rgb[2], 255
    return rgb[0], rgb[1], rgb[2], rgb[3]


def pil_to_surface(image: Image.Image) -> cairo.ImageSurface:
    """RGBA Pillow image to a premultiplied ARGB32 cairo surface."""
    rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    height, width = rgba.shape[:2]
    stride = cairo.ImageSurface.format_stride_for_width(cairo.FORMAT_ARGB32, width)
    alpha = rgba[:, :, 3].astype(np.uint16)

    arr_bgra = np.zeros((height, stride // 4, 4), dtype=np.uint8)
    arr_bgra[:, :width, 2] = (rgba[:, :, 0] * alpha // 255).astype(np.uint8)  # R
    arr_bgra[:, :width, 1] = (rgba[:, :, 1] * alpha // 255).astype(np.uint8)  # G
    arr_bgra[:, :width, 0] = (rgba[:, :, 2] * alpha // 255).astype(np.uint8)  # B
    arr_bgra[:, :width, 3] = rgba[:, :, 3]                                   # A
    return cairo.ImageSurface.create_for_data(arr_bgra, cairo.FORMAT_ARGB32, width, height, stride)


def surface_to_pil(surface: cairo.ImageSurface) -> Image.Image:
    """Inverse of pil_to_surface (un-premultiplies alpha)."""
    surface.flush()
    width, height = surface.get_width(), surface.get_height()
    stride = surface.get_stride()
    buf = np.ndarray(shape=(height, stride // 4, 4), dtype=np.uint8, buffer=surface.get_data())
    bgra = buf[:, :width, :].astype(np.uint16)
    alpha = bgra[:, :, 3]
    safe = np.where(alpha == 0, 1, alpha)

    out = np.zeros((height, width, 4), dtype=np.uint8)
    for dst, src in ((0, 2), (1, 1), (2, 0)):
        out[:, :, dst] = np.where(alpha == 0, 0, np.minimum(255, bgra[:, :, src] * 255 // safe))
    out[:, :, 3] = alpha
    return Image.fromarray(out, "RGBA")


class PainterAdapter:
    """Drawing surface contract consumed by `replay`."""

    def push_clip(self, path: ShapePath) -> None: ...
    def fill_path(self, path: ShapePath, color: str) -> None: ...
    def draw_image(self, cmd: ImageCommand) -> None: ...
    def draw_text(self, cmd: TextCommand) -> None: ...
    def draw_arc_guide(self, cmd: ArcGuideCommand) -> None: ...
    def pop_clip(self) -> None: ...
    def stroke_path(self, path: ShapePath, color: str, width: float, dash: Sequence[float]) -> None: ...


def replay(commands: Sequence[Command], painter: PainterAdapter, trace: Optional[Trace] = None) -> None:
    """Translate draw commands into painter calls, in order."""
    for cmd in commands:
        if isinstance(cmd, ClipCommand):
            painter.push_clip(cmd.path)
        elif isinstance(cmd, FillCommand):
            painter.fill_path(cmd.path, cmd.color)
        elif isinstance(cmd, ImageCommand):
            if cmd.image is None:
                continue
            painter.draw_image(cmd)
        elif isinstance(cmd, TextCommand):
            painter.draw_text(cmd)
        elif isinstance(cmd, ArcGuideCommand):
            painter.draw_arc_guide(cmd)
        elif isinstance(cmd, ReleaseClipCommand):
            painter.pop_clip()
        elif isinstance(cmd, StrokeCommand):
            painter.stroke_path(cmd.path, cmd.color, cmd.width, cmd.dash)
        else:
            logger.warning(f"Unknown draw command {cmd!r}")
            continue
        if trace:
            trace(type(cmd).__name__, _trace_payload(cmd))


def _trace_payload(cmd: Command) -> Mapping[str, Any]:
    if isinstance(cmd, TextCommand):
        return {"text": cmd.text, "x": cmd.x, "y": cmd.y, "angle": cmd.angle, "dx": cmd.dx, "dy": cmd.dy}
    if isinstance(cmd, (ClipCommand, FillCommand, StrokeCommand)):
        p = cmd.path
        return {"kind": p.kind, "x": p.x, "y": p.y, "width": p.width, "height": p.height}
    if isinstance(cmd, ImageCommand):
        return {"x": cmd.x, "y": cmd.y, "width": cmd.width, "height": cmd.height}
    return {}


class SvgPainter(PainterAdapter):
    """Builds an SVG document string in pixel units."""

    def __init__(self, width: float, height: float) -> None:
        self.width = width
        self.height = height
        self.lines: List[str] = []
        self._clip_seq = 0
        self._open_groups = 0
        self.lines.append('<?xml version="1.0" encoding="UTF-8"?>')
        self.lines.append(
            '<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{fmt(width)}" height="{fmt(height)}" viewBox="0 0 {fmt(width)} {fmt(height)}">'
        )

    def push_clip(self, path: ShapePath) -> None:
        self._clip_seq += 1
        clip_id = f"stamp-clip-{self._clip_seq}"
        self.lines.append(f'<defs><clipPath id="{clip_id}"><path d="{path.svg_d()}"/></clipPath></defs>')
        self.lines.append(f'<g clip-path="url(#{clip_id})">')
        self._open_groups += 1

    def fill_path(self, path: ShapePath, color: str) -> None:
        self.lines.append(f'<path class="background" d="{path.svg_d()}" fill={quoteattr(color)} stroke="none"/>')

    def draw_image(self, cmd: ImageCommand) -> None:
        href = to_data_url(cmd.image)
        self.lines.append(
            f'<image x="{fmt(cmd.x)}" y="{fmt(cmd.y)}" width="{fmt(cmd.width)}" height="{fmt(cmd.height)}" '
            f'preserveAspectRatio="none" href="{href}"/>'
        )

    def draw_text(self, cmd: TextCommand) -> None:
        font = cmd.font
        attrs = [
            f'font-family={quoteattr(font.family)}',
            f'font-size="{fmt(font.size_px)}"',
            f'font-weight={quoteattr(str(font.weight))}',
            f'font-style={quoteattr(str(font.style))}',
            f'fill={quoteattr(cmd.color)}',
            'xml:space="preserve"',
        ]
        if cmd.rtl:
            # already in visual order
            attrs.append('direction="ltr" unicode-bidi="bidi-override"')
        if cmd.angle:
            place = (
                f'x="{fmt(cmd.dx)}" y="{fmt(cmd.dy)}" '
                f'transform="translate({fmt(cmd.x)} {fmt(cmd.y)}) rotate({fmt(math.degrees(cmd.angle))})"'
            )
        else:
            place = f'x="{fmt(cmd.x + cmd.dx)}" y="{fmt(cmd.y + cmd.dy)}"'
        self.lines.append(f'<text {place} {" ".join(attrs)}>{escape(cmd.text)}</text>')

    def draw_arc_guide(self, cmd: ArcGuideCommand) -> None:
        d = describe_arc(cmd.cx, cmd.cy, cmd.radius, cmd.start_deg, cmd.end_deg)
        self.lines.append(f'<defs><path id={quoteattr("arc-" + cmd.line_id)} d="{d}" fill="none"/></defs>')

    def pop_clip(self) -> None:
        if self._open_groups:
            self.lines.append("</g>")
            self._open_groups -= 1

    def stroke_path(self, path: ShapePath, color: str, width: float, dash: Sequence[float]) -> None:
        dash_attr = f' stroke-dasharray="{" ".join(fmt(d) for d in dash)}"' if dash else ""
        self.lines.append(
            f'<path class="border" d="{path.svg_d()}" fill="none" stroke={quoteattr(color)} '
            f'stroke-width="{fmt(width)}"{dash_attr}/>'
        )

    def document(self) -> str:
        while self._open_groups:
            self.pop_clip()
        return "\n".join(self.lines + ["</svg>"])


class CairoPainter(PainterAdapter):
    """Paints commands onto a cairo context (image or PDF surface).

    Text is rasterized with the same Pillow fonts used for measurement and
    composited through cairo, so glyph metrics match the layout exactly.
    """

    def __init__(self, context: cairo.Context, fonts: FontsManager) -> None:
        self.ctx = context
        self.fonts = fonts
        self._clip_depth = 0

    def _set_color(self, color: str) -> None:
        r, g, b, a = parse_color(color)
        self.ctx.set_source_rgba(r / 255.0, g / 255.0, b / 255.0, a / 255.0)

    def _trace_path(self, path: ShapePath) -> None:
        ctx = self.ctx
        ctx.new_path()
        if path.width <= 0 or path.height <= 0:
            return
        if path.kind == "ellipse":
            ctx.save()
            ctx.translate(path.cx, path.cy)
            ctx.scale(path.rx, path.ry)
            ctx.arc(0.0, 0.0, 1.0, 0.0, 2 * math.pi)
            ctx.restore()
            ctx.close_path()
            return
        x0, y0 = path.x, path.y
        x1, y1 = path.x + path.width, path.y + path.height
        r = min(path.corner_radius, path.width / 2.0, path.height / 2.0)
        if r <= 0:
            ctx.rectangle(x0, y0, path.width, path.height)
            return
        ctx.arc(x1 - r, y0 + r, r, -math.pi / 2, 0)
        ctx.arc(x1 - r, y1 - r, r, 0, math.pi / 2)
        ctx.arc(x0 + r, y1 - r, r, math.pi / 2, math.pi)
        ctx.arc(x0 + r, y0 + r, r, math.pi, 3 * math.pi / 2)
        ctx.close_path()

    def push_clip(self, path: ShapePath) -> None:
        self.ctx.save()
        self._clip_depth += 1
        self._trace_path(path)
        self.ctx.clip()

    def fill_path(self, path: ShapePath, color: str) -> None:
        self._trace_path(path)
        self._set_color(color)
        self.ctx.fill()

    def draw_image(self, cmd: ImageCommand) -> None:
        img = cmd.image
        if img.width <= 0 or img.height <= 0:
            return
        surface = pil_to_surface(img)
        ctx = self.ctx
        ctx.save()
        ctx.translate(cmd.x, cmd.y)
        ctx.scale(cmd.width / img.width, cmd.height / img.height)
        ctx.set_source_surface(surface, 0, 0)
        ctx.get_source().set_filter(cairo.FILTER_BEST)
        ctx.paint()
        ctx.restore()

    def draw_text(self, cmd: TextCommand) -> None:
        if not cmd.text:
            return
        font = self.fonts.font_for(cmd.font)
        ascent, descent = self.fonts.metrics(cmd.font)
        pad = max(2, int(cmd.font.size_px) // 2)
        # cmd.text is already in visual order
        width = int(math.ceil(font.getlength(cmd.text)))
        tmp = Image.new("RGBA", (width + pad * 2, int(math.ceil(ascent + descent)) + pad * 2), (0, 0, 0, 0))
        ImageDraw.Draw(tmp, "RGBA").text((pad, pad + ascent), cmd.text, font=font, fill=parse_color(cmd.color), anchor="ls")

        ctx = self.ctx
        ctx.save()
        ctx.translate(cmd.x, cmd.y)
        if cmd.angle:
            ctx.rotate(cmd.angle)
        ctx.set_source_surface(pil_to_surface(tmp), cmd.dx - pad, cmd.dy - ascent - pad)
        ctx.paint()
        ctx.restore()

    def draw_arc_guide(self, cmd: ArcGuideCommand) -> None:
        # guides are only meaningful to vector editors
        return

    def pop_clip(self) -> None:
        if self._clip_depth:
            self.ctx.restore()
            self._clip_depth -= 1

    def stroke_path(self, path: ShapePath, color: str, width: float, dash: Sequence[float]) -> None:
        self._trace_path(path)
        self._set_color(color)
        self.ctx.set_line_width(float(width))
        self.ctx.set_dash(list(dash))
        self.ctx.stroke()
        self.ctx.set_dash([])


class DesignExporter:
    """Renders a Design to SVG, raster images or PDF from one command list."""

    def __init__(
        self,
        fonts: Optional[FontsManager] = None,
        images: Optional[ImageManager] = None,
        background: str = "",
        trace: Optional[Trace] = None,
    ) -> None:
        self.fonts = fonts or FontsManager()
        self.images = images or ImageManager()
        self.background = background
        self.trace = trace

    def commands(self, design: Design, width: int, height: int) -> List[Command]:
        return build_commands(design, width, height, self.fonts, self.images, self.background)

    def render_svg(self, design: Design, width: int, height: int) -> str:
        painter = SvgPainter(width, height)
        replay(self.commands(design, width, height), painter, self.trace)
        return painter.document()

    def render_image(self, design: Design, width: int, height: int) -> Image.Image:
        w, h = max(1, int(width)), max(1, int(height))
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, w, h)
        context = cairo.Context(surface)
        replay(self.commands(design, width, height), CairoPainter(context, self.fonts), self.trace)
        return surface_to_pil(surface)

    def render_raster(self, design: Design, width: int, height: int, fmt: str = "png") -> bytes:
        """Encoded raster export. JPEG is flattened onto white."""
        kind = fmt.lower().replace("jpg", "jpeg")
        if kind not in RASTER_FORMATS:
            raise ValueError(f"Unsupported raster format: {fmt}")
        img = self.render_image(design, width, height)
        if kind == "jpeg":
            flat = Image.new("RGB", img.size, (255, 255, 255))
            flat.paste(img, mask=img.split()[-1])
            img = flat
        with io.BytesIO() as buffer:
            img.save(buffer, format=kind.upper())
            return buffer.getvalue()

    def render_png(self, design: Design, width: int, height: int) -> bytes:
        return self.render_raster(design, width, height, "png")

    def render_pdf(self, design: Design, width: int, height: int) -> bytes:
        """Vector PDF; one pixel maps to 0.1 mm."""
        scale = 72.0 / 254.0  # pt per px at 10 px/mm
        with io.BytesIO() as buffer:
            surface = cairo.PDFSurface(buffer, width * scale, height * scale)
            context = cairo.Context(surface)
            context.scale(scale, scale)
            replay(self.commands(design, width, height), CairoPainter(context, self.fonts), self.trace)
            surface.finish()
            return buffer.getvalue()

    def render(self, design: Design, width: int, height: int, fmt: str = "svg") -> str | bytes:
        kind = fmt.lower()
        if kind == "svg":
            return self.render_svg(design, width, height)
        if kind == "pdf":
            return self.render_pdf(design, width, height)
        return self.render_raster(design, width, height, kind)

    # ---- file helpers ----
    def write_svg(self, path: str | Path, design: Design, width: int, height: int) -> None:
        try:
            with open(path, "w", encoding="utf-8") as fp:
                fp.write(self.render_svg(design, width, height))
        except OSError as e:
            logger.exception(f"Failed to write SVG: {e}")
            raise

    def write_raster(self, path: str | Path, design: Design, width: int, height: int, fmt: Optional[str] = None) -> None:
        kind = fmt or Path(path).suffix.lstrip(".") or "png"
        data = self.render(design, width, height, kind)
        try:
            with open(path, "wb") as fp:
                fp.write(data if isinstance(data, bytes) else data.encode("utf-8"))
        except OSError as e:
            logger.exception(f"Failed to write {kind} export: {e}")
            raise

    def write_png(self, path: str | Path, design: Design, width: int, height: int) -> None:
        self.write_raster(path, design, width, height, "png")

    def write_pdf(self, path: str | Path, design: Design, width: int, height: int) -> None:
        self.write_raster(path, design, width, height, "pdf")
