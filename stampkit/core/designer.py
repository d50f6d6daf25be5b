from __future__ import annotations

import uuid
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from stampkit.core import history
from stampkit.core.history import HistoryState
from stampkit.core.objects import (
    ALIGNMENTS,
    BORDER_STYLES,
    LOGO_POSITIONS,
    CurvedLine,
    Design,
    DesignElement,
    Product,
    StraightLine,
    blank_line,
    design_from_dict,
    design_to_dict,
    new_design,
    to_curved,
    to_straight,
)
from stampkit.core.scheduler import DebounceTimer, FrameScheduler, TimerFactory
from stampkit.core.state import AppSettings
from stampkit.core.storage import DesignStorage
from stampkit.core.validation import validate_design
from stampkit.canvas.export import DesignExporter
from stampkit.canvas.geometry import clamp
from stampkit.canvas.units import size_px

logger = logging.getLogger(__name__)

Listener = Callable[[Design], None]


def pointer_to_pct(x: float, y: float, width: float, height: float) -> tuple[float, float]:
    """Pointer position in a width x height preview to percent offsets from its center."""
    if width <= 0 or height <= 0:
        return 0.0, 0.0
    return (x - width / 2.0) / (width / 2.0) * 100.0, (y - height / 2.0) / (height / 2.0) * 100.0


class StampDesigner:
    """
    Editing session for one product's stamp design.

    Holds the single HistoryState value and replaces it wholesale on every
    change. Setters are history-tracked (undoable); drag updates are
    transient and, with `commit_drag_on_release`, folded into one undo
    step when the drag stops.

    Every change notifies `on_change`, re-arms the debounced preview and
    requests a repaint through the frame scheduler (`on_redraw`).
    """

    def __init__(
        self,
        product: Optional[Product] = None,
        settings: Optional[AppSettings] = None,
        exporter: Optional[DesignExporter] = None,
        storage: Optional[DesignStorage] = None,
        timer_factory: Optional[TimerFactory] = None,
        on_change: Optional[Listener] = None,
        on_preview: Optional[Callable[[str], None]] = None,
        on_redraw: Optional[Listener] = None,
        commit_drag_on_release: bool = True,
    ) -> None:
        self.settings = settings or AppSettings()
        self.product = product
        self.exporter = exporter or DesignExporter(background=self.settings.export_background)
        self.storage = storage or DesignStorage()
        self.on_change = on_change
        self.on_preview = on_preview
        self.on_redraw = on_redraw
        self.commit_drag_on_release = commit_drag_on_release

        self.preview: str = ""
        self._history: HistoryState[Design] = history.init(new_design(product, self.settings))
        self._drag_target: Optional[Union[int, str]] = None  # line index or "logo"
        self._drag_base: Optional[Design] = None

        self._preview_timer = DebounceTimer(
            self.settings.preview_debounce_ms / 1000.0, self.generate_preview, timer_factory
        )
        self._frames = FrameScheduler(self.settings.frame_interval_ms / 1000.0, timer_factory)

    # ---- state access ----
    @property
    def design(self) -> Design:
        return self._history.present

    @property
    def history(self) -> HistoryState[Design]:
        return self._history

    @property
    def dragging(self) -> Optional[Union[int, str]]:
        return self._drag_target

    def can_undo(self) -> bool:
        return history.can_undo(self._history)

    def can_redo(self) -> bool:
        return history.can_redo(self._history)

    # ---- transitions ----
    def _commit(self, design: Design) -> None:
        if self._drag_base is not None:
            # fold the drag so far into its own frame before this one
            self._history = history.commit(self._history, self._drag_base)
        self._history = history.push(self._history, design)
        if self._drag_base is not None:
            self._drag_base = self.design
        self._changed()

    def _transient(self, design: Design) -> None:
        self._history = history.replace_present(self._history, design)
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.design)
        self.schedule_preview()
        self.request_redraw()

    def undo(self) -> bool:
        if not self.can_undo():
            logger.debug("Nothing to undo")
            return False
        self._end_drag()
        self._history = history.undo(self._history)
        self._changed()
        return True

    def redo(self) -> bool:
        if not self.can_redo():
            logger.debug("Nothing to redo")
            return False
        self._end_drag()
        self._history = history.redo(self._history)
        self._changed()
        return True

    def reset(self, product: Optional[Product] = None) -> None:
        """Start over with a fresh design (for a new product, or after checkout)."""
        self._preview_timer.cancel()
        self._frames.cancel()
        self._end_drag()
        self.product = product
        self.preview = ""
        self._history = history.reset(new_design(product, self.settings))
        self._changed()

    # ---- lines ----
    @property
    def max_lines(self) -> Optional[int]:
        return self.product.lines if self.product is not None else None

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.design.lines):
            raise IndexError(f"No line at index {index}")

    def update_line(self, index: int, **changes: Any) -> None:
        """Replace fields of one line, e.g. update_line(0, text="ACME", font_size_mm=5).

        Raises:
            IndexError: for an unknown line index.
            TypeError: for a field the line variant does not have.
        """
        self._check_index(index)
        line = self.design.lines[index]
        kind = changes.pop("kind", None)
        if kind == "curved":
            line = to_curved(line)
        elif kind == "straight":
            line = to_straight(line)
        self._commit(self.design.with_line(index, replace(line, **changes)))

    def add_line(self) -> bool:
        limit = self.max_lines
        if limit is not None and len(self.design.lines) >= limit:
            logger.info(f"Product allows at most {limit} lines")
            return False
        line = blank_line(self.settings.default_font_family)
        line = replace(line, align=self.design.global_alignment)
        self._commit(replace(self.design, lines=self.design.lines + (line,)))
        return True

    def remove_line(self, index: int) -> None:
        self._check_index(index)
        lines = self.design.lines[:index] + self.design.lines[index + 1:]
        self._commit(replace(self.design, lines=lines))

    def toggle_curved_text(self, index: int) -> None:
        self._check_index(index)
        line = self.design.lines[index]
        line = to_straight(line) if isinstance(line, CurvedLine) else to_curved(line)
        self._commit(self.design.with_line(index, line))

    def set_global_alignment(self, align: str) -> None:
        if align not in ALIGNMENTS:
            raise ValueError(f"Unknown alignment: {align}")
        lines = tuple(replace(ln, align=align) for ln in self.design.lines)
        self._commit(replace(self.design, lines=lines, global_alignment=align))

    # ---- ink, logo, border ----
    def set_ink_color(self, color: str) -> None:
        self._commit(replace(self.design, ink_color=color))

    def toggle_logo(self) -> None:
        logo = self.design.logo
        self._commit(replace(self.design, logo=replace(logo, enabled=not logo.enabled)))

    def set_logo_image(self, image: Optional[str]) -> None:
        self._commit(replace(self.design, logo=replace(self.design.logo, image=image or None)))
        self._prefetch(image)

    def set_logo_position(self, position: str) -> None:
        if position not in LOGO_POSITIONS:
            raise ValueError(f"Unknown logo position: {position}")
        self._commit(replace(self.design, logo=replace(self.design.logo, position=position)))

    def set_border_style(self, style: str) -> None:
        style = "solid" if style == "single" else style
        if style not in BORDER_STYLES:
            raise ValueError(f"Unknown border style: {style}")
        self._commit(replace(self.design, border=replace(self.design.border, style=style)))

    def set_border(self, **changes: Any) -> None:
        style = changes.get("style")
        if style is not None and style not in BORDER_STYLES:
            raise ValueError(f"Unknown border style: {style}")
        self._commit(replace(self.design, border=replace(self.design.border, **changes)))

    def apply_template(self, template: Union[Design, Dict[str, Any]]) -> None:
        """Overlay a template on the design; the product shape is always kept."""
        if not template:
            return
        if isinstance(template, Design):
            merged = template
        else:
            data = design_to_dict(self.design)
            data.update(template)
            merged = design_from_dict(data)
        self._commit(replace(merged, shape=self.design.shape))
        self._prefetch(merged.logo.image)

    # ---- auxiliary elements ----
    def add_element(self, element_type: str, image: str, width_mm: float, height_mm: float) -> str:
        element = DesignElement(
            id=f"element-{uuid.uuid4().hex[:8]}",
            type=element_type,
            image=image,
            width_mm=float(width_mm),
            height_mm=float(height_mm),
        )
        self._commit(replace(self.design, elements=self.design.elements + (element,)))
        self._prefetch(image)
        return element.id

    def remove_element(self, element_id: str) -> bool:
        kept = tuple(el for el in self.design.elements if el.id != element_id)
        if len(kept) == len(self.design.elements):
            return False
        self._commit(replace(self.design, elements=kept))
        return True

    # ---- dragging ----
    def start_text_drag(self, index: int) -> None:
        self._check_index(index)
        self._begin_drag(index)

    def start_logo_drag(self) -> None:
        self._begin_drag("logo")

    def _begin_drag(self, target: Union[int, str]) -> None:
        if self._drag_base is None:
            self._drag_base = self.design
        self._drag_target = target

    def _end_drag(self) -> None:
        self._drag_target = None
        self._drag_base = None

    def drag_to(self, x_pct: float, y_pct: float) -> None:
        """Move whatever is being dragged to a percent offset from the center."""
        target = self._drag_target
        if target is None:
            return
        if target == "logo":
            if self.design.logo.enabled:
                self.update_logo_position(x_pct, y_pct)
        else:
            self.update_text_position(target, x_pct, y_pct)

    def update_text_position(self, index: int, x_pct: float, y_pct: float) -> None:
        """Transient: move a line to a percent offset in [-100, 100] from the center.

        Curved lines move their arc center, straight lines their drag offset.
        """
        self._check_index(index)
        x = clamp(float(x_pct), -100.0, 100.0)
        y = clamp(float(y_pct), -100.0, 100.0)
        line = self.design.lines[index]
        if isinstance(line, StraightLine):
            line = replace(line, x_offset_pct=x, y_offset_pct=y)
        else:
            w_mm, h_mm = self._size_mm()
            line = replace(
                line,
                axis_x_mm=w_mm / 2.0 * (1.0 + x / 100.0),
                axis_y_mm=h_mm / 2.0 * (1.0 + y / 100.0),
            )
        self._transient(self.design.with_line(index, line))

    def update_logo_position(self, x_pct: float, y_pct: float) -> None:
        x = clamp(float(x_pct), -100.0, 100.0)
        y = clamp(float(y_pct), -100.0, 100.0)
        self._transient(replace(self.design, logo=replace(self.design.logo, x_pct=x, y_pct=y)))

    def stop_dragging(self) -> None:
        base = self._drag_base
        self._end_drag()
        if base is None or not self.commit_drag_on_release:
            return
        committed = history.commit(self._history, base)
        if committed is not self._history:
            self._history = committed
            self._changed()

    # ---- validation ----
    def validate(self, step: str) -> List[str]:
        return validate_design(self.design, step, self.settings.max_line_chars)

    # ---- preview & redraw ----
    def _size_mm(self) -> tuple[float, float]:
        if self.product is None:
            return 60.0, 40.0
        return self.product.size_mm()

    def canvas_size(self) -> tuple[int, int]:
        if self.product is None:
            return 600, 400
        return size_px(self.product.size)

    def schedule_preview(self) -> None:
        self._preview_timer.trigger()

    def flush_preview(self) -> bool:
        return self._preview_timer.flush()

    def cancel_pending(self) -> None:
        self._preview_timer.cancel()
        self._frames.cancel()

    def generate_preview(self) -> str:
        """Render the current design to an SVG document and publish it."""
        if self.product is None:
            return ""
        width, height = self.canvas_size()
        try:
            svg = self.exporter.render_svg(self.design, width, height)
        except Exception:
            logger.exception("Failed to generate preview")
            return self.preview
        self.preview = svg
        if self.on_preview is not None:
            self.on_preview(svg)
        return svg

    def request_redraw(self) -> None:
        self._frames.request(self._redraw)

    def _redraw(self) -> None:
        if self.on_redraw is not None:
            self.on_redraw(self.design)

    def _prefetch(self, ref: Optional[str]) -> None:
        if not ref:
            return
        self.exporter.images.prefetch(ref, on_ready=lambda _ref, _img: self.request_redraw())

    # ---- persistence ----
    def save(self) -> bool:
        if self.product is None:
            return False
        return self.storage.save(self.design, self.product)

    def load(self) -> bool:
        """Replace the session with the saved design for the active product."""
        if self.product is None:
            return False
        saved = self.storage.load(self.product)
        if saved is None:
            return False
        self._end_drag()
        self._history = history.reset(saved)
        self._prefetch(saved.logo.image)
        for element in saved.elements:
            self._prefetch(element.image)
        self._changed()
        return True

    def has_saved(self) -> bool:
        if self.product is None:
            return False
        return self.storage.has_saved(self.product)

    def clear_saved(self) -> bool:
        return self.storage.clear()
