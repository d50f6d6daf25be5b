from __future__ import annotations

import math
import re
from typing import Tuple

from stampkit.core.state import MM_TO_PX

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:[x×]\s*(\d+(?:\.\d+)?))?\s*(?:mm)?\s*$", re.IGNORECASE)


def _round_half_away(value: float) -> int:
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def mm_to_px(mm: float) -> int:
    """Convert millimeters to whole pixels at the fixed preview density.

    Rounds half away from zero so that +x and -x map symmetrically.
    Non-finite input maps to 0.
    """
    try:
        v = float(mm) * MM_TO_PX
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(v):
        return 0
    return _round_half_away(v)


def px_to_mm(px: float) -> float:
    return float(px) / MM_TO_PX


def parse_size_mm(size: str) -> Tuple[float, float]:
    """Parse a product size string into (width_mm, height_mm).

    Accepted forms are "WxHmm" (e.g. "60x40mm") and "Dmm" for round
    products (e.g. "40mm"), which yields a square D x D box.

    Raises:
        ValueError: if the string matches neither form.
    """
    m = _SIZE_RE.match(str(size or ""))
    if not m:
        raise ValueError(f"Unrecognized product size: {size!r}")
    w = float(m.group(1))
    h = float(m.group(2)) if m.group(2) else w
    return w, h


def size_px(size: str) -> Tuple[int, int]:
    w_mm, h_mm = parse_size_mm(size)
    return mm_to_px(w_mm), mm_to_px(h_mm)
