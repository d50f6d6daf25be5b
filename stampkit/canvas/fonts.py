from __future__ import annotations

import json
import logging
import functools
from pathlib import Path
from typing import Optional, Union

import arabic_reshaper
from bidi.algorithm import get_display
from PIL import ImageFont

from stampkit.core.objects import FontSpec
from stampkit.core.state import FONTS_PATH


logger = logging.getLogger(__name__)

DEFAULT_FAMILY = "Arial"
DEFAULT_STEM = "Arial"

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


def shape_text(text: str) -> str:
    """Visual-order text for rendering: Arabic joining forms plus bidi reordering."""
    if not text:
        return ""
    return get_display(arabic_reshaper.reshape(text))


class FontsManager:
    """Maps font families to files and measures glyphs with Pillow.

    The family -> file stem table lives in `fonts.json` inside the fonts
    directory. Bold/italic faces are looked up as "<family> Bold",
    "<family> Italic" and "<family> Bold Italic"; a missing face falls back
    to the regular one, then to Pillow's built-in scalable font.
    """

    def __init__(self, fonts_path: Optional[Union[str, Path]] = None) -> None:
        self.fonts_path = Path(fonts_path) if fonts_path is not None else FONTS_PATH
        self._fonts_map_path = self.fonts_path / "fonts.json"
        self._fonts_map = self._load_fonts_map()
        self._truetype = functools.lru_cache(maxsize=256)(self._load_truetype)

    # ---- Public API ----
    @property
    def families(self) -> list[str]:
        return self._list_font_families(self._fonts_map)

    def register_family(self, family: str, file_stem: str) -> None:
        self._fonts_map[family] = file_stem
        self._save_fonts_map(self._fonts_map)
        self._truetype.cache_clear()

    def find_font_path(self, family: str, bold: bool = False, italic: bool = False) -> Optional[str]:
        candidates = []
        suffix = " ".join(s for s, on in (("Bold", bold), ("Italic", italic)) if on)
        if suffix:
            candidates.append(f"{family} {suffix}")
        candidates.append(family)
        for name in candidates:
            stem = self._fonts_map.get(name)
            if not stem:
                continue
            for ext in (".ttf", ".otf"):
                fp = self.fonts_path / f"{stem}{ext}"
                if fp.exists():
                    return str(fp)
        return None

    def font_for(self, spec: FontSpec) -> FontType:
        size = max(1, int(round(float(spec.size_px))))
        return self._truetype(spec.family, size, spec.is_bold, spec.is_italic)

    def measure(self, char: str, spec: FontSpec) -> float:
        """Advance width of a single character in pixels."""
        if not char:
            return 0.0
        return float(self.font_for(spec).getlength(char))

    def measure_text(self, text: str, spec: FontSpec) -> float:
        if not text:
            return 0.0
        return float(self.font_for(spec).getlength(shape_text(text)))

    def metrics(self, spec: FontSpec) -> tuple[float, float]:
        """(ascent, descent) in pixels."""
        font = self.font_for(spec)
        try:
            ascent, descent = font.getmetrics()
        except AttributeError:
            ascent, descent = float(spec.size_px) * 0.8, float(spec.size_px) * 0.2
        return float(ascent), float(descent)

    # ---- Internals ----
    def _load_truetype(self, family: str, size_px: int, bold: bool, italic: bool) -> FontType:
        path = self.find_font_path(family, bold, italic)
        if path is None and family != DEFAULT_FAMILY:
            path = self.find_font_path(DEFAULT_FAMILY, bold, italic)
        if path:
            try:
                return ImageFont.truetype(path, size_px)
            except OSError:
                logger.exception(f"Failed to load font file {path}")
        logger.debug(f"No font file for {family!r}, using Pillow default font")
        return ImageFont.load_default(size=size_px)

    def _load_fonts_map(self) -> dict:
        try:
            if self._fonts_map_path.exists():
                with open(self._fonts_map_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        return data
        except (OSError, ValueError):
            logger.exception("Failed to load fonts mapping")
        return {DEFAULT_FAMILY: DEFAULT_STEM}

    def _save_fonts_map(self, mp: dict) -> None:
        try:
            self.fonts_path.mkdir(parents=True, exist_ok=True)
            with open(self._fonts_map_path, "w", encoding="utf-8") as f:
                json.dump(mp, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("Failed to save fonts map")

    def _list_font_families(self, mp: dict) -> list[str]:
        return sorted(mp.keys())
