import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, asdict, fields

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


MM_TO_PX = 10  # fixed preview density, px per mm
APP_TITLE = "Stampkit 1.0"

DOUBLE_BORDER_GAP_MM = 2.0
STORAGE_KEY = "savedStampDesign"

INTERNAL_PATH = Path(os.environ.get("STAMPKIT_HOME", Path.cwd() / "_internal"))

FONTS_PATH   = INTERNAL_PATH / "fonts"
IMAGES_PATH  = INTERNAL_PATH / "images"
STORAGE_PATH = INTERNAL_PATH / "storage.json"
ENV_PATH     = INTERNAL_PATH / "env"
OUTPUT_PATH  = Path.cwd() / "outputs"


@dataclass
class AppSettings:
    """
    Runtime knobs for the designer.

    Attributes:
        preview_debounce_ms: Quiescence window before the export preview is regenerated.
        frame_interval_ms: Delay used to coalesce redraw requests into one paint.
        default_font_family: Family used for new lines and as the metrics fallback.
        default_ink_color: Ink color used when the product does not provide one.
        safe_margin_mm: Inset of the drawable area from the nominal stamp edge.
        export_background: Fill color painted inside the shape on export, or "" for transparent.
        max_line_chars: Line length above which validation warns.
    """
    preview_debounce_ms: int = 300
    frame_interval_ms: int = 16
    default_font_family: str = "Arial"
    default_ink_color: str = "blue"
    safe_margin_mm: float = 1.0
    export_background: str = ""
    max_line_chars: int = 30


_ENV_PREFIX = "STAMPKIT_"


def load_settings(env_path: str | Path | None = None) -> AppSettings:
    """Build settings from STAMPKIT_* environment variables (optionally read from an env file)."""
    p = Path(env_path) if env_path is not None else ENV_PATH
    if p.exists():
        load_dotenv(p)

    settings = AppSettings()
    for f in fields(AppSettings):
        raw = os.environ.get(_ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        default = getattr(settings, f.name)
        try:
            value = type(default)(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid value {raw!r} for {_ENV_PREFIX + f.name.upper()}")
            continue
        setattr(settings, f.name, value)
    return settings


def save_settings(settings: AppSettings, path: str | Path) -> None:
    p = Path(path)
    with p.open("w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, ensure_ascii=False, indent=2)


def load_settings_file(path: str | Path) -> AppSettings:
    settings = AppSettings()
    p = Path(path)
    if not p.exists():
        return settings
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except Exception:
        logger.exception(f"Failed to read settings from {p}")
        return settings
    if not isinstance(data, dict):
        return settings
    for k, v in data.items():
        if hasattr(settings, k):
            setattr(settings, k, v)
    return settings
