from __future__ import annotations

import io
import base64
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from PIL import Image

from stampkit.core.state import IMAGES_PATH

logger = logging.getLogger(__name__)

OnReady = Callable[[str, Optional[Image.Image]], None]


def decode_data_url(ref: str) -> bytes:
    """Payload bytes of a base64 data URL ("data:image/png;base64,....").

    Raises:
        ValueError: if `ref` is not a base64 data URL.
    """
    header, sep, payload = ref.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Not a base64 data URL")
    return base64.b64decode(payload)


def to_data_url(image: Image.Image) -> str:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def fit_size(src_w: float, src_h: float, box_w: float, box_h: float) -> tuple[float, float]:
    """Largest (w, h) with the source aspect ratio that fits inside the box."""
    if src_w <= 0 or src_h <= 0 or box_w <= 0 or box_h <= 0:
        return 0.0, 0.0
    k = min(box_w / src_w, box_h / src_h)
    return src_w * k, src_h * k


class ImageManager:
    """Loads logo and element bitmaps from file paths or data URLs.

    Decoded images are kept as RGBA in an in-memory cache keyed by the
    reference string. `prefetch` decodes on a worker thread so that the
    render path only ever reads from the cache and never blocks on I/O.
    """

    def __init__(self, images_path: Optional[Path] = None) -> None:
        self.images_path = Path(images_path) if images_path is not None else IMAGES_PATH
        self._cache: Dict[str, Image.Image] = {}
        self._failed: set[str] = set()
        self._lock = threading.Lock()

    def get(self, ref: Optional[str]) -> Optional[Image.Image]:
        """Cached bitmap for `ref`, or None when it is not loaded (yet)."""
        if not ref:
            return None
        with self._lock:
            return self._cache.get(ref)

    def put(self, ref: str, image: Image.Image) -> None:
        with self._lock:
            self._cache[ref] = image.convert("RGBA")
            self._failed.discard(ref)

    def load(self, ref: Optional[str]) -> Optional[Image.Image]:
        """Decode `ref` synchronously and cache it. Returns None on failure."""
        if not ref:
            return None
        cached = self.get(ref)
        if cached is not None:
            return cached
        try:
            img = self._open(ref)
        except (OSError, ValueError):
            logger.exception(f"Failed to load image {ref[:64]!r}")
            with self._lock:
                self._failed.add(ref)
            return None
        self.put(ref, img)
        return self.get(ref)

    def prefetch(self, ref: Optional[str], on_ready: Optional[OnReady] = None) -> Optional[threading.Thread]:
        """Start loading `ref` in the background.

        `on_ready(ref, image)` runs on the worker thread once decoding
        finishes (image is None on failure). Returns the worker thread, or
        None when nothing had to be loaded.
        """
        if not ref:
            return None
        cached = self.get(ref)
        if cached is not None:
            if on_ready is not None:
                on_ready(ref, cached)
            return None

        def _worker():
            img = self.load(ref)
            if on_ready is not None:
                try:
                    on_ready(ref, img)
                except Exception:
                    logger.exception("Image ready callback failed")

        t = threading.Thread(target=_worker, name="stampkit-image-loader", daemon=True)
        t.start()
        return t

    def failed(self, ref: str) -> bool:
        with self._lock:
            return ref in self._failed

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._failed.clear()

    # ---- Internals ----
    def _open(self, ref: str) -> Image.Image:
        if ref.startswith("data:"):
            img = Image.open(io.BytesIO(decode_data_url(ref)))
        else:
            p = Path(ref)
            if not p.is_absolute() and not p.exists():
                p = self.images_path / p
            img = Image.open(p)
        img.load()
        return img
