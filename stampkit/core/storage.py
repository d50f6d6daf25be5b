from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from stampkit.core.objects import Design, Product, design_from_dict, design_to_dict
from stampkit.core.state import STORAGE_KEY, STORAGE_PATH

logger = logging.getLogger(__name__)


class LocalStorage:
    """String key-value store persisted as one JSON object on disk."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else STORAGE_PATH
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)


class DesignStorage:
    """Saves the working design for one product under a fixed key.

    Every storage or (de)serialization failure is logged and reported as
    "nothing saved" (None / False) instead of propagating.
    """

    def __init__(self, storage: Optional[LocalStorage] = None, key: str = STORAGE_KEY) -> None:
        self.storage = storage or LocalStorage()
        self.key = key

    def save(self, design: Design, product: Product) -> bool:
        record = {
            "designId": f"stamp-{product.id}",
            "productId": product.id,
            "design": design_to_dict(design),
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.storage.set_item(self.key, json.dumps(record, ensure_ascii=False))
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save design")
            return False
        logger.info(f"Saved design for product {product.id}")
        return True

    def load_record(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.storage.get_item(self.key)
            if raw is None:
                return None
            record = json.loads(raw)
        except (OSError, ValueError):
            logger.exception("Failed to read saved design")
            return None
        return record if isinstance(record, dict) else None

    def load(self, product: Product) -> Optional[Design]:
        """Saved design for `product`, or None (also when saved for another product)."""
        record = self.load_record()
        if record is None:
            return None
        if str(record.get("productId")) != str(product.id):
            logger.info(f"Ignoring saved design for product {record.get('productId')!r}")
            return None
        try:
            return design_from_dict(record.get("design") or {})
        except (AttributeError, TypeError, ValueError):
            logger.exception("Failed to decode saved design")
            return None

    def has_saved(self, product: Product) -> bool:
        record = self.load_record()
        return record is not None and str(record.get("productId")) == str(product.id)

    def clear(self) -> bool:
        try:
            self.storage.remove_item(self.key)
        except (OSError, ValueError):
            logger.exception("Failed to clear saved design")
            return False
        return True
