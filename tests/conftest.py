import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from stampkit.canvas.fonts import FontsManager  # noqa: E402
from stampkit.canvas.images import ImageManager  # noqa: E402
from stampkit.core.objects import Product  # noqa: E402


class FixedWidthFonts(FontsManager):
    """Every glyph advances `advance` px; ascent/descent are fixed."""

    def __init__(self, fonts_path, advance=10.0, ascent=8.0, descent=2.0):
        super().__init__(fonts_path)
        self.advance = advance
        self.ascent = ascent
        self.descent = descent

    def measure(self, char, spec):
        return self.advance if char else 0.0

    def measure_text(self, text, spec):
        return self.advance * len(text or "")

    def metrics(self, spec):
        return self.ascent, self.descent


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def is_alive(self) -> bool:
        return self.started and not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


@pytest.fixture
def fixed_fonts(tmp_path):
    fonts_dir = tmp_path / "fonts"
    fonts_dir.mkdir()
    return FixedWidthFonts(fonts_dir)


@pytest.fixture
def images(tmp_path):
    images_dir = tmp_path / "images"
    images_dir.mkdir()
    return ImageManager(images_dir)


@pytest.fixture
def timers():
    created = []

    def factory(interval, function):
        t = FakeTimer(interval, function)
        created.append(t)
        return t

    factory.created = created
    return factory


@pytest.fixture
def sample_product():
    return Product(
        id="stamp-6040",
        name="Self-inking 60x40",
        size="60x40mm",
        shape="rectangle",
        ink_colors=("red", "blue"),
        lines=3,
        extra={"price": 24.9},
    )


@pytest.fixture
def round_product():
    return Product(id="round-40", name="Round 40", size="40mm", shape="circle", ink_colors=("blue",), lines=2)


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "storage.json"
