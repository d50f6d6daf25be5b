import json

from stampkit.core.objects import FontSpec
from stampkit.canvas.fonts import FontsManager, shape_text


def test_shape_text_latin_is_unchanged():
    assert shape_text("") == ""
    assert shape_text("ACME 123") == "ACME 123"


def test_shape_text_reorders_rtl():
    assert shape_text("שלום") == "םולש"
    arabic = "مرحبا"
    shaped = shape_text(arabic)
    assert shaped != arabic
    assert len(shaped) == len(arabic)


def test_default_fonts_map(tmp_path):
    fm = FontsManager(tmp_path)
    assert fm.families == ["Arial"]


def test_register_family_persists(tmp_path):
    fm = FontsManager(tmp_path)
    fm.register_family("Roboto", "Roboto-Regular")
    assert fm.families == ["Arial", "Roboto"]
    with open(tmp_path / "fonts.json", "r", encoding="utf-8") as f:
        assert json.load(f)["Roboto"] == "Roboto-Regular"
    assert FontsManager(tmp_path).families == ["Arial", "Roboto"]


def test_find_font_path_prefers_styled_face(tmp_path):
    (tmp_path / "fonts.json").write_text(
        json.dumps({"Arial": "arial", "Arial Bold": "arialbd", "Arial Bold Italic": "arialbi"}),
        encoding="utf-8",
    )
    (tmp_path / "arial.ttf").write_bytes(b"")
    (tmp_path / "arialbd.otf").write_bytes(b"")

    fm = FontsManager(tmp_path)
    assert fm.find_font_path("Arial") == str(tmp_path / "arial.ttf")
    assert fm.find_font_path("Arial", bold=True) == str(tmp_path / "arialbd.otf")
    # missing bold italic file falls back to the regular face
    assert fm.find_font_path("Arial", bold=True, italic=True) == str(tmp_path / "arial.ttf")
    assert fm.find_font_path("Comic") is None


def test_corrupt_map_falls_back(tmp_path, caplog):
    (tmp_path / "fonts.json").write_text("{oops", encoding="utf-8")
    fm = FontsManager(tmp_path)
    assert fm.families == ["Arial"]
    assert "Failed to load fonts mapping" in caplog.text


def test_unreadable_font_file_uses_builtin_font(tmp_path, caplog):
    (tmp_path / "Arial.ttf").write_bytes(b"not a font")
    fm = FontsManager(tmp_path)
    spec = FontSpec("Arial", 24)
    font = fm.font_for(spec)
    assert font is not None
    assert fm.measure("W", spec) > 0
    assert "Failed to load font file" in caplog.text


def test_measure_and_metrics(tmp_path):
    fm = FontsManager(tmp_path)
    small, big = FontSpec("Arial", 12), FontSpec("Arial", 48)
    assert fm.measure("", small) == 0.0
    assert fm.measure("M", big) > fm.measure("M", small)
    assert fm.measure_text("", small) == 0.0
    assert fm.measure_text("MM", big) >= fm.measure("M", big)
    ascent, descent = fm.metrics(big)
    assert ascent > 0
    assert descent >= 0


def test_font_for_is_cached(tmp_path):
    fm = FontsManager(tmp_path)
    spec = FontSpec("Arial", 20)
    assert fm.font_for(spec) is fm.font_for(FontSpec("Arial", 20.2))


def test_font_cache_is_per_manager(tmp_path):
    first = FontsManager(tmp_path / "a")
    second = FontsManager(tmp_path / "b")
    first.font_for(FontSpec("Arial", 20))
    second.font_for(FontSpec("Arial", 20))

    first.register_family("Roboto", "Roboto-Regular")
    assert first._truetype.cache_info().currsize == 0
    assert second._truetype.cache_info().currsize == 1


def test_released_manager_is_collected(tmp_path):
    import gc
    import weakref

    fm = FontsManager(tmp_path)
    fm.font_for(FontSpec("Arial", 20))
    ref = weakref.ref(fm)
    del fm
    gc.collect()
    assert ref() is None
