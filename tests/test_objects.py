import pytest

from stampkit.core.objects import (
    CurvedLine,
    Design,
    DesignElement,
    FontSpec,
    Product,
    StraightLine,
    design_from_dict,
    design_to_dict,
    line_from_dict,
    line_to_dict,
    new_design,
    to_curved,
    to_straight,
)
from stampkit.core.state import AppSettings


def test_font_spec_flags_and_css():
    spec = FontSpec("Arial", 16, weight="700", style="italic")
    assert spec.is_bold
    assert spec.is_italic
    assert spec.css() == "italic 700 16px Arial"
    assert not FontSpec("Arial", 16, weight="400").is_bold
    assert not FontSpec("Arial", 16, weight="heavy").is_bold


def test_new_design_from_product(sample_product):
    design = new_design(sample_product, AppSettings(default_font_family="Roboto"))
    assert len(design.lines) == 3
    assert all(ln.font_family == "Roboto" for ln in design.lines)
    assert len({ln.id for ln in design.lines}) == 3
    assert design.ink_color == "red"


def test_new_design_without_product():
    design = new_design()
    assert len(design.lines) == 1
    assert design.ink_color == "blue"


def test_variant_conversion_keeps_shared_fields():
    line = StraightLine(id="l1", text="ACME", font_size_mm=5, color="green", x_offset_pct=20)
    curved = to_curved(line)
    assert isinstance(curved, CurvedLine)
    assert (curved.id, curved.text, curved.font_size_mm, curved.color) == ("l1", "ACME", 5, "green")
    back = to_straight(curved)
    assert back.x_offset_pct == 0
    assert to_curved(curved) is curved


def test_with_line_returns_new_design():
    design = Design(lines=(StraightLine(text="a"), StraightLine(text="b")))
    updated = design.with_line(1, StraightLine(text="c"))
    assert [ln.text for ln in updated.lines] == ["a", "c"]
    assert [ln.text for ln in design.lines] == ["a", "b"]


def test_legacy_straight_line():
    line = line_from_dict({
        "id": "l1",
        "text": "Hello",
        "fontSize": 40,
        "letterSpacing": 5,
        "bold": True,
        "italic": False,
        "alignment": "right",
        "xPosition": 25,
        "yPosition": -10,
    })
    assert isinstance(line, StraightLine)
    assert line.font_size_mm == 4.0
    assert line.letter_spacing_mm == 0.5
    assert line.font_weight == "bold"
    assert line.font_style == "normal"
    assert line.align == "end"
    assert (line.x_offset_pct, line.y_offset_pct) == (25, -10)


def test_legacy_curved_line():
    line = line_from_dict({
        "text": "Round",
        "curved": True,
        "curvedAlign": "left",
        "curve": {"enabled": True, "radiusMm": 18, "sweepDeg": 140, "direction": "inner"},
    })
    assert isinstance(line, CurvedLine)
    assert line.radius_mm == 18
    assert line.arc_deg == 140
    assert line.direction == "inside"
    assert line.align == "start"
    assert line.id.startswith("line-")


def test_unknown_values_fall_back():
    line = line_from_dict({"type": "curved", "direction": "sideways", "align": "justify"})
    assert line.direction == "outside"
    assert line.align == "center"


def test_line_dict_tags_variant():
    assert line_to_dict(CurvedLine(text="x"))["type"] == "curved"
    assert line_to_dict(StraightLine(text="x"))["type"] == "straight"


def test_design_dict_round_trip():
    design = Design(
        lines=(StraightLine(id="a", text="ONE", y_mm=12), CurvedLine(id="b", text="TWO", rotation_deg=15)),
        ink_color="black",
        elements=(DesignElement(id="e1", type="qr", image="qr.png", width_mm=8, height_mm=8),),
    )
    assert design_from_dict(design_to_dict(design)) == design


def test_design_from_legacy_flat_keys():
    design = design_from_dict({
        "inkColor": "red",
        "includeLogo": True,
        "logoImage": "logo.png",
        "logoPosition": "left",
        "logoX": 10,
        "shape": "circle",
        "borderStyle": "single",
        "borderThickness": 3,
        "globalAlignment": "right",
        "lines": [{"text": "A"}, "garbage"],
        "elements": [{"type": "barcode", "dataUrl": "data:x", "width": 20, "height": 5}, {"width": "wide"}],
    })
    assert design.ink_color == "red"
    assert design.logo.enabled and design.logo.image == "logo.png"
    assert design.logo.position == "left"
    assert design.logo.x_pct == 10
    assert design.shape.kind == "circle"
    assert design.border.style == "solid"
    assert design.border.thickness_px == 3
    assert design.global_alignment == "end"
    assert len(design.lines) == 1
    assert len(design.elements) == 1
    assert design.elements[0].image == "data:x"


def test_product_from_dict():
    product = Product.from_dict({
        "id": 12,
        "name": "Oval",
        "size": "50x30mm",
        "shape": "Ellipse",
        "inkColors": ["violet"],
        "lines": "4",
        "price": 19.5,
    })
    assert product.id == "12"
    assert product.shape == "ellipse"
    assert product.ink_colors == ("violet",)
    assert product.lines == 4
    assert product.extra == {"price": 19.5}
    assert product.size_mm() == (50.0, 30.0)


def test_product_bad_size():
    with pytest.raises(ValueError):
        Product(id="x", size="huge").size_mm()
