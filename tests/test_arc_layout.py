import math

import pytest

from stampkit.core.objects import FontSpec
from stampkit.canvas.arc_layout import ArcLayoutInput, GlyphPose, fit_scale, layout_arc

FONT = FontSpec(family="Arial", size_px=20)


def fixed(width):
    return lambda char, font: width


def _input(text, **kwargs):
    return ArcLayoutInput(text=text, font=FONT, **kwargs)


def test_empty_text_yields_no_glyphs():
    assert layout_arc(_input("", radius_px=100), fixed(20)) == []


def test_scenario_two_glyphs_fit_without_scaling():
    poses = layout_arc(_input("AB", radius_px=100, arc_degrees=180), fixed(20))
    assert [p.char for p in poses] == ["A", "B"]
    assert fit_scale([20, 20], 0.0, 100 * math.pi) == 1.0
    lo, hi = -math.pi, 0.0
    for p in poses:
        assert lo <= p.theta <= hi
    # 20 px glyphs on a 100 px radius are 0.2 rad apart
    assert poses[1].theta - poses[0].theta == pytest.approx(0.2)
    assert poses[0].theta == pytest.approx(-math.pi / 2 - 0.1)


def test_scenario_overflow_saturates_spacing_scale():
    text = "HELLO WORLD"
    arc_length = 50 * math.radians(60)
    assert fit_scale([20.0] * len(text), 10.0, arc_length) == 0.0

    poses = layout_arc(
        _input(text, radius_px=50, arc_degrees=60, letter_spacing_px=10),
        fixed(20),
    )
    assert len(poses) == 11
    gaps = [b.theta - a.theta for a, b in zip(poses, poses[1:])]
    # glyphs touch: only the 20 px advance separates them
    for gap in gaps:
        assert gap == pytest.approx(20 / 50)


def test_spacing_preserved_when_text_fits():
    poses = layout_arc(_input("ABCD", radius_px=100, letter_spacing_px=5), fixed(10))
    gaps = [b.theta - a.theta for a, b in zip(poses, poses[1:])]
    for gap in gaps:
        assert gap == pytest.approx(15 / 100)


def test_scaled_spacing_fills_arc_exactly():
    advances = [10.0] * 10
    arc_length = 100 * math.radians(90)
    scale = fit_scale(advances, 10.0, arc_length)
    assert 0.0 <= scale <= 1.0
    assert sum(advances) + sum(10.0 * scale for _ in advances) == pytest.approx(arc_length)

    poses = layout_arc(
        _input("ABCDEFGHIJ", radius_px=100, arc_degrees=90, letter_spacing_px=10),
        fixed(10),
    )
    width = 10 + 10 * scale
    assert poses[0].theta == pytest.approx(-math.pi / 2 - math.pi / 4 + width / 2 / 100)
    assert poses[-1].theta == pytest.approx(-math.pi / 2 + math.pi / 4 - width / 2 / 100)


def test_fit_scale_without_spacing_is_one():
    assert fit_scale([50.0, 50.0], 0.0, 10.0) == 1.0


@pytest.mark.parametrize("direction", ["outside", "inside"])
@pytest.mark.parametrize("rotation", [0.0, 37.0, -90.0])
def test_center_alignment_is_symmetric_about_bisector(direction, rotation):
    poses = layout_arc(
        _input("SYMMETRY", radius_px=80, arc_degrees=200, direction=direction, rotation_deg=rotation),
        fixed(12),
    )
    bisector = -math.pi / 2 + math.radians(rotation)
    assert (poses[0].theta + poses[-1].theta) / 2 == pytest.approx(bisector)


def test_outside_increases_and_inside_decreases():
    outside = layout_arc(_input("ORDER", radius_px=60), fixed(10))
    inside = layout_arc(_input("ORDER", radius_px=60, direction="inside"), fixed(10))
    assert all(b.theta > a.theta for a, b in zip(outside, outside[1:]))
    assert all(b.theta < a.theta for a, b in zip(inside, inside[1:]))
    # both read left to right
    assert all(b.x > a.x for a, b in zip(outside, outside[1:]))
    assert all(b.x > a.x for a, b in zip(inside, inside[1:]))


def test_single_glyph_positions_and_tangent():
    top = layout_arc(_input("A", radius_px=100, center_x=200, center_y=200), fixed(10))[0]
    assert (top.x, top.y) == (pytest.approx(200), pytest.approx(100))
    assert top.angle == pytest.approx(0.0, abs=1e-9)

    bottom = layout_arc(_input("A", radius_px=100, center_x=200, center_y=200, direction="inside"), fixed(10))[0]
    assert (bottom.x, bottom.y) == (pytest.approx(200), pytest.approx(300))
    assert bottom.angle == pytest.approx(0.0, abs=1e-9)


def test_global_rotation_moves_position_and_angle():
    pose = layout_arc(_input("A", radius_px=100, rotation_deg=90), fixed(10))[0]
    assert pose.x == pytest.approx(100)
    assert pose.y == pytest.approx(0, abs=1e-9)
    assert pose.angle == pytest.approx(math.pi / 2)


def test_start_and_end_alignment():
    start = layout_arc(_input("AB", radius_px=100, align="start"), fixed(20))
    end = layout_arc(_input("AB", radius_px=100, align="end"), fixed(20))
    assert start[0].theta == pytest.approx(-math.pi + 0.1)
    assert end[-1].theta == pytest.approx(0.0 - 0.1)


def test_zero_width_glyph_gets_pose_without_spacing():
    def measure(char, font):
        return 0.0 if char == "\u0301" else 20.0

    poses = layout_arc(_input("A\u0301B", radius_px=100, letter_spacing_px=5), measure)
    assert [p.char for p in poses] == ["A", "\u0301", "B"]
    assert poses[1].theta == pytest.approx(poses[0].theta + 12.5 / 100)
    assert poses[2].theta - poses[0].theta == pytest.approx(25 / 100)


@pytest.mark.parametrize("radius", [0.0, -10.0, float("nan")])
def test_degenerate_radius_is_clamped(radius):
    poses = layout_arc(_input("ABC", radius_px=radius, center_x=float("inf")), fixed(10))
    assert len(poses) == 3
    for p in poses:
        assert isinstance(p, GlyphPose)
        assert all(math.isfinite(v) for v in (p.x, p.y, p.angle, p.theta))


def test_zero_arc_does_not_raise():
    poses = layout_arc(_input("AB", radius_px=50, arc_degrees=0), fixed(10))
    assert len(poses) == 2


def test_measure_errors_propagate():
    def broken(char, font):
        raise RuntimeError("no metrics")

    with pytest.raises(RuntimeError):
        layout_arc(_input("A", radius_px=50), broken)
