"""
Tests for frame composition, text measurement and rasterization.

Composition is tested with a fixed-width fake measurer so geometry is exact;
rasterization runs through Pillow with whatever font is available.

Run with: pytest test_compositor.py
"""

import pytest
from PIL import Image, ImageFont

from burnin.compose import (
    DrawKind,
    FontResolver,
    FontSpec,
    TextMeasurer,
    TextMetrics,
    compose_frame,
    rasterize,
    rasterize_file,
    select_subtitle,
)
from burnin.compose.compositor import subtitle_font_size
from burnin.models import Position, SubtitleSegment, TextOverlay, TextShadow, TextStyle, Timing


class FixedWidthMeasurer:
    """Every character is half the font size wide."""

    def __init__(self):
        self.calls = 0

    def measure(self, text, spec):
        self.calls += 1
        return TextMetrics(width=len(text) * spec.size * 0.5, height=float(spec.size))

    def font(self, spec):
        return ImageFont.load_default(size=spec.size)

    def clear(self):
        pass


def make_overlay(id="o1", text="Hello", start=5.0, end=15.0, x=0.5, y=0.5, z=1, **style):
    return TextOverlay(
        id=id,
        text=text,
        position=Position(x=x, y=y),
        timing=Timing(start=start, end=end),
        style=TextStyle(**style),
        z_index=z,
    )


# ============================================================================
# COMPOSITION
# ============================================================================

def test_nothing_active_is_empty():
    comp = compose_frame(1920, 1080, 2.0, [make_overlay()], measurer=FixedWidthMeasurer())
    assert comp.empty
    assert comp.rendered == ()
    assert comp.subtitle is None


def test_op_order_background_shadow_stroke_fill():
    overlay = make_overlay(border_width=2, border_color="#000000")
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())

    assert [op.kind for op in comp.ops] == [
        DrawKind.FILL_RECT,
        DrawKind.SHADOW_TEXT,
        DrawKind.STROKE_TEXT,
        DrawKind.FILL_TEXT,
    ]


def test_optional_layers_are_skipped():
    overlay = make_overlay(background_color=None, text_shadow=None, border_width=0)
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())
    assert [op.kind for op in comp.ops] == [DrawKind.FILL_TEXT]


def test_center_aligned_geometry():
    # "Hello" at 24px: 5 * 12 = 60 wide
    overlay = make_overlay(font_size=24, text_align="center")
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())

    fill = comp.ops[-1]
    assert fill.x == pytest.approx(960 - 30)
    assert fill.y == pytest.approx(540)

    background = comp.ops[0]
    assert background.x == pytest.approx(960 - 30 - 4)
    assert background.y == pytest.approx(540 - 4)
    assert background.width == pytest.approx(60 + 8)
    assert background.height == pytest.approx(24 + 8)

    bounds = comp.rendered[0].bounds
    assert (bounds.x, bounds.y, bounds.width, bounds.height) == pytest.approx((930, 540, 60, 24))


@pytest.mark.parametrize("align,left", [("left", 960), ("right", 900)])
def test_alignment(align, left):
    overlay = make_overlay(font_size=24, text_align=align)
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())
    assert comp.ops[-1].x == pytest.approx(left)


def test_shadow_offset_and_blur():
    overlay = make_overlay(text_shadow=TextShadow(offset_x=3, offset_y=4, blur=5, color="#000000"))
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())

    shadow = next(op for op in comp.ops if op.kind == DrawKind.SHADOW_TEXT)
    fill = comp.ops[-1]
    assert shadow.x == pytest.approx(fill.x + 3)
    assert shadow.y == pytest.approx(fill.y + 4)
    assert shadow.paint.blur == 5


def test_multiline_overlay_box_covers_every_line():
    # widest line "line two!" is 9 * 12 = 108; two lines are 24 + 1.2 * 24 tall
    overlay = make_overlay(text="line one\nline two!", font_size=24, text_align="center")
    comp = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())

    background = comp.ops[0]
    assert background.width == pytest.approx(108 + 8)
    assert background.height == pytest.approx(52.8 + 8)

    fill = comp.ops[-1]
    assert fill.text == "line one\nline two!"
    assert fill.align == "center"
    assert fill.height == pytest.approx(52.8)

    bounds = comp.rendered[0].bounds
    assert (bounds.x, bounds.y, bounds.width, bounds.height) == pytest.approx((906, 540, 108, 52.8))


def test_scale_factor_scales_ops_but_not_bounds():
    overlay = make_overlay(font_size=24, text_align="left", x=0.25, y=0.25)
    full = compose_frame(1920, 1080, 10.0, [overlay], measurer=FixedWidthMeasurer())
    half = compose_frame(1920, 1080, 10.0, [overlay], scale_factor=0.5, measurer=FixedWidthMeasurer())

    assert half.ops[-1].x == pytest.approx(full.ops[-1].x / 2)
    assert half.ops[-1].paint.font.size == 12
    assert half.rendered[0].bounds == full.rendered[0].bounds


def test_invalid_scale_factor():
    with pytest.raises(ValueError):
        compose_frame(1920, 1080, 0, [], scale_factor=0)


def test_z_order_and_paint_isolation():
    low = make_overlay(id="low", z=1, color="#ff0000", opacity=0.5)
    high = make_overlay(id="high", z=2, color="#00ff00")
    comp = compose_frame(1920, 1080, 10.0, [high, low], measurer=FixedWidthMeasurer())

    assert [r.overlay.id for r in comp.rendered] == ["low", "high"]
    fills = [op for op in comp.ops if op.kind == DrawKind.FILL_TEXT]
    assert fills[0].paint.color == "#ff0000"
    assert fills[0].paint.opacity == 0.5
    assert fills[1].paint.color == "#00ff00"
    assert fills[1].paint.opacity == 1.0


def test_overlay_visible_in_expected_frames():
    overlay = make_overlay(start=5.0, end=15.0)
    fps = 30
    measurer = FixedWidthMeasurer()

    frames_with_text = [
        i for i in range(0, 20 * fps)
        if not compose_frame(1280, 720, i / fps, [overlay], measurer=measurer).empty
    ]
    assert frames_with_text == list(range(150, 451))


# ============================================================================
# SUBTITLES
# ============================================================================

def test_subtitle_draws_last_bottom_centred():
    overlay = make_overlay()
    subtitle = SubtitleSegment(start=9, end=11, text=" caption ")
    comp = compose_frame(1000, 600, 10.0, [overlay], [subtitle], measurer=FixedWidthMeasurer())

    assert comp.subtitle == subtitle
    assert [op.kind for op in comp.ops[-2:]] == [DrawKind.STROKE_TEXT, DrawKind.FILL_TEXT]

    fill = comp.ops[-1]
    size = 30    # max(16, 1000 * 0.03)
    assert fill.text == "caption"
    assert fill.paint.font.size == size
    assert fill.paint.font.weight == "bold"
    assert fill.x + fill.width / 2 == pytest.approx(500)
    assert fill.y + fill.height == pytest.approx(600 - 20)
    assert comp.ops[-2].paint.line_width == 2


def test_multiline_subtitle_grows_upwards():
    subtitle = SubtitleSegment(start=0, end=5, text="first \n second")
    comp = compose_frame(1000, 600, 1.0, [], [subtitle], measurer=FixedWidthMeasurer())

    fill = comp.ops[-1]
    assert fill.text == "first\nsecond"
    assert fill.height == pytest.approx(30 + 36)
    assert fill.width == pytest.approx(6 * 15)
    assert fill.y + fill.height == pytest.approx(600 - 20)
    assert comp.subtitle_bounds.height == pytest.approx(66)


def test_subtitle_font_size_floor():
    assert subtitle_font_size(320) == 16
    assert subtitle_font_size(1920) == pytest.approx(57.6)


def test_first_matching_subtitle_wins():
    a = SubtitleSegment(start=2, end=6, text="a")
    b = SubtitleSegment(start=1, end=5, text="b")
    c = SubtitleSegment(start=1, end=4, text="c")

    assert select_subtitle([a, b, c], 3).text == "b"
    assert select_subtitle([a, b, c], 5.5).text == "a"
    assert select_subtitle([a, b, c], 7) is None


# ============================================================================
# MEASUREMENT
# ============================================================================

def test_font_spec_css():
    spec = FontSpec(family="Arial, sans-serif", size=24, weight="bold", style="italic")
    assert spec.css == "italic bold 24px Arial, sans-serif"
    assert spec.bold and spec.italic
    assert FontSpec(family="x", size=10, weight="600").bold
    assert not FontSpec(family="x", size=10, weight="400").bold


def test_measurer_caches_and_evicts(tmp_path):
    measurer = TextMeasurer(resolver=FontResolver(font_dirs=[tmp_path]), max_entries=2)
    spec = FontSpec(family="sans-serif", size=20)

    first = measurer.measure("abc", spec)
    again = measurer.measure("abc", spec)
    assert first == again
    assert (measurer.hits, measurer.misses) == (1, 1)
    assert first.height == 20
    assert first.width > 0

    measurer.measure("def", spec)
    measurer.measure("ghi", spec)
    assert len(measurer) == 2

    measurer.clear()
    assert len(measurer) == 0
    assert (measurer.hits, measurer.misses) == (0, 0)


def test_resolver_matches_family_and_variant(tmp_path):
    for name in ("Roboto-Regular.ttf", "Roboto-Bold.ttf", "Roboto-Italic.ttf", "Other.ttf"):
        (tmp_path / name).write_bytes(b"")
    resolver = FontResolver(font_dirs=[tmp_path], default_family="Other")

    assert resolver.find(FontSpec(family="Roboto", size=10)).name == "Roboto-Regular.ttf"
    assert resolver.find(FontSpec(family="Roboto", size=10, weight="bold")).name == "Roboto-Bold.ttf"
    assert resolver.find(FontSpec(family="'Missing', Roboto", size=10, style="italic")).name == "Roboto-Italic.ttf"
    assert resolver.find(FontSpec(family="Missing", size=10)).name == "Other.ttf"


# ============================================================================
# RASTERIZATION
# ============================================================================

def test_rasterize_paints_background_box():
    overlay = make_overlay(
        text="Hi",
        x=0.5, y=0.5,
        background_color="#ff0000",
        color="#ffffff",
        text_shadow=None,
    )
    measurer = TextMeasurer()
    comp = compose_frame(200, 100, 10.0, [overlay], measurer=measurer)
    image = rasterize(Image.new("RGB", (200, 100), (0, 0, 0)), comp.ops, measurer)

    assert image.mode == "RGBA"
    background = comp.ops[0]
    inside = (int(background.x) + 1, int(background.y) + 1)
    assert image.getpixel(inside)[0] == 255
    assert image.getpixel((2, 2)) == (0, 0, 0, 255)


def test_rasterize_respects_opacity():
    overlay = make_overlay(text="Hi", background_color="#ffffff", opacity=0.5, text_shadow=None)
    measurer = TextMeasurer()
    comp = compose_frame(200, 100, 10.0, [overlay], measurer=measurer)
    image = rasterize(Image.new("RGBA", (200, 100), (0, 0, 0, 255)), comp.ops[:1], measurer)

    background = comp.ops[0]
    r, g, b, a = image.getpixel((int(background.x) + 1, int(background.y) + 1))
    assert 120 <= r <= 135
    assert a == 255


def test_ops_off_frame_are_clipped():
    overlay = make_overlay(text="Edge case text", x=1.0, y=1.0, background_color="#00ff00")
    measurer = TextMeasurer()
    comp = compose_frame(100, 50, 10.0, [overlay], measurer=measurer)
    image = rasterize(Image.new("RGB", (100, 50)), comp.ops, measurer)
    assert image.size == (100, 50)


def test_rasterize_multiline_text():
    overlay = make_overlay(
        text="line one\nline two",
        x=0.1, y=0.1,
        background_color="#ff0000",
        color="#ffffff",
        text_shadow=None,
        text_align="left",
    )
    subtitle = SubtitleSegment(start=0, end=20, text="first\nsecond")
    measurer = TextMeasurer()
    comp = compose_frame(320, 180, 10.0, [overlay], [subtitle], measurer=measurer)
    image = rasterize(Image.new("RGB", (320, 180), (0, 0, 0)), comp.ops, measurer)

    background = comp.ops[0]
    bottom_inside = (int(background.x) + 1, int(background.y + background.height) - 2)
    assert image.getpixel(bottom_inside)[:3] == (255, 0, 0)

    # the second subtitle line is painted below the first
    box = comp.subtitle_bounds
    second_line_rows = range(int(box.y + box.height * 0.6), int(box.y + box.height))
    columns = range(int(box.x), int(box.x + box.width))
    assert any(image.getpixel((x, y))[0] > 200 for y in second_line_rows for x in columns)


def test_rasterize_file_in_place(tmp_path):
    path = tmp_path / "frame_000000.png"
    Image.new("RGB", (160, 90), (0, 0, 0)).save(path)

    measurer = TextMeasurer()
    assert rasterize_file(path, [], measurer) is False

    overlay = make_overlay(text="X", background_color="#0000ff")
    comp = compose_frame(160, 90, 10.0, [overlay], measurer=measurer)
    assert rasterize_file(path, list(comp.ops), measurer) is True

    with Image.open(path) as result:
        assert result.mode == "RGB"
        background = comp.ops[0]
        assert result.getpixel((int(background.x) + 1, int(background.y) + 1))[2] > 200
