"""
Tests for the overlay model: validation, active-time resolution, pure
edits, the Timeline and coordinate conversion.

Run with: pytest test_overlays.py
"""

import pytest

from burnin.models import (
    Point,
    Position,
    ShadowPatch,
    StylePatch,
    SubtitleSegment,
    SubtitleTrack,
    TextOverlay,
    TextShadow,
    TextStyle,
    Timing,
    TrimBounds,
)
from burnin.overlays import (
    Timeline,
    active_at,
    create_overlay,
    is_active,
    is_valid_color,
    merge_style,
    parse_color,
    to_normalized,
    to_pixels,
    validate_overlay,
    validate_overlays,
    validate_subtitle_tracks,
    validate_trim,
    with_position,
    with_style,
    with_visibility,
)


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
# VALIDATION
# ============================================================================

def test_valid_overlay_has_no_errors():
    result = validate_overlay(make_overlay(), media_duration=60)
    assert result.valid
    assert result.errors == []


def test_validation_reports_every_violation():
    overlay = make_overlay(text="", start=10, end=5, x=-0.1)
    result = validate_overlay(overlay, media_duration=60)

    assert not result.valid
    assert "Text content cannot be empty" in result.errors
    assert "Start time must be less than end time" in result.errors
    assert "X position must be between 0 and 1" in result.errors


def test_whitespace_text_is_empty():
    result = validate_overlay(make_overlay(text="   "), media_duration=60)
    assert result.errors == ["Text content cannot be empty"]


def test_text_length_limit():
    result = validate_overlay(make_overlay(text="x" * 501), media_duration=60)
    assert result.errors == ["Text content cannot exceed 500 characters"]
    assert validate_overlay(make_overlay(text="x" * 500), media_duration=60).valid


def test_timing_rules():
    errors = validate_overlay(make_overlay(start=-1, end=70), media_duration=60).errors
    assert "Start time cannot be negative" in errors
    assert "End time cannot exceed video duration" in errors


def test_minimum_duration_boundary():
    # exactly 0.1s is allowed even though 5.1 - 5.0 is not exactly 0.1 in floats
    assert validate_overlay(make_overlay(start=5.0, end=5.1), media_duration=60).valid

    errors = validate_overlay(make_overlay(start=5.0, end=5.05), media_duration=60).errors
    assert errors == ["Minimum overlay duration is 0.1 seconds"]


def test_end_time_tolerates_rounded_duration():
    assert validate_overlay(make_overlay(start=50, end=60.0005), media_duration=60).valid

    errors = validate_overlay(make_overlay(start=50, end=60.01), media_duration=60).errors
    assert errors == ["End time cannot exceed video duration"]


def test_style_rules():
    overlay = make_overlay(
        font_size=0,
        opacity=1.5,
        border_width=25,
        color="red",
        background_color="#12",
        border_color="rgba(0,0,0)",
        text_shadow=TextShadow(color="nope"),
    )
    errors = validate_overlay(overlay, media_duration=60).errors

    assert "Font size must be between 1 and 200 pixels" in errors
    assert "Opacity must be between 0 and 1" in errors
    assert "Border width must be between 0 and 20 pixels" in errors
    assert "Text color must be a valid hex color or rgba value" in errors
    assert "Background color must be a valid hex color or rgba value" in errors
    assert "Border color must be a valid hex color or rgba value" in errors
    assert "Shadow color must be a valid hex color or rgba value" in errors


def test_optional_colors_may_be_unset():
    overlay = make_overlay(background_color=None, border_color=None, text_shadow=None)
    assert validate_overlay(overlay, media_duration=60).valid


def test_batch_validation_keys_by_id():
    good = make_overlay(id="good")
    bad = make_overlay(id="bad", text="")
    batch = validate_overlays([good, bad], media_duration=60)

    assert not batch.valid
    assert list(batch.overlay_errors) == ["bad"]
    assert batch.overlay_errors["bad"] == ["Text content cannot be empty"]


def test_subtitle_track_validation():
    tracks = [
        SubtitleTrack(id="", segments=[
            SubtitleSegment(start=-1, end=2, text="a"),
            SubtitleSegment(start=3, end=3, text=" "),
        ]),
    ]
    errors = validate_subtitle_tracks(tracks)

    assert errors == [
        "Subtitle track 0 must have an ID",
        "Subtitle track 0, segment 0: start time must be non-negative",
        "Subtitle track 0, segment 1: end time must be greater than start time",
        "Subtitle track 0, segment 1: text cannot be empty",
    ]


def test_subtitle_segments_bounded_by_duration():
    tracks = [SubtitleTrack(id="t", segments=[
        SubtitleSegment(start=0, end=20.0005, text="fits"),
        SubtitleSegment(start=15, end=25, text="too long"),
    ])]

    assert validate_subtitle_tracks(tracks) == []
    assert validate_subtitle_tracks(tracks, media_duration=20) == [
        "Subtitle track 0, segment 1: end time cannot exceed video duration",
    ]


def test_trim_validation():
    assert validate_trim(TrimBounds(start=10, end=30), media_duration=60) == []

    errors = validate_trim(TrimBounds(start=30, end=10), media_duration=60)
    assert errors == ["Trim start time must be less than end time", "Minimum clip duration is 0.1 seconds"]

    errors = validate_trim(TrimBounds(start=10, end=90), media_duration=60)
    assert errors == ["Trim end time cannot exceed video duration of 60 seconds"]

    assert "Trim end time must be a positive number" in validate_trim(TrimBounds(start=0, end=0))


# ============================================================================
# COLORS
# ============================================================================

@pytest.mark.parametrize("value", ["#fff", "#FFCC00", "rgba(0, 0, 0, 0.7)", "rgb(10,20,30)"])
def test_accepted_colors(value):
    assert is_valid_color(value)


@pytest.mark.parametrize("value", ["red", "#ff", "rgba(0,0,0)", "", "#gggggg"])
def test_rejected_colors(value):
    assert not is_valid_color(value)


def test_parse_color_forms():
    assert parse_color("#fc0") == (255, 204, 0, 1.0)
    assert parse_color("rgba(0, 0, 0, 0.7)").to_ffmpeg() == "0x000000@0.70"
    assert parse_color("#ffffff").to_pillow(opacity=0.5) == (255, 255, 255, 128)

    with pytest.raises(ValueError):
        parse_color("red")


# ============================================================================
# ACTIVE-TIME RESOLUTION
# ============================================================================

def test_active_window_is_closed():
    overlay = make_overlay(start=5.0, end=15.0)
    eps = 1e-6

    assert is_active(overlay, 5.0)
    assert is_active(overlay, 15.0)
    assert not is_active(overlay, 5.0 - eps)
    assert not is_active(overlay, 15.0 + eps)


def test_hidden_overlays_are_never_active():
    overlay = with_visibility(make_overlay(), False)
    assert not is_active(overlay, 10.0)


def test_active_at_orders_by_z_index_stably():
    a = make_overlay(id="a", z=2)
    b = make_overlay(id="b", z=1)
    c = make_overlay(id="c", z=2)
    d = make_overlay(id="d", start=20, end=30)

    assert [o.id for o in active_at([a, b, c, d], 10.0)] == ["b", "a", "c"]


# ============================================================================
# PURE EDITS
# ============================================================================

def test_edits_return_new_values():
    overlay = make_overlay()
    moved = with_position(overlay, Position(x=0.1, y=0.2))

    assert moved is not overlay
    assert overlay.position == Position(x=0.5, y=0.5)
    assert moved.position == Position(x=0.1, y=0.2)
    assert moved.text == overlay.text
    assert moved.timing == overlay.timing


def test_merge_style_applies_only_set_fields():
    style = TextStyle(font_size=30, color="#ff0000")
    merged = merge_style(style, StylePatch(font_size=48))

    assert merged.font_size == 48
    assert merged.color == "#ff0000"
    assert merged.background_color == style.background_color


def test_merge_style_can_clear_optional_field():
    merged = merge_style(TextStyle(), StylePatch(background_color=None))
    assert merged.background_color is None


def test_merge_style_merges_shadow_fields():
    style = TextStyle(text_shadow=TextShadow(offset_x=3, offset_y=3, blur=4, color="#111111"))
    merged = merge_style(style, StylePatch(text_shadow=ShadowPatch(blur=8)))

    assert merged.text_shadow == TextShadow(offset_x=3, offset_y=3, blur=8, color="#111111")


def test_merge_style_shadow_onto_missing_shadow_uses_defaults():
    style = TextStyle(text_shadow=None)
    merged = merge_style(style, StylePatch(text_shadow=ShadowPatch(color="#222222")))

    assert merged.text_shadow == TextShadow(color="#222222")


def test_with_style_keeps_other_fields():
    overlay = make_overlay()
    styled = with_style(overlay, StylePatch(opacity=0.5))

    assert styled.style.opacity == 0.5
    assert styled.position == overlay.position
    assert styled.id == overlay.id


def test_create_overlay_defaults():
    overlay = create_overlay("Hi", style=StylePatch(font_size=40))

    assert overlay.id.startswith("overlay-")
    assert overlay.text == "Hi"
    assert overlay.position == Position(x=0.5, y=0.5)
    assert overlay.timing == Timing(start=0, end=5)
    assert overlay.style.font_size == 40
    assert overlay.style.color == "#ffffff"
    assert overlay.z_index == 1
    assert overlay.visible


# ============================================================================
# TIMELINE
# ============================================================================

def test_timeline_add_remove_update():
    timeline = Timeline().add(make_overlay(id="a")).add(make_overlay(id="b"))
    assert [o.id for o in timeline] == ["a", "b"]

    updated = timeline.update("a", lambda o: with_visibility(o, False))
    assert not updated.get("a").visible
    assert timeline.get("a").visible

    assert [o.id for o in timeline.remove("a")] == ["b"]
    assert len(timeline.clear()) == 0


def test_timeline_unknown_id_is_noop():
    timeline = Timeline([make_overlay(id="a")])

    assert timeline.update("zzz", lambda o: with_visibility(o, False)) == timeline
    assert timeline.move_up("zzz") == timeline
    assert timeline.duplicate("zzz") == (timeline, None)


def test_timeline_duplicate_offsets_and_clamps():
    timeline = Timeline([make_overlay(id="a", x=0.98, y=0.5, text="Title")])
    duplicated, new_id = timeline.duplicate("a")

    copy = duplicated.get(new_id)
    assert len(duplicated) == 2
    assert new_id != "a"
    assert copy.text == "Title (Copy)"
    assert copy.position.x == 1.0
    assert copy.position.y == pytest.approx(0.55)


def test_timeline_reordering():
    timeline = Timeline([make_overlay(id=i) for i in ("a", "b", "c")])

    assert [o.id for o in timeline.move_up("c")] == ["a", "c", "b"]
    assert [o.id for o in timeline.move_down("a")] == ["b", "a", "c"]
    assert [o.id for o in timeline.reorder(0, 2)] == ["b", "c", "a"]
    assert timeline.move_up("a") == timeline
    assert timeline.move_down("c") == timeline
    assert timeline.reorder(0, 5) == timeline


def test_timeline_list_order_breaks_z_ties():
    timeline = Timeline([make_overlay(id="a"), make_overlay(id="b")])
    assert [o.id for o in timeline.active_at(10)] == ["a", "b"]
    assert [o.id for o in timeline.move_up("b").active_at(10)] == ["b", "a"]


def test_timeline_validate():
    timeline = Timeline([make_overlay(id="a", end=90)])
    batch = timeline.validate(media_duration=60)
    assert batch.overlay_errors == {"a": ["End time cannot exceed video duration"]}


# ============================================================================
# COORDINATES
# ============================================================================

@pytest.mark.parametrize("px,py", [(0, 0), (960, 540), (1920, 1080), (123.5, 987.25)])
def test_pixel_round_trip(px, py):
    position = to_normalized(Point(x=px, y=py), 1920, 1080)
    back = to_pixels(position, 1920, 1080)

    assert back.x == pytest.approx(px)
    assert back.y == pytest.approx(py)


def test_out_of_frame_pixels_clamp():
    assert to_normalized(Point(x=-50, y=2000), 1920, 1080) == Position(x=0.0, y=1.0)


def test_to_pixels_edges():
    assert to_pixels(Position(x=0, y=0), 1280, 720) == Point(x=0, y=0)
    assert to_pixels(Position(x=1, y=1), 1280, 720) == Point(x=1280, y=720)
