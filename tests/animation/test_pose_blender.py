import pytest

from weaver.animation.cues import CHANNELS, CueTable, load_cue_table
from weaver.animation.easing import ease_in_out_cubic
from weaver.animation.pose_blender import PoseBlender
from weaver.scene.models import Position


def _blender(duration=0.8):
    cues = CueTable({"Surprise": {"head_pitch": -0.4, "z": 1.0}, "anger": {"lean": 0.2}})
    return PoseBlender(duration=duration, cues=cues)


def test_easing_endpoints_and_midpoint():
    assert ease_in_out_cubic(0.0) == 0.0
    assert ease_in_out_cubic(1.0) == 1.0
    assert ease_in_out_cubic(0.5) == pytest.approx(0.5)
    assert ease_in_out_cubic(0.25) == pytest.approx(4 * 0.25 ** 3)
    assert ease_in_out_cubic(0.75) == pytest.approx(1 - (0.5 ** 3) / 2)


def test_cue_table_normalizes_and_defaults_to_zero():
    table = CueTable({"  Surprise ": {"head_pitch": -0.4}})
    assert "surprise" in table
    assert table.offsets("SURPRISE")["head_pitch"] == -0.4
    assert table.offsets("unknown") == {c: 0.0 for c in CHANNELS}
    with pytest.raises(ValueError):
        table.update({"bad": {"tail": 1.0}})


def test_bundled_cue_file_loads():
    table = load_cue_table()
    assert "surprise" in table
    assert load_cue_table("/nonexistent/cues.yaml").offsets("surprise") == {c: 0.0 for c in CHANNELS}


def test_first_observation_starts_at_target():
    blender = _blender()
    rendered = blender.update("char1", "Surprise", Position(10, 20, 0), now=5.0)
    assert rendered["x"] == 10
    assert rendered["z"] == 1.0
    assert rendered["head_pitch"] == -0.4


def test_label_change_blends_with_cubic_easing():
    blender = _blender()
    blender.update("char1", "Neutral", Position(10, 20, 0), now=0.0)
    start = blender.update("char1", "Surprise", Position(10, 20, 0), now=1.0)
    assert start["head_pitch"] == 0.0

    mid = blender.update("char1", "Surprise", Position(10, 20, 0), now=1.2)
    expected = ease_in_out_cubic(0.25) * -0.4
    assert mid["head_pitch"] == pytest.approx(expected)
    assert 0.0 > mid["head_pitch"] > -0.4


def test_progress_is_exactly_complete_at_end_and_idempotent():
    blender = _blender()
    blender.update("cam", "static", Position(50, 50), now=0.1)
    blender.update("cam", "anger", Position(50, 50), now=0.1)
    end = blender.update("cam", "anger", Position(50, 50), now=0.1 + 0.8)
    assert blender.get("cam").progress(0.1 + 0.8) == 1.0
    assert end["lean"] == 0.2
    again = blender.update("cam", "anger", Position(50, 50), now=10.0)
    assert again == end


def test_interrupted_blend_starts_from_current_rendered_value():
    blender = _blender()
    blender.update("a", "neutral", Position(0, 0), now=0.0)
    blender.update("a", "surprise", Position(0, 0), now=0.0)
    partial = blender.update("a", "surprise", Position(0, 0), now=0.4)
    blender.update("a", "neutral", Position(0, 0), now=0.4)
    state = blender.get("a")
    assert state.channels["head_pitch"].start_value == pytest.approx(partial["head_pitch"])
    assert state.channels["head_pitch"].target_value == 0.0
    assert state.start_time == 0.4


def test_same_label_moved_target_keeps_timing():
    blender = _blender()
    blender.update("a", "neutral", Position(0, 0), now=0.0)
    blender.update("a", "anger", Position(0, 0), now=1.0)
    blender.update("a", "anger", Position(30, 0), now=1.4)
    state = blender.get("a")
    assert state.start_time == 1.0
    assert state.channels["x"].target_value == 30
    assert state.channels["x"].start_value == 0
    done = blender.update("a", "anger", Position(30, 0), now=1.8)
    assert done["x"] == 30


def test_retarget_and_forget():
    blender = _blender()
    assert blender.retarget("ghost", Position(1, 1)) is False

    blender.update("a", "surprise", Position(0, 0), now=0.0)
    assert blender.retarget("a", Position(5, 6, 0)) is True
    state = blender.get("a")
    assert state.channels["x"].target_value == 5
    assert state.channels["z"].target_value == 1.0
    assert state.label == "surprise"

    blender.forget("a")
    assert "a" not in blender
    blender.update("b", "", Position(0, 0), now=0.0)
    blender.reset()
    assert blender.get("b") is None


def test_zero_duration_snaps():
    blender = _blender(duration=0.0)
    blender.update("a", "neutral", Position(0, 0), now=0.0)
    rendered = blender.update("a", "surprise", Position(0, 0), now=0.0)
    assert rendered["head_pitch"] == -0.4
