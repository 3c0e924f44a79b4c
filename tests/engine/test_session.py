import asyncio

import pytest

import weaver.config.config as config_module
from weaver.engine import PlaybackClock, SceneSession
from weaver.scene.models import DynamicFeedback, Position
from weaver.scene.presets import get_preset
from weaver.timeline.models import SceneData

CFG = {
    "default_position": [50.0, 50.0],
    "blend_duration": 0.8,
    "animation_cues_file": None,
    "curve_samples": 50,
    "noise_factor": 0.3,
    "debounce_seconds": 0.01,
    "discard_stale_feedback": True,
    "feedback_fallback_message": "Could not get AI feedback for this change.",
}

ANALYSIS = {
    "actors": [{"name": "Hero", "position": {"x": 20, "y": 40, "z": 0}, "emotion": "calm"}],
    "camera": {"position": {"x": 50, "y": 90, "z": 10}},
    "lights": [{"type": "key", "position": {"x": 10, "y": 10, "z": 80}, "intensity": 0.6}],
    "props": [],
    "environmentDescription": "Kitchen, night",
    "overallMood": "uneasy",
}


def _scene():
    return SceneData.from_dict(
        {
            "videoUrl": "",
            "duration": 20,
            "characters": [
                {
                    "id": "char1",
                    "name": "Hero",
                    "pathColor": "#009BBA",
                    "blocking": [{"time": 0, "x": 10, "y": 50}, {"time": 20, "x": 30, "y": 50}],
                    "emotion": [
                        {"time": 0, "intensity": 0.2, "label": "Neutral"},
                        {"time": 10, "intensity": 0.8, "label": "Surprise"},
                    ],
                },
                {"id": "char2", "name": "Extra", "blocking": [], "emotion": []},
            ],
            "camera": {
                "pathColor": "#F9AB00",
                "movement": [
                    {"time": 0, "x": 50, "y": 50, "complexity": 0.1, "label": "Static"},
                    {"time": 10, "x": 60, "y": 50, "complexity": 0.5, "label": "Pan"},
                ],
            },
        }
    )


def test_clock_clamps_and_forwards_seeks():
    seen = []
    clock = PlaybackClock(10.0, seek_callback=seen.append)
    assert clock.update(-3) == 0.0
    assert clock.update(12) == 10.0
    assert clock.seek(4.5) == 4.5
    assert clock.seek(99) == 10.0
    assert seen == [4.5, 10.0]


def test_tick_samples_tracks_at_clock_time():
    session = SceneSession(_scene(), cfg=CFG)
    frame = session.tick(now=0.0, media_time=5.0)

    assert frame.time == 5.0
    assert frame.playhead == pytest.approx(25.0)
    hero = frame.derived.find("actor:char1")
    assert hero.position == Position(15.0, 50.0)
    assert frame.emotion_graphs[0].intensity == pytest.approx(0.5)
    assert frame.emotion_graphs[0].label == "Neutral"
    assert frame.emotion_graphs[1].intensity == 0.0
    assert frame.camera_graph.complexity == pytest.approx(0.3)
    assert frame.camera_graph.label == "Static"
    assert frame.overall_emotion == pytest.approx(0.5)
    assert len(frame.camera_graph.curve.points) == 50
    assert frame.layout is None
    assert frame.poses["actor:char1"]["x"] == 15.0


def test_media_time_is_clamped_to_duration():
    session = SceneSession(_scene(), cfg=CFG)
    assert session.tick(now=0.0, media_time=99).time == 20.0
    assert session.tick(now=0.0, media_time=-1).time == 0.0


def test_label_change_triggers_pose_blend():
    cues = {"Surprise": {"head_pitch": -0.4}}
    session = SceneSession(_scene(), cfg=CFG)
    session.blender.cues.update(cues)

    session.tick(now=100.0, media_time=9.0)
    frame = session.tick(now=100.0, media_time=10.0)
    assert frame.poses["actor:char1"]["head_pitch"] == 0.0

    mid = session.tick(now=100.4, media_time=10.0)
    assert -0.4 < mid.poses["actor:char1"]["head_pitch"] < 0.0

    done = session.tick(now=100.8, media_time=10.0)
    assert done.poses["actor:char1"]["head_pitch"] == -0.4


def test_layout_edit_reaches_blender_and_feedback():
    calls = []

    async def director(summary, name):
        calls.append((summary, name))
        return DynamicFeedback(impact="Hero now blocks the light", suggestion="Backlight instead")

    async def main():
        session = SceneSession(_scene(), cfg=CFG, request_fn=director, scene_id="s1")
        session.load_analysis(ANALYSIS)
        session.tick(now=0.0)
        session.move_entity("actor:Hero", (25, 45))
        session.move_entity("actor:Hero", (30, 45))
        assert session.layout_blender.get("actor:Hero").channels["x"].target_value == 30
        await asyncio.sleep(0.05)
        await session.coordinator.wait_idle()
        frame = session.tick(now=1.0)
        await session.close()
        return frame

    frame = asyncio.run(main())
    assert len(calls) == 1
    assert calls[0][1] == "Hero"
    assert "Hero at (30, 45)" in calls[0][0]
    assert frame.feedback.status == "ready"
    assert frame.layout.find("actor:Hero").position == Position(30.0, 45.0, 0.0)
    assert frame.layout_poses["actor:Hero"]["x"] == 30.0
    assert [n.shape for n in frame.nodes] == ["capsule", "camera", "light"]


def test_feedback_without_api_key_falls_back(monkeypatch):
    monkeypatch.setitem(config_module.config, "director_model_api_key", "")

    async def main():
        session = SceneSession(_scene(), cfg=CFG)
        session.load_analysis(ANALYSIS)
        session.move_entity("camera", (40, 80))
        session.coordinator.flush()
        await session.coordinator.wait_idle()
        slot = session.coordinator.slot
        await session.close()
        return slot

    slot = asyncio.run(main())
    assert slot.status == "failed"
    assert slot.message == CFG["feedback_fallback_message"]


def test_unknown_entity_move_is_a_noop():
    async def main():
        session = SceneSession(_scene(), cfg=CFG, request_fn=None)
        session.load_analysis(ANALYSIS)
        session.move_entity("prop:ghost", (1, 1))
        pending = session.coordinator.has_pending
        await session.close()
        return pending

    assert asyncio.run(main()) is False


def test_frame_to_dict_is_json_ready():
    session = SceneSession(get_preset("chase-scene").data, cfg=CFG)
    data = session.tick(now=0.0, media_time=30.0).to_dict()
    assert data["time"] == 30.0
    assert data["camera"]["label"] == "Handheld"
    assert {e["identity"] for e in data["entities"]} >= {"camera"}
    assert data["feedback"]["status"] == "idle"
    assert data["layout"] is None


def test_move_entity_without_running_loop_queues_feedback():
    calls = []

    async def director(summary, name):
        calls.append((summary, name))
        return DynamicFeedback(impact="Hero crowds the lens", suggestion="Step back")

    session = SceneSession(_scene(), cfg=CFG, request_fn=director)
    session.load_analysis(ANALYSIS)
    session.tick(now=0.0)

    state = session.move_entity("actor:Hero", (30, 30))

    assert state.find("actor:Hero").position == Position(30.0, 30.0, 0.0)
    assert session.layout_blender.get("actor:Hero").spatial == Position(30.0, 30.0, 0.0)
    assert session.coordinator.has_pending
    assert session.coordinator.slot.status == "pending"

    async def main():
        await session.coordinator.wait_idle()
        await session.close()

    asyncio.run(main())
    assert len(calls) == 1
    assert "Hero at (30, 30)" in calls[0][0]
    assert session.coordinator.slot.status == "ready"


def test_view_options_hide_overlay_layers():
    session = SceneSession(_scene(), cfg=CFG)
    frame = session.tick(now=0.0, media_time=5.0)
    assert [(p.identity, p.points) for p in frame.paths] == [
        ("actor:char1", ((10.0, 50.0), (30.0, 50.0))),
        ("camera", ((50.0, 50.0), (60.0, 50.0))),
    ]
    assert frame.paths[0].color == "#009BBA"
    assert {m.identity for m in frame.overlay} == {"actor:char1", "actor:char2", "camera"}

    session.set_view(show_blocking=False, show_emotion=False)
    hidden = session.tick(now=0.1)
    assert [p.identity for p in hidden.paths] == ["camera"]
    assert [m.identity for m in hidden.overlay] == ["camera"]
    assert hidden.emotion_graphs == []
    assert hidden.poses["actor:char1"]["x"] == 15.0

    session.set_view(show_camera_path=False)
    data = session.tick(now=0.2).to_dict()
    assert data["paths"] == []
    assert data["overlay"] == []
    assert data["camera"] is None

    with pytest.raises(ValueError):
        session.set_view(show_lights=False)


def test_character_named_camera_keeps_its_own_identity():
    scene = SceneData.from_dict(
        {
            "videoUrl": "",
            "duration": 10,
            "characters": [
                {"id": "camera", "name": "Operator", "blocking": [{"time": 0, "x": 5, "y": 5}], "emotion": []}
            ],
            "camera": {"movement": [{"time": 0, "x": 70, "y": 20, "complexity": 0.2, "label": "Static"}]},
        }
    )
    session = SceneSession(scene, cfg=CFG)
    frame = session.tick(now=0.0, media_time=1.0)
    assert frame.derived.identities() == ["actor:camera", "camera"]
    assert frame.poses["actor:camera"]["x"] == 5.0
    assert frame.poses["camera"]["x"] == 70.0
