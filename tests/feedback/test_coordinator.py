import asyncio

import pytest

from weaver.feedback.coordinator import EditFeedbackCoordinator
from weaver.feedback.summary import feedback_prompt, scene_summary
from weaver.scene.models import DynamicFeedback
from weaver.scene.store import SceneGraphStore

FALLBACK = "Could not get AI feedback for this change."


def _store():
    store = SceneGraphStore()
    store.load_authoritative(
        {
            "actors": [
                {"name": "Hero", "position": {"x": 20.5, "y": 40.4, "z": 0}, "emotion": "calm"},
                {"name": "Rival", "position": {"x": 70, "y": 45, "z": 0}, "emotion": "angry"},
            ],
            "camera": {"position": {"x": 50, "y": 90, "z": 15}},
            "lights": [],
            "props": [],
            "environmentDescription": "Rooftop at dusk",
            "overallMood": "tense",
        }
    )
    return store


def _state():
    return _store().state


class FakeDirector:
    def __init__(self, fail=False):
        self.calls = []
        self.gates = {}
        self.fail = fail

    async def __call__(self, summary, name):
        self.calls.append((summary, name))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise RuntimeError("model unavailable")
        return DynamicFeedback(impact=f"{name} impact", suggestion=f"{name} suggestion")


def test_scene_summary_lists_layout():
    text = scene_summary(_state())
    assert "- Environment: Rooftop at dusk" in text
    assert "- Mood: tense" in text
    assert "Hero at (21, 40), Rival at (70, 45)" in text
    assert "- Camera: at (50, 90)" in text
    assert 'moved the "Hero"' in feedback_prompt(text, "Hero")


def test_burst_of_edits_sends_one_request_for_last_entity():
    director = FakeDirector()

    async def main():
        coord = EditFeedbackCoordinator(director, debounce=0.02)
        store = _store()
        for i, name in enumerate(["Hero", "Rival", "Hero", "Rival"]):
            store.apply_edit(f"actor:{name}", (10 * i + 10, 20))
            coord.notify_edit(f"actor:{name}", name, store.state.snapshot())
            await asyncio.sleep(0.001)
        assert coord.slot.status == "pending"
        await asyncio.sleep(0.1)
        await coord.wait_idle()
        return coord

    coord = asyncio.run(main())
    assert len(director.calls) == 1
    assert director.calls[0][1] == "Rival"
    assert "Hero at (30, 20), Rival at (40, 20)" in director.calls[0][0]
    assert coord.slot.status == "ready"
    assert coord.slot.impact == "Rival impact"
    assert coord.slot.identity == "actor:Rival"


def test_edit_outside_event_loop_waits_for_flush():
    director = FakeDirector()
    coord = EditFeedbackCoordinator(director, debounce=0.01)
    coord.notify_edit("actor:Hero", "Hero", _state())

    assert coord.has_pending
    assert coord.slot.status == "pending"
    assert coord.flush() is None
    assert coord.has_pending

    asyncio.run(coord.wait_idle())
    assert [c[1] for c in director.calls] == ["Hero"]
    assert coord.slot.status == "ready"
    assert not coord.has_pending


def test_failed_request_sets_fallback_message():
    director = FakeDirector(fail=True)

    async def main():
        coord = EditFeedbackCoordinator(director, debounce=10)
        coord.notify_edit("actor:Hero", "Hero", _state())
        coord.flush()
        await coord.wait_idle()
        return coord

    coord = asyncio.run(main())
    assert coord.slot.status == "failed"
    assert coord.slot.message == FALLBACK
    assert coord.slot.impact is None


def test_dict_result_is_validated():
    async def director(summary, name):
        return {"impact": "wide", "suggestion": "push in"}

    async def main():
        coord = EditFeedbackCoordinator(director, debounce=10)
        coord.notify_edit("camera", "Camera", _state())
        coord.flush()
        await coord.wait_idle()
        return coord

    assert asyncio.run(main()).slot.suggestion == "push in"


@pytest.mark.parametrize("discard_stale, expected", [(True, "Rival impact"), (False, "Hero impact")])
def test_late_response_for_older_request(discard_stale, expected):
    director = FakeDirector()

    async def main():
        director.gates["Hero"] = asyncio.Event()
        coord = EditFeedbackCoordinator(director, debounce=10, discard_stale=discard_stale)
        state = _state()

        coord.notify_edit("actor:Hero", "Hero", state)
        coord.flush()
        await asyncio.sleep(0)
        coord.notify_edit("actor:Rival", "Rival", state)
        coord.flush()
        for _ in range(10):
            await asyncio.sleep(0)
        assert coord.slot.impact == "Rival impact"
        assert coord.in_flight == 1

        director.gates["Hero"].set()
        await coord.wait_idle()
        return coord

    coord = asyncio.run(main())
    assert [c[1] for c in director.calls] == ["Hero", "Rival"]
    assert coord.slot.impact == expected
    assert coord.generation == 2


def test_new_edit_during_flight_only_restarts_timer():
    director = FakeDirector()

    async def main():
        director.gates["Hero"] = asyncio.Event()
        coord = EditFeedbackCoordinator(director, debounce=10)
        coord.notify_edit("actor:Hero", "Hero", _state())
        task = coord.flush()
        await asyncio.sleep(0)
        coord.notify_edit("actor:Rival", "Rival", _state())
        assert not task.done()
        assert coord.has_pending
        director.gates["Hero"].set()
        await coord.wait_idle()
        assert coord.slot.status == "pending"
        coord.cancel()
        return coord

    coord = asyncio.run(main())
    assert len(director.calls) == 1
    assert coord.slot.status == "idle"


def test_aclose_drops_pending_burst():
    director = FakeDirector()

    async def main():
        coord = EditFeedbackCoordinator(director, debounce=0.01)
        coord.notify_edit("actor:Hero", "Hero", _state())
        await coord.aclose()
        await asyncio.sleep(0.05)
        coord.notify_edit("actor:Hero", "Hero", _state())
        await asyncio.sleep(0.05)
        return coord

    asyncio.run(main())
    assert director.calls == []
