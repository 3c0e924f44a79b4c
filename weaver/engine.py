"""
Per-scene session: the playback clock plus everything a view needs each tick.

tick(now) samples the keyframe tracks at the clock time, blends poses, and
bundles the result with the current layout and feedback slot into a Frame.
Layout edits go through the store; its edit subscription retargets the
layout blender and feeds the feedback coordinator.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from weaver.animation.cues import load_cue_table
from weaver.animation.pose_blender import PoseBlender
from weaver.config.config import config as default_config
from weaver.feedback.coordinator import EditFeedbackCoordinator, FeedbackSlot, RequestFn
from weaver.scene.models import ACTOR, CAMERA, DynamicFeedback, SceneAnalysis, SceneState, character_identity
from weaver.scene.projection import (
    OverlayMarker,
    OverlayPath,
    RenderNode,
    ViewOptions,
    overlay_markers,
    overlay_paths,
    perspective_nodes,
)
from weaver.scene.store import EditEvent, PositionLike, SceneGraphStore
from weaver.services.director_client import DirectorClient
from weaver.timeline.curves import ColorStop, CurvePoint, CurveRenderer, NoisyCurve
from weaver.timeline.models import SceneData
from weaver.timeline.sampler import average_intensity, current_label, sample
from weaver.utils.colors import intensity_hsl
from weaver.utils.logging_setup import log_context

logger = logging.getLogger(__name__)

GRAPH_HEIGHT = 60.0


class PlaybackClock:
    def __init__(self, duration: float, seek_callback: Optional[Callable[[float], None]] = None):
        self.duration = max(0.0, float(duration))
        self.seek_callback = seek_callback
        self.current_time = 0.0

    def clamp(self, t: float) -> float:
        return max(0.0, min(self.duration, float(t)))

    def update(self, t: float) -> float:
        """Take the media element's reported time."""
        self.current_time = self.clamp(t)
        return self.current_time

    def seek(self, t: float) -> float:
        self.current_time = self.clamp(t)
        if self.seek_callback is not None:
            self.seek_callback(self.current_time)
        return self.current_time


@dataclass
class EmotionGraph:
    identity: str
    name: str
    color: str
    label: str
    intensity: float
    polyline: List[CurvePoint]
    ramp: List[ColorStop]


@dataclass
class CameraGraph:
    color: str
    label: str
    complexity: float
    polyline: List[CurvePoint]
    curve: NoisyCurve


@dataclass
class Frame:
    time: float
    playhead: float
    derived: SceneState
    poses: Dict[str, Dict[str, float]]
    overlay: List[OverlayMarker]
    emotion_graphs: List[EmotionGraph]
    camera_graph: Optional[CameraGraph]
    overall_emotion: float
    overall_color: str
    feedback: FeedbackSlot
    layout: Optional[SceneState] = None
    layout_poses: Dict[str, Dict[str, float]] = field(default_factory=dict)
    nodes: List[RenderNode] = field(default_factory=list)
    paths: List[OverlayPath] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        def entity(e):
            return {
                "identity": e.identity,
                "kind": e.kind,
                "name": e.name,
                "position": {"x": e.position.x, "y": e.position.y, "z": e.position.z},
                "attributes": e.attributes,
            }

        return {
            "time": self.time,
            "playhead": self.playhead,
            "entities": [entity(e) for e in self.derived.entities],
            "poses": self.poses,
            "overlay": [asdict(m) for m in self.overlay],
            "paths": [asdict(p) for p in self.paths],
            "emotions": [
                {"identity": g.identity, "name": g.name, "label": g.label, "intensity": g.intensity, "color": g.color}
                for g in self.emotion_graphs
            ],
            "camera": None
            if self.camera_graph is None
            else {
                "label": self.camera_graph.label,
                "complexity": self.camera_graph.complexity,
                "color": self.camera_graph.color,
            },
            "overallEmotion": {"intensity": self.overall_emotion, "color": self.overall_color},
            "layout": None
            if self.layout is None
            else {
                "environmentDescription": self.layout.environment_description,
                "overallMood": self.layout.overall_mood,
                "entities": [entity(e) for e in self.layout.entities],
                "poses": self.layout_poses,
            },
            "feedback": self.feedback.to_dict(),
        }


class SceneSession:
    def __init__(
        self,
        scene_data: SceneData,
        cfg: Optional[Dict[str, Any]] = None,
        request_fn: Optional[RequestFn] = None,
        seek_callback: Optional[Callable[[float], None]] = None,
        scene_id: str = "-",
        graph_height: float = GRAPH_HEIGHT,
    ):
        cfg = cfg or default_config
        self.scene_id = scene_id
        self.scene_data = scene_data
        self.graph_height = float(graph_height)
        self.clock = PlaybackClock(scene_data.duration, seek_callback)
        self.view = ViewOptions()
        default_position: Tuple[float, float] = tuple(cfg.get("default_position", (50.0, 50.0)))
        self.store = SceneGraphStore(default_position=default_position)

        cues = load_cue_table(cfg.get("animation_cues_file"))
        blend_duration = float(cfg.get("blend_duration", 0.8))
        # Derived timeline entities and the edited layout share identities like
        # "camera", so each gets its own blender.
        self.blender = PoseBlender(duration=blend_duration, cues=cues)
        self.layout_blender = PoseBlender(duration=blend_duration, cues=cues)

        self.curves = CurveRenderer(samples=int(cfg.get("curve_samples", 200)), noise_factor=float(cfg.get("noise_factor", 0.3)))
        self._director = None
        self.coordinator = EditFeedbackCoordinator(
            request_fn or self._request_feedback,
            debounce=cfg.get("debounce_seconds"),
            discard_stale=cfg.get("discard_stale_feedback"),
            fallback_message=cfg.get("feedback_fallback_message"),
        )
        self._unsubscribe = self.store.subscribe(self._on_edit)
        self.emotion_geometry, self.camera_geometry = self._build_geometry()
        self._closed = False

    async def _request_feedback(self, summary_text: str, changed_entity_name: str) -> DynamicFeedback:
        if self._director is None:
            self._director = DirectorClient()
        return await self._director.get_dynamic_feedback(summary_text, changed_entity_name)

    def _build_geometry(self):
        duration = self.scene_data.duration
        h = self.graph_height
        emotions = {
            character_identity(c.id): (
                self.curves.polyline(c.emotion, duration, h, field="intensity"),
                self.curves.color_ramp(c.emotion, duration, field="intensity"),
            )
            for c in self.scene_data.characters
        }
        movement = self.scene_data.camera.movement
        camera = (
            self.curves.polyline(movement, duration, h, field="complexity"),
            self.curves.noisy_curve(movement, duration, h, field="complexity"),
        )
        return emotions, camera

    def set_view(self, **options: bool) -> ViewOptions:
        """Toggle overlay layers: ``show_blocking``, ``show_camera_path``, ``show_emotion``."""
        for name, value in options.items():
            if not hasattr(self.view, name):
                raise ValueError(f"Unknown view option: {name}")
            setattr(self.view, name, bool(value))
        return self.view

    # --- playback ---
    def seek(self, t: float) -> float:
        return self.clock.seek(t)

    def tick(self, now: float, media_time: Optional[float] = None) -> Frame:
        """Build the frame for wall-clock ``now``; ``media_time`` is the player's reported position."""
        if media_time is not None:
            self.clock.update(media_time)
        t = self.clock.current_time
        data = self.scene_data

        derived = self.store.derive(data.characters, data.camera, t)
        poses = {}
        for entity in derived.entities:
            label = entity.attributes.get("label") if entity.kind == CAMERA else entity.attributes.get("emotion")
            poses[entity.identity] = self.blender.update(entity.identity, label, entity.position, now)

        view = self.view
        emotion_graphs = []
        shown = data.characters if view.show_emotion else []
        for char in shown:
            identity = character_identity(char.id)
            polyline, ramp = self.emotion_geometry[identity]
            emotion_graphs.append(
                EmotionGraph(
                    identity=identity,
                    name=char.name,
                    color=char.path_color or char.color,
                    label=current_label(char.emotion, t) or "",
                    intensity=sample(char.emotion, t, "intensity") if char.emotion else 0.0,
                    polyline=polyline,
                    ramp=ramp,
                )
            )

        movement = data.camera.movement
        camera_graph = None
        if view.show_camera_path:
            cam_polyline, cam_curve = self.camera_geometry
            camera_graph = CameraGraph(
                color=data.camera.path_color,
                label=current_label(movement, t) or "",
                complexity=sample(movement, t, "complexity") if movement else 0.0,
                polyline=cam_polyline,
                curve=cam_curve,
            )

        overall = average_intensity([c.emotion for c in data.characters], t)

        layout = self.store.state
        layout_poses = {}
        nodes = []
        if layout is not None:
            for entity in layout.entities:
                label = entity.attributes.get("emotion") if entity.kind == ACTOR else ""
                layout_poses[entity.identity] = self.layout_blender.update(entity.identity, label, entity.position, now)
            nodes = perspective_nodes(layout)

        return Frame(
            time=t,
            playhead=self.curves.playhead(t, data.duration),
            derived=derived,
            poses=poses,
            overlay=overlay_markers(derived, view.show_blocking, view.show_camera_path),
            emotion_graphs=emotion_graphs,
            camera_graph=camera_graph,
            overall_emotion=overall,
            overall_color=intensity_hsl(overall),
            feedback=self.coordinator.slot,
            layout=layout,
            layout_poses=layout_poses,
            nodes=nodes,
            paths=overlay_paths(data.characters, data.camera, view.show_blocking, view.show_camera_path),
        )

    # --- authoritative layout ---
    def load_analysis(self, analysis: SceneAnalysis | Dict[str, Any]) -> SceneState:
        with log_context(scene_id=self.scene_id, component="session"):
            state = self.store.load_authoritative(analysis)
            self.layout_blender.reset()
            self.coordinator.cancel()
            return state

    def move_entity(self, identity: str, position: PositionLike) -> Optional[SceneState]:
        with log_context(scene_id=self.scene_id):
            return self.store.apply_edit(identity, position)

    def unload_analysis(self) -> None:
        self.store.unload()
        self.layout_blender.reset()
        self.coordinator.cancel()

    def _on_edit(self, event: EditEvent) -> None:
        self.layout_blender.retarget(event.identity, event.position)
        self.coordinator.notify_edit(event.identity, event.name, event.state.snapshot())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        await self.coordinator.aclose()
        self.blender.reset()
        self.layout_blender.reset()
        self.store.unload()
        logger.info(f"Closed scene session {self.scene_id}")
