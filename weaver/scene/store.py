from __future__ import annotations

import logging
import traceback
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from weaver.scene.models import (
    ACTOR,
    AUTHORITATIVE,
    CAMERA,
    DERIVED,
    LIGHT,
    PROP,
    ActorAnalysis,
    CameraAnalysis,
    Entity,
    LightAnalysis,
    Position,
    PropAnalysis,
    SceneAnalysis,
    SceneState,
    Vector3,
    character_identity,
)
from weaver.timeline.models import CameraTrack, Character
from weaver.timeline.sampler import current_label, sample
from weaver.utils.logging_setup import log_context

logger = logging.getLogger(__name__)

PositionLike = Union[Position, Vector3, Dict[str, float], Sequence[float]]

CAMERA_IDENTITY = "camera"


@dataclass(frozen=True)
class EditEvent:
    identity: str
    name: str
    kind: str
    position: Position
    state: SceneState


EditListener = Callable[[EditEvent], None]


def _coerce_position(value: PositionLike, current: Position) -> Position:
    if isinstance(value, Position):
        return value
    if isinstance(value, Vector3):
        return Position.from_vector(value)
    if isinstance(value, dict):
        return Position(
            float(value.get("x", current.x)),
            float(value.get("y", current.y)),
            float(value.get("z", current.z)),
        )
    coords = [float(v) for v in value]
    if len(coords) == 2:
        return Position(coords[0], coords[1], current.z)
    if len(coords) == 3:
        return Position(*coords)
    raise ValueError(f"position needs 2 or 3 coordinates, got {len(coords)}")


def assign_identities(analysis: SceneAnalysis) -> List[Entity]:
    """
    Build entities from an analysis snapshot with unique, stable identities:
    ``camera``, ``actor:<name>``, ``prop:<name>``, ``light:<type>:<index>``.
    Repeated names get a ``#<n>`` suffix from the second occurrence on.
    """
    seen: Counter = Counter()

    def unique(base: str) -> str:
        seen[base] += 1
        return base if seen[base] == 1 else f"{base}#{seen[base]}"

    entities: List[Entity] = []
    for actor in analysis.actors:
        entities.append(
            Entity(
                identity=unique(f"{ACTOR}:{actor.name}"),
                kind=ACTOR,
                name=actor.name,
                position=Position.from_vector(actor.position),
                attributes={"emotion": actor.emotion, "interaction": actor.interaction},
            )
        )

    cam = analysis.camera
    entities.append(
        Entity(
            identity=unique(CAMERA_IDENTITY),
            kind=CAMERA,
            name="Camera",
            position=Position.from_vector(cam.position),
            attributes={
                "orientation": cam.orientation.model_dump() if cam.orientation else None,
                "zoom": cam.zoom,
            },
        )
    )

    for index, light in enumerate(analysis.lights):
        entities.append(
            Entity(
                identity=unique(f"{LIGHT}:{light.type}:{index}"),
                kind=LIGHT,
                name=light.type,
                position=Position.from_vector(light.position),
                attributes={"type": light.type, "intensity": light.intensity},
            )
        )

    for prop in analysis.props:
        entities.append(
            Entity(
                identity=unique(f"{PROP}:{prop.name}"),
                kind=PROP,
                name=prop.name,
                position=Position.from_vector(prop.position),
            )
        )
    return entities


class SceneGraphStore:
    """
    Single source of truth for where everything is right now.

    Holds at most one authoritative SceneState (loaded wholesale from an
    analysis and edited in place) and derives throwaway SceneStates from
    keyframe tracks on demand. The two never merge.
    """

    def __init__(self, default_position: Tuple[float, float] = (50.0, 50.0)):
        self.default_position = Position(float(default_position[0]), float(default_position[1]))
        self._state: Optional[SceneState] = None
        self._listeners: List[EditListener] = []

    # --- authoritative state ---
    @property
    def state(self) -> Optional[SceneState]:
        return self._state

    @property
    def authoritative(self) -> bool:
        return self._state is not None

    def get(self, identity: str) -> Optional[Entity]:
        if self._state is None:
            return None
        return self._state.find(identity)

    def load_authoritative(self, snapshot: Union[SceneAnalysis, Dict[str, Any]]) -> SceneState:
        analysis = snapshot if isinstance(snapshot, SceneAnalysis) else SceneAnalysis.model_validate(snapshot)
        state = SceneState(
            entities=assign_identities(analysis),
            environment_description=analysis.environment_description,
            overall_mood=analysis.overall_mood,
            origin=AUTHORITATIVE,
        )
        # Single assignment: readers see either the old state or the new one.
        self._state = state
        logger.info(f"Loaded authoritative scene with {len(state.entities)} entities")
        return state

    def apply_edit(self, identity: str, new_position: PositionLike) -> Optional[SceneState]:
        with log_context(entity=identity, component="store"):
            if self._state is None:
                logger.warning(f"Ignoring edit to {identity}: no authoritative scene loaded")
                return None
            entity = self._state.find(identity)
            if entity is None:
                logger.warning(f"Ignoring edit to unknown entity {identity}")
                return self._state

            entity.position = _coerce_position(new_position, entity.position)
            logger.debug(f"Moved {identity} to {entity.position}")

            event = EditEvent(
                identity=entity.identity,
                name=entity.name,
                kind=entity.kind,
                position=entity.position,
                state=self._state,
            )
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Edit listener failed for {identity}: {e}")
                    logger.error(traceback.format_exc())
            return self._state

    def subscribe(self, listener: EditListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def unload(self) -> None:
        self._state = None

    def to_analysis(self, state: Optional[SceneState] = None) -> Optional[SceneAnalysis]:
        state = state or self._state
        if state is None:
            return None
        camera = state.find(CAMERA_IDENTITY)
        cam_attrs = camera.attributes if camera else {}
        orientation = cam_attrs.get("orientation")
        return SceneAnalysis(
            actors=[
                ActorAnalysis(
                    name=e.name,
                    position=e.position.to_vector(),
                    emotion=str(e.attributes.get("emotion") or ""),
                    interaction=e.attributes.get("interaction"),
                )
                for e in state.by_kind(ACTOR)
            ],
            camera=CameraAnalysis(
                position=camera.position.to_vector() if camera else self.default_position.to_vector(),
                orientation=Vector3(**orientation) if orientation else None,
                zoom=cam_attrs.get("zoom"),
            ),
            lights=[
                LightAnalysis(
                    type=str(e.attributes.get("type", e.name)),
                    position=e.position.to_vector(),
                    intensity=float(e.attributes.get("intensity", 0.0)),
                )
                for e in state.by_kind(LIGHT)
            ],
            props=[PropAnalysis(name=e.name, position=e.position.to_vector()) for e in state.by_kind(PROP)],
            environment_description=state.environment_description,
            overall_mood=state.overall_mood,
        )

    # --- derived state ---
    def derive(self, characters: Sequence[Character], camera_track: CameraTrack, t: float) -> SceneState:
        entities: List[Entity] = []
        for char in characters:
            if char.blocking:
                position = Position(sample(char.blocking, t, "x"), sample(char.blocking, t, "y"))
            else:
                position = self.default_position
            if char.emotion:
                intensity = sample(char.emotion, t, "intensity")
                label = current_label(char.emotion, t) or ""
            else:
                intensity, label = 0.0, ""
            entities.append(
                Entity(
                    identity=character_identity(char.id),
                    kind=ACTOR,
                    name=char.name,
                    position=position,
                    attributes={
                        "emotion": label,
                        "intensity": intensity,
                        "color": char.color,
                        "path_color": char.path_color,
                    },
                )
            )

        movement = camera_track.movement
        if movement:
            cam_position = Position(sample(movement, t, "x"), sample(movement, t, "y"))
            complexity = sample(movement, t, "complexity")
            cam_label = current_label(movement, t) or ""
        else:
            cam_position, complexity, cam_label = Position(50.0, 50.0), 0.0, ""
        entities.append(
            Entity(
                identity=CAMERA_IDENTITY,
                kind=CAMERA,
                name="Camera",
                position=cam_position,
                attributes={"complexity": complexity, "label": cam_label, "path_color": camera_track.path_color},
            )
        )
        return SceneState(entities=entities, origin=DERIVED, time=t)
