"""
Read-only views of a SceneState.

The 2D overlay and the 3D perspective view are both pure functions of the
current SceneState. Render objects are tracked in a separate identity-keyed
registry and are never referenced from the logical entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from weaver.scene.models import ACTOR, CAMERA, LIGHT, PROP, Entity, Position, SceneState, character_identity
from weaver.timeline.models import CameraTrack, Character
from weaver.utils.colors import PALETTE

SCENE_WIDTH = 10.0
SCENE_SCALE = SCENE_WIDTH / 100.0
GRID_CENTER = 50.0

Vec3 = Tuple[float, float, float]


def to_world(pos: Position) -> Vec3:
    """0-100 grid to scene units: grid y is depth (world z), grid z is height (world y)."""
    return (
        (pos.x - GRID_CENTER) * SCENE_SCALE,
        pos.z * SCENE_SCALE,
        (pos.y - GRID_CENTER) * SCENE_SCALE,
    )


def from_world(x: float, y: float, z: float) -> Position:
    return Position(x / SCENE_SCALE + GRID_CENTER, z / SCENE_SCALE + GRID_CENTER, y / SCENE_SCALE)


@dataclass(frozen=True)
class OverlayMarker:
    identity: str
    kind: str
    label: str
    x_percent: float
    y_percent: float
    radius: float
    color: str


@dataclass(frozen=True)
class OverlayPath:
    """Full keyframed route of one track, drawn dashed under the markers."""

    identity: str
    kind: str
    color: str
    points: Tuple[Tuple[float, float], ...]


@dataclass
class ViewOptions:
    show_blocking: bool = True
    show_camera_path: bool = True
    show_emotion: bool = True


@dataclass(frozen=True)
class RenderNode:
    identity: str
    kind: str
    shape: str
    world_position: Vec3
    color: str
    draggable: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)


def prop_shape(name: str) -> str:
    lowered = name.lower()
    if "table" in lowered or "desk" in lowered:
        return "table"
    if "chair" in lowered or "sofa" in lowered:
        return "seat"
    if "lamp" in lowered:
        return "lamp"
    if "plant" in lowered:
        return "plant"
    return "box"


def overlay_markers(state: SceneState, show_blocking: bool = True, show_camera_path: bool = True) -> List[OverlayMarker]:
    markers = []
    for entity in state.entities:
        if entity.kind == ACTOR and not show_blocking:
            continue
        if entity.kind == CAMERA:
            if not show_camera_path:
                continue
            complexity = float(entity.attributes.get("complexity") or 0.0)
            markers.append(
                OverlayMarker(
                    identity=entity.identity,
                    kind=CAMERA,
                    label="CAM",
                    x_percent=entity.position.x,
                    y_percent=entity.position.y,
                    radius=5 + complexity * 15,
                    color=entity.attributes.get("path_color") or PALETTE["warning"],
                )
            )
        else:
            markers.append(
                OverlayMarker(
                    identity=entity.identity,
                    kind=entity.kind,
                    label=entity.name,
                    x_percent=entity.position.x,
                    y_percent=entity.position.y,
                    radius=8.0,
                    color=entity.attributes.get("path_color") or _kind_color(entity.kind),
                )
            )
    return markers


def overlay_paths(
    characters: Sequence[Character],
    camera_track: CameraTrack,
    show_blocking: bool = True,
    show_camera_path: bool = True,
) -> List[OverlayPath]:
    paths = []
    if show_blocking:
        for char in characters:
            if not char.blocking:
                continue
            paths.append(
                OverlayPath(
                    identity=character_identity(char.id),
                    kind=ACTOR,
                    color=char.path_color or _kind_color(ACTOR),
                    points=tuple((k.x, k.y) for k in char.blocking),
                )
            )
    if show_camera_path and camera_track.movement:
        paths.append(
            OverlayPath(
                identity="camera",
                kind=CAMERA,
                color=camera_track.path_color or PALETTE["warning"],
                points=tuple((k.x, k.y) for k in camera_track.movement),
            )
        )
    return paths


def _kind_color(kind: str) -> str:
    return {
        ACTOR: PALETTE["accent"],
        CAMERA: PALETTE["error"],
        LIGHT: PALETTE["warning"],
        PROP: PALETTE["text-secondary"],
    }.get(kind, PALETTE["text-secondary"])


def _node(entity: Entity) -> RenderNode:
    shape = {ACTOR: "capsule", CAMERA: "camera", LIGHT: "light"}.get(entity.kind) or prop_shape(entity.name)
    extra: Dict[str, Any] = {}
    if entity.kind == LIGHT:
        extra["intensity"] = float(entity.attributes.get("intensity") or 0.0) * 2
    return RenderNode(
        identity=entity.identity,
        kind=entity.kind,
        shape=shape,
        world_position=to_world(entity.position),
        color=_kind_color(entity.kind),
        extra=extra,
    )


def perspective_nodes(state: SceneState, show_lights: bool = True, show_camera: bool = True) -> List[RenderNode]:
    nodes = []
    for entity in state.entities:
        if entity.kind == LIGHT and not show_lights:
            continue
        if entity.kind == CAMERA and not show_camera:
            continue
        nodes.append(_node(entity))
    return nodes


H = TypeVar("H")


@dataclass
class ReconcileResult:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)


class RenderHandleRegistry(Generic[H]):
    """identity -> render handle, kept in step with a SceneState by identity only."""

    def __init__(self):
        self._handles: Dict[str, H] = {}

    def __contains__(self, identity: str) -> bool:
        return identity in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, identity: str) -> Optional[H]:
        return self._handles.get(identity)

    def reconcile(
        self,
        state: SceneState,
        factory: Callable[[Entity], H],
        dispose: Optional[Callable[[str, H], None]] = None,
    ) -> ReconcileResult:
        result = ReconcileResult()
        wanted = state.identities()
        wanted_set = set(wanted)
        for identity in list(self._handles):
            if identity not in wanted_set:
                handle = self._handles.pop(identity)
                if dispose is not None:
                    dispose(identity, handle)
                result.removed.append(identity)
        for entity in state.entities:
            if entity.identity in self._handles:
                if entity.identity not in result.kept:
                    result.kept.append(entity.identity)
                continue
            self._handles[entity.identity] = factory(entity)
            result.added.append(entity.identity)
        return result

    def clear(self, dispose: Optional[Callable[[str, H], None]] = None) -> None:
        if dispose is not None:
            for identity, handle in self._handles.items():
                dispose(identity, handle)
        self._handles.clear()
